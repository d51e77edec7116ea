"""Structured logging helpers (PII-safe)."""

from typing import Any


def build_log_context(
    *,
    user_id: str | None = None,
    agency_id: str | None = None,
    subaccount_id: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict (ids only, never emails or names)."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = str(user_id)
    if agency_id:
        context["agency_id"] = str(agency_id)
    if subaccount_id:
        context["subaccount_id"] = str(subaccount_id)
    return context
