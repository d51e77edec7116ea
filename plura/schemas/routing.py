"""Schemas for the agency entry redirect decision."""

from pydantic import BaseModel


class EntryResponse(BaseModel):
    """
    Navigation outcome for the agency entry page.

    `path` is None for outcomes that render in place (onboarding, unauthorized).
    """
    outcome: str
    agency_id: str | None
    path: str | None
