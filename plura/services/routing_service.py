"""Access-gated routing decision for the agency entry page.

Pure function of the resolved role, the caller's agency and the query
parameters; no store access, no side effects.
"""

from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlencode
from uuid import UUID

from plura.db.enums import AGENCY_ROLES, SUBACCOUNT_ROLES, Role

# Billing providers round-trip `state` as "<path>___<agency id>"
STATE_SEPARATOR = "___"


class OutcomeKind(str, Enum):
    SHOW_ONBOARDING = "show_onboarding"
    REDIRECT_TO_SUBACCOUNT_HOME = "redirect_to_subaccount_home"
    REDIRECT_TO_BILLING = "redirect_to_billing"
    REDIRECT_TO = "redirect_to"
    REDIRECT_TO_AGENCY_HOME = "redirect_to_agency_home"
    UNAUTHORIZED = "unauthorized"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    agency_id: str | None = None
    plan: str | None = None
    path: str | None = None
    code: str | None = None

    @property
    def is_redirect(self) -> bool:
        return self.kind not in (OutcomeKind.SHOW_ONBOARDING, OutcomeKind.UNAUTHORIZED)

    def location(self) -> str | None:
        """Navigation target for redirect outcomes, None for in-place renders."""
        if self.kind == OutcomeKind.REDIRECT_TO_SUBACCOUNT_HOME:
            return "/subaccount"
        if self.kind == OutcomeKind.REDIRECT_TO_BILLING:
            return f"/agency/{self.agency_id}/billing?{urlencode({'plan': self.plan})}"
        if self.kind == OutcomeKind.REDIRECT_TO:
            return f"/agency/{self.agency_id}/{self.path}?{urlencode({'code': self.code or ''})}"
        if self.kind == OutcomeKind.REDIRECT_TO_AGENCY_HOME:
            return f"/agency/{self.agency_id}"
        return None


def show_onboarding() -> Outcome:
    return Outcome(OutcomeKind.SHOW_ONBOARDING)


def redirect_to_subaccount_home(agency_id: str) -> Outcome:
    return Outcome(OutcomeKind.REDIRECT_TO_SUBACCOUNT_HOME, agency_id=agency_id)


def redirect_to_billing(agency_id: str, plan: str) -> Outcome:
    return Outcome(OutcomeKind.REDIRECT_TO_BILLING, agency_id=agency_id, plan=plan)


def redirect_to(agency_id: str, path: str, code: str | None) -> Outcome:
    return Outcome(OutcomeKind.REDIRECT_TO, agency_id=agency_id, path=path, code=code)


def redirect_to_agency_home(agency_id: str) -> Outcome:
    return Outcome(OutcomeKind.REDIRECT_TO_AGENCY_HOME, agency_id=agency_id)


def unauthorized() -> Outcome:
    return Outcome(OutcomeKind.UNAUTHORIZED)


def _coerce_role(role: Role | str | None) -> Role | None:
    if role is None or isinstance(role, Role):
        return role
    return Role(role) if Role.has_value(role) else None


def decide(
    role: Role | str | None,
    agency_id: UUID | str | None,
    *,
    plan: str | None = None,
    state: str | None = None,
    code: str | None = None,
) -> Outcome:
    """
    Map a resolved role and entry query parameters to a navigation outcome.

    Rules, in order:
    1. No agency -> onboarding (the caller may create an agency)
    2. Subaccount roles -> subaccount home
    3. Agency roles -> billing if `plan`, else the `state` round-trip target,
       else the agency home. A `state` without an agency part is unauthorized.
    4. Anything else -> unauthorized
    """
    if not agency_id:
        return show_onboarding()

    agency_id = str(agency_id)
    resolved = _coerce_role(role)

    if resolved in SUBACCOUNT_ROLES:
        return redirect_to_subaccount_home(agency_id)

    if resolved in AGENCY_ROLES:
        if plan:
            return redirect_to_billing(agency_id, plan)
        if state:
            parts = state.split(STATE_SEPARATOR)
            state_path = parts[0]
            state_agency_id = parts[1] if len(parts) > 1 else ""
            if not state_agency_id:
                return unauthorized()
            return redirect_to(state_agency_id, state_path, code)
        return redirect_to_agency_home(agency_id)

    return unauthorized()
