"""Service-layer exceptions for the authorization and membership subsystem.

Routers translate these into HTTP responses (see ``plura.main``). A principal
without a tenant record is not an error: resolvers return ``None`` for it.
"""


class PluraServiceError(Exception):
    """Base exception for service errors."""

    status_code = 400
    retryable = False


class RoleConflictError(PluraServiceError):
    """An operation would create a second AGENCY_OWNER (or grant ownership by invitation)."""

    status_code = 409


class InvalidCallerError(PluraServiceError):
    """Caller did not identify the user the operation applies to."""

    status_code = 400


class NoActorError(PluraServiceError):
    """No user could be resolved to attribute an activity entry to."""

    status_code = 422


class MissingTenantReferenceError(PluraServiceError):
    """Neither an agency nor a resolvable subaccount was supplied."""

    status_code = 400


class StoreUnavailableError(PluraServiceError):
    """The entity store failed or timed out. Safe for the caller to retry."""

    status_code = 503
    retryable = True


class NotAuthorizedError(PluraServiceError):
    """Caller may not act on the requested tenant resource."""

    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)
