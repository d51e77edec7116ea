"""Verification of principal tokens issued by the identity gateway."""

import hashlib

import jwt

from plura.core.config import settings
from plura.schemas.auth import Principal


# =============================================================================
# Principal Token (JWT in cookie or bearer header)
# =============================================================================

def decode_principal_token(token: str) -> dict:
    """
    Decode and verify a principal JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore


def principal_from_claims(claims: dict) -> Principal:
    """Build a verified principal from decoded token claims."""
    email = claims.get("email")
    if not claims.get("sub") or not email:
        raise jwt.InvalidTokenError("Token is missing sub or email")
    return Principal(
        id=str(claims["sub"]),
        email=email.strip().lower(),
        first_name=claims.get("given_name") or "",
        last_name=claims.get("family_name") or "",
        avatar_url=claims.get("picture"),
    )


def hash_email(email: str) -> str:
    """Short stable hash used in logs instead of raw email addresses."""
    return hashlib.sha256(email.strip().lower().encode()).hexdigest()[:12]
