"""
Authentication dependencies built on HS256 JWT verification.

Tokens are issued by the account service; this API only verifies them.
The ``sub`` claim carries the user's UUID and ``scopes`` an optional list
of granted scopes.
"""

import uuid
from dataclasses import dataclass, field

from fastapi import Header

from .exceptions import AuthenticationError, AuthorizationError
from .security import extract_token_from_header, verify_token


@dataclass
class AuthenticatedUser:
    """Caller identity decoded from a bearer token."""

    id: uuid.UUID
    email: str | None = None
    scopes: list[str] = field(default_factory=list)
    raw_payload: dict = field(default_factory=dict)

    @property
    def is_admin(self) -> bool:
        """Check if the user has admin privileges."""
        return "admin" in self.scopes


def user_from_payload(payload: dict) -> AuthenticatedUser:
    """Build an AuthenticatedUser from a verified token payload."""
    try:
        user_id = uuid.UUID(str(payload["sub"]))
    except (KeyError, ValueError) as e:
        raise AuthenticationError(message="Token subject is not a valid user id") from e

    return AuthenticatedUser(
        id=user_id,
        email=payload.get("email"),
        scopes=list(payload.get("scopes") or []),
        raw_payload=payload,
    )


# ============ FastAPI Dependencies ============


async def require_current_user(
    authorization: str | None = Header(None),
) -> AuthenticatedUser:
    """
    Require authenticated user.

    Raises 401 if not authenticated.
    """
    token = extract_token_from_header(authorization)
    if not token:
        raise AuthenticationError(message="Authentication required")
    return user_from_payload(verify_token(token))


async def require_admin(
    authorization: str | None = Header(None),
) -> AuthenticatedUser:
    """
    Require admin scopes.

    Raises 401 if not authenticated, 403 if not admin.
    """
    user = await require_current_user(authorization)
    if not user.is_admin:
        raise AuthorizationError(message="Admin privileges required")
    return user
