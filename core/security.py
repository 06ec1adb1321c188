"""
HS256 bearer tokens.

The account service issues tokens; this API verifies them. ``create_access_token``
exists for the demo seed script and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from .config import get_settings
from .exceptions import AuthenticationError


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Sign a token with the shared secret.

    Args:
        data: Claims; ``sub`` is the user's UUID, ``scopes`` optional
        expires_delta: Lifetime, defaults to ``settings.jwt_expire_days``
    """
    settings = get_settings()
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(days=settings.jwt_expire_days)

    claims = {**data, "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> Dict[str, Any]:
    """
    Decode a token and check its signature, expiry and subject.

    Raises:
        AuthenticationError: If the token is invalid, expired or has no ``sub``
    """
    settings = get_settings()

    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise AuthenticationError(
            message="Invalid or expired token",
            details={"error": str(e)},
        )

    if not payload.get("sub"):
        raise AuthenticationError(message="Token has no subject")
    return payload


def extract_token_from_header(authorization: Optional[str]) -> Optional[str]:
    """Token from a ``Bearer <token>`` header, None for anything else."""
    if not authorization:
        return None

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token or " " in token:
        return None
    return token
