"""
Bearer token handling.

Tokens are HS256 JWTs whose ``sub`` claim is the user id. The account
service issues them; this backend only needs to verify them (and to mint
them for tests and tooling).
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Mapping, Optional, cast

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
import jwt
from jwt import PyJWTError

from .core.config import settings
from .core.exceptions import UnauthorizedException

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "accessToken"

oauth2_scheme_optional = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        user_id: The user the token authenticates
        expires_delta: Optional expiration time delta

    Returns:
        str: The encoded JWT token
    """
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.access_token_expire_minutes
        )

    to_encode: Dict[str, Any] = {"sub": str(user_id), "exp": expire}
    return cast(
        str,
        jwt.encode(
            to_encode,
            settings.secret_key.get_secret_value(),
            algorithm=settings.algorithm,
        ),
    )


def decode_access_token(token: str) -> int:
    """
    Verify a token and return the user id it carries.

    Raises:
        UnauthorizedException: Token is invalid, expired, or has no usable ``sub``
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key.get_secret_value(),
            algorithms=[settings.algorithm],
        )
    except PyJWTError as e:
        logger.info(f"JWT validation error: {str(e)}")
        raise UnauthorizedException("Could not validate credentials", code="INVALID_TOKEN")

    subject = payload.get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError):
        logger.warning("Token payload missing a numeric 'sub' field")
        raise UnauthorizedException("Could not validate credentials", code="INVALID_TOKEN")


def bearer_from_header(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()


def extract_token(
    headers: Mapping[str, str],
    cookies: Mapping[str, str],
    query_params: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    """
    Find a bearer token in a request or websocket handshake.

    Order: ``token`` query parameter, Authorization header, access token cookie.
    """
    if query_params is not None and query_params.get("token"):
        return query_params["token"]
    return bearer_from_header(headers.get("authorization")) or cookies.get(ACCESS_TOKEN_COOKIE)


async def get_current_user_id(
    request: Request, token: Optional[str] = Depends(oauth2_scheme_optional)
) -> int:
    """
    Dependency returning the authenticated user's id.

    Falls back to the access token cookie when no Authorization header is sent.

    Raises:
        UnauthorizedException: No token, or an invalid one
    """
    if not token:
        token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token:
        raise UnauthorizedException("Not authenticated", code="NOT_AUTHENTICATED")
    return decode_access_token(token)
