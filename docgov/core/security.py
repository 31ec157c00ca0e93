"""
Security Utilities
Identity token verification and magic link token generation
"""

import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from docgov.core.config import settings
from docgov.core.exceptions import AuthenticationException
from docgov.core.logging import get_logger

logger = get_logger(__name__)

# token_urlsafe output alphabet
_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]{16,256}$")


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token

    Tokens are normally minted by the identity provider; this is used by
    operator scripts and tests that share the same secret.
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode.update({"exp": expire, "type": "access"})
    encoded_jwt = jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
    )
    return encoded_jwt


def decode_token(token: str) -> Dict[str, Any]:
    """Decode and verify a JWT token"""
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
        return payload
    except JWTError as e:
        logger.warning(f"Rejected bearer token: {e}")
        raise AuthenticationException(message="Invalid token")


def verify_access_token(token: str) -> Dict[str, Any]:
    """Verify an access token and return its payload"""
    payload = decode_token(token)

    if payload.get("type") != "access":
        raise AuthenticationException(
            message="Invalid token type",
            details={"expected": "access", "got": payload.get("type")},
        )

    if not payload.get("sub"):
        raise AuthenticationException(message="Token has no subject")

    return payload


def generate_magic_token(nbytes: Optional[int] = None) -> str:
    """Generate an unguessable URL-safe magic link token"""
    return secrets.token_urlsafe(nbytes or settings.MAGIC_LINK_TOKEN_BYTES)


def is_well_formed_token(token: str) -> bool:
    """Cheap shape check so garbage never reaches the database"""
    return bool(token) and _TOKEN_PATTERN.match(token) is not None
