"""
API Dependencies
Common dependencies for API routes
"""

import uuid
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from docgov.core.exceptions import AuthenticationException, ValidationException
from docgov.core.permissions import AccessResolver
from docgov.core.security import verify_access_token
from docgov.db.models import Principal
from docgov.db.session import get_db_session


def parse_uuid(value: str, field_name: str) -> uuid.UUID:
    """Parse a path or body identifier, 400 on malformed input"""
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValidationException(
            message=f"Invalid {field_name} format",
            details={field_name: value, "expected_format": "UUID"},
        )


async def get_current_principal(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db_session),
) -> Principal:
    """
    Dependency to get the current principal from the identity provider token

    Args:
        authorization: Authorization header with Bearer token
        db: Database session

    Returns:
        Current authenticated principal

    Raises:
        AuthenticationException: If token is invalid or principal unknown or inactive
    """
    if not authorization:
        raise AuthenticationException(message="Missing authorization header")

    if not authorization.startswith("Bearer "):
        raise AuthenticationException(message="Invalid authorization header format")

    token = authorization.split(" ", 1)[1]
    payload = verify_access_token(token)

    try:
        principal_id = uuid.UUID(str(payload["sub"]))
    except ValueError:
        raise AuthenticationException(message="Invalid token subject")

    principal = await db.get(Principal, principal_id)
    if not principal or not principal.is_active:
        raise AuthenticationException(message="Invalid token or principal inactive")

    return principal


async def get_access_resolver(db: AsyncSession = Depends(get_db_session)) -> AccessResolver:
    """Fresh resolver per request; its role cache dies with the request"""
    return AccessResolver(db)
