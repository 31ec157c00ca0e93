"""
Principal API Routes
Principal registration, activation and global roles (super admin)
"""

from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from docgov.api.dependencies import get_access_resolver, get_current_principal, parse_uuid
from docgov.core.logging import get_logger
from docgov.core.permissions import AccessResolver
from docgov.db.models import Principal
from docgov.db.session import get_db_session
from docgov.models.auth import (
    GlobalRoleRequest,
    PrincipalCreateRequest,
    PrincipalResponse,
    PrincipalUpdateRequest,
)
from docgov.services.tenancy import TenancyService

logger = get_logger(__name__)
router = APIRouter()


@router.get("", response_model=List[PrincipalResponse])
async def list_principals(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """List all principals (super admin)"""
    principals = await TenancyService(db, resolver).list_principals(current_principal.id, limit=limit, offset=offset)
    return [
        PrincipalResponse.from_db_model(principal, await resolver.global_role(principal.id))
        for principal in principals
    ]


@router.post("", response_model=PrincipalResponse, status_code=status.HTTP_201_CREATED)
async def create_principal(
    request: PrincipalCreateRequest,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """
    Register a principal (super admin)

    Credentials stay with the identity provider; this only records the
    principal, its global role and an optional first tenant.
    """
    principal = await TenancyService(db, resolver).create_principal(
        request.email,
        request.full_name,
        current_principal.id,
        tenant_id=parse_uuid(request.tenant_id, "tenant_id") if request.tenant_id else None,
        role=request.role,
        job_title=request.job_title,
    )
    return PrincipalResponse.from_db_model(principal, request.role)


@router.patch("/{principal_id}", response_model=PrincipalResponse)
async def update_principal(
    principal_id: str,
    request: PrincipalUpdateRequest,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Activate or deactivate a principal (super admin)"""
    principal = await TenancyService(db, resolver).set_active(
        parse_uuid(principal_id, "principal_id"), request.is_active, current_principal.id
    )
    return PrincipalResponse.from_db_model(principal, await resolver.global_role(principal.id))


@router.put("/{principal_id}/global-role", response_model=PrincipalResponse)
async def set_global_role(
    principal_id: str,
    request: GlobalRoleRequest,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Set a principal's global role (super admin)"""
    target_id = parse_uuid(principal_id, "principal_id")
    service = TenancyService(db, resolver)
    assignment = await service.set_global_role(target_id, request.role, current_principal.id)
    principal = await db.get(Principal, target_id)
    return PrincipalResponse.from_db_model(principal, assignment.role)


@router.delete("/{principal_id}/global-role", status_code=status.HTTP_204_NO_CONTENT)
async def clear_global_role(
    principal_id: str,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Remove a principal's global role (super admin)"""
    await TenancyService(db, resolver).clear_global_role(parse_uuid(principal_id, "principal_id"), current_principal.id)
