"""
Tenant API Routes
Tenant management and tenant memberships
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from docgov.api.dependencies import get_access_resolver, get_current_principal, parse_uuid
from docgov.core.exceptions import NotFoundException
from docgov.core.logging import get_logger
from docgov.core.permissions import AccessResolver
from docgov.db.models import Membership, Principal, Tenant
from docgov.db.session import get_db_session
from docgov.services.tenancy import TenancyService

logger = get_logger(__name__)
router = APIRouter()


class TenantCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    contact_email: Optional[str] = Field(None, max_length=255)


class TenantUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    contact_email: Optional[str] = Field(None, max_length=255)
    is_active: Optional[bool] = None


class TenantResponse(BaseModel):
    tenant_id: str
    name: str
    slug: str
    description: Optional[str]
    contact_email: Optional[str]
    is_active: bool
    created_at: str

    @classmethod
    def from_db_model(cls, tenant: Tenant) -> "TenantResponse":
        return cls(
            tenant_id=str(tenant.id),
            name=tenant.name,
            slug=tenant.slug,
            description=tenant.description,
            contact_email=tenant.contact_email,
            is_active=tenant.is_active,
            created_at=tenant.created_at.isoformat() if tenant.created_at else "",
        )


class MemberAddRequest(BaseModel):
    principal_id: str
    role: str = Field("standard", pattern="^(standard|tenant_admin)$")


class MemberUpdateRequest(BaseModel):
    role: Optional[str] = Field(None, pattern="^(standard|tenant_admin)$")
    is_active: Optional[bool] = None


class MemberResponse(BaseModel):
    membership_id: str
    tenant_id: str
    principal_id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: str
    is_active: bool

    @classmethod
    def from_db_model(cls, membership: Membership, principal: Optional[Principal] = None) -> "MemberResponse":
        return cls(
            membership_id=str(membership.id),
            tenant_id=str(membership.tenant_id),
            principal_id=str(membership.principal_id),
            email=principal.email if principal else None,
            full_name=principal.full_name if principal else None,
            role=membership.role,
            is_active=membership.is_active,
        )


@router.get("", response_model=List[TenantResponse])
async def list_tenants(
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """All tenants for super admins, otherwise the caller's own tenants"""
    tenants = await TenancyService(db, resolver).list_tenants(current_principal.id)
    return [TenantResponse.from_db_model(tenant) for tenant in tenants]


@router.post("", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant(
    request: TenantCreateRequest,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Create a tenant (super admin)"""
    tenant = await TenancyService(db, resolver).create_tenant(
        request.name,
        request.slug,
        current_principal.id,
        description=request.description,
        contact_email=request.contact_email,
    )
    return TenantResponse.from_db_model(tenant)


@router.patch("/{tenant_id}", response_model=TenantResponse)
async def update_tenant(
    tenant_id: str,
    request: TenantUpdateRequest,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Update a tenant (super admin); deactivating it suspends member access"""
    tenant = await TenancyService(db, resolver).update_tenant(
        parse_uuid(tenant_id, "tenant_id"),
        request.model_dump(exclude_unset=True),
        current_principal.id,
    )
    return TenantResponse.from_db_model(tenant)


@router.delete("/{tenant_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tenant(
    tenant_id: str,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Delete a tenant with its memberships and document grants (super admin)"""
    await TenancyService(db, resolver).delete_tenant(parse_uuid(tenant_id, "tenant_id"), current_principal.id)


@router.get("/{tenant_id}/members", response_model=List[MemberResponse])
async def list_members(
    tenant_id: str,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """List tenant members (tenant admin)"""
    members = await TenancyService(db, resolver).list_members(
        parse_uuid(tenant_id, "tenant_id"), current_principal.id
    )
    return [MemberResponse.from_db_model(row["membership"], row["principal"]) for row in members]


@router.post("/{tenant_id}/members", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def add_member(
    tenant_id: str,
    request: MemberAddRequest,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Add a principal to the tenant, or reactivate their membership (tenant admin)"""
    membership = await TenancyService(db, resolver).add_member(
        parse_uuid(tenant_id, "tenant_id"),
        parse_uuid(request.principal_id, "principal_id"),
        request.role,
        current_principal.id,
    )
    return MemberResponse.from_db_model(membership)


async def _membership_in_tenant(db: AsyncSession, tenant_id: str, membership_id: str) -> Membership:
    membership = await db.get(Membership, parse_uuid(membership_id, "membership_id"))
    if membership is None or membership.tenant_id != parse_uuid(tenant_id, "tenant_id"):
        raise NotFoundException("Membership")
    return membership


@router.patch("/{tenant_id}/members/{membership_id}", response_model=MemberResponse)
async def update_member(
    tenant_id: str,
    membership_id: str,
    request: MemberUpdateRequest,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Change a member's role or suspend/restore them (tenant admin)"""
    membership = await _membership_in_tenant(db, tenant_id, membership_id)
    membership = await TenancyService(db, resolver).update_member(
        membership.id,
        current_principal.id,
        role=request.role,
        is_active=request.is_active,
    )
    return MemberResponse.from_db_model(membership)


@router.delete("/{tenant_id}/members/{membership_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    tenant_id: str,
    membership_id: str,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Remove a member from the tenant (tenant admin)"""
    membership = await _membership_in_tenant(db, tenant_id, membership_id)
    await TenancyService(db, resolver).remove_member(membership.id, current_principal.id)
