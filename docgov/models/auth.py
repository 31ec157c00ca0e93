"""
Principal Pydantic Models
Schemas for the authenticated principal and principal management
"""

from typing import List, Optional
from pydantic import BaseModel, Field

from docgov.db.models import Principal as PrincipalSQLModel


class PrincipalResponse(BaseModel):
    """Principal response schema"""
    principal_id: str
    email: str
    full_name: Optional[str]
    job_title: Optional[str]
    is_active: bool
    global_role: Optional[str] = None
    created_at: str

    @classmethod
    def from_db_model(cls, principal: PrincipalSQLModel, global_role: Optional[str] = None) -> "PrincipalResponse":
        return cls(
            principal_id=str(principal.id),
            email=principal.email,
            full_name=principal.full_name,
            job_title=principal.job_title,
            is_active=principal.is_active,
            global_role=global_role,
            created_at=principal.created_at.isoformat() if principal.created_at else "",
        )


class TenantMembershipInfo(BaseModel):
    """A tenant the principal actively belongs to"""
    tenant_id: str
    tenant_name: str
    tenant_slug: str
    role: str


class MeResponse(BaseModel):
    """Current principal with roles"""
    principal: PrincipalResponse
    is_super_admin: bool
    tenants: List[TenantMembershipInfo]


class PrincipalCreateRequest(BaseModel):
    """Register a principal known to the identity provider"""
    email: str = Field(..., max_length=255)
    full_name: Optional[str] = Field(None, max_length=255)
    job_title: Optional[str] = Field(None, max_length=255)
    tenant_id: Optional[str] = Field(None, description="Tenant to join on creation")
    role: str = Field("standard", pattern="^(standard|tenant_admin|super_admin)$")


class PrincipalUpdateRequest(BaseModel):
    """Activate or deactivate a principal"""
    is_active: bool


class GlobalRoleRequest(BaseModel):
    """Set a principal's global role"""
    role: str = Field(..., pattern="^(standard|tenant_admin|super_admin)$")
