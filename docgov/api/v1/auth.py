"""
Authentication API Routes
The identity provider issues tokens; this service only resolves them
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from docgov.api.dependencies import get_access_resolver, get_current_principal
from docgov.core.logging import get_logger
from docgov.core.permissions import AccessResolver
from docgov.db.models import Principal
from docgov.db.session import get_db_session
from docgov.models.auth import MeResponse, PrincipalResponse, TenantMembershipInfo
from docgov.services.tenancy import TenancyService

logger = get_logger(__name__)
router = APIRouter()


@router.get("/me", response_model=MeResponse)
async def get_current_principal_info(
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Get the current principal with global role and active tenants"""
    tenants = await TenancyService(db, resolver).get_user_tenants(current_principal.id)
    return MeResponse(
        principal=PrincipalResponse.from_db_model(current_principal, await resolver.global_role(current_principal.id)),
        is_super_admin=await resolver.is_super_admin(current_principal.id),
        tenants=[
            TenantMembershipInfo(
                tenant_id=str(tenant["tenant_id"]),
                tenant_name=tenant["tenant_name"],
                tenant_slug=tenant["tenant_slug"],
                role=tenant["role"],
            )
            for tenant in tenants
        ],
    )
