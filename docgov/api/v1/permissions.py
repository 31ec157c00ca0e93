"""
Permission Management API Routes
Grant, revoke, and list tenant access to documents
"""

from typing import Dict, List

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from docgov.api.dependencies import get_access_resolver, get_current_principal, parse_uuid
from docgov.core.logging import get_logger
from docgov.core.permissions import AccessResolver
from docgov.db.models import Principal
from docgov.db.session import get_db_session
from docgov.models.permission import DocumentPermission
from docgov.services.document_permissions import DocumentPermissionManager

logger = get_logger(__name__)
router = APIRouter()


# Pydantic models for permission requests/responses
class GrantPermissionRequest(BaseModel):
    """Request model for granting a tenant access"""
    can_view: bool = Field(True, description="Members may view the document")
    can_download: bool = Field(False, description="Members may download the document (requires can_view)")


class BulkGrantRequest(BaseModel):
    """Request model for sharing many documents with one tenant"""
    document_ids: List[str] = Field(..., min_length=1, max_length=500)
    tenant_id: str
    can_view: bool = True
    can_download: bool = False


class PermissionResponse(BaseModel):
    """Response model for a tenant grant"""
    permission_id: str
    document_id: str
    tenant_id: str
    can_view: bool
    can_download: bool
    granted_by: str
    granted_at: str

    @classmethod
    def from_db_model(cls, perm: DocumentPermission) -> "PermissionResponse":
        return cls(
            permission_id=str(perm.id),
            document_id=str(perm.document_id),
            tenant_id=str(perm.tenant_id),
            can_view=perm.can_view,
            can_download=perm.can_download,
            granted_by=str(perm.granted_by) if perm.granted_by else "",
            granted_at=perm.granted_at.isoformat(),
        )


class DocumentPermissionsListResponse(BaseModel):
    """Response model for listing document permissions"""
    document_id: str
    permissions: List[PermissionResponse]


class BulkGrantResponse(BaseModel):
    """Per-document outcome of a bulk grant; applied grants are never rolled back"""
    tenant_id: str
    granted: List[str]
    failed: Dict[str, str]


@router.post("/bulk-grant", response_model=BulkGrantResponse)
async def bulk_grant(
    request: BulkGrantRequest,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """
    Grant one tenant access to many documents

    Best-effort: documents that fail are reported in `failed` with an error
    code while the rest are granted.
    """
    tenant_uuid = parse_uuid(request.tenant_id, "tenant_id")
    document_uuids = [parse_uuid(document_id, "document_id") for document_id in request.document_ids]

    result = await DocumentPermissionManager(db, resolver).bulk_grant(
        document_uuids,
        tenant_uuid,
        current_principal.id,
        can_view=request.can_view,
        can_download=request.can_download,
    )
    return BulkGrantResponse(
        tenant_id=str(tenant_uuid),
        granted=[str(document_id) for document_id in result.granted],
        failed={str(document_id): code for document_id, code in result.failures.items()},
    )


@router.get("/{document_id}", response_model=DocumentPermissionsListResponse)
async def list_document_permissions(
    document_id: str,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """
    List tenant grants on a document

    Only the author or an administrator of the document can list grants.
    """
    doc_uuid = parse_uuid(document_id, "document_id")
    permissions = await DocumentPermissionManager(db, resolver).list_for_document(doc_uuid, current_principal.id)

    return DocumentPermissionsListResponse(
        document_id=str(doc_uuid),
        permissions=[PermissionResponse.from_db_model(perm) for perm in permissions],
    )


@router.put("/{document_id}/tenants/{tenant_id}", response_model=PermissionResponse)
async def grant_permission(
    document_id: str,
    tenant_id: str,
    request: GrantPermissionRequest,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """
    Grant or update a tenant's access to a document

    Only the document author or a super admin can share a document.
    `can_download` requires `can_view`.
    """
    permission = await DocumentPermissionManager(db, resolver).grant(
        parse_uuid(document_id, "document_id"),
        parse_uuid(tenant_id, "tenant_id"),
        request.can_view,
        request.can_download,
        current_principal.id,
    )
    return PermissionResponse.from_db_model(permission)


@router.delete("/{document_id}/tenants/{tenant_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_permission(
    document_id: str,
    tenant_id: str,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Remove a tenant's access; removing a missing grant succeeds"""
    await DocumentPermissionManager(db, resolver).revoke(
        parse_uuid(document_id, "document_id"),
        parse_uuid(tenant_id, "tenant_id"),
        current_principal.id,
    )
