"""
Document Permission Manager
Grants and revokes tenant visibility on documents
"""

import uuid
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from docgov.core.exceptions import AppException, NotFoundException, PermissionException, ValidationException
from docgov.core.logging import get_logger
from docgov.core.permissions import AccessResolver
from docgov.db.base import utcnow
from docgov.db.models import Document, Tenant
from docgov.models.permission import DocumentPermission
from docgov.monitoring.metrics import permission_changes_total

logger = get_logger(__name__)


class BulkGrantResult(BaseModel):
    """Outcome of a best-effort bulk grant"""

    granted: List[uuid.UUID] = Field(default_factory=list, description="Documents now shared with the tenant")
    failures: Dict[uuid.UUID, str] = Field(default_factory=dict, description="Error code per document that was not shared")

    @property
    def failed(self) -> int:
        return len(self.failures)


class DocumentPermissionManager:
    """Mutates the (document, tenant) permission set"""

    def __init__(self, db: AsyncSession, resolver: Optional[AccessResolver] = None):
        self.db = db
        self.resolver = resolver or AccessResolver(db)

    async def _get_document(self, document_id: uuid.UUID) -> Document:
        document = await self.db.get(Document, document_id)
        if document is None:
            raise NotFoundException("Document", details={"document_id": str(document_id)})
        return document

    async def _get_tenant(self, tenant_id: uuid.UUID) -> Tenant:
        tenant = await self.db.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFoundException("Tenant", details={"tenant_id": str(tenant_id)})
        return tenant

    async def _require_grantor(self, actor_id: uuid.UUID, document: Document) -> None:
        """Only super admins and the document author can share a document"""
        if document.author_id == actor_id:
            return
        if await self.resolver.is_super_admin(actor_id):
            return
        raise PermissionException(
            message="Only the document author or a super admin can change tenant access",
            details={"document_id": str(document.id)},
        )

    async def _find(self, document_id: uuid.UUID, tenant_id: uuid.UUID) -> Optional[DocumentPermission]:
        result = await self.db.execute(
            select(DocumentPermission).where(
                DocumentPermission.document_id == document_id,
                DocumentPermission.tenant_id == tenant_id,
            )
        )
        return result.scalar_one_or_none()

    async def _upsert(
        self,
        document_id: uuid.UUID,
        tenant_id: uuid.UUID,
        can_view: bool,
        can_download: bool,
        granted_by: uuid.UUID,
    ) -> DocumentPermission:
        existing = await self._find(document_id, tenant_id)
        if existing:
            existing.can_view = can_view
            existing.can_download = can_download
            existing.granted_by = granted_by
            existing.granted_at = utcnow()
            await self.db.commit()
            return existing

        permission = DocumentPermission(
            document_id=document_id,
            tenant_id=tenant_id,
            can_view=can_view,
            can_download=can_download,
            granted_by=granted_by,
        )
        self.db.add(permission)
        try:
            await self.db.commit()
        except IntegrityError:
            # Lost an insert race for the same pair; update the winner's row
            await self.db.rollback()
            existing = await self._find(document_id, tenant_id)
            if existing is None:
                raise
            existing.can_view = can_view
            existing.can_download = can_download
            existing.granted_by = granted_by
            existing.granted_at = utcnow()
            await self.db.commit()
            return existing
        await self.db.refresh(permission)
        return permission

    async def grant(
        self,
        document_id: uuid.UUID,
        tenant_id: uuid.UUID,
        can_view: bool,
        can_download: bool,
        granted_by: uuid.UUID,
    ) -> DocumentPermission:
        """
        Grant (or update) a tenant's access to a document

        Raises:
            ValidationException: download requested without view
            NotFoundException: unknown document or tenant
            PermissionException: actor is neither author nor super admin
        """
        if can_download and not can_view:
            raise ValidationException(
                message="Download access requires view access",
                details={"can_view": can_view, "can_download": can_download},
            )

        document = await self._get_document(document_id)
        await self._get_tenant(tenant_id)
        await self._require_grantor(granted_by, document)

        permission = await self._upsert(document_id, tenant_id, can_view, can_download, granted_by)
        permission_changes_total.labels(action="grant").inc()
        logger.info(
            f"Granted tenant {tenant_id} view={can_view} download={can_download} "
            f"on document {document_id} by {granted_by}"
        )
        return permission

    async def revoke(
        self,
        document_id: uuid.UUID,
        tenant_id: uuid.UUID,
        revoked_by: uuid.UUID,
    ) -> bool:
        """Remove a tenant's grant; revoking a missing grant is a no-op"""
        document = await self._get_document(document_id)
        await self._require_grantor(revoked_by, document)

        permission = await self._find(document_id, tenant_id)
        if permission is None:
            logger.debug(f"No grant for tenant {tenant_id} on document {document_id}; nothing to revoke")
            return False

        await self.db.delete(permission)
        await self.db.commit()
        permission_changes_total.labels(action="revoke").inc()
        logger.info(f"Revoked tenant {tenant_id} access to document {document_id} by {revoked_by}")
        return True

    async def bulk_grant(
        self,
        document_ids: Iterable[uuid.UUID],
        tenant_id: uuid.UUID,
        granted_by: uuid.UUID,
        can_view: bool = True,
        can_download: bool = False,
    ) -> BulkGrantResult:
        """
        Grant one tenant access to many documents

        Best-effort, not atomic: each grant commits on its own and a failure
        never rolls back grants applied before it. The result lists the ids
        that failed together with the reason.
        """
        result = BulkGrantResult()
        for document_id in document_ids:
            try:
                await self.grant(document_id, tenant_id, can_view, can_download, granted_by)
                result.granted.append(document_id)
            except AppException as e:
                result.failures[document_id] = e.code
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(f"Bulk grant of document {document_id} to tenant {tenant_id} failed: {e}")
                result.failures[document_id] = "storage_error"

        if result.failures:
            logger.warning(
                f"Bulk grant to tenant {tenant_id}: {len(result.granted)} granted, {result.failed} failed"
            )
        else:
            logger.info(f"Bulk grant to tenant {tenant_id}: {len(result.granted)} granted")
        return result

    async def list_for_document(self, document_id: uuid.UUID, actor_id: uuid.UUID) -> List[DocumentPermission]:
        """List tenant grants on a document"""
        await self._get_document(document_id)
        await self.resolver.require_manage(actor_id, document_id)

        result = await self.db.execute(
            select(DocumentPermission)
            .where(DocumentPermission.document_id == document_id)
            .order_by(DocumentPermission.granted_at)
        )
        return list(result.scalars().all())
