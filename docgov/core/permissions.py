"""
Authorization Resolver
Answers who may see, download and manage which document.

Every surface (listing, detail, view/download URLs, magic link issue) goes
through this class; no caller re-implements the predicate.
"""

import uuid
from typing import Any, Dict, Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docgov.core.exceptions import PermissionException
from docgov.core.logging import get_logger
from docgov.db.models import Document, GlobalRole, GlobalRoleName, Membership, MembershipRole, Tenant
from docgov.models.permission import DocumentPermission

logger = get_logger(__name__)


class AccessResolver:
    """
    Per-request authorization resolver.

    Holds the database session and a request-scoped cache of role lookups.
    Build one per request (see ``docgov.api.dependencies.get_access_resolver``);
    nothing is shared between requests.
    """

    def __init__(self, db: AsyncSession, cache: Optional[Dict[Any, Any]] = None):
        self.db = db
        self._cache: Dict[Any, Any] = cache if cache is not None else {}

    def invalidate(self) -> None:
        """Drop cached role lookups after a membership or role change"""
        self._cache.clear()

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    async def global_role(self, principal_id: uuid.UUID) -> Optional[str]:
        key = ("global_role", principal_id)
        if key not in self._cache:
            result = await self.db.execute(
                select(GlobalRole.role).where(GlobalRole.principal_id == principal_id)
            )
            self._cache[key] = result.scalar_one_or_none()
        return self._cache[key]

    async def is_super_admin(self, principal_id: uuid.UUID) -> bool:
        """True iff the principal holds the super_admin global role"""
        return await self.global_role(principal_id) == GlobalRoleName.SUPER_ADMIN.value

    async def active_memberships(self, principal_id: uuid.UUID) -> Dict[uuid.UUID, str]:
        """Map of tenant id -> role for active memberships in active tenants"""
        key = ("memberships", principal_id)
        if key not in self._cache:
            result = await self.db.execute(
                select(Membership.tenant_id, Membership.role)
                .join(Tenant, Tenant.id == Membership.tenant_id)
                .where(
                    Membership.principal_id == principal_id,
                    Membership.is_active.is_(True),
                    Tenant.is_active.is_(True),
                )
            )
            self._cache[key] = {row[0]: row[1] for row in result.all()}
        return self._cache[key]

    async def active_tenant_ids(self, principal_id: uuid.UUID) -> Set[uuid.UUID]:
        return set(await self.active_memberships(principal_id))

    async def is_tenant_admin(self, principal_id: uuid.UUID, tenant_id: uuid.UUID) -> bool:
        """Active tenant_admin membership for the tenant, or super admin"""
        if await self.is_super_admin(principal_id):
            return True
        memberships = await self.active_memberships(principal_id)
        return memberships.get(tenant_id) == MembershipRole.TENANT_ADMIN.value

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def _document_author(self, document_id: uuid.UUID) -> Optional[uuid.UUID]:
        key = ("author", document_id)
        if key not in self._cache:
            result = await self.db.execute(
                select(Document.author_id).where(Document.id == document_id)
            )
            self._cache[key] = result.scalar_one_or_none()
        return self._cache[key]

    async def _granted_tenant_ids(self, document_id: uuid.UUID, require_download: bool = False) -> Set[uuid.UUID]:
        query = select(DocumentPermission.tenant_id).where(
            DocumentPermission.document_id == document_id,
            DocumentPermission.can_view.is_(True),
        )
        if require_download:
            query = query.where(DocumentPermission.can_download.is_(True))
        result = await self.db.execute(query)
        return {row[0] for row in result.all()}

    async def can_access_document(self, principal_id: uuid.UUID, document_id: uuid.UUID) -> bool:
        """
        Check if principal may view a document

        True when the principal is a super admin, authored the document, or
        actively belongs to a tenant holding a ``can_view`` grant on it.
        """
        if await self.is_super_admin(principal_id):
            logger.debug(f"Super admin {principal_id} granted view on {document_id}")
            return True

        if await self._document_author(document_id) == principal_id:
            logger.debug(f"Author {principal_id} granted view on {document_id}")
            return True

        tenants = await self.active_tenant_ids(principal_id)
        if not tenants:
            return False

        allowed = bool(tenants & await self._granted_tenant_ids(document_id))
        logger.debug(f"Principal {principal_id} {'granted' if allowed else 'denied'} view on {document_id}")
        return allowed

    async def can_download_document(self, principal_id: uuid.UUID, document_id: uuid.UUID) -> bool:
        """Download requires a grant with both can_view and can_download"""
        if await self.is_super_admin(principal_id):
            return True

        if await self._document_author(document_id) == principal_id:
            return True

        tenants = await self.active_tenant_ids(principal_id)
        if not tenants:
            return False

        return bool(tenants & await self._granted_tenant_ids(document_id, require_download=True))

    async def can_manage_document(self, principal_id: uuid.UUID, document_id: uuid.UUID) -> bool:
        """Super admin, author, or tenant admin of a tenant the document is shared with"""
        if await self._document_author(document_id) == principal_id:
            return True
        return await self.is_admin_for_document(principal_id, document_id)

    async def is_admin_for_document(self, principal_id: uuid.UUID, document_id: uuid.UUID) -> bool:
        """Super admin, or tenant admin of a tenant holding a view grant on the document"""
        if await self.is_super_admin(principal_id):
            return True

        memberships = await self.active_memberships(principal_id)
        admin_tenants = {
            tenant_id
            for tenant_id, role in memberships.items()
            if role == MembershipRole.TENANT_ADMIN.value
        }
        if not admin_tenants:
            return False

        return bool(admin_tenants & await self._granted_tenant_ids(document_id))

    async def is_document_author(self, principal_id: uuid.UUID, document_id: uuid.UUID) -> bool:
        return await self._document_author(document_id) == principal_id

    async def list_accessible_documents(self, principal_id: uuid.UUID) -> Set[uuid.UUID]:
        """
        Get the ids of every document the principal may view

        Returns documents where:
        - Principal is the author
        - An active membership tenant holds a can_view grant
        Super admins receive every document id.
        """
        if await self.is_super_admin(principal_id):
            result = await self.db.execute(select(Document.id))
            return {row[0] for row in result.all()}

        result = await self.db.execute(
            select(Document.id).where(Document.author_id == principal_id)
        )
        authored_ids = {row[0] for row in result.all()}

        tenants = await self.active_tenant_ids(principal_id)
        granted_ids: Set[uuid.UUID] = set()
        if tenants:
            result = await self.db.execute(
                select(DocumentPermission.document_id).where(
                    DocumentPermission.tenant_id.in_(tenants),
                    DocumentPermission.can_view.is_(True),
                )
            )
            granted_ids = {row[0] for row in result.all()}

        return authored_ids | granted_ids

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    async def require_super_admin(self, principal_id: uuid.UUID) -> None:
        if not await self.is_super_admin(principal_id):
            raise PermissionException(message="Super admin role required")

    async def require_tenant_admin(self, principal_id: uuid.UUID, tenant_id: uuid.UUID) -> None:
        if not await self.is_tenant_admin(principal_id, tenant_id):
            raise PermissionException(
                message="Tenant admin role required",
                details={"tenant_id": str(tenant_id)},
            )

    async def require_document_access(self, principal_id: uuid.UUID, document_id: uuid.UUID) -> None:
        if not await self.can_access_document(principal_id, document_id):
            raise PermissionException(
                message="Access denied: missing view permission",
                details={"document_id": str(document_id), "required_permission": "can_view"},
            )

    async def require_download(self, principal_id: uuid.UUID, document_id: uuid.UUID) -> None:
        if not await self.can_download_document(principal_id, document_id):
            raise PermissionException(
                message="Access denied: missing download permission",
                details={"document_id": str(document_id), "required_permission": "can_download"},
            )

    async def require_manage(self, principal_id: uuid.UUID, document_id: uuid.UUID) -> None:
        if not await self.can_manage_document(principal_id, document_id):
            raise PermissionException(
                message="Only the author or an administrator can manage this document",
                details={"document_id": str(document_id)},
            )
