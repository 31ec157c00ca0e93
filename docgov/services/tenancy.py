"""
Tenancy Service
Tenants, memberships, principals and global roles
"""

import re
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from docgov.core.exceptions import ConflictException, NotFoundException, ValidationException
from docgov.core.logging import get_logger
from docgov.core.permissions import AccessResolver
from docgov.db.base import utcnow
from docgov.db.models import GlobalRole, GlobalRoleName, Membership, MembershipRole, Principal, Tenant
from docgov.models.permission import DocumentPermission

logger = get_logger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

TENANT_FIELDS = {"name", "slug", "description", "contact_email", "is_active"}


def _parse_membership_role(role: str) -> MembershipRole:
    try:
        return MembershipRole(role)
    except ValueError:
        raise ValidationException(
            message="Invalid membership role",
            details={"role": role, "valid_roles": [r.value for r in MembershipRole]},
        )


def _parse_global_role(role: str) -> GlobalRoleName:
    try:
        return GlobalRoleName(role)
    except ValueError:
        raise ValidationException(
            message="Invalid global role",
            details={"role": role, "valid_roles": [r.value for r in GlobalRoleName]},
        )


def _check_slug(slug: str) -> str:
    slug = (slug or "").strip().lower()
    if not SLUG_PATTERN.match(slug):
        raise ValidationException(
            message="Slug must be lowercase letters, digits and single hyphens",
            details={"slug": slug},
        )
    return slug


def _check_email(email: str) -> str:
    email = (email or "").strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationException(message="Invalid email address", details={"email": email})
    return email


class TenancyService:
    """Identity and role store operations"""

    def __init__(self, db: AsyncSession, resolver: Optional[AccessResolver] = None):
        self.db = db
        self.resolver = resolver or AccessResolver(db)

    async def _get_tenant(self, tenant_id: uuid.UUID) -> Tenant:
        tenant = await self.db.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFoundException("Tenant", details={"tenant_id": str(tenant_id)})
        return tenant

    async def _get_principal(self, principal_id: uuid.UUID) -> Principal:
        principal = await self.db.get(Principal, principal_id)
        if principal is None:
            raise NotFoundException("Principal", details={"principal_id": str(principal_id)})
        return principal

    async def _get_membership(self, membership_id: uuid.UUID) -> Membership:
        membership = await self.db.get(Membership, membership_id)
        if membership is None:
            raise NotFoundException("Membership", details={"membership_id": str(membership_id)})
        return membership

    async def _commit_unique(self, message: str, details: Dict[str, Any]) -> None:
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictException(message=message, details=details)

    # ------------------------------------------------------------------
    # Tenants
    # ------------------------------------------------------------------

    async def create_tenant(
        self,
        name: str,
        slug: str,
        by_principal_id: uuid.UUID,
        description: Optional[str] = None,
        contact_email: Optional[str] = None,
    ) -> Tenant:
        await self.resolver.require_super_admin(by_principal_id)
        name = (name or "").strip()
        if not name:
            raise ValidationException(message="Tenant name is required")
        slug = _check_slug(slug)

        tenant = Tenant(
            name=name,
            slug=slug,
            description=description,
            contact_email=_check_email(contact_email) if contact_email else None,
            is_active=True,
        )
        self.db.add(tenant)
        await self._commit_unique("Tenant slug already exists", {"slug": slug})
        await self.db.refresh(tenant)

        logger.info(f"Tenant created: {tenant.id} ({slug}) by {by_principal_id}")
        return tenant

    async def update_tenant(self, tenant_id: uuid.UUID, changes: Dict[str, Any], by_principal_id: uuid.UUID) -> Tenant:
        await self.resolver.require_super_admin(by_principal_id)
        unknown = set(changes) - TENANT_FIELDS
        if unknown:
            raise ValidationException(message="Unsupported tenant fields", details={"fields": sorted(unknown)})

        tenant = await self._get_tenant(tenant_id)
        if "slug" in changes:
            changes["slug"] = _check_slug(changes["slug"])
        if "name" in changes:
            changes["name"] = (changes["name"] or "").strip()
            if not changes["name"]:
                raise ValidationException(message="Tenant name is required")
        if changes.get("contact_email"):
            changes["contact_email"] = _check_email(changes["contact_email"])

        for field_name, value in changes.items():
            setattr(tenant, field_name, value)
        tenant.updated_at = utcnow()
        await self._commit_unique("Tenant slug already exists", {"slug": tenant.slug})
        self.resolver.invalidate()

        logger.info(f"Tenant {tenant_id} updated ({', '.join(sorted(changes))}) by {by_principal_id}")
        return tenant

    async def delete_tenant(self, tenant_id: uuid.UUID, by_principal_id: uuid.UUID) -> None:
        """Hard delete a tenant together with its memberships and grants"""
        await self.resolver.require_super_admin(by_principal_id)
        tenant = await self._get_tenant(tenant_id)

        await self.db.execute(delete(DocumentPermission).where(DocumentPermission.tenant_id == tenant_id))
        await self.db.execute(delete(Membership).where(Membership.tenant_id == tenant_id))
        await self.db.delete(tenant)
        await self.db.commit()
        self.resolver.invalidate()

        logger.info(f"Tenant {tenant_id} deleted by {by_principal_id}")

    async def list_tenants(self, by_principal_id: uuid.UUID) -> List[Tenant]:
        """Every tenant for super admins, otherwise the actor's active tenants"""
        query = select(Tenant).order_by(Tenant.name)
        if not await self.resolver.is_super_admin(by_principal_id):
            tenant_ids = await self.resolver.active_tenant_ids(by_principal_id)
            if not tenant_ids:
                return []
            query = query.where(Tenant.id.in_(tenant_ids))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_user_tenants(self, principal_id: uuid.UUID) -> List[Dict[str, Any]]:
        """Active tenants of a principal with the membership role in each"""
        result = await self.db.execute(
            select(Tenant, Membership.role)
            .join(Membership, Membership.tenant_id == Tenant.id)
            .where(
                Membership.principal_id == principal_id,
                Membership.is_active.is_(True),
                Tenant.is_active.is_(True),
            )
            .order_by(Tenant.name)
        )
        return [
            {"tenant_id": tenant.id, "tenant_name": tenant.name, "tenant_slug": tenant.slug, "role": role}
            for tenant, role in result.all()
        ]

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------

    async def add_member(
        self,
        tenant_id: uuid.UUID,
        principal_id: uuid.UUID,
        role: str,
        by_principal_id: uuid.UUID,
    ) -> Membership:
        """
        Add a principal to a tenant

        A principal holds at most one membership per tenant; re-adding an
        inactive member reactivates the existing row with the new role.
        """
        membership_role = _parse_membership_role(role)
        await self._get_tenant(tenant_id)
        await self._get_principal(principal_id)
        await self.resolver.require_tenant_admin(by_principal_id, tenant_id)

        result = await self.db.execute(
            select(Membership).where(
                Membership.principal_id == principal_id,
                Membership.tenant_id == tenant_id,
            )
        )
        membership = result.scalar_one_or_none()
        if membership is not None:
            if membership.is_active:
                raise ConflictException(
                    message="Principal is already a member of this tenant",
                    details={"membership_id": str(membership.id)},
                )
            membership.is_active = True
            membership.role = membership_role.value
            membership.updated_at = utcnow()
            await self.db.commit()
            logger.info(f"Membership {membership.id} reactivated as {membership_role.value} by {by_principal_id}")
        else:
            membership = Membership(
                principal_id=principal_id,
                tenant_id=tenant_id,
                role=membership_role.value,
                is_active=True,
            )
            self.db.add(membership)
            await self._commit_unique(
                "Principal is already a member of this tenant",
                {"principal_id": str(principal_id), "tenant_id": str(tenant_id)},
            )
            await self.db.refresh(membership)
            logger.info(
                f"Principal {principal_id} added to tenant {tenant_id} as {membership_role.value} by {by_principal_id}"
            )

        self.resolver.invalidate()
        return membership

    async def update_member(
        self,
        membership_id: uuid.UUID,
        by_principal_id: uuid.UUID,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Membership:
        membership = await self._get_membership(membership_id)
        await self.resolver.require_tenant_admin(by_principal_id, membership.tenant_id)

        if role is not None:
            membership.role = _parse_membership_role(role).value
        if is_active is not None:
            membership.is_active = is_active
        membership.updated_at = utcnow()
        await self.db.commit()
        self.resolver.invalidate()

        logger.info(
            f"Membership {membership_id} updated (role={membership.role}, active={membership.is_active}) "
            f"by {by_principal_id}"
        )
        return membership

    async def remove_member(self, membership_id: uuid.UUID, by_principal_id: uuid.UUID) -> None:
        membership = await self._get_membership(membership_id)
        await self.resolver.require_tenant_admin(by_principal_id, membership.tenant_id)

        await self.db.delete(membership)
        await self.db.commit()
        self.resolver.invalidate()
        logger.info(f"Membership {membership_id} removed by {by_principal_id}")

    async def list_members(self, tenant_id: uuid.UUID, by_principal_id: uuid.UUID) -> List[Dict[str, Any]]:
        await self._get_tenant(tenant_id)
        await self.resolver.require_tenant_admin(by_principal_id, tenant_id)

        result = await self.db.execute(
            select(Membership, Principal)
            .join(Principal, Principal.id == Membership.principal_id)
            .where(Membership.tenant_id == tenant_id)
            .order_by(Principal.email)
        )
        return [{"membership": membership, "principal": principal} for membership, principal in result.all()]

    # ------------------------------------------------------------------
    # Principals and global roles
    # ------------------------------------------------------------------

    async def create_principal(
        self,
        email: str,
        full_name: Optional[str],
        by_principal_id: Optional[uuid.UUID],
        tenant_id: Optional[uuid.UUID] = None,
        role: str = GlobalRoleName.STANDARD.value,
        job_title: Optional[str] = None,
    ) -> Principal:
        """
        Register a principal known to the identity provider

        ``by_principal_id`` of None is the bootstrap path used by the seed
        script and skips the super admin check. When ``tenant_id`` is given
        the principal also joins that tenant; a ``tenant_admin`` global role
        makes them its tenant admin.
        """
        if by_principal_id is not None:
            await self.resolver.require_super_admin(by_principal_id)

        global_role = _parse_global_role(role)
        email = _check_email(email)
        if tenant_id is not None:
            await self._get_tenant(tenant_id)

        principal = Principal(email=email, full_name=full_name, job_title=job_title, is_active=True)
        self.db.add(principal)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictException(message="A principal with this email already exists", details={"email": email})

        self.db.add(GlobalRole(principal_id=principal.id, role=global_role.value))
        if tenant_id is not None:
            membership_role = (
                MembershipRole.TENANT_ADMIN
                if global_role == GlobalRoleName.TENANT_ADMIN
                else MembershipRole.STANDARD
            )
            self.db.add(
                Membership(
                    principal_id=principal.id,
                    tenant_id=tenant_id,
                    role=membership_role.value,
                    is_active=True,
                )
            )
        await self.db.commit()
        await self.db.refresh(principal)

        logger.info(f"Principal created: {principal.id} ({email}) role={global_role.value} by {by_principal_id}")
        return principal

    async def set_active(self, principal_id: uuid.UUID, active: bool, by_principal_id: uuid.UUID) -> Principal:
        await self.resolver.require_super_admin(by_principal_id)
        principal = await self._get_principal(principal_id)
        if not active and principal_id == by_principal_id:
            raise ConflictException(message="You cannot deactivate your own account")

        principal.is_active = active
        principal.updated_at = utcnow()
        await self.db.commit()

        logger.info(f"Principal {principal_id} {'activated' if active else 'deactivated'} by {by_principal_id}")
        return principal

    async def list_principals(self, by_principal_id: uuid.UUID, limit: int = 100, offset: int = 0) -> List[Principal]:
        await self.resolver.require_super_admin(by_principal_id)
        result = await self.db.execute(
            select(Principal).order_by(Principal.email).offset(offset).limit(limit)
        )
        return list(result.scalars().all())

    async def _super_admin_count(self) -> int:
        result = await self.db.execute(
            select(func.count(GlobalRole.id)).where(GlobalRole.role == GlobalRoleName.SUPER_ADMIN.value)
        )
        return result.scalar() or 0

    async def has_super_admin(self) -> bool:
        return await self._super_admin_count() > 0

    async def _guard_last_super_admin(self, principal_id: uuid.UUID, by_principal_id: Optional[uuid.UUID]) -> None:
        if principal_id != by_principal_id:
            return
        if await self.resolver.is_super_admin(principal_id) and await self._super_admin_count() <= 1:
            raise ConflictException(message="The last super admin cannot demote themself")

    async def set_global_role(
        self,
        principal_id: uuid.UUID,
        role: str,
        by_principal_id: Optional[uuid.UUID],
    ) -> GlobalRole:
        """Set the principal's single global role (``None`` actor = bootstrap)"""
        global_role = _parse_global_role(role)
        if by_principal_id is not None:
            await self.resolver.require_super_admin(by_principal_id)
        await self._get_principal(principal_id)
        if global_role != GlobalRoleName.SUPER_ADMIN:
            await self._guard_last_super_admin(principal_id, by_principal_id)

        result = await self.db.execute(select(GlobalRole).where(GlobalRole.principal_id == principal_id))
        assignment = result.scalar_one_or_none()
        if assignment is None:
            assignment = GlobalRole(principal_id=principal_id, role=global_role.value)
            self.db.add(assignment)
        else:
            assignment.role = global_role.value
            assignment.updated_at = utcnow()
        await self._commit_unique("Principal already has a global role", {"principal_id": str(principal_id)})
        self.resolver.invalidate()

        logger.info(f"Global role of {principal_id} set to {global_role.value} by {by_principal_id}")
        return assignment

    async def clear_global_role(self, principal_id: uuid.UUID, by_principal_id: uuid.UUID) -> bool:
        await self.resolver.require_super_admin(by_principal_id)
        await self._get_principal(principal_id)
        await self._guard_last_super_admin(principal_id, by_principal_id)

        result = await self.db.execute(select(GlobalRole).where(GlobalRole.principal_id == principal_id))
        assignment = result.scalar_one_or_none()
        if assignment is None:
            return False

        await self.db.delete(assignment)
        await self.db.commit()
        self.resolver.invalidate()
        logger.info(f"Global role of {principal_id} cleared by {by_principal_id}")
        return True
