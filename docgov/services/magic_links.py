"""
Magic Link Service
Issuance, redemption and revocation of bearer links to a single document.

Link lifecycle::

    CREATED --redeem--> REDEEMED (+1 view) --redeem--> ... until the view
    limit is reached, the link expires, or it is revoked.
    REVOKED and EXPIRED are terminal. Expiry is evaluated lazily at
    redemption; expired rows are kept for audit.
"""

import enum
import uuid
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from pydantic import BaseModel, Field
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from docgov.core.config import settings
from docgov.core.exceptions import (
    ExpiredOrExhaustedException,
    NotFoundException,
    PermissionException,
    ValidationException,
)
from docgov.core.logging import get_logger, redact_token
from docgov.core.permissions import AccessResolver
from docgov.core.security import generate_magic_token, is_well_formed_token
from docgov.db.base import utcnow
from docgov.db.models import Document
from docgov.models.magic_link import MagicLink
from docgov.monitoring.metrics import (
    magic_link_redemptions_total,
    magic_links_issued_total,
    magic_links_revoked_total,
)
from docgov.services.system_settings import (
    MAGIC_LINK_DEFAULT_EXPIRY_DAYS,
    MAGIC_LINK_ENABLED,
    MAGIC_LINK_MAX_VIEWS_DEFAULT,
    SystemSettingsService,
)
from docgov.storage.client import get_presigned_url

logger = get_logger(__name__)

_TOKEN_ATTEMPTS = 3


class LinkState(str, enum.Enum):
    ACTIVE = "active"
    REVOKED = "revoked"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


def link_state(link: MagicLink, now: Optional[datetime] = None) -> LinkState:
    """Derived state of a link; revocation wins over expiry and exhaustion"""
    now = now or utcnow()
    if not link.is_active:
        return LinkState.REVOKED
    if link.expires_at <= now:
        return LinkState.EXPIRED
    if link.max_views is not None and link.view_count >= link.max_views:
        return LinkState.EXHAUSTED
    return LinkState.ACTIVE


class RedemptionResult(BaseModel):
    """Successful redemption"""

    link_id: uuid.UUID
    document_id: uuid.UUID
    document_title: str
    access_url: Optional[str] = Field(description="Presigned URL, null when the document has no file")
    url_expires_in: int = Field(ge=1, description="Seconds the access URL stays valid")
    view_count: int = Field(ge=1, description="Views used, including this one")
    max_views: Optional[int] = Field(default=None, description="View limit, null for unlimited")


class MagicLinkService:
    """Issue, redeem, revoke and list magic links"""

    def __init__(
        self,
        db: AsyncSession,
        resolver: Optional[AccessResolver] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.resolver = resolver or AccessResolver(db)
        self.clock = clock

    async def _get_document(self, document_id: uuid.UUID) -> Document:
        document = await self.db.get(Document, document_id)
        if document is None:
            raise NotFoundException("Document", details={"document_id": str(document_id)})
        return document

    async def issue(
        self,
        document_id: uuid.UUID,
        issuer_id: uuid.UUID,
        ttl_days: Optional[int] = None,
        max_views: Optional[int] = None,
    ) -> MagicLink:
        """
        Create a magic link for a document

        The issuer must be able to view the document; a link never grants
        more than its issuer has.

        Args:
            document_id: Document to share
            issuer_id: Principal creating the link
            ttl_days: Days until expiry (system default if omitted)
            max_views: View limit (system default if omitted; null = unlimited)

        Raises:
            ValidationException: ttl_days or max_views out of range
            NotFoundException: unknown document
            PermissionException: issuer cannot view the document, or links are disabled
        """
        if ttl_days is not None and (isinstance(ttl_days, bool) or not 1 <= ttl_days <= settings.MAGIC_LINK_MAX_TTL_DAYS):
            raise ValidationException(
                message=f"ttl_days must be between 1 and {settings.MAGIC_LINK_MAX_TTL_DAYS}",
                details={"ttl_days": ttl_days},
            )
        if max_views is not None and (isinstance(max_views, bool) or max_views < 1):
            raise ValidationException(
                message="max_views must be a positive integer",
                details={"max_views": max_views},
            )

        system_settings = SystemSettingsService(self.db, self.resolver)
        if not await system_settings.get(MAGIC_LINK_ENABLED):
            raise PermissionException(message="Magic links are disabled")

        await self._get_document(document_id)
        await self.resolver.require_document_access(issuer_id, document_id)

        if ttl_days is None:
            ttl_days = await system_settings.get(MAGIC_LINK_DEFAULT_EXPIRY_DAYS)
        if max_views is None:
            max_views = await system_settings.get(MAGIC_LINK_MAX_VIEWS_DEFAULT)

        now = self.clock()
        for attempt in range(1, _TOKEN_ATTEMPTS + 1):
            link = MagicLink(
                document_id=document_id,
                token=generate_magic_token(),
                created_by=issuer_id,
                expires_at=now + timedelta(days=ttl_days),
                max_views=max_views,
                view_count=0,
                is_active=True,
            )
            self.db.add(link)
            try:
                await self.db.commit()
                break
            except IntegrityError:
                await self.db.rollback()
                if attempt == _TOKEN_ATTEMPTS:
                    raise
                logger.warning("Magic token collision, regenerating")

        await self.db.refresh(link)
        magic_links_issued_total.inc()
        logger.info(
            f"Magic link {link.id} issued for document {document_id} by {issuer_id} "
            f"(expires {link.expires_at.isoformat()}, max_views={max_views})"
        )
        return link

    async def _deny(self, token: str, now: datetime) -> ExpiredOrExhaustedException:
        """Work out why a redemption failed, for the audit log only"""
        if not is_well_formed_token(token):
            reason = "malformed"
            link = None
        else:
            result = await self.db.execute(select(MagicLink).where(MagicLink.token == token))
            link = result.scalar_one_or_none()
            if link is None:
                reason = "not_found"
            else:
                state = link_state(link, now)
                # ACTIVE here means another request took the last view first
                reason = "exhausted" if state == LinkState.ACTIVE else state.value

        magic_link_redemptions_total.labels(outcome="denied", reason=reason).inc()
        logger.warning(
            f"Magic link redemption denied: reason={reason} "
            f"link={link.id if link else None} token={redact_token(token)}"
        )
        return ExpiredOrExhaustedException(reason=reason)

    async def redeem(self, token: str) -> RedemptionResult:
        """
        Redeem a magic link token

        Admission is a single conditional increment evaluated by the
        database, so concurrent redemptions can never exceed ``max_views``.
        Every refusal raises the same ``ExpiredOrExhaustedException``; the
        specific cause is only logged.

        Returns:
            RedemptionResult with a freshly signed, short-lived access URL
        """
        now = self.clock()
        if not is_well_formed_token(token):
            raise await self._deny(token, now)

        result = await self.db.execute(
            update(MagicLink)
            .where(
                MagicLink.token == token,
                MagicLink.is_active.is_(True),
                MagicLink.expires_at > now,
                or_(MagicLink.max_views.is_(None), MagicLink.view_count < MagicLink.max_views),
            )
            .values(view_count=MagicLink.view_count + 1, updated_at=now)
            .returning(MagicLink.id, MagicLink.document_id, MagicLink.view_count, MagicLink.max_views)
            .execution_options(synchronize_session=False)
        )
        row = result.first()
        if row is None:
            await self.db.rollback()
            raise await self._deny(token, now)

        link_id, document_id, view_count, max_views = row
        document = await self.db.get(Document, document_id)
        if document is None:
            await self.db.rollback()
            raise await self._deny(token, now)

        access_url = None
        expires_in = settings.MAGIC_LINK_URL_EXPIRY_SECONDS
        if document.storage_path:
            try:
                access_url = await get_presigned_url(document.storage_path, expires=expires_in)
            except Exception:
                # The view is only consumed once a URL could be produced
                await self.db.rollback()
                raise

        await self.db.commit()
        magic_link_redemptions_total.labels(outcome="granted", reason="ok").inc()
        logger.info(
            f"Magic link {link_id} redeemed for document {document_id} "
            f"(view {view_count}/{max_views if max_views is not None else 'unlimited'})"
        )
        return RedemptionResult(
            link_id=link_id,
            document_id=document_id,
            document_title=document.title,
            access_url=access_url,
            url_expires_in=expires_in,
            view_count=view_count,
            max_views=max_views,
        )

    async def revoke(self, link_id: uuid.UUID, by_principal_id: uuid.UUID) -> MagicLink:
        """
        Permanently deactivate a link

        Allowed for the issuer, super admins, and tenant admins of a tenant
        the document is shared with. Revoking twice is a no-op.
        """
        link = await self.db.get(MagicLink, link_id)
        if link is None:
            raise NotFoundException("Magic link", details={"link_id": str(link_id)})

        if link.created_by != by_principal_id and not await self.resolver.is_admin_for_document(
            by_principal_id, link.document_id
        ):
            raise PermissionException(
                message="Only the issuer or an administrator can revoke this link",
                details={"link_id": str(link_id)},
            )

        if not link.is_active:
            return link

        link.is_active = False
        link.revoked_at = self.clock()
        link.revoked_by = by_principal_id
        await self.db.commit()

        magic_links_revoked_total.inc()
        logger.info(f"Magic link {link_id} revoked by {by_principal_id}")
        return link

    async def list_for_document(self, document_id: uuid.UUID, actor_id: uuid.UUID) -> List[MagicLink]:
        """Links on a document: all of them for managers, only the actor's own otherwise"""
        await self._get_document(document_id)
        await self.resolver.require_document_access(actor_id, document_id)

        query = select(MagicLink).where(MagicLink.document_id == document_id)
        if not await self.resolver.can_manage_document(actor_id, document_id):
            query = query.where(MagicLink.created_by == actor_id)

        result = await self.db.execute(query.order_by(MagicLink.created_at.desc()))
        return list(result.scalars().all())
