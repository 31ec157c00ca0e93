"""
Permission Model
Database model for tenant-level document access grants
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from docgov.db.base import Base, UUIDMixin, utcnow


class DocumentPermission(Base, UUIDMixin):
    """Grants one tenant view (and optionally download) rights on one document"""

    __tablename__ = "document_permissions"
    __table_args__ = (
        UniqueConstraint("document_id", "tenant_id", name="uq_document_permission_document_tenant"),
    )

    # Resource
    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Subject
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Permissions
    can_view: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    can_download: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Audit
    granted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    granted_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
