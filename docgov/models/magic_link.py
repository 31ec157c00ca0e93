"""
Magic Link Model
Bearer capability granting bounded anonymous access to one document
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from docgov.db.base import Base, TimestampMixin, UUIDMixin


class MagicLink(Base, TimestampMixin, UUIDMixin):
    """
    Magic link row.

    Only ``view_count`` and the revocation columns change after creation.
    Expired links are kept for audit; expiry is evaluated at redemption.
    """

    __tablename__ = "magic_links"

    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    max_views: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    revoked_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
