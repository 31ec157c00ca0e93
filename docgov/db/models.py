"""
SQLAlchemy Database Models
"""

import enum
import uuid
from datetime import date, datetime
from typing import Any, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from docgov.db.base import Base, TimestampMixin, UUIDMixin


class GlobalRoleName(str, enum.Enum):
    """Platform-wide role values"""

    STANDARD = "standard"
    TENANT_ADMIN = "tenant_admin"
    SUPER_ADMIN = "super_admin"


class MembershipRole(str, enum.Enum):
    """Per-tenant role values; super admin is global only"""

    STANDARD = "standard"
    TENANT_ADMIN = "tenant_admin"


class DocumentStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


class DocumentType(str, enum.Enum):
    POLICY = "policy"
    STANDARD = "standard"
    PROCEDURE = "procedure"
    FORM = "form"
    TEMPLATE = "template"
    GUIDELINE = "guideline"
    FRAMEWORK = "framework"
    ASSESSMENT = "assessment"
    AUDIT = "audit"
    CERTIFICATION = "certification"
    COMPLIANCE = "compliance"
    RISK_MANAGEMENT = "risk_management"
    CYBERSECURITY = "cybersecurity"
    PRIVACY = "privacy"
    WORKPLACE_SAFETY = "workplace_safety"
    QUALITY_MANAGEMENT = "quality_management"
    ENVIRONMENTAL = "environmental"
    BUSINESS_CONTINUITY = "business_continuity"
    INCIDENT_RESPONSE = "incident_response"
    TRAINING_MATERIAL = "training_material"
    CHECKLIST = "checklist"


class Principal(UUIDMixin, TimestampMixin, Base):
    """User identity; credentials live with the identity provider"""

    __tablename__ = "principals"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    job_title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class GlobalRole(UUIDMixin, TimestampMixin, Base):
    """Platform-wide elevation, at most one per principal"""

    __tablename__ = "global_roles"

    principal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("principals.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=GlobalRoleName.STANDARD.value)


class Tenant(UUIDMixin, TimestampMixin, Base):
    """Organization whose members and document grants are scoped together"""

    __tablename__ = "tenants"

    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contact_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Membership(UUIDMixin, TimestampMixin, Base):
    """Principal's role-bearing association with one tenant"""

    __tablename__ = "memberships"
    __table_args__ = (
        UniqueConstraint("principal_id", "tenant_id", name="uq_membership_principal_tenant"),
    )

    principal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("principals.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=MembershipRole.STANDARD.value)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class DocumentCategory(UUIDMixin, TimestampMixin, Base):
    """Optional grouping for documents"""

    __tablename__ = "document_categories"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color: Mapped[str] = mapped_column(String(20), nullable=False, default="#3B82F6")
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)


class Document(UUIDMixin, TimestampMixin, Base):
    """Governed document"""

    __tablename__ = "documents"

    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    document_type: Mapped[str] = mapped_column(String(50), nullable=False, default=DocumentType.POLICY.value)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=DocumentStatus.DRAFT.value, index=True)
    version: Mapped[str] = mapped_column(String(20), nullable=False, default="1.0")
    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("document_categories.id", ondelete="SET NULL"),
        nullable=True,
    )
    tags: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    storage_path: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    file_size_bytes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    content_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("principals.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    last_reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    effective_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    review_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)


class SystemSetting(UUIDMixin, TimestampMixin, Base):
    """Runtime-editable platform setting"""

    __tablename__ = "system_settings"

    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
