"""
Pytest Configuration and Fixtures
Shared fixtures and configuration for all tests
"""

import os

# Settings are read at import time; configure before importing docgov
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-at-least-32-characters")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("ENABLE_METRICS", "true")

import uuid
from datetime import timedelta
from typing import Any, AsyncGenerator, Dict, Optional
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from docgov.core.security import create_access_token
from docgov.db import session as db_session_module
from docgov.db.base import utcnow
from docgov.db.models import (
    Document,
    GlobalRole,
    GlobalRoleName,
    Membership,
    MembershipRole,
    Principal,
    Tenant,
)
from docgov.db.session import close_db, init_db
from docgov.models.permission import DocumentPermission


# ============================================
# PYTEST CONFIGURATION
# ============================================

def pytest_collection_modifyitems(config, items):
    """Add markers based on test file path"""
    for item in items:
        path = str(item.fspath)
        if "/unit/" in path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in path:
            item.add_marker(pytest.mark.e2e)


# ============================================
# DATABASE FIXTURES
# ============================================

@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[str, None]:
    """
    Fresh SQLite database file per test
    A file (not :memory:) so concurrent sessions see the same data
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'docgov_test.db'}"
    await init_db(url, create_tables=True)
    yield url
    await close_db()


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Session bound to the per-test database"""
    async with db_session_module.async_session_maker() as session:
        yield session


@pytest.fixture
def session_factory(database):
    """Open additional independent sessions (one per concurrent actor)"""
    return db_session_module.async_session_maker


# ============================================
# DATA FACTORY
# ============================================

class Factory:
    """Creates rows directly, bypassing authorization"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def principal(
        self,
        email: Optional[str] = None,
        global_role: Optional[str] = None,
        is_active: bool = True,
    ) -> Principal:
        principal = Principal(
            email=email or f"user_{uuid.uuid4().hex[:8]}@example.com",
            full_name="Test Principal",
            is_active=is_active,
        )
        self.session.add(principal)
        await self.session.flush()
        if global_role:
            self.session.add(GlobalRole(principal_id=principal.id, role=global_role))
        await self.session.commit()
        return principal

    async def super_admin(self) -> Principal:
        return await self.principal(global_role=GlobalRoleName.SUPER_ADMIN.value)

    async def tenant(self, slug: Optional[str] = None, is_active: bool = True) -> Tenant:
        slug = slug or f"tenant-{uuid.uuid4().hex[:8]}"
        tenant = Tenant(name=slug.replace("-", " ").title(), slug=slug, is_active=is_active)
        self.session.add(tenant)
        await self.session.commit()
        return tenant

    async def membership(
        self,
        principal: Principal,
        tenant: Tenant,
        role: str = MembershipRole.STANDARD.value,
        is_active: bool = True,
    ) -> Membership:
        membership = Membership(principal_id=principal.id, tenant_id=tenant.id, role=role, is_active=is_active)
        self.session.add(membership)
        await self.session.commit()
        return membership

    async def document(
        self,
        author: Principal,
        title: str = "Information Security Policy",
        status: str = "draft",
        storage_path: Optional[str] = "documents/test/policy.pdf",
    ) -> Document:
        document = Document(
            title=title,
            document_type="policy",
            status=status,
            version="1.0",
            author_id=author.id,
            storage_path=storage_path,
            content_type="application/pdf",
            file_size_bytes=1024,
        )
        self.session.add(document)
        await self.session.commit()
        return document

    async def grant(
        self,
        document: Document,
        tenant: Tenant,
        can_view: bool = True,
        can_download: bool = False,
    ) -> DocumentPermission:
        permission = DocumentPermission(
            document_id=document.id,
            tenant_id=tenant.id,
            can_view=can_view,
            can_download=can_download,
            granted_at=utcnow(),
        )
        self.session.add(permission)
        await self.session.commit()
        return permission


@pytest_asyncio.fixture
async def factory(db_session) -> Factory:
    return Factory(db_session)


# ============================================
# STORAGE AND AUTH FIXTURES
# ============================================

@pytest.fixture
def storage() -> Dict[str, Any]:
    """
    Replace MinIO calls with mocks
    Presigned URLs echo the storage path so assertions can check them
    """

    async def fake_presign(storage_path, expires=3600, as_attachment=False, filename=None):
        disposition = "attachment" if as_attachment else "inline"
        return f"https://storage.test/{storage_path}?expires={expires}&disposition={disposition}"

    presign = AsyncMock(side_effect=fake_presign)
    upload = AsyncMock(side_effect=lambda object_name, data, content_type="application/octet-stream": f"documents/{object_name}")
    delete = AsyncMock(return_value=None)

    with patch("docgov.services.magic_links.get_presigned_url", presign), \
            patch("docgov.services.documents.get_presigned_url", presign), \
            patch("docgov.services.documents.delete_file", delete), \
            patch("docgov.api.v1.documents.upload_file", upload), \
            patch("docgov.api.v1.documents.delete_file", delete):
        yield {"presign": presign, "upload": upload, "delete": delete}


@pytest.fixture
def auth_headers():
    """Build a Bearer header for a principal, as the identity provider would"""

    def build(principal: Principal, minutes: int = 15) -> Dict[str, str]:
        token = create_access_token({"sub": str(principal.id)}, expires_delta=timedelta(minutes=minutes))
        return {"Authorization": f"Bearer {token}"}

    return build


@pytest.fixture
def sample_pdf() -> bytes:
    """Minimal PDF bytes for upload tests"""
    return b"%PDF-1.4\n1 0 obj\n<<\n/Type /Catalog\n/Pages 2 0 R\n>>\nendobj\n"
