#!/usr/bin/env python3
"""
Unit Tests for the Document Lifecycle Manager
Tests for docgov/services/documents.py
"""

import uuid

import pytest
from sqlalchemy import func, select

from docgov.core.exceptions import (
    NotFoundException,
    PermissionException,
    TransientException,
    ValidationException,
)
from docgov.db.models import Document, DocumentCategory, MembershipRole
from docgov.models.magic_link import MagicLink
from docgov.models.permission import DocumentPermission
from docgov.services.documents import DocumentLifecycleManager
from docgov.services.magic_links import MagicLinkService


async def _count(session, model, document_id) -> int:
    result = await session.execute(select(func.count()).select_from(model).where(model.document_id == document_id))
    return result.scalar()


class TestUpload:

    @pytest.mark.asyncio
    async def test_defaults(self, db_session, factory):
        author = await factory.principal()

        document = await DocumentLifecycleManager(db_session).upload(
            {"title": "  Access Control Policy  "},
            "documents/abc/policy.pdf",
            author.id,
            file_size_bytes=2048,
            content_type="application/pdf",
        )

        assert document.title == "Access Control Policy"
        assert document.status == "draft"
        assert document.version == "1.0"
        assert document.document_type == "policy"
        assert document.author_id == author.id
        assert document.storage_path == "documents/abc/policy.pdf"

    @pytest.mark.asyncio
    async def test_explicit_id_and_metadata(self, db_session, factory):
        author = await factory.principal()
        document_id = uuid.uuid4()

        document = await DocumentLifecycleManager(db_session).upload(
            {"title": "Incident Runbook", "document_type": "procedure", "status": "active", "version": "2.3", "tags": ["ops"]},
            None,
            author.id,
            document_id=document_id,
        )

        assert document.id == document_id
        assert document.status == "active"
        assert document.version == "2.3"
        assert document.tags == ["ops"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("meta", [{}, {"title": "   "}, {"title": "x", "status": "published"}, {"title": "x", "document_type": "memo"}])
    async def test_invalid_metadata(self, db_session, factory, meta):
        author = await factory.principal()

        with pytest.raises(ValidationException):
            await DocumentLifecycleManager(db_session).upload(meta, None, author.id)

    @pytest.mark.asyncio
    async def test_unknown_author_or_category(self, db_session, factory):
        author = await factory.principal()
        manager = DocumentLifecycleManager(db_session)

        with pytest.raises(NotFoundException):
            await manager.upload({"title": "Orphan"}, None, uuid.uuid4())
        with pytest.raises(NotFoundException):
            await manager.upload({"title": "Uncategorised", "category_id": uuid.uuid4()}, None, author.id)


class TestStatus:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "start, target",
        [
            ("draft", "active"),
            ("active", "archived"),
            ("archived", "draft"),
            ("archived", "active"),
            ("active", "draft"),
            ("draft", "archived"),
        ],
    )
    async def test_any_transition_allowed(self, db_session, factory, start, target):
        author = await factory.principal()
        document = await factory.document(author, status=start)
        version = document.version

        updated = await DocumentLifecycleManager(db_session).update_status(document.id, target, author.id)

        assert updated.status == target
        assert updated.version == version

    @pytest.mark.asyncio
    async def test_invalid_status(self, db_session, factory):
        author = await factory.principal()
        document = await factory.document(author)

        with pytest.raises(ValidationException):
            await DocumentLifecycleManager(db_session).update_status(document.id, "published", author.id)

    @pytest.mark.asyncio
    async def test_viewer_cannot_change_status(self, db_session, factory):
        author = await factory.principal()
        reader = await factory.principal()
        tenant = await factory.tenant()
        await factory.membership(reader, tenant)
        document = await factory.document(author)
        await factory.grant(document, tenant)

        with pytest.raises(PermissionException):
            await DocumentLifecycleManager(db_session).update_status(document.id, "active", reader.id)

    @pytest.mark.asyncio
    async def test_tenant_admin_of_granted_tenant_can_change_status(self, db_session, factory):
        author = await factory.principal()
        tenant_admin = await factory.principal()
        tenant = await factory.tenant()
        await factory.membership(tenant_admin, tenant, role=MembershipRole.TENANT_ADMIN.value)
        document = await factory.document(author)
        await factory.grant(document, tenant)

        updated = await DocumentLifecycleManager(db_session).update_status(document.id, "archived", tenant_admin.id)

        assert updated.status == "archived"


class TestMetadata:

    @pytest.mark.asyncio
    async def test_update_fields(self, db_session, factory):
        author = await factory.principal()
        document = await factory.document(author)

        updated = await DocumentLifecycleManager(db_session).update_metadata(
            document.id, {"title": "Revised Policy", "version": "1.1", "tags": ["iso27001"]}, author.id
        )

        assert updated.title == "Revised Policy"
        assert updated.version == "1.1"
        assert updated.tags == ["iso27001"]
        assert updated.status == "draft"

    @pytest.mark.asyncio
    async def test_protected_fields_rejected(self, db_session, factory):
        author = await factory.principal()
        document = await factory.document(author)

        with pytest.raises(ValidationException) as exc_info:
            await DocumentLifecycleManager(db_session).update_metadata(
                document.id, {"author_id": uuid.uuid4(), "status": "active"}, author.id
            )
        assert exc_info.value.details["fields"] == ["author_id", "status"]

    @pytest.mark.asyncio
    async def test_empty_title_rejected(self, db_session, factory):
        author = await factory.principal()
        document = await factory.document(author)

        with pytest.raises(ValidationException):
            await DocumentLifecycleManager(db_session).update_metadata(document.id, {"title": ""}, author.id)

    @pytest.mark.asyncio
    async def test_category_assignment(self, db_session, factory):
        author = await factory.principal()
        document = await factory.document(author)
        category = DocumentCategory(name="Security")
        db_session.add(category)
        await db_session.commit()

        updated = await DocumentLifecycleManager(db_session).update_metadata(
            document.id, {"category_id": category.id}, author.id
        )

        assert updated.category_id == category.id


class TestDelete:

    @pytest.mark.asyncio
    async def test_delete_removes_grants_links_and_file(self, db_session, factory, storage):
        author = await factory.principal()
        tenant = await factory.tenant()
        document = await factory.document(author)
        await factory.grant(document, tenant)
        await MagicLinkService(db_session).issue(document.id, author.id)

        await DocumentLifecycleManager(db_session).delete(document.id, author.id)

        result = await db_session.execute(select(func.count()).select_from(Document).where(Document.id == document.id))
        assert result.scalar() == 0
        assert await _count(db_session, DocumentPermission, document.id) == 0
        assert await _count(db_session, MagicLink, document.id) == 0
        storage["delete"].assert_awaited_once_with("documents/test/policy.pdf")

    @pytest.mark.asyncio
    async def test_storage_failure_is_not_fatal(self, db_session, factory, storage):
        author = await factory.principal()
        document = await factory.document(author)
        storage["delete"].side_effect = TransientException(service="storage")

        await DocumentLifecycleManager(db_session).delete(document.id, author.id)

        result = await db_session.execute(select(func.count()).select_from(Document).where(Document.id == document.id))
        assert result.scalar() == 0

    @pytest.mark.asyncio
    async def test_reader_cannot_delete(self, db_session, factory, storage):
        author = await factory.principal()
        reader = await factory.principal()
        tenant = await factory.tenant()
        await factory.membership(reader, tenant)
        document = await factory.document(author)
        await factory.grant(document, tenant)

        with pytest.raises(PermissionException):
            await DocumentLifecycleManager(db_session).delete(document.id, reader.id)
        storage["delete"].assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_document(self, db_session, factory, storage):
        author = await factory.principal()

        with pytest.raises(NotFoundException):
            await DocumentLifecycleManager(db_session).delete(uuid.uuid4(), author.id)


class TestReadAccess:

    @pytest.mark.asyncio
    async def test_list_only_accessible(self, db_session, factory):
        author = await factory.principal()
        reader = await factory.principal()
        tenant = await factory.tenant()
        await factory.membership(reader, tenant)
        shared = await factory.document(author, title="Shared", status="active")
        await factory.document(author, title="Private")
        draft = await factory.document(author, title="Shared draft")
        await factory.grant(shared, tenant)
        await factory.grant(draft, tenant)

        manager = DocumentLifecycleManager(db_session)
        total, documents = await manager.list_for(reader.id)
        active_total, active = await manager.list_for(reader.id, status="active")

        assert total == 2
        assert {d.title for d in documents} == {"Shared", "Shared draft"}
        assert active_total == 1
        assert active[0].id == shared.id

    @pytest.mark.asyncio
    async def test_list_empty_for_outsider(self, db_session, factory):
        author = await factory.principal()
        outsider = await factory.principal()
        await factory.document(author)

        assert await DocumentLifecycleManager(db_session).list_for(outsider.id) == (0, [])

    @pytest.mark.asyncio
    async def test_get_requires_view(self, db_session, factory):
        author = await factory.principal()
        outsider = await factory.principal()
        document = await factory.document(author)

        with pytest.raises(PermissionException):
            await DocumentLifecycleManager(db_session).get(document.id, outsider.id)

    @pytest.mark.asyncio
    async def test_view_and_download_urls(self, db_session, factory, storage):
        author = await factory.principal()
        reader = await factory.principal()
        tenant = await factory.tenant()
        await factory.membership(reader, tenant)
        document = await factory.document(author)
        await factory.grant(document, tenant)
        manager = DocumentLifecycleManager(db_session)

        url, expires = await manager.view_url(document.id, reader.id)
        assert "disposition=inline" in url
        assert expires > 0

        with pytest.raises(PermissionException):
            await manager.download_url(document.id, reader.id)

        url, _ = await manager.download_url(document.id, author.id)
        assert "disposition=attachment" in url

    @pytest.mark.asyncio
    async def test_url_for_document_without_file(self, db_session, factory, storage):
        author = await factory.principal()
        document = await factory.document(author, storage_path=None)

        with pytest.raises(NotFoundException):
            await DocumentLifecycleManager(db_session).view_url(document.id, author.id)
