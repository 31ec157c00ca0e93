#!/usr/bin/env python3
"""
Unit Tests for the Document Permission Manager
Tests for docgov/services/document_permissions.py
"""

import uuid

import pytest
from sqlalchemy import func, select

from docgov.core.exceptions import NotFoundException, PermissionException, ValidationException
from docgov.core.permissions import AccessResolver
from docgov.models.permission import DocumentPermission
from docgov.services.document_permissions import DocumentPermissionManager


async def _grant_count(db_session, document_id) -> int:
    result = await db_session.execute(
        select(func.count(DocumentPermission.id)).where(DocumentPermission.document_id == document_id)
    )
    return result.scalar()


class TestGrant:
    """Granting and updating tenant access"""

    @pytest.mark.asyncio
    async def test_download_without_view_rejected(self, db_session, factory):
        author = await factory.principal()
        tenant = await factory.tenant()
        document = await factory.document(author)

        with pytest.raises(ValidationException):
            await DocumentPermissionManager(db_session).grant(document.id, tenant.id, False, True, author.id)

        assert await _grant_count(db_session, document.id) == 0

    @pytest.mark.asyncio
    async def test_view_and_download_grant_gives_members_access(self, db_session, factory):
        author = await factory.principal()
        member = await factory.principal()
        tenant = await factory.tenant()
        await factory.membership(member, tenant)
        document = await factory.document(author)

        permission = await DocumentPermissionManager(db_session).grant(document.id, tenant.id, True, True, author.id)

        assert permission.can_view is True
        assert permission.can_download is True
        assert permission.granted_by == author.id
        resolver = AccessResolver(db_session)
        assert await resolver.can_access_document(member.id, document.id) is True
        assert await resolver.can_download_document(member.id, document.id) is True

    @pytest.mark.asyncio
    async def test_regrant_updates_existing_row(self, db_session, factory):
        """At most one grant per (document, tenant)"""
        author = await factory.principal()
        tenant = await factory.tenant()
        document = await factory.document(author)
        manager = DocumentPermissionManager(db_session)

        first = await manager.grant(document.id, tenant.id, True, True, author.id)
        second = await manager.grant(document.id, tenant.id, True, False, author.id)

        assert first.id == second.id
        assert second.can_download is False
        assert await _grant_count(db_session, document.id) == 1

    @pytest.mark.asyncio
    async def test_super_admin_can_grant(self, db_session, factory):
        author = await factory.principal()
        admin = await factory.super_admin()
        tenant = await factory.tenant()
        document = await factory.document(author)

        permission = await DocumentPermissionManager(db_session).grant(document.id, tenant.id, True, False, admin.id)

        assert permission.granted_by == admin.id

    @pytest.mark.asyncio
    async def test_reader_cannot_grant(self, db_session, factory):
        author = await factory.principal()
        reader = await factory.principal()
        tenant, other = await factory.tenant(), await factory.tenant()
        await factory.membership(reader, tenant)
        document = await factory.document(author)
        await factory.grant(document, tenant)

        with pytest.raises(PermissionException):
            await DocumentPermissionManager(db_session).grant(document.id, other.id, True, False, reader.id)

    @pytest.mark.asyncio
    async def test_unknown_document_or_tenant(self, db_session, factory):
        author = await factory.principal()
        tenant = await factory.tenant()
        document = await factory.document(author)
        manager = DocumentPermissionManager(db_session)

        with pytest.raises(NotFoundException):
            await manager.grant(uuid.uuid4(), tenant.id, True, False, author.id)
        with pytest.raises(NotFoundException):
            await manager.grant(document.id, uuid.uuid4(), True, False, author.id)


class TestRevoke:

    @pytest.mark.asyncio
    async def test_revoke_removes_access(self, db_session, factory):
        author = await factory.principal()
        member = await factory.principal()
        tenant = await factory.tenant()
        await factory.membership(member, tenant)
        document = await factory.document(author)
        await factory.grant(document, tenant)

        removed = await DocumentPermissionManager(db_session).revoke(document.id, tenant.id, author.id)

        assert removed is True
        assert await AccessResolver(db_session).can_access_document(member.id, document.id) is False

    @pytest.mark.asyncio
    async def test_revoke_missing_grant_is_noop(self, db_session, factory):
        author = await factory.principal()
        tenant = await factory.tenant()
        document = await factory.document(author)

        assert await DocumentPermissionManager(db_session).revoke(document.id, tenant.id, author.id) is False

    @pytest.mark.asyncio
    async def test_revoke_requires_author_or_super_admin(self, db_session, factory):
        author = await factory.principal()
        stranger = await factory.principal()
        tenant = await factory.tenant()
        document = await factory.document(author)
        await factory.grant(document, tenant)

        with pytest.raises(PermissionException):
            await DocumentPermissionManager(db_session).revoke(document.id, tenant.id, stranger.id)
        assert await _grant_count(db_session, document.id) == 1


class TestBulkGrant:
    """Bulk grants are best-effort and not atomic"""

    @pytest.mark.asyncio
    async def test_all_granted(self, db_session, factory):
        author = await factory.principal()
        tenant = await factory.tenant()
        documents = [await factory.document(author, title=f"Doc {i}") for i in range(3)]

        result = await DocumentPermissionManager(db_session).bulk_grant(
            [document.id for document in documents], tenant.id, author.id
        )

        assert result.granted == [document.id for document in documents]
        assert result.failed == 0
        for document in documents:
            assert await _grant_count(db_session, document.id) == 1

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_earlier_grants(self, db_session, factory):
        """A failure mid-batch does not roll back grants already applied"""
        author = await factory.principal()
        someone_else = await factory.principal()
        tenant = await factory.tenant()
        first = await factory.document(author, title="First")
        foreign = await factory.document(someone_else, title="Not mine")
        last = await factory.document(author, title="Last")
        missing = uuid.uuid4()

        result = await DocumentPermissionManager(db_session).bulk_grant(
            [first.id, foreign.id, missing, last.id], tenant.id, author.id
        )

        assert result.granted == [first.id, last.id]
        assert result.failures == {foreign.id: "permission_denied", missing: "not_found"}
        assert await _grant_count(db_session, first.id) == 1
        assert await _grant_count(db_session, foreign.id) == 0
        assert await _grant_count(db_session, last.id) == 1

    @pytest.mark.asyncio
    async def test_invalid_flags_fail_every_item(self, db_session, factory):
        author = await factory.principal()
        tenant = await factory.tenant()
        document = await factory.document(author)

        result = await DocumentPermissionManager(db_session).bulk_grant(
            [document.id], tenant.id, author.id, can_view=False, can_download=True
        )

        assert result.granted == []
        assert result.failures == {document.id: "validation_error"}


class TestListForDocument:

    @pytest.mark.asyncio
    async def test_author_lists_grants(self, db_session, factory):
        author = await factory.principal()
        tenant_a, tenant_b = await factory.tenant(), await factory.tenant()
        document = await factory.document(author)
        await factory.grant(document, tenant_a)
        await factory.grant(document, tenant_b, can_download=True)

        permissions = await DocumentPermissionManager(db_session).list_for_document(document.id, author.id)

        assert {permission.tenant_id for permission in permissions} == {tenant_a.id, tenant_b.id}

    @pytest.mark.asyncio
    async def test_plain_reader_cannot_list(self, db_session, factory):
        author = await factory.principal()
        reader = await factory.principal()
        tenant = await factory.tenant()
        await factory.membership(reader, tenant)
        document = await factory.document(author)
        await factory.grant(document, tenant)

        with pytest.raises(PermissionException):
            await DocumentPermissionManager(db_session).list_for_document(document.id, reader.id)
