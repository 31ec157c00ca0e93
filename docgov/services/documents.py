"""
Document Lifecycle Manager
Upload, metadata edits, status transitions, hard deletes and access URLs
"""

import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from docgov.core.config import settings
from docgov.core.exceptions import AppException, NotFoundException, ValidationException
from docgov.core.logging import get_logger
from docgov.core.permissions import AccessResolver
from docgov.db.base import utcnow
from docgov.db.models import Document, DocumentCategory, DocumentStatus, DocumentType, Principal
from docgov.models.magic_link import MagicLink
from docgov.models.permission import DocumentPermission
from docgov.storage.client import delete_file, get_presigned_url

logger = get_logger(__name__)

BASELINE_VERSION = "1.0"

UPDATABLE_FIELDS = {
    "title",
    "description",
    "document_type",
    "category_id",
    "tags",
    "version",
    "last_reviewed_at",
    "effective_date",
    "review_date",
}


def parse_status(value: str) -> DocumentStatus:
    try:
        return DocumentStatus(value)
    except ValueError:
        raise ValidationException(
            message="Invalid document status",
            details={"status": value, "valid_statuses": [s.value for s in DocumentStatus]},
        )


def parse_document_type(value: str) -> DocumentType:
    try:
        return DocumentType(value)
    except ValueError:
        raise ValidationException(
            message="Invalid document type",
            details={"document_type": value, "valid_types": [t.value for t in DocumentType]},
        )


class DocumentLifecycleManager:
    """Author-driven document CRUD and status transitions"""

    def __init__(self, db: AsyncSession, resolver: Optional[AccessResolver] = None):
        self.db = db
        self.resolver = resolver or AccessResolver(db)

    async def _get(self, document_id: uuid.UUID) -> Document:
        document = await self.db.get(Document, document_id)
        if document is None:
            raise NotFoundException("Document", details={"document_id": str(document_id)})
        return document

    async def _check_category(self, category_id: Optional[uuid.UUID]) -> None:
        if category_id is not None and await self.db.get(DocumentCategory, category_id) is None:
            raise NotFoundException("Category", details={"category_id": str(category_id)})

    async def upload(
        self,
        meta: Dict[str, Any],
        storage_path: Optional[str],
        author_id: uuid.UUID,
        document_id: Optional[uuid.UUID] = None,
        file_size_bytes: Optional[int] = None,
        content_type: Optional[str] = None,
    ) -> Document:
        """
        Create a document row

        New documents start as ``draft`` with version ``1.0`` unless the
        metadata says otherwise.
        """
        title = (meta.get("title") or "").strip()
        if not title:
            raise ValidationException(message="Document title is required")

        author = await self.db.get(Principal, author_id)
        if author is None:
            raise NotFoundException("Principal", details={"principal_id": str(author_id)})

        document_type = parse_document_type(meta.get("document_type") or DocumentType.POLICY.value)
        status = parse_status(meta.get("status") or DocumentStatus.DRAFT.value)
        await self._check_category(meta.get("category_id"))

        document = Document(
            id=document_id or uuid.uuid4(),
            title=title,
            description=meta.get("description"),
            document_type=document_type.value,
            status=status.value,
            version=meta.get("version") or BASELINE_VERSION,
            category_id=meta.get("category_id"),
            tags=meta.get("tags"),
            storage_path=storage_path,
            file_size_bytes=file_size_bytes,
            content_type=content_type,
            author_id=author_id,
            effective_date=meta.get("effective_date"),
            review_date=meta.get("review_date"),
        )
        self.db.add(document)
        await self.db.commit()
        await self.db.refresh(document)

        logger.info(f"Document uploaded: {document.id} '{document.title}' by {author_id} (status={document.status})")
        return document

    async def get(self, document_id: uuid.UUID, actor_id: uuid.UUID) -> Document:
        document = await self._get(document_id)
        await self.resolver.require_document_access(actor_id, document_id)
        return document

    async def list_for(
        self,
        actor_id: uuid.UUID,
        status: Optional[str] = None,
        document_type: Optional[str] = None,
        category_id: Optional[uuid.UUID] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[int, List[Document]]:
        """Page through the documents the actor may view"""
        accessible = await self.resolver.list_accessible_documents(actor_id)
        if not accessible:
            return 0, []

        conditions = [Document.id.in_(accessible)]
        if status:
            conditions.append(Document.status == parse_status(status).value)
        if document_type:
            conditions.append(Document.document_type == parse_document_type(document_type).value)
        if category_id:
            conditions.append(Document.category_id == category_id)

        total = (await self.db.execute(select(func.count(Document.id)).where(*conditions))).scalar() or 0
        result = await self.db.execute(
            select(Document)
            .where(*conditions)
            .order_by(Document.updated_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return total, list(result.scalars().all())

    async def update_status(self, document_id: uuid.UUID, new_status: str, by_principal_id: uuid.UUID) -> Document:
        """
        Move a document to any status

        The transition graph is unconstrained: draft, active
        and archived can each move to any other. Only the status and
        ``updated_at`` change.
        """
        status = parse_status(new_status)
        document = await self._get(document_id)
        await self.resolver.require_manage(by_principal_id, document_id)

        previous = document.status
        document.status = status.value
        document.updated_at = utcnow()
        await self.db.commit()

        logger.info(f"Document {document_id} status {previous} -> {status.value} by {by_principal_id}")
        return document

    async def update_metadata(self, document_id: uuid.UUID, changes: Dict[str, Any], by_principal_id: uuid.UUID) -> Document:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationException(
                message="Unsupported document fields",
                details={"fields": sorted(unknown)},
            )

        document = await self._get(document_id)
        await self.resolver.require_manage(by_principal_id, document_id)

        if "title" in changes:
            title = (changes["title"] or "").strip()
            if not title:
                raise ValidationException(message="Document title is required")
            changes["title"] = title
        if "document_type" in changes:
            changes["document_type"] = parse_document_type(changes["document_type"]).value
        if "version" in changes and not changes["version"]:
            raise ValidationException(message="Document version cannot be empty")
        if "category_id" in changes:
            await self._check_category(changes["category_id"])

        for field_name, value in changes.items():
            setattr(document, field_name, value)
        document.updated_at = utcnow()
        await self.db.commit()

        logger.info(f"Document {document_id} updated ({', '.join(sorted(changes))}) by {by_principal_id}")
        return document

    async def delete(self, document_id: uuid.UUID, by_principal_id: uuid.UUID) -> None:
        """
        Hard delete a document with its grants and magic links

        Irrecoverable. The stored file is removed afterwards; a storage
        failure leaves an orphaned object and is only logged.
        """
        document = await self._get(document_id)
        await self.resolver.require_manage(by_principal_id, document_id)
        storage_path = document.storage_path

        await self.db.execute(delete(DocumentPermission).where(DocumentPermission.document_id == document_id))
        await self.db.execute(delete(MagicLink).where(MagicLink.document_id == document_id))
        await self.db.delete(document)
        await self.db.commit()
        logger.info(f"Document {document_id} deleted by {by_principal_id}")

        if storage_path:
            try:
                await delete_file(storage_path)
            except AppException as e:
                logger.warning(f"Stored file {storage_path} of deleted document {document_id} not removed: {e.message}")

    async def _presign(self, document: Document, expires: int, as_attachment: bool) -> str:
        if not document.storage_path:
            raise NotFoundException("Document file", details={"document_id": str(document.id)})
        filename = document.storage_path.rsplit("/", 1)[-1]
        return await get_presigned_url(
            document.storage_path,
            expires=expires,
            as_attachment=as_attachment,
            filename=filename,
        )

    async def view_url(self, document_id: uuid.UUID, actor_id: uuid.UUID) -> Tuple[str, int]:
        """Short-lived inline URL for viewers"""
        document = await self._get(document_id)
        await self.resolver.require_document_access(actor_id, document_id)
        expires = settings.DOWNLOAD_URL_EXPIRY_SECONDS
        return await self._presign(document, expires, as_attachment=False), expires

    async def download_url(self, document_id: uuid.UUID, actor_id: uuid.UUID) -> Tuple[str, int]:
        """Short-lived attachment URL; requires a download grant"""
        document = await self._get(document_id)
        await self.resolver.require_download(actor_id, document_id)
        expires = settings.DOWNLOAD_URL_EXPIRY_SECONDS
        return await self._presign(document, expires, as_attachment=True), expires
