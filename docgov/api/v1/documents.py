"""
Documents API Routes
Document upload, listing, metadata, status, deletion and access URLs
"""

import json
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from docgov.api.dependencies import get_access_resolver, get_current_principal, parse_uuid
from docgov.core.config import settings
from docgov.core.exceptions import AppException, ValidationException
from docgov.core.logging import get_logger
from docgov.core.permissions import AccessResolver
from docgov.db.models import Principal
from docgov.db.session import get_db_session
from docgov.models.document import (
    DocumentAccessResponse,
    DocumentListResponse,
    DocumentMetadata,
    DocumentResponse,
    DocumentStatusUpdateRequest,
    DocumentUpdateRequest,
    DocumentUploadResponse,
    DocumentUrlResponse,
    metadata_changes,
)
from docgov.services.document_permissions import DocumentPermissionManager
from docgov.services.documents import DocumentLifecycleManager
from docgov.services.system_settings import MAX_FILE_SIZE_MB, SystemSettingsService
from docgov.storage.client import delete_file, upload_file

logger = get_logger(__name__)
router = APIRouter()


def _parse_metadata(metadata: Optional[str]) -> DocumentMetadata:
    if not metadata:
        return DocumentMetadata()
    try:
        return DocumentMetadata.model_validate(json.loads(metadata))
    except json.JSONDecodeError:
        raise ValidationException(message="Metadata must be a JSON object")
    except ValidationError as e:
        raise ValidationException(message="Invalid document metadata", details={"errors": e.errors(include_url=False)})


@router.post("/upload", response_model=DocumentUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    metadata: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """
    Upload a document

    - **file**: document file (PDF by default)
    - **metadata**: optional JSON metadata; `tenant_ids` shares the new
      document view-only with those tenants
    """
    meta = _parse_metadata(metadata)

    if file.content_type not in settings.ALLOWED_CONTENT_TYPES:
        raise ValidationException(
            message="Invalid file type",
            details={"content_type": file.content_type, "expected": settings.ALLOWED_CONTENT_TYPES},
        )

    content = await file.read()
    if not content:
        raise ValidationException(message="Uploaded file is empty")

    max_size_mb = await SystemSettingsService(db, resolver).get(MAX_FILE_SIZE_MB)
    if len(content) > max_size_mb * 1024 * 1024:
        raise ValidationException(message="File too large", details={"max_size_mb": max_size_mb})

    fields = meta.model_dump(exclude={"tenant_ids"})
    fields["title"] = fields["title"] or file.filename
    if fields["category_id"]:
        fields["category_id"] = parse_uuid(fields["category_id"], "category_id")
    tenant_ids = [parse_uuid(tenant_id, "tenant_id") for tenant_id in meta.tenant_ids]

    document_id = uuid.uuid4()
    storage_path = await upload_file(f"{document_id}/{file.filename}", content, file.content_type)

    manager = DocumentLifecycleManager(db, resolver)
    try:
        document = await manager.upload(
            fields,
            storage_path,
            current_principal.id,
            document_id=document_id,
            file_size_bytes=len(content),
            content_type=file.content_type,
        )
    except AppException:
        try:
            await delete_file(storage_path)
        except AppException as e:
            logger.warning(f"Orphaned upload {storage_path} not removed: {e.message}")
        raise

    shared_with, share_failures = [], {}
    permission_manager = DocumentPermissionManager(db, resolver)
    for tenant_id in tenant_ids:
        result = await permission_manager.bulk_grant([document.id], tenant_id, current_principal.id)
        if result.granted:
            shared_with.append(str(tenant_id))
        else:
            share_failures[str(tenant_id)] = result.failures[document.id]

    return DocumentUploadResponse(
        document=DocumentResponse.from_db_model(document),
        shared_with=shared_with,
        share_failures=share_failures,
    )


@router.get("", response_model=DocumentListResponse)
async def list_documents(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    status: Optional[str] = Query(None, description="Filter by document status"),
    document_type: Optional[str] = Query(None, description="Filter by document type"),
    category_id: Optional[str] = Query(None, description="Filter by category"),
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """
    List documents with pagination and filtering

    Only returns documents the principal has view access to.
    """
    total, documents = await DocumentLifecycleManager(db, resolver).list_for(
        current_principal.id,
        status=status,
        document_type=document_type,
        category_id=parse_uuid(category_id, "category_id") if category_id else None,
        limit=limit,
        offset=offset,
    )
    return DocumentListResponse(
        total=total,
        limit=limit,
        offset=offset,
        results=[DocumentResponse.from_db_model(doc) for doc in documents],
    )


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: str,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Get document details"""
    document = await DocumentLifecycleManager(db, resolver).get(
        parse_uuid(document_id, "document_id"), current_principal.id
    )
    return DocumentResponse.from_db_model(document)


@router.patch("/{document_id}", response_model=DocumentResponse)
async def update_document(
    document_id: str,
    request: DocumentUpdateRequest,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Update document metadata (author or administrator)"""
    changes = metadata_changes(request)
    if changes.get("category_id"):
        changes["category_id"] = parse_uuid(changes["category_id"], "category_id")

    document = await DocumentLifecycleManager(db, resolver).update_metadata(
        parse_uuid(document_id, "document_id"), changes, current_principal.id
    )
    return DocumentResponse.from_db_model(document)


@router.patch("/{document_id}/status", response_model=DocumentResponse)
async def update_document_status(
    document_id: str,
    request: DocumentStatusUpdateRequest,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Move a document between draft, active and archived"""
    document = await DocumentLifecycleManager(db, resolver).update_status(
        parse_uuid(document_id, "document_id"), request.status, current_principal.id
    )
    return DocumentResponse.from_db_model(document)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: str,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Delete a document with its grants and magic links (irreversible)"""
    await DocumentLifecycleManager(db, resolver).delete(
        parse_uuid(document_id, "document_id"), current_principal.id
    )


@router.get("/{document_id}/access", response_model=DocumentAccessResponse)
async def get_document_access(
    document_id: str,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """What the current principal may do with a document"""
    doc_uuid = parse_uuid(document_id, "document_id")
    # Raises 404 for unknown documents and 403 without view access
    await DocumentLifecycleManager(db, resolver).get(doc_uuid, current_principal.id)

    return DocumentAccessResponse(
        document_id=str(doc_uuid),
        can_view=True,
        can_download=await resolver.can_download_document(current_principal.id, doc_uuid),
        can_manage=await resolver.can_manage_document(current_principal.id, doc_uuid),
        is_author=await resolver.is_document_author(current_principal.id, doc_uuid),
    )


@router.get("/{document_id}/view-url", response_model=DocumentUrlResponse)
async def get_view_url(
    document_id: str,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Short-lived URL for in-browser viewing"""
    doc_uuid = parse_uuid(document_id, "document_id")
    url, expires_in = await DocumentLifecycleManager(db, resolver).view_url(doc_uuid, current_principal.id)
    return DocumentUrlResponse(document_id=str(doc_uuid), url=url, expires_in=expires_in, disposition="inline")


@router.get("/{document_id}/download-url", response_model=DocumentUrlResponse)
async def get_download_url(
    document_id: str,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Short-lived download URL; requires a download grant"""
    doc_uuid = parse_uuid(document_id, "document_id")
    url, expires_in = await DocumentLifecycleManager(db, resolver).download_url(doc_uuid, current_principal.id)
    return DocumentUrlResponse(document_id=str(doc_uuid), url=url, expires_in=expires_in, disposition="attachment")
