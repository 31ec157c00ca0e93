"""
Document Pydantic Models
Request/response schemas for document endpoints
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

# Import SQLAlchemy model
from docgov.db.models import Document as DocumentSQLModel


class DocumentMetadata(BaseModel):
    """Metadata sent alongside an upload"""
    title: Optional[str] = Field(None, max_length=512)
    description: Optional[str] = None
    document_type: str = Field("policy", max_length=50)
    category_id: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    version: str = Field("1.0", min_length=1, max_length=20)
    effective_date: Optional[date] = None
    review_date: Optional[date] = None
    tenant_ids: List[str] = Field(default_factory=list, description="Tenants granted view access on upload")


class DocumentUpdateRequest(BaseModel):
    """Partial metadata update; omitted fields are left alone"""
    title: Optional[str] = Field(None, min_length=1, max_length=512)
    description: Optional[str] = None
    document_type: Optional[str] = Field(None, max_length=50)
    category_id: Optional[str] = None
    tags: Optional[List[str]] = None
    version: Optional[str] = Field(None, min_length=1, max_length=20)
    last_reviewed_at: Optional[datetime] = None
    effective_date: Optional[date] = None
    review_date: Optional[date] = None


class DocumentStatusUpdateRequest(BaseModel):
    status: str = Field(..., description="draft, active or archived")


class DocumentResponse(BaseModel):
    """Document response schema"""
    document_id: str
    title: str
    description: Optional[str]
    document_type: str
    status: str
    version: str
    category_id: Optional[str]
    tags: List[str]
    file_size_bytes: Optional[int]
    content_type: Optional[str]
    has_file: bool
    author_id: str
    last_reviewed_at: Optional[datetime]
    effective_date: Optional[date]
    review_date: Optional[date]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_db_model(cls, doc: DocumentSQLModel) -> "DocumentResponse":
        """Create DocumentResponse from database model"""
        return cls(
            document_id=str(doc.id),
            title=doc.title,
            description=doc.description,
            document_type=doc.document_type,
            status=doc.status,
            version=doc.version,
            category_id=str(doc.category_id) if doc.category_id else None,
            tags=doc.tags or [],
            file_size_bytes=doc.file_size_bytes,
            content_type=doc.content_type,
            has_file=bool(doc.storage_path),
            author_id=str(doc.author_id),
            last_reviewed_at=doc.last_reviewed_at,
            effective_date=doc.effective_date,
            review_date=doc.review_date,
            created_at=doc.created_at,
            updated_at=doc.updated_at,
        )


class DocumentUploadResponse(BaseModel):
    document: DocumentResponse
    shared_with: List[str]
    share_failures: Dict[str, str]


class DocumentListResponse(BaseModel):
    """Document list response schema"""
    total: int
    limit: int
    offset: int
    results: List[DocumentResponse]


class DocumentAccessResponse(BaseModel):
    """What the current principal may do with a document"""
    document_id: str
    can_view: bool
    can_download: bool
    can_manage: bool
    is_author: bool


class DocumentUrlResponse(BaseModel):
    document_id: str
    url: str
    expires_in: int
    disposition: str


def metadata_changes(request: DocumentUpdateRequest) -> Dict[str, Any]:
    """Fields explicitly set on an update request"""
    return request.model_dump(exclude_unset=True)
