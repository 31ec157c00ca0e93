"""
Magic Link API Routes
Issue, list, revoke and redeem bearer links to a document
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from docgov.api.dependencies import get_access_resolver, get_current_principal, parse_uuid
from docgov.core.logging import get_logger
from docgov.core.permissions import AccessResolver
from docgov.db.base import utcnow
from docgov.db.models import Principal
from docgov.db.session import get_db_session
from docgov.models.magic_link import MagicLink
from docgov.services.magic_links import MagicLinkService, link_state

logger = get_logger(__name__)
router = APIRouter()

REDEEM_PATH = "/api/v1/magic-links/redeem/{token}"


class MagicLinkCreateRequest(BaseModel):
    document_id: str
    ttl_days: Optional[int] = Field(None, ge=1, description="Days until expiry (system default if omitted)")
    max_views: Optional[int] = Field(None, ge=1, description="View limit (system default if omitted)")


class MagicLinkResponse(BaseModel):
    link_id: str
    document_id: str
    token: str
    redeem_path: str
    created_by: str
    created_at: datetime
    expires_at: datetime
    max_views: Optional[int]
    view_count: int
    is_active: bool
    state: str
    revoked_at: Optional[datetime]

    @classmethod
    def from_db_model(cls, link: MagicLink, now: Optional[datetime] = None) -> "MagicLinkResponse":
        return cls(
            link_id=str(link.id),
            document_id=str(link.document_id),
            token=link.token,
            redeem_path=REDEEM_PATH.format(token=link.token),
            created_by=str(link.created_by),
            created_at=link.created_at,
            expires_at=link.expires_at,
            max_views=link.max_views,
            view_count=link.view_count,
            is_active=link.is_active,
            state=link_state(link, now).value,
            revoked_at=link.revoked_at,
        )


class RedemptionResponse(BaseModel):
    document_id: str
    document_title: str
    access_url: Optional[str]
    expires_in: int
    view_count: int
    max_views: Optional[int]


@router.post("", response_model=MagicLinkResponse, status_code=status.HTTP_201_CREATED)
async def create_magic_link(
    request: MagicLinkCreateRequest,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """
    Issue a magic link

    The issuer must be able to view the document. The returned token is a
    bearer credential: anyone holding it can redeem it.
    """
    link = await MagicLinkService(db, resolver).issue(
        parse_uuid(request.document_id, "document_id"),
        current_principal.id,
        ttl_days=request.ttl_days,
        max_views=request.max_views,
    )
    return MagicLinkResponse.from_db_model(link)


@router.get("/document/{document_id}", response_model=List[MagicLinkResponse])
async def list_magic_links(
    document_id: str,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """List links on a document; non-managers only see links they issued"""
    links = await MagicLinkService(db, resolver).list_for_document(
        parse_uuid(document_id, "document_id"), current_principal.id
    )
    now = utcnow()
    return [MagicLinkResponse.from_db_model(link, now) for link in links]


@router.post("/{link_id}/revoke", response_model=MagicLinkResponse)
async def revoke_magic_link(
    link_id: str,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Permanently deactivate a link"""
    link = await MagicLinkService(db, resolver).revoke(parse_uuid(link_id, "link_id"), current_principal.id)
    return MagicLinkResponse.from_db_model(link)


@router.post("/redeem/{token}", response_model=RedemptionResponse)
async def redeem_magic_link(
    token: str,
    db: AsyncSession = Depends(get_db_session),
):
    """
    Redeem a magic link (no authentication)

    Each call consumes a view; GET is not routed. Every refusal returns the
    same 410 `link_unavailable` response.
    """
    result = await MagicLinkService(db).redeem(token)
    return RedemptionResponse(
        document_id=str(result.document_id),
        document_title=result.document_title,
        access_url=result.access_url,
        expires_in=result.url_expires_in,
        view_count=result.view_count,
        max_views=result.max_views,
    )
