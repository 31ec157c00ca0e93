"""
Document Category API Routes
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from docgov.api.dependencies import get_access_resolver, get_current_principal, parse_uuid
from docgov.core.permissions import AccessResolver
from docgov.db.models import DocumentCategory, Principal
from docgov.db.session import get_db_session
from docgov.services.categories import CategoryService

router = APIRouter()


class CategoryCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = Field(None, max_length=20)


class CategoryResponse(BaseModel):
    category_id: str
    name: str
    description: Optional[str]
    color: str

    @classmethod
    def from_db_model(cls, category: DocumentCategory) -> "CategoryResponse":
        return cls(
            category_id=str(category.id),
            name=category.name,
            description=category.description,
            color=category.color,
        )


@router.get("", response_model=List[CategoryResponse])
async def list_categories(
    db: AsyncSession = Depends(get_db_session),
    current_principal: Principal = Depends(get_current_principal),
):
    categories = await CategoryService(db).list_categories()
    return [CategoryResponse.from_db_model(category) for category in categories]


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    request: CategoryCreateRequest,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Create a category (super admin)"""
    category = await CategoryService(db, resolver).create_category(
        request.name,
        current_principal.id,
        description=request.description,
        color=request.color,
    )
    return CategoryResponse.from_db_model(category)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: str,
    db: AsyncSession = Depends(get_db_session),
    resolver: AccessResolver = Depends(get_access_resolver),
    current_principal: Principal = Depends(get_current_principal),
):
    """Delete a category; its documents become uncategorised (super admin)"""
    await CategoryService(db, resolver).delete_category(parse_uuid(category_id, "category_id"), current_principal.id)
