"""
Document categories
"""

import re
import uuid
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from docgov.core.exceptions import ConflictException, NotFoundException, ValidationException
from docgov.core.logging import get_logger
from docgov.core.permissions import AccessResolver
from docgov.db.models import Document, DocumentCategory

logger = get_logger(__name__)

COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")
DEFAULT_COLOR = "#3B82F6"


class CategoryService:
    def __init__(self, db: AsyncSession, resolver: Optional[AccessResolver] = None):
        self.db = db
        self.resolver = resolver or AccessResolver(db)

    async def list_categories(self) -> List[DocumentCategory]:
        result = await self.db.execute(select(DocumentCategory).order_by(DocumentCategory.name))
        return list(result.scalars().all())

    async def create_category(
        self,
        name: str,
        by_principal_id: uuid.UUID,
        description: Optional[str] = None,
        color: Optional[str] = None,
    ) -> DocumentCategory:
        await self.resolver.require_super_admin(by_principal_id)
        name = (name or "").strip()
        if not name:
            raise ValidationException(message="Category name is required")
        color = color or DEFAULT_COLOR
        if not COLOR_PATTERN.match(color):
            raise ValidationException(message="Color must be a hex value like #3B82F6", details={"color": color})

        category = DocumentCategory(name=name, description=description, color=color, created_by=by_principal_id)
        self.db.add(category)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictException(message="Category already exists", details={"name": name})
        await self.db.refresh(category)

        logger.info(f"Category created: {category.id} '{name}' by {by_principal_id}")
        return category

    async def delete_category(self, category_id: uuid.UUID, by_principal_id: uuid.UUID) -> None:
        """Delete a category; its documents stay, uncategorised"""
        await self.resolver.require_super_admin(by_principal_id)
        category = await self.db.get(DocumentCategory, category_id)
        if category is None:
            raise NotFoundException("Category", details={"category_id": str(category_id)})

        await self.db.execute(
            update(Document)
            .where(Document.category_id == category_id)
            .values(category_id=None)
            .execution_options(synchronize_session=False)
        )
        await self.db.delete(category)
        await self.db.commit()
        logger.info(f"Category {category_id} deleted by {by_principal_id}")
