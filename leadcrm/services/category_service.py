from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from typing import List, Optional

from leadcrm.core.exceptions import NotFoundError, ValidationError
from leadcrm.models.category import Category, DEFAULT_CATEGORIES


class CategoryService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_categories(self, organization_id: int) -> List[Category]:
        result = await self.db.execute(
            select(Category).where(Category.organization_id == organization_id).order_by(Category.name)
        )
        return result.scalars().all()

    async def get_category(self, organization_id: int, category_id: int) -> Category:
        category = await self._find(organization_id, Category.id == category_id)
        if category is None:
            raise NotFoundError("Category not found")
        return category

    async def create_category(self, organization_id: int, name: str) -> Category:
        if await self._find(organization_id, Category.name == name):
            raise ValidationError("Category already exists")

        category = Category(organization_id=organization_id, name=name)
        self.db.add(category)
        await self.db.commit()
        await self.db.refresh(category)
        return category

    def add_default_categories(self, organization_id: int) -> None:
        """Stage the starter categories of a new organisation (caller commits)."""
        for name in DEFAULT_CATEGORIES:
            self.db.add(Category(organization_id=organization_id, name=name))

    async def _find(self, organization_id: int, condition) -> Optional[Category]:
        result = await self.db.execute(
            select(Category).where(and_(Category.organization_id == organization_id, condition))
        )
        return result.scalar_one_or_none()
