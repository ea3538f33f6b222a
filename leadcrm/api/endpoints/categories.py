from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from leadcrm.api.deps import get_org_user, require_permission
from leadcrm.core.permissions import Permission
from leadcrm.core.responses import api_success
from leadcrm.db.database import get_async_db
from leadcrm.schemas.auth import CurrentUser
from leadcrm.schemas.category import CategoryCreate, CategoryResponse
from leadcrm.services.category_service import CategoryService

router = APIRouter()


@router.get("")
async def list_categories(
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(get_org_user),
):
    categories = await CategoryService(db).list_categories(current_user.organization_id)
    return api_success([CategoryResponse.model_validate(c) for c in categories])


@router.post("")
async def create_category(
    payload: CategoryCreate,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.MANAGE_CATEGORIES)),
):
    category = await CategoryService(db).create_category(current_user.organization_id, payload.name)
    return api_success(CategoryResponse.model_validate(category), message="Category created")
