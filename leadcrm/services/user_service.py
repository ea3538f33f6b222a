from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from typing import List, Optional
import logging

from leadcrm.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from leadcrm.core.permissions import (
    can_create_user_with_role,
    can_manage_user,
    is_higher_role,
    requires_manager,
    role_display_name,
)
from leadcrm.models.user import User, UserRole
from leadcrm.schemas.user import TeamMemberCreate, TeamMemberUpdate

logger = logging.getLogger(__name__)

MANAGER_ROLES = (UserRole.MANAGER.value, UserRole.ADMIN.value)


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_user_by_phone(self, phone: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.phone == phone))
        return result.scalar_one_or_none()

    async def get_org_user(self, organization_id: int, user_id: int) -> User:
        """User of the given organisation, 404 otherwise."""
        result = await self.db.execute(
            select(User).where(and_(User.id == user_id, User.organization_id == organization_id))
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User not found in organization")
        return user

    async def list_org_users(
        self,
        organization_id: int,
        roles: Optional[List[str]] = None,
        active_only: bool = False,
    ) -> List[User]:
        query = select(User).where(User.organization_id == organization_id)
        if roles:
            query = query.where(User.role.in_(roles))
        if active_only:
            query = query.where(User.is_active.is_(True))
        result = await self.db.execute(query.order_by(User.name))
        return result.scalars().all()

    async def create_team_member(
        self,
        organization_id: int,
        creator_role: str,
        data: TeamMemberCreate,
    ) -> User:
        if not can_create_user_with_role(creator_role, data.role):
            raise PermissionDeniedError(f"Cannot create user with role: {data.role.value}")

        if await self.get_user_by_phone(data.phone):
            raise ValidationError("User with this phone number already exists")

        if data.manager_id is not None:
            await self._get_manager(organization_id, data.manager_id)

        user = User(
            organization_id=organization_id,
            phone=data.phone,
            name=data.name,
            role=data.role.value,
            staff_type=data.staff_type.value,
            manager_id=data.manager_id,
            monthly_salary=data.monthly_salary,
            is_active=True,
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)

        logger.info(f"Team member {user.id} ({user.role}) added to organization {organization_id}")
        return user

    async def update_team_member(
        self,
        organization_id: int,
        editor_role: str,
        user_id: int,
        data: TeamMemberUpdate,
    ) -> User:
        user = await self.get_org_user(organization_id, user_id)
        self._ensure_can_manage(editor_role, user)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field != "monthly_salary":
                continue
            setattr(user, field, value.value if hasattr(value, "value") else value)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def assign_manager(
        self,
        organization_id: int,
        editor_role: str,
        user_id: int,
        manager_id: int,
    ) -> User:
        user = await self.get_org_user(organization_id, user_id)
        if not requires_manager(user.role):
            raise ValidationError("Only staff and sales reps can be assigned a manager")
        self._ensure_can_manage(editor_role, user)

        manager = await self._get_manager(organization_id, manager_id)
        if not is_higher_role(manager.role, user.role):
            raise ValidationError("Assigned manager must outrank the team member")

        user.manager_id = manager_id
        await self.db.commit()
        await self.db.refresh(user)
        return user

    @staticmethod
    def _ensure_can_manage(editor_role: str, user: User) -> None:
        if not can_manage_user(editor_role, user.role):
            raise PermissionDeniedError(
                f"{role_display_name(editor_role)} cannot manage {role_display_name(user.role)} accounts"
            )

    async def _get_manager(self, organization_id: int, manager_id: int) -> User:
        manager = await self.get_org_user(organization_id, manager_id)
        if manager.role not in MANAGER_ROLES:
            raise ValidationError("Assigned manager must have the manager role")
        return manager
