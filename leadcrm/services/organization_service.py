from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from decimal import Decimal
from typing import Any, Dict, List
import logging

from leadcrm.core.exceptions import NotFoundError, ValidationError
from leadcrm.core.security import hash_pin
from leadcrm.models.lead import Lead, LeadStatus
from leadcrm.models.organization import Organization
from leadcrm.models.user import User, UserRole, StaffType
from leadcrm.schemas.organization import OrganizationCreate, OrganizationUpdate
from leadcrm.services.category_service import CategoryService

logger = logging.getLogger(__name__)


class OrganizationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_organization(self, organization_id: int) -> Organization:
        result = await self.db.execute(select(Organization).where(Organization.id == organization_id))
        organization = result.scalar_one_or_none()
        if organization is None:
            raise NotFoundError("Organization not found")
        return organization

    async def update_organization(self, organization_id: int, data: OrganizationUpdate) -> Organization:
        organization = await self.get_organization(organization_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(organization, field, value)
        await self.db.commit()
        await self.db.refresh(organization)
        return organization

    async def list_with_counts(self) -> List[Dict[str, Any]]:
        user_counts = (
            select(User.organization_id, func.count(User.id).label("user_count"))
            .group_by(User.organization_id)
            .subquery()
        )
        lead_counts = (
            select(Lead.organization_id, func.count(Lead.id).label("lead_count"))
            .group_by(Lead.organization_id)
            .subquery()
        )
        result = await self.db.execute(
            select(Organization, user_counts.c.user_count, lead_counts.c.lead_count)
            .outerjoin(user_counts, user_counts.c.organization_id == Organization.id)
            .outerjoin(lead_counts, lead_counts.c.organization_id == Organization.id)
            .order_by(Organization.created_at.desc(), Organization.id.desc())
        )
        return [
            {
                "id": org.id,
                "name": org.name,
                "logo_url": org.logo_url,
                "contact_number": org.contact_number,
                "created_at": org.created_at,
                "user_count": user_count or 0,
                "lead_count": lead_count or 0,
            }
            for org, user_count, lead_count in result.all()
        ]

    async def create_with_manager(self, data: OrganizationCreate) -> Dict[str, Any]:
        """Organisation, its first manager and the default categories in one commit."""
        existing = await self.db.execute(select(User.id).where(User.phone == data.manager_phone))
        if existing.scalar_one_or_none() is not None:
            raise ValidationError("User with this phone number already exists")

        organization = Organization(name=data.name, contact_number=data.contact_number)
        self.db.add(organization)
        await self.db.flush()

        manager = User(
            organization_id=organization.id,
            phone=data.manager_phone,
            name=data.manager_name,
            role=UserRole.MANAGER.value,
            staff_type=StaffType.MANAGER.value,
            pin_hash=hash_pin(data.manager_pin),
            is_active=True,
        )
        self.db.add(manager)
        CategoryService(self.db).add_default_categories(organization.id)

        await self.db.commit()
        await self.db.refresh(organization)
        await self.db.refresh(manager)

        logger.info(f"Organization {organization.id} created with manager {manager.id}")
        return {"organization": organization, "manager": manager}

    async def system_stats(self) -> Dict[str, Any]:
        organizations = (await self.db.execute(select(func.count(Organization.id)))).scalar() or 0
        users = (await self.db.execute(select(func.count(User.id)))).scalar() or 0

        lead_rows = (await self.db.execute(
            select(Lead.status, func.count(Lead.id), func.sum(Lead.sale_price)).group_by(Lead.status)
        )).all()
        leads_by_status = {status: count for status, count, _ in lead_rows}
        revenue = sum((Decimal(str(total)) for status, _, total in lead_rows
                       if status == LeadStatus.WIN.value and total is not None), Decimal("0"))

        role_rows = (await self.db.execute(
            select(User.role, func.count(User.id)).group_by(User.role)
        )).all()

        return {
            "total_organizations": organizations,
            "total_users": users,
            "total_leads": sum(leads_by_status.values()),
            "win_leads": leads_by_status.get(LeadStatus.WIN.value, 0),
            "lost_leads": leads_by_status.get(LeadStatus.LOST.value, 0),
            "total_revenue": revenue,
            "users_by_role": {role: count for role, count in role_rows},
        }
