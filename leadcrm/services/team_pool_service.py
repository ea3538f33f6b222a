from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from leadcrm.core.exceptions import InvalidStateError, NotFoundError
from leadcrm.models.lead import Lead, LeadStatus
from leadcrm.models.team_pool import TeamPoolDistribution, TeamPoolStatus
from leadcrm.models.user import User, UserRole, StaffType
from leadcrm.schemas.incentive import IncentiveRules
from leadcrm.services.incentive_calculator import quantize_money, to_decimal
from leadcrm.services.incentive_config_service import IncentiveConfigService
from leadcrm.utils.date_utils import month_bounds, utcnow

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
RANK_FIELDS = ("team_pool_top_performer", "team_pool_second_performer", "team_pool_third_performer")


def _share(total: Decimal, percentage) -> Decimal:
    return total * to_decimal(percentage) / HUNDRED


def build_distribution(
    total_pool: Decimal,
    members: List[Dict[str, Any]],
    rules: IncentiveRules,
) -> Dict[str, Any]:
    """Split a pool among members.

    ``members`` carry user_id, user_name, role, staff_type and total_sales.
    Sales staff with sales are ranked; the top three take the rank shares and
    the rest split the "others" share. The first manager takes the manager
    share and support staff split the support share. Shares with nobody to
    receive them are reported as unallocated.
    """
    total_pool = to_decimal(total_pool)

    ranked = sorted(
        (m for m in members if m["staff_type"] == StaffType.SALES.value and to_decimal(m["total_sales"]) > 0),
        key=lambda m: (-to_decimal(m["total_sales"]), m["user_id"]),
    )

    performers = []
    for index, member in enumerate(ranked[:3]):
        percentage = getattr(rules, RANK_FIELDS[index])
        performers.append({
            "rank": index + 1,
            "user_id": member["user_id"],
            "user_name": member["user_name"],
            "total_sales": quantize_money(member["total_sales"]),
            "percentage": to_decimal(percentage),
            "amount": quantize_money(_share(total_pool, percentage)),
        })

    manager = None
    for member in members:
        if member["role"] in (UserRole.MANAGER.value, UserRole.ADMIN.value) or member["staff_type"] == StaffType.MANAGER.value:
            manager = {
                "user_id": member["user_id"],
                "user_name": member["user_name"],
                "percentage": to_decimal(rules.team_pool_manager),
                "amount": quantize_money(_share(total_pool, rules.team_pool_manager)),
            }
            break

    def split_equally(group, percentage):
        if not group:
            return []
        each = quantize_money(_share(total_pool, percentage) / len(group))
        return [
            {"user_id": m["user_id"], "user_name": m["user_name"], "amount": each}
            for m in group
        ]

    support = [m for m in members if m["staff_type"] == StaffType.SUPPORT.value]
    support_staff = split_equally(support, rules.team_pool_support_staff)
    others = split_equally(ranked[3:], rules.team_pool_others)

    allocated = (
        sum((p["amount"] for p in performers), Decimal("0"))
        + (manager["amount"] if manager else Decimal("0"))
        + sum((s["amount"] for s in support_staff), Decimal("0"))
        + sum((o["amount"] for o in others), Decimal("0"))
    )

    return {
        "total_pool_amount": quantize_money(total_pool),
        "performers": performers,
        "manager": manager,
        "support_staff": support_staff,
        "others": others,
        "allocated_amount": quantize_money(allocated),
        "unallocated_amount": quantize_money(total_pool - allocated),
    }


def distribution_rules(rules: IncentiveRules) -> Dict[str, Decimal]:
    return {
        "top_performer": rules.team_pool_top_performer,
        "second_performer": rules.team_pool_second_performer,
        "third_performer": rules.team_pool_third_performer,
        "manager": rules.team_pool_manager,
        "support_staff": rules.team_pool_support_staff,
        "others": rules.team_pool_others,
    }


def _json_safe(value):
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_json_safe(v) for v in value]
    return value


class TeamPoolService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_distribution(self, organization_id: int, month: str) -> Optional[TeamPoolDistribution]:
        result = await self.db.execute(
            select(TeamPoolDistribution).where(and_(
                TeamPoolDistribution.organization_id == organization_id,
                TeamPoolDistribution.month == month,
            ))
        )
        return result.scalar_one_or_none()

    async def _members(self, organization_id: int, month: str) -> List[Dict[str, Any]]:
        start, end = month_bounds(month)
        sales = (
            select(Lead.sales_rep_id, func.sum(Lead.sale_price).label("total_sales"))
            .where(and_(
                Lead.organization_id == organization_id,
                Lead.status == LeadStatus.WIN.value,
                Lead.created_at >= start,
                Lead.created_at < end,
            ))
            .group_by(Lead.sales_rep_id)
            .subquery()
        )
        rows = (await self.db.execute(
            select(User, sales.c.total_sales)
            .outerjoin(sales, sales.c.sales_rep_id == User.id)
            .where(and_(User.organization_id == organization_id, User.is_active.is_(True)))
            .order_by(User.id)
        )).all()
        return [
            {
                "user_id": user.id,
                "user_name": user.name,
                "role": user.role,
                "staff_type": user.staff_type,
                "total_sales": to_decimal(total),
            }
            for user, total in rows
        ]

    async def calculate(
        self,
        organization_id: int,
        month: str,
        total_pool_amount: Decimal,
        notes: Optional[str] = None,
    ) -> TeamPoolDistribution:
        distribution = await self.get_distribution(organization_id, month)
        if distribution is not None and distribution.status != TeamPoolStatus.PENDING_APPROVAL.value:
            raise InvalidStateError(f"Cannot recalculate team pool with status: {distribution.status}")

        rules = await IncentiveConfigService(self.db).get_rules(organization_id)
        members = await self._members(organization_id, month)
        result = build_distribution(total_pool_amount, members, rules)

        if distribution is None:
            distribution = TeamPoolDistribution(organization_id=organization_id, month=month)
            self.db.add(distribution)

        distribution.total_pool_amount = quantize_money(total_pool_amount)
        distribution.status = TeamPoolStatus.PENDING_APPROVAL.value
        distribution.distribution_json = _json_safe(result)
        distribution.distribution_notes = notes

        await self.db.commit()
        await self.db.refresh(distribution)
        logger.info(f"Team pool for organization {organization_id}, {month} calculated ({total_pool_amount})")
        return distribution

    async def apply_action(self, organization_id: int, month: str, action: str, user_id: int) -> TeamPoolDistribution:
        distribution = await self.get_distribution(organization_id, month)
        if distribution is None:
            raise NotFoundError("Team pool distribution not found")

        if action == "approve":
            if distribution.status != TeamPoolStatus.PENDING_APPROVAL.value:
                raise InvalidStateError(f"Cannot approve team pool with status: {distribution.status}")
            distribution.status = TeamPoolStatus.APPROVED.value
            distribution.approved_by = user_id
            distribution.approved_at = utcnow()
        else:
            if distribution.status != TeamPoolStatus.APPROVED.value:
                raise InvalidStateError(f"Cannot distribute team pool with status: {distribution.status}")
            distribution.status = TeamPoolStatus.DISTRIBUTED.value
            distribution.distributed_at = utcnow()

        await self.db.commit()
        await self.db.refresh(distribution)
        return distribution
