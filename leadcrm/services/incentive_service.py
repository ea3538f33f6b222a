from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
import logging

from leadcrm.core.exceptions import InvalidStateError
from leadcrm.models.category import Category
from leadcrm.models.lead import Lead, LeadStatus
from leadcrm.models.monthly_incentive import MonthlyIncentive, IncentiveStatus
from leadcrm.models.user import User, UserRole
from leadcrm.schemas.incentive import IncentiveBreakdown, IncentiveInputs, PenaltyRecord, SaleRecord
from leadcrm.services.approval_service import can_transition
from leadcrm.services.commission_service import CommissionService
from leadcrm.services.incentive_calculator import calculate_incentive_breakdown, to_decimal
from leadcrm.services.incentive_config_service import IncentiveConfigService
from leadcrm.services.penalty_service import PenaltyService
from leadcrm.services.streak_service import StreakService
from leadcrm.services.target_service import TargetService
from leadcrm.services.user_service import UserService
from leadcrm.utils.date_utils import month_bounds, utcnow

logger = logging.getLogger(__name__)

INCENTIVE_ROLES = (UserRole.SALES_REP.value, UserRole.STAFF.value)
DEFAULT_HISTORY_LIMIT = 12


class IncentiveService:
    """Gathers incentive inputs, runs the calculator and persists the result."""

    @staticmethod
    async def gather_inputs(db: AsyncSession, user: User, month: str) -> IncentiveInputs:
        start, end = month_bounds(month)
        lead_rows = await db.execute(
            select(Lead, Category.name)
            .outerjoin(Category, Category.id == Lead.category_id)
            .where(and_(
                Lead.sales_rep_id == user.id,
                Lead.status == LeadStatus.WIN.value,
                Lead.created_at >= start,
                Lead.created_at < end,
            ))
            .order_by(Lead.created_at, Lead.id)
        )
        win_leads = [
            SaleRecord(
                lead_id=lead.id,
                invoice_no=lead.invoice_no,
                customer_name=lead.customer_name,
                category_id=lead.category_id,
                category_name=category_name,
                sale_price=lead.sale_price,
                commission_rate_applied=lead.commission_rate_applied,
                commission_amount=lead.commission_amount,
                review_status=lead.review_status,
                created_at=lead.created_at,
            )
            for lead, category_name in lead_rows.all()
        ]

        penalties = [
            PenaltyRecord(
                id=p.id,
                penalty_type=p.penalty_type,
                penalty_percentage=p.penalty_percentage,
                description=p.description,
                incident_date=p.incident_date,
            )
            for p in await PenaltyService(db).counted_penalties(user.id, month)
        ]

        target = await TargetService(db).get_target(user.id, month)
        streak_days = await StreakService(db).current_streak_days(user.id, utcnow().date())

        return IncentiveInputs(
            user_id=user.id,
            month=month,
            win_leads=win_leads,
            streak_days=streak_days,
            penalties=penalties,
            target_amount=target.target_amount if target else None,
            monthly_salary=user.monthly_salary,
        )

    @staticmethod
    async def calculate(
        db: AsyncSession,
        organization_id: int,
        user_id: int,
        month: str,
    ) -> Tuple[User, IncentiveBreakdown]:
        """Projection for (user, month). Nothing is written."""
        user = await UserService(db).get_org_user(organization_id, user_id)
        inputs = await IncentiveService.gather_inputs(db, user, month)
        rules = await IncentiveConfigService(db).get_rules(organization_id)
        commission_rules = await CommissionService(db).active_rules(organization_id)
        return user, calculate_incentive_breakdown(inputs, rules, commission_rules)

    @staticmethod
    async def get_incentive(db: AsyncSession, user_id: int, month: str) -> Optional[MonthlyIncentive]:
        result = await db.execute(
            select(MonthlyIncentive).where(and_(
                MonthlyIncentive.user_id == user_id,
                MonthlyIncentive.month == month,
            ))
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def save_calculation(
        db: AsyncSession,
        user: User,
        month: str,
        breakdown: IncentiveBreakdown,
        status: IncentiveStatus = IncentiveStatus.CALCULATING,
    ) -> MonthlyIncentive:
        """Upsert on (user, month).

        Approved and paid records are closed. A rejected record goes back
        into the workflow with its previous review cleared.
        """
        incentive = await IncentiveService.get_incentive(db, user.id, month)
        if incentive is None:
            incentive = MonthlyIncentive(user_id=user.id, organization_id=user.organization_id, month=month)
            db.add(incentive)
        elif not can_transition(incentive.status, status):
            raise InvalidStateError(f"Cannot recalculate incentive with status: {incentive.status}")

        if incentive.status == IncentiveStatus.REJECTED.value:
            incentive.reviewed_by = None
            incentive.reviewed_at = None
            incentive.review_notes = None

        summary = breakdown.summary
        incentive.gross_commission = summary.gross_commission
        incentive.streak_bonus = summary.streak_bonus
        incentive.review_bonus = summary.review_bonus
        incentive.penalty_count = len(breakdown.penalties)
        incentive.penalty_percentage = summary.total_penalty_percentage
        incentive.penalty_amount = summary.penalty_amount
        incentive.net_incentive = summary.net_before_cap
        incentive.user_monthly_salary = summary.salary_cap
        incentive.salary_cap_applied = summary.cap_applied
        incentive.capped_amount = summary.final_amount if summary.cap_applied else None
        incentive.status = status.value
        incentive.final_approved_amount = None
        incentive.submitted_at = utcnow() if status == IncentiveStatus.PENDING_REVIEW else None
        incentive.breakdown_json = breakdown.model_dump(mode="json")

        await db.commit()
        await db.refresh(incentive)
        return incentive

    @staticmethod
    async def history(
        db: AsyncSession,
        organization_id: int,
        user_id: int,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> Dict[str, Any]:
        result = await db.execute(
            select(MonthlyIncentive)
            .where(and_(
                MonthlyIncentive.organization_id == organization_id,
                MonthlyIncentive.user_id == user_id,
            ))
            .order_by(MonthlyIncentive.month.desc())
            .limit(limit)
        )
        records = result.scalars().all()

        zero = Decimal("0")
        totals = {
            "months": len(records),
            "total_gross_commission": sum((to_decimal(r.gross_commission) for r in records), zero),
            "total_bonuses": sum((to_decimal(r.streak_bonus) + to_decimal(r.review_bonus) for r in records), zero),
            "total_penalties": sum((to_decimal(r.penalty_amount) for r in records), zero),
            "total_paid": sum(
                (to_decimal(r.final_approved_amount) for r in records if r.status == IncentiveStatus.PAID.value),
                zero,
            ),
        }
        return {"records": records, "totals": totals}

    @staticmethod
    async def finalize_month(db: AsyncSession, organization_id: int, month: str) -> Dict[str, Any]:
        """Submit every sales rep and staff member's incentive for review.

        Per-user failures are reported, not raised.
        """
        users = await UserService(db).list_org_users(organization_id, roles=list(INCENTIVE_ROLES))
        # plain values survive a rollback, ORM instances do not
        members = [(u.id, u.name) for u in users]
        rules = await IncentiveConfigService(db).get_rules(organization_id)
        commission_rules = await CommissionService(db).active_rules(organization_id)

        results: List[Dict[str, Any]] = []
        for user_id, user_name in members:
            try:
                user = await UserService(db).get_user_by_id(user_id)
                inputs = await IncentiveService.gather_inputs(db, user, month)
                breakdown = calculate_incentive_breakdown(inputs, rules, commission_rules)
                incentive = await IncentiveService.save_calculation(
                    db, user, month, breakdown, IncentiveStatus.PENDING_REVIEW
                )
                results.append({
                    "user_id": user_id,
                    "user_name": user_name,
                    "success": True,
                    "incentive_id": incentive.id,
                    "net_incentive": incentive.net_incentive,
                    "final_amount": breakdown.summary.final_amount,
                })
            except InvalidStateError as e:
                results.append({"user_id": user_id, "user_name": user_name, "success": False, "error": e.message})
            except Exception as e:
                await db.rollback()
                logger.error(f"Finalizing incentive for user {user_id} ({month}) failed: {e}")
                results.append({"user_id": user_id, "user_name": user_name, "success": False, "error": str(e)})

        finalized = sum(1 for r in results if r["success"])
        logger.info(f"Finalized {finalized}/{len(results)} incentives for organization {organization_id}, {month}")
        return {
            "month": month,
            "processed": len(results),
            "finalized": finalized,
            "failed": len(results) - finalized,
            "results": results,
        }
