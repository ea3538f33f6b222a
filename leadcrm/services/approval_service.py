"""
Manager review of monthly incentives.

calculating / pending_review  -> approved | rejected   (approve)
approved                      -> paid                  (mark_paid)

``final_approved_amount`` is written on approval and kept on payment; it is
empty in every other status.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from leadcrm.core.exceptions import InvalidStateError, NotFoundError
from leadcrm.models.monthly_incentive import (
    APPROVABLE_STATUSES,
    INCENTIVE_TRANSITIONS,
    IncentiveStatus,
    MonthlyIncentive,
)
from leadcrm.models.penalty import Penalty, PenaltyStatus
from leadcrm.models.user import User
from leadcrm.services.incentive_calculator import quantize_money, to_decimal
from leadcrm.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

BULK_APPROVE_NOTE = "Bulk approved"


def can_transition(current, target) -> bool:
    try:
        current, target = IncentiveStatus(current), IncentiveStatus(target)
    except ValueError:
        return False
    return target in INCENTIVE_TRANSITIONS[current]


def approved_amount_for(incentive: MonthlyIncentive, final_amount: Optional[Decimal] = None) -> Decimal:
    """Manager override, else the salary-capped amount, else the net incentive."""
    if final_amount is not None:
        return quantize_money(final_amount)
    return quantize_money(incentive.payable_amount)


def apply_review(
    incentive: MonthlyIncentive,
    reviewer_id: int,
    approved: bool,
    review_notes: Optional[str] = None,
    final_amount: Optional[Decimal] = None,
) -> MonthlyIncentive:
    if incentive.status not in APPROVABLE_STATUSES:
        raise InvalidStateError(f"Cannot approve incentive with status: {incentive.status}")

    if approved:
        incentive.status = IncentiveStatus.APPROVED.value
        incentive.final_approved_amount = approved_amount_for(incentive, final_amount)
    else:
        incentive.status = IncentiveStatus.REJECTED.value
        incentive.final_approved_amount = None

    incentive.reviewed_by = reviewer_id
    incentive.reviewed_at = utcnow()
    incentive.review_notes = review_notes
    return incentive


class IncentiveApprovalService:

    @staticmethod
    async def get_org_incentive(db: AsyncSession, organization_id: int, incentive_id: int) -> MonthlyIncentive:
        result = await db.execute(
            select(MonthlyIncentive).where(and_(
                MonthlyIncentive.id == incentive_id,
                MonthlyIncentive.organization_id == organization_id,
            ))
        )
        incentive = result.scalar_one_or_none()
        if incentive is None:
            raise NotFoundError("Incentive not found")
        return incentive

    @staticmethod
    async def approve(
        db: AsyncSession,
        organization_id: int,
        reviewer_id: int,
        incentive_id: int,
        approved: bool,
        review_notes: Optional[str] = None,
        final_amount: Optional[Decimal] = None,
    ) -> MonthlyIncentive:
        incentive = await IncentiveApprovalService.get_org_incentive(db, organization_id, incentive_id)
        apply_review(incentive, reviewer_id, approved, review_notes, final_amount)
        await db.commit()
        await db.refresh(incentive)

        logger.info(
            f"Incentive {incentive.id} {incentive.status} by user {reviewer_id} "
            f"(amount={incentive.final_approved_amount})"
        )
        return incentive

    @staticmethod
    async def bulk_approve(
        db: AsyncSession,
        organization_id: int,
        reviewer_id: int,
        incentive_ids: List[int],
        review_notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        requested = list(dict.fromkeys(incentive_ids))
        result = await db.execute(
            select(MonthlyIncentive).where(and_(
                MonthlyIncentive.id.in_(requested),
                MonthlyIncentive.organization_id == organization_id,
            ))
        )
        found = {incentive.id: incentive for incentive in result.scalars().all()}
        approvable = [found[i] for i in requested if i in found and found[i].status in APPROVABLE_STATUSES]
        if not approvable:
            raise InvalidStateError("No approvable incentives found")

        errors = []
        for incentive_id in requested:
            if incentive_id not in found:
                errors.append({"incentive_id": incentive_id, "error": "Incentive not found"})
            elif found[incentive_id].status not in APPROVABLE_STATUSES:
                errors.append({
                    "incentive_id": incentive_id,
                    "error": f"Cannot approve incentive with status: {found[incentive_id].status}",
                })

        for incentive in approvable:
            apply_review(incentive, reviewer_id, True, review_notes or BULK_APPROVE_NOTE)
        await db.commit()

        total = sum((to_decimal(i.final_approved_amount) for i in approvable), Decimal("0"))
        logger.info(f"Bulk approved {len(approvable)} incentives by user {reviewer_id} (total={total})")
        return {
            "requested": len(requested),
            "approved": len(approvable),
            "errors": errors,
            "total_amount": total,
            "results": [
                {
                    "incentive_id": i.id,
                    "user_id": i.user_id,
                    "month": i.month,
                    "final_approved_amount": i.final_approved_amount,
                }
                for i in approvable
            ],
        }

    @staticmethod
    async def mark_paid(
        db: AsyncSession,
        organization_id: int,
        incentive_ids: List[int],
        payment_reference: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Only approved records move; anything else in the list is skipped."""
        requested = list(dict.fromkeys(incentive_ids))
        result = await db.execute(
            select(MonthlyIncentive).where(and_(
                MonthlyIncentive.id.in_(requested),
                MonthlyIncentive.organization_id == organization_id,
                MonthlyIncentive.status == IncentiveStatus.APPROVED.value,
            ))
        )
        payable = result.scalars().all()
        if not payable:
            raise InvalidStateError("No approved incentives found")

        paid_at = utcnow()
        for incentive in payable:
            incentive.status = IncentiveStatus.PAID.value
            incentive.paid_at = paid_at
            incentive.payment_reference = payment_reference
        await db.commit()

        paid_ids = {i.id for i in payable}
        total = sum((to_decimal(i.final_approved_amount) for i in payable), Decimal("0"))
        logger.info(f"Marked {len(payable)} incentives paid (reference={payment_reference}, total={total})")
        return {
            "marked_paid": len(payable),
            "skipped": [i for i in requested if i not in paid_ids],
            "total_amount": total,
            "payment_reference": payment_reference,
            "paid_at": paid_at,
        }

    @staticmethod
    async def manager_overview(db: AsyncSession, organization_id: int, month: str) -> Dict[str, Any]:
        rows = (await db.execute(
            select(MonthlyIncentive, User.name, User.phone, User.role)
            .join(User, User.id == MonthlyIncentive.user_id)
            .where(and_(
                MonthlyIncentive.organization_id == organization_id,
                MonthlyIncentive.month == month,
            ))
            .order_by(MonthlyIncentive.net_incentive.desc(), MonthlyIncentive.id)
        )).all()

        def as_item(incentive, name, phone, role):
            item = {column.name: getattr(incentive, column.name) for column in MonthlyIncentive.__table__.columns}
            item.pop("breakdown_json", None)
            item.update({"user_name": name, "user_phone": phone, "user_role": role})
            return item

        all_incentives = [as_item(*row) for row in rows]
        pending = sorted(
            (i for i in all_incentives if i["status"] == IncentiveStatus.PENDING_REVIEW.value),
            key=lambda i: to_decimal(i["gross_commission"]),
            reverse=True,
        )

        disputed_rows = (await db.execute(
            select(Penalty, User.name)
            .join(User, User.id == Penalty.user_id)
            .where(and_(
                Penalty.organization_id == organization_id,
                Penalty.status == PenaltyStatus.DISPUTED.value,
            ))
            .order_by(Penalty.disputed_at.desc(), Penalty.id.desc())
        )).all()
        disputed = []
        for penalty, name in disputed_rows:
            item = {column.name: getattr(penalty, column.name) for column in Penalty.__table__.columns}
            item["user_name"] = name
            disputed.append(item)

        zero = Decimal("0")
        by_status = {status.value: 0 for status in IncentiveStatus}
        for item in all_incentives:
            by_status[item["status"]] = by_status.get(item["status"], 0) + 1

        summary = {
            "total_incentives": len(all_incentives),
            "status_counts": by_status,
            "disputed_penalties": len(disputed),
            "total_net_incentive": sum((to_decimal(i["net_incentive"]) for i in all_incentives), zero),
            "total_pending_amount": sum(
                (to_decimal(i["capped_amount"] if i["capped_amount"] is not None else i["net_incentive"])
                 for i in pending),
                zero,
            ),
            "total_approved_amount": sum(
                (to_decimal(i["final_approved_amount"]) for i in all_incentives
                 if i["status"] == IncentiveStatus.APPROVED.value),
                zero,
            ),
            "total_paid_amount": sum(
                (to_decimal(i["final_approved_amount"]) for i in all_incentives
                 if i["status"] == IncentiveStatus.PAID.value),
                zero,
            ),
        }

        return {
            "month": month,
            "pending_approvals": pending,
            "all_incentives": all_incentives,
            "disputed_penalties": disputed,
            "summary": summary,
        }
