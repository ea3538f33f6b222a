from decimal import Decimal

import pytest

from leadcrm.core.exceptions import InvalidStateError, NotFoundError
from leadcrm.models.lead import Lead
from leadcrm.schemas.incentive import IncentiveRules
from leadcrm.services.team_pool_service import TeamPoolService, build_distribution
from leadcrm.utils.date_utils import current_month, utcnow

D = Decimal


def member(user_id, sales="0", role="sales_rep", staff_type="sales"):
    return {
        "user_id": user_id,
        "user_name": f"User {user_id}",
        "role": role,
        "staff_type": staff_type,
        "total_sales": D(sales),
    }


def test_distribution_shares():
    members = [
        member(1, "50000"),
        member(2, "90000"),
        member(3, "70000"),
        member(4, "10000"),
        member(5, "20000"),
        member(6, "0"),
        member(7, role="manager", staff_type="manager"),
        member(8, role="staff", staff_type="support"),
        member(9, role="staff", staff_type="support"),
    ]
    result = build_distribution(D("10000"), members, IncentiveRules())

    assert [p["user_id"] for p in result["performers"]] == [2, 3, 1]
    assert [p["amount"] for p in result["performers"]] == [D("2000.00"), D("1200.00"), D("800.00")]
    assert result["manager"]["user_id"] == 7
    assert result["manager"]["amount"] == D("2000.00")
    assert [s["amount"] for s in result["support_staff"]] == [D("1000.00"), D("1000.00")]
    # ranks four and five split the others share, the rep without sales gets nothing
    assert {o["user_id"]: o["amount"] for o in result["others"]} == {5: D("1000.00"), 4: D("1000.00")}
    assert result["allocated_amount"] == D("10000.00")
    assert result["unallocated_amount"] == D("0.00")


def test_missing_recipients_leave_shares_unallocated():
    result = build_distribution(D("1000"), [member(1, "5000")], IncentiveRules())
    assert len(result["performers"]) == 1
    assert result["manager"] is None
    assert result["support_staff"] == []
    assert result["others"] == []
    assert result["allocated_amount"] == D("200.00")
    assert result["unallocated_amount"] == D("800.00")


def test_ties_rank_by_user_id():
    result = build_distribution(D("100"), [member(5, "100"), member(3, "100")], IncentiveRules())
    assert [p["user_id"] for p in result["performers"]] == [3, 5]


async def test_pool_lifecycle(db_session, org):
    org_id = org["organization"].id
    month = current_month()
    db_session.add(Lead(
        organization_id=org_id,
        sales_rep_id=org["rep"].id,
        category_id=org["category"].id,
        customer_name="Asha",
        customer_phone="9123456780",
        status="win",
        sale_price=D("30000"),
        invoice_no="INV-001",
        review_status="reviewed",
        created_at=utcnow(),
    ))
    await db_session.commit()

    service = TeamPoolService(db_session)
    with pytest.raises(NotFoundError):
        await service.apply_action(org_id, month, "approve", org["manager"].id)

    pool = await service.calculate(org_id, month, D("5000"), "Festival month")
    assert pool.status == "pending_approval"
    performers = pool.distribution_json["performers"]
    assert [p["user_id"] for p in performers] == [org["rep"].id]
    assert pool.distribution_json["manager"]["user_id"] == org["manager"].id
    assert pool.distribution_json["support_staff"][0]["user_id"] == org["support"].id

    recalculated = await service.calculate(org_id, month, D("6000"))
    assert recalculated.id == pool.id
    assert recalculated.total_pool_amount == D("6000.00")

    with pytest.raises(InvalidStateError, match="Cannot distribute team pool with status: pending_approval"):
        await service.apply_action(org_id, month, "distribute", org["manager"].id)

    approved = await service.apply_action(org_id, month, "approve", org["manager"].id)
    assert approved.status == "approved"
    assert approved.approved_by == org["manager"].id

    with pytest.raises(InvalidStateError):
        await service.calculate(org_id, month, D("7000"))

    distributed = await service.apply_action(org_id, month, "distribute", org["manager"].id)
    assert distributed.status == "distributed"
    assert distributed.distributed_at is not None
