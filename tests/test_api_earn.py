from tests.conftest import identity_headers
from leadcrm.utils.date_utils import current_month


async def _sell(client, org, rep_key="rep", invoice="INV-2001", price=100000, reviewed=True):
    headers = identity_headers(org[rep_key])
    response = await client.post(
        "/api/leads",
        json={
            "status": "win",
            "customer_name": "Asha Verma",
            "customer_phone": "9123456780",
            "category_id": org["category"].id,
            "invoice_no": invoice,
            "sale_price": price,
        },
        headers=headers,
    )
    lead_id = response.json()["data"]["id"]
    if reviewed:
        await client.patch(
            f"/api/admin/leads/{lead_id}/review-status", json={"review_status": "reviewed"}, headers=headers
        )
    return lead_id


async def _set_target(client, org, amount, rep_key="rep"):
    return await client.post(
        "/api/earn/targets",
        json={"user_id": org[rep_key].id, "month": current_month(), "target_amount": amount},
        headers=identity_headers(org["manager"]),
    )


class TestIncentiveConfig:

    async def test_defaults_are_created_lazily(self, client, org):
        response = await client.get("/api/earn/incentive-config", headers=identity_headers(org["rep"]))
        assert response.status_code == 200
        config = response.json()["data"]
        assert config["streak_bonus_7_days"] == 50.0
        assert config["salary_cap_enabled"] is True

    async def test_team_pool_percentages_must_total_hundred(self, client, org):
        headers = identity_headers(org["manager"])
        response = await client.put(
            "/api/earn/incentive-config", json={"team_pool_top_performer": 30}, headers=headers
        )
        assert response.status_code == 400
        assert "must total 100" in response.json()["error"]

        response = await client.put(
            "/api/earn/incentive-config",
            json={"team_pool_top_performer": 30, "team_pool_others": 10, "unknown_key": 5},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["team_pool_top_performer"] == 30.0

    async def test_sales_rep_cannot_change_config(self, client, org):
        response = await client.put(
            "/api/earn/incentive-config", json={"review_bonus_per_review": 20}, headers=identity_headers(org["rep"])
        )
        assert response.status_code == 403


class TestCommissionRates:

    async def test_seed_update_and_deactivate(self, client, org):
        headers = identity_headers(org["manager"])
        seeded = (await client.post("/api/earn/commission-rates/seed", headers=headers)).json()["data"]
        by_name = {rate["category_name"]: rate for rate in seeded}
        assert len(by_name) == 8
        assert by_name["Electric"]["multiplier"] == 1.5
        assert by_name["Kids"]["commission_percentage"] == 1.0

        kids = by_name["Kids"]
        response = await client.put(
            "/api/earn/commission-rates", json={"id": kids["id"], "commission_percentage": 1.2}, headers=headers
        )
        assert response.json()["data"]["commission_percentage"] == 1.2

        response = await client.delete("/api/earn/commission-rates", params={"id": kids["id"]}, headers=headers)
        assert response.status_code == 200
        active = (await client.get("/api/earn/commission-rates", headers=headers)).json()["data"]
        assert "Kids" not in {rate["category_name"] for rate in active}

    async def test_multiplier_bounds(self, client, org):
        response = await client.post(
            "/api/earn/commission-rates",
            json={"category_name": "Kids", "commission_percentage": 1, "multiplier": 11},
            headers=identity_headers(org["manager"]),
        )
        assert response.status_code == 400


class TestTargets:

    async def test_set_target_and_progress(self, client, org):
        response = await _set_target(client, org, 150000)
        assert response.status_code == 200
        assert response.json()["data"]["achieved_amount"] == 0.0

        await _sell(client, org, price=60000)
        progress = (await client.get("/api/earn/targets/progress", headers=identity_headers(org["rep"]))).json()["data"]
        assert progress["has_target"] is True
        assert progress["target_amount"] == 150000.0
        assert progress["achieved_amount"] == 60000.0
        assert progress["achievement_percentage"] == 40.0
        assert progress["qualifies_for_incentive"] is False
        assert progress["remaining_amount"] == 90000.0
        assert progress["sales_count"] == 1
        assert len(progress["recent_sales"]) == 1

        targets = (await client.get("/api/earn/targets", headers=identity_headers(org["rep"]))).json()["data"]
        assert len(targets) == 1
        assert targets[0]["achieved_amount"] == 60000.0

    async def test_achievement_is_capped(self, client, org):
        await _set_target(client, org, 1000)
        await _sell(client, org, price=5000)
        progress = (await client.get("/api/earn/targets/progress", headers=identity_headers(org["rep"]))).json()["data"]
        assert progress["achievement_percentage"] == 200.0

    async def test_zero_target_falls_back_to_default_like_the_calculator(self, client, org):
        await _set_target(client, org, 0)
        await _sell(client, org, price=50000)
        rep = identity_headers(org["rep"])

        progress = (await client.get("/api/earn/targets/progress", headers=rep)).json()["data"]
        summary = (await client.get("/api/earn/incentives", headers=rep)).json()["data"]["breakdown"]["summary"]

        assert progress["target_amount"] == 1000000.0
        assert progress["target_amount"] == summary["target_amount"]
        assert progress["qualifies_for_incentive"] is False
        assert progress["qualifies_for_incentive"] == summary["qualifies_for_incentive"]
        assert summary["final_amount"] == 0.0

    async def test_reps_cannot_read_each_others_targets(self, client, org):
        response = await client.get(
            "/api/earn/targets/progress", params={"user_id": org["rep2"].id}, headers=identity_headers(org["rep"])
        )
        assert response.status_code == 403

    async def test_target_for_foreign_user_is_not_found(self, client, org, other_org):
        response = await client.post(
            "/api/earn/targets",
            json={"user_id": other_org["manager"].id, "month": current_month(), "target_amount": 1000},
            headers=identity_headers(org["manager"]),
        )
        assert response.status_code == 404

    async def test_invalid_month(self, client, org):
        response = await client.post(
            "/api/earn/targets",
            json={"user_id": org["rep"].id, "month": "2024-13", "target_amount": 1000},
            headers=identity_headers(org["manager"]),
        )
        assert response.status_code == 400
        assert "YYYY-MM" in response.json()["error"]


class TestPenalties:

    async def _issue(self, client, org, **payload):
        payload.setdefault("user_id", org["rep"].id)
        return await client.post("/api/earn/penalties", json=payload, headers=identity_headers(org["manager"]))

    async def test_percentage_comes_from_config(self, client, org):
        response = await self._issue(client, org, penalty_type="low_compliance", measured_value=93)
        assert response.status_code == 200
        penalty = response.json()["data"]
        assert penalty["penalty_percentage"] == 30.0
        assert penalty["status"] == "active"
        assert penalty["month"] == current_month()

    async def test_threshold_met_is_rejected(self, client, org):
        response = await self._issue(client, org, penalty_type="high_error_rate", measured_value=0.5)
        assert response.status_code == 400

    async def test_dispute_and_waive(self, client, org):
        penalty_id = (await self._issue(client, org, penalty_type="late_arrival")).json()["data"]["id"]
        url = f"/api/earn/penalties/{penalty_id}"

        response = await client.put(
            url, json={"action": "dispute", "dispute_reason": "Traffic"}, headers=identity_headers(org["rep2"])
        )
        assert response.status_code == 403

        response = await client.put(url, json={"action": "dispute"}, headers=identity_headers(org["rep"]))
        assert response.status_code == 400

        response = await client.put(
            url, json={"action": "dispute", "dispute_reason": "Traffic"}, headers=identity_headers(org["rep"])
        )
        assert response.json()["data"]["status"] == "disputed"

        response = await client.put(
            url, json={"action": "resolve", "resolution": "waived"}, headers=identity_headers(org["rep"])
        )
        assert response.status_code == 403

        response = await client.put(
            url,
            json={"action": "resolve", "resolution": "waived", "resolution_notes": "Verified"},
            headers=identity_headers(org["manager"]),
        )
        resolved = response.json()["data"]
        assert resolved["status"] == "waived"
        assert resolved["resolved_by"] == org["manager"].id

    async def test_reps_only_see_their_own(self, client, org):
        await self._issue(client, org, penalty_type="late_arrival")
        await self._issue(client, org, user_id=org["rep2"].id, penalty_type="late_arrival")

        own = (await client.get(
            "/api/earn/penalties", params={"user_id": org["rep2"].id}, headers=identity_headers(org["rep"])
        )).json()["data"]
        assert [p["user_id"] for p in own] == [org["rep"].id]

        everyone = (await client.get("/api/earn/penalties", headers=identity_headers(org["manager"]))).json()["data"]
        assert len(everyone) == 2

    async def test_disputed_penalty_stops_counting(self, client, org):
        await _set_target(client, org, 1000)
        await _sell(client, org)
        penalty_id = (await self._issue(client, org, penalty_type="unauthorized_absence")).json()["data"]["id"]

        headers = identity_headers(org["rep"])
        before = (await client.get("/api/earn/incentives", headers=headers)).json()["data"]["breakdown"]
        assert before["summary"]["total_penalty_percentage"] == 10.0

        await client.put(
            f"/api/earn/penalties/{penalty_id}", json={"action": "dispute", "dispute_reason": "Was on leave"},
            headers=headers,
        )
        after = (await client.get("/api/earn/incentives", headers=headers)).json()["data"]["breakdown"]
        assert after["summary"]["total_penalty_percentage"] == 0.0


class TestIncentivesAndApproval:

    async def test_projection(self, client, org):
        await _set_target(client, org, 50000)
        await _sell(client, org, price=100000)
        await _sell(client, org, invoice="INV-2002", price=20000, reviewed=False)

        response = await client.get("/api/earn/incentives", headers=identity_headers(org["rep"]))
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["saved"] is None
        summary = data["breakdown"]["summary"]
        assert summary["total_sales"] == 120000.0
        assert summary["qualified_sales_count"] == 1
        # 0.8 % of the reviewed sale plus one review bonus
        assert summary["gross_commission"] == 800.0
        assert summary["review_bonus"] == 10.0
        assert summary["final_amount"] == 810.0

        current = (await client.get("/api/earn/incentives/my-current", headers=identity_headers(org["rep"]))).json()
        assert current["data"]["breakdown"]["summary"]["final_amount"] == 810.0

    async def test_reps_cannot_calculate_for_others(self, client, org):
        response = await client.post(
            "/api/earn/incentives", json={"user_id": org["rep2"].id}, headers=identity_headers(org["rep"])
        )
        assert response.status_code == 403

    async def test_finalize_approve_and_pay(self, client, org):
        await _set_target(client, org, 50000)
        await _sell(client, org, price=100000)
        manager = identity_headers(org["manager"])
        month = current_month()

        response = await client.post("/api/earn/incentives/finalize", json={"month": month}, headers=manager)
        assert response.status_code == 200
        result = response.json()["data"]
        assert result["processed"] == 3
        assert result["failed"] == 0

        overview = (await client.get("/api/earn/manager", params={"month": month}, headers=manager)).json()["data"]
        assert len(overview["pending_approvals"]) == 3
        assert overview["pending_approvals"][0]["user_id"] == org["rep"].id
        assert overview["summary"]["status_counts"]["pending_review"] == 3
        incentive_id = overview["pending_approvals"][0]["id"]

        response = await client.post(
            "/api/earn/manager/approve",
            json={"incentive_id": incentive_id, "approved": True, "final_amount": 750},
            headers=manager,
        )
        assert response.status_code == 200
        assert response.json()["data"]["final_approved_amount"] == 750.0

        response = await client.post(
            "/api/earn/manager/approve", json={"incentive_id": incentive_id, "approved": True}, headers=manager
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Cannot approve incentive with status: approved"

        response = await client.post(
            "/api/earn/manager/mark-paid",
            json={"incentive_ids": [incentive_id], "payment_reference": "NEFT-77"},
            headers=manager,
        )
        assert response.status_code == 200
        assert response.json()["data"]["total_amount"] == 750.0

        history = (await client.get("/api/earn/incentives/history", headers=identity_headers(org["rep"]))).json()
        records = history["data"]["records"]
        assert [r["status"] for r in records] == ["paid"]
        assert history["data"]["totals"]["total_paid"] == 750.0

        response = await client.post("/api/earn/incentives", json={}, headers=identity_headers(org["rep"]))
        assert response.status_code == 400
        assert response.json()["error"] == "Cannot recalculate incentive with status: paid"

    async def test_approved_must_be_boolean(self, client, org):
        response = await client.post(
            "/api/earn/manager/approve",
            json={"incentive_id": 1, "approved": "yes"},
            headers=identity_headers(org["manager"]),
        )
        assert response.status_code == 400

    async def test_bulk_approve_without_approvable_records(self, client, org):
        response = await client.post(
            "/api/earn/manager/bulk-approve", json={"incentive_ids": [12345]}, headers=identity_headers(org["manager"])
        )
        assert response.status_code == 400
        assert response.json()["error"] == "No approvable incentives found"

    async def test_sales_rep_cannot_approve(self, client, org):
        response = await client.post(
            "/api/earn/manager/approve",
            json={"incentive_id": 1, "approved": True},
            headers=identity_headers(org["rep"]),
        )
        assert response.status_code == 403


class TestTeamPoolApi:

    async def test_calculate_approve_distribute(self, client, org):
        await _sell(client, org, price=40000)
        manager = identity_headers(org["manager"])
        month = current_month()

        response = await client.post(
            "/api/earn/team-pool", json={"month": month, "total_pool_amount": 10000}, headers=manager
        )
        assert response.status_code == 200
        pool = response.json()["data"]
        assert pool["status"] == "pending_approval"
        assert pool["distribution_json"]["performers"][0]["amount"] == 2000.0

        fetched = (await client.get("/api/earn/team-pool", params={"month": month}, headers=manager)).json()["data"]
        assert fetched["distribution"]["id"] == pool["id"]
        assert fetched["rules"]["top_performer"] == 20.0

        response = await client.put("/api/earn/team-pool", json={"month": month, "action": "distribute"}, headers=manager)
        assert response.status_code == 400
        response = await client.put("/api/earn/team-pool", json={"month": month, "action": "approve"}, headers=manager)
        assert response.json()["data"]["status"] == "approved"
        response = await client.put("/api/earn/team-pool", json={"month": month, "action": "distribute"}, headers=manager)
        assert response.json()["data"]["status"] == "distributed"

    async def test_pool_amount_must_be_positive(self, client, org):
        response = await client.post(
            "/api/earn/team-pool",
            json={"month": current_month(), "total_pool_amount": 0},
            headers=identity_headers(org["manager"]),
        )
        assert response.status_code == 400
