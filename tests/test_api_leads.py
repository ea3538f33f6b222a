from tests.conftest import identity_headers


def win_payload(category_id, invoice="INV-1001", price=50000, **extra):
    payload = {
        "status": "win",
        "customer_name": "Asha Verma",
        "customer_phone": "9123456780",
        "category_id": category_id,
        "invoice_no": invoice,
        "sale_price": price,
    }
    payload.update(extra)
    return payload


def lost_payload(category_id, **extra):
    payload = {
        "status": "lost",
        "customer_name": "Kiran",
        "customer_phone": "9123456781",
        "category_id": category_id,
        "deal_size": 15000,
        "model_name": "Trail 300",
        "purchase_timeline": "7_days",
        "not_today_reason": "price_high",
    }
    payload.update(extra)
    return payload


async def test_win_lead_stores_commission(client, org):
    headers = identity_headers(org["rep"])
    response = await client.post("/api/leads", json=win_payload(org["category"].id), headers=headers)
    assert response.status_code == 200
    lead = response.json()["data"]
    assert lead["status"] == "win"
    assert lead["review_status"] == "yet_to_review"
    # no commission table yet: fallback rate
    assert lead["commission_rate_applied"] == 0.8
    assert lead["commission_amount"] == 400.0
    assert lead["sales_rep_id"] == org["rep"].id


async def test_win_lead_cannot_be_created_as_reviewed(client, org):
    response = await client.post(
        "/api/leads",
        json=win_payload(org["category"].id, review_status="reviewed"),
        headers=identity_headers(org["rep"]),
    )
    assert response.status_code == 200
    assert response.json()["data"]["review_status"] == "yet_to_review"


async def test_win_lead_uses_commission_table(client, org):
    manager_headers = identity_headers(org["manager"])
    response = await client.post(
        "/api/earn/commission-rates",
        json={"category_name": "Geared", "commission_percentage": 1.0, "multiplier": 1.5},
        headers=manager_headers,
    )
    assert response.status_code == 200

    response = await client.post(
        "/api/leads", json=win_payload(org["category"].id, price=60000), headers=identity_headers(org["rep"])
    )
    assert response.json()["data"]["commission_amount"] == 900.0


async def test_duplicate_invoice_is_rejected(client, org):
    headers = identity_headers(org["rep"])
    await client.post("/api/leads", json=win_payload(org["category"].id), headers=headers)

    check = await client.post("/api/leads/check-invoice", json={"invoice_no": "INV-1001"}, headers=headers)
    assert check.json()["data"]["exists"] is True

    response = await client.post("/api/leads", json=win_payload(org["category"].id), headers=headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Invoice number already exists"


async def test_win_lead_validation(client, org):
    headers = identity_headers(org["rep"])
    response = await client.post(
        "/api/leads", json=win_payload(org["category"].id, price=0), headers=headers
    )
    assert response.status_code == 400
    assert "Sale price must be greater than 0" in response.json()["error"]

    response = await client.post(
        "/api/leads", json=win_payload(org["category"].id, invoice="A1"), headers=headers
    )
    assert response.status_code == 400


async def test_lost_lead_today_drops_reason(client, org):
    response = await client.post(
        "/api/leads",
        json=lost_payload(org["category"].id, purchase_timeline="today"),
        headers=identity_headers(org["rep"]),
    )
    assert response.status_code == 200
    lead = response.json()["data"]
    assert lead["purchase_timeline"] == "today"
    assert lead["not_today_reason"] is None
    assert lead["commission_amount"] is None


async def test_lost_lead_requires_deal_size(client, org):
    response = await client.post(
        "/api/leads",
        json=lost_payload(org["category"].id, deal_size=0),
        headers=identity_headers(org["rep"]),
    )
    assert response.status_code == 400
    assert "Deal size" in response.json()["error"]


async def test_category_of_another_organisation_is_not_found(client, org, other_org, db_session):
    from leadcrm.models.category import Category

    foreign = Category(organization_id=other_org["organization"].id, name="Kids")
    db_session.add(foreign)
    await db_session.commit()

    response = await client.post(
        "/api/leads", json=lost_payload(foreign.id), headers=identity_headers(org["rep"])
    )
    assert response.status_code == 404


async def test_lead_creation_starts_a_streak(client, org):
    headers = identity_headers(org["rep"])
    await client.post("/api/leads", json=lost_payload(org["category"].id), headers=headers)

    response = await client.get("/api/earn/streak", headers=headers)
    assert response.status_code == 200
    streak = response.json()["data"]
    assert streak["current_streak"] == 1
    assert streak["longest_streak"] == 1
    assert streak["bonus_tier"] is None


async def test_my_leads_and_team_leads(client, org):
    rep_headers = identity_headers(org["rep"])
    await client.post("/api/leads", json=win_payload(org["category"].id), headers=rep_headers)
    await client.post("/api/leads", json=lost_payload(org["category"].id), headers=identity_headers(org["rep2"]))

    mine = (await client.get("/api/leads/my-leads", headers=rep_headers)).json()["data"]
    assert len(mine) == 1
    assert mine[0]["category_name"] == "Geared"

    response = await client.get("/api/admin/leads", headers=rep_headers)
    assert response.status_code == 403

    team = (await client.get("/api/admin/leads", headers=identity_headers(org["manager"]))).json()["data"]
    assert len(team) == 2
    assert {lead["sales_rep_name"] for lead in team} == {"Ravi Rep", "Sana Rep"}

    wins = (await client.get(
        "/api/admin/leads", params={"status": "win"}, headers=identity_headers(org["manager"])
    )).json()["data"]
    assert [lead["status"] for lead in wins] == ["win"]


async def test_review_status_update_permissions(client, org):
    created = await client.post(
        "/api/leads", json=win_payload(org["category"].id), headers=identity_headers(org["rep"])
    )
    lead_id = created.json()["data"]["id"]
    url = f"/api/admin/leads/{lead_id}/review-status"

    response = await client.patch(url, json={"review_status": "reviewed"}, headers=identity_headers(org["rep2"]))
    assert response.status_code == 403

    response = await client.patch(url, json={"review_status": "reviewed"}, headers=identity_headers(org["rep"]))
    assert response.status_code == 200
    assert response.json()["data"]["review_status"] == "reviewed"

    response = await client.patch(url, json={"review_status": "pending"}, headers=identity_headers(org["manager"]))
    assert response.status_code == 200


async def test_delete_lead_is_scoped_to_the_organisation(client, org, other_org):
    created = await client.post(
        "/api/leads", json=lost_payload(org["category"].id), headers=identity_headers(org["rep"])
    )
    lead_id = created.json()["data"]["id"]

    response = await client.delete(f"/api/admin/leads/{lead_id}", headers=identity_headers(other_org["manager"]))
    assert response.status_code == 404

    response = await client.delete(f"/api/admin/leads/{lead_id}", headers=identity_headers(org["manager"]))
    assert response.status_code == 200
    assert (await client.get("/api/leads/my-leads", headers=identity_headers(org["rep"]))).json()["data"] == []
