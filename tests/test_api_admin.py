from leadcrm.models.user import StaffType, UserRole
from tests.conftest import _add_user, identity_headers


class TestTeam:

    async def test_add_member_issues_first_login_otp(self, client, org):
        manager = identity_headers(org["manager"])
        response = await client.post(
            "/api/team",
            json={"phone": "9222222222", "name": "Neel New", "monthly_salary": 18000},
            headers=manager,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user"]["role"] == "sales_rep"
        assert data["user"]["organization_id"] == org["organization"].id
        assert len(data["otp"]) == 6

        login = await client.post("/api/auth/verify-otp", json={"phone": "9222222222", "otp": data["otp"]})
        assert login.json()["data"]["requires_registration"] is False

        members = (await client.get("/api/team", headers=manager)).json()["data"]
        assert "Neel New" in {m["name"] for m in members}

    async def test_duplicate_phone(self, client, org):
        response = await client.post(
            "/api/team", json={"phone": org["rep"].phone, "name": "Copy"}, headers=identity_headers(org["manager"])
        )
        assert response.status_code == 400

    async def test_manager_cannot_create_managers(self, client, org):
        response = await client.post(
            "/api/team",
            json={"phone": "9222222223", "name": "Second Boss", "role": "manager"},
            headers=identity_headers(org["manager"]),
        )
        assert response.status_code == 403

    async def test_sales_rep_cannot_manage_team(self, client, org):
        response = await client.get("/api/team", headers=identity_headers(org["rep"]))
        assert response.status_code == 403
        assert response.json()["error"] == "Permission denied. Required: manage_team"

    async def test_update_and_assign(self, client, org):
        manager = identity_headers(org["manager"])
        response = await client.put(
            f"/api/team/{org['rep'].id}", json={"monthly_salary": 25000, "is_active": False}, headers=manager
        )
        assert response.status_code == 200
        assert response.json()["data"]["monthly_salary"] == 25000.0
        assert response.json()["data"]["is_active"] is False

        response = await client.post(
            "/api/team/assign", json={"user_id": org["rep2"].id, "manager_id": org["manager"].id}, headers=manager
        )
        assert response.json()["data"]["manager_id"] == org["manager"].id

        response = await client.post(
            "/api/team/assign", json={"user_id": org["rep2"].id, "manager_id": org["support"].id}, headers=manager
        )
        assert response.status_code == 400

    async def test_manager_cannot_edit_peer_manager_or_self(self, client, db_session, org):
        peer = await _add_user(
            db_session, org["organization"].id, "9000000009", "Pia Peer", UserRole.MANAGER, StaffType.MANAGER
        )
        await db_session.commit()
        manager = identity_headers(org["manager"])

        response = await client.put(
            f"/api/team/{peer.id}", json={"is_active": False, "monthly_salary": 1}, headers=manager
        )
        assert response.status_code == 403
        assert response.json()["error"] == "Manager cannot manage Manager accounts"

        response = await client.put(
            f"/api/team/{org['manager'].id}", json={"monthly_salary": 999999}, headers=manager
        )
        assert response.status_code == 403

        members = {m["id"]: m for m in (await client.get("/api/team", headers=manager)).json()["data"]}
        assert members[peer.id]["is_active"] is True
        assert members[peer.id]["monthly_salary"] is None


class TestCategories:

    async def test_create_and_list(self, client, org):
        manager = identity_headers(org["manager"])
        response = await client.post("/api/categories", json={"name": "Electric"}, headers=manager)
        assert response.status_code == 200

        response = await client.post("/api/categories", json={"name": "Electric"}, headers=manager)
        assert response.status_code == 400

        names = [c["name"] for c in (await client.get("/api/categories", headers=identity_headers(org["rep"]))).json()["data"]]
        assert names == ["Electric", "Geared"]

    async def test_sales_rep_cannot_create(self, client, org):
        response = await client.post("/api/categories", json={"name": "Kids"}, headers=identity_headers(org["rep"]))
        assert response.status_code == 403


class TestOrganization:

    async def test_read_and_update(self, client, org):
        manager = identity_headers(org["manager"])
        response = await client.put("/api/organization", json={"name": "Pedal Works Ltd"}, headers=manager)
        assert response.status_code == 200

        data = (await client.get("/api/organization", headers=manager)).json()["data"]
        assert data["name"] == "Pedal Works Ltd"
        assert data["contact_number"] == "9876500000"

    async def test_caller_without_organisation(self, client, super_admin):
        response = await client.get("/api/organization", headers=identity_headers(super_admin))
        assert response.status_code == 400
        assert response.json()["error"] == "Organization not found for user"


class TestSuperAdmin:

    async def test_create_organisation_with_manager(self, client, super_admin):
        headers = identity_headers(super_admin)
        response = await client.post(
            "/api/super-admin/organizations",
            json={
                "name": "Spoke & Chain",
                "manager_name": "Dev Manager",
                "manager_phone": "9333333333",
                "manager_pin": "1234",
            },
            headers=headers,
        )
        assert response.status_code == 200
        created = response.json()["data"]
        assert created["manager"]["role"] == "manager"

        manager_headers = {
            "x-user-id": str(created["manager"]["id"]),
            "x-user-role": "manager",
            "x-organization-id": str(created["organization"]["id"]),
        }
        categories = (await client.get("/api/categories", headers=manager_headers)).json()["data"]
        assert len(categories) == 5

        organizations = (await client.get("/api/super-admin/organizations", headers=headers)).json()["data"]
        assert organizations[0]["name"] == "Spoke & Chain"
        assert organizations[0]["user_count"] == 1

        stats = (await client.get("/api/super-admin/stats", headers=headers)).json()["data"]
        assert stats["total_organizations"] == 1
        assert stats["users_by_role"] == {"super_admin": 1, "manager": 1}

    async def test_manager_is_refused(self, client, org):
        response = await client.get("/api/super-admin/organizations", headers=identity_headers(org["manager"]))
        assert response.status_code == 403


async def test_health(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"]["status"] == "connected"
