"""
Plan limit enforcement tests.

Tests that verify:
1. A free tenant can hold 5 users; the 6th is rejected with 402
2. A free tenant can hold 3 projects; the 4th is rejected with 402
3. Moving a tenant to another plan resets its limits to that plan's defaults
4. Explicit limits from a system admin win over plan defaults

Run: pytest backend/test_quotas.py -v
"""

from backend.entitlements import PLANS, limits_for_plan


def _add_user(client, tenant, n):
    return client.post(
        "/users",
        json={"email": f"user{n}@{tenant['subdomain']}.com", "password": "Passw0rd!", "full_name": f"User {n}"},
        headers=tenant["headers"],
    )


class TestPlanDefaults:
    def test_plan_table(self):
        assert (PLANS["free"].max_users, PLANS["free"].max_projects) == (5, 3)
        assert (PLANS["pro"].max_users, PLANS["pro"].max_projects) == (25, 15)
        assert (PLANS["enterprise"].max_users, PLANS["enterprise"].max_projects) == (100, 50)

    def test_unknown_plan_falls_back_to_free(self):
        assert limits_for_plan("platinum") == PLANS["free"]


class TestUserQuota:
    def test_sixth_user_rejected(self, client, make_tenant):
        acme = make_tenant("acme")
        # The registering admin is user #1
        for n in range(4):
            assert _add_user(client, acme, n).status_code == 201

        resp = _add_user(client, acme, 99)
        assert resp.status_code == 402
        assert resp.json() == {"success": False, "message": "Limit reached for users: 5/5 (free plan)"}

        users = client.get("/users", headers=acme["headers"]).json()["data"]
        assert len(users) == 5

    def test_deleting_a_user_frees_a_slot(self, client, make_tenant):
        acme = make_tenant("acme")
        created = [_add_user(client, acme, n).json()["data"] for n in range(4)]
        assert _add_user(client, acme, 10).status_code == 402

        assert client.delete(f"/users/{created[0]['id']}", headers=acme["headers"]).status_code == 200
        assert _add_user(client, acme, 10).status_code == 201

    def test_quota_is_per_tenant(self, client, make_tenant):
        acme = make_tenant("acme")
        globex = make_tenant("globex")
        for n in range(4):
            _add_user(client, acme, n)
        assert _add_user(client, globex, 1).status_code == 201


class TestProjectQuota:
    def test_fourth_project_rejected(self, client, make_tenant, make_project):
        acme = make_tenant("acme")
        for n in range(3):
            make_project(acme, f"Project {n}")

        resp = client.post("/projects", json={"name": "One too many"}, headers=acme["headers"])
        assert resp.status_code == 402
        assert "3/3" in resp.json()["message"]


class TestPlanChanges:
    def test_upgrade_resets_limits(self, client, make_tenant, system_admin):
        acme = make_tenant("acme")
        resp = client.put(f"/tenants/{acme['tenant']['id']}", json={"plan": "pro"}, headers=system_admin["headers"])
        assert resp.status_code == 200
        tenant = resp.json()["data"]
        assert (tenant["plan"], tenant["max_users"], tenant["max_projects"]) == ("pro", 25, 15)

        for n in range(4):
            assert _add_user(client, acme, n).status_code == 201
        assert _add_user(client, acme, 5).status_code == 201

    def test_explicit_limits_win(self, client, make_tenant, system_admin):
        acme = make_tenant("acme")
        resp = client.put(
            f"/tenants/{acme['tenant']['id']}",
            json={"plan": "enterprise", "max_projects": 7},
            headers=system_admin["headers"],
        )
        tenant = resp.json()["data"]
        assert (tenant["max_users"], tenant["max_projects"]) == (100, 7)

    def test_lowered_limit_blocks_creation(self, client, make_tenant, make_project, system_admin):
        acme = make_tenant("acme")
        make_project(acme, "Only one")
        client.put(f"/tenants/{acme['tenant']['id']}", json={"max_projects": 1}, headers=system_admin["headers"])
        assert client.post("/projects", json={"name": "Second"}, headers=acme["headers"]).status_code == 402
