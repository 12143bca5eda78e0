"""
Multi-tenant security isolation tests.

Tests that verify:
1. Tenant A cannot read or modify Tenant B's users, projects or tasks
2. Cross-tenant access returns 404 (not 403, to avoid leaking existence)
3. List endpoints only ever return the caller's rows
4. tenant_id in request bodies is ignored

Run: pytest backend/test_multitenant_security.py -v
"""

import pytest


@pytest.fixture
def two_tenants(make_tenant, make_user, make_project, make_task):
    acme = make_tenant("acme")
    globex = make_tenant("globex")
    acme_member = make_user(acme, "bob@acme.com")
    globex_member = make_user(globex, "hank@globex.com")
    acme_project = make_project(acme, "Acme Launch")
    globex_project = make_project(globex, "Globex Secret Plan")
    acme_task = make_task(acme, acme_project, "Acme task")
    globex_task = make_task(globex, globex_project, "Globex task")
    return {
        "acme": acme, "globex": globex,
        "acme_member": acme_member, "globex_member": globex_member,
        "acme_project": acme_project, "globex_project": globex_project,
        "acme_task": acme_task, "globex_task": globex_task,
    }


class TestCrossTenantReads:
    def test_project_read_is_404(self, client, two_tenants):
        pid = two_tenants["globex_project"]["id"]
        resp = client.get(f"/projects/{pid}", headers=two_tenants["acme"]["headers"])
        assert resp.status_code == 404
        assert resp.json()["message"] == "Project not found"

    def test_foreign_and_missing_project_look_the_same(self, client, two_tenants):
        headers = two_tenants["acme"]["headers"]
        foreign = client.get(f"/projects/{two_tenants['globex_project']['id']}", headers=headers)
        missing = client.get("/projects/does-not-exist", headers=headers)
        assert foreign.status_code == missing.status_code == 404
        assert foreign.json() == missing.json()

    def test_task_read_is_404_for_member(self, client, two_tenants):
        tid = two_tenants["globex_task"]["id"]
        assert client.get(f"/tasks/{tid}", headers=two_tenants["acme_member"]["headers"]).status_code == 404

    def test_user_read_is_404(self, client, two_tenants):
        uid = two_tenants["globex_member"]["user"]["id"]
        assert client.get(f"/users/{uid}", headers=two_tenants["acme"]["headers"]).status_code == 404

    def test_project_tasks_listing_is_404(self, client, two_tenants):
        pid = two_tenants["globex_project"]["id"]
        assert client.get(f"/projects/{pid}/tasks", headers=two_tenants["acme"]["headers"]).status_code == 404

    def test_other_tenant_record_is_404(self, client, two_tenants):
        tid = two_tenants["globex"]["tenant"]["id"]
        assert client.get(f"/tenants/{tid}", headers=two_tenants["acme"]["headers"]).status_code == 404


class TestCrossTenantWrites:
    def test_update_foreign_project(self, client, two_tenants):
        pid = two_tenants["globex_project"]["id"]
        resp = client.put(f"/projects/{pid}", json={"name": "pwned"}, headers=two_tenants["acme"]["headers"])
        assert resp.status_code == 404

        own = client.get(f"/projects/{pid}", headers=two_tenants["globex"]["headers"])
        assert own.json()["data"]["name"] == "Globex Secret Plan"

    def test_delete_foreign_project(self, client, two_tenants):
        pid = two_tenants["globex_project"]["id"]
        assert client.delete(f"/projects/{pid}", headers=two_tenants["acme"]["headers"]).status_code == 404
        assert client.get(f"/projects/{pid}", headers=two_tenants["globex"]["headers"]).status_code == 200

    def test_delete_foreign_user(self, client, two_tenants):
        uid = two_tenants["globex_member"]["user"]["id"]
        assert client.delete(f"/users/{uid}", headers=two_tenants["acme"]["headers"]).status_code == 404

    def test_claim_foreign_task(self, client, two_tenants):
        tid = two_tenants["globex_task"]["id"]
        resp = client.patch(f"/tasks/{tid}/claim", headers=two_tenants["acme_member"]["headers"])
        assert resp.status_code == 404

    def test_create_task_in_foreign_project(self, client, two_tenants):
        resp = client.post("/tasks", json={"project_id": two_tenants["globex_project"]["id"], "title": "x"},
                           headers=two_tenants["acme"]["headers"])
        assert resp.status_code == 404

    def test_assign_to_foreign_user_rejected(self, client, two_tenants):
        resp = client.post(
            f"/projects/{two_tenants['acme_project']['id']}/tasks",
            json={"title": "x", "assigned_to": two_tenants["globex_member"]["user"]["id"]},
            headers=two_tenants["acme"]["headers"],
        )
        assert resp.status_code == 400

    def test_rename_foreign_tenant(self, client, two_tenants):
        tid = two_tenants["globex"]["tenant"]["id"]
        resp = client.put(f"/tenants/{tid}", json={"name": "pwned"}, headers=two_tenants["acme"]["headers"])
        assert resp.status_code == 404


class TestScopedLists:
    def test_lists_only_contain_own_rows(self, client, two_tenants):
        headers = two_tenants["acme"]["headers"]
        acme_id = two_tenants["acme"]["tenant"]["id"]

        for path in ("/users", "/projects", "/tasks"):
            rows = client.get(path, headers=headers).json()["data"]
            assert rows, path
            assert all(row["tenant_id"] == acme_id for row in rows), path

    def test_my_tasks_open_pool_is_tenant_scoped(self, client, two_tenants):
        data = client.get("/my-tasks", headers=two_tenants["acme_member"]["headers"]).json()["data"]
        assert [t["title"] for t in data["open_tasks"]] == ["Acme task"]
        assert data["my_tasks"] == []

    def test_body_tenant_id_is_ignored(self, client, two_tenants):
        resp = client.post(
            "/projects",
            json={"name": "Smuggled", "tenant_id": two_tenants["globex"]["tenant"]["id"]},
            headers=two_tenants["acme"]["headers"],
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["tenant_id"] == two_tenants["acme"]["tenant"]["id"]

        globex_projects = client.get("/projects", headers=two_tenants["globex"]["headers"]).json()["data"]
        assert "Smuggled" not in [p["name"] for p in globex_projects]


class TestSystemAdminBoundaries:
    def test_system_admin_has_no_tenant_crud(self, client, two_tenants, system_admin):
        assert client.get("/projects", headers=system_admin["headers"]).status_code == 403
        assert client.get("/users", headers=system_admin["headers"]).status_code == 403

    def test_system_admin_reads_any_tenant(self, client, two_tenants, system_admin):
        tid = two_tenants["globex"]["tenant"]["id"]
        resp = client.get(f"/tenants/{tid}", headers=system_admin["headers"])
        assert resp.status_code == 200
        assert resp.json()["data"]["usage"] == {"users": 2, "projects": 1}

    def test_tenant_admin_cannot_list_tenants(self, client, two_tenants):
        assert client.get("/tenants", headers=two_tenants["acme"]["headers"]).status_code == 403
