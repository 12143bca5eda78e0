"""
Tenant user management tests.

Run: pytest backend/test_users.py -v
"""

import pytest


class TestUserAdmin:
    def test_create_and_list(self, client, make_tenant):
        acme = make_tenant("acme")
        resp = client.post(
            "/users",
            json={"email": "  Dana@Acme.com ", "password": "Passw0rd!", "full_name": "Dana", "role": "tenant_admin"},
            headers=acme["headers"],
        )
        assert resp.status_code == 201
        user = resp.json()["data"]
        assert user["email"] == "dana@acme.com"
        assert user["role"] == "tenant_admin"
        assert user["tenant_id"] == acme["tenant"]["id"]
        assert "password_hash" not in user

        emails = [u["email"] for u in client.get("/users", headers=acme["headers"]).json()["data"]]
        assert emails == ["admin@acme.com", "dana@acme.com"]

    def test_duplicate_email_in_tenant(self, client, make_tenant, make_user):
        acme = make_tenant("acme")
        make_user(acme, "bob@acme.com")
        resp = client.post("/users", json={"email": "bob@acme.com", "password": "Passw0rd!", "full_name": "Bob 2"},
                           headers=acme["headers"])
        assert resp.status_code == 409

    def test_cannot_create_system_admin(self, client, make_tenant):
        acme = make_tenant("acme")
        resp = client.post("/users", json={"email": "x@acme.com", "password": "Passw0rd!", "full_name": "X",
                                           "role": "system_admin"}, headers=acme["headers"])
        assert resp.status_code == 400

    @pytest.mark.parametrize("email", ["not-an-email", "bob@acme..com", "bob@.acme.com", "bob@acme.com."])
    def test_invalid_email(self, client, make_tenant, email):
        acme = make_tenant("acme")
        resp = client.post("/users", json={"email": email, "password": "Passw0rd!", "full_name": "X"},
                           headers=acme["headers"])
        assert resp.status_code == 400

    def test_update_role_and_password(self, client, make_tenant, make_user):
        acme = make_tenant("acme")
        bob = make_user(acme, "bob@acme.com")
        resp = client.put(f"/users/{bob['user']['id']}", json={"role": "tenant_admin", "password": "n3w-pass"},
                          headers=acme["headers"])
        assert resp.status_code == 200
        assert resp.json()["data"]["role"] == "tenant_admin"

        login = client.post("/auth/login", json={"email": "bob@acme.com", "password": "n3w-pass",
                                                 "tenant_subdomain": "acme"})
        assert login.status_code == 200
        # Promotion takes effect on the old token too (role is read from the database)
        assert client.post("/projects", json={"name": "Bob's"}, headers=bob["headers"]).status_code == 201


class TestSelfProtection:
    def test_admin_cannot_delete_self(self, client, make_tenant, make_user):
        acme = make_tenant("acme")
        make_user(acme, "other-admin@acme.com", role="tenant_admin")
        resp = client.delete(f"/users/{acme['user']['id']}", headers=acme["headers"])
        assert resp.status_code == 403
        assert client.get(f"/users/{acme['user']['id']}", headers=acme["headers"]).status_code == 200

    def test_admin_cannot_deactivate_self(self, client, make_tenant):
        acme = make_tenant("acme")
        resp = client.put(f"/users/{acme['user']['id']}", json={"active": False}, headers=acme["headers"])
        assert resp.status_code == 400

    def test_admin_deletes_other_user(self, client, make_tenant, make_user, make_project, make_task):
        acme = make_tenant("acme")
        bob = make_user(acme, "bob@acme.com")
        task = make_task(acme, make_project(acme), assigned_to=bob["user"]["id"])

        assert client.delete(f"/users/{bob['user']['id']}", headers=acme["headers"]).status_code == 200
        assert client.get(f"/users/{bob['user']['id']}", headers=acme["headers"]).status_code == 404
        # Assignment is cleared, the task survives
        stored = client.get(f"/tasks/{task['id']}", headers=acme["headers"]).json()["data"]
        assert stored["assigned_to"] is None
        # Deleted user's token no longer works
        assert client.get("/projects", headers=bob["headers"]).status_code == 401


class TestMemberAccess:
    def test_member_reads_but_cannot_manage(self, client, make_tenant, make_user):
        acme = make_tenant("acme")
        bob = make_user(acme, "bob@acme.com")
        assert client.get("/users", headers=bob["headers"]).status_code == 200
        assert client.get(f"/users/{acme['user']['id']}", headers=bob["headers"]).status_code == 200
        resp = client.post("/users", json={"email": "x@acme.com", "password": "Passw0rd!", "full_name": "X"},
                           headers=bob["headers"])
        assert resp.status_code == 403
        assert client.delete(f"/users/{acme['user']['id']}", headers=bob["headers"]).status_code == 403
        assert client.put(f"/users/{bob['user']['id']}", json={"role": "tenant_admin"},
                          headers=bob["headers"]).status_code == 403
