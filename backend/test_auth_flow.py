"""
Authentication flow tests.

Tests that verify:
1. Tenant registration signs the new admin in
2. Login by tenant subdomain, and the "system" identity space
3. Unknown email and wrong password are indistinguishable
4. Missing / invalid / expired tokens are rejected with 401
5. Inactive users and suspended tenants are rejected with 403

Run: pytest backend/test_auth_flow.py -v
"""

from datetime import datetime, timedelta, timezone

import jwt

from backend import auth_context
from backend.config import ALGORITHM, SECRET_KEY


def _login(client, email, password, subdomain=None):
    body = {"email": email, "password": password}
    if subdomain is not None:
        body["tenant_subdomain"] = subdomain
    return client.post("/auth/login", json=body)


class TestRegistration:
    def test_register_creates_free_tenant_and_admin(self, client, make_tenant):
        acme = make_tenant("acme")
        assert acme["tenant"]["subdomain"] == "acme"
        assert acme["tenant"]["plan"] == "free"
        assert acme["tenant"]["max_users"] == 5
        assert acme["tenant"]["max_projects"] == 3
        assert acme["user"]["role"] == "tenant_admin"
        assert acme["user"]["tenant_id"] == acme["tenant"]["id"]
        assert "password_hash" not in acme["user"]

        me = client.get("/auth/me", headers=acme["headers"])
        assert me.status_code == 200
        assert me.json()["data"]["user"]["email"] == "admin@acme.com"
        assert me.json()["data"]["tenant"]["subdomain"] == "acme"

    def test_duplicate_subdomain_conflicts(self, client, make_tenant):
        make_tenant("acme")
        resp = client.post("/auth/register-tenant", json={
            "tenant_name": "Other", "subdomain": "ACME", "email": "x@other.com",
            "password": "Passw0rd!", "full_name": "X",
        })
        assert resp.status_code == 409
        assert resp.json() == {"success": False, "message": "Subdomain already taken"}

    def test_reserved_subdomain_rejected(self, client):
        resp = client.post("/auth/register-tenant", json={
            "tenant_name": "Sneaky", "subdomain": "system", "email": "a@b.com",
            "password": "Passw0rd!", "full_name": "A",
        })
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    def test_malformed_admin_email_rejected(self, client):
        resp = client.post("/auth/register-tenant", json={
            "tenant_name": "Acme", "subdomain": "acme", "email": "admin@acme..com",
            "password": "Passw0rd!", "full_name": "A",
        })
        assert resp.status_code == 400
        assert resp.json()["message"].startswith("email:")

    def test_body_validation_uses_envelope(self, client):
        resp = client.post("/auth/register-tenant", json={"tenant_name": "NoFields"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["message"]


class TestLogin:
    def test_acme_admin_login_scenario(self, client, make_tenant):
        make_tenant("acme", email="alice@acme.com", password="s3cret!!")
        resp = _login(client, "alice@acme.com", "s3cret!!", "acme")
        assert resp.status_code == 200
        data = resp.json()["data"]
        claims = jwt.decode(data["token"], SECRET_KEY, algorithms=[ALGORITHM])
        assert claims["role"] == "tenant_admin"
        assert claims["tenant_id"] == data["user"]["tenant_id"]
        assert claims["exp"] - claims["iat"] == 24 * 3600

    def test_email_is_case_insensitive(self, client, make_tenant):
        make_tenant("acme")
        assert _login(client, "  ADMIN@Acme.com ", "Passw0rd!", "acme").status_code == 200

    def test_unknown_email_and_wrong_password_identical(self, client, make_tenant):
        make_tenant("acme")
        wrong_password = _login(client, "admin@acme.com", "nope-nope", "acme")
        unknown_email = _login(client, "ghost@acme.com", "Passw0rd!", "acme")
        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.json() == unknown_email.json()

    def test_overlong_password_still_runs_bcrypt(self, client, make_tenant, monkeypatch):
        make_tenant("acme")
        calls = []
        real_checkpw = auth_context.bcrypt.checkpw

        def counting_checkpw(password, hashed):
            calls.append(len(password))
            return real_checkpw(password, hashed)

        monkeypatch.setattr(auth_context.bcrypt, "checkpw", counting_checkpw)
        unknown = _login(client, "ghost@acme.com", "x" * 100, "acme")
        known = _login(client, "admin@acme.com", "x" * 100, "acme")
        assert unknown.status_code == known.status_code == 401
        assert unknown.json() == known.json()
        assert calls == [72, 72]

    def test_password_beyond_72_bytes_never_matches(self, client, make_tenant):
        make_tenant("acme", password="a" * 72)
        assert _login(client, "admin@acme.com", "a" * 72, "acme").status_code == 200
        assert _login(client, "admin@acme.com", "a" * 73, "acme").status_code == 401

    def test_unknown_subdomain_is_tenant_not_found(self, client):
        resp = _login(client, "admin@acme.com", "Passw0rd!", "nowhere")
        assert resp.status_code == 404
        assert resp.json()["message"] == "Tenant not found"

    def test_tenant_user_cannot_use_system_space(self, client, make_tenant):
        make_tenant("acme")
        assert _login(client, "admin@acme.com", "Passw0rd!").status_code == 401
        assert _login(client, "admin@acme.com", "Passw0rd!", "system").status_code == 401

    def test_system_admin_login_with_and_without_hint(self, client, system_admin):
        assert system_admin["user"]["role"] == "system_admin"
        assert system_admin["user"]["tenant_id"] is None
        assert _login(client, "root@system.com", "Passw0rd!", "system").status_code == 200

    def test_same_email_in_two_tenants(self, client, make_tenant):
        make_tenant("acme", email="shared@example.com", password="acme-pass")
        make_tenant("globex", email="shared@example.com", password="globex-pass")
        acme = _login(client, "shared@example.com", "acme-pass", "acme")
        globex = _login(client, "shared@example.com", "globex-pass", "globex")
        assert acme.status_code == globex.status_code == 200
        assert acme.json()["data"]["user"]["tenant_id"] != globex.json()["data"]["user"]["tenant_id"]
        assert _login(client, "shared@example.com", "acme-pass", "globex").status_code == 401


class TestTokens:
    def test_missing_token(self, client):
        resp = client.get("/projects")
        assert resp.status_code == 401
        assert resp.json()["success"] is False

    def test_garbage_token(self, client):
        resp = client.get("/projects", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_expired_token(self, client, make_tenant):
        acme = make_tenant("acme")
        past = datetime.now(timezone.utc) - timedelta(hours=25)
        token = jwt.encode(
            {"sub": acme["user"]["id"], "tenant_id": acme["tenant"]["id"], "role": "tenant_admin",
             "iat": past, "exp": past + timedelta(hours=24)},
            SECRET_KEY, algorithm=ALGORITHM,
        )
        resp = client.get("/projects", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Token expired"

    def test_token_signed_with_other_key(self, client, make_tenant):
        acme = make_tenant("acme")
        token = jwt.encode({"sub": acme["user"]["id"], "tenant_id": acme["tenant"]["id"]},
                           "some-other-key", algorithm=ALGORITHM)
        assert client.get("/projects", headers={"Authorization": f"Bearer {token}"}).status_code == 401

    def test_role_comes_from_database_not_token(self, client, make_tenant, make_user):
        acme = make_tenant("acme")
        bob = make_user(acme, "bob@acme.com")
        forged = jwt.encode(
            {"sub": bob["user"]["id"], "tenant_id": acme["tenant"]["id"], "role": "tenant_admin",
             "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            SECRET_KEY, algorithm=ALGORITHM,
        )
        resp = client.post("/projects", json={"name": "Nope"}, headers={"Authorization": f"Bearer {forged}"})
        assert resp.status_code == 403


class TestAccountState:
    def test_deactivated_user_locked_out(self, client, make_tenant, make_user):
        acme = make_tenant("acme")
        bob = make_user(acme, "bob@acme.com")
        resp = client.put(f"/users/{bob['user']['id']}", json={"active": False}, headers=acme["headers"])
        assert resp.status_code == 200

        assert client.get("/projects", headers=bob["headers"]).status_code == 403
        assert _login(client, "bob@acme.com", "Passw0rd!", "acme").status_code == 403

    def test_suspended_tenant_locked_out(self, client, make_tenant, system_admin):
        acme = make_tenant("acme")
        resp = client.put(f"/tenants/{acme['tenant']['id']}", json={"status": "suspended"},
                          headers=system_admin["headers"])
        assert resp.status_code == 200

        assert client.get("/projects", headers=acme["headers"]).status_code == 403
        assert _login(client, acme["email"], acme["password"], "acme").status_code == 403


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["data"]["database"] == "ok"
