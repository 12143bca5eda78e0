# backend/conftest.py
# Shared fixtures: fresh SQLite database per test, app wired to it, tenant/user factories

import os

# Must be set before backend.config is imported
os.environ["ENV"] = "dev"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SEED_DEMO_DATA"] = "0"

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from backend.auth_context import hash_password
from backend.db import Database, execute, new_id, now_iso
from backend.main import create_app

DEFAULT_PASSWORD = "Passw0rd!"


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def db(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'taskhub_test.db'}")
    yield database
    database.dispose()


@pytest.fixture
def client(db):
    # Entering the context runs the lifespan (migrations on the injected db)
    with TestClient(create_app(db)) as test_client:
        yield test_client


@pytest.fixture
def make_tenant(client):
    """Register a tenant through the public endpoint; returns its admin session."""
    def _make(subdomain="acme", email=None, password=DEFAULT_PASSWORD, tenant_name=None):
        email = email or f"admin@{subdomain}.com"
        resp = client.post(
            "/auth/register-tenant",
            json={
                "tenant_name": tenant_name or f"{subdomain.title()} Inc",
                "subdomain": subdomain,
                "email": email,
                "password": password,
                "full_name": f"{subdomain.title()} Admin",
            },
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        return {
            "tenant": data["tenant"],
            "user": data["user"],
            "token": data["token"],
            "headers": auth_headers(data["token"]),
            "subdomain": subdomain,
            "email": email,
            "password": password,
        }
    return _make


@pytest.fixture
def make_user(client):
    """Create a user in `tenant` (as its admin) and log them in."""
    def _make(tenant, email, role="member", password=DEFAULT_PASSWORD, full_name="Team Member"):
        resp = client.post(
            "/users",
            json={"email": email, "password": password, "full_name": full_name, "role": role},
            headers=tenant["headers"],
        )
        assert resp.status_code == 201, resp.text
        login = client.post(
            "/auth/login",
            json={"email": email, "password": password, "tenant_subdomain": tenant["subdomain"]},
        )
        assert login.status_code == 200, login.text
        token = login.json()["data"]["token"]
        return {"user": resp.json()["data"], "token": token, "headers": auth_headers(token)}
    return _make


@pytest.fixture
def system_admin(client, db):
    """A system-level admin (tenant_id NULL), inserted directly and logged in."""
    email = "root@system.com"
    now = now_iso()
    with db.transaction() as conn:
        execute(
            conn,
            """
            INSERT INTO users (id, tenant_id, email, password_hash, full_name, role, active, created_at, updated_at)
            VALUES (:id, NULL, :email, :password_hash, 'Root', 'system_admin', :active, :now, :now)
            """,
            {"id": new_id(), "email": email, "password_hash": hash_password(DEFAULT_PASSWORD),
             "active": True, "now": now},
        )
    resp = client.post("/auth/login", json={"email": email, "password": DEFAULT_PASSWORD})
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    return {"user": data["user"], "token": data["token"], "headers": auth_headers(data["token"])}


@pytest.fixture
def make_project(client):
    def _make(tenant, name="Website Redesign", **extra):
        resp = client.post("/projects", json={"name": name, **extra}, headers=tenant["headers"])
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]
    return _make


@pytest.fixture
def make_task(client):
    def _make(session, project, title="Write copy", **extra):
        resp = client.post(f"/projects/{project['id']}/tasks", json={"title": title, **extra},
                           headers=session["headers"])
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]
    return _make
