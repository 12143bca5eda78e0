# backend/migrate.py
# Database migration module for PostgreSQL and SQLite
# Run: python -m backend.migrate [--seed]

import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from backend.config import SEED_DEMO_DATA
from backend.db import Database, execute, fetch_one, new_id, now_iso

# Shared DDL. Both dialects accept BOOLEAN / TRUE and partial indexes.
_TABLES = [
    """
    CREATE TABLE IF NOT EXISTS tenants (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        subdomain TEXT NOT NULL UNIQUE,
        status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'suspended')),
        plan TEXT NOT NULL DEFAULT 'free' CHECK (plan IN ('free', 'pro', 'enterprise')),
        max_users INTEGER NOT NULL DEFAULT 5 CHECK (max_users >= 0),
        max_projects INTEGER NOT NULL DEFAULT 3 CHECK (max_projects >= 0),
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        tenant_id TEXT REFERENCES tenants(id) ON DELETE CASCADE,
        email TEXT NOT NULL,
        password_hash TEXT NOT NULL,
        full_name TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'member' CHECK (role IN ('system_admin', 'tenant_admin', 'member')),
        active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        UNIQUE (tenant_id, email),
        CHECK ((role = 'system_admin') = (tenant_id IS NULL))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS projects (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL REFERENCES tenants(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        description TEXT,
        status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'archived', 'completed')),
        created_by TEXT REFERENCES users(id) ON DELETE SET NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL REFERENCES tenants(id) ON DELETE CASCADE,
        project_id TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
        title TEXT NOT NULL,
        description TEXT,
        status TEXT NOT NULL DEFAULT 'todo' CHECK (status IN ('todo', 'in_progress', 'completed')),
        priority TEXT NOT NULL DEFAULT 'medium' CHECK (priority IN ('low', 'medium', 'high')),
        assigned_to TEXT REFERENCES users(id) ON DELETE SET NULL,
        due_date TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    # No foreign keys: entries outlive the rows they describe
    """
    CREATE TABLE IF NOT EXISTS audit_logs (
        id TEXT PRIMARY KEY,
        tenant_id TEXT,
        user_id TEXT,
        action TEXT NOT NULL,
        entity_type TEXT NOT NULL,
        entity_id TEXT,
        source_address TEXT,
        created_at TEXT NOT NULL
    )
    """,
]

_INDEXES = [
    # (tenant_id, email) UNIQUE does not cover NULL tenant_id
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_users_system_email_unique ON users(email) WHERE tenant_id IS NULL",
    "CREATE INDEX IF NOT EXISTS idx_users_tenant_id ON users(tenant_id)",
    "CREATE INDEX IF NOT EXISTS idx_projects_tenant_id ON projects(tenant_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_tenant_id ON tasks(tenant_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_project_id ON tasks(project_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_assigned_to ON tasks(assigned_to)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_tenant_status ON tasks(tenant_id, status)",
    "CREATE INDEX IF NOT EXISTS idx_audit_logs_tenant_created ON audit_logs(tenant_id, created_at)",
]


def run_migrations(db: Database) -> None:
    """
    Run all database migrations (idempotent).
    Creates tables and indexes if missing. Safe to run multiple times.
    """
    print(f"[MIGRATE] Starting database migrations ({'SQLite' if db.is_sqlite else 'PostgreSQL'})...")

    with db.transaction() as conn:
        for ddl in _TABLES:
            execute(conn, ddl)
        for ddl in _INDEXES:
            execute(conn, ddl)

    print("[MIGRATE] All migrations complete!")


# ---------------------------------------------------------
# Demo data
# ---------------------------------------------------------
SYSTEM_ADMIN_EMAIL = "superadmin@system.com"
SYSTEM_ADMIN_PASSWORD = "Admin@123"
DEMO_TENANT_SUBDOMAIN = "demo"
DEMO_ADMIN_EMAIL = "admin@demo.com"
DEMO_ADMIN_PASSWORD = "Demo@123"


def seed_demo_data(db: Database) -> None:
    """
    Insert the system admin and the demo tenant (idempotent).

    Only rows that are missing are created; existing passwords are left alone.
    """
    # Imported here: auth_context pulls in the service layer
    from backend.auth_context import hash_password
    from backend.entitlements import limits_for_plan

    now = now_iso()
    with db.transaction() as conn:
        admin = fetch_one(conn, "SELECT id FROM users WHERE email = :email AND tenant_id IS NULL",
                          {"email": SYSTEM_ADMIN_EMAIL})
        if not admin:
            execute(
                conn,
                """
                INSERT INTO users (id, tenant_id, email, password_hash, full_name, role, active, created_at, updated_at)
                VALUES (:id, NULL, :email, :password_hash, :full_name, 'system_admin', :active, :now, :now)
                """,
                {"id": new_id(), "email": SYSTEM_ADMIN_EMAIL, "password_hash": hash_password(SYSTEM_ADMIN_PASSWORD),
                 "full_name": "System Administrator", "active": True, "now": now},
            )
            print(f"[MIGRATE] Seeded system admin: {SYSTEM_ADMIN_EMAIL}")

        tenant = fetch_one(conn, "SELECT id FROM tenants WHERE subdomain = :subdomain",
                           {"subdomain": DEMO_TENANT_SUBDOMAIN})
        if tenant:
            print("[MIGRATE] Demo tenant already present, skipping")
            return

        limits = limits_for_plan("pro")
        tenant_id = new_id()
        admin_id = new_id()
        execute(
            conn,
            """
            INSERT INTO tenants (id, name, subdomain, status, plan, max_users, max_projects, created_at, updated_at)
            VALUES (:id, :name, :subdomain, 'active', 'pro', :max_users, :max_projects, :now, :now)
            """,
            {"id": tenant_id, "name": "Demo Company", "subdomain": DEMO_TENANT_SUBDOMAIN,
             "max_users": limits.max_users, "max_projects": limits.max_projects, "now": now},
        )
        execute(
            conn,
            """
            INSERT INTO users (id, tenant_id, email, password_hash, full_name, role, active, created_at, updated_at)
            VALUES (:id, :tenant_id, :email, :password_hash, :full_name, 'tenant_admin', :active, :now, :now)
            """,
            {"id": admin_id, "tenant_id": tenant_id, "email": DEMO_ADMIN_EMAIL,
             "password_hash": hash_password(DEMO_ADMIN_PASSWORD), "full_name": "Demo Admin",
             "active": True, "now": now},
        )
        execute(
            conn,
            """
            INSERT INTO projects (id, tenant_id, name, description, status, created_by, created_at, updated_at)
            VALUES (:id, :tenant_id, :name, :description, 'active', :created_by, :now, :now)
            """,
            {"id": new_id(), "tenant_id": tenant_id, "name": "Submission Demo Project",
             "description": "Sample project created with the demo tenant", "created_by": admin_id, "now": now},
        )
    print(f"[MIGRATE] Seeded demo tenant '{DEMO_TENANT_SUBDOMAIN}' ({DEMO_ADMIN_EMAIL})")


if __name__ == "__main__":
    database = Database()
    run_migrations(database)
    if SEED_DEMO_DATA or "--seed" in sys.argv:
        seed_demo_data(database)
    database.dispose()
