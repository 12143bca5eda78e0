"""
backend/modules/tenants.py

Tenant registration and administration.

Registration is the only unauthenticated write in the system: it creates the
tenant and its first tenant_admin in one transaction. Everything else goes
through the permission table (system_admin manages all tenants, a tenant_admin
may only rename their own).
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from backend.auth_context import create_access_token, hash_password, normalize_email
from backend.authz import Operation, enforce, enforce_role
from backend.config import SYSTEM_TENANT_HINT
from backend.db import Database, execute, fetch_all, fetch_one, new_id, now_iso
from backend.entitlements import get_usage, limits_for_plan
from backend.errors import AuthorizationError, ConflictError, TenantNotFoundError, ValidationError
from backend.models import PlanName, Role, Tenant, TenantStatus, User, to_public
from backend.modules.audit import audit_for, record_audit

if TYPE_CHECKING:
    from backend.auth_context import AuthContext

SUBDOMAIN_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{1,61}[a-z0-9])$")
RESERVED_SUBDOMAINS = frozenset({SYSTEM_TENANT_HINT, "www", "api", "admin"})

# Fields only a system admin may change
_SYSTEM_ONLY_FIELDS = ("status", "plan", "max_users", "max_projects")
_UPDATABLE_FIELDS = ("name",) + _SYSTEM_ONLY_FIELDS

_TENANT_WITH_COUNTS = """
    SELECT t.*,
           (SELECT COUNT(*) FROM users u WHERE u.tenant_id = t.id) AS user_count,
           (SELECT COUNT(*) FROM projects p WHERE p.tenant_id = t.id) AS project_count
    FROM tenants t
"""


def normalize_subdomain(subdomain: str) -> str:
    """
    Lowercase + validate a subdomain.

    Raises:
        ValidationError: bad format or reserved name
    """
    value = (subdomain or "").strip().lower()
    if not SUBDOMAIN_RE.match(value):
        raise ValidationError(
            "Subdomain must be 3-63 characters: lowercase letters, digits and hyphens, "
            "not starting or ending with a hyphen"
        )
    if value in RESERVED_SUBDOMAINS:
        raise ValidationError(f"Subdomain '{value}' is reserved")
    return value


class TenantService:
    def __init__(self, db: Database):
        self.db = db

    # ------------------------------------------------------------------
    # Registration (public)
    # ------------------------------------------------------------------
    def register(
        self,
        tenant_name: str,
        subdomain: str,
        email: str,
        password: str,
        full_name: str,
        source_address: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a tenant (free plan) and its first tenant_admin atomically.

        Returns:
            {"token", "user", "tenant"} - the new admin is signed in right away

        Raises:
            ValidationError: bad subdomain / empty name
            ConflictError: subdomain already taken
        """
        name = (tenant_name or "").strip()
        if not name:
            raise ValidationError("Tenant name is required")
        subdomain = normalize_subdomain(subdomain)
        email = normalize_email(email)

        limits = limits_for_plan(PlanName.free.value)
        tenant_id = new_id()
        user_id = new_id()
        now = now_iso()
        password_hash = hash_password(password)

        try:
            with self.db.transaction() as conn:
                if fetch_one(conn, "SELECT id FROM tenants WHERE subdomain = :subdomain", {"subdomain": subdomain}):
                    raise ConflictError("Subdomain already taken")

                execute(
                    conn,
                    """
                    INSERT INTO tenants (id, name, subdomain, status, plan, max_users, max_projects,
                                         created_at, updated_at)
                    VALUES (:id, :name, :subdomain, :status, :plan, :max_users, :max_projects, :now, :now)
                    """,
                    {
                        "id": tenant_id,
                        "name": name,
                        "subdomain": subdomain,
                        "status": TenantStatus.active.value,
                        "plan": limits.name,
                        "max_users": limits.max_users,
                        "max_projects": limits.max_projects,
                        "now": now,
                    },
                )
                execute(
                    conn,
                    """
                    INSERT INTO users (id, tenant_id, email, password_hash, full_name, role, active,
                                       created_at, updated_at)
                    VALUES (:id, :tenant_id, :email, :password_hash, :full_name, :role, :active, :now, :now)
                    """,
                    {
                        "id": user_id,
                        "tenant_id": tenant_id,
                        "email": email,
                        "password_hash": password_hash,
                        "full_name": (full_name or "").strip(),
                        "role": Role.tenant_admin.value,
                        "active": True,
                        "now": now,
                    },
                )
                tenant = fetch_one(conn, "SELECT * FROM tenants WHERE id = :id", {"id": tenant_id})
                user = fetch_one(conn, "SELECT * FROM users WHERE id = :id", {"id": user_id})
        except IntegrityError:
            # Lost a race with a concurrent registration of the same subdomain
            print(f"[TENANT] Registration conflict for subdomain={subdomain}")
            raise ConflictError("Subdomain already taken")

        print(f"[TENANT] Registered tenant_id={tenant_id}, subdomain={subdomain}")
        record_audit(self.db, action="REGISTER", entity_type="tenant", entity_id=tenant_id,
                     tenant_id=tenant_id, user_id=user_id, source_address=source_address)

        return {
            "token": create_access_token(user_id, tenant_id, Role.tenant_admin.value),
            "user": to_public(User, user),
            "tenant": to_public(Tenant, tenant),
        }

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------
    def list(self, identity: "AuthContext") -> List[dict]:
        enforce_role(identity, Operation.TENANT_LIST)
        with self.db.connect() as conn:
            rows = fetch_all(conn, _TENANT_WITH_COUNTS + " ORDER BY t.created_at DESC")
        return [to_public(Tenant, row) for row in rows]

    def _load(self, conn, tenant_id: str) -> dict:
        row = fetch_one(conn, _TENANT_WITH_COUNTS + " WHERE t.id = :id", {"id": tenant_id})
        if not row:
            raise TenantNotFoundError()
        return row

    def get(self, identity: "AuthContext", tenant_id: str) -> dict:
        with self.db.connect() as conn:
            enforce(identity, Operation.TENANT_READ, resource_tenant_id=tenant_id,
                    not_found_message="Tenant not found")
            row = self._load(conn, tenant_id)
            usage = get_usage(conn, tenant_id)

        tenant = to_public(Tenant, row)
        tenant["usage"] = usage
        return tenant

    def update(self, identity: "AuthContext", tenant_id: str, changes: Dict[str, Any]) -> dict:
        """
        Apply a partial update.

        A tenant_admin may only change `name`. Changing `plan` without explicit
        limits resets max_users/max_projects to the new plan's defaults.
        """
        enforce(identity, Operation.TENANT_UPDATE, resource_tenant_id=tenant_id,
                not_found_message="Tenant not found")

        changes = {k: v for k, v in changes.items() if k in _UPDATABLE_FIELDS and v is not None}
        if identity.role != Role.system_admin:
            restricted = [f for f in _SYSTEM_ONLY_FIELDS if f in changes]
            if restricted:
                print(f"[AUTHZ] Tenant admin attempted to change {restricted}: user_id={identity.user_id}")
                raise AuthorizationError("Only system administrators can change status, plan or limits")

        if "name" in changes:
            changes["name"] = changes["name"].strip()
            if not changes["name"]:
                raise ValidationError("Tenant name cannot be empty")
        for field in ("status", "plan"):
            if field in changes:
                changes[field] = getattr(changes[field], "value", changes[field])

        with self.db.transaction() as conn:
            current = self._load(conn, tenant_id)

            if "plan" in changes and changes["plan"] != current["plan"]:
                defaults = limits_for_plan(changes["plan"])
                changes.setdefault("max_users", defaults.max_users)
                changes.setdefault("max_projects", defaults.max_projects)

            if changes:
                assignments = ", ".join(f"{field} = :{field}" for field in changes)
                execute(
                    conn,
                    f"UPDATE tenants SET {assignments}, updated_at = :updated_at WHERE id = :id",
                    {**changes, "updated_at": now_iso(), "id": tenant_id},
                )
            row = self._load(conn, tenant_id)

        if changes:
            audit_for(self.db, identity, "UPDATE", "tenant", tenant_id, tenant_id=tenant_id)
        return to_public(Tenant, row)

    def delete(self, identity: "AuthContext", tenant_id: str) -> None:
        """Delete a tenant; users, projects and tasks go with it (FK cascade)."""
        enforce_role(identity, Operation.TENANT_DELETE)
        with self.db.transaction() as conn:
            deleted = execute(conn, "DELETE FROM tenants WHERE id = :id", {"id": tenant_id})
        if not deleted:
            raise TenantNotFoundError()

        print(f"[TENANT] Deleted tenant_id={tenant_id}")
        audit_for(self.db, identity, "DELETE", "tenant", tenant_id, tenant_id=tenant_id)
