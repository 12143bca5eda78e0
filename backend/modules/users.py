"""
backend/modules/users.py

Tenant user management. All queries are qualified with the caller's tenant;
password hashes never leave this module.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List

from sqlalchemy.exc import IntegrityError

from backend.auth_context import hash_password, normalize_email
from backend.authz import Operation, enforce, enforce_role, require_self_delete_guard
from backend.db import Database, execute, fetch_all, fetch_one, new_id, now_iso
from backend.entitlements import require_quota
from backend.errors import ConflictError, NotFoundError, ValidationError
from backend.models import Role, User, to_public
from backend.modules.audit import audit_for
from backend.tenant import TenantScope, assert_row_scoped, assert_rows_scoped, require_tenant_scope

if TYPE_CHECKING:
    from backend.auth_context import AuthContext

ASSIGNABLE_ROLES = (Role.tenant_admin, Role.member)
_USER_COLUMNS = "id, tenant_id, email, full_name, role, active, created_at, updated_at"


def _check_role(role) -> str:
    value = getattr(role, "value", role)
    if value not in {r.value for r in ASSIGNABLE_ROLES}:
        raise ValidationError("Role must be tenant_admin or member")
    return value


class UserService:
    def __init__(self, db: Database):
        self.db = db

    def _load(self, conn, scope: TenantScope, user_id: str) -> dict:
        where, params = scope.where()
        row = fetch_one(
            conn,
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = :id AND {where}",
            {**params, "id": user_id},
        )
        if not row:
            raise NotFoundError("User not found")
        assert_row_scoped(row, scope, "users.get")
        return row

    def list(self, identity: "AuthContext") -> List[dict]:
        enforce_role(identity, Operation.USER_LIST)
        scope = require_tenant_scope(identity)
        where, params = scope.where()
        with self.db.connect() as conn:
            rows = fetch_all(conn, f"SELECT {_USER_COLUMNS} FROM users WHERE {where} ORDER BY created_at", params)
        assert_rows_scoped(rows, scope, "users.list")
        return [to_public(User, row) for row in rows]

    def get(self, identity: "AuthContext", user_id: str) -> dict:
        enforce_role(identity, Operation.USER_READ)
        scope = require_tenant_scope(identity)
        with self.db.connect() as conn:
            row = self._load(conn, scope, user_id)
        enforce(identity, Operation.USER_READ, resource_tenant_id=row["tenant_id"], not_found_message="User not found")
        return to_public(User, row)

    def create(self, identity: "AuthContext", email: str, password: str, full_name: str,
               role: str = Role.member.value) -> dict:
        """
        Add a user to the caller's tenant.

        Raises:
            QuotaExceededError: tenant already has max_users users
            ConflictError: email already used in this tenant
        """
        enforce_role(identity, Operation.USER_CREATE)
        scope = require_tenant_scope(identity)
        role = _check_role(role)
        email = normalize_email(email)
        password_hash = hash_password(password)
        user_id = new_id()
        now = now_iso()

        try:
            with self.db.transaction() as conn:
                require_quota(conn, scope.tenant_id, "users")
                existing = fetch_one(
                    conn,
                    "SELECT id FROM users WHERE email = :email AND tenant_id = :tenant_id",
                    {"email": email, "tenant_id": scope.tenant_id},
                )
                if existing:
                    raise ConflictError("A user with this email already exists")

                execute(
                    conn,
                    """
                    INSERT INTO users (id, tenant_id, email, password_hash, full_name, role, active,
                                       created_at, updated_at)
                    VALUES (:id, :tenant_id, :email, :password_hash, :full_name, :role, :active, :now, :now)
                    """,
                    {
                        "id": user_id,
                        "tenant_id": scope.tenant_id,
                        "email": email,
                        "password_hash": password_hash,
                        "full_name": (full_name or "").strip(),
                        "role": role,
                        "active": True,
                        "now": now,
                    },
                )
                row = self._load(conn, scope, user_id)
        except IntegrityError:
            raise ConflictError("A user with this email already exists")

        audit_for(self.db, identity, "CREATE", "user", user_id)
        return to_public(User, row)

    def update(self, identity: "AuthContext", user_id: str, changes: Dict[str, Any]) -> dict:
        """Partial update of full_name / role / active / password."""
        enforce_role(identity, Operation.USER_UPDATE)
        scope = require_tenant_scope(identity)

        values: Dict[str, Any] = {}
        if changes.get("full_name") is not None:
            values["full_name"] = changes["full_name"].strip()
            if not values["full_name"]:
                raise ValidationError("Full name cannot be empty")
        if changes.get("role") is not None:
            values["role"] = _check_role(changes["role"])
        if changes.get("active") is not None:
            values["active"] = bool(changes["active"])
        if changes.get("password"):
            values["password_hash"] = hash_password(changes["password"])

        if user_id == identity.user_id and (values.get("active") is False or
                                            values.get("role") == Role.member.value):
            raise ValidationError("You cannot deactivate or demote your own account")

        with self.db.transaction() as conn:
            row = self._load(conn, scope, user_id)
            enforce(identity, Operation.USER_UPDATE, resource_tenant_id=row["tenant_id"],
                    not_found_message="User not found")
            if values:
                assignments = ", ".join(f"{field} = :{field}" for field in values)
                execute(
                    conn,
                    f"UPDATE users SET {assignments}, updated_at = :updated_at "
                    f"WHERE id = :id AND tenant_id = :tenant_id",
                    {**values, "updated_at": now_iso(), "id": user_id, "tenant_id": scope.tenant_id},
                )
                row = self._load(conn, scope, user_id)

        audit_for(self.db, identity, "UPDATE", "user", user_id)
        return to_public(User, row)

    def delete(self, identity: "AuthContext", user_id: str) -> None:
        enforce_role(identity, Operation.USER_DELETE)
        require_self_delete_guard(identity, user_id)
        scope = require_tenant_scope(identity)

        with self.db.transaction() as conn:
            row = self._load(conn, scope, user_id)
            enforce(identity, Operation.USER_DELETE, resource_tenant_id=row["tenant_id"],
                    not_found_message="User not found")
            execute(conn, "DELETE FROM users WHERE id = :id AND tenant_id = :tenant_id",
                    {"id": user_id, "tenant_id": scope.tenant_id})

        audit_for(self.db, identity, "DELETE", "user", user_id)
