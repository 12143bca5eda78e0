"""
backend/modules/projects.py

Projects inside a tenant. Creation is gated by the tenant's max_projects limit;
deleting a project removes its tasks (FK cascade).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from backend.authz import Operation, enforce, enforce_role
from backend.db import Database, execute, fetch_all, fetch_one, new_id, now_iso
from backend.entitlements import require_quota
from backend.errors import NotFoundError, ValidationError
from backend.models import Project, ProjectStatus, to_public
from backend.modules.audit import audit_for
from backend.tenant import TenantScope, assert_row_scoped, assert_rows_scoped, require_tenant_scope

if TYPE_CHECKING:
    from backend.auth_context import AuthContext

_PROJECT_WITH_COUNTS = """
    SELECT p.*,
           (SELECT COUNT(*) FROM tasks t WHERE t.project_id = p.id) AS task_count,
           (SELECT COUNT(*) FROM tasks t WHERE t.project_id = p.id AND t.status = 'completed')
               AS completed_task_count
    FROM projects p
"""


def load_project(conn, scope: TenantScope, project_id: str) -> dict:
    """Fetch a project inside the scope or raise NotFoundError."""
    where, params = scope.where("p.tenant_id")
    row = fetch_one(conn, _PROJECT_WITH_COUNTS + f" WHERE p.id = :id AND {where}", {**params, "id": project_id})
    if not row:
        raise NotFoundError("Project not found")
    assert_row_scoped(row, scope, "projects.get")
    return row


def _status_value(status) -> str:
    value = getattr(status, "value", status)
    if value not in {s.value for s in ProjectStatus}:
        raise ValidationError(f"Invalid project status: {value}")
    return value


class ProjectService:
    def __init__(self, db: Database):
        self.db = db

    def list(self, identity: "AuthContext", status: Optional[str] = None) -> List[dict]:
        enforce_role(identity, Operation.PROJECT_LIST)
        scope = require_tenant_scope(identity)
        where, params = scope.where("p.tenant_id")
        if status is not None:
            where += " AND p.status = :status"
            params["status"] = _status_value(status)

        with self.db.connect() as conn:
            rows = fetch_all(conn, _PROJECT_WITH_COUNTS + f" WHERE {where} ORDER BY p.created_at DESC", params)
        assert_rows_scoped(rows, scope, "projects.list")
        return [to_public(Project, row) for row in rows]

    def get(self, identity: "AuthContext", project_id: str) -> dict:
        enforce_role(identity, Operation.PROJECT_READ)
        scope = require_tenant_scope(identity)
        with self.db.connect() as conn:
            row = load_project(conn, scope, project_id)
        enforce(identity, Operation.PROJECT_READ, resource_tenant_id=row["tenant_id"],
                not_found_message="Project not found")
        return to_public(Project, row)

    def create(self, identity: "AuthContext", name: str, description: Optional[str] = None,
               status: str = ProjectStatus.active.value) -> dict:
        """
        Create a project owned by the caller's tenant (tenant_id never comes from the client).

        Raises:
            QuotaExceededError: tenant already has max_projects projects
        """
        enforce_role(identity, Operation.PROJECT_CREATE)
        scope = require_tenant_scope(identity)
        name = (name or "").strip()
        if not name:
            raise ValidationError("Project name is required")
        project_id = new_id()
        now = now_iso()

        with self.db.transaction() as conn:
            require_quota(conn, scope.tenant_id, "projects")
            execute(
                conn,
                """
                INSERT INTO projects (id, tenant_id, name, description, status, created_by, created_at, updated_at)
                VALUES (:id, :tenant_id, :name, :description, :status, :created_by, :now, :now)
                """,
                {
                    "id": project_id,
                    "tenant_id": scope.tenant_id,
                    "name": name,
                    "description": description,
                    "status": _status_value(status or ProjectStatus.active.value),
                    "created_by": identity.user_id,
                    "now": now,
                },
            )
            row = load_project(conn, scope, project_id)

        audit_for(self.db, identity, "CREATE", "project", project_id)
        return to_public(Project, row)

    def update(self, identity: "AuthContext", project_id: str, changes: Dict[str, Any]) -> dict:
        enforce_role(identity, Operation.PROJECT_UPDATE)
        scope = require_tenant_scope(identity)

        values: Dict[str, Any] = {}
        if changes.get("name") is not None:
            values["name"] = changes["name"].strip()
            if not values["name"]:
                raise ValidationError("Project name cannot be empty")
        if "description" in changes:
            values["description"] = changes["description"]
        if changes.get("status") is not None:
            values["status"] = _status_value(changes["status"])

        with self.db.transaction() as conn:
            row = load_project(conn, scope, project_id)
            enforce(identity, Operation.PROJECT_UPDATE, resource_tenant_id=row["tenant_id"],
                    not_found_message="Project not found")
            if values:
                assignments = ", ".join(f"{field} = :{field}" for field in values)
                execute(
                    conn,
                    f"UPDATE projects SET {assignments}, updated_at = :updated_at "
                    f"WHERE id = :id AND tenant_id = :tenant_id",
                    {**values, "updated_at": now_iso(), "id": project_id, "tenant_id": scope.tenant_id},
                )
                row = load_project(conn, scope, project_id)

        audit_for(self.db, identity, "UPDATE", "project", project_id)
        return to_public(Project, row)

    def delete(self, identity: "AuthContext", project_id: str) -> None:
        enforce_role(identity, Operation.PROJECT_DELETE)
        scope = require_tenant_scope(identity)
        with self.db.transaction() as conn:
            row = load_project(conn, scope, project_id)
            enforce(identity, Operation.PROJECT_DELETE, resource_tenant_id=row["tenant_id"],
                    not_found_message="Project not found")
            execute(conn, "DELETE FROM projects WHERE id = :id AND tenant_id = :tenant_id",
                    {"id": project_id, "tenant_id": scope.tenant_id})

        audit_for(self.db, identity, "DELETE", "project", project_id)
