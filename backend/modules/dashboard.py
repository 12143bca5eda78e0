"""
backend/modules/dashboard.py

Role-dependent dashboard aggregates.

- system_admin: platform totals + tenants by plan/status
- tenant_admin: plan usage against limits + project/task breakdowns
- member: personal task counts + tenant task breakdowns
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from backend.authz import Operation, enforce_role
from backend.db import Database, fetch_all, fetch_one, fetch_scalar
from backend.entitlements import get_usage
from backend.errors import TenantNotFoundError
from backend.models import ProjectStatus, Role, TaskPriority, TaskStatus
from backend.tenant import require_tenant_scope

if TYPE_CHECKING:
    from backend.auth_context import AuthContext


def _breakdown(conn, sql: str, params: dict, keys) -> Dict[str, int]:
    """GROUP BY result as {key: count}, with every known key present."""
    counts = {key: 0 for key in keys}
    for row in fetch_all(conn, sql, params):
        counts[row["k"]] = int(row["n"])
    return counts


def _count(conn, sql: str, params: Optional[dict] = None) -> int:
    return int(fetch_scalar(conn, sql, params) or 0)


class DashboardService:
    def __init__(self, db: Database):
        self.db = db

    def stats(self, identity: "AuthContext") -> Dict[str, Any]:
        enforce_role(identity, Operation.DASHBOARD_READ)
        if identity.role == Role.system_admin:
            return self._system_stats()
        if identity.role == Role.tenant_admin:
            return self._tenant_admin_stats(identity)
        return self._member_stats(identity)

    def _system_stats(self) -> Dict[str, Any]:
        with self.db.connect() as conn:
            return {
                "role": Role.system_admin.value,
                "totals": {
                    "tenants": _count(conn, "SELECT COUNT(*) FROM tenants"),
                    "users": _count(conn, "SELECT COUNT(*) FROM users WHERE tenant_id IS NOT NULL"),
                    "projects": _count(conn, "SELECT COUNT(*) FROM projects"),
                    "tasks": _count(conn, "SELECT COUNT(*) FROM tasks"),
                },
                "tenants_by_plan": _breakdown(
                    conn, "SELECT plan AS k, COUNT(*) AS n FROM tenants GROUP BY plan", {},
                    ("free", "pro", "enterprise"),
                ),
                "tenants_by_status": _breakdown(
                    conn, "SELECT status AS k, COUNT(*) AS n FROM tenants GROUP BY status", {},
                    ("active", "suspended"),
                ),
            }

    def _task_breakdowns(self, conn, tenant_id: str) -> Dict[str, Dict[str, int]]:
        params = {"tenant_id": tenant_id}
        return {
            "tasks_by_status": _breakdown(
                conn, "SELECT status AS k, COUNT(*) AS n FROM tasks WHERE tenant_id = :tenant_id GROUP BY status",
                params, [s.value for s in TaskStatus],
            ),
            "tasks_by_priority": _breakdown(
                conn, "SELECT priority AS k, COUNT(*) AS n FROM tasks WHERE tenant_id = :tenant_id GROUP BY priority",
                params, [p.value for p in TaskPriority],
            ),
        }

    def _tenant_admin_stats(self, identity: "AuthContext") -> Dict[str, Any]:
        scope = require_tenant_scope(identity)
        with self.db.connect() as conn:
            tenant = fetch_one(
                conn,
                "SELECT id, name, plan, status, max_users, max_projects FROM tenants WHERE id = :tenant_id",
                {"tenant_id": scope.tenant_id},
            )
            if not tenant:
                raise TenantNotFoundError()
            usage = get_usage(conn, scope.tenant_id)

            stats = {
                "role": Role.tenant_admin.value,
                "tenant": {"id": tenant["id"], "name": tenant["name"], "plan": tenant["plan"],
                           "status": tenant["status"]},
                "usage": {
                    "users": {"used": usage["users"], "limit": tenant["max_users"]},
                    "projects": {"used": usage["projects"], "limit": tenant["max_projects"]},
                },
                "projects_by_status": _breakdown(
                    conn,
                    "SELECT status AS k, COUNT(*) AS n FROM projects WHERE tenant_id = :tenant_id GROUP BY status",
                    {"tenant_id": scope.tenant_id}, [s.value for s in ProjectStatus],
                ),
                "unassigned_tasks": _count(
                    conn,
                    "SELECT COUNT(*) FROM tasks WHERE tenant_id = :tenant_id AND assigned_to IS NULL",
                    {"tenant_id": scope.tenant_id},
                ),
            }
            stats.update(self._task_breakdowns(conn, scope.tenant_id))
        return stats

    def _member_stats(self, identity: "AuthContext") -> Dict[str, Any]:
        scope = require_tenant_scope(identity)
        params = {"tenant_id": scope.tenant_id, "me": identity.user_id}
        with self.db.connect() as conn:
            stats = {
                "role": Role.member.value,
                "my_tasks": _count(
                    conn, "SELECT COUNT(*) FROM tasks WHERE tenant_id = :tenant_id AND assigned_to = :me", params,
                ),
                "my_tasks_by_status": _breakdown(
                    conn,
                    "SELECT status AS k, COUNT(*) AS n FROM tasks "
                    "WHERE tenant_id = :tenant_id AND assigned_to = :me GROUP BY status",
                    params, [s.value for s in TaskStatus],
                ),
                "open_tasks": _count(
                    conn,
                    "SELECT COUNT(*) FROM tasks WHERE tenant_id = :tenant_id AND assigned_to IS NULL "
                    "AND status <> 'completed'",
                    {"tenant_id": scope.tenant_id},
                ),
                "projects": _count(
                    conn, "SELECT COUNT(*) FROM projects WHERE tenant_id = :tenant_id",
                    {"tenant_id": scope.tenant_id},
                ),
            }
            stats.update(self._task_breakdowns(conn, scope.tenant_id))
        return stats
