"""
backend/modules/tasks.py

Tasks inside a tenant's projects.

- tenant_id is denormalized onto each task and copied from its project at creation
- status changes follow TASK_TRANSITIONS (same status = no-op)
- members may only modify tasks assigned to them, and only assign to themselves
- claim() is a single conditional UPDATE so concurrent claims have one winner
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from backend.authz import Operation, enforce, enforce_role
from backend.db import Database, execute, fetch_all, fetch_one, new_id, now_iso
from backend.errors import AlreadyClaimedError, AuthorizationError, NotFoundError, ValidationError
from backend.models import Role, Task, TaskPriority, TaskStatus, can_transition, to_public
from backend.modules.audit import audit_for
from backend.modules.projects import load_project
from backend.tenant import TenantScope, assert_row_scoped, assert_rows_scoped, require_tenant_scope

if TYPE_CHECKING:
    from backend.auth_context import AuthContext

_TASK_SELECT = """
    SELECT t.*, p.name AS project_name, u.full_name AS assignee_name
    FROM tasks t
    JOIN projects p ON p.id = t.project_id
    LEFT JOIN users u ON u.id = t.assigned_to
"""

_PRIORITY_ORDER = "CASE t.priority WHEN 'high' THEN 0 WHEN 'medium' THEN 1 ELSE 2 END"


def _enum_value(enum_cls, value, label: str) -> str:
    value = getattr(value, "value", value)
    if value not in {member.value for member in enum_cls}:
        raise ValidationError(f"Invalid {label}: {value}")
    return value


def check_transition(current: str, target: str) -> None:
    """
    Raises:
        ValidationError: target is not reachable from current
    """
    if not can_transition(TaskStatus(current), TaskStatus(target)):
        raise ValidationError(f"Cannot move task from {current} to {target}")


class TaskService:
    def __init__(self, db: Database):
        self.db = db

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _load(self, conn, scope: TenantScope, task_id: str) -> dict:
        where, params = scope.where("t.tenant_id")
        row = fetch_one(conn, _TASK_SELECT + f" WHERE t.id = :id AND {where}", {**params, "id": task_id})
        if not row:
            raise NotFoundError("Task not found")
        assert_row_scoped(row, scope, "tasks.get")
        return row

    def _load_for(self, conn, identity: "AuthContext", scope: TenantScope, task_id: str,
                  operation: Operation) -> dict:
        row = self._load(conn, scope, task_id)
        enforce(identity, operation, resource_tenant_id=row["tenant_id"],
                resource_assignee_id=row["assigned_to"], not_found_message="Task not found")
        return row

    def _check_assignee(self, conn, identity: "AuthContext", scope: TenantScope,
                        assignee_id: Optional[str]) -> Optional[str]:
        """Members may only assign themselves; admins any active user of the tenant."""
        if not assignee_id:
            return None
        if identity.role == Role.member and assignee_id != identity.user_id:
            raise AuthorizationError("Members can only assign tasks to themselves")

        user = fetch_one(
            conn,
            "SELECT id, active FROM users WHERE id = :id AND tenant_id = :tenant_id",
            {"id": assignee_id, "tenant_id": scope.tenant_id},
        )
        if not user or not user["active"]:
            raise ValidationError("Assignee must be an active user of this tenant")
        return assignee_id

    def _list(self, scope: TenantScope, filters: str = "", params: Optional[dict] = None,
              order: str = "t.created_at DESC") -> List[dict]:
        where, scope_params = scope.where("t.tenant_id")
        with self.db.connect() as conn:
            rows = fetch_all(conn, _TASK_SELECT + f" WHERE {where}{filters} ORDER BY {order}",
                             {**scope_params, **(params or {})})
        assert_rows_scoped(rows, scope, "tasks.list")
        return [to_public(Task, row) for row in rows]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def list(
        self,
        identity: "AuthContext",
        project_id: Optional[str] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to: Optional[str] = None,
    ) -> List[dict]:
        enforce_role(identity, Operation.TASK_LIST)
        scope = require_tenant_scope(identity)

        filters = ""
        params: Dict[str, Any] = {}
        if project_id:
            filters += " AND t.project_id = :project_id"
            params["project_id"] = project_id
        if status:
            filters += " AND t.status = :status"
            params["status"] = _enum_value(TaskStatus, status, "task status")
        if priority:
            filters += " AND t.priority = :priority"
            params["priority"] = _enum_value(TaskPriority, priority, "task priority")
        if assigned_to:
            filters += " AND t.assigned_to = :assigned_to"
            params["assigned_to"] = assigned_to
        return self._list(scope, filters, params)

    def list_for_project(self, identity: "AuthContext", project_id: str) -> List[dict]:
        enforce_role(identity, Operation.TASK_LIST)
        scope = require_tenant_scope(identity)
        with self.db.connect() as conn:
            load_project(conn, scope, project_id)
        return self._list(scope, " AND t.project_id = :project_id", {"project_id": project_id})

    def get(self, identity: "AuthContext", task_id: str) -> dict:
        enforce_role(identity, Operation.TASK_READ)
        scope = require_tenant_scope(identity)
        with self.db.connect() as conn:
            row = self._load_for(conn, identity, scope, task_id, Operation.TASK_READ)
        return to_public(Task, row)

    def my_tasks(self, identity: "AuthContext") -> Dict[str, List[dict]]:
        """Tasks assigned to the caller + the open (unassigned, not completed) pool."""
        enforce_role(identity, Operation.TASK_LIST)
        scope = require_tenant_scope(identity)
        mine = self._list(scope, " AND t.assigned_to = :me", {"me": identity.user_id},
                          order=f"{_PRIORITY_ORDER}, t.created_at DESC")
        open_pool = self._list(scope, " AND t.assigned_to IS NULL AND t.status <> :completed",
                               {"completed": TaskStatus.completed.value},
                               order=f"{_PRIORITY_ORDER}, t.created_at DESC")
        return {"my_tasks": mine, "open_tasks": open_pool}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def create(
        self,
        identity: "AuthContext",
        project_id: str,
        title: str,
        description: Optional[str] = None,
        priority: str = TaskPriority.medium.value,
        status: str = TaskStatus.todo.value,
        assigned_to: Optional[str] = None,
        due_date: Optional[str] = None,
    ) -> dict:
        enforce_role(identity, Operation.TASK_CREATE)
        scope = require_tenant_scope(identity)
        title = (title or "").strip()
        if not title:
            raise ValidationError("Task title is required")
        task_id = new_id()
        now = now_iso()

        with self.db.transaction() as conn:
            project = load_project(conn, scope, project_id)
            if project["tenant_id"] != scope.tenant_id:
                raise NotFoundError("Project not found")
            assignee = self._check_assignee(conn, identity, scope, assigned_to)

            execute(
                conn,
                """
                INSERT INTO tasks (id, tenant_id, project_id, title, description, status, priority,
                                   assigned_to, due_date, created_at, updated_at)
                VALUES (:id, :tenant_id, :project_id, :title, :description, :status, :priority,
                        :assigned_to, :due_date, :now, :now)
                """,
                {
                    "id": task_id,
                    "tenant_id": project["tenant_id"],
                    "project_id": project_id,
                    "title": title,
                    "description": description,
                    "status": _enum_value(TaskStatus, status or TaskStatus.todo.value, "task status"),
                    "priority": _enum_value(TaskPriority, priority or TaskPriority.medium.value, "task priority"),
                    "assigned_to": assignee,
                    "due_date": due_date,
                    "now": now,
                },
            )
            row = self._load(conn, scope, task_id)

        audit_for(self.db, identity, "CREATE", "task", task_id)
        return to_public(Task, row)

    def update(self, identity: "AuthContext", task_id: str, changes: Dict[str, Any]) -> dict:
        """
        Partial update. Keys present in `changes` are applied; an explicit
        assigned_to=None unassigns the task.
        """
        enforce_role(identity, Operation.TASK_UPDATE)
        scope = require_tenant_scope(identity)

        with self.db.transaction() as conn:
            row = self._load_for(conn, identity, scope, task_id, Operation.TASK_UPDATE)

            values: Dict[str, Any] = {}
            if changes.get("title") is not None:
                values["title"] = changes["title"].strip()
                if not values["title"]:
                    raise ValidationError("Task title cannot be empty")
            if "description" in changes:
                values["description"] = changes["description"]
            if changes.get("priority") is not None:
                values["priority"] = _enum_value(TaskPriority, changes["priority"], "task priority")
            if "due_date" in changes:
                values["due_date"] = changes["due_date"]
            if changes.get("status") is not None:
                target = _enum_value(TaskStatus, changes["status"], "task status")
                check_transition(row["status"], target)
                values["status"] = target
            if "assigned_to" in changes and changes["assigned_to"] != row["assigned_to"]:
                values["assigned_to"] = self._check_assignee(conn, identity, scope, changes["assigned_to"])

            if values:
                assignments = ", ".join(f"{field} = :{field}" for field in values)
                execute(
                    conn,
                    f"UPDATE tasks SET {assignments}, updated_at = :updated_at "
                    f"WHERE id = :id AND tenant_id = :tenant_id",
                    {**values, "updated_at": now_iso(), "id": task_id, "tenant_id": scope.tenant_id},
                )
                row = self._load(conn, scope, task_id)

        audit_for(self.db, identity, "UPDATE", "task", task_id)
        return to_public(Task, row)

    def update_status(self, identity: "AuthContext", task_id: str, status: str) -> dict:
        enforce_role(identity, Operation.TASK_UPDATE_STATUS)
        scope = require_tenant_scope(identity)
        target = _enum_value(TaskStatus, status, "task status")

        with self.db.transaction() as conn:
            row = self._load_for(conn, identity, scope, task_id, Operation.TASK_UPDATE_STATUS)
            if row["status"] == target:
                return to_public(Task, row)
            check_transition(row["status"], target)
            execute(
                conn,
                "UPDATE tasks SET status = :status, updated_at = :updated_at "
                "WHERE id = :id AND tenant_id = :tenant_id",
                {"status": target, "updated_at": now_iso(), "id": task_id, "tenant_id": scope.tenant_id},
            )
            row = self._load(conn, scope, task_id)

        audit_for(self.db, identity, "STATUS_CHANGE", "task", task_id)
        return to_public(Task, row)

    def claim(self, identity: "AuthContext", task_id: str) -> dict:
        """
        Assign an unassigned task to the caller.

        Raises:
            AlreadyClaimedError: someone else holds the task (or claimed it first)
            NotFoundError: no such task in the caller's tenant
        """
        enforce_role(identity, Operation.TASK_CLAIM)
        scope = require_tenant_scope(identity)

        with self.db.transaction() as conn:
            claimed = execute(
                conn,
                """
                UPDATE tasks SET assigned_to = :user_id, updated_at = :updated_at
                WHERE id = :id AND tenant_id = :tenant_id AND assigned_to IS NULL
                """,
                {"user_id": identity.user_id, "updated_at": now_iso(), "id": task_id,
                 "tenant_id": scope.tenant_id},
            )
            if claimed != 1:
                exists = fetch_one(conn, "SELECT id FROM tasks WHERE id = :id AND tenant_id = :tenant_id",
                                   {"id": task_id, "tenant_id": scope.tenant_id})
                if exists:
                    print(f"[TASKS] Claim lost: task_id={task_id}, user_id={identity.user_id}")
                    raise AlreadyClaimedError()
                raise NotFoundError("Task not found")
            row = self._load(conn, scope, task_id)

        audit_for(self.db, identity, "CLAIM", "task", task_id)
        return to_public(Task, row)

    def delete(self, identity: "AuthContext", task_id: str) -> None:
        enforce_role(identity, Operation.TASK_DELETE)
        scope = require_tenant_scope(identity)
        with self.db.transaction() as conn:
            self._load_for(conn, identity, scope, task_id, Operation.TASK_DELETE)
            execute(conn, "DELETE FROM tasks WHERE id = :id AND tenant_id = :tenant_id",
                    {"id": task_id, "tenant_id": scope.tenant_id})

        audit_for(self.db, identity, "DELETE", "task", task_id)
