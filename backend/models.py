from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel


# Enums
class Role(str, Enum):
    system_admin = "system_admin"
    tenant_admin = "tenant_admin"
    member = "member"


class TenantStatus(str, Enum):
    active = "active"
    suspended = "suspended"


class PlanName(str, Enum):
    free = "free"
    pro = "pro"
    enterprise = "enterprise"


class ProjectStatus(str, Enum):
    active = "active"
    archived = "archived"
    completed = "completed"


class TaskStatus(str, Enum):
    todo = "todo"
    in_progress = "in_progress"
    completed = "completed"


class TaskPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


# Allowed task status moves. Re-setting the current status is a no-op.
TASK_TRANSITIONS: Dict[TaskStatus, FrozenSet[TaskStatus]] = {
    TaskStatus.todo: frozenset({TaskStatus.in_progress}),
    TaskStatus.in_progress: frozenset({TaskStatus.todo, TaskStatus.completed}),
    TaskStatus.completed: frozenset({TaskStatus.in_progress}),
}


def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    if current == target:
        return True
    return target in TASK_TRANSITIONS.get(current, frozenset())


# Models (shape of stored rows, as returned by the API)
class Tenant(BaseModel):
    id: str
    name: str
    subdomain: str
    status: TenantStatus = TenantStatus.active
    plan: PlanName = PlanName.free
    max_users: int
    max_projects: int
    created_at: str
    updated_at: str
    # Aggregates attached by list queries
    user_count: Optional[int] = None
    project_count: Optional[int] = None


class User(BaseModel):
    """Public user shape. password_hash never leaves the backend."""
    id: str
    tenant_id: Optional[str] = None
    email: str
    full_name: str
    role: Role = Role.member
    active: bool = True
    created_at: str
    updated_at: str


class Project(BaseModel):
    id: str
    tenant_id: str
    name: str
    description: Optional[str] = None
    status: ProjectStatus = ProjectStatus.active
    created_by: Optional[str] = None
    created_at: str
    updated_at: str
    task_count: Optional[int] = None
    completed_task_count: Optional[int] = None


class Task(BaseModel):
    id: str
    tenant_id: str
    project_id: str
    title: str
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.todo
    priority: TaskPriority = TaskPriority.medium
    assigned_to: Optional[str] = None
    due_date: Optional[str] = None
    created_at: str
    updated_at: str
    project_name: Optional[str] = None
    assignee_name: Optional[str] = None


def to_public(model: type, row: dict) -> dict:
    """Serialize a stored row through its model (drops columns like password_hash)."""
    return model.model_validate(row).model_dump(mode="json", exclude_unset=True)


class AuditEntry(BaseModel):
    id: str
    tenant_id: Optional[str] = None
    user_id: Optional[str] = None
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    source_address: Optional[str] = None
    created_at: str
