"""
backend/routes_tasks.py

Task routes: tenant-wide list/create, per-task CRUD, status changes, claiming
and the caller's task board (/my-tasks).

Security:
- members may only update/delete/change status of tasks assigned to them
- claim succeeds for exactly one caller per unassigned task (409 for the rest)
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from backend.auth_context import AuthContext
from backend.authz import Operation
from backend.dependencies import get_task_service, require_permission
from backend.models import TaskPriority, TaskStatus
from backend.modules.tasks import TaskService
from backend.schemas import TaskCreateWithProjectRequest, TaskStatusRequest, TaskUpdateRequest, changes_of, ok

router = APIRouter(tags=["tasks"])


@router.get("/tasks")
def list_tasks(
    project_id: Optional[str] = Query(None),
    status: Optional[TaskStatus] = Query(None),
    priority: Optional[TaskPriority] = Query(None),
    assigned_to: Optional[str] = Query(None, description="User ID"),
    ctx: AuthContext = Depends(require_permission(Operation.TASK_LIST)),
    tasks: TaskService = Depends(get_task_service),
):
    return ok(tasks.list(
        ctx,
        project_id=project_id,
        status=status.value if status else None,
        priority=priority.value if priority else None,
        assigned_to=assigned_to,
    ))


@router.post("/tasks", status_code=201)
def create_task(
    body: TaskCreateWithProjectRequest,
    ctx: AuthContext = Depends(require_permission(Operation.TASK_CREATE)),
    tasks: TaskService = Depends(get_task_service),
):
    """
    Create a task in one of the caller's projects.

    Raises:
        400: assignee not an active user of this tenant
        403: member assigning someone else
        404: project missing or in another tenant
    """
    data = changes_of(body)
    task = tasks.create(
        ctx,
        project_id=body.project_id,
        title=body.title,
        description=body.description,
        priority=body.priority.value,
        status=body.status.value,
        assigned_to=body.assigned_to,
        due_date=data.get("due_date"),
    )
    return ok(task, "Task created")


@router.get("/my-tasks")
def my_tasks(
    ctx: AuthContext = Depends(require_permission(Operation.TASK_LIST)),
    tasks: TaskService = Depends(get_task_service),
):
    """{my_tasks: assigned to the caller, open_tasks: unassigned and not completed}."""
    return ok(tasks.my_tasks(ctx))


@router.get("/tasks/{task_id}")
def get_task(
    task_id: str = Path(..., description="Task ID"),
    ctx: AuthContext = Depends(require_permission(Operation.TASK_READ)),
    tasks: TaskService = Depends(get_task_service),
):
    return ok(tasks.get(ctx, task_id))


@router.put("/tasks/{task_id}")
def update_task(
    body: TaskUpdateRequest,
    task_id: str = Path(..., description="Task ID"),
    ctx: AuthContext = Depends(require_permission(Operation.TASK_UPDATE)),
    tasks: TaskService = Depends(get_task_service),
):
    return ok(tasks.update(ctx, task_id, changes_of(body)), "Task updated")


@router.patch("/tasks/{task_id}/status")
def update_task_status(
    body: TaskStatusRequest,
    task_id: str = Path(..., description="Task ID"),
    ctx: AuthContext = Depends(require_permission(Operation.TASK_UPDATE_STATUS)),
    tasks: TaskService = Depends(get_task_service),
):
    """
    Move a task along todo -> in_progress -> completed (and back one step).

    Raises:
        400: transition not allowed
    """
    return ok(tasks.update_status(ctx, task_id, body.status.value), "Task status updated")


@router.patch("/tasks/{task_id}/claim")
def claim_task(
    task_id: str = Path(..., description="Task ID"),
    ctx: AuthContext = Depends(require_permission(Operation.TASK_CLAIM)),
    tasks: TaskService = Depends(get_task_service),
):
    """
    Assign an unassigned task to the caller.

    Raises:
        404: no such task in the caller's tenant
        409: task already claimed
    """
    return ok(tasks.claim(ctx, task_id), "Task claimed")


@router.delete("/tasks/{task_id}")
def delete_task(
    task_id: str = Path(..., description="Task ID"),
    ctx: AuthContext = Depends(require_permission(Operation.TASK_DELETE)),
    tasks: TaskService = Depends(get_task_service),
):
    tasks.delete(ctx, task_id)
    return ok(message="Task deleted")
