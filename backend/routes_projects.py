"""
backend/routes_projects.py

Project routes, including the per-project task list/create endpoints.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from backend.auth_context import AuthContext
from backend.authz import Operation
from backend.dependencies import get_project_service, get_task_service, require_permission
from backend.models import ProjectStatus
from backend.modules.projects import ProjectService
from backend.modules.tasks import TaskService
from backend.schemas import ProjectCreateRequest, ProjectUpdateRequest, TaskCreateRequest, changes_of, ok

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("")
def list_projects(
    status: Optional[ProjectStatus] = Query(None, description="Filter by project status"),
    ctx: AuthContext = Depends(require_permission(Operation.PROJECT_LIST)),
    projects: ProjectService = Depends(get_project_service),
):
    return ok(projects.list(ctx, status=status.value if status else None))


@router.post("", status_code=201)
def create_project(
    body: ProjectCreateRequest,
    ctx: AuthContext = Depends(require_permission(Operation.PROJECT_CREATE)),
    projects: ProjectService = Depends(get_project_service),
):
    """
    Create a project in the caller's tenant.

    Raises:
        402: tenant reached max_projects
    """
    project = projects.create(ctx, name=body.name, description=body.description, status=body.status.value)
    return ok(project, "Project created")


@router.get("/{project_id}")
def get_project(
    project_id: str = Path(..., description="Project ID"),
    ctx: AuthContext = Depends(require_permission(Operation.PROJECT_READ)),
    projects: ProjectService = Depends(get_project_service),
):
    return ok(projects.get(ctx, project_id))


@router.put("/{project_id}")
def update_project(
    body: ProjectUpdateRequest,
    project_id: str = Path(..., description="Project ID"),
    ctx: AuthContext = Depends(require_permission(Operation.PROJECT_UPDATE)),
    projects: ProjectService = Depends(get_project_service),
):
    return ok(projects.update(ctx, project_id, changes_of(body)), "Project updated")


@router.delete("/{project_id}")
def delete_project(
    project_id: str = Path(..., description="Project ID"),
    ctx: AuthContext = Depends(require_permission(Operation.PROJECT_DELETE)),
    projects: ProjectService = Depends(get_project_service),
):
    """Delete a project and its tasks."""
    projects.delete(ctx, project_id)
    return ok(message="Project deleted")


# ------------------------------------------------------------------
# Tasks of a project
# ------------------------------------------------------------------
@router.get("/{project_id}/tasks")
def list_project_tasks(
    project_id: str = Path(..., description="Project ID"),
    ctx: AuthContext = Depends(require_permission(Operation.TASK_LIST)),
    tasks: TaskService = Depends(get_task_service),
):
    return ok(tasks.list_for_project(ctx, project_id))


@router.post("/{project_id}/tasks", status_code=201)
def create_project_task(
    body: TaskCreateRequest,
    project_id: str = Path(..., description="Project ID"),
    ctx: AuthContext = Depends(require_permission(Operation.TASK_CREATE)),
    tasks: TaskService = Depends(get_task_service),
):
    data = changes_of(body)
    task = tasks.create(
        ctx,
        project_id=project_id,
        title=body.title,
        description=body.description,
        priority=body.priority.value,
        status=body.status.value,
        assigned_to=body.assigned_to,
        due_date=data.get("due_date"),
    )
    return ok(task, "Task created")
