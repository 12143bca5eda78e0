"""
backend/dependencies.py

Reusable FastAPI dependencies: permission gates and service providers.
"""

from __future__ import annotations

from typing import Callable

from fastapi import Depends

from backend.auth_context import AuthContext, get_database, require_auth_context
from backend.authz import Operation, enforce_role
from backend.config import IS_DEV
from backend.db import Database
from backend.modules.audit import AuditService
from backend.modules.dashboard import DashboardService
from backend.modules.projects import ProjectService
from backend.modules.tasks import TaskService
from backend.modules.tenants import TenantService
from backend.modules.users import UserService


def require_permission(operation: Operation) -> Callable:
    """
    FastAPI dependency factory for role-level authorization.

    Checks the (role, operation) entry of the permission table before the
    handler runs. Resource-level rules (tenant match, task assignee) are
    checked again by the service once the stored row is loaded.

    Usage in routes:
        @router.post("", dependencies=[Depends(require_permission(Operation.PROJECT_CREATE))])
        def create_project(ctx: AuthContext = Depends(require_auth_context)):
            ...

    Raises:
        AuthorizationError(403): role may not perform the operation
    """
    def _check_permission(ctx: AuthContext = Depends(require_auth_context)) -> AuthContext:
        enforce_role(ctx, operation)
        if IS_DEV:
            print(f"[AUTHZ] Permission granted: op={operation.value}, role={ctx.role.value}")
        return ctx

    return _check_permission


# ---------------------------------------------------------
# Service providers (one instance per request, shared Database)
# ---------------------------------------------------------
def get_tenant_service(db: Database = Depends(get_database)) -> TenantService:
    return TenantService(db)


def get_user_service(db: Database = Depends(get_database)) -> UserService:
    return UserService(db)


def get_project_service(db: Database = Depends(get_database)) -> ProjectService:
    return ProjectService(db)


def get_task_service(db: Database = Depends(get_database)) -> TaskService:
    return TaskService(db)


def get_dashboard_service(db: Database = Depends(get_database)) -> DashboardService:
    return DashboardService(db)


def get_audit_service(db: Database = Depends(get_database)) -> AuditService:
    return AuditService(db)
