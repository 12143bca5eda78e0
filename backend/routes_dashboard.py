"""
backend/routes_dashboard.py

Read-only aggregate routes: dashboard statistics and the audit trail.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from backend.auth_context import AuthContext
from backend.authz import Operation
from backend.dependencies import get_audit_service, get_dashboard_service, require_permission
from backend.modules.audit import MAX_AUDIT_LIMIT, AuditService
from backend.modules.dashboard import DashboardService
from backend.schemas import ok

router = APIRouter(tags=["dashboard"])


@router.get("/dashboard/stats")
def dashboard_stats(
    ctx: AuthContext = Depends(require_permission(Operation.DASHBOARD_READ)),
    dashboard: DashboardService = Depends(get_dashboard_service),
):
    """Statistics shaped by the caller's role (see DashboardService)."""
    return ok(dashboard.stats(ctx))


@router.get("/audit-logs")
def audit_logs(
    limit: int = Query(100, ge=1, le=MAX_AUDIT_LIMIT),
    ctx: AuthContext = Depends(require_permission(Operation.AUDIT_LIST)),
    audit: AuditService = Depends(get_audit_service),
):
    """Most recent audit entries (tenant admins: own tenant; system admins: all)."""
    return ok(audit.list(ctx, limit=limit))
