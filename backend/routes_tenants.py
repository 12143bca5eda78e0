"""
backend/routes_tenants.py

Tenant administration routes.

- system_admin: list, read, update (any field), delete
- tenant_admin: read + rename their own tenant
- member: read their own tenant
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from backend.auth_context import AuthContext, require_auth_context
from backend.authz import Operation
from backend.dependencies import get_tenant_service, require_permission
from backend.modules.tenants import TenantService
from backend.schemas import TenantUpdateRequest, changes_of, ok

router = APIRouter(prefix="/tenants", tags=["tenants"])


@router.get("")
def list_tenants(
    ctx: AuthContext = Depends(require_permission(Operation.TENANT_LIST)),
    tenants: TenantService = Depends(get_tenant_service),
):
    """All tenants with user/project counts (system administrators only)."""
    return ok(tenants.list(ctx))


@router.get("/{tenant_id}")
def get_tenant(
    tenant_id: str = Path(..., description="Tenant ID"),
    ctx: AuthContext = Depends(require_auth_context),
    tenants: TenantService = Depends(get_tenant_service),
):
    return ok(tenants.get(ctx, tenant_id))


@router.put("/{tenant_id}")
def update_tenant(
    body: TenantUpdateRequest,
    tenant_id: str = Path(..., description="Tenant ID"),
    ctx: AuthContext = Depends(require_permission(Operation.TENANT_UPDATE)),
    tenants: TenantService = Depends(get_tenant_service),
):
    """
    Partial update.

    Raises:
        403: tenant admin touching status/plan/limits
        404: tenant missing (or another tenant's, for tenant admins)
    """
    return ok(tenants.update(ctx, tenant_id, changes_of(body)), "Tenant updated")


@router.delete("/{tenant_id}")
def delete_tenant(
    tenant_id: str = Path(..., description="Tenant ID"),
    ctx: AuthContext = Depends(require_permission(Operation.TENANT_DELETE)),
    tenants: TenantService = Depends(get_tenant_service),
):
    """Delete a tenant with all its users, projects and tasks."""
    tenants.delete(ctx, tenant_id)
    return ok(message="Tenant deleted")
