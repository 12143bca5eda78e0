"""
backend/routes_auth.py

Authentication routes: tenant signup, login and identity lookup.

Security:
- register-tenant and login are the only public write endpoints
- login errors never reveal whether the email exists
- /auth/me re-reads the user from the database (AuthContext)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from backend.auth_context import AuthContext, authenticate, get_database, require_auth_context
from backend.db import Database, fetch_one
from backend.dependencies import get_tenant_service
from backend.modules.tenants import TenantService
from backend.schemas import LoginRequest, RegisterTenantRequest, ok

router = APIRouter(prefix="/auth", tags=["auth"])


def _client_address(request: Request):
    return request.client.host if request.client else None


@router.post("/register-tenant", status_code=201)
def register_tenant(
    body: RegisterTenantRequest,
    request: Request,
    tenants: TenantService = Depends(get_tenant_service),
):
    """
    Create a tenant on the free plan together with its tenant_admin.

    Returns:
        {success, data: {token, user, tenant}}

    Raises:
        400: invalid or reserved subdomain
        409: subdomain already taken
    """
    result = tenants.register(
        tenant_name=body.tenant_name,
        subdomain=body.subdomain,
        email=body.email,
        password=body.password,
        full_name=body.full_name,
        source_address=_client_address(request),
    )
    return ok(result, "Tenant registered successfully")


@router.post("/login")
def login(body: LoginRequest, request: Request, db: Database = Depends(get_database)):
    """
    Exchange credentials (+ optional tenant subdomain) for a session token.

    Raises:
        401: invalid credentials (same response for unknown email and wrong password)
        403: account inactive or tenant suspended
        404: unknown tenant subdomain
    """
    result = authenticate(
        db,
        email=body.email,
        password=body.password,
        tenant_hint=body.tenant_subdomain,
        source_address=_client_address(request),
    )
    return ok(result, "Login successful")


@router.get("/me")
def me(ctx: AuthContext = Depends(require_auth_context), db: Database = Depends(get_database)):
    """Resolved identity of the caller plus a summary of their tenant."""
    tenant = None
    if ctx.tenant_id:
        with db.connect() as conn:
            tenant = fetch_one(
                conn,
                "SELECT id, name, subdomain, status, plan FROM tenants WHERE id = :tenant_id",
                {"tenant_id": ctx.tenant_id},
            )

    return ok({
        "user": {
            "id": ctx.user_id,
            "email": ctx.email,
            "full_name": ctx.full_name,
            "role": ctx.role.value,
            "tenant_id": ctx.tenant_id,
        },
        "tenant": tenant,
    })
