"""
backend/routes_users.py

Tenant user routes. Every query is scoped to the caller's tenant; only tenant
admins may create, modify or delete users.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from backend.auth_context import AuthContext
from backend.authz import Operation
from backend.dependencies import get_user_service, require_permission
from backend.modules.users import UserService
from backend.schemas import UserCreateRequest, UserUpdateRequest, changes_of, ok

router = APIRouter(prefix="/users", tags=["users"])


@router.get("")
def list_users(
    ctx: AuthContext = Depends(require_permission(Operation.USER_LIST)),
    users: UserService = Depends(get_user_service),
):
    return ok(users.list(ctx))


@router.post("", status_code=201)
def create_user(
    body: UserCreateRequest,
    ctx: AuthContext = Depends(require_permission(Operation.USER_CREATE)),
    users: UserService = Depends(get_user_service),
):
    """
    Add a user to the caller's tenant.

    Raises:
        402: tenant reached max_users
        409: email already in use in this tenant
    """
    user = users.create(ctx, email=body.email, password=body.password, full_name=body.full_name,
                        role=body.role.value)
    return ok(user, "User created")


@router.get("/{user_id}")
def get_user(
    user_id: str = Path(..., description="User ID"),
    ctx: AuthContext = Depends(require_permission(Operation.USER_READ)),
    users: UserService = Depends(get_user_service),
):
    return ok(users.get(ctx, user_id))


@router.put("/{user_id}")
def update_user(
    body: UserUpdateRequest,
    user_id: str = Path(..., description="User ID"),
    ctx: AuthContext = Depends(require_permission(Operation.USER_UPDATE)),
    users: UserService = Depends(get_user_service),
):
    return ok(users.update(ctx, user_id, changes_of(body)), "User updated")


@router.delete("/{user_id}")
def delete_user(
    user_id: str = Path(..., description="User ID"),
    ctx: AuthContext = Depends(require_permission(Operation.USER_DELETE)),
    users: UserService = Depends(get_user_service),
):
    """Raises 403 when an admin targets their own account."""
    users.delete(ctx, user_id)
    return ok(message="User deleted")
