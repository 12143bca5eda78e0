"""
backend/schemas.py

Request bodies for the HTTP API + the response envelope helper.

Bodies only carry what the client may choose. tenant_id, created_by and the
caller's role are never accepted from a request; they come from AuthContext.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from backend.models import PlanName, ProjectStatus, Role, TaskPriority, TaskStatus, TenantStatus


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    """Success envelope: {success: true, data?, message?}."""
    body: dict = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return body


def _lower(v):
    # Emails are unique case-insensitively; EmailStr only normalizes the domain
    return v.lower() if isinstance(v, str) else v


def _strip(v):
    return v.strip() if isinstance(v, str) else v


# ========================================================================
# AUTH
# ========================================================================

class RegisterTenantRequest(BaseModel):
    """Self-service signup: creates the tenant and its first tenant_admin."""
    tenant_name: str = Field(..., min_length=1, max_length=200, description="Display name of the tenant")
    subdomain: str = Field(..., min_length=3, max_length=63, description="Unique tenant subdomain (login hint)")
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)
    full_name: str = Field(..., min_length=1, max_length=200)

    @field_validator("email", mode="before")
    @classmethod
    def trim_email(cls, v):
        return _strip(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return _lower(v)

    @field_validator("tenant_name", "full_name", "subdomain", mode="before")
    @classmethod
    def trim(cls, v):
        return _strip(v)

    @field_validator("subdomain")
    @classmethod
    def lowercase_subdomain(cls, v):
        return v.lower()


class LoginRequest(BaseModel):
    email: str
    password: str
    tenant_subdomain: Optional[str] = Field(
        None, description="Tenant subdomain; omit (or 'system') for system administrators"
    )


# ========================================================================
# TENANTS
# ========================================================================

class TenantUpdateRequest(BaseModel):
    """Partial tenant update. Only `name` is open to tenant admins."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    status: Optional[TenantStatus] = None
    plan: Optional[PlanName] = None
    max_users: Optional[int] = Field(None, ge=0)
    max_projects: Optional[int] = Field(None, ge=0)


# ========================================================================
# USERS
# ========================================================================

class UserCreateRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)
    full_name: str = Field(..., min_length=1, max_length=200)
    role: Role = Role.member

    @field_validator("email", mode="before")
    @classmethod
    def trim_email(cls, v):
        return _strip(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return _lower(v)

    @field_validator("full_name", mode="before")
    @classmethod
    def trim_name(cls, v):
        return _strip(v)


class UserUpdateRequest(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=200)
    role: Optional[Role] = None
    active: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=6, max_length=72)


# ========================================================================
# PROJECTS
# ========================================================================

class ProjectCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    status: ProjectStatus = ProjectStatus.active

    @field_validator("name", mode="before")
    @classmethod
    def trim_name(cls, v):
        return _strip(v)


class ProjectUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    status: Optional[ProjectStatus] = None


# ========================================================================
# TASKS
# ========================================================================

class TaskCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    description: Optional[str] = Field(None, max_length=5000)
    status: TaskStatus = TaskStatus.todo
    priority: TaskPriority = TaskPriority.medium
    assigned_to: Optional[str] = None
    due_date: Optional[date] = Field(None, description="ISO date (YYYY-MM-DD)")

    @field_validator("title", mode="before")
    @classmethod
    def trim_title(cls, v):
        return _strip(v)


class TaskCreateWithProjectRequest(TaskCreateRequest):
    """POST /tasks carries the project in the body."""
    project_id: str = Field(..., min_length=1)


class TaskUpdateRequest(BaseModel):
    """Partial update; send assigned_to: null to unassign."""
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    description: Optional[str] = Field(None, max_length=5000)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assigned_to: Optional[str] = None
    due_date: Optional[date] = None


class TaskStatusRequest(BaseModel):
    status: TaskStatus


def changes_of(body: BaseModel) -> dict:
    """Fields the client actually sent, as storable (JSON) values."""
    return body.model_dump(mode="json", exclude_unset=True)
