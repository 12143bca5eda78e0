"""
backend/authz.py

Role-based authorization for every tenant-owned operation.

Single source of truth: the PERMISSIONS table keyed by (role, operation).
Routes and services never compare role strings themselves; they call
enforce() once per operation with the tenant (and, for tasks, the assignee)
of the stored resource.

Pure Python logic - no FastAPI imports, no database access.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Dict, Optional, Tuple

from backend.errors import AuthorizationError, NotFoundError
from backend.models import Role

if TYPE_CHECKING:
    from backend.auth_context import AuthContext


# ============================================================================
# Operations
# ============================================================================

class Operation(str, Enum):
    """Operations gated by the permission table."""

    TENANT_LIST = "tenant:list"
    TENANT_READ = "tenant:read"
    TENANT_UPDATE = "tenant:update"
    TENANT_DELETE = "tenant:delete"

    USER_LIST = "user:list"
    USER_READ = "user:read"
    USER_CREATE = "user:create"
    USER_UPDATE = "user:update"
    USER_DELETE = "user:delete"

    PROJECT_LIST = "project:list"
    PROJECT_READ = "project:read"
    PROJECT_CREATE = "project:create"
    PROJECT_UPDATE = "project:update"
    PROJECT_DELETE = "project:delete"

    TASK_LIST = "task:list"
    TASK_READ = "task:read"
    TASK_CREATE = "task:create"
    TASK_UPDATE = "task:update"
    TASK_UPDATE_STATUS = "task:update_status"
    TASK_CLAIM = "task:claim"
    TASK_DELETE = "task:delete"

    DASHBOARD_READ = "dashboard:read"
    AUDIT_LIST = "audit:list"


class Rule(str, Enum):
    ALLOW = "allow"  # no tenant scoping (system scope)
    OWN_TENANT = "own_tenant"
    OWN_TENANT_ASSIGNED = "own_tenant_assigned"  # own tenant AND assigned to caller
    DENY = "deny"


# ============================================================================
# Permission table
# ============================================================================

_TENANT_READ_OPS = (Operation.USER_LIST, Operation.USER_READ, Operation.PROJECT_LIST, Operation.PROJECT_READ,
                    Operation.TASK_LIST, Operation.TASK_READ, Operation.TASK_CREATE, Operation.TASK_CLAIM)
_ADMIN_ONLY_OPS = (Operation.USER_CREATE, Operation.USER_UPDATE, Operation.USER_DELETE,
                   Operation.PROJECT_CREATE, Operation.PROJECT_UPDATE, Operation.PROJECT_DELETE)
_ASSIGNEE_OPS = (Operation.TASK_UPDATE, Operation.TASK_UPDATE_STATUS, Operation.TASK_DELETE)


def _build_permissions() -> Dict[Tuple[Role, Operation], Rule]:
    table: Dict[Tuple[Role, Operation], Rule] = {}

    # system_admin: tenant administration only, no tenant-scoped CRUD
    for op in (Operation.TENANT_LIST, Operation.TENANT_READ, Operation.TENANT_UPDATE,
               Operation.TENANT_DELETE, Operation.DASHBOARD_READ, Operation.AUDIT_LIST):
        table[(Role.system_admin, op)] = Rule.ALLOW

    # tenant_admin: everything inside their own tenant
    for op in (Operation.TENANT_READ, Operation.TENANT_UPDATE, Operation.DASHBOARD_READ,
               Operation.AUDIT_LIST) + _TENANT_READ_OPS + _ADMIN_ONLY_OPS + _ASSIGNEE_OPS:
        table[(Role.tenant_admin, op)] = Rule.OWN_TENANT

    # member: read + task work; mutations only on tasks assigned to themselves
    for op in (Operation.TENANT_READ, Operation.DASHBOARD_READ) + _TENANT_READ_OPS:
        table[(Role.member, op)] = Rule.OWN_TENANT
    for op in _ASSIGNEE_OPS:
        table[(Role.member, op)] = Rule.OWN_TENANT_ASSIGNED

    return table


PERMISSIONS: Dict[Tuple[Role, Operation], Rule] = _build_permissions()


def rule_for(role: Role, operation: Operation) -> Rule:
    """Look up the rule for (role, operation). Anything not listed is denied."""
    return PERMISSIONS.get((Role(role), Operation(operation)), Rule.DENY)


# ============================================================================
# Decisions
# ============================================================================

class DenyReason(str, Enum):
    ROLE = "role"
    CROSS_TENANT = "cross_tenant"
    NOT_ASSIGNEE = "not_assignee"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[DenyReason] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(True)

    @classmethod
    def deny(cls, reason: DenyReason) -> "Decision":
        return cls(False, reason)


def authorize(
    identity: "AuthContext",
    operation: Operation,
    resource_tenant_id: Optional[str] = None,
    resource_assignee_id: Optional[str] = None,
) -> Decision:
    """
    Decide whether `identity` may perform `operation`.

    Args:
        identity: Resolved caller (role + tenant come from the server, never the client)
        operation: Operation being attempted
        resource_tenant_id: tenant_id of the stored resource, when one is involved.
            None means "the caller's own tenant" (list/create operations).
        resource_assignee_id: assigned_to of the stored task, for assignee rules

    Returns:
        Decision.allow() or Decision.deny(reason)
    """
    rule = rule_for(identity.role, operation)

    if rule == Rule.DENY:
        return Decision.deny(DenyReason.ROLE)

    if rule == Rule.ALLOW:
        return Decision.allow()

    # Tenant-scoped rules: the caller must belong to a tenant and the resource must be in it
    if identity.tenant_id is None:
        return Decision.deny(DenyReason.ROLE)

    if resource_tenant_id is not None and resource_tenant_id != identity.tenant_id:
        return Decision.deny(DenyReason.CROSS_TENANT)

    if rule == Rule.OWN_TENANT_ASSIGNED:
        if resource_assignee_id is None or resource_assignee_id != identity.user_id:
            return Decision.deny(DenyReason.NOT_ASSIGNEE)

    return Decision.allow()


def enforce(
    identity: "AuthContext",
    operation: Operation,
    resource_tenant_id: Optional[str] = None,
    resource_assignee_id: Optional[str] = None,
    not_found_message: str = "Not found",
) -> None:
    """
    authorize() + error mapping.

    Cross-tenant denials surface as NotFoundError so a caller can never tell
    a foreign resource from a missing one.

    Raises:
        NotFoundError: resource belongs to another tenant
        AuthorizationError: role or assignee rule denies the operation
    """
    decision = authorize(identity, operation, resource_tenant_id, resource_assignee_id)
    if decision.allowed:
        return

    if decision.reason == DenyReason.CROSS_TENANT:
        print(f"[SECURITY] Cross-tenant access blocked: op={operation.value}, "
              f"user_id={identity.user_id}, tenant_id={identity.tenant_id}")
        raise NotFoundError(not_found_message)

    print(f"[AUTHZ] Denied: op={operation.value}, role={identity.role.value}, "
          f"reason={decision.reason.value if decision.reason else 'unknown'}")
    if decision.reason == DenyReason.NOT_ASSIGNEE:
        raise AuthorizationError("Members can only modify tasks assigned to them")
    raise AuthorizationError()


def enforce_role(identity: "AuthContext", operation: Operation) -> None:
    """
    Role-level half of enforce(): may this role attempt the operation at all?

    Used before the target row is loaded (route gates, list/create). Tenant and
    assignee rules are checked by enforce() once the stored row is known.

    Raises:
        AuthorizationError: role has no rule for the operation
    """
    rule = rule_for(identity.role, operation)
    if rule == Rule.DENY or (rule != Rule.ALLOW and identity.tenant_id is None):
        print(f"[AUTHZ] Denied: op={operation.value}, role={identity.role.value}, reason={DenyReason.ROLE.value}")
        raise AuthorizationError()


def require_self_delete_guard(identity: "AuthContext", target_user_id: str) -> None:
    """A tenant admin may never delete their own user record."""
    if target_user_id == identity.user_id:
        print(f"[AUTHZ] Self-delete blocked: user_id={identity.user_id}")
        raise AuthorizationError("You cannot delete your own account")
