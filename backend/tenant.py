"""
backend/tenant.py

Tenant guardrails (defense in depth).

All tenant-owned queries get their WHERE clause from TenantScope so the
tenant_id predicate is never typed by hand in a service. Rows coming back are
then checked against the scope:

- In DEV: emit warnings for unsafe access
- In STAGING/PROD: fail fast with a server error
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from backend.config import IS_DEV
from backend.errors import AppError, AuthorizationError


class TenantIsolationError(AppError):
    status_code = 500
    default_message = "Tenant isolation violation detected - this is a server error"


@dataclass(frozen=True)
class TenantScope:
    """
    Scoping predicate for a request.

    tenant_id=None means unscoped (system-level identity). Services only build
    unscoped scopes for operations the permission table grants system-wide.
    """
    tenant_id: Optional[str]

    @property
    def is_system(self) -> bool:
        return self.tenant_id is None

    def where(self, column: str = "tenant_id", param: str = "scope_tenant_id") -> Tuple[str, Dict[str, Any]]:
        """
        SQL fragment + params restricting `column` to the scope.

        Returns ("1=1", {}) for the system scope so it can always be AND-ed.
        """
        if self.tenant_id is None:
            return "1=1", {}
        return f"{column} = :{param}", {param: self.tenant_id}


def scope_for(identity) -> TenantScope:
    """Scope derived from the authenticated identity (never from the request body)."""
    return TenantScope(tenant_id=identity.tenant_id)


def require_tenant_scope(identity) -> TenantScope:
    """
    Guardrail: tenant-scoped operations need an identity that belongs to a tenant.

    Raises:
        AuthorizationError: system-level identity attempting tenant-scoped CRUD
    """
    if identity.tenant_id is None:
        print(f"[TENANT] Tenant-scoped operation attempted without tenant: user_id={identity.user_id}")
        raise AuthorizationError("This operation requires a tenant account")
    return TenantScope(tenant_id=identity.tenant_id)


def assert_rows_scoped(rows: List[Dict[str, Any]], scope: TenantScope, label: str = "") -> None:
    """
    Guardrail: every returned row must belong to the scope's tenant.

    - In DEV: warns about mismatched tenant_ids
    - In STAGING/PROD: fails fast

    Raises:
        TenantIsolationError: mismatched row in non-dev environments
        RuntimeError: tenant_id missing from the SELECT list
    """
    if scope.is_system or not rows:
        return

    mismatches = []
    for i, row in enumerate(rows):
        if "tenant_id" not in row:
            raise RuntimeError(
                f"[TENANT] Query missing tenant_id in SELECT for {label or 'unknown query'} (row {i})"
            )
        if row["tenant_id"] != scope.tenant_id:
            mismatches.append({"index": i, "expected": scope.tenant_id, "found": row["tenant_id"]})

    if mismatches:
        error_msg = f"[TENANT] Tenant isolation violation{f' in {label}' if label else ''}"
        if IS_DEV:
            print(f"{error_msg}: {len(mismatches)} row(s) (DEV warning) {mismatches[:3]}")
        else:
            print(f"{error_msg}: {len(mismatches)} row(s) (PRODUCTION - failing fast)")
            raise TenantIsolationError()


def assert_row_scoped(row: Optional[Dict[str, Any]], scope: TenantScope, label: str = "") -> None:
    """Single-row variant of assert_rows_scoped (None is fine, that's a 404)."""
    if row is None:
        return
    assert_rows_scoped([row], scope, label)
