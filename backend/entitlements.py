"""
backend/entitlements.py

Plan limits for tenants (server-side source of truth).

Each tenant row carries its own max_users / max_projects. The plan table below
only supplies the defaults written at registration or when a system admin moves
a tenant to another plan without giving explicit limits.

Quota enforcement is a pre-check: COUNT the tenant's rows, reject when
count >= limit. The count and the following INSERT are separate statements, so
two concurrent creations can both pass the check (see DESIGN.md, quota race).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from sqlalchemy.engine import Connection

from backend.db import fetch_one, fetch_scalar
from backend.errors import NotFoundError, QuotaExceededError
from backend.models import PlanName


@dataclass(frozen=True)
class PlanLimits:
    name: str
    max_users: int
    max_projects: int


PLANS: Dict[str, PlanLimits] = {
    PlanName.free.value: PlanLimits("free", max_users=5, max_projects=3),
    PlanName.pro.value: PlanLimits("pro", max_users=25, max_projects=15),
    PlanName.enterprise.value: PlanLimits("enterprise", max_users=100, max_projects=50),
}


def limits_for_plan(plan: str) -> PlanLimits:
    """Defaults for a plan (unknown plans fall back to free)."""
    return PLANS.get((plan or "").lower(), PLANS["free"])


# Quota name -> (table counted, tenant column holding the limit)
QUOTAS = {
    "users": ("users", "max_users"),
    "projects": ("projects", "max_projects"),
}


def get_usage(conn: Connection, tenant_id: str) -> Dict[str, int]:
    """Current row counts for every quota-checked resource of a tenant."""
    usage = {}
    for quota, (table, _limit_column) in QUOTAS.items():
        usage[quota] = int(
            fetch_scalar(conn, f"SELECT COUNT(*) FROM {table} WHERE tenant_id = :tenant_id", {"tenant_id": tenant_id})
            or 0
        )
    return usage


def require_quota(conn: Connection, tenant_id: str, quota: str) -> None:
    """
    Raise QuotaExceededError if the tenant is at/over its limit for `quota`.

    Args:
        conn: Open connection
        tenant_id: Tenant being written to (from the auth context)
        quota: "users" or "projects"
    """
    table, limit_column = QUOTAS[quota]

    tenant = fetch_one(
        conn,
        f"SELECT id, plan, {limit_column} AS quota_limit FROM tenants WHERE id = :tenant_id",
        {"tenant_id": tenant_id},
    )
    if not tenant:
        raise NotFoundError("Tenant not found")

    current = int(
        fetch_scalar(conn, f"SELECT COUNT(*) FROM {table} WHERE tenant_id = :tenant_id", {"tenant_id": tenant_id})
        or 0
    )
    limit = int(tenant["quota_limit"])

    if current >= limit:
        print(f"[QUOTA] Limit reached: tenant_id={tenant_id}, {quota}={current}/{limit}")
        raise QuotaExceededError(
            f"Limit reached for {quota}: {current}/{limit} ({tenant['plan']} plan)"
        )
