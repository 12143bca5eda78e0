"""
backend/modules/audit.py

Append-only audit trail.

record_audit() is called after the primary write has committed, on its own
transaction. A failed audit write is printed and dropped; it never turns a
successful operation into an error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from backend.authz import Operation, enforce_role
from backend.db import Database, execute, fetch_all, new_id, now_iso
from backend.models import AuditEntry, to_public
from backend.tenant import assert_rows_scoped, scope_for

if TYPE_CHECKING:
    from backend.auth_context import AuthContext

MAX_AUDIT_LIMIT = 500


def record_audit(
    db: Database,
    action: str,
    entity_type: str,
    entity_id: Optional[str] = None,
    tenant_id: Optional[str] = None,
    user_id: Optional[str] = None,
    source_address: Optional[str] = None,
) -> None:
    try:
        with db.transaction() as conn:
            execute(
                conn,
                """
                INSERT INTO audit_logs (id, tenant_id, user_id, action, entity_type, entity_id,
                                        source_address, created_at)
                VALUES (:id, :tenant_id, :user_id, :action, :entity_type, :entity_id,
                        :source_address, :created_at)
                """,
                {
                    "id": new_id(),
                    "tenant_id": tenant_id,
                    "user_id": user_id,
                    "action": action,
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                    "source_address": source_address,
                    "created_at": now_iso(),
                },
            )
    except Exception as e:
        print(f"[AUDIT] Failed to record {action} {entity_type}:{entity_id}: {type(e).__name__}: {e}")


def audit_for(db: Database, identity: "AuthContext", action: str, entity_type: str,
              entity_id: Optional[str] = None, tenant_id: Optional[str] = None) -> None:
    """record_audit() with the actor taken from the request identity."""
    record_audit(
        db,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        tenant_id=tenant_id if tenant_id is not None else identity.tenant_id,
        user_id=identity.user_id,
        source_address=identity.source_address,
    )


class AuditService:
    def __init__(self, db: Database):
        self.db = db

    def list(self, identity: "AuthContext", limit: int = 100) -> List[dict]:
        """Most recent entries first. Tenant admins see their tenant only."""
        enforce_role(identity, Operation.AUDIT_LIST)
        limit = max(1, min(int(limit), MAX_AUDIT_LIMIT))

        scope = scope_for(identity)
        where, params = scope.where("a.tenant_id")
        with self.db.connect() as conn:
            rows = fetch_all(
                conn,
                f"""
                SELECT a.*, u.email AS user_email
                FROM audit_logs a
                LEFT JOIN users u ON u.id = a.user_id
                WHERE {where}
                ORDER BY a.created_at DESC
                LIMIT :limit
                """,
                {**params, "limit": limit},
            )
        assert_rows_scoped(rows, scope, "audit_logs.list")

        entries = []
        for row in rows:
            entry = to_public(AuditEntry, row)
            entry["user_email"] = row.get("user_email")
            entries.append(entry)
        return entries
