"""
Audit log repository (persistence).

Append-only store of who created, updated or deleted which record.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional
from uuid import UUID

from domain.time import utc_now
from repositories.client import execute, get_supabase

_AUDIT_TABLE: str = "audit_logs"


class SupabaseAuditRepository:
    def __init__(self, client: Any = None):
        self._client = client if client is not None else get_supabase()

    def record(
        self,
        *,
        user_id: UUID,
        action: str,
        resource: str,
        resource_id: Optional[UUID],
        metadata: Mapping[str, Any],
    ) -> None:
        payload: dict[str, Any] = {
            "user_id": str(user_id),
            "action": action,
            "resource": resource,
            "resource_id": str(resource_id) if resource_id else None,
            "metadata": dict(metadata),
            "created_at_utc": utc_now().isoformat(),
        }
        execute(self._client.table(_AUDIT_TABLE).insert(payload), action="record audit event")


__all__ = ["SupabaseAuditRepository"]
