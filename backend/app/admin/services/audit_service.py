"""
Audit Service - structured audit trail for RBAC changes and access denials.

Entries are written as JSON through the ``quicklink.audit`` logger. Audit
failures never block the operation being audited.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("quicklink.audit")


class AuditService:
    """Fire-and-forget audit logging; failures do not propagate to the caller."""

    async def log_admin_action(
        self,
        *,
        actor_id: str | None,
        action: str,
        target_type: str,
        target_id: str,
        payload: dict[str, Any] | None = None,
    ) -> None:
        """
        Log an admin action in structured JSON format.

        Args:
            actor_id: Principal id of the admin performing the action
                (``"system"`` for operator procedures)
            action: Action identifier (e.g., "roles.delete")
            target_type: Type of target entity (e.g., "role", "admin")
            target_id: ID of the target entity
            payload: Optional dict with action details
        """
        try:
            audit_entry = {
                "actor_id": actor_id,
                "action": action,
                "target_type": target_type,
                "target_id": str(target_id),
                "payload": payload or {},
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
            logger.info(
                "AUDIT: %s",
                json.dumps(audit_entry, ensure_ascii=False, default=str),
                extra={"audit_entry": audit_entry},
            )
        except Exception as e:
            logger.error(
                "Audit logging failed for action %s: %s",
                action,
                str(e),
                exc_info=True,
            )

    async def log_access_denied(
        self,
        *,
        actor_id: str | None,
        requirement: str,
        kind: str,
        message: str,
        request_method: str | None = None,
        request_path: str | None = None,
    ) -> None:
        await self.log_admin_action(
            actor_id=actor_id,
            action="access_denied",
            target_type="requirement",
            target_id=requirement,
            payload={
                "kind": kind,
                "message": message,
                "request_method": request_method,
                "request_path": request_path,
            },
        )
