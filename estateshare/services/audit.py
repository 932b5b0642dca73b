"""Audit logging service."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from estateshare.models.audit_log import AuditLog


class AuditService:
    """Persists audit entries and mirrors them to structured logs."""

    def __init__(self, session: Session) -> None:
        self._session = session
        self._logger = logging.getLogger("estateshare.audit")

    def record(
        self,
        *,
        action: str,
        actor_id: Optional[UUID],
        entity_id: Optional[UUID],
        entity_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        occurred_at: Optional[datetime] = None,
    ) -> AuditLog:
        """Write an audit log entry in the caller's transaction."""

        entry = AuditLog(
            action=action,
            actor_id=actor_id,
            entity_id=entity_id,
            entity_type=entity_type,
            details=details or {},
            occurred_at=occurred_at or datetime.now(timezone.utc),
        )
        self._session.add(entry)
        self._session.flush()

        self._logger.info(
            "audit_event_recorded",
            extra={
                "audit_id": str(entry.id),
                "action": action,
                "actor_id": str(actor_id) if actor_id else None,
                "entity_id": str(entity_id) if entity_id else None,
                "entity_type": entity_type,
            },
        )
        return entry

    def list_for_entity(self, entity_id: UUID) -> List[AuditLog]:
        stmt = (
            select(AuditLog)
            .where(AuditLog.entity_id == entity_id)
            .order_by(AuditLog.occurred_at.asc(), AuditLog.created_at.asc())
        )
        return list(self._session.scalars(stmt))
