"""
Best-effort audit trail.

Audit rows are written through their own session so that a failed audit
write can never roll back, or be rolled back with, the ledger change it
describes.
"""

import json
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ledger_core.infrastructure.database.models import AuditLog

logger = logging.getLogger(__name__)


def _to_json(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, default=str, sort_keys=True)


class AuditTrail:

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def record(
        self,
        org_id: str | None,
        user_id: str | None,
        action: str,
        entity_type: str,
        entity_id: str,
        old_value: Any = None,
        new_value: Any = None,
    ) -> bool:
        """Write one audit row. Returns False (and logs) when the write fails."""
        db = self.session_factory()
        try:
            db.add(
                AuditLog(
                    org_id=org_id,
                    user_id=user_id,
                    action=action,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    old_value=_to_json(old_value),
                    new_value=_to_json(new_value),
                )
            )
            db.commit()
            return True
        except SQLAlchemyError:
            db.rollback()
            logger.error("Audit write failed: %s %s %s", action, entity_type, entity_id, exc_info=True)
            return False
        finally:
            db.close()

    def list_logs(
        self,
        org_id: str,
        entity_type: str | None = None,
        entity_id: str | None = None,
        action: str | None = None,
        limit: int = 100,
    ) -> list[AuditLog]:
        db = self.session_factory()
        try:
            query = db.query(AuditLog).filter(AuditLog.org_id == org_id)
            if entity_type:
                query = query.filter(AuditLog.entity_type == entity_type)
            if entity_id:
                query = query.filter(AuditLog.entity_id == entity_id)
            if action:
                query = query.filter(AuditLog.action == action)
            return query.order_by(AuditLog.created_at.desc()).limit(limit).all()
        finally:
            db.close()
