import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db import crud

logger = logging.getLogger(__name__)

# Audit actions
MFA_ENABLED = "MFA_ENABLED"
MFA_VERIFIED = "MFA_VERIFIED"
MFA_DISABLED = "MFA_DISABLED"

# Audit statuses
SUCCESS = "SUCCESS"
FAILURE = "FAILURE"   # operation ran, outcome negative (wrong code)
ERROR = "ERROR"       # operation could not complete, reason in meta


@dataclass
class AuditEvent:
    action: str
    user_id: Optional[UUID]
    status: str
    meta: Dict[str, Any] = field(default_factory=dict)


class SqlAuditLogger:
    """Writes audit events to the audit_log table.

    Recording is fire-and-forget for callers: a failed write is rolled back
    and logged here, never raised.
    """

    def __init__(self, db: Session):
        self.db = db

    def record(self, event: AuditEvent) -> None:
        try:
            crud.create_audit_log(self.db, event.user_id, event.action, event.status, event.meta)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to write audit event {event.action}/{event.status} for user {event.user_id}")
