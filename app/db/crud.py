from sqlalchemy.orm import Session
from uuid import UUID
from typing import List, Optional, Tuple
import json
import time

from app.db.models import User, AuditLog
from app.core.security import compute_hmac, verify_hmac

# User CRUD operations


def create_user(db: Session, email: str) -> User:
    """Create a dashboard user with 2FA disabled"""
    user = User(email=email, two_factor_enabled=False)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def get_user_by_id(db: Session, user_id: UUID) -> Optional[User]:
    """Get user by ID"""
    return db.query(User).filter(User.user_id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Get user by email"""
    return db.query(User).filter(User.email == email).first()


# Two-factor envelope operations


def get_two_factor_envelope(db: Session, user_id: UUID) -> Optional[Tuple[bytes, bytes]]:
    """Return (ciphertext, iv) for an enrolled user, None otherwise"""
    row = (
        db.query(User.two_factor_secret, User.two_factor_iv)
        .filter(User.user_id == user_id)
        .first()
    )
    if not row or row.two_factor_secret is None or row.two_factor_iv is None:
        return None
    return bytes(row.two_factor_secret), bytes(row.two_factor_iv)


def set_two_factor_envelope(db: Session, user_id: UUID, ciphertext: bytes, iv: bytes, enabled: bool = True) -> bool:
    """Write flag, ciphertext and IV in one UPDATE statement"""
    result = db.query(User).filter(User.user_id == user_id).update({
        "two_factor_enabled": enabled,
        "two_factor_secret": ciphertext,
        "two_factor_iv": iv,
    }, synchronize_session=False)
    db.commit()
    return result > 0


def clear_two_factor_envelope(db: Session, user_id: UUID) -> bool:
    """Disable 2FA and wipe the stored envelope"""
    result = db.query(User).filter(User.user_id == user_id).update({
        "two_factor_enabled": False,
        "two_factor_secret": None,
        "two_factor_iv": None,
    }, synchronize_session=False)
    db.commit()
    return result > 0


# Audit log operations


def _audit_payload(user_id: Optional[UUID], action: str, status: str, meta: str, timestamp: int, previous_hmac: Optional[str]) -> str:
    return f"{user_id}|{action}|{status}|{meta}|{timestamp}|{previous_hmac or ''}"


def get_last_audit_log_hmac(db: Session) -> Optional[str]:
    last = db.query(AuditLog).order_by(AuditLog.log_id.desc()).first()
    return last.log_entry_hmac if last else None


def create_audit_log(db: Session, user_id: Optional[UUID], action: str, status: str, meta: Optional[dict] = None) -> AuditLog:
    """Create an audit log entry chained to the previous one by HMAC"""
    timestamp = int(time.time())
    meta_json = json.dumps(meta or {}, sort_keys=True, default=str)
    previous_hmac = get_last_audit_log_hmac(db)

    log_entry = AuditLog(
        user_id=user_id,
        action=action,
        status=status,
        meta=meta_json,
        timestamp=timestamp,
        log_entry_hmac=compute_hmac(_audit_payload(user_id, action, status, meta_json, timestamp, previous_hmac)),
        previous_log_hmac=previous_hmac,
    )
    db.add(log_entry)
    db.commit()
    db.refresh(log_entry)
    return log_entry


def get_audit_logs_for_user(db: Session, user_id: UUID, action: Optional[str] = None) -> List[AuditLog]:
    query = db.query(AuditLog).filter(AuditLog.user_id == user_id)
    if action:
        query = query.filter(AuditLog.action == action)
    return query.order_by(AuditLog.log_id.asc()).all()


def verify_audit_chain(db: Session) -> bool:
    """Recompute every entry's HMAC and check the chain links"""
    previous_hmac = None
    for entry in db.query(AuditLog).order_by(AuditLog.log_id.asc()).all():
        if entry.previous_log_hmac != previous_hmac:
            return False
        payload = _audit_payload(
            entry.user_id, entry.action, entry.status, entry.meta, entry.timestamp, entry.previous_log_hmac
        )
        if not verify_hmac(payload, entry.log_entry_hmac):
            return False
        previous_hmac = entry.log_entry_hmac
    return True
