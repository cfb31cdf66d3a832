"""Two-factor enrolment and verification.

Sequences the pieces of the TOTP flow and talks to the envelope store:

    enable  -> generate secret + URI -> encrypt -> store {enabled, ciphertext, iv}
    verify  -> load envelope -> decrypt -> check code against t-1, t, t+1
    disable -> clear envelope

Every failure kind of the flow is a TwoFactorError and is returned inside a
TwoFactorResult instead of raised, so callers never confuse a wrong code
(a False value) with an error. Each audited call records exactly one event.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar
from uuid import UUID

from app.core.config import TOTP_ISSUER
from app.core.exceptions import DecryptionError, NotEnrolledError, TwoFactorError
from app.services import audit
from app.services.audit import AuditEvent
from app.services.crypto import EnvelopeCipher
from app.services.totp_service import generate_secret, validate_code_format, verify_code

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class TwoFactorResult(Generic[T]):
    value: Optional[T] = None
    error: Optional[TwoFactorError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "TwoFactorResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: TwoFactorError) -> "TwoFactorResult[T]":
        return cls(error=error)


@dataclass(frozen=True)
class EnableOutcome:
    provisioning_uri: str


class TwoFactorService:
    def __init__(
        self,
        store,
        cipher: EnvelopeCipher,
        audit_logger,
        issuer: str = TOTP_ISSUER,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.cipher = cipher
        self.audit_logger = audit_logger
        self.issuer = issuer
        self.clock = clock

    def _record(self, action: str, user_id: UUID, status: str, meta: Optional[Dict[str, Any]], **extra) -> None:
        event_meta = dict(meta or {})
        event_meta.update(extra)
        self.audit_logger.record(AuditEvent(action=action, user_id=user_id, status=status, meta=event_meta))

    def _error(self, action: str, user_id: UUID, error: TwoFactorError, meta) -> TwoFactorResult:
        if isinstance(error, DecryptionError):
            logger.error(f"{action}: stored 2FA envelope for user {user_id} could not be opened: {error}")
        else:
            logger.warning(f"{action} failed for user {user_id}: {error.kind}: {error}")
        self._record(action, user_id, audit.ERROR, meta, reason=error.kind)
        return TwoFactorResult.failure(error)

    def _unexpected(self, action: str, user_id: UUID, error: Exception, meta) -> None:
        """Audit an error outside the TwoFactorError taxonomy; the caller re-raises it"""
        logger.exception(f"{action}: unexpected error for user {user_id}")
        self._record(action, user_id, audit.ERROR, meta, reason=type(error).__name__)

    def enable(self, user_id: UUID, account_label: str, meta: Optional[Dict[str, Any]] = None) -> TwoFactorResult[EnableOutcome]:
        """Enrol (or re-enrol) a user. A previous secret is invalidated."""
        try:
            generated = generate_secret(account_label, self.issuer)
            envelope = self.cipher.encrypt(generated.secret)
            self.store.set_envelope(user_id, envelope, enabled=True)
        except TwoFactorError as e:
            return self._error(audit.MFA_ENABLED, user_id, e, meta)
        except Exception as e:
            self._unexpected(audit.MFA_ENABLED, user_id, e, meta)
            raise

        logger.info(f"2FA enabled for user {user_id}")
        self._record(audit.MFA_ENABLED, user_id, audit.SUCCESS, meta, method="TOTP")
        return TwoFactorResult.success(EnableOutcome(provisioning_uri=generated.provisioning_uri))

    def verify(self, user_id: UUID, code: str, meta: Optional[Dict[str, Any]] = None) -> TwoFactorResult[bool]:
        """Check a 6-digit code. Does not change enrolment state."""
        try:
            validate_code_format(code)
            envelope = self.store.get_envelope(user_id)
            if envelope is None:
                raise NotEnrolledError(f"user {user_id} has no 2FA secret")
            secret = self.cipher.decrypt(envelope)
            try:
                verified = verify_code(secret, code, for_time=self.clock())
            except ValueError as e:
                raise DecryptionError("decrypted secret is not valid Base32") from e
        except TwoFactorError as e:
            return self._error(audit.MFA_VERIFIED, user_id, e, meta)
        except Exception as e:
            self._unexpected(audit.MFA_VERIFIED, user_id, e, meta)
            raise

        if verified:
            logger.info(f"2FA code accepted for user {user_id}")
            self._record(audit.MFA_VERIFIED, user_id, audit.SUCCESS, meta, method="TOTP")
        else:
            logger.info(f"2FA code rejected for user {user_id}")
            self._record(audit.MFA_VERIFIED, user_id, audit.FAILURE, meta, reason="invalid code")
        return TwoFactorResult.success(verified)

    def disable(self, user_id: UUID, meta: Optional[Dict[str, Any]] = None) -> TwoFactorResult[bool]:
        try:
            if self.store.get_envelope(user_id) is None:
                raise NotEnrolledError(f"user {user_id} has no 2FA secret")
            self.store.clear_envelope(user_id)
        except TwoFactorError as e:
            return self._error(audit.MFA_DISABLED, user_id, e, meta)
        except Exception as e:
            self._unexpected(audit.MFA_DISABLED, user_id, e, meta)
            raise

        logger.info(f"2FA disabled for user {user_id}")
        self._record(audit.MFA_DISABLED, user_id, audit.SUCCESS, meta)
        return TwoFactorResult.success(False)

    def status(self, user_id: UUID) -> TwoFactorResult[bool]:
        try:
            return TwoFactorResult.success(self.store.get_envelope(user_id) is not None)
        except TwoFactorError as e:
            logger.warning(f"2FA status lookup failed for user {user_id}: {e.kind}")
            return TwoFactorResult.failure(e)
