import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import PersistenceError
from app.db import crud
from app.services.crypto import EncryptedSecretEnvelope

logger = logging.getLogger(__name__)


class SqlTwoFactorStore:
    """Envelope persistence on the users table.

    Database failures, timeouts included, come out as PersistenceError after
    the session has been rolled back.
    """

    def __init__(self, db: Session):
        self.db = db

    def _fail(self, op: str, user_id: UUID, exc: Exception) -> PersistenceError:
        self.db.rollback()
        logger.error(f"{op} failed for user {user_id}: {exc}")
        return PersistenceError(f"{op} failed")

    def get_envelope(self, user_id: UUID) -> Optional[EncryptedSecretEnvelope]:
        try:
            row = crud.get_two_factor_envelope(self.db, user_id)
        except SQLAlchemyError as e:
            raise self._fail("get_envelope", user_id, e) from e
        if row is None:
            return None
        ciphertext, iv = row
        return EncryptedSecretEnvelope(ciphertext=ciphertext, iv=iv)

    def set_envelope(self, user_id: UUID, envelope: EncryptedSecretEnvelope, enabled: bool = True) -> None:
        try:
            updated = crud.set_two_factor_envelope(self.db, user_id, envelope.ciphertext, envelope.iv, enabled)
        except SQLAlchemyError as e:
            raise self._fail("set_envelope", user_id, e) from e
        if not updated:
            raise PersistenceError(f"no user row for {user_id}")

    def clear_envelope(self, user_id: UUID) -> None:
        try:
            updated = crud.clear_two_factor_envelope(self.db, user_id)
        except SQLAlchemyError as e:
            raise self._fail("clear_envelope", user_id, e) from e
        if not updated:
            raise PersistenceError(f"no user row for {user_id}")
