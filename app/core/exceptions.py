import logging
from fastapi import HTTPException
from typing import Optional

logger = logging.getLogger(__name__)

GENERIC_ERROR_DETAIL = "Unable to complete request. Please try again later."
INVALID_CODE_DETAIL = "Invalid code"


# Custom HTTPException class to handle secure errors, so we don't expose internal details to the client
class SecureHTTPException(HTTPException):
    def __init__(self, status_code: int, detail: str, internal_detail: Optional[str] = None):
        super().__init__(status_code=status_code, detail=detail)
        if internal_detail:
            logger.error(f"Internal error: {internal_detail}")


class TwoFactorError(Exception):
    """Base class for every failure kind of the two-factor flow."""

    status_code: int = 500
    retryable: bool = False
    public_detail: str = GENERIC_ERROR_DETAIL

    @property
    def kind(self) -> str:
        return type(self).__name__


class InvalidAccountLabelError(TwoFactorError):
    status_code = 400


class MalformedCodeError(TwoFactorError):
    status_code = 400
    # Indistinguishable from a wrong code for the end user
    public_detail = INVALID_CODE_DETAIL


class EncryptionError(TwoFactorError):
    """Master key missing or unusable. Raised at start-up."""


class DecryptionError(TwoFactorError):
    """Stored envelope is corrupted or was sealed under another key."""


class NotEnrolledError(TwoFactorError):
    status_code = 409


class PersistenceError(TwoFactorError):
    retryable = True


def to_http_exception(error: TwoFactorError, user_id=None) -> SecureHTTPException:
    return SecureHTTPException(
        status_code=error.status_code,
        detail=error.public_detail,
        internal_detail=f"{error.kind} for user {user_id}: {error}",
    )
