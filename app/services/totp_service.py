import base64
import hashlib
import hmac
import re
import struct
import time
from dataclasses import dataclass
from typing import Final, Optional
from urllib.parse import urlencode

import pyotp

from app.core.config import TOTP_ISSUER
from app.core.exceptions import InvalidAccountLabelError, MalformedCodeError

_STEP:   Final[int] = 30      # RFC default
_DIGITS: Final[int] = 6
_WINDOW: Final[int] = 1       # ±30 s drift
_SECRET_CHARS: Final[int] = 32  # 32 Base32 chars = 160-bit seed

_CODE_RE = re.compile(r"[0-9]{6}")


@dataclass(frozen=True)
class GeneratedSecret:
    secret: str
    provisioning_uri: str


def new_secret() -> str:
    return pyotp.random_base32(length=_SECRET_CHARS)


def provisioning_uri(secret: str, account_label: str, issuer: str = TOTP_ISSUER) -> str:
    uri = pyotp.TOTP(secret, interval=_STEP, digits=_DIGITS, digest=hashlib.sha1) \
              .provisioning_uri(name=account_label, issuer_name=issuer)
    # pyotp leaves out parameters that equal the defaults; spell them out
    explicit = {"algorithm": "SHA1", "digits": _DIGITS, "period": _STEP}
    missing = {k: v for k, v in explicit.items() if f"{k}=" not in uri}
    return f"{uri}&{urlencode(missing)}" if missing else uri


def generate_secret(account_label: str, issuer: str = TOTP_ISSUER) -> GeneratedSecret:
    """Draw a fresh seed and the otpauth:// URI an authenticator app can scan."""
    if not account_label or not account_label.strip():
        raise InvalidAccountLabelError("account label must be a non-empty string")
    secret = new_secret()
    return GeneratedSecret(secret=secret, provisioning_uri=provisioning_uri(secret, account_label.strip(), issuer))


def _decode_secret(secret: str) -> bytes:
    normalized = secret.replace(" ", "").upper()
    normalized += "=" * (-len(normalized) % 8)
    try:
        key = base64.b32decode(normalized, casefold=True)
    except ValueError as e:
        raise ValueError("secret is not valid Base32") from e
    if not key:
        raise ValueError("secret is empty")
    return key


def hotp(key: bytes, counter: int, digits: int = _DIGITS) -> str:
    """RFC 4226 HOTP: HMAC-SHA1 over the 8-byte big-endian counter, dynamic truncation."""
    digest = hmac.new(key, struct.pack(">Q", counter), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    binary = struct.unpack(">I", digest[offset:offset + 4])[0] & 0x7FFFFFFF
    return str(binary % (10 ** digits)).zfill(digits)


def time_step(for_time: float) -> int:
    return int(for_time // _STEP)


def totp_at(secret: str, for_time: float) -> str:
    """RFC 6238 code for the time step containing `for_time` (Unix seconds)."""
    return hotp(_decode_secret(secret), time_step(for_time))


def validate_code_format(code) -> str:
    if not isinstance(code, str) or not _CODE_RE.fullmatch(code):
        raise MalformedCodeError("code must be exactly 6 ASCII digits")
    return code


def verify_code(secret: str, code: str, for_time: Optional[float] = None) -> bool:
    """Return True if `code` matches the current step or one step either side."""
    validate_code_format(code)

    key = _decode_secret(secret)
    step = time_step(time.time() if for_time is None else for_time)

    matched = False
    # check every candidate so timing does not reveal which step matched
    for offset in range(-_WINDOW, _WINDOW + 1):
        if step + offset < 0:
            continue
        if hmac.compare_digest(hotp(key, step + offset), code):
            matched = True
    return matched
