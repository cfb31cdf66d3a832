"""AES-256-GCM envelope encryption for TOTP seeds stored in the database."""

import os
from dataclasses import dataclass
from typing import Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from app.core.config import TOTP_ENCRYPTION_KEY
from app.core.exceptions import DecryptionError, EncryptionError

IV_SIZE = 16          # one AES block; never reused across encryptions
KEY_SIZE = 32         # AES-256
MIN_MASTER_KEY_BYTES = 32
_HKDF_INFO = b"TOTP secret envelope"


@dataclass(frozen=True)
class EncryptedSecretEnvelope:
    ciphertext: bytes
    iv: bytes


def derive_envelope_key(master_key: bytes) -> bytes:
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=None,
        info=_HKDF_INFO,
    )
    return hkdf.derive(master_key)


class EnvelopeCipher:
    """Seals and opens TOTP seeds with a key derived from the server master key.

    Construct it once at start-up: a missing or short master key raises
    EncryptionError there instead of on the first enrolment.
    """

    def __init__(self, master_key: Union[str, bytes, None]):
        if not master_key:
            raise EncryptionError("TOTP_ENCRYPTION_KEY not set")
        if isinstance(master_key, str):
            master_key = master_key.encode("utf-8")
        if len(master_key) < MIN_MASTER_KEY_BYTES:
            raise EncryptionError(
                f"TOTP_ENCRYPTION_KEY must be at least {MIN_MASTER_KEY_BYTES} bytes, got {len(master_key)}"
            )
        self._aead = AESGCM(derive_envelope_key(master_key))

    @classmethod
    def from_config(cls, master_key: Optional[str] = None) -> "EnvelopeCipher":
        return cls(master_key if master_key is not None else TOTP_ENCRYPTION_KEY)

    def encrypt(self, secret: str) -> EncryptedSecretEnvelope:
        """Encrypt a Base32 secret under a fresh random IV."""
        iv = os.urandom(IV_SIZE)
        ciphertext = self._aead.encrypt(iv, secret.encode("ascii"), None)
        return EncryptedSecretEnvelope(ciphertext=ciphertext, iv=iv)

    def decrypt(self, envelope: EncryptedSecretEnvelope) -> str:
        """Open an envelope. Tampering, a wrong key or a malformed IV raise DecryptionError."""
        if not isinstance(envelope.iv, (bytes, bytearray)) or len(envelope.iv) != IV_SIZE:
            raise DecryptionError("envelope IV has the wrong length")
        if not isinstance(envelope.ciphertext, (bytes, bytearray)) or not envelope.ciphertext:
            raise DecryptionError("envelope ciphertext is empty")
        try:
            plaintext = self._aead.decrypt(bytes(envelope.iv), bytes(envelope.ciphertext), None)
        except InvalidTag as e:
            raise DecryptionError("envelope failed authentication (tampered data or rotated key)") from e
        try:
            return plaintext.decode("ascii")
        except UnicodeDecodeError as e:
            raise DecryptionError("envelope plaintext is not a Base32 secret") from e
