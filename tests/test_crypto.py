"""Tests for AES-256-GCM envelope encryption of TOTP seeds."""
import os

import pytest

from app.core.exceptions import DecryptionError, EncryptionError
from app.services.crypto import IV_SIZE, EncryptedSecretEnvelope, EnvelopeCipher
from app.services.totp_service import new_secret


def test_encrypt_decrypt(cipher):
    secret = new_secret()
    envelope = cipher.encrypt(secret)

    assert secret.encode() not in envelope.ciphertext
    assert cipher.decrypt(envelope) == secret


def test_iv_is_one_block(cipher):
    assert len(cipher.encrypt("JBSWY3DPEHPK3PXP").iv) == IV_SIZE == 16


def test_encrypt_produces_different_envelopes(cipher):
    # Same plaintext should produce different ciphertexts (random IV)
    e1 = cipher.encrypt("JBSWY3DPEHPK3PXP")
    e2 = cipher.encrypt("JBSWY3DPEHPK3PXP")
    assert e1.iv != e2.iv
    assert e1.ciphertext != e2.ciphertext


def test_decryption_is_deterministic_across_instances(cipher):
    envelope = cipher.encrypt("JBSWY3DPEHPK3PXP")
    same_key = EnvelopeCipher("0123456789abcdef0123456789abcdef-test")
    assert same_key.decrypt(envelope) == "JBSWY3DPEHPK3PXP"


def test_bytes_master_key_accepted():
    key = os.urandom(32)
    envelope = EnvelopeCipher(key).encrypt("JBSWY3DPEHPK3PXP")
    assert EnvelopeCipher(key).decrypt(envelope) == "JBSWY3DPEHPK3PXP"


@pytest.mark.parametrize("master_key", [None, "", b""])
def test_missing_key_raises(master_key):
    with pytest.raises(EncryptionError, match="not set"):
        EnvelopeCipher(master_key)


@pytest.mark.parametrize("master_key", ["short", "x" * 31, b"\x00" * 16])
def test_short_key_is_rejected_not_padded(master_key):
    with pytest.raises(EncryptionError, match="at least 32 bytes"):
        EnvelopeCipher(master_key)


def test_from_config_uses_environment_key(monkeypatch):
    monkeypatch.setattr("app.services.crypto.TOTP_ENCRYPTION_KEY", "k" * 40)
    envelope = EnvelopeCipher.from_config().encrypt("JBSWY3DPEHPK3PXP")
    assert EnvelopeCipher("k" * 40).decrypt(envelope) == "JBSWY3DPEHPK3PXP"


def test_from_config_without_key_fails(monkeypatch):
    monkeypatch.setattr("app.services.crypto.TOTP_ENCRYPTION_KEY", "")
    with pytest.raises(EncryptionError):
        EnvelopeCipher.from_config()


def test_rotated_key_fails_loudly(cipher):
    envelope = cipher.encrypt("JBSWY3DPEHPK3PXP")
    rotated = EnvelopeCipher("a-completely-different-master-key-0001")
    with pytest.raises(DecryptionError):
        rotated.decrypt(envelope)


def test_tampered_ciphertext(cipher):
    envelope = cipher.encrypt("JBSWY3DPEHPK3PXP")
    flipped = bytes([envelope.ciphertext[0] ^ 0x01]) + envelope.ciphertext[1:]
    with pytest.raises(DecryptionError):
        cipher.decrypt(EncryptedSecretEnvelope(ciphertext=flipped, iv=envelope.iv))


def test_iv_from_another_envelope(cipher):
    e1 = cipher.encrypt("JBSWY3DPEHPK3PXP")
    e2 = cipher.encrypt("JBSWY3DPEHPK3PXP")
    with pytest.raises(DecryptionError):
        cipher.decrypt(EncryptedSecretEnvelope(ciphertext=e1.ciphertext, iv=e2.iv))


@pytest.mark.parametrize("iv", [b"", b"\x00" * 12, b"\x00" * 17])
def test_wrong_iv_length(cipher, iv):
    envelope = cipher.encrypt("JBSWY3DPEHPK3PXP")
    with pytest.raises(DecryptionError, match="IV"):
        cipher.decrypt(EncryptedSecretEnvelope(ciphertext=envelope.ciphertext, iv=iv))


@pytest.mark.parametrize("ciphertext", [b"", b"\x01\x02\x03", os.urandom(40)])
def test_garbage_ciphertext(cipher, ciphertext):
    with pytest.raises(DecryptionError):
        cipher.decrypt(EncryptedSecretEnvelope(ciphertext=ciphertext, iv=os.urandom(IV_SIZE)))
