"""Tests for Fernet encryption of infra configuration."""

import pytest
from cryptography.fernet import Fernet

from harbormaster.errors import DecryptionError
from harbormaster.services.encryption_service import (
    decrypt,
    decrypt_config,
    encrypt,
    encrypt_config,
    init_encryption,
    is_encryption_available,
    random_token,
)


class TestInitEncryption:
    def test_valid_key(self):
        init_encryption(Fernet.generate_key().decode())
        assert is_encryption_available()

    def test_invalid_key_disables(self):
        init_encryption("not-a-fernet-key")
        assert not is_encryption_available()

    def test_empty_key_disables(self):
        init_encryption("")
        assert not is_encryption_available()

    def test_unconfigured_encrypt_raises(self):
        init_encryption("")
        with pytest.raises(RuntimeError, match="not configured"):
            encrypt(b"payload")


class TestEncryptDecrypt:
    def test_round_trip(self):
        assert decrypt(encrypt(b"payload")) == b"payload"

    def test_ciphertext_is_not_plaintext(self):
        assert b"hunter2" not in encrypt(b"db_passwd=hunter2")

    def test_explicit_key_overrides_module_key(self):
        other = Fernet.generate_key()
        ciphertext = encrypt(b"payload", key=other)

        assert decrypt(ciphertext, key=other) == b"payload"
        with pytest.raises(DecryptionError):
            decrypt(ciphertext)

    def test_tampered_ciphertext(self):
        ciphertext = bytearray(encrypt(b"payload"))
        ciphertext[-5] ^= 0x01
        with pytest.raises(DecryptionError):
            decrypt(bytes(ciphertext))

    def test_key_rotation_without_reencrypt_fails(self):
        ciphertext = encrypt(b"payload")
        init_encryption(Fernet.generate_key())

        with pytest.raises(DecryptionError):
            decrypt(ciphertext)


class TestConfigPayloads:
    def test_round_trip(self):
        values = {"eks_name": "prod", "node_count": 3, "tags": {"team": "infra"}}
        assert decrypt_config(encrypt_config(values)) == values

    def test_empty_payload_is_empty_mapping(self):
        assert decrypt_config(None) == {}
        assert decrypt_config(b"") == {}

    def test_non_object_payload_rejected(self):
        with pytest.raises(DecryptionError, match="not a JSON object"):
            decrypt_config(encrypt(b"[1, 2, 3]"))

    def test_non_json_payload_rejected(self):
        with pytest.raises(DecryptionError, match="not valid JSON"):
            decrypt_config(encrypt(b"not json"))

    def test_decryption_error_is_internal(self):
        with pytest.raises(DecryptionError) as exc_info:
            decrypt_config(b"garbage")
        assert exc_info.value.status_code == 500
        assert exc_info.value.public_message == "Internal server error"


class TestRandomToken:
    def test_length_is_twice_bytes(self):
        assert len(random_token(10)) == 20
        assert len(random_token(6)) == 12

    def test_lowercase_hex(self):
        token = random_token(10)
        assert token == token.lower()
        int(token, 16)

    def test_unique(self):
        assert len({random_token(10) for _ in range(100)}) == 100
