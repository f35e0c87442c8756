import pytest
from cryptography.fernet import Fernet

from app.services.credential_crypto import (
    decrypt_credential,
    encrypt_credential,
    encrypt_stored_credential,
    generate_encryption_key,
    is_encrypted,
    needs_encryption,
)


@pytest.fixture()
def encryption_key(monkeypatch):
    key = Fernet.generate_key().decode("ascii")
    monkeypatch.setenv("CREDENTIAL_ENCRYPTION_KEY", key)
    return key


class TestWithoutKey:
    def test_stored_with_plain_prefix(self):
        assert encrypt_credential("s3cret") == "plain:s3cret"

    def test_plain_prefix_decrypts(self):
        assert decrypt_credential("plain:s3cret") == "s3cret"

    def test_legacy_value_returned_as_is(self):
        assert decrypt_credential("legacy-secret") == "legacy-secret"

    def test_encrypted_value_without_key_raises(self):
        with pytest.raises(ValueError, match="CREDENTIAL_ENCRYPTION_KEY"):
            decrypt_credential("enc:gAAAAABnotreal")

    def test_empty_values_pass_through(self):
        assert encrypt_credential("") == ""
        assert decrypt_credential(None) is None


class TestWithKey:
    def test_round_trip(self, encryption_key):
        stored = encrypt_credential("s3cret")

        assert stored.startswith("enc:")
        assert "s3cret" not in stored
        assert decrypt_credential(stored) == "s3cret"

    def test_already_stored_value_not_reencrypted(self, encryption_key):
        stored = encrypt_credential("s3cret")

        assert encrypt_credential(stored) == stored

    def test_wrong_key_raises(self, encryption_key, monkeypatch):
        stored = encrypt_credential("s3cret")
        monkeypatch.setenv("CREDENTIAL_ENCRYPTION_KEY", generate_encryption_key())

        with pytest.raises(ValueError, match="invalid token"):
            decrypt_credential(stored)


def test_is_encrypted():
    assert is_encrypted("enc:abc")
    assert is_encrypted("plain:abc")
    assert not is_encrypted("abc")
    assert not is_encrypted(None)


class TestStoredCredentialMigration:
    def test_needs_encryption(self):
        assert needs_encryption("plain:s3cret")
        assert needs_encryption("legacy")
        assert not needs_encryption("enc:abc")
        assert not needs_encryption("")

    def test_plain_value_encrypted(self, encryption_key):
        stored = encrypt_stored_credential("plain:s3cret")

        assert stored.startswith("enc:")
        assert decrypt_credential(stored) == "s3cret"

    def test_requires_key(self):
        with pytest.raises(ValueError):
            encrypt_stored_credential("plain:s3cret")
