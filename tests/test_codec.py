"""
================================================================================
Testes do Secret Codec
================================================================================

Formato do envelope, idempotência e rotação de passphrase.
"""

from __future__ import annotations

import base64

import pytest

from keywarden.codec import (
    ENCRYPTED_PREFIX,
    IV_LENGTH,
    SALT_LENGTH,
    TAG_LENGTH,
    SecretCodec,
    decrypt,
    encrypt,
    is_encrypted,
)


@pytest.fixture
def codec() -> SecretCodec:
    return SecretCodec("test-passphrase")


class TestEnvelope:
    """Testes para encrypt()/decrypt()."""

    def test_round_trip(self) -> None:
        envelope = encrypt("fk-abc123", "s3cret")

        assert decrypt(envelope, "s3cret") == "fk-abc123"

    def test_envelope_layout(self) -> None:
        """Payload = salt(64) ‖ iv(16) ‖ tag(16) ‖ ciphertext."""
        envelope = encrypt("fk-abc123", "s3cret")
        raw = base64.b64decode(envelope[len(ENCRYPTED_PREFIX):])

        assert envelope.startswith("enc:")
        assert len(raw) == SALT_LENGTH + IV_LENGTH + TAG_LENGTH + len("fk-abc123")

    def test_encryption_is_randomized(self) -> None:
        assert encrypt("fk-abc123", "s3cret") != encrypt("fk-abc123", "s3cret")

    def test_encrypting_envelope_is_identity(self) -> None:
        envelope = encrypt("fk-abc123", "s3cret")

        assert encrypt(envelope, "s3cret") == envelope
        assert encrypt(envelope, "other") == envelope

    def test_untagged_value_passes_through(self) -> None:
        assert decrypt("fk-plain", "s3cret") == "fk-plain"

    def test_wrong_passphrase_returns_none(self) -> None:
        envelope = encrypt("fk-abc123", "s3cret")

        assert decrypt(envelope, "wrong") is None

    @pytest.mark.parametrize(
        "envelope",
        ["enc:not-base64!!", "enc:" + base64.b64encode(b"short").decode(), "enc:"],
    )
    def test_malformed_envelope_returns_none(self, envelope: str) -> None:
        assert decrypt(envelope, "s3cret") is None

    def test_tampered_envelope_returns_none(self) -> None:
        raw = bytearray(base64.b64decode(encrypt("fk-abc123", "s3cret")[4:]))
        raw[-1] ^= 0x01
        tampered = "enc:" + base64.b64encode(bytes(raw)).decode()

        assert decrypt(tampered, "s3cret") is None

    def test_is_encrypted(self) -> None:
        assert is_encrypted("enc:abc")
        assert not is_encrypted("fk-abc")
        assert not is_encrypted(None)


class TestSecretCodec:
    """Testes para SecretCodec sobre documentos de configuração."""

    def test_empty_passphrase_rejected(self) -> None:
        with pytest.raises(ValueError):
            SecretCodec("")

    def test_encrypt_config_does_not_mutate_input(self, codec: SecretCodec) -> None:
        config = {"apiKeys": [{"id": "k1", "key": "fk-1"}], "settings": {}}

        stored = codec.encrypt_config(config)

        assert config["apiKeys"][0]["key"] == "fk-1"
        assert is_encrypted(stored["apiKeys"][0]["key"])

    def test_repeated_save_cycles_do_not_double_encrypt(self, codec: SecretCodec) -> None:
        stored = codec.encrypt_config({"apiKeys": [{"id": "k1", "key": "fk-1"}]})

        again = codec.encrypt_config(stored)

        assert again == stored
        assert codec.decrypt_config(again)["apiKeys"][0]["key"] == "fk-1"

    def test_undecryptable_value_is_preserved(self, codec: SecretCodec) -> None:
        foreign = encrypt("fk-1", "other-passphrase")

        loaded = codec.decrypt_config({"apiKeys": [{"id": "k1", "key": foreign}]})

        assert loaded["apiKeys"][0]["key"] == foreign

    def test_has_plaintext(self, codec: SecretCodec) -> None:
        assert codec.has_plaintext({"apiKeys": [{"id": "k1", "key": "fk-1"}]})
        assert not codec.has_plaintext(codec.encrypt_config({"apiKeys": [{"id": "k1", "key": "fk-1"}]}))
        assert not codec.has_plaintext({"apiKeys": []})

    def test_rotate(self, codec: SecretCodec) -> None:
        new_codec = SecretCodec("new-passphrase")
        config = {
            "apiKeys": [
                {"id": "old", "key": codec.encrypt("fk-old")},
                {"id": "plain", "key": "fk-plain"},
                {"id": "current", "key": new_codec.encrypt("fk-current")},
                {"id": "lost", "key": encrypt("fk-lost", "unknown")},
            ]
        }

        rotated, report = codec.rotate(config, new_codec)

        assert report.rotated == ["old"]
        assert report.plaintext == ["plain"]
        assert report.current == ["current"]
        assert report.failed == ["lost"]

        loaded = new_codec.decrypt_config(rotated)["apiKeys"]
        assert [c["key"] for c in loaded[:3]] == ["fk-old", "fk-plain", "fk-current"]
        assert loaded[3]["key"] == config["apiKeys"][3]["key"]
