"""
================================================================================
Testes do Encrypted Storage
================================================================================

Fluxo completo: as keys ficam cifradas no backend e voltam em texto plano.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from keywarden.codec import SecretCodec, encrypt, is_encrypted
from keywarden.config import MonitorConfig
from keywarden.keys import KeyManager
from keywarden.storage import EncryptedStorage, LocalFileBackend, create_storage


@pytest.fixture
def backend(tmp_path: Path) -> LocalFileBackend:
    return LocalFileBackend(tmp_path)


@pytest.fixture
def storage(backend: LocalFileBackend) -> EncryptedStorage:
    return EncryptedStorage(backend, SecretCodec("test-passphrase"), env={})


def _on_disk(backend: LocalFileBackend) -> dict:
    return json.loads(backend.path_for("config.json").read_text(encoding="utf-8"))


class TestEncryptedAtRest:
    """Testes de criptografia transparente."""

    def test_end_to_end(self, storage: EncryptedStorage, backend: LocalFileBackend) -> None:
        """Key salva fica cifrada no disco e volta em texto plano."""
        storage.save_config({"apiKeys": [{"id": "k1", "key": "fk-1"}], "settings": {}})

        assert is_encrypted(_on_disk(backend)["apiKeys"][0]["key"])
        assert storage.load_config()["apiKeys"][0]["key"] == "fk-1"

    def test_load_save_cycle_is_stable(self, storage: EncryptedStorage) -> None:
        storage.save_config({"apiKeys": [{"id": "k1", "key": "fk-1"}], "settings": {}})

        for _ in range(3):
            storage.save_config(storage.load_config())

        assert storage.load_config()["apiKeys"][0]["key"] == "fk-1"

    def test_env_bootstrap_is_encrypted(self, backend: LocalFileBackend) -> None:
        env = {"FACTORY_API_KEYS": json.dumps([{"id": "k1", "key": "fk-env"}])}
        storage = EncryptedStorage(backend, SecretCodec("test-passphrase"), env=env)

        assert storage.load_config()["apiKeys"][0]["key"] == "fk-env"
        assert is_encrypted(_on_disk(backend)["apiKeys"][0]["key"])

    def test_plaintext_at_rest_is_migrated(
        self, storage: EncryptedStorage, backend: LocalFileBackend
    ) -> None:
        backend.write("config.json", {"apiKeys": [{"id": "k1", "key": "fk-hand"}], "settings": {}})

        assert storage.load_config()["apiKeys"][0]["key"] == "fk-hand"
        assert is_encrypted(_on_disk(backend)["apiKeys"][0]["key"])

    def test_wrong_passphrase_keeps_stored_value(
        self,
        storage: EncryptedStorage,
        backend: LocalFileBackend,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        storage.save_config({"apiKeys": [{"id": "k1", "key": "fk-1"}], "settings": {}})
        stored = _on_disk(backend)["apiKeys"][0]["key"]

        other = EncryptedStorage(backend, SecretCodec("other"), env={})

        with caplog.at_level(logging.WARNING, logger="keywarden.storage.secure"):
            assert other.load_config()["apiKeys"][0]["key"] == stored

        assert "crypto" in caplog.text
        assert "k1" in caplog.text
        assert other.secrets_status()["undecryptable"] == ["k1"]

    def test_secrets_status(self, storage: EncryptedStorage, backend: LocalFileBackend) -> None:
        backend.write(
            "config.json",
            {
                "apiKeys": [
                    {"id": "a", "key": encrypt("fk-a", "test-passphrase")},
                    {"id": "b", "key": "fk-b"},
                ],
                "settings": {},
            },
        )

        status = storage.secrets_status()

        assert status == {"encrypted": ["a"], "plaintext": ["b"], "undecryptable": []}

    def test_rotate_passphrase(self, backend: LocalFileBackend) -> None:
        old = SecretCodec("old-passphrase")
        EncryptedStorage(backend, old, env={}).save_config(
            {"apiKeys": [{"id": "k1", "key": "fk-1"}], "settings": {}}
        )
        storage = EncryptedStorage(backend, SecretCodec("new-passphrase"), env={})

        saved, report = storage.rotate_passphrase(old)

        assert saved
        assert report.rotated == ["k1"]
        assert storage.load_config()["apiKeys"][0]["key"] == "fk-1"

    def test_storage_info_reports_encryption(self, storage: EncryptedStorage) -> None:
        assert storage.get_storage_info()["encrypted"] is True


class TestCreateStorage:
    """Testes para create_storage()."""

    def test_local_encrypted_by_default(self, tmp_path: Path) -> None:
        config = MonitorConfig(admin_password="admin", data_dir=str(tmp_path))

        storage = create_storage(config, env={})

        assert isinstance(storage, EncryptedStorage)
        assert storage.get_storage_info()["backend"] == "local"

    def test_misconfigured_blob_falls_back_to_local(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("BLOB_READ_WRITE_TOKEN", raising=False)
        monkeypatch.delenv("KEYWARDEN_S3_BUCKET", raising=False)
        config = MonitorConfig(admin_password="admin", data_dir=str(tmp_path))

        storage = create_storage(config, env={"KEYWARDEN_STORAGE_BACKEND": "blob"})

        assert storage.get_storage_info()["backend"] == "local"

    def test_default_env_round_trip_across_restarts(self, tmp_path: Path) -> None:
        """Sem ADMIN_PASSWORD/ENCRYPTION_KEY, um novo processo decifra o que o anterior gravou."""
        env = {"KEYWARDEN_DATA_DIR": str(tmp_path)}

        first = create_storage(MonitorConfig.from_env(env), env=env)
        assert KeyManager(first).add_key({"id": "k1", "key": "fk-abc123456789"})

        restarted = create_storage(MonitorConfig.from_env(env), env=env)

        assert restarted.load_config()["apiKeys"][0]["key"] == "fk-abc123456789"
        assert restarted.secrets_status()["undecryptable"] == []

    def test_misconfigured_kv_falls_back_to_local(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("KV_REST_API_URL", raising=False)
        monkeypatch.delenv("KV_REST_API_TOKEN", raising=False)
        config = MonitorConfig(admin_password="admin", data_dir=str(tmp_path))

        forced = create_storage(config, env={"KEYWARDEN_STORAGE_BACKEND": "kv"})
        without_token = create_storage(config, env={"KV_REST_API_URL": "https://kv.test"})

        assert forced.get_storage_info()["backend"] == "local"
        assert without_token.get_storage_info()["backend"] == "local"
