"""
================================================================================
Storage Module Tests
================================================================================

Testes para o seletor de backend, os backends (local, blob, kv) e o
facade (bootstrap da configuração e retenção do histórico).
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import requests

from keywarden.storage import (
    BackendKind,
    BlobBackend,
    BlobObject,
    ErrorKind,
    KVBackend,
    KVClient,
    LocalFileBackend,
    ReadResult,
    S3BlobClient,
    Storage,
    StorageBackend,
    StorageConnectionError,
    apply_retention,
    create_backend,
    normalize_credential,
    select_backend,
)
from keywarden.storage.facade import DAY_MS, DAY_SECONDS


NOW_MS = 100 * DAY_MS


def fixed_clock() -> float:
    return NOW_MS / 1000


# =============================================================================
# Fakes
# =============================================================================


class FakeBlobClient:
    """Blob store em memória que acrescenta sufixo aleatório como o real."""

    def __init__(self) -> None:
        self.objects: dict[str, tuple[BlobObject, str]] = {}
        self._counter = 0
        self.fail_delete = False

    def list(self, prefix: str) -> list[BlobObject]:
        return [obj for obj, _ in self.objects.values() if obj.pathname.startswith(prefix)]

    def fetch(self, obj: BlobObject) -> str:
        return self.objects[obj.url][1]

    def put(self, pathname: str, body: str) -> BlobObject:
        self._counter += 1
        stem = pathname[: -len(".json")]
        physical = f"{stem}-Suffix{self._counter:04d}.json"
        obj = BlobObject(
            pathname=physical,
            url=f"https://blob.test/{physical}",
            uploaded_at=datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=self._counter),
        )
        self.objects[obj.url] = (obj, body)
        return obj

    def delete(self, objects: list[BlobObject]) -> None:
        if self.fail_delete:
            raise RuntimeError("delete failed")
        for obj in objects:
            self.objects.pop(obj.url, None)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def local_backend(tmp_path: Path) -> LocalFileBackend:
    """Backend local em diretório temporário."""
    return LocalFileBackend(tmp_path / "data")


@pytest.fixture
def blob_client() -> FakeBlobClient:
    return FakeBlobClient()


@pytest.fixture
def blob_backend(blob_client: FakeBlobClient) -> BlobBackend:
    return BlobBackend(blob_client)


# =============================================================================
# Backend Selector Tests
# =============================================================================


class TestSelectBackend:
    """Testes para select_backend()."""

    def test_no_signals_selects_local(self) -> None:
        assert select_backend({}) is BackendKind.LOCAL

    def test_blob_token_selects_blob(self) -> None:
        assert select_backend({"BLOB_READ_WRITE_TOKEN": "t"}) is BackendKind.BLOB

    def test_s3_bucket_selects_blob(self) -> None:
        assert select_backend({"KEYWARDEN_S3_BUCKET": "bucket"}) is BackendKind.BLOB

    def test_kv_url_selects_kv(self) -> None:
        assert select_backend({"KV_REST_API_URL": "https://kv.test"}) is BackendKind.KV

    def test_blob_wins_over_kv(self) -> None:
        """Blob tem prioridade quando ambos os sinais existem."""
        env = {"BLOB_READ_WRITE_TOKEN": "t", "KV_REST_API_URL": "https://kv.test"}
        assert select_backend(env) is BackendKind.BLOB

    def test_forced_backend_wins(self) -> None:
        env = {"KEYWARDEN_STORAGE_BACKEND": "local", "BLOB_READ_WRITE_TOKEN": "t"}
        assert select_backend(env) is BackendKind.LOCAL

    def test_invalid_forced_backend_is_ignored(self) -> None:
        env = {"KEYWARDEN_STORAGE_BACKEND": "postgres", "KV_REST_API_URL": "https://kv.test"}
        assert select_backend(env) is BackendKind.KV

    def test_create_local_backend(self, tmp_path: Path) -> None:
        backend = create_backend(BackendKind.LOCAL, env={}, data_dir=str(tmp_path))
        assert isinstance(backend, LocalFileBackend)
        assert isinstance(backend, StorageBackend)

    def test_create_s3_backend_reads_given_env(self) -> None:
        env = {
            "KEYWARDEN_S3_BUCKET": "bucket",
            "KEYWARDEN_S3_PREFIX": "team-a",
            "KEYWARDEN_S3_REGION": "sa-east-1",
        }

        backend = create_backend(BackendKind.BLOB, env=env)

        assert isinstance(backend, BlobBackend)
        assert isinstance(backend.client, S3BlobClient)
        assert backend.client.prefix == "team-a/"
        assert backend.client.region == "sa-east-1"


# =============================================================================
# Local Backend Tests
# =============================================================================


class TestLocalFileBackend:
    """Testes para LocalFileBackend."""

    def test_missing_document(self, local_backend: LocalFileBackend) -> None:
        result = local_backend.read("config.json")

        assert result.status == "missing"
        assert result.error is ErrorKind.NOT_FOUND

    def test_write_then_read(self, local_backend: LocalFileBackend) -> None:
        assert local_backend.write("history.json", [{"timestamp": 1}])

        result = local_backend.read("history.json")
        assert result.ok
        assert result.value == [{"timestamp": 1}]

    def test_creates_directory_lazily(self, tmp_path: Path) -> None:
        data_dir = tmp_path / "nested" / "data"
        backend = LocalFileBackend(data_dir)
        assert not data_dir.exists()

        backend.write("config.json", {"apiKeys": []})
        assert (data_dir / "config.json").exists()

    def test_corrupted_document_is_malformed(self, local_backend: LocalFileBackend) -> None:
        local_backend.write("config.json", {})
        local_backend.path_for("config.json").write_text("{not json", encoding="utf-8")

        result = local_backend.read("config.json")
        assert result.status == "failed"
        assert result.error is ErrorKind.MALFORMED

    def test_unserializable_document_returns_false(self, local_backend: LocalFileBackend) -> None:
        assert local_backend.write("config.json", {"bad": object()}) is False


# =============================================================================
# Blob Backend Tests
# =============================================================================


class TestBlobBackend:
    """Testes para BlobBackend (latest-wins sobre nomes com sufixo)."""

    def test_missing_document(self, blob_backend: BlobBackend) -> None:
        assert blob_backend.read("config.json").status == "missing"

    def test_double_write_leaves_single_document(
        self, blob_backend: BlobBackend, blob_client: FakeBlobClient
    ) -> None:
        """Duas escritas seguidas deixam um único objeto, com o último conteúdo."""
        blob_backend.write("config.json", {"apiKeys": [], "v": 1})
        blob_backend.write("config.json", {"apiKeys": [], "v": 2})

        assert len(blob_client.list("config")) == 1
        assert blob_backend.read("config.json").value["v"] == 2

    def test_latest_wins_when_cleanup_fails(
        self, blob_backend: BlobBackend, blob_client: FakeBlobClient
    ) -> None:
        """Falha na limpeza é engolida e a leitura usa o objeto mais recente."""
        blob_backend.write("config.json", {"v": 1})
        blob_client.fail_delete = True

        assert blob_backend.write("config.json", {"v": 2}) is True
        assert len(blob_client.list("config")) == 2
        assert blob_backend.read("config.json").value == {"v": 2}

    def test_ignores_names_sharing_prefix(
        self, blob_backend: BlobBackend, blob_client: FakeBlobClient
    ) -> None:
        blob_client.put("config-backup.json", "{}")
        blob_backend.write("config.json", {"v": 1})

        assert blob_backend.read("config.json").value == {"v": 1}
        assert len(blob_client.list("config")) == 2

    def test_documents_are_independent(self, blob_backend: BlobBackend) -> None:
        blob_backend.write("config.json", {"apiKeys": []})
        blob_backend.write("history.json", [{"timestamp": 1}])

        assert blob_backend.read("config.json").value == {"apiKeys": []}
        assert blob_backend.read("history.json").value == [{"timestamp": 1}]

    def test_list_failure_is_unavailable(self) -> None:
        client = MagicMock()
        client.list.side_effect = StorageConnectionError("down")

        result = BlobBackend(client).read("config.json")
        assert result.error is ErrorKind.UNAVAILABLE

    def test_put_failure_returns_false(self) -> None:
        client = MagicMock()
        client.list.return_value = []
        client.put.side_effect = StorageConnectionError("down")

        assert BlobBackend(client).write("config.json", {}) is False


class TestS3BlobClient:
    """Testes para S3BlobClient com boto3 mockado."""

    def test_requires_bucket(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("KEYWARDEN_S3_BUCKET", raising=False)

        with pytest.raises(ValueError, match="S3 bucket is required"):
            S3BlobClient()

    def test_put_appends_random_suffix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("KEYWARDEN_S3_PREFIX", raising=False)
        mock_client = MagicMock()

        with patch("keywarden.storage.blob._get_boto3_client", return_value=mock_client):
            client = S3BlobClient(bucket="bucket")
            obj = client.put("config.json", "{}")

        key = mock_client.put_object.call_args.kwargs["Key"]
        assert key.startswith("keywarden/config-")
        assert key.endswith(".json")
        assert obj.url == key
        assert obj.pathname == key[len("keywarden/"):]

    def test_list_strips_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("KEYWARDEN_S3_PREFIX", raising=False)
        mock_client = MagicMock()
        mock_client.get_paginator.return_value.paginate.return_value = [
            {
                "Contents": [
                    {
                        "Key": "keywarden/config-abc.json",
                        "LastModified": datetime(2024, 1, 1, tzinfo=timezone.utc),
                    }
                ]
            }
        ]

        client = S3BlobClient(bucket="bucket", client=mock_client)
        objects = client.list("config")

        assert [obj.pathname for obj in objects] == ["config-abc.json"]


# =============================================================================
# KV Backend Tests
# =============================================================================


def _kv_session(result: Any = "OK") -> MagicMock:
    session = MagicMock()
    session.post.return_value.ok = True
    session.post.return_value.json.return_value = {"result": result}
    return session


class TestKVClient:
    """Testes para KVClient."""

    def test_set_with_ttl_uses_setex(self) -> None:
        session = _kv_session()
        client = KVClient(url="https://kv.test", token="t", session=session)

        assert client.set("history", [{"timestamp": 1}], ttl_seconds=60)

        sent = session.post.call_args.kwargs["json"]
        assert sent[:3] == ["SETEX", "history", 60]
        assert json.loads(sent[3]) == [{"timestamp": 1}]

    def test_set_without_ttl_uses_set(self) -> None:
        session = _kv_session()
        client = KVClient(url="https://kv.test", token="t", session=session)

        client.set("config", {"apiKeys": []})

        assert session.post.call_args.kwargs["json"][0] == "SET"

    def test_requires_url_and_token(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("KV_REST_API_URL", raising=False)
        monkeypatch.delenv("KV_REST_API_TOKEN", raising=False)

        with pytest.raises(ValueError, match="KV store is not configured"):
            KVClient(session=MagicMock())
        with pytest.raises(ValueError):
            KVClient(url="https://kv.test", session=MagicMock())

    def test_get_decodes_result(self) -> None:
        session = _kv_session(json.dumps({"apiKeys": [{"id": "k1"}]}))
        client = KVClient(url="https://kv.test", token="t", session=session)

        assert client.get("config") == {"apiKeys": [{"id": "k1"}]}
        assert session.post.call_args.kwargs["json"] == ["GET", "config"]

    def test_get_missing_or_failed_is_none(self) -> None:
        assert KVClient(url="https://kv.test", token="t", session=_kv_session(None)).get("x") is None

        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("down")
        client = KVClient(url="https://kv.test", token="t", session=session)

        with pytest.raises(StorageConnectionError):
            client.request("GET", "config")
        assert client.get("config") is None

    def test_delete(self) -> None:
        session = _kv_session(1)
        client = KVClient(url="https://kv.test", token="t", session=session)

        assert client.delete("history") is True
        assert session.post.call_args.kwargs["json"] == ["DEL", "history"]
        assert session.post.call_args.kwargs["headers"]["Authorization"] == "Bearer t"

    def test_delete_failure_returns_false(self) -> None:
        session = MagicMock()
        session.post.return_value.ok = False
        session.post.return_value.status_code = 503
        client = KVClient(url="https://kv.test", token="t", session=session)

        assert client.delete("history") is False

    def test_http_error_makes_set_fail(self) -> None:
        session = MagicMock()
        session.post.return_value.ok = False
        session.post.return_value.status_code = 500
        client = KVClient(url="https://kv.test", token="t", session=session)

        assert client.set("config", {}) is False


class TestKVBackend:
    """Testes para KVBackend."""

    def test_missing_key(self) -> None:
        backend = KVBackend(KVClient(url="https://kv.test", token="t", session=_kv_session(None)))
        assert backend.read("config.json").status == "missing"

    def test_reads_stored_document(self) -> None:
        session = _kv_session(json.dumps({"apiKeys": []}))
        backend = KVBackend(KVClient(url="https://kv.test", token="t", session=session))

        assert backend.read("config.json").value == {"apiKeys": []}
        assert session.post.call_args.kwargs["json"] == ["GET", "config"]

    def test_unavailable_store(self) -> None:
        session = MagicMock()
        session.post.side_effect = requests.Timeout("timed out")
        backend = KVBackend(KVClient(url="https://kv.test", token="t", session=session))

        assert backend.read("config.json").error is ErrorKind.UNAVAILABLE


# =============================================================================
# Facade Tests
# =============================================================================


class TestConfigBootstrap:
    """Testes para Storage.load_config()."""

    def test_default_config_is_persisted(self, local_backend: LocalFileBackend) -> None:
        storage = Storage(local_backend, env={})

        config = storage.load_config()

        assert config["apiKeys"] == []
        assert config["settings"]["historyRetentionDays"] == 30
        assert local_backend.read("config.json").ok

    def test_bootstrap_is_idempotent(self, local_backend: LocalFileBackend) -> None:
        """Duas leituras seguidas retornam o mesmo documento."""
        storage = Storage(local_backend, env={})

        assert storage.load_config() == storage.load_config()

    def test_bootstrap_from_env(self, local_backend: LocalFileBackend) -> None:
        keys = [
            {"id": "k1", "key": "fk-1111"},
            {"id": "k1", "key": "fk-dup"},
            {"id": "k2"},
        ]
        storage = Storage(local_backend, env={"FACTORY_API_KEYS": json.dumps(keys)})

        config = storage.load_config()

        assert [c["id"] for c in config["apiKeys"]] == ["k1"]
        assert config["apiKeys"][0]["group"] == "default"
        assert config["apiKeys"][0]["viewPassword"] == "0000"

    def test_invalid_env_falls_back_to_default(self, local_backend: LocalFileBackend) -> None:
        storage = Storage(local_backend, env={"API_KEYS": "not json"})

        assert storage.load_config()["apiKeys"] == []

    def test_missing_settings_are_filled(self, local_backend: LocalFileBackend) -> None:
        local_backend.write("config.json", {"apiKeys": [], "settings": {"alertThreshold": 0.5}})

        settings = Storage(local_backend, env={}).load_config()["settings"]

        assert settings["alertThreshold"] == 0.5
        assert settings["autoRefreshInterval"] == 300000

    def test_non_dict_credentials_are_dropped(self, local_backend: LocalFileBackend) -> None:
        local_backend.write(
            "config.json",
            {"apiKeys": ["fk-loose", None, {"id": "k1", "key": "fk-1"}], "settings": {}},
        )

        config = Storage(local_backend, env={}).load_config()

        assert config["apiKeys"] == [{"id": "k1", "key": "fk-1"}]

    def test_unavailable_backend_is_not_overwritten(self) -> None:
        backend = MagicMock()
        backend.read.return_value = ReadResult.failed(ErrorKind.UNAVAILABLE, "down")

        config = Storage(backend, env={}).load_config()

        assert config["apiKeys"] == []
        backend.write.assert_not_called()

    def test_save_config_never_raises(self) -> None:
        backend = MagicMock()
        backend.write.side_effect = RuntimeError("boom")

        assert Storage(backend, env={}).save_config({"apiKeys": []}) is False


class TestHistoryRetention:
    """Testes para a política de retenção do histórico."""

    def test_retention_scenario(self, local_backend: LocalFileBackend) -> None:
        """Entrada de 40 dias some com retenção de 30; a de 1 dia fica."""
        storage = Storage(local_backend, env={}, clock=fixed_clock)
        old = {"timestamp": NOW_MS - 40 * DAY_MS, "totals": {}, "keys": []}
        recent = {"timestamp": NOW_MS - DAY_MS, "totals": {}, "keys": []}

        assert storage.save_history([old, recent])
        assert storage.load_history() == [recent]

    def test_uses_configured_retention(self, local_backend: LocalFileBackend) -> None:
        storage = Storage(local_backend, env={}, clock=fixed_clock)
        storage.save_config({"apiKeys": [], "settings": {"historyRetentionDays": 2}})

        storage.save_history(
            [{"timestamp": NOW_MS - 3 * DAY_MS}, {"timestamp": NOW_MS - DAY_MS}]
        )

        assert storage.load_history() == [{"timestamp": NOW_MS - DAY_MS}]

    def test_cap_keeps_most_recent_1000(self, local_backend: LocalFileBackend) -> None:
        storage = Storage(local_backend, env={}, clock=fixed_clock)
        entries = [{"timestamp": NOW_MS - 1005 + i} for i in range(1005)]

        storage.save_history(entries)
        history = storage.load_history()

        assert len(history) == 1000
        assert history[0] == entries[5]
        assert history[-1] == entries[-1]

    def test_kv_history_is_not_capped_and_gets_ttl(self) -> None:
        client = MagicMock()
        client.request.return_value = None
        client.set.return_value = True
        storage = Storage(KVBackend(client), env={}, clock=fixed_clock)
        entries = [{"timestamp": NOW_MS - 1005 + i} for i in range(1005)]

        assert storage.save_history(entries)

        key, written, ttl = client.set.call_args.args
        assert key == "history"
        assert len(written) == 1005
        assert ttl == 30 * DAY_SECONDS

    def test_append_history(self, local_backend: LocalFileBackend) -> None:
        storage = Storage(local_backend, env={}, clock=fixed_clock)

        storage.append_history({"timestamp": NOW_MS - 10})
        storage.append_history({"timestamp": NOW_MS})

        assert [e["timestamp"] for e in storage.load_history()] == [NOW_MS - 10, NOW_MS]

    def test_corrupted_history_reads_as_empty(self, local_backend: LocalFileBackend) -> None:
        local_backend.write("history.json", {"not": "a list"})

        assert Storage(local_backend, env={}).load_history() == []

    def test_apply_retention_drops_exact_cutoff(self) -> None:
        entries = [{"timestamp": NOW_MS - 30 * DAY_MS}, {"timestamp": NOW_MS - 30 * DAY_MS + 1}]

        assert apply_retention(entries, 30, NOW_MS) == entries[1:]


class TestStorageInfo:
    """Testes para get_storage_info()."""

    def test_local_info(self, local_backend: LocalFileBackend) -> None:
        info = Storage(local_backend, env={}).get_storage_info()

        assert info["backend"] == "local"
        assert info["mode"] == "local-file"
        assert info["encrypted"] is False
        assert info["features"]["addKey"] is True


def test_normalize_credential_defaults() -> None:
    credential = normalize_credential({"id": "k1", "key": "fk-1", "enabled": None})

    assert credential["enabled"] is True
    assert credential["group"] == "default"
    assert credential["alias"] == ""
