"""
================================================================================
Testes da Consulta e Agregação de Consumo
================================================================================

`requests` é sempre mockado: nenhum teste acessa a rede.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping
from unittest.mock import MagicMock

import pytest
import requests

from keywarden.storage import LocalFileBackend, Storage
from keywarden.usage import UsageAggregator, fetch_key_usage, format_period_date, mask_key


CREDENTIAL = {"id": "k1", "key": "fk-abcdefghijkl", "alias": "Main", "group": "prod"}


def _response(status_code: int = 200, payload: Any = None, json_error: bool = False) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    if json_error:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


def _session(response: MagicMock | None = None, error: Exception | None = None) -> MagicMock:
    session = MagicMock()
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value = response
    return session


USAGE_PAYLOAD = {
    "usage": {
        "startDate": 1714521600000,
        "endDate": 1717200000000,
        "standard": {"orgTotalTokensUsed": 250, "totalAllowance": 1000, "usedRatio": 0.25},
    }
}


class TestFetchKeyUsage:
    """Testes para fetch_key_usage()."""

    def test_valid_response(self) -> None:
        session = _session(_response(200, USAGE_PAYLOAD))

        result = fetch_key_usage(CREDENTIAL, url="https://usage.test", timeout=5, session=session)

        assert result["valid"] is True
        assert result["remaining"] == 750
        assert result["startDate"] == "2024-05-01"
        assert result["maskedKey"] == "fk-abcde...ijkl"
        assert "key" not in result

        _, kwargs = session.get.call_args
        assert kwargs["headers"]["Authorization"] == "Bearer fk-abcdefghijkl"
        assert kwargs["timeout"] == 5

    def test_http_error(self) -> None:
        result = fetch_key_usage(CREDENTIAL, session=_session(_response(401)))

        assert result["valid"] is False
        assert result["error"] == "HTTP 401"

    def test_missing_standard_usage(self) -> None:
        result = fetch_key_usage(CREDENTIAL, session=_session(_response(200, {"usage": {}})))

        assert result["error"] == "Invalid API response"

    def test_parse_error(self) -> None:
        result = fetch_key_usage(CREDENTIAL, session=_session(_response(200, json_error=True)))

        assert result["error"] == "Parse error"

    def test_timeout(self) -> None:
        result = fetch_key_usage(CREDENTIAL, session=_session(error=requests.Timeout("slow")))

        assert result["error"] == "Request timeout"

    def test_network_error_message(self) -> None:
        error = requests.ConnectionError("connection refused")

        result = fetch_key_usage(CREDENTIAL, session=_session(error=error))

        assert result["valid"] is False
        assert result["error"] == "connection refused"


def test_mask_key() -> None:
    assert mask_key("fk-abcdefghijkl") == "fk-abcde...ijkl"


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, "N/A"), (0, "1970-01-01"), ("2024-05-01T10:00:00Z", "2024-05-01"), ("junk", "Invalid Date")],
)
def test_format_period_date(value: Any, expected: str) -> None:
    assert format_period_date(value) == expected


# =============================================================================
# Aggregator
# =============================================================================


def fake_fetcher(credential: Mapping[str, Any]) -> dict[str, Any]:
    """Consumo determinístico por id; `bad` simula falha."""
    base = {"id": credential["id"], "group": credential.get("group") or "default"}
    if credential["id"] == "bad":
        return {**base, "valid": False, "error": "HTTP 401"}
    used = {"a": 100, "b": 900}.get(credential["id"], 0)
    return {
        **base,
        "valid": True,
        "orgTotalTokensUsed": used,
        "totalAllowance": 1000,
        "usedRatio": used / 1000,
        "remaining": 1000 - used,
    }


@pytest.fixture
def storage(tmp_path: Path) -> Storage:
    storage = Storage(LocalFileBackend(tmp_path), env={})
    storage.save_config(
        {
            "apiKeys": [
                {"id": "a", "key": "fk-a", "group": "team"},
                {"id": "b", "key": "fk-b"},
                {"id": "bad", "key": "fk-bad"},
                {"id": "off", "key": "fk-off", "enabled": False},
            ],
            "settings": {"alertThreshold": 0.8},
        }
    )
    return storage


class TestUsageAggregator:
    """Testes para UsageAggregator.collect()."""

    def test_totals_groups_and_alerts(self, storage: Storage) -> None:
        snapshot = UsageAggregator(storage, fetcher=fake_fetcher).collect()

        assert snapshot["total_count"] == 3
        assert snapshot["totals"] == {"used": 1000, "allowance": 2000, "remaining": 1000}
        assert sorted(snapshot["groups"]) == ["default", "team"]
        assert snapshot["alerts"] == ["b"]
        assert [r["id"] for r in snapshot["data"]] == ["a", "b", "bad"]

    def test_appends_history_entry(self, storage: Storage) -> None:
        aggregator = UsageAggregator(storage, fetcher=fake_fetcher)

        aggregator.collect()
        aggregator.collect()

        history = storage.load_history()
        assert len(history) == 2
        assert history[-1]["totals"]["remaining"] == 1000
        assert [k["id"] for k in history[-1]["keys"]] == ["a", "b"]

    def test_no_record(self, storage: Storage) -> None:
        UsageAggregator(storage, fetcher=fake_fetcher).collect(record_history=False)

        assert storage.load_history() == []

    def test_no_enabled_keys(self, tmp_path: Path) -> None:
        storage = Storage(LocalFileBackend(tmp_path), env={})
        fetcher = MagicMock()

        snapshot = UsageAggregator(storage, fetcher=fetcher).collect()

        assert snapshot["total_count"] == 0
        assert snapshot["data"] == []
        assert snapshot["totals"] == {"used": 0, "allowance": 0, "remaining": 0}
        fetcher.assert_not_called()
        assert storage.load_history() == []
