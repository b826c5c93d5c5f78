"""
================================================================================
Usage Aggregator
================================================================================

Consulta todas as keys habilitadas em paralelo e monta o snapshot exibido
pelo dashboard (`GET /api/data`) e pelo comando `keywarden status`.

## Fluxo:

```
load_config → keys habilitadas → ThreadPoolExecutor(fetch) → totais/grupos
                                                          → append_history
```

Cada chamada acrescenta uma entrada ao histórico; a retenção é aplicada
pelo storage no momento da gravação.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from ..config import MonitorConfig
from ..storage import Storage
from ..storage.base import DEFAULT_ALERT_THRESHOLD
from .client import UsageClient


logger = logging.getLogger(__name__)

Fetcher = Callable[[Mapping[str, Any]], dict[str, Any]]


def empty_totals() -> dict[str, int]:
    return {"used": 0, "allowance": 0, "remaining": 0}


def _alert_threshold(config: Mapping[str, Any]) -> float:
    settings = config.get("settings") or {}
    try:
        return float(settings.get("alertThreshold", DEFAULT_ALERT_THRESHOLD))
    except (TypeError, ValueError):
        return DEFAULT_ALERT_THRESHOLD


class UsageAggregator:
    """
    Agrega o consumo de todas as keys habilitadas.

    ## Parâmetros:

    - `storage`: Storage (keys em texto plano via `load_config`)
    - `config`: Configuração de runtime (URL e timeout da consulta)
    - `fetcher`: Função de consulta por key (default: `UsageClient.fetch`)
    """

    def __init__(
        self,
        storage: Storage,
        config: MonitorConfig | None = None,
        fetcher: Fetcher | None = None,
    ) -> None:
        self.storage = storage
        if fetcher is None:
            config = config or MonitorConfig()
            fetcher = UsageClient(url=config.usage_url, timeout=config.request_timeout).fetch
        self.fetcher = fetcher

    def collect(self, record_history: bool = True) -> dict[str, Any]:
        """
        Consulta todas as keys habilitadas e retorna o snapshot agregado.

        ## Retorna:

        ```python
        {
            "update_time": "2024-05-01T12:00:00+00:00",
            "total_count": 3,
            "totals": {"used": ..., "allowance": ..., "remaining": ...},
            "data": [...],          # um resultado por key
            "groups": {"default": [...]},
            "alerts": ["k2"],       # usedRatio >= alertThreshold
        }
        ```
        """
        config = self.storage.load_config()
        enabled = [
            credential
            for credential in config.get("apiKeys", [])
            if isinstance(credential, dict) and credential.get("enabled", True) is not False
        ]

        if not enabled:
            return self._snapshot([], empty_totals(), {}, [])

        logger.info("Consultando consumo de %d keys", len(enabled))
        with ThreadPoolExecutor(max_workers=len(enabled)) as pool:
            results = list(pool.map(self.fetcher, enabled))

        valid = [result for result in results if result.get("valid")]
        totals = self._totals(valid)

        groups: dict[str, list[dict[str, Any]]] = {}
        for result in results:
            groups.setdefault(result.get("group") or "default", []).append(result)

        threshold = _alert_threshold(config)
        alerts = [
            str(result.get("id"))
            for result in valid
            if isinstance(result.get("usedRatio"), (int, float)) and result["usedRatio"] >= threshold
        ]

        if record_history:
            self._record(totals, valid)

        return self._snapshot(results, totals, groups, alerts)

    def _record(self, totals: dict[str, Any], valid: list[dict[str, Any]]) -> None:
        entry = {
            "timestamp": self.storage.now_ms(),
            "totals": dict(totals),
            "keys": [
                {
                    "id": result.get("id"),
                    "used": result.get("orgTotalTokensUsed"),
                    "allowance": result.get("totalAllowance"),
                    "remaining": result.get("remaining"),
                }
                for result in valid
            ],
        }
        if not self.storage.append_history(entry):
            logger.warning("Não foi possível gravar a entrada de histórico")

    @staticmethod
    def _totals(valid: list[dict[str, Any]]) -> dict[str, Any]:
        totals = empty_totals()
        for result in valid:
            totals["used"] += result.get("orgTotalTokensUsed") or 0
            totals["allowance"] += result.get("totalAllowance") or 0
        totals["remaining"] = totals["allowance"] - totals["used"]
        return totals

    @staticmethod
    def _snapshot(
        results: list[dict[str, Any]],
        totals: dict[str, Any],
        groups: dict[str, list[dict[str, Any]]],
        alerts: list[str],
    ) -> dict[str, Any]:
        return {
            "update_time": datetime.now(timezone.utc).isoformat(),
            "total_count": len(results),
            "totals": totals,
            "data": results,
            "groups": groups,
            "alerts": alerts,
        }
