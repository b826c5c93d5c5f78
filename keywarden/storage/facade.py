"""
================================================================================
Storage Facade
================================================================================

Interface única consumida pelo resto do sistema. Encaminha cada chamada
ao backend ativo e aplica, de forma uniforme:

- Síntese da configuração padrão (bootstrap)
- Política de retenção do histórico (idade + limite de 1000 entradas)

## Uso:

```python
from keywarden.storage import Storage, LocalFileBackend

storage = Storage(LocalFileBackend("./data"))
config = storage.load_config()
storage.save_history(storage.load_history() + [entry])
```

## Política de erros:

Nenhum método levanta exceção. Leituras degradam para valores padrão,
escritas retornam `False`.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import time
from typing import Any, Callable, Mapping

from .base import (
    CONFIG_DOCUMENT,
    DEFAULT_RETENTION_DAYS,
    HISTORY_DOCUMENT,
    ErrorKind,
    MAX_HISTORY_RECORDS,
    ReadResult,
    StorageBackend,
    get_default_config,
    get_default_settings,
)


logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000
DAY_SECONDS = 24 * 60 * 60

# Variáveis aceitas para a lista inicial de keys (JSON array)
BOOTSTRAP_ENV_VARS = ("FACTORY_API_KEYS", "API_KEYS")


def normalize_credential(raw: Mapping[str, Any]) -> dict[str, Any]:
    """
    Preenche os campos opcionais de uma credencial com os defaults.

    ## Exemplo:

        >>> normalize_credential({"id": "k1", "key": "fk-abc"})["group"]
        'default'
    """
    return {
        "id": str(raw.get("id", "")),
        "key": str(raw.get("key", "")),
        "alias": raw.get("alias") or "",
        "group": raw.get("group") or "default",
        "note": raw.get("note") or "",
        "enabled": raw.get("enabled", True) is not False,
        "viewPassword": str(raw.get("viewPassword") or "0000"),
    }


def is_valid_config(document: Any) -> bool:
    """Documento é válido se for um mapping com `apiKeys` do tipo lista."""
    return isinstance(document, dict) and isinstance(document.get("apiKeys"), list)


def retention_days_of(config: Mapping[str, Any]) -> int:
    """Lê `historyRetentionDays`, com default 30 quando ausente ou inválido."""
    settings = config.get("settings") or {}
    try:
        days = int(settings.get("historyRetentionDays") or DEFAULT_RETENTION_DAYS)
    except (TypeError, ValueError):
        return DEFAULT_RETENTION_DAYS
    return days if days > 0 else DEFAULT_RETENTION_DAYS


def apply_retention(
    entries: list[dict[str, Any]],
    retention_days: int,
    now_ms: int,
    max_records: int | None = MAX_HISTORY_RECORDS,
) -> list[dict[str, Any]]:
    """
    Aplica a política de retenção ao histórico.

    A filtragem por idade acontece antes do limite de tamanho, então o
    corte por tamanho descarta as entradas sobreviventes mais antigas.

    ## Parâmetros:

    - `entries`: Histórico em ordem crescente de timestamp
    - `retention_days`: Dias de retenção
    - `now_ms`: Agora, em epoch-ms
    - `max_records`: Limite rígido (None = sem limite)

    ## Exemplo:

        >>> now = 100 * DAY_MS
        >>> apply_retention([{"timestamp": now - 40 * DAY_MS}, {"timestamp": now - DAY_MS}], 30, now)
        [{'timestamp': 8553600000}]
    """
    cutoff = now_ms - retention_days * DAY_MS
    kept = [
        entry
        for entry in entries
        if isinstance(entry, dict) and _timestamp_of(entry) > cutoff
    ]
    if max_records is not None and len(kept) > max_records:
        kept = kept[-max_records:]
    return kept


def _timestamp_of(entry: Mapping[str, Any]) -> float:
    try:
        return float(entry.get("timestamp") or 0)
    except (TypeError, ValueError):
        return 0


class Storage:
    """
    Facade de persistência sobre um `StorageBackend`.

    ## Parâmetros:

    - `backend`: Backend ativo (selecionado uma vez no startup)
    - `env`: Ambiente para a lista inicial de keys (default: os.environ)
    - `clock`: Função que retorna o tempo atual em segundos (testes)

    ## Exemplo:

        >>> storage = Storage(LocalFileBackend("/tmp/kw"))
        >>> storage.load_config()["settings"]["historyRetentionDays"]
        30
    """

    def __init__(
        self,
        backend: StorageBackend,
        env: Mapping[str, str] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.backend = backend
        self._env = env if env is not None else os.environ
        self._clock = clock

    # =========================================================================
    # CONFIGURAÇÃO
    # =========================================================================

    def load_config(self) -> dict[str, Any]:
        """
        Carrega a configuração; nunca retorna None.

        Ordem de resolução:

        1. Documento persistido válido
        2. Lista de keys em FACTORY_API_KEYS / API_KEYS
        3. Configuração padrão

        O documento sintetizado é persistido antes de retornar, exceto
        quando o backend está indisponível (para não sobrescrever dados
        reais durante uma falha transitória).
        """
        document, _ = self._resolve_config()
        return document

    def _resolve_config(self) -> tuple[dict[str, Any], bool]:
        """Retorna (configuração, veio_do_backend)."""
        result = self.backend.read(CONFIG_DOCUMENT)

        if result.ok and is_valid_config(result.value):
            return self._with_default_settings(result.value), True

        if result.ok:
            logger.warning("Configuração persistida inválida; usando padrão")

        document = self._bootstrap_config()

        if result.error is ErrorKind.UNAVAILABLE:
            logger.warning("Backend indisponível; configuração padrão não será persistida")
            return document, False

        if not self.save_config(document):
            logger.warning("Não foi possível persistir a configuração inicial")
        return document, False

    def save_config(self, config: dict[str, Any]) -> bool:
        """Serializa e grava a configuração. Nunca levanta exceção."""
        try:
            return self.backend.write(CONFIG_DOCUMENT, config)
        except Exception as e:
            logger.error("Falha ao salvar configuração: %s", e)
            return False

    def _bootstrap_config(self) -> dict[str, Any]:
        keys = self._keys_from_env()
        if keys is None:
            return get_default_config()

        logger.info("Configuração inicial criada a partir do ambiente (%d keys)", len(keys))
        return {"apiKeys": keys, "settings": get_default_settings()}

    def _keys_from_env(self) -> list[dict[str, Any]] | None:
        for var in BOOTSTRAP_ENV_VARS:
            raw = self._env.get(var)
            if not raw:
                continue
            try:
                parsed = json.loads(raw)
            except ValueError as e:
                logger.error("Falha ao interpretar %s: %s", var, e)
                continue
            if not isinstance(parsed, list):
                logger.error("%s deve ser um JSON array", var)
                continue

            keys: list[dict[str, Any]] = []
            seen: set[str] = set()
            for item in parsed:
                if not isinstance(item, dict) or not item.get("id") or not item.get("key"):
                    continue
                credential = normalize_credential(item)
                if credential["id"] in seen:
                    continue
                seen.add(credential["id"])
                keys.append(credential)
            return keys
        return None

    @staticmethod
    def _with_default_settings(config: dict[str, Any]) -> dict[str, Any]:
        credentials = [c for c in config["apiKeys"] if isinstance(c, dict)]
        if len(credentials) != len(config["apiKeys"]):
            logger.warning(
                "Ignorando %d entradas inválidas em apiKeys",
                len(config["apiKeys"]) - len(credentials),
            )
        config["apiKeys"] = credentials

        settings = config.get("settings")
        merged = get_default_settings()
        if isinstance(settings, dict):
            merged.update(settings)
        config["settings"] = merged
        return config

    # =========================================================================
    # HISTÓRICO
    # =========================================================================

    def load_history(self) -> list[dict[str, Any]]:
        """Carrega o histórico; ausência ou corrupção resulta em lista vazia."""
        result = self.backend.read(HISTORY_DOCUMENT)
        if result.ok and isinstance(result.value, list):
            return result.value
        if result.ok:
            logger.warning("Histórico persistido inválido; ignorando")
        return []

    def save_history(self, entries: list[dict[str, Any]]) -> bool:
        """
        Aplica a retenção e grava o histórico.

        Usa `historyRetentionDays` da configuração atual. Backends com TTL
        recebem a retenção em segundos e não são truncados.
        """
        try:
            days = retention_days_of(self._current_config())
            max_records = MAX_HISTORY_RECORDS if self.backend.caps_history else None
            kept = apply_retention(
                list(entries), days, self.now_ms(), max_records=max_records
            )

            ttl = days * DAY_SECONDS if self.backend.supports_ttl else None
            return self.backend.write(HISTORY_DOCUMENT, kept, ttl_seconds=ttl)
        except Exception as e:
            logger.error("Falha ao salvar histórico: %s", e)
            return False

    def append_history(self, entry: dict[str, Any]) -> bool:
        """Acrescenta uma entrada ao histórico e grava com retenção."""
        history = self.load_history()
        history.append(entry)
        return self.save_history(history)

    def _current_config(self) -> dict[str, Any]:
        # Leitura crua: a retenção só precisa das settings, não das keys
        result: ReadResult = self.backend.read(CONFIG_DOCUMENT)
        if result.ok and is_valid_config(result.value):
            return result.value
        return get_default_config()

    # =========================================================================
    # UTILITÁRIOS
    # =========================================================================

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def get_default_config(self) -> dict[str, Any]:
        return get_default_config()

    def get_default_settings(self) -> dict[str, Any]:
        return get_default_settings()

    def get_storage_info(self) -> dict[str, Any]:
        """Retorna informações sobre o modo de armazenamento ativo."""
        info = copy.deepcopy(self.backend.describe())
        info.update(
            {
                "backend": self.backend.kind.value,
                "persistent": True,
                "encrypted": False,
                "features": {
                    "config": True,
                    "history": True,
                    "addKey": True,
                    "deleteKey": True,
                    "updateKey": True,
                },
            }
        )
        return info
