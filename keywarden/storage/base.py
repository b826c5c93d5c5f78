"""
================================================================================
STORAGE BASE - Protocolo Comum e Tipos de Dados
================================================================================

Define a interface comum para todos os backends de armazenamento e os
valores que atravessam a fronteira backend → facade.

## Documentos persistidos:

- `config.json`: `{"apiKeys": [...], "settings": {...}}`
- `history.json`: `[{"timestamp": ..., "totals": {...}, "keys": [...]}, ...]`
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, Protocol, runtime_checkable


CONFIG_DOCUMENT = "config.json"
HISTORY_DOCUMENT = "history.json"

DEFAULT_AUTO_REFRESH_INTERVAL = 300000
DEFAULT_ALERT_THRESHOLD = 0.8
DEFAULT_RETENTION_DAYS = 30

# Limite rígido de entradas de histórico (local e blob)
MAX_HISTORY_RECORDS = 1000


# =============================================================================
# Exceptions
# =============================================================================


class StorageError(Exception):
    """Erro base para operações de storage."""

    pass


class StorageConnectionError(StorageError):
    """Erro de conexão ou configuração do backend de storage."""

    pass


# =============================================================================
# Data Types
# =============================================================================


class BackendKind(str, Enum):
    """Backends físicos suportados."""

    LOCAL = "local"
    BLOB = "blob"
    KV = "kv"


class ErrorKind(str, Enum):
    """
    Categorias de falha observadas na fronteira do storage.

    - `UNAVAILABLE`: Backend mal configurado ou fora do ar
    - `NOT_FOUND`: Documento nunca escrito (não é erro para o chamador)
    - `MALFORMED`: Conteúdo persistido não é JSON válido
    - `CRYPTO`: Falha ao decifrar um segredo
    - `CLEANUP`: Falha ao remover objetos antigos no blob store
    """

    UNAVAILABLE = "unavailable"
    NOT_FOUND = "not_found"
    MALFORMED = "malformed"
    CRYPTO = "crypto"
    CLEANUP = "cleanup"


@dataclass(frozen=True)
class ReadResult:
    """
    Resultado de uma leitura de documento.

    Permite distinguir "nunca escrito" (`missing`) de "escrito mas vazio"
    (`ok` com documento vazio) e de "backend indisponível" (`failed`).

    ## Exemplo:

        >>> result = backend.read("config.json")
        >>> if result.ok:
        ...     doc = result.value
    """

    status: Literal["ok", "missing", "failed"]
    value: Any = None
    error: ErrorKind | None = None
    detail: str | None = None

    @classmethod
    def found(cls, value: Any) -> "ReadResult":
        return cls(status="ok", value=value)

    @classmethod
    def missing(cls) -> "ReadResult":
        return cls(status="missing", error=ErrorKind.NOT_FOUND)

    @classmethod
    def failed(cls, error: ErrorKind, detail: str | None = None) -> "ReadResult":
        return cls(status="failed", error=error, detail=detail)

    @property
    def ok(self) -> bool:
        return self.status == "ok"


def get_default_settings() -> dict[str, Any]:
    """Retorna as configurações padrão (compartilhadas por todos os backends)."""
    return {
        "autoRefreshInterval": DEFAULT_AUTO_REFRESH_INTERVAL,
        "alertThreshold": DEFAULT_ALERT_THRESHOLD,
        "historyRetentionDays": DEFAULT_RETENTION_DAYS,
    }


def get_default_config() -> dict[str, Any]:
    """Retorna o documento de configuração no estado zero."""
    return {
        "apiKeys": [],
        "settings": get_default_settings(),
    }


# =============================================================================
# Protocol Definition
# =============================================================================


@runtime_checkable
class StorageBackend(Protocol):
    """
    Protocolo para backends físicos de armazenamento.

    Todos os backends armazenam documentos JSON inteiros por nome lógico
    (`config.json`, `history.json`) e nunca propagam exceções: falhas
    viram `ReadResult.failed(...)` ou `False`.

    ## Atributos:

    - `kind`: Tipo do backend (local, blob, kv)
    - `caps_history`: Se True, o facade trunca o histórico em 1000 entradas
    - `supports_ttl`: Se True, o backend expira documentos via TTL

    ## Exemplo de implementação:

    ```python
    class MyBackend:
        kind = BackendKind.LOCAL
        caps_history = True
        supports_ttl = False

        def read(self, name: str) -> ReadResult:
            ...

        def write(self, name: str, document: Any, ttl_seconds: int | None = None) -> bool:
            ...

        def describe(self) -> dict[str, Any]:
            ...
    ```
    """

    kind: BackendKind
    caps_history: bool
    supports_ttl: bool

    @abstractmethod
    def read(self, name: str) -> ReadResult:
        """
        Lê um documento pelo nome lógico.

        ## Retorno:

        - `ReadResult.found(doc)` se existe e é JSON válido
        - `ReadResult.missing()` se nunca foi escrito
        - `ReadResult.failed(kind)` em caso de erro
        """
        ...

    @abstractmethod
    def write(self, name: str, document: Any, ttl_seconds: int | None = None) -> bool:
        """
        Sobrescreve o documento inteiro.

        ## Parâmetros:

        - `name`: Nome lógico do documento
        - `document`: Valor serializável em JSON
        - `ttl_seconds`: Expiração (apenas backends com TTL)

        ## Retorno:

        True se persistido, False caso contrário.
        """
        ...

    @abstractmethod
    def describe(self) -> dict[str, Any]:
        """Retorna descrição do backend para `get_storage_info()`."""
        ...
