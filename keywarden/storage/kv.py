"""
================================================================================
Key-Value Storage Backend
================================================================================

Backend usando um key-value store acessado via REST (Vercel KV / Upstash
Redis). Cada comando é um único POST com um array JSON:

```
POST $KV_REST_API_URL
Authorization: Bearer $KV_REST_API_TOKEN

["SETEX", "history", 2592000, "[...]"]
→ {"result": "OK"}
```

## Configuração:

```bash
KV_REST_API_URL=https://example.upstash.io
KV_REST_API_TOKEN=...
```

O histórico é gravado com TTL derivado de `historyRetentionDays`, portanto
este backend não trunca o histórico em 1000 entradas.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

import requests

from .base import BackendKind, ErrorKind, ReadResult, StorageConnectionError, StorageError


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10


class KVClient:
    """
    Cliente mínimo para o protocolo de comandos REST do KV.

    Sem URL ou token o construtor levanta `ValueError`. Depois disso erros
    nunca escapam dos métodos públicos: `get` retorna None, `set`/`delete`
    retornam False.

    ## Parâmetros:

    - `url`: Endpoint de comandos (default: KV_REST_API_URL)
    - `token`: Token Bearer (default: KV_REST_API_TOKEN)
    - `timeout`: Timeout por requisição em segundos
    - `session`: Sessão `requests` (injetável em testes)
    """

    def __init__(
        self,
        url: str | None = None,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url or os.environ.get("KV_REST_API_URL")
        self.token = token or os.environ.get("KV_REST_API_TOKEN")
        if not self.url or not self.token:
            raise ValueError(
                "KV store is not configured. "
                "Set KV_REST_API_URL and KV_REST_API_TOKEN."
            )
        self.timeout = timeout
        self._session = session or requests.Session()

    def request(self, command: str, *args: Any) -> Any:
        """
        Executa um comando e retorna o campo `result` da resposta.

        ## Raises:

        - `StorageConnectionError`: Erro de rede
        - `StorageError`: Resposta não-2xx ou inválida
        """
        try:
            response = self._session.post(
                self.url,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Content-Type": "application/json",
                },
                json=[command, *args],
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StorageConnectionError(f"KV request failed: {e}") from e

        if not response.ok:
            raise StorageError(f"KV request failed: HTTP {response.status_code} {response.reason}")

        try:
            return response.json().get("result")
        except ValueError as e:
            raise StorageError(f"KV returned invalid JSON: {e}") from e

    def get(self, key: str) -> Any:
        """Retorna o valor decodificado ou None."""
        try:
            result = self.request("GET", key)
            return json.loads(result) if result else None
        except (StorageError, ValueError, TypeError) as e:
            logger.error("Falha ao obter KV [%s]: %s", key, e)
            return None

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        """Grava o valor serializado, com expiração opcional (SETEX)."""
        try:
            serialized = json.dumps(value, ensure_ascii=False)
            if ttl_seconds:
                self.request("SETEX", key, int(ttl_seconds), serialized)
            else:
                self.request("SET", key, serialized)
            return True
        except (StorageError, TypeError, ValueError) as e:
            logger.error("Falha ao gravar KV [%s]: %s", key, e)
            return False

    def delete(self, key: str) -> bool:
        try:
            self.request("DEL", key)
            return True
        except StorageError as e:
            logger.error("Falha ao remover KV [%s]: %s", key, e)
            return False


class KVBackend:
    """
    Backend de documentos sobre o `KVClient`.

    Mapeia nomes lógicos para keys fixas (`config.json` → `config`).
    Diferente do `KVClient.get`, `read` distingue key ausente de falha.
    """

    kind = BackendKind.KV
    caps_history = False
    supports_ttl = True

    def __init__(self, client: KVClient | None = None) -> None:
        self.client = client or KVClient()

    @staticmethod
    def key_for(name: str) -> str:
        return name[: -len(".json")] if name.endswith(".json") else name

    def read(self, name: str) -> ReadResult:
        key = self.key_for(name)
        try:
            raw = self.client.request("GET", key)
        except StorageError as e:
            logger.error("Falha ao obter KV [%s]: %s", key, e)
            return ReadResult.failed(ErrorKind.UNAVAILABLE, str(e))

        if raw is None:
            return ReadResult.missing()

        try:
            return ReadResult.found(json.loads(raw))
        except (TypeError, ValueError) as e:
            logger.warning("Valor KV [%s] corrompido: %s", key, e)
            return ReadResult.failed(ErrorKind.MALFORMED, str(e))

    def write(self, name: str, document: Any, ttl_seconds: int | None = None) -> bool:
        return self.client.set(self.key_for(name), document, ttl_seconds)

    def describe(self) -> dict[str, Any]:
        return {
            "mode": "vercel-kv",
            "description": "Key-value store (persistência em cloud com TTL)",
            "limits": None,
        }
