"""
================================================================================
Blob Storage Backend
================================================================================

Backend usando um object store (Vercel Blob ou Amazon S3) para persistir
os documentos JSON em cloud.

## Nomes de objetos não são estáveis:

O object store é imutável por nome e a camada física acrescenta um sufixo
aleatório a cada escrita:

```
config.json  →  config-HcJbdeVwxdFL9S5mifVW6Tn5ufxgiz.json
```

Por isso:

1. **Escrita**: lista objetos pelo prefixo, remove todos e cria um novo
2. **Leitura**: lista pelo prefixo e usa o mais recente (latest-wins)

Se a remoção falhar no meio do caminho, podem sobrar objetos antigos com
o mesmo prefixo. A regra latest-wins da leitura torna isso auto-corrigível,
então falhas de limpeza são apenas registradas em log.

## Configuração:

```bash
# Vercel Blob
BLOB_READ_WRITE_TOKEN=vercel_blob_rw_...

# Ou Amazon S3
KEYWARDEN_S3_BUCKET=my-bucket
KEYWARDEN_S3_PREFIX=keywarden/
KEYWARDEN_S3_REGION=us-east-1
```
"""

from __future__ import annotations

import json
import logging
import os
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

import requests

from .base import BackendKind, ErrorKind, ReadResult, StorageConnectionError, StorageError


logger = logging.getLogger(__name__)

VERCEL_BLOB_API_URL = "https://blob.vercel-storage.com"
VERCEL_BLOB_API_VERSION = "7"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class BlobObject:
    """
    Objeto listado no blob store.

    ## Atributos:

    - `pathname`: Nome físico relativo (com sufixo aleatório)
    - `url`: URL (Vercel) ou key completa (S3) do objeto
    - `uploaded_at`: Momento do upload (UTC)
    """

    pathname: str
    url: str
    uploaded_at: datetime


def _parse_uploaded_at(value: Any) -> datetime:
    """Converte `uploadedAt` para datetime; valores inválidos viram epoch."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not value:
        return _EPOCH
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return _EPOCH
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _random_suffix(length: int = 30) -> str:
    alphabet = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
    return "".join(secrets.choice(alphabet) for _ in range(length))


class BlobClient(Protocol):
    """Operações físicas necessárias pelo `BlobBackend`."""

    def list(self, prefix: str) -> list[BlobObject]: ...

    def fetch(self, obj: BlobObject) -> str: ...

    def put(self, pathname: str, body: str) -> BlobObject: ...

    def delete(self, objects: list[BlobObject]) -> None: ...


# =============================================================================
# Vercel Blob (REST)
# =============================================================================


class VercelBlobClient:
    """
    Cliente REST do Vercel Blob.

    O serviço acrescenta o sufixo aleatório (`x-add-random-suffix: 1`).

    ## Parâmetros:

    - `token`: Token de leitura/escrita (default: BLOB_READ_WRITE_TOKEN)
    - `api_url`: URL base da API
    - `timeout`: Timeout por requisição em segundos
    """

    def __init__(
        self,
        token: str | None = None,
        api_url: str = VERCEL_BLOB_API_URL,
        timeout: float = 10,
        session: requests.Session | None = None,
    ) -> None:
        self.token = token or os.environ.get("BLOB_READ_WRITE_TOKEN")
        if not self.token:
            raise ValueError(
                "Blob token is required. "
                "Set BLOB_READ_WRITE_TOKEN environment variable or pass token parameter."
            )
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def _headers(self, **extra: str) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.token}",
            "x-api-version": VERCEL_BLOB_API_VERSION,
        }
        headers.update(extra)
        return headers

    def _call(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise StorageConnectionError(f"Blob API request failed: {e}") from e
        if not response.ok:
            raise StorageError(f"Blob API error: HTTP {response.status_code} {response.reason}")
        return response

    def list(self, prefix: str) -> list[BlobObject]:
        objects: list[BlobObject] = []
        cursor: str | None = None

        while True:
            params: dict[str, Any] = {"prefix": prefix, "limit": 1000}
            if cursor:
                params["cursor"] = cursor
            data = self._call("GET", self.api_url, params=params, headers=self._headers()).json()

            for blob in data.get("blobs") or []:
                objects.append(
                    BlobObject(
                        pathname=blob.get("pathname", ""),
                        url=blob.get("url", ""),
                        uploaded_at=_parse_uploaded_at(blob.get("uploadedAt")),
                    )
                )

            cursor = data.get("cursor")
            if not data.get("hasMore") or not cursor:
                return objects

    def fetch(self, obj: BlobObject) -> str:
        return self._call("GET", obj.url).text

    def put(self, pathname: str, body: str) -> BlobObject:
        data = self._call(
            "PUT",
            f"{self.api_url}/{pathname}",
            data=body.encode("utf-8"),
            headers=self._headers(
                **{
                    "x-content-type": "application/json",
                    "x-add-random-suffix": "1",
                }
            ),
        ).json()
        return BlobObject(
            pathname=data.get("pathname", pathname),
            url=data.get("url", ""),
            uploaded_at=datetime.now(timezone.utc),
        )

    def delete(self, objects: list[BlobObject]) -> None:
        if not objects:
            return
        self._call(
            "POST",
            f"{self.api_url}/delete",
            json={"urls": [obj.url for obj in objects]},
            headers=self._headers(**{"Content-Type": "application/json"}),
        )


# =============================================================================
# Amazon S3
# =============================================================================


def _get_boto3_client(region: str) -> Any:
    """Create boto3 S3 client with lazy import."""
    try:
        import boto3  # type: ignore[import-not-found]

        return boto3.client("s3", region_name=region)  # type: ignore[no-any-return]
    except ImportError as e:
        raise ImportError(
            "boto3 is required for S3 storage. "
            "Install it with: pip install boto3"
        ) from e


class S3BlobClient:
    """
    Cliente S3 com a mesma semântica do Vercel Blob.

    Keys S3 são estáveis, então o próprio cliente acrescenta o sufixo
    aleatório ao nome físico.

    ## Credenciais:

    Usa chain padrão da AWS (env vars, ~/.aws/credentials, IAM role).
    """

    def __init__(
        self,
        bucket: str | None = None,
        prefix: str | None = None,
        region: str | None = None,
        client: Any = None,
    ) -> None:
        self.bucket = bucket or os.environ.get("KEYWARDEN_S3_BUCKET")
        if not self.bucket:
            raise ValueError(
                "S3 bucket is required. "
                "Set KEYWARDEN_S3_BUCKET environment variable or pass bucket parameter."
            )

        if prefix is None:
            prefix = os.environ.get("KEYWARDEN_S3_PREFIX", "keywarden/")
        self.prefix = prefix.rstrip("/") + "/" if prefix else ""
        self.region = region or os.environ.get("KEYWARDEN_S3_REGION", "us-east-1")
        self._client = client

    def _get_client(self) -> Any:
        """Obtém cliente S3 (lazy initialization)."""
        if self._client is None:
            try:
                self._client = _get_boto3_client(self.region)
            except ImportError:
                raise
            except Exception as e:
                raise StorageConnectionError(
                    f"Failed to create S3 client for bucket '{self.bucket}': {e}"
                ) from e
        return self._client

    def list(self, prefix: str) -> list[BlobObject]:
        client = self._get_client()
        paginator = client.get_paginator("list_objects_v2")

        objects: list[BlobObject] = []
        for page in paginator.paginate(Bucket=self.bucket, Prefix=f"{self.prefix}{prefix}"):
            for obj in page.get("Contents", []):
                key: str = obj["Key"]
                objects.append(
                    BlobObject(
                        pathname=key[len(self.prefix):],
                        url=key,
                        uploaded_at=_parse_uploaded_at(obj.get("LastModified")),
                    )
                )
        return objects

    def fetch(self, obj: BlobObject) -> str:
        response = self._get_client().get_object(Bucket=self.bucket, Key=obj.url)
        data: bytes = response["Body"].read()
        return data.decode("utf-8")

    def put(self, pathname: str, body: str) -> BlobObject:
        stem, dot, ext = pathname.rpartition(".")
        physical = f"{stem}-{_random_suffix()}.{ext}" if dot else f"{pathname}-{_random_suffix()}"
        key = f"{self.prefix}{physical}"

        self._get_client().put_object(
            Bucket=self.bucket,
            Key=key,
            Body=body.encode("utf-8"),
            ContentType="application/json",
        )
        return BlobObject(pathname=physical, url=key, uploaded_at=datetime.now(timezone.utc))

    def delete(self, objects: list[BlobObject]) -> None:
        if not objects:
            return
        self._get_client().delete_objects(
            Bucket=self.bucket,
            Delete={"Objects": [{"Key": obj.url} for obj in objects], "Quiet": True},
        )


# =============================================================================
# Backend
# =============================================================================


class BlobBackend:
    """
    Backend de documentos sobre um `BlobClient`.

    Recupera semântica de documento único a partir de um namespace
    append-only: remove-antigos-e-cria-novo na escrita, mais-recente-vence
    na leitura. Consistência é eventual.

    ## Exemplo:

        >>> backend = BlobBackend(VercelBlobClient())
        >>> backend.write("config.json", {"apiKeys": [], "settings": {}})
        True
    """

    kind = BackendKind.BLOB
    caps_history = True
    supports_ttl = False

    def __init__(self, client: BlobClient) -> None:
        self.client = client

    @staticmethod
    def prefix_for(name: str) -> str:
        return name[: -len(".json")] if name.endswith(".json") else name

    def _matching(self, name: str) -> list[BlobObject]:
        """Lista objetos do documento, ignorando nomes que só compartilham o prefixo."""
        prefix = self.prefix_for(name)
        pattern = re.compile(rf"^{re.escape(prefix)}(-[A-Za-z0-9]+)?\.json$")
        return [obj for obj in self.client.list(prefix) if pattern.match(obj.pathname)]

    def read(self, name: str) -> ReadResult:
        try:
            objects = self._matching(name)
            if not objects:
                return ReadResult.missing()

            latest = max(objects, key=lambda obj: obj.uploaded_at)
            body = self.client.fetch(latest)
        except Exception as e:
            # Erros do boto3/botocore não derivam de StorageError
            logger.error("Falha ao ler blob [%s]: %s", name, e)
            return ReadResult.failed(ErrorKind.UNAVAILABLE, str(e))

        try:
            return ReadResult.found(json.loads(body))
        except ValueError as e:
            logger.warning("Blob [%s] corrompido: %s", latest.pathname, e)
            return ReadResult.failed(ErrorKind.MALFORMED, str(e))

    def write(self, name: str, document: Any, ttl_seconds: int | None = None) -> bool:
        try:
            body = json.dumps(document, indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.error("Documento %s não serializável: %s", name, e)
            return False

        try:
            stale = self._matching(name)
            if stale:
                self.client.delete(stale)
        except Exception as e:
            logger.warning("Falha ao limpar blobs antigos [%s] (%s): %s", name, ErrorKind.CLEANUP.value, e)

        try:
            obj = self.client.put(name, body)
            logger.debug("Blob salvo: %s", obj.pathname)
            return True
        except Exception as e:
            logger.error("Falha ao salvar blob [%s]: %s", name, e)
            return False

    def describe(self) -> dict[str, Any]:
        backend = "s3" if isinstance(self.client, S3BlobClient) else "vercel-blob"
        return {
            "mode": backend,
            "description": "Object store (persistência em cloud, latest-wins)",
            "limits": {
                "fileSize": "4.5MB/arquivo",
                "consistency": "eventual",
            },
        }
