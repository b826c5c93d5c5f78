"""
================================================================================
Storage Factory
================================================================================

Seleciona e cria o backend de storage a partir do ambiente.

## Lógica de detecção:

1. `KEYWARDEN_STORAGE_BACKEND` com valor válido → esse backend
2. `BLOB_READ_WRITE_TOKEN` ou `KEYWARDEN_S3_BUCKET` → blob
3. `KV_REST_API_URL` → key-value
4. Fallback → arquivos locais
"""

from __future__ import annotations

import logging
import os
from typing import Any, Mapping

from ..codec import SecretCodec
from ..config import MonitorConfig
from .base import BackendKind, StorageBackend
from .blob import BlobBackend, S3BlobClient, VercelBlobClient
from .facade import Storage
from .kv import KVBackend, KVClient
from .local import LocalFileBackend
from .secure import EncryptedStorage


logger = logging.getLogger(__name__)


def select_backend(env: Mapping[str, str]) -> BackendKind:
    """
    Decide qual backend físico está ativo. Função pura, sem erros.

    ## Exemplo:

        >>> select_backend({})
        <BackendKind.LOCAL: 'local'>
        >>> select_backend({"KV_REST_API_URL": "https://kv.example"})
        <BackendKind.KV: 'kv'>
    """
    forced = (env.get("KEYWARDEN_STORAGE_BACKEND") or "").strip().lower()
    if forced in {kind.value for kind in BackendKind}:
        return BackendKind(forced)

    if env.get("BLOB_READ_WRITE_TOKEN") or env.get("KEYWARDEN_S3_BUCKET"):
        return BackendKind.BLOB

    if env.get("KV_REST_API_URL"):
        return BackendKind.KV

    return BackendKind.LOCAL


def create_backend(
    kind: BackendKind,
    config: MonitorConfig | None = None,
    env: Mapping[str, str] | None = None,
    **kwargs: Any,
) -> StorageBackend:
    """
    Cria o backend concreto.

    ## Parâmetros:

    - `kind`: Tipo de backend
    - `config`: Configuração de runtime (data_dir, timeout)
    - `env`: Ambiente com as credenciais de cloud (default: os.environ)
    - `**kwargs`: Argumentos específicos do cliente

    ## Exemplo:

        >>> backend = create_backend(BackendKind.LOCAL, data_dir="/tmp/kw")
    """
    if env is None:
        env = os.environ
    timeout = config.request_timeout if config else 10.0

    if kind is BackendKind.LOCAL:
        data_dir = kwargs.get("data_dir") or (config.data_dir if config else None)
        return LocalFileBackend(data_dir=data_dir)

    if kind is BackendKind.BLOB:
        if env.get("BLOB_READ_WRITE_TOKEN") or kwargs.get("token"):
            return BlobBackend(
                VercelBlobClient(
                    token=kwargs.get("token") or env.get("BLOB_READ_WRITE_TOKEN"),
                    timeout=timeout,
                )
            )
        return BlobBackend(
            S3BlobClient(
                bucket=kwargs.get("bucket") or env.get("KEYWARDEN_S3_BUCKET"),
                prefix=kwargs.get("prefix") or env.get("KEYWARDEN_S3_PREFIX", "keywarden/"),
                region=kwargs.get("region") or env.get("KEYWARDEN_S3_REGION", "us-east-1"),
            )
        )

    if kind is BackendKind.KV:
        return KVBackend(
            KVClient(
                url=kwargs.get("url") or env.get("KV_REST_API_URL"),
                token=kwargs.get("kv_token") or env.get("KV_REST_API_TOKEN"),
                timeout=timeout,
            )
        )

    raise ValueError(f"Unknown storage backend: {kind}")


def create_storage(
    config: MonitorConfig,
    env: Mapping[str, str] | None = None,
    encrypted: bool = True,
) -> Storage:
    """
    Cria o storage completo para o processo.

    Com `encrypted=True` (padrão) retorna `EncryptedStorage`, que mantém
    os segredos das keys cifrados em repouso.
    """
    if env is None:
        env = os.environ

    kind = select_backend(env)
    try:
        backend = create_backend(kind, config=config, env=env)
    except ValueError as e:
        logger.error("Backend %s mal configurado (%s); usando arquivos locais", kind.value, e)
        backend = create_backend(BackendKind.LOCAL, config=config, env=env)

    if not encrypted:
        return Storage(backend, env=env)

    return EncryptedStorage(backend, SecretCodec(config.passphrase), env=env)
