"""
================================================================================
STORAGE MODULE - Persistência de Configuração e Histórico
================================================================================

Este módulo fornece o storage do keywarden: um facade único sobre três
backends físicos, mais a camada que mantém os segredos cifrados em repouso.

## Arquitetura:

```
                    ┌─────────────────────────────┐
                    │  EncryptedStorage (codec)   │
                    └─────────────────────────────┘
                                  │
                    ┌─────────────────────────────┐
                    │   Storage (facade/retenção) │
                    └─────────────────────────────┘
                                  │
              ┌───────────────────┼───────────────────┐
              │                   │                   │
    ┌─────────┴────────┐ ┌────────┴───────┐ ┌─────────┴───────┐
    │ LocalFileBackend │ │  BlobBackend   │ │   KVBackend     │
    │    (default)     │ │ (Vercel / S3)  │ │  (REST + TTL)   │
    └──────────────────┘ └────────────────┘ └─────────────────┘
```

## Uso:

```python
from keywarden.config import MonitorConfig
from keywarden.storage import create_storage

storage = create_storage(MonitorConfig.from_env())
config = storage.load_config()
storage.save_config(config)
```

## Configuração via variáveis de ambiente:

- `KEYWARDEN_STORAGE_BACKEND`: "local" | "blob" | "kv" (força o backend)
- `KEYWARDEN_DATA_DIR`: Diretório local (default: ./data)
- `BLOB_READ_WRITE_TOKEN`: Ativa o Vercel Blob
- `KEYWARDEN_S3_BUCKET` / `_PREFIX` / `_REGION`: Ativa o S3
- `KV_REST_API_URL` / `KV_REST_API_TOKEN`: Ativa o key-value store
"""

from .base import (
    BackendKind,
    ErrorKind,
    ReadResult,
    StorageBackend,
    StorageError,
    StorageConnectionError,
    get_default_config,
    get_default_settings,
)
from .local import LocalFileBackend
from .blob import BlobBackend, BlobObject, S3BlobClient, VercelBlobClient
from .kv import KVBackend, KVClient
from .facade import Storage, apply_retention, normalize_credential
from .secure import EncryptedStorage
from .factory import create_backend, create_storage, select_backend

__all__ = [
    # Protocol and types
    "BackendKind",
    "ErrorKind",
    "ReadResult",
    "StorageBackend",
    "StorageError",
    "StorageConnectionError",
    "get_default_config",
    "get_default_settings",
    # Backends
    "LocalFileBackend",
    "BlobBackend",
    "BlobObject",
    "S3BlobClient",
    "VercelBlobClient",
    "KVBackend",
    "KVClient",
    # Facade
    "Storage",
    "EncryptedStorage",
    "apply_retention",
    "normalize_credential",
    # Factory
    "create_backend",
    "create_storage",
    "select_backend",
]
