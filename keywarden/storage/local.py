"""
================================================================================
Local File Storage Backend
================================================================================

Backend de armazenamento usando arquivos JSON no disco local.
É o backend padrão quando nenhuma variável de ambiente de cloud está
definida.

## Estrutura:

```
./data/
├── config.json          # Documento de configuração (keys + settings)
└── history.json         # Série temporal de leituras agregadas
```

## Uso:

```python
from keywarden.storage import LocalFileBackend

backend = LocalFileBackend(data_dir="./data")
backend.write("config.json", {"apiKeys": [], "settings": {}})
result = backend.read("config.json")
```
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from .base import BackendKind, ErrorKind, ReadResult


logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "./data"


class LocalFileBackend:
    """
    Backend de arquivos JSON locais.

    Cada documento lógico é um arquivo em `data_dir`. Escritas
    sobrescrevem o arquivo inteiro e não são coordenadas entre processos
    (a última escrita vence).

    ## Parâmetros:

    - `data_dir`: Diretório dos documentos (default: ./data)

    ## Exemplo:

        >>> backend = LocalFileBackend(data_dir="/tmp/keywarden")
        >>> backend.write("history.json", [])
        True
    """

    kind = BackendKind.LOCAL
    caps_history = True
    supports_ttl = False

    def __init__(self, data_dir: str | Path | None = None) -> None:
        if data_dir is None:
            data_dir = os.environ.get("KEYWARDEN_DATA_DIR", DEFAULT_DATA_DIR)

        self.data_dir = Path(os.path.expanduser(os.path.expandvars(str(data_dir))))
        self._dir_ready = False

    def _ensure_dir(self) -> None:
        """Cria o diretório de dados no primeiro uso (idempotente)."""
        if self._dir_ready:
            return
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._dir_ready = True

    def path_for(self, name: str) -> Path:
        return self.data_dir / name

    def read(self, name: str) -> ReadResult:
        """Lê e decodifica um documento JSON do disco."""
        try:
            self._ensure_dir()
            path = self.path_for(name)
            if not path.exists():
                return ReadResult.missing()

            with open(path, "r", encoding="utf-8") as f:
                return ReadResult.found(json.load(f))
        except json.JSONDecodeError as e:
            logger.warning("Documento %s corrompido: %s", name, e)
            return ReadResult.failed(ErrorKind.MALFORMED, str(e))
        except OSError as e:
            logger.error("Falha ao ler %s: %s", name, e)
            return ReadResult.failed(ErrorKind.UNAVAILABLE, str(e))

    def write(self, name: str, document: Any, ttl_seconds: int | None = None) -> bool:
        """Sobrescreve o documento inteiro. `ttl_seconds` é ignorado."""
        try:
            self._ensure_dir()
            with open(self.path_for(name), "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
            logger.debug("Documento %s salvo em %s", name, self.data_dir)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error("Falha ao salvar %s: %s", name, e)
            return False

    def describe(self) -> dict[str, Any]:
        return {
            "mode": "local-file",
            "description": f"Sistema de arquivos local ({self.data_dir})",
            "limits": None,
        }
