"""
================================================================================
Encrypted Storage
================================================================================

Storage que mantém os segredos das keys cifrados em repouso, qualquer que
seja o backend. Para o chamador tudo continua em texto plano.

## Fluxo:

```
load_config:  backend → facade → decrypt_config → chamador
save_config:  chamador → encrypt_config → facade → backend
```

Escritas internas do facade (bootstrap da configuração padrão ou a partir
de FACTORY_API_KEYS) passam por `save_config`, então também são cifradas.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping

from ..codec import RotationReport, SecretCodec, is_encrypted
from .base import ErrorKind, StorageBackend
from .facade import Storage


logger = logging.getLogger(__name__)


class EncryptedStorage(Storage):
    """
    `Storage` com cifragem transparente do campo `key` das credenciais.

    ## Parâmetros:

    - `backend`: Backend ativo
    - `codec`: Codec com a passphrase do processo
    - `migrate_plaintext`: Se True, documentos com keys em texto plano
      (editados à mão ou legados) são regravados cifrados ao carregar

    ## Exemplo:

        >>> storage = EncryptedStorage(LocalFileBackend("/tmp/kw"), SecretCodec("s3cret"))
        >>> storage.save_config({"apiKeys": [{"id": "k1", "key": "fk-1"}], "settings": {}})
        True
        >>> storage.load_config()["apiKeys"][0]["key"]
        'fk-1'
    """

    def __init__(
        self,
        backend: StorageBackend,
        codec: SecretCodec,
        env: Mapping[str, str] | None = None,
        clock: Callable[[], float] = time.time,
        migrate_plaintext: bool = True,
    ) -> None:
        super().__init__(backend, env=env, clock=clock)
        self.codec = codec
        self.migrate_plaintext = migrate_plaintext

    def load_config(self) -> dict[str, Any]:
        stored, from_backend = self._resolve_config()

        if from_backend and self.migrate_plaintext and self.codec.has_plaintext(stored):
            logger.info("Keys em texto plano encontradas; regravando cifradas")
            self.save_config(stored)

        config = self.codec.decrypt_config(stored)
        unreadable = [
            str(c.get("id", "")) for c in config["apiKeys"] if is_encrypted(c.get("key"))
        ]
        if unreadable:
            logger.warning(
                "Keys ilegíveis com a passphrase atual (%s): %s",
                ErrorKind.CRYPTO.value,
                ", ".join(unreadable),
            )
        return config

    def save_config(self, config: dict[str, Any]) -> bool:
        try:
            encrypted = self.codec.encrypt_config(config)
        except Exception as e:
            logger.error("Falha ao cifrar configuração: %s", e)
            return False
        return super().save_config(encrypted)

    def load_stored_config(self) -> dict[str, Any]:
        """Carrega a configuração como está persistida (sem decifrar)."""
        return super().load_config()

    def rotate_passphrase(self, old_codec: SecretCodec) -> tuple[bool, RotationReport]:
        """
        Recifra as keys de `old_codec` para o codec atual.

        Usado quando a passphrase mudou (ex.: troca de ADMIN_PASSWORD sem
        ENCRYPTION_KEY). Keys que não decifram com a passphrase antiga são
        mantidas intactas e reportadas.
        """
        stored = super().load_config()
        rotated, report = old_codec.rotate(stored, self.codec)
        # Já cifrado com o codec atual; grava sem passar por encrypt_config
        saved = Storage.save_config(self, rotated)
        if report.failed:
            logger.warning("Keys não recifradas: %s", ", ".join(report.failed))
        return saved, report

    def secrets_status(self) -> dict[str, list[str]]:
        """Classifica as keys armazenadas em cifradas, texto plano e ilegíveis."""
        status: dict[str, list[str]] = {"encrypted": [], "plaintext": [], "undecryptable": []}
        for credential in self.load_stored_config().get("apiKeys", []):
            if not isinstance(credential, dict):
                continue
            key_id = str(credential.get("id", ""))
            value = credential.get("key")
            if not is_encrypted(value):
                status["plaintext"].append(key_id)
            elif self.codec.decrypt(value) is None:
                status["undecryptable"].append(key_id)
            else:
                status["encrypted"].append(key_id)
        return status

    def get_storage_info(self) -> dict[str, Any]:
        info = super().get_storage_info()
        info["encrypted"] = True
        return info
