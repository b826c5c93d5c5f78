"""
================================================================================
Secret Codec — Criptografia das API Keys em Repouso
================================================================================

Cifra o campo `key` de cada credencial antes de chegar ao storage e decifra
depois da leitura, mantendo a API pública em texto plano.

## Formato do envelope:

```
"enc:" + base64( salt(64) ‖ iv(16) ‖ authTag(16) ‖ ciphertext )
```

- Chave: PBKDF2-HMAC-SHA512, 2145 iterações, 32 bytes
- Cifra: AES-256-GCM (AEAD)

O prefixo `enc:` é o único discriminador: sem ele o valor é texto plano.

## Idempotência:

- `encrypt` de um valor já cifrado retorna o próprio valor
- `decrypt` de um valor sem prefixo retorna o próprio valor
- `decrypt` que falha retorna None; o valor armazenado é preservado

Isso permite ciclos load → altera → save repetidos sem cifrar duas vezes.
"""

from __future__ import annotations

import base64
import binascii
import copy
import logging
import os
from dataclasses import dataclass, field
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC


logger = logging.getLogger(__name__)

ENCRYPTED_PREFIX = "enc:"

SALT_LENGTH = 64
IV_LENGTH = 16
TAG_LENGTH = 16
KEY_LENGTH = 32
ITERATIONS = 2145


def is_encrypted(value: Any) -> bool:
    """Retorna True se o valor carrega o prefixo de envelope."""
    return isinstance(value, str) and value.startswith(ENCRYPTED_PREFIX)


def _derive_key(passphrase: str, salt: bytes) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=ITERATIONS,
    )
    return kdf.derive(passphrase.encode("utf-8"))


def encrypt(plaintext: str, passphrase: str) -> str:
    """
    Cifra um segredo e retorna o envelope `enc:...`.

    Valores já cifrados são retornados sem alteração.

    ## Exemplo:

        >>> envelope = encrypt("fk-abc123", "s3cret")
        >>> envelope.startswith("enc:")
        True
        >>> encrypt(envelope, "s3cret") == envelope
        True
    """
    if is_encrypted(plaintext):
        return plaintext

    salt = os.urandom(SALT_LENGTH)
    iv = os.urandom(IV_LENGTH)
    sealed = AESGCM(_derive_key(passphrase, salt)).encrypt(iv, plaintext.encode("utf-8"), None)

    # AESGCM devolve ciphertext ‖ tag
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    payload = base64.b64encode(salt + iv + tag + ciphertext).decode("ascii")
    return f"{ENCRYPTED_PREFIX}{payload}"


def decrypt(envelope: str, passphrase: str) -> str | None:
    """
    Decifra um envelope. Nunca levanta exceção.

    ## Retorno:

    - Texto plano se o envelope é autêntico
    - O próprio valor se não tem o prefixo `enc:`
    - None se o envelope é malformado ou a autenticação falha
    """
    if not is_encrypted(envelope):
        return envelope

    try:
        raw = base64.b64decode(envelope[len(ENCRYPTED_PREFIX):], validate=True)
    except (binascii.Error, ValueError):
        return None

    header = SALT_LENGTH + IV_LENGTH + TAG_LENGTH
    if len(raw) < header:
        return None

    salt = raw[:SALT_LENGTH]
    iv = raw[SALT_LENGTH:SALT_LENGTH + IV_LENGTH]
    tag = raw[SALT_LENGTH + IV_LENGTH:header]
    ciphertext = raw[header:]

    try:
        plaintext = AESGCM(_derive_key(passphrase, salt)).decrypt(iv, ciphertext + tag, None)
        return plaintext.decode("utf-8")
    except (InvalidTag, UnicodeDecodeError, ValueError):
        return None


@dataclass
class RotationReport:
    """Resultado de `SecretCodec.rotate`."""

    rotated: list[str] = field(default_factory=lambda: [])
    current: list[str] = field(default_factory=lambda: [])
    plaintext: list[str] = field(default_factory=lambda: [])
    failed: list[str] = field(default_factory=lambda: [])


class SecretCodec:
    """
    Codec com a passphrase do processo.

    Opera sobre documentos de configuração inteiros, sempre em cópias:
    o documento recebido nunca é alterado.

    ## Exemplo:

        >>> codec = SecretCodec("s3cret")
        >>> stored = codec.encrypt_config({"apiKeys": [{"id": "k1", "key": "fk-1"}]})
        >>> codec.decrypt_config(stored)["apiKeys"][0]["key"]
        'fk-1'
    """

    def __init__(self, passphrase: str) -> None:
        if not passphrase:
            raise ValueError("Passphrase must not be empty")
        self._passphrase = passphrase

    def encrypt(self, plaintext: str) -> str:
        return encrypt(plaintext, self._passphrase)

    def decrypt(self, envelope: str) -> str | None:
        return decrypt(envelope, self._passphrase)

    def encrypt_config(self, config: dict[str, Any]) -> dict[str, Any]:
        """Retorna cópia com todas as keys em texto plano cifradas."""
        result = copy.deepcopy(config)
        for credential in _credentials(result):
            value = credential.get("key")
            if isinstance(value, str) and value and not is_encrypted(value):
                credential["key"] = self.encrypt(value)
        return result

    def decrypt_config(self, config: dict[str, Any]) -> dict[str, Any]:
        """
        Retorna cópia com as keys decifradas.

        Keys que não decifram (passphrase errada, envelope corrompido) são
        mantidas como estão armazenadas para não perder dados.
        """
        result = copy.deepcopy(config)
        for credential in _credentials(result):
            value = credential.get("key")
            if not is_encrypted(value):
                continue
            plaintext = self.decrypt(value)
            if plaintext is None:
                logger.debug(
                    "Não foi possível decifrar a key '%s'; valor armazenado preservado",
                    credential.get("id"),
                )
                continue
            credential["key"] = plaintext
        return result

    def has_plaintext(self, config: dict[str, Any]) -> bool:
        """True se alguma key do documento está em texto plano."""
        return any(
            isinstance(c.get("key"), str) and c.get("key") and not is_encrypted(c.get("key"))
            for c in _credentials(config)
        )

    def rotate(
        self, config: dict[str, Any], new_codec: "SecretCodec"
    ) -> tuple[dict[str, Any], RotationReport]:
        """
        Recifra as keys desta passphrase para a de `new_codec`.

        Keys que já decifram com a passphrase nova vão para `report.current`;
        as que não decifram com nenhuma das duas são mantidas e listadas em
        `report.failed`.
        """
        result = copy.deepcopy(config)
        report = RotationReport()

        for credential in _credentials(result):
            value = credential.get("key")
            key_id = str(credential.get("id", ""))
            if not isinstance(value, str) or not value:
                continue
            if not is_encrypted(value):
                credential["key"] = new_codec.encrypt(value)
                report.plaintext.append(key_id)
                continue

            plaintext = self.decrypt(value)
            if plaintext is None:
                # Já cifrada com a passphrase nova (rotação repetida)
                if new_codec.decrypt(value) is not None:
                    report.current.append(key_id)
                else:
                    report.failed.append(key_id)
                continue
            credential["key"] = new_codec.encrypt(plaintext)
            report.rotated.append(key_id)

        return result, report


def _credentials(config: Any) -> list[dict[str, Any]]:
    if not isinstance(config, dict):
        return []
    keys = config.get("apiKeys")
    if not isinstance(keys, list):
        return []
    return [k for k in keys if isinstance(k, dict)]
