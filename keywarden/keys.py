"""
================================================================================
Gerenciamento de Credenciais
================================================================================

Operações de CRUD sobre a lista `apiKeys` da configuração. Todas passam
pelo `Storage`, então as keys chegam cifradas ao backend quando o storage
é um `EncryptedStorage`.

## Erros:

- `InvalidCredentialError`: dados obrigatórios ausentes (HTTP 400)
- `DuplicateCredentialError`: id já existente (HTTP 409)
- `CredentialNotFoundError`: id desconhecido (HTTP 404)
- `ViewPasswordError`: senha de visualização incorreta (HTTP 403)

Falhas de persistência não são exceções: os métodos retornam `False`
(ou `saved=False` nos relatórios) e a API responde 500.

## Exemplo:

    >>> manager = KeyManager(storage)
    >>> manager.add_key({"id": "k1", "key": "fk-123"})
    True
    >>> manager.list_keys()[0]["key"]
    'fk-123...-123'
"""

from __future__ import annotations

import hmac
import logging
import secrets
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from .storage import Storage, normalize_credential
from .usage.client import mask_key


logger = logging.getLogger(__name__)

KEY_PREFIX = "fk-"

# Campos que batch-update pode alterar
BATCH_UPDATABLE_FIELDS = ("alias", "group", "note", "enabled", "viewPassword")


# =============================================================================
# EXCEPTIONS
# =============================================================================


class KeyManagementError(Exception):
    """Erro base do gerenciamento de credenciais."""

    pass


class InvalidCredentialError(KeyManagementError):
    pass


class DuplicateCredentialError(KeyManagementError):
    pass


class CredentialNotFoundError(KeyManagementError):
    pass


class ViewPasswordError(KeyManagementError):
    pass


# =============================================================================
# RELATÓRIOS
# =============================================================================


@dataclass
class ImportReport:
    """Resultado de `batch_import`."""

    imported: list[str] = field(default_factory=list)
    failed: list[dict[str, str]] = field(default_factory=list)
    saved: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "imported": len(self.imported),
            "importedIds": self.imported,
            "failed": len(self.failed),
            "failures": self.failed,
        }


@dataclass
class BatchReport:
    """Resultado de `batch_update` e `batch_delete`."""

    affected: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    saved: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"affected": self.affected, "missing": self.missing}


def is_masked(value: Any) -> bool:
    """Valores mascarados (`abcd1234...wxyz`) nunca substituem a key real."""
    return isinstance(value, str) and "..." in value


def validate_key_format(value: Any) -> str | None:
    """Retorna a key normalizada, ou None se não começa com `fk-`."""
    if not isinstance(value, str):
        return None
    key = value.strip()
    if not key.startswith(KEY_PREFIX):
        return None
    return key


def masked_credential(credential: Mapping[str, Any]) -> dict[str, Any]:
    """Cópia pública da credencial: key mascarada e sem viewPassword."""
    public = {k: v for k, v in credential.items() if k != "viewPassword"}
    public["key"] = mask_key(str(credential.get("key", "")))
    return public


class KeyManager:
    """
    Gerencia as credenciais persistidas no `Storage`.

    ## Parâmetros:

    - `storage`: Storage ativo (normalmente um `EncryptedStorage`)
    """

    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    # =========================================================================
    # LEITURA
    # =========================================================================

    def list_keys(self) -> list[dict[str, Any]]:
        config = self.storage.load_config()
        return [masked_credential(c) for c in config.get("apiKeys", []) if isinstance(c, dict)]

    def masked_config(self) -> dict[str, Any]:
        config = self.storage.load_config()
        return {
            "apiKeys": [
                masked_credential(c) for c in config.get("apiKeys", []) if isinstance(c, dict)
            ],
            "settings": config.get("settings") or self.storage.get_default_settings(),
        }

    def reveal(self, key_id: str, view_password: str) -> str:
        """
        Retorna a key em texto plano se a senha de visualização confere.

        ## Erros:

        - `CredentialNotFoundError`: id desconhecido
        - `ViewPasswordError`: senha incorreta
        """
        credential = self._find(self.storage.load_config(), key_id)
        expected = str(credential.get("viewPassword") or "0000")
        if not hmac.compare_digest(str(view_password).encode(), expected.encode()):
            logger.warning("Senha de visualização incorreta para key %s", key_id)
            raise ViewPasswordError("Invalid view password")
        return str(credential.get("key", ""))

    # =========================================================================
    # ESCRITA
    # =========================================================================

    def add_key(self, data: Mapping[str, Any]) -> bool:
        if not data.get("id") or not data.get("key"):
            raise InvalidCredentialError("Missing required fields: id, key")

        config = self.storage.load_config()
        if any(c.get("id") == data["id"] for c in config["apiKeys"]):
            raise DuplicateCredentialError("Key ID already exists")

        credential = normalize_credential(data)
        credential["enabled"] = True
        config["apiKeys"].append(credential)
        return self.storage.save_config(config)

    def update_key(self, key_id: str, changes: Mapping[str, Any]) -> bool:
        """Atualiza uma credencial. O id é imutável; key mascarada é ignorada."""
        config = self.storage.load_config()
        credential = self._find(config, key_id)

        for name, value in changes.items():
            if name == "id":
                continue
            if name == "key" and (not value or is_masked(value)):
                continue
            credential[name] = value

        return self.storage.save_config(config)

    def delete_key(self, key_id: str) -> bool:
        config = self.storage.load_config()
        remaining = [c for c in config["apiKeys"] if c.get("id") != key_id]
        if len(remaining) == len(config["apiKeys"]):
            raise CredentialNotFoundError("Key not found")
        config["apiKeys"] = remaining
        return self.storage.save_config(config)

    def update_config(self, new_config: Mapping[str, Any]) -> bool:
        """
        Substitui as settings e, se enviadas, a lista de keys.

        Keys enviadas mascaradas (como retornadas por `masked_config`)
        mantêm o segredo armazenado para o mesmo id.
        """
        config = self.storage.load_config()

        settings = new_config.get("settings")
        if isinstance(settings, Mapping):
            merged = self.storage.get_default_settings()
            merged.update(config.get("settings") or {})
            merged.update(settings)
            config["settings"] = merged

        keys = new_config.get("apiKeys")
        if isinstance(keys, list):
            stored = {c.get("id"): c for c in config["apiKeys"]}
            replaced: list[dict[str, Any]] = []
            seen: set[str] = set()
            for item in keys:
                if not isinstance(item, Mapping) or not item.get("id"):
                    raise InvalidCredentialError("Every key requires an id")
                if item["id"] in seen:
                    raise DuplicateCredentialError(f"Duplicate key id: {item['id']}")
                seen.add(item["id"])

                merged_item = dict(item)
                previous = stored.get(item["id"])
                if is_masked(item.get("key")) or not item.get("key"):
                    if previous is None:
                        raise InvalidCredentialError(f"Missing key for id: {item['id']}")
                    merged_item["key"] = previous.get("key", "")
                    merged_item.setdefault("viewPassword", previous.get("viewPassword"))
                elif previous is not None:
                    merged_item.setdefault("viewPassword", previous.get("viewPassword"))
                replaced.append(normalize_credential(merged_item))
            config["apiKeys"] = replaced

        return self.storage.save_config(config)

    # =========================================================================
    # OPERAÇÕES EM LOTE
    # =========================================================================

    def batch_import(
        self,
        entries: Iterable[Any],
        group: str | None = None,
    ) -> ImportReport:
        """
        Importa várias keys de uma vez.

        Cada entrada é uma string (a própria key) ou um dict com `key` e
        campos opcionais (`id`, `alias`, `group`, `note`). Keys inválidas
        ou duplicadas (contra as armazenadas e contra entradas anteriores
        do mesmo lote) são reportadas em `failed`.

        ## Exemplo:

            >>> report = manager.batch_import(["fk-1111", "not-a-key", "fk-1111"])
            >>> len(report.imported), len(report.failed)
            (1, 2)
        """
        config = self.storage.load_config()
        known_keys = {c.get("key") for c in config["apiKeys"]}
        known_ids = {c.get("id") for c in config["apiKeys"]}
        report = ImportReport()

        for entry in entries:
            data: dict[str, Any] = dict(entry) if isinstance(entry, Mapping) else {"key": entry}
            key = validate_key_format(data.get("key"))
            if key is None:
                report.failed.append(
                    {"key": _display(data.get("key")), "error": "Invalid key format"}
                )
                continue
            if key in known_keys:
                report.failed.append({"key": mask_key(key), "error": "Duplicate key"})
                continue

            key_id = str(data.get("id") or "").strip() or self._new_id(known_ids)
            if key_id in known_ids:
                report.failed.append({"key": mask_key(key), "error": "Key ID already exists"})
                continue

            data["key"] = key
            data["id"] = key_id
            if group and not data.get("group"):
                data["group"] = group

            config["apiKeys"].append(normalize_credential(data))
            known_keys.add(key)
            known_ids.add(key_id)
            report.imported.append(key_id)

        if report.imported:
            report.saved = self.storage.save_config(config)
        logger.info(
            "Importação em lote: %d importadas, %d falharam",
            len(report.imported),
            len(report.failed),
        )
        return report

    def batch_update(self, key_ids: Iterable[str], changes: Mapping[str, Any]) -> BatchReport:
        """Aplica os mesmos campos (alias, group, note, enabled, viewPassword) a vários ids."""
        config = self.storage.load_config()
        updates = {k: v for k, v in changes.items() if k in BATCH_UPDATABLE_FIELDS}
        report = BatchReport()

        by_id = {c.get("id"): c for c in config["apiKeys"]}
        for key_id in key_ids:
            credential = by_id.get(key_id)
            if credential is None:
                report.missing.append(key_id)
                continue
            credential.update(updates)
            report.affected.append(key_id)

        if report.affected:
            report.saved = self.storage.save_config(config)
        return report

    def batch_delete(self, key_ids: Iterable[str]) -> BatchReport:
        config = self.storage.load_config()
        targets = list(dict.fromkeys(key_ids))
        report = BatchReport()

        present = {c.get("id") for c in config["apiKeys"]}
        report.affected = [key_id for key_id in targets if key_id in present]
        report.missing = [key_id for key_id in targets if key_id not in present]

        if report.affected:
            config["apiKeys"] = [c for c in config["apiKeys"] if c.get("id") not in targets]
            report.saved = self.storage.save_config(config)
        return report

    # =========================================================================
    # UTILITÁRIOS
    # =========================================================================

    @staticmethod
    def _find(config: Mapping[str, Any], key_id: str) -> dict[str, Any]:
        for credential in config.get("apiKeys", []):
            if isinstance(credential, dict) and credential.get("id") == key_id:
                return credential
        raise CredentialNotFoundError("Key not found")

    @staticmethod
    def _new_id(taken: set[Any]) -> str:
        while True:
            candidate = f"key-{secrets.token_hex(4)}"
            if candidate not in taken:
                return candidate


def _display(value: Any) -> str:
    if isinstance(value, str) and len(value) > 12:
        return mask_key(value)
    return str(value) if value is not None else ""
