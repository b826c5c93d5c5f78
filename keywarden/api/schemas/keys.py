"""
================================================================================
Schemas: Keys e Configuração
================================================================================

Modelos de entrada dos endpoints de gerenciamento. Os nomes no JSON seguem
o documento persistido (camelCase); os atributos Python usam snake_case.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_changes(self) -> dict[str, Any]:
        """Apenas os campos enviados, com os nomes do documento."""
        return self.model_dump(exclude_unset=True, by_alias=True)


class KeyCreateRequest(_CamelModel):
    """
    Request para adicionar uma key.

    `id` e `key` são opcionais no schema para que a ausência resulte em
    400 (e não 422), como no restante do gerenciamento.
    """

    id: str | None = Field(None, description="Identificador único")
    key: str | None = Field(None, description="API key em texto plano")
    alias: str | None = Field(None, description="Nome amigável")
    group: str | None = Field(None, description="Grupo (default: default)")
    note: str | None = Field(None, description="Observação livre")
    view_password: str | None = Field(None, alias="viewPassword", description="Senha para revelar a key")


class KeyUpdateRequest(_CamelModel):
    """Campos alteráveis de uma key. Key mascarada é ignorada."""

    key: str | None = None
    alias: str | None = None
    group: str | None = None
    note: str | None = None
    enabled: bool | None = None
    view_password: str | None = Field(None, alias="viewPassword")


class BatchImportRequest(BaseModel):
    """
    Importação em lote.

    ## Exemplo:

        {"keys": ["fk-aaa...", {"key": "fk-bbb...", "alias": "prod"}], "group": "team-a"}
    """

    keys: list[str | dict[str, Any]] = Field(..., description="Keys (string ou objeto)")
    group: str | None = Field(None, description="Grupo aplicado às keys sem grupo")


class BatchImportResponse(BaseModel):
    success: bool
    imported: int
    importedIds: list[str]
    failed: int
    failures: list[dict[str, str]]


class BatchUpdateRequest(_CamelModel):
    ids: list[str] = Field(..., min_length=1, description="Ids das keys")
    alias: str | None = None
    group: str | None = None
    note: str | None = None
    enabled: bool | None = None
    view_password: str | None = Field(None, alias="viewPassword")

    def to_changes(self) -> dict[str, Any]:
        changes = super().to_changes()
        changes.pop("ids", None)
        return changes


class BatchDeleteRequest(BaseModel):
    ids: list[str] = Field(..., min_length=1, description="Ids das keys")


class BatchResponse(BaseModel):
    success: bool
    message: str
    affected: list[str]
    missing: list[str]


class RevealRequest(_CamelModel):
    view_password: str = Field(..., alias="viewPassword", description="Senha de visualização da key")


class RevealResponse(BaseModel):
    success: bool = True
    id: str
    key: str


class SettingsUpdate(_CamelModel):
    auto_refresh_interval: int | None = Field(None, alias="autoRefreshInterval", ge=1000)
    alert_threshold: float | None = Field(None, alias="alertThreshold", ge=0, le=1)
    history_retention_days: int | None = Field(None, alias="historyRetentionDays", ge=1)


class ConfigUpdateRequest(_CamelModel):
    """Substitui settings e, se enviada, a lista de keys."""

    api_keys: list[dict[str, Any]] | None = Field(None, alias="apiKeys")
    settings: SettingsUpdate | None = None

    def to_changes(self) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        if self.api_keys is not None:
            changes["apiKeys"] = self.api_keys
        if self.settings is not None:
            changes["settings"] = self.settings.to_changes()
        return changes


class KeyTestRequest(BaseModel):
    key: str = Field(..., min_length=1, description="API key a testar")
    id: str | None = Field(None, description="Id exibido no resultado")


class VerifyRequest(BaseModel):
    password: str = Field(..., description="Senha de admin")
