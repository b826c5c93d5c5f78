"""
================================================================================
Schemas Comuns da API
================================================================================

Modelos base reutilizados em múltiplos endpoints.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """
    Detalhes de um erro estruturado.

    ## Atributos:

    - `code`: Código de erro (ex: E1009, E4004)
    - `message`: Mensagem legível do erro
    """

    code: str = Field(..., description="Código de erro estruturado", examples=["E4004"])
    message: str = Field(..., description="Mensagem legível do erro")


class ErrorResponse(BaseModel):
    """
    Resposta de erro padronizada.

    ## Exemplo:

        {
            "success": false,
            "error": {"code": "E4004", "message": "Key not found"},
            "request_id": "a1b2c3d4e5f6"
        }
    """

    success: bool = Field(False, description="Sempre false para erros")
    error: ErrorDetail = Field(..., description="Detalhes do erro")
    request_id: str | None = Field(None, description="ID da requisição para debug")


class OperationResponse(BaseModel):
    """Resposta das operações de gerenciamento (`{success, message}`)."""

    success: bool = Field(..., description="True se a alteração foi persistida")
    message: str = Field(..., description="Mensagem legível")


class HealthResponse(BaseModel):
    """Resposta do health check."""

    status: str = Field("healthy", description="Status da API")
    version: str = Field(..., description="Versão do keywarden")
    timestamp: str = Field(..., description="Hora atual (ISO 8601)")
    storage: dict[str, Any] = Field(default_factory=dict, description="Modo de armazenamento")
