"""
================================================================================
Rota: /keys
================================================================================

CRUD das credenciais monitoradas. Todas as rotas exigem a senha de admin,
exceto `/keys/{id}/reveal`, que é protegida pela senha de visualização
da própria key.

## Respostas:

- Sucesso: `{"success": true, "message": ...}`
- Falha de persistência: HTTP 500 com `{"success": false, "message": ...}`
- Erros de validação/conflito: tratados em `app.py` (400/404/409/403)
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ..auth import require_admin
from ..deps import get_key_manager
from ..schemas import (
    BatchDeleteRequest,
    BatchImportRequest,
    BatchImportResponse,
    BatchResponse,
    BatchUpdateRequest,
    KeyCreateRequest,
    KeyUpdateRequest,
    OperationResponse,
    RevealRequest,
    RevealResponse,
)
from ...keys import KeyManager


router = APIRouter()

admin_only = [Depends(require_admin)]


def operation_response(
    saved: bool,
    success_message: str,
    failure_message: str,
    success_status: int = status.HTTP_200_OK,
    **extra: Any,
) -> JSONResponse:
    """Monta `{success, message}` com 500 quando a persistência falhou."""
    return JSONResponse(
        status_code=success_status if saved else status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": saved,
            "message": success_message if saved else failure_message,
            **extra,
        },
    )


@router.get(
    "",
    summary="Listar Keys",
    description="Lista as credenciais com a key mascarada.",
    dependencies=admin_only,
)
async def list_keys(manager: KeyManager = Depends(get_key_manager)) -> dict[str, Any]:
    return {"success": True, "keys": manager.list_keys()}


@router.post(
    "",
    response_model=OperationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Adicionar Key",
    dependencies=admin_only,
)
async def add_key(
    request: KeyCreateRequest,
    manager: KeyManager = Depends(get_key_manager),
) -> JSONResponse:
    """
    Adiciona uma credencial.

    ## Erros:

    - 400: `id` ou `key` ausente
    - 409: `id` já existente
    """
    saved = manager.add_key(request.to_changes())
    return operation_response(
        saved,
        "Key added successfully",
        "Failed to add key",
        success_status=status.HTTP_201_CREATED,
    )


@router.post(
    "/batch-import",
    response_model=BatchImportResponse,
    summary="Importar Keys em Lote",
    dependencies=admin_only,
)
async def batch_import(
    request: BatchImportRequest,
    manager: KeyManager = Depends(get_key_manager),
) -> JSONResponse:
    """
    Importa várias keys. Cada key deve começar com `fk-`; duplicadas
    (já armazenadas ou repetidas no lote) são reportadas em `failures`.
    """
    report = manager.batch_import(request.keys, group=request.group)
    return JSONResponse(
        status_code=status.HTTP_200_OK if report.saved else status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": report.saved, **report.to_dict()},
    )


@router.post(
    "/batch-update",
    response_model=BatchResponse,
    summary="Atualizar Keys em Lote",
    dependencies=admin_only,
)
async def batch_update(
    request: BatchUpdateRequest,
    manager: KeyManager = Depends(get_key_manager),
) -> JSONResponse:
    report = manager.batch_update(request.ids, request.to_changes())
    return operation_response(
        report.saved,
        f"{len(report.affected)} keys updated",
        "Failed to update keys",
        **report.to_dict(),
    )


@router.post(
    "/batch-delete",
    response_model=BatchResponse,
    summary="Remover Keys em Lote",
    dependencies=admin_only,
)
async def batch_delete(
    request: BatchDeleteRequest,
    manager: KeyManager = Depends(get_key_manager),
) -> JSONResponse:
    report = manager.batch_delete(request.ids)
    return operation_response(
        report.saved,
        f"{len(report.affected)} keys deleted",
        "Failed to delete keys",
        **report.to_dict(),
    )


@router.put(
    "/{key_id}",
    response_model=OperationResponse,
    summary="Atualizar Key",
    dependencies=admin_only,
)
async def update_key(
    key_id: str,
    request: KeyUpdateRequest,
    manager: KeyManager = Depends(get_key_manager),
) -> JSONResponse:
    """Atualiza uma credencial. O id não pode ser alterado."""
    saved = manager.update_key(key_id, request.to_changes())
    return operation_response(saved, "Key updated successfully", "Failed to update key")


@router.delete(
    "/{key_id}",
    response_model=OperationResponse,
    summary="Remover Key",
    dependencies=admin_only,
)
async def delete_key(
    key_id: str,
    manager: KeyManager = Depends(get_key_manager),
) -> JSONResponse:
    saved = manager.delete_key(key_id)
    return operation_response(saved, "Key deleted successfully", "Failed to delete key")


@router.post(
    "/{key_id}/reveal",
    response_model=RevealResponse,
    summary="Revelar Key",
    description="Retorna a key em texto plano se a senha de visualização conferir.",
)
async def reveal_key(
    key_id: str,
    request: RevealRequest,
    manager: KeyManager = Depends(get_key_manager),
) -> RevealResponse:
    key = manager.reveal(key_id, request.view_password)
    return RevealResponse(id=key_id, key=key)
