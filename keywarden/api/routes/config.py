"""
================================================================================
Rota: /config e /storage-info
================================================================================

Leitura e substituição da configuração (keys sempre mascaradas na saída)
e informações sobre o backend de armazenamento ativo.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ..auth import require_admin
from ..deps import get_key_manager, get_storage
from ..schemas import ConfigUpdateRequest, OperationResponse
from ...keys import KeyManager
from ...storage import Storage
from .keys import operation_response


router = APIRouter()


@router.get(
    "/config",
    summary="Obter Configuração",
    dependencies=[Depends(require_admin)],
)
async def get_config(manager: KeyManager = Depends(get_key_manager)) -> dict[str, Any]:
    """Retorna a configuração com as keys mascaradas (`abcd1234...wxyz`)."""
    return manager.masked_config()


@router.post(
    "/config",
    response_model=OperationResponse,
    summary="Salvar Configuração",
    dependencies=[Depends(require_admin)],
)
async def save_config(
    request: ConfigUpdateRequest,
    manager: KeyManager = Depends(get_key_manager),
) -> Any:
    """
    Substitui as settings e, se `apiKeys` for enviado, a lista de keys.

    Keys enviadas mascaradas preservam o segredo armazenado para o mesmo id,
    então o documento retornado por `GET /config` pode ser reenviado.
    """
    saved = manager.update_config(request.to_changes())
    return operation_response(saved, "Config saved", "Failed to save")


@router.get(
    "/storage-info",
    summary="Informações do Storage",
    description="Backend ativo, persistência e cifragem em repouso.",
)
async def storage_info(storage: Storage = Depends(get_storage)) -> dict[str, Any]:
    return storage.get_storage_info()
