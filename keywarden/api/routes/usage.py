"""
================================================================================
Rota: /data, /history e /test-key
================================================================================

Consulta de consumo agregado e série histórica.

## Observações:

- `GET /data` consulta todas as keys habilitadas e grava uma entrada de
  histórico a cada chamada
- As keys nunca aparecem em texto plano, apenas `maskedKey`
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Depends, Query

from ..auth import require_admin
from ..deps import get_aggregator, get_fetcher, get_storage
from ..schemas import KeyTestRequest
from ...storage import Storage
from ...usage import UsageAggregator
from ...usage.aggregator import Fetcher


router = APIRouter()


@router.get(
    "/data",
    summary="Consumo Agregado",
    description="Consulta o consumo de todas as keys habilitadas e retorna totais e grupos.",
)
async def get_data(aggregator: UsageAggregator = Depends(get_aggregator)) -> dict[str, Any]:
    # As consultas são bloqueantes (requests); roda fora do event loop
    return await asyncio.to_thread(aggregator.collect)


@router.get(
    "/history",
    summary="Histórico de Consumo",
    description="Entradas de histórico em ordem crescente de timestamp.",
)
async def get_history(
    limit: int | None = Query(None, ge=1, le=1000, description="Apenas as N entradas mais recentes"),
    storage: Storage = Depends(get_storage),
) -> list[dict[str, Any]]:
    history = storage.load_history()
    if limit is not None:
        history = history[-limit:]
    return history


@router.post(
    "/test-key",
    summary="Testar Key",
    description="Consulta o consumo de uma key avulsa sem persisti-la.",
    dependencies=[Depends(require_admin)],
)
async def test_key(
    request: KeyTestRequest,
    fetcher: Fetcher = Depends(get_fetcher),
) -> dict[str, Any]:
    credential = {"id": request.id or "test", "key": request.key.strip()}
    return await asyncio.to_thread(fetcher, credential)
