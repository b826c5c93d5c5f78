"""
================================================================================
Dependências Injetáveis da API
================================================================================

Os objetos de runtime são criados uma vez em `create_app` e guardados em
`app.state`. Estas dependências apenas os expõem aos endpoints via
`Depends`, o que permite substituí-los nos testes.
"""

from __future__ import annotations

from fastapi import Request

from ..config import MonitorConfig
from ..keys import KeyManager
from ..storage import Storage
from ..usage import UsageAggregator
from ..usage.aggregator import Fetcher


def get_monitor_config(request: Request) -> MonitorConfig:
    return request.app.state.monitor_config  # type: ignore[no-any-return]


def get_storage(request: Request) -> Storage:
    """
    Fornece o storage ativo.

    ## Uso em endpoint:

        >>> @router.get("/history")
        >>> def history(storage: Storage = Depends(get_storage)):
        ...     return storage.load_history()
    """
    return request.app.state.storage  # type: ignore[no-any-return]


def get_key_manager(request: Request) -> KeyManager:
    return KeyManager(request.app.state.storage)


def get_aggregator(request: Request) -> UsageAggregator:
    return request.app.state.aggregator  # type: ignore[no-any-return]


def get_fetcher(request: Request) -> Fetcher:
    return request.app.state.fetcher  # type: ignore[no-any-return]
