"""
================================================================================
Utilitários do CLI
================================================================================

Funções auxiliares compartilhadas entre os comandos do CLI.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import click
from rich.console import Console

from ..config import MonitorConfig
from ..storage import Storage, create_storage


def get_monitor_config(ctx: click.Context) -> MonitorConfig:
    """Configuração de runtime (criada uma vez por invocação)."""
    obj = ctx.ensure_object(dict)
    if obj.get("monitor_config") is None:
        obj["monitor_config"] = MonitorConfig.from_env()
    return obj["monitor_config"]  # type: ignore[no-any-return]


def get_storage(ctx: click.Context) -> Storage:
    """
    Storage ativo, selecionado pelo ambiente.

    Testes podem injetar um storage via `CliRunner.invoke(cli, ..., obj={"storage": ...})`.
    """
    obj = ctx.ensure_object(dict)
    if obj.get("storage") is None:
        obj["storage"] = create_storage(get_monitor_config(ctx))
    return obj["storage"]  # type: ignore[no-any-return]


def print_json(data: Any) -> None:
    """Imprime JSON no stdout mesmo em modo --quiet/--json."""
    Console().print_json(data=data)


def format_timestamp(ms: Any) -> str:
    """Formata epoch-ms para exibição (UTC)."""
    try:
        moment = datetime.fromtimestamp(float(ms) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return str(ms)
    return moment.strftime("%Y-%m-%d %H:%M:%S")


def format_tokens(value: Any) -> str:
    """Formata contagem de tokens com separador de milhar."""
    if isinstance(value, (int, float)):
        return f"{value:,.0f}"
    return "-"
