"""
================================================================================
Comando: keywarden status — Consumo Agregado
================================================================================

Consulta o endpoint de consumo para cada key habilitada e mostra uma
tabela com uso, limite e saldo. Cada execução grava uma leitura no
histórico (use `--no-record` para apenas consultar).
"""

from __future__ import annotations

from typing import Any

import click
from rich.console import Console
from rich.table import Table

from ...usage import UsageAggregator
from ..registry import register_command
from ..utils import format_tokens, get_monitor_config, get_storage, print_json


def _status_cell(result: dict[str, Any], alerts: set[str]) -> str:
    if not result.get("valid"):
        return f"[red]{result.get('error', 'error')}[/red]"
    if str(result.get("id")) in alerts:
        return "[yellow]ALERTA[/yellow]"
    return "[green]OK[/green]"


@register_command
@click.command()
@click.option(
    "--no-record",
    is_flag=True,
    help="Não grava a leitura no histórico"
)
@click.pass_context
def status(ctx: click.Context, no_record: bool) -> None:
    """
    Consulta o consumo de todas as keys habilitadas.

    \b
    Exemplos:
      keywarden status               # Tabela de consumo
      keywarden status --no-record   # Sem gravar histórico
      keywarden --json status        # Saída JSON
    """
    console: Console = ctx.obj["console"]
    aggregator = UsageAggregator(
        get_storage(ctx),
        get_monitor_config(ctx),
        fetcher=ctx.obj.get("fetcher"),
    )
    snapshot = aggregator.collect(record_history=not no_record)

    if ctx.obj.get("json_output"):
        print_json(snapshot)
        return

    if not snapshot["total_count"]:
        console.print("[yellow]Nenhuma key habilitada[/yellow]")
        return

    alerts = set(snapshot.get("alerts") or [])
    table = Table(title=f"Consumo das API Keys ({snapshot['total_count']})")
    table.add_column("ID", style="cyan")
    table.add_column("Alias")
    table.add_column("Grupo", style="dim")
    table.add_column("Key", style="dim")
    table.add_column("Usado", justify="right")
    table.add_column("Limite", justify="right")
    table.add_column("Restante", justify="right")
    table.add_column("Status", justify="center")

    for result in snapshot["data"]:
        table.add_row(
            str(result.get("id", "")),
            str(result.get("alias") or ""),
            str(result.get("group") or "default"),
            str(result.get("maskedKey", "")),
            format_tokens(result.get("orgTotalTokensUsed")),
            format_tokens(result.get("totalAllowance")),
            format_tokens(result.get("remaining")),
            _status_cell(result, alerts),
        )

    console.print(table)

    totals = snapshot["totals"]
    console.print(
        f"[bold]Total:[/bold] {format_tokens(totals['used'])} usados / "
        f"{format_tokens(totals['allowance'])} | "
        f"[green]{format_tokens(totals['remaining'])} restantes[/green]"
    )
