"""
================================================================================
Comando: keywarden history — Série Histórica de Consumo
================================================================================

## Uso:

```bash
# Últimas 10 leituras
keywarden history

# Mais leituras
keywarden history --limit 50
```
"""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from ..registry import register_command
from ..utils import format_timestamp, format_tokens, get_storage, print_json


@register_command
@click.command()
@click.option(
    "--limit", "-n",
    type=click.IntRange(1, 1000),
    default=10,
    help="Número de leituras a exibir (padrão: 10)"
)
@click.pass_context
def history(ctx: click.Context, limit: int) -> None:
    """
    Mostra as leituras de consumo mais recentes.

    \b
    Exemplos:
      keywarden history            # Últimas 10 leituras
      keywarden history -n 50      # Últimas 50
      keywarden --json history     # Saída JSON
    """
    console: Console = ctx.obj["console"]
    entries = get_storage(ctx).load_history()[-limit:]

    if ctx.obj.get("json_output"):
        print_json({"history": entries})
        return

    if not entries:
        console.print("[dim]Nenhuma leitura registrada[/dim]")
        return

    table = Table(title=f"Histórico de Consumo (últimas {len(entries)})")
    table.add_column("Data/Hora (UTC)", style="dim")
    table.add_column("Usado", justify="right")
    table.add_column("Limite", justify="right")
    table.add_column("Restante", justify="right", style="green")
    table.add_column("Keys", justify="right")

    for entry in reversed(entries):
        totals = entry.get("totals") or {}
        table.add_row(
            format_timestamp(entry.get("timestamp")),
            format_tokens(totals.get("used")),
            format_tokens(totals.get("allowance")),
            format_tokens(totals.get("remaining")),
            str(len(entry.get("keys") or [])),
        )

    console.print(table)
