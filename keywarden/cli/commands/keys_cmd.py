"""
================================================================================
Comando: keywarden keys — Gerenciamento de Keys
================================================================================

## Uso:

```bash
# Lista keys (mascaradas)
keywarden keys list

# Adiciona uma key (a key é pedida sem eco se omitida)
keywarden keys add --id prod-1 --alias "Produção" --group prod

# Remove uma key
keywarden keys remove prod-1

# Importa keys de um arquivo (uma por linha, ou JSON array)
keywarden keys import keys.txt --group team-a
```
"""

from __future__ import annotations

import json
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from ...keys import KeyManagementError, KeyManager
from ..registry import register_command
from ..utils import get_storage, print_json


def _manager(ctx: click.Context) -> KeyManager:
    return KeyManager(get_storage(ctx))


def _parse_import_source(text: str) -> list[Any]:
    """Aceita JSON array (strings ou objetos) ou uma key por linha."""
    stripped = text.strip()
    if stripped.startswith("["):
        try:
            parsed = json.loads(stripped)
        except ValueError as e:
            raise click.BadParameter(f"JSON inválido: {e}") from e
        if isinstance(parsed, list):
            return parsed
    return [line.strip() for line in text.splitlines() if line.strip() and not line.startswith("#")]


@register_command
@click.group()
def keys() -> None:
    """Gerencia as API keys monitoradas."""


@keys.command("list")
@click.pass_context
def list_keys(ctx: click.Context) -> None:
    """Lista as keys com o segredo mascarado."""
    console: Console = ctx.obj["console"]
    credentials = _manager(ctx).list_keys()

    if ctx.obj.get("json_output"):
        print_json({"keys": credentials})
        return

    if not credentials:
        console.print("[dim]Nenhuma key configurada[/dim]")
        return

    table = Table(title=f"API Keys ({len(credentials)})")
    table.add_column("ID", style="cyan")
    table.add_column("Alias")
    table.add_column("Grupo", style="dim")
    table.add_column("Key", style="dim")
    table.add_column("Ativa", justify="center")

    for credential in credentials:
        table.add_row(
            str(credential.get("id", "")),
            str(credential.get("alias") or ""),
            str(credential.get("group") or "default"),
            str(credential.get("key", "")),
            "sim" if credential.get("enabled", True) else "não",
        )

    console.print(table)


@keys.command("add")
@click.option("--id", "key_id", required=True, help="Identificador único")
@click.option("--key", "secret", prompt=True, hide_input=True, help="API key (fk-...)")
@click.option("--alias", default="", help="Nome amigável")
@click.option("--group", default="default", help="Grupo")
@click.option("--note", default="", help="Observação")
@click.option("--view-password", default=None, help="Senha para revelar a key (padrão: 0000)")
@click.pass_context
def add_key(
    ctx: click.Context,
    key_id: str,
    secret: str,
    alias: str,
    group: str,
    note: str,
    view_password: str | None,
) -> None:
    """Adiciona uma key."""
    console: Console = ctx.obj["console"]
    data = {
        "id": key_id,
        "key": secret.strip(),
        "alias": alias,
        "group": group,
        "note": note,
        "viewPassword": view_password,
    }

    try:
        saved = _manager(ctx).add_key(data)
    except KeyManagementError as e:
        ctx.obj["error_console"].print(f"[red]Erro:[/red] {e}")
        raise SystemExit(1)

    if not saved:
        ctx.obj["error_console"].print("[red]Erro:[/red] falha ao salvar a configuração")
        raise SystemExit(1)

    console.print(f"[green]Key '{key_id}' adicionada[/green]")


@keys.command("remove")
@click.argument("key_id")
@click.pass_context
def remove_key(ctx: click.Context, key_id: str) -> None:
    """Remove uma key pelo id."""
    console: Console = ctx.obj["console"]

    try:
        saved = _manager(ctx).delete_key(key_id)
    except KeyManagementError as e:
        ctx.obj["error_console"].print(f"[red]Erro:[/red] {e}")
        raise SystemExit(1)

    if not saved:
        ctx.obj["error_console"].print("[red]Erro:[/red] falha ao salvar a configuração")
        raise SystemExit(1)

    console.print(f"[green]Key '{key_id}' removida[/green]")


@keys.command("import")
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option("--group", default=None, help="Grupo aplicado às keys sem grupo")
@click.pass_context
def import_keys(ctx: click.Context, source: Any, group: str | None) -> None:
    """
    Importa keys de um arquivo (ou `-` para stdin).

    \b
    Formatos aceitos:
      fk-aaaa...            # uma key por linha
      ["fk-aaaa", {...}]    # JSON array de strings ou objetos
    """
    console: Console = ctx.obj["console"]
    entries = _parse_import_source(source.read())
    report = _manager(ctx).batch_import(entries, group=group)

    if ctx.obj.get("json_output"):
        print_json({"success": report.saved, **report.to_dict()})
    else:
        console.print(
            f"[green]{len(report.imported)} importadas[/green], "
            f"[red]{len(report.failed)} falharam[/red]"
        )
        for failure in report.failed:
            console.print(f"  [dim]{failure['key']}[/dim]: {failure['error']}")

    if not report.saved:
        ctx.obj["error_console"].print("[red]Erro:[/red] falha ao salvar a configuração")
        raise SystemExit(1)
