"""
================================================================================
Comando: keywarden storage-info — Backend de Armazenamento
================================================================================

Mostra qual backend foi selecionado pelo ambiente e se as keys estão
cifradas em repouso.
"""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from ..registry import register_command
from ..utils import get_storage, print_json


@register_command
@click.command("storage-info")
@click.pass_context
def storage_info(ctx: click.Context) -> None:
    """
    Mostra o backend de armazenamento ativo.

    \b
    Seleção (em ordem):
      KEYWARDEN_STORAGE_BACKEND          # força local | blob | kv
      BLOB_READ_WRITE_TOKEN / S3 bucket  # blob store
      KV_REST_API_URL                    # key-value store
      (nenhum)                           # arquivos locais
    """
    console: Console = ctx.obj["console"]
    info = get_storage(ctx).get_storage_info()

    if ctx.obj.get("json_output"):
        print_json(info)
        return

    table = Table(title="Storage", show_header=False)
    table.add_column("Campo", style="cyan")
    table.add_column("Valor")

    for name, value in info.items():
        if isinstance(value, dict):
            value = ", ".join(k for k, enabled in value.items() if enabled)
        table.add_row(name, str(value))

    console.print(table)
