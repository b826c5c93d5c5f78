"""
================================================================================
Comando: keywarden secrets — Criptografia em Repouso
================================================================================

## Uso:

```bash
# Quantas keys estão cifradas, em texto plano ou ilegíveis
keywarden secrets status

# Recifra as keys depois de trocar ADMIN_PASSWORD / ENCRYPTION_KEY
keywarden secrets rotate --old-passphrase
```

## Quando usar `rotate`:

Sem `ENCRYPTION_KEY`, a chave de criptografia deriva da senha de admin.
Trocar a senha torna as keys ilegíveis até que sejam recifradas com a
passphrase antiga.
"""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from ...codec import SecretCodec
from ...config import PASSPHRASE_SUFFIX
from ...storage import EncryptedStorage
from ..registry import register_command
from ..utils import get_storage, print_json


def _encrypted_storage(ctx: click.Context) -> EncryptedStorage:
    storage = get_storage(ctx)
    if not isinstance(storage, EncryptedStorage):
        ctx.obj["error_console"].print("[red]Erro:[/red] o storage ativo não usa criptografia")
        raise SystemExit(1)
    return storage


@register_command
@click.group()
def secrets() -> None:
    """Inspeciona e recifra as keys armazenadas."""


@secrets.command("status")
@click.pass_context
def secrets_status(ctx: click.Context) -> None:
    """Classifica as keys armazenadas por estado de criptografia."""
    console: Console = ctx.obj["console"]
    report = _encrypted_storage(ctx).secrets_status()

    if ctx.obj.get("json_output"):
        print_json(report)
        return

    table = Table(title="Criptografia das Keys")
    table.add_column("Estado", style="cyan")
    table.add_column("Quantidade", justify="right")
    table.add_column("Ids", style="dim")

    labels = {
        "encrypted": "[green]cifradas[/green]",
        "plaintext": "[yellow]texto plano[/yellow]",
        "undecryptable": "[red]ilegíveis[/red]",
    }
    for state, ids in report.items():
        table.add_row(labels.get(state, state), str(len(ids)), ", ".join(ids))

    console.print(table)

    if report["undecryptable"]:
        console.print(
            "[yellow]Keys ilegíveis foram cifradas com outra passphrase. "
            "Use `keywarden secrets rotate`.[/yellow]"
        )


@secrets.command("rotate")
@click.option(
    "--old-passphrase",
    prompt=True,
    hide_input=True,
    help="Passphrase usada para cifrar as keys atuais",
)
@click.option(
    "--from-admin-password",
    is_flag=True,
    help="Trata o valor como a senha de admin antiga (passphrase derivada)",
)
@click.pass_context
def rotate(ctx: click.Context, old_passphrase: str, from_admin_password: bool) -> None:
    """
    Recifra as keys da passphrase antiga para a atual.

    \b
    Exemplos:
      keywarden secrets rotate --old-passphrase "antiga"
      keywarden secrets rotate --from-admin-password --old-passphrase "senha-antiga"
    """
    console: Console = ctx.obj["console"]
    storage = _encrypted_storage(ctx)

    if from_admin_password:
        old_passphrase = f"{old_passphrase}{PASSPHRASE_SUFFIX}"

    try:
        old_codec = SecretCodec(old_passphrase)
    except ValueError as e:
        ctx.obj["error_console"].print(f"[red]Erro:[/red] {e}")
        raise SystemExit(1)

    saved, report = storage.rotate_passphrase(old_codec)

    if ctx.obj.get("json_output"):
        print_json({
            "success": saved,
            "rotated": report.rotated,
            "current": report.current,
            "plaintext": report.plaintext,
            "failed": report.failed,
        })
    else:
        console.print(
            f"[green]{len(report.rotated)} recifradas[/green], "
            f"{len(report.current)} já atualizadas, "
            f"{len(report.plaintext)} em texto plano cifradas, "
            f"[red]{len(report.failed)} falharam[/red]"
        )

    if not saved:
        ctx.obj["error_console"].print("[red]Erro:[/red] falha ao salvar a configuração")
        raise SystemExit(1)
    if report.failed:
        raise SystemExit(2)
