"""
================================================================================
CLI Principal: `keywarden`
================================================================================

```
keywarden
├── serve         API REST (painel de consumo + gerenciamento)
├── status        Consulta o consumo de todas as keys habilitadas
├── history       Leituras gravadas
├── keys          list | add | remove | import
├── secrets       status | rotate
└── storage-info  Backend de armazenamento ativo
```

Flags globais: `-v/--verbose`, `-q/--quiet`, `--json`.

A configuração vem do ambiente (`ADMIN_PASSWORD`, `ENCRYPTION_KEY`,
`KEYWARDEN_*`); veja `keywarden.config.MonitorConfig`.
"""

from __future__ import annotations

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from .. import __version__
from .registry import load_commands, register_all_commands


console = Console()
error_console = Console(stderr=True)
quiet_console = Console(quiet=True)

# Clientes HTTP/AWS logam cada requisição em DEBUG
_NOISY_LOGGERS = ("urllib3", "botocore", "boto3", "s3transfer")


def setup_logging(verbose: bool, quiet: bool) -> None:
    """
    Logs vão para stderr via RichHandler; stdout fica livre para tabelas e JSON.

    Padrão WARNING: avisos de storage indisponível, keys ilegíveis e
    senha gerada sempre aparecem, a menos que `--quiet`.
    """
    level = logging.ERROR if quiet else logging.DEBUG if verbose else logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=error_console, show_time=False, show_path=False)],
    )
    logging.getLogger("keywarden").setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO if verbose else logging.WARNING)


@click.group()
@click.version_option(version=__version__, prog_name="keywarden")
@click.option("--verbose", "-v", is_flag=True, help="Logs detalhados (DEBUG)")
@click.option("--quiet", "-q", is_flag=True, help="Só erros; sem tabelas")
@click.option("--json", "json_output", is_flag=True, help="Saída JSON no stdout")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, json_output: bool) -> None:
    """
    keywarden: monitor de saldo de API keys.

    \b
    Exemplos:
      keywarden serve --port 8000
      keywarden status
      keywarden keys import keys.txt --group team-a
      keywarden --json history -n 50
      keywarden secrets rotate --from-admin-password
    """
    setup_logging(verbose, quiet)

    # `obj` pode chegar preenchido (storage/fetcher injetados em testes)
    obj = ctx.ensure_object(dict)
    obj.update(
        verbose=verbose,
        quiet=quiet,
        json_output=json_output,
        console=quiet_console if (json_output or quiet) else console,
        error_console=error_console,
    )


load_commands()
register_all_commands(cli)


def main() -> None:
    """Entry point do script `keywarden`."""
    cli()


if __name__ == "__main__":
    main()
