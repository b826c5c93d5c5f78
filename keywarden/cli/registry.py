"""
================================================================================
Registry de Comandos CLI
================================================================================

Os módulos em `commands/` se registram com `@register_command` ao serem
importados; `main.py` importa todos via `load_commands()` e anexa os
comandos ao grupo `keywarden` com `register_all_commands(cli)`.

Assim nenhum módulo de comando importa `main.py`.
"""

from __future__ import annotations

import importlib
from typing import TypeVar

import click


CommandT = TypeVar("CommandT", bound=click.Command)

# Ordem em que aparecem no `keywarden --help` é alfabética (click), não esta
COMMAND_MODULES = (
    "history_cmd",
    "keys_cmd",
    "secrets_cmd",
    "serve_cmd",
    "status_cmd",
    "storage_cmd",
)

_commands: dict[str, click.Command] = {}


def register_command(cmd: CommandT) -> CommandT:
    """Decorator: guarda o comando (ou grupo) pelo nome."""
    if cmd.name:
        _commands.setdefault(cmd.name, cmd)
    return cmd


def get_registered_commands() -> list[click.Command]:
    return list(_commands.values())


def register_all_commands(cli_group: click.Group) -> None:
    """Anexa ao grupo os comandos registrados que ele ainda não tem."""
    for name, cmd in _commands.items():
        if name not in cli_group.commands:
            cli_group.add_command(cmd)


def load_commands() -> None:
    """Importa `keywarden.cli.commands.*`; o import registra cada comando."""
    for module in COMMAND_MODULES:
        importlib.import_module(f"{__package__}.commands.{module}")
