"""
================================================================================
Comando: keywarden serve — API REST
================================================================================

Sobe a API (FastAPI + uvicorn) com o painel de consumo e o gerenciamento
de keys.

## Uso:

```bash
keywarden serve                          # 0.0.0.0:8000 (ou $PORT)
keywarden serve --port 3000
keywarden serve --host 127.0.0.1 --no-docs
```

A app é construída pelo uvicorn em modo factory (`get_app`), então as
opções chegam até ela pelas variáveis `KEYWARDEN_API_*`.
"""

from __future__ import annotations

import os

import click
from rich.console import Console
from rich.panel import Panel

from ...config import generated_password_path
from ...storage import select_backend
from ..registry import register_command


def _public_url(host: str, port: int) -> str:
    shown = "localhost" if host in ("0.0.0.0", "::") else host
    return f"http://{shown}:{port}"


def _banner(host: str, port: int, reload: bool, docs: bool) -> Panel:
    url = _public_url(host, port)
    backend = select_backend(os.environ).value
    encryption = (
        "ENCRYPTION_KEY"
        if os.environ.get("ENCRYPTION_KEY")
        else "[yellow]derivada de ADMIN_PASSWORD[/yellow]"
    )

    lines = [
        "[bold cyan]keywarden[/bold cyan] · monitor de saldo de API keys",
        "",
        f"[bold]Storage:[/bold]      {backend}",
        f"[bold]Criptografia:[/bold] {encryption}",
        f"[bold]Reload:[/bold]       {'sim' if reload else 'não'}",
        "",
        f"  Dados:   {url}/api/data",
        f"  Health:  {url}/health",
    ]
    if docs:
        lines.append(f"  Docs:    {url}/docs")
    if not os.environ.get("ADMIN_PASSWORD"):
        path = generated_password_path(os.environ.get("KEYWARDEN_DATA_DIR", "./data"))
        lines += ["", f"[yellow]ADMIN_PASSWORD não definida: senha gerada em {path}[/yellow]"]

    return Panel("\n".join(lines), border_style="cyan", padding=(0, 2))


@register_command
@click.command()
@click.option("--host", "-h", default="0.0.0.0", show_default=True, help="Endereço de bind")
@click.option(
    "--port", "-p",
    type=click.IntRange(1, 65535),
    envvar="PORT",
    default=8000,
    show_default=True,
    help="Porta (também lida de $PORT)",
)
@click.option("--reload", is_flag=True, help="Recarrega ao alterar o código (desenvolvimento)")
@click.option("--debug", is_flag=True, help="Inclui detalhes de erros internos nas respostas")
@click.option("--no-docs", is_flag=True, help="Desativa /docs e /redoc")
@click.pass_context
def serve(
    ctx: click.Context,
    host: str,
    port: int,
    reload: bool,
    debug: bool,
    no_docs: bool,
) -> None:
    """
    Inicia a API REST.

    Roda com um único worker: a configuração não tem lock entre
    processos e a última escrita vence.
    """
    console: Console = ctx.obj["console"]

    os.environ.update(
        {
            "KEYWARDEN_API_HOST": host,
            "KEYWARDEN_API_PORT": str(port),
            "KEYWARDEN_API_DEBUG": str(debug).lower(),
            "KEYWARDEN_API_DOCS": str(not no_docs).lower(),
        }
    )

    if not ctx.obj.get("quiet"):
        console.print(_banner(host, port, reload, docs=not no_docs))

    try:
        import uvicorn
    except ImportError:
        ctx.obj["error_console"].print(
            "[red]Erro:[/red] uvicorn não está instalado. Execute: pip install 'uvicorn[standard]'"
        )
        raise SystemExit(1)

    uvicorn.run(
        "keywarden.api.app:get_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        workers=1,
        log_level="debug" if debug else "info",
    )
