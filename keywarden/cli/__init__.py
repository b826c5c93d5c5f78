"""
================================================================================
CLI `keywarden` — Interface de Linha de Comando
================================================================================

Este pacote fornece o comando `keywarden` para consultar o consumo das
API keys, gerenciar as keys e inspecionar o storage direto do terminal.

## Comandos disponíveis:

```bash
keywarden serve                    # Inicia a API REST
keywarden status                   # Consumo agregado
keywarden keys list                # Lista keys (mascaradas)
keywarden history -n 20            # Últimas 20 leituras
keywarden secrets rotate           # Recifra keys após trocar a senha
keywarden storage-info             # Backend ativo
```

O CLI é construído com:
- **Click**: Framework para CLIs em Python
- **Rich**: Formatação colorida e tabelas
"""

from .main import cli

__all__ = ["cli"]
