"""
================================================================================
Configuração da API
================================================================================

Centraliza configurações do servidor FastAPI.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping


@dataclass
class APIConfig:
    """
    Configuração do servidor API.

    ## Atributos:

    - `host`: Host para bind do servidor
    - `port`: Porta do servidor
    - `debug`: Modo debug (mostra detalhes de erros internos)
    - `cors_origins`: Lista de origens permitidas para CORS
    - `api_prefix`: Prefixo das rotas da API
    - `docs_enabled`: Se True, habilita /docs e /redoc

    ## Variáveis de ambiente:

    - `KEYWARDEN_API_HOST`: Host (padrão: 0.0.0.0)
    - `KEYWARDEN_API_PORT`: Porta (padrão: 8000, ou `PORT`)
    - `KEYWARDEN_API_DEBUG`: Debug mode (padrão: false)
    - `KEYWARDEN_API_CORS_ORIGINS`: Origens CORS separadas por vírgula
    - `KEYWARDEN_API_PREFIX`: Prefixo (padrão: /api)
    - `KEYWARDEN_API_DOCS`: Documentação interativa (padrão: true)
    """

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    api_prefix: str = "/api"
    docs_enabled: bool = True

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "APIConfig":
        """
        Cria configuração a partir de variáveis de ambiente.

        ## Exemplo:

            >>> config = APIConfig.from_env({"KEYWARDEN_API_PORT": "3000"})
            >>> config.port
            3000
        """
        if env is None:
            env = os.environ

        cors_origins_str = env.get("KEYWARDEN_API_CORS_ORIGINS", "*")
        cors_origins = [origin.strip() for origin in cors_origins_str.split(",") if origin.strip()]

        try:
            port = int(env.get("KEYWARDEN_API_PORT", env.get("PORT", "8000")))
        except ValueError:
            port = 8000

        return cls(
            host=env.get("KEYWARDEN_API_HOST", "0.0.0.0"),
            port=port,
            debug=env.get("KEYWARDEN_API_DEBUG", "false").lower() == "true",
            cors_origins=cors_origins or ["*"],
            api_prefix=env.get("KEYWARDEN_API_PREFIX", "/api"),
            docs_enabled=env.get("KEYWARDEN_API_DOCS", "true").lower() == "true",
        )
