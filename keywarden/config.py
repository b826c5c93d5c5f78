"""
================================================================================
CONFIGURAÇÃO CENTRALIZADA DO KEYWARDEN
================================================================================

Este módulo centraliza todas as configurações de runtime em um único valor,
construído uma vez no startup e passado explicitamente para o codec de
segredos, o storage, o agregador de consumo e a verificação de admin.

## Fontes de configuração (em ordem de prioridade):

1. Parâmetros passados diretamente
2. Variáveis de ambiente
3. Valores padrão

## Aviso de segurança:

Se `ENCRYPTION_KEY` não estiver definida, a passphrase de criptografia é
derivada de `ADMIN_PASSWORD` + sufixo fixo. Isso é fraco: quem conhece a
senha de admin consegue decifrar as keys, e trocar a senha de admin
invalida as keys já cifradas (use `keywarden secrets rotate`).

Sem `ADMIN_PASSWORD`, uma senha é gerada uma vez e guardada em
`<data_dir>/.admin_password` (0600). O log mostra o caminho, nunca o valor.

## Exemplo de uso:

    >>> config = MonitorConfig.from_env()
    >>> config.request_timeout
    10.0
"""

from __future__ import annotations

import logging
import os
import secrets
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)

PASSPHRASE_SUFFIX = "-keywarden-secret"
DEFAULT_USAGE_URL = "https://app.factory.ai/api/organization/members/chat-usage"
GENERATED_PASSWORD_FILE = ".admin_password"


def generated_password_path(data_dir: str) -> Path:
    """Arquivo onde a senha de admin gerada é guardada (dentro de `data_dir`)."""
    return Path(os.path.expanduser(os.path.expandvars(data_dir))) / GENERATED_PASSWORD_FILE


def load_or_generate_password(data_dir: str) -> tuple[str, bool]:
    """
    Retorna a senha de admin gerada e se ela foi persistida.

    A senha é criada uma única vez e gravada com permissão 0600; processos
    seguintes leem o mesmo arquivo, então a passphrase derivada dela é
    estável entre restarts.
    """
    path = generated_password_path(data_dir)
    try:
        stored = path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        stored = ""
    except OSError as e:
        logger.error("Falha ao ler %s: %s", path, e)
        stored = ""
    if stored:
        return stored, True

    password = secrets.token_urlsafe(18)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(password)
    except OSError as e:
        logger.error("Falha ao gravar %s: %s", path, e)
        return password, False
    return password, True


class MonitorConfig(BaseModel):
    """
    Configuração de runtime do keywarden.

    ## Atributos:

    - `admin_password`: Senha compartilhada para operações de gerenciamento
    - `admin_password_generated`: True se a senha foi gerada neste processo
    - `encryption_secret`: Segredo explícito para cifrar as keys
    - `data_dir`: Diretório do backend local
    - `usage_url`: Endpoint de consulta de consumo
    - `request_timeout`: Timeout da consulta por key (segundos)
    """

    # =========================================================================
    # SEGURANÇA
    # =========================================================================

    admin_password: str = Field(
        default_factory=lambda: secrets.token_urlsafe(18),
        min_length=1,
        description="Senha de admin (gerada se ausente)"
    )

    admin_password_generated: bool = Field(
        default=False,
        description="True se a senha de admin foi gerada automaticamente"
    )

    admin_password_persisted: bool = Field(
        default=True,
        description="False se a senha gerada não pôde ser gravada em `data_dir`"
    )

    encryption_secret: str | None = Field(
        default=None,
        description="Segredo explícito para derivar a chave de criptografia"
    )

    # =========================================================================
    # STORAGE
    # =========================================================================

    data_dir: str = Field(
        default="./data",
        description="Diretório dos documentos no backend local"
    )

    # =========================================================================
    # CONSULTA DE CONSUMO
    # =========================================================================

    usage_url: str = Field(
        default=DEFAULT_USAGE_URL,
        description="Endpoint de consumo por key"
    )

    request_timeout: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Timeout de cada consulta em segundos"
    )

    @property
    def passphrase(self) -> str:
        """
        Passphrase única do processo para o codec de segredos.

        `encryption_secret` se definido, senão senha de admin + sufixo fixo.
        """
        if self.encryption_secret:
            return self.encryption_secret
        return f"{self.admin_password}{PASSPHRASE_SUFFIX}"

    @property
    def passphrase_is_derived(self) -> bool:
        return not self.encryption_secret

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "MonitorConfig":
        """
        Cria configuração a partir de variáveis de ambiente.

        ## Variáveis suportadas:

        - `ADMIN_PASSWORD`: Senha de admin (default: gerada)
        - `ENCRYPTION_KEY`: Segredo de criptografia (default: derivado)
        - `KEYWARDEN_DATA_DIR`: Diretório local (default: ./data)
        - `KEYWARDEN_USAGE_URL`: Endpoint de consumo
        - `KEYWARDEN_REQUEST_TIMEOUT`: Timeout em segundos (default: 10)
        """
        if env is None:
            env = os.environ

        def get_float(key: str, default: float) -> float:
            """Helper para converter string para float."""
            try:
                return float(env.get(key, str(default)))
            except ValueError:
                return default

        def get_str_or_none(key: str) -> str | None:
            """Helper para obter string ou None."""
            val = env.get(key)
            if val is None or val.strip().lower() in ("", "none", "null"):
                return None
            return val

        data_dir = env.get("KEYWARDEN_DATA_DIR", "./data")
        admin_password = get_str_or_none("ADMIN_PASSWORD")
        generated = admin_password is None
        persisted = True
        if admin_password is None:
            admin_password, persisted = load_or_generate_password(data_dir)

        config = cls(
            admin_password=admin_password,
            admin_password_generated=generated,
            admin_password_persisted=persisted,
            encryption_secret=get_str_or_none("ENCRYPTION_KEY"),
            data_dir=data_dir,
            usage_url=env.get("KEYWARDEN_USAGE_URL", DEFAULT_USAGE_URL),
            request_timeout=get_float("KEYWARDEN_REQUEST_TIMEOUT", 10.0),
        )
        config.log_security_caveats()
        return config

    def log_security_caveats(self) -> None:
        """Registra os avisos de segurança da configuração."""
        if self.admin_password_generated and self.admin_password_persisted:
            logger.warning(
                "ADMIN_PASSWORD não definida; usando a senha gerada em %s",
                generated_password_path(self.data_dir),
            )
        elif self.admin_password_generated:
            logger.error(
                "ADMIN_PASSWORD não definida e a senha gerada não pôde ser gravada; "
                "keys cifradas com ela ficarão ilegíveis após um restart"
            )
        if self.passphrase_is_derived:
            logger.warning(
                "ENCRYPTION_KEY não definida; a chave de criptografia é derivada da "
                "senha de admin. Trocar a senha invalida as keys cifradas."
            )
