"""
================================================================================
Autenticação da API
================================================================================

Operações de gerenciamento exigem a senha de admin compartilhada no header
`X-Admin-Password`. Não há sessões nem usuários: é uma única comparação
em tempo constante contra `MonitorConfig.admin_password`.

## Uso:

```python
from fastapi import Depends
from keywarden.api.auth import require_admin

@router.post("/keys", dependencies=[Depends(require_admin)])
async def add_key(...):
    ...
```
"""

from __future__ import annotations

import hmac
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

from ..config import MonitorConfig
from .deps import get_monitor_config


logger = logging.getLogger(__name__)

ADMIN_HEADER = "X-Admin-Password"

admin_password_header = APIKeyHeader(
    name=ADMIN_HEADER,
    auto_error=False,
    description="Senha de admin para operações de gerenciamento",
)


def verify_admin_password(candidate: str | None, config: MonitorConfig) -> bool:
    """
    Compara a senha enviada com a senha de admin.

    ## Exemplo:

        >>> verify_admin_password("s3cret", MonitorConfig(admin_password="s3cret"))
        True
    """
    if not candidate:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), config.admin_password.encode("utf-8"))


async def require_admin(
    password: str | None = Depends(admin_password_header),
    config: MonitorConfig = Depends(get_monitor_config),
) -> None:
    """
    Dependency que exige a senha de admin.

    ## Erros:

    - 401: Header não enviado
    - 403: Senha incorreta
    """
    if not password:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "code": "E4001",
                "message": "Senha de admin não fornecida",
                "hint": f"Inclua o header {ADMIN_HEADER}",
            },
        )

    if not verify_admin_password(password, config):
        logger.warning("Tentativa de acesso com senha de admin incorreta")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": "E4003",
                "message": "Senha de admin inválida",
            },
        )
