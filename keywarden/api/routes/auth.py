"""
================================================================================
Rota: /auth
================================================================================

Permite que o front-end confirme a senha de admin antes de habilitar as
telas de gerenciamento.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from ..auth import verify_admin_password
from ..deps import get_monitor_config
from ..schemas import VerifyRequest
from ...config import MonitorConfig


router = APIRouter()


@router.post(
    "/verify",
    summary="Verificar Senha de Admin",
)
async def verify(
    request: VerifyRequest,
    config: MonitorConfig = Depends(get_monitor_config),
) -> dict[str, Any]:
    if not verify_admin_password(request.password, config):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "E4003", "message": "Senha de admin inválida"},
        )
    return {"success": True, "message": "Authenticated"}
