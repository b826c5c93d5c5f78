"""
================================================================================
Rotas da API
================================================================================

Este módulo agrupa todas as rotas da API.
"""

from fastapi import APIRouter

from .auth import router as auth_router
from .config import router as config_router
from .keys import router as keys_router
from .usage import router as usage_router


def create_api_router() -> APIRouter:
    """
    Cria e configura o router principal da API.

    ## Rotas registradas:

    - /data, /history - Consumo agregado e histórico (público)
    - /test-key - Teste de uma key avulsa (admin)
    - /config - Configuração com keys mascaradas (admin)
    - /storage-info - Backend de armazenamento ativo (público)
    - /keys - CRUD de credenciais (admin; reveal usa a senha da key)
    - /auth - Verificação da senha de admin
    """
    router = APIRouter()

    router.include_router(usage_router, tags=["Usage"])
    router.include_router(config_router, tags=["Config"])
    router.include_router(keys_router, prefix="/keys", tags=["Keys"])
    router.include_router(auth_router, prefix="/auth", tags=["Auth"])

    return router


__all__ = ["create_api_router"]
