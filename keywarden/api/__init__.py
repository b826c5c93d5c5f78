"""
================================================================================
API Module — FastAPI Backend do keywarden
================================================================================

Expõe o consumo agregado, o histórico e o gerenciamento de credenciais via
API REST.

## Endpoints disponíveis:

| Método | Endpoint                   | Descrição                          |
|--------|----------------------------|------------------------------------|
| GET    | /health                    | Health check, versão e storage     |
| GET    | /api/data                  | Consumo agregado (keys mascaradas) |
| GET    | /api/history               | Série histórica                    |
| GET    | /api/config                | Configuração (admin)               |
| POST   | /api/config                | Salvar configuração (admin)        |
| GET    | /api/keys                  | Listar keys (admin)                |
| POST   | /api/keys                  | Adicionar key (admin)              |
| PUT    | /api/keys/{id}             | Atualizar key (admin)              |
| DELETE | /api/keys/{id}             | Remover key (admin)                |
| POST   | /api/keys/batch-import     | Importar em lote (admin)           |
| POST   | /api/keys/batch-update     | Atualizar em lote (admin)          |
| POST   | /api/keys/batch-delete     | Remover em lote (admin)            |
| POST   | /api/keys/{id}/reveal      | Revelar key (senha da key)         |
| POST   | /api/test-key              | Testar key avulsa (admin)          |
| GET    | /api/storage-info          | Backend de armazenamento           |
| POST   | /api/auth/verify           | Verificar senha de admin           |

## Autenticação:

Rotas marcadas como admin exigem o header `X-Admin-Password`.
"""

from .app import create_app
from .config import APIConfig
from .auth import require_admin, verify_admin_password

__all__ = [
    "create_app",
    "APIConfig",
    "require_admin",
    "verify_admin_password",
]
