"""
================================================================================
FastAPI Application Factory
================================================================================

Cria e configura a aplicação FastAPI do keywarden.

## Uso:

```python
from keywarden.api import create_app

app = create_app()
```

## Via CLI:

```bash
keywarden serve --port 8000
```
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .. import __version__
from ..config import MonitorConfig
from ..keys import (
    CredentialNotFoundError,
    DuplicateCredentialError,
    InvalidCredentialError,
    KeyManagementError,
    ViewPasswordError,
)
from ..storage import Storage, create_storage
from ..usage import UsageAggregator, UsageClient
from ..usage.aggregator import Fetcher
from .config import APIConfig
from .routes import create_api_router
from .schemas import ErrorResponse, HealthResponse


logger = logging.getLogger(__name__)

# Erros de gerenciamento → (status HTTP, código)
KEY_ERROR_STATUS: dict[type[KeyManagementError], tuple[int, str]] = {
    InvalidCredentialError: (status.HTTP_400_BAD_REQUEST, "E4000"),
    ViewPasswordError: (status.HTTP_403_FORBIDDEN, "E4003"),
    CredentialNotFoundError: (status.HTTP_404_NOT_FOUND, "E4004"),
    DuplicateCredentialError: (status.HTTP_409_CONFLICT, "E4009"),
}


def _error_content(request: Request, code: str, message: str, **extra: Any) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    error.update(extra)
    return {
        "success": False,
        "error": error,
        "request_id": getattr(request.state, "request_id", None),
    }


def create_app(
    config: APIConfig | None = None,
    monitor_config: MonitorConfig | None = None,
    storage: Storage | None = None,
    fetcher: Fetcher | None = None,
) -> FastAPI:
    """
    Cria e configura a aplicação FastAPI.

    ## Parâmetros:

    - `config`: Configuração do servidor. Se None, usa valores de ambiente.
    - `monitor_config`: Configuração de runtime. Se None, `MonitorConfig.from_env()`.
    - `storage`: Storage ativo. Se None, selecionado pelo ambiente.
    - `fetcher`: Consulta de consumo por key (testes). Se None, `UsageClient`.

    ## Retorna:

    Aplicação FastAPI configurada com:
    - CORS habilitado
    - Middleware de request_id
    - Handlers de erro com formato padronizado
    - Rotas registradas sob `config.api_prefix`

    ## Exemplo:

        >>> app = create_app()
        >>> # ou com dependências explícitas
        >>> app = create_app(APIConfig(debug=True), storage=Storage(LocalFileBackend("/tmp/kw")))
    """
    if config is None:
        config = APIConfig.from_env()
    if monitor_config is None:
        monitor_config = MonitorConfig.from_env()
    if storage is None:
        storage = create_storage(monitor_config)
    if fetcher is None:
        fetcher = UsageClient(
            url=monitor_config.usage_url,
            timeout=monitor_config.request_timeout,
        ).fetch

    app = FastAPI(
        title="keywarden API",
        description="""
## keywarden

Monitor de consumo de API keys com armazenamento cifrado.

### Funcionalidades:

- **Data**: Consumo agregado por key e por grupo
- **History**: Série histórica com retenção configurável
- **Keys**: CRUD de credenciais (cifradas em repouso)
- **Storage**: Arquivo local, Vercel Blob / S3 ou Vercel KV
        """,
        version=__version__,
        docs_url="/docs" if config.docs_enabled else None,
        redoc_url="/redoc" if config.docs_enabled else None,
        openapi_url="/openapi.json" if config.docs_enabled else None,
    )

    # Objetos de runtime compartilhados pelos endpoints (ver deps.py)
    app.state.config = config
    app.state.monitor_config = monitor_config
    app.state.storage = storage
    app.state.fetcher = fetcher
    app.state.aggregator = UsageAggregator(storage, monitor_config, fetcher=fetcher)
    app.state.start_time = datetime.now(timezone.utc)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Nota: Funções decoradas são registradas pelo FastAPI, não acessadas diretamente
    @app.middleware("http")
    async def add_request_id(  # pyright: ignore[reportUnusedFunction]
        request: Request,
        call_next: Any
    ) -> Any:
        request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex[:12])
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(KeyManagementError)
    async def key_error_handler(  # pyright: ignore[reportUnusedFunction]
        request: Request,
        exc: KeyManagementError
    ) -> JSONResponse:
        status_code, code = KEY_ERROR_STATUS.get(
            type(exc), (status.HTTP_400_BAD_REQUEST, "E4000")
        )
        return JSONResponse(
            status_code=status_code,
            content=_error_content(request, code, str(exc)),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(  # pyright: ignore[reportUnusedFunction]
        request: Request,
        exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_content(
                request,
                "E1009",
                "Erro de validação nos dados enviados",
                details=jsonable_errors(exc.errors()),
            ),
        )

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(  # pyright: ignore[reportUnusedFunction]
        request: Request,
        exc: ValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_content(
                request,
                "E1009",
                "Erro de validação nos dados enviados",
                details=jsonable_errors(exc.errors()),
            ),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(  # pyright: ignore[reportUnusedFunction]
        request: Request,
        exc: Exception
    ) -> JSONResponse:
        logger.exception("Erro não tratado em %s %s", request.method, request.url.path)
        # Em modo debug, mostra detalhes do erro
        if config.debug:
            error_detail = str(exc)
        else:
            error_detail = "Erro interno do servidor"

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_content(request, "E5001", error_detail),
        )

    api_router = create_api_router()
    # Formato comum dos erros, documentado no OpenAPI
    app.include_router(
        api_router,
        prefix=config.api_prefix,
        responses={
            code: {"model": ErrorResponse} for code in (400, 401, 403, 404, 409, 422, 500)
        },
    )

    # Rota de health check na raiz (sem prefixo)
    @app.get("/health", tags=["Health"], response_model=HealthResponse)
    async def root_health() -> HealthResponse:  # pyright: ignore[reportUnusedFunction]
        """Health check na raiz."""
        info = storage.get_storage_info()
        return HealthResponse(
            status="healthy",
            version=__version__,
            timestamp=datetime.now(timezone.utc).isoformat(),
            storage={"backend": info.get("backend"), "mode": info.get("mode")},
        )

    return app


def jsonable_errors(errors: Any) -> list[dict[str, Any]]:
    """Remove valores não serializáveis (ex.: `ctx.error`) dos erros do pydantic."""
    cleaned: list[dict[str, Any]] = []
    for error in errors:
        item = {k: v for k, v in dict(error).items() if k not in ("ctx", "url", "input")}
        cleaned.append(item)
    return cleaned


def get_app() -> FastAPI:
    """
    Retorna instância da app para uso com uvicorn.

    ## Uso com uvicorn:

    ```bash
    uvicorn keywarden.api.app:get_app --factory
    ```
    """
    return create_app()
