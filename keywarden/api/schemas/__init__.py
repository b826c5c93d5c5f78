"""
================================================================================
Schemas de Request/Response da API
================================================================================

Define os modelos Pydantic para validação de entrada e documentação de saída.
"""

from .common import (
    ErrorDetail,
    ErrorResponse,
    HealthResponse,
    OperationResponse,
)
from .keys import (
    BatchDeleteRequest,
    BatchImportRequest,
    BatchImportResponse,
    BatchResponse,
    BatchUpdateRequest,
    ConfigUpdateRequest,
    KeyCreateRequest,
    KeyUpdateRequest,
    RevealRequest,
    RevealResponse,
    SettingsUpdate,
    KeyTestRequest,
    VerifyRequest,
)

__all__ = [
    # Common
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
    "OperationResponse",
    # Keys / config
    "BatchDeleteRequest",
    "BatchImportRequest",
    "BatchImportResponse",
    "BatchResponse",
    "BatchUpdateRequest",
    "ConfigUpdateRequest",
    "KeyCreateRequest",
    "KeyUpdateRequest",
    "RevealRequest",
    "RevealResponse",
    "SettingsUpdate",
    "KeyTestRequest",
    "VerifyRequest",
]
