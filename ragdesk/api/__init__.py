"""ragdesk API layer: routes, schemas, and middleware."""

from ragdesk.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from ragdesk.api.routes import router
from ragdesk.api.schemas import (
    ChatDetailResponse,
    DocumentUploadResponse,
    ErrorResponse,
    HealthResponse,
    SendMessageRequest,
    SendMessageResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "ChatDetailResponse",
    "DocumentUploadResponse",
    "ErrorResponse",
    "HealthResponse",
    "SendMessageRequest",
    "SendMessageResponse",
]
