"""
Exception handlers mapping call navigator errors to HTTP responses.

Every error body has the shape {"error": {"type": ..., "message": ...}}.
Call and flow errors add the call id or flow name they concern.
"""

from typing import Any, Dict, List, Tuple, Type

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

import structlog

from src.core.config import settings
from src.core.exceptions import (
    CallNavigatorError,
    CallNotFoundError,
    ConfigurationError,
    FlowGraphError,
    NodeNotFoundError,
    ValidationError,
)

log = structlog.get_logger(__name__)

# First match wins, so subclasses go before their bases
ERROR_STATUS: List[Tuple[Type[CallNavigatorError], int]] = [
    (CallNotFoundError, status.HTTP_404_NOT_FOUND),
    (NodeNotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (FlowGraphError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_for(exc: CallNavigatorError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(
    status_code: int, error_type: str, message: str, **extra: Any
) -> JSONResponse:
    error: Dict[str, Any] = {"type": error_type, "message": message}
    error.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(status_code=status_code, content={"error": error})


def setup_exception_handlers(app: FastAPI):
    """Register the call navigator exception handlers on app."""

    @app.exception_handler(CallNavigatorError)
    async def call_navigator_error_handler(
        request: Request,
        exc: CallNavigatorError,
    ) -> JSONResponse:
        status_code = status_for(exc)
        call_id = request.path_params.get("call_id")
        # Broken flow content, not a missing node lookup
        flow = (
            settings.flow_name
            if isinstance(exc, FlowGraphError) and not isinstance(exc, NodeNotFoundError)
            else None
        )

        log_method = log.error if status_code >= 500 else log.warning
        log_method(
            "flow_graph_error" if flow else "request_error",
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
            message=exc.message,
            status_code=status_code,
            call_id=call_id,
            flow=flow,
        )

        return error_response(
            status_code, type(exc).__name__, exc.message, call_id=call_id, flow=flow
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request,
        exc: ConfigurationError,
    ) -> JSONResponse:
        """Config problems are logged in full but not echoed to the client."""
        log.error("configuration_error", path=request.url.path, message=exc.message)
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "ConfigurationError",
            "Server configuration error",
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        log.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
            exc_info=exc,
        )
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "InternalServerError",
            "An unexpected error occurred",
        )
