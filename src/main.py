"""
FastAPI application entry point.

Run with: uvicorn src.main:app --reload
"""

from contextlib import asynccontextmanager
import uuid

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from src.core.config import callflow_config, settings
from src.core.logging import configure_logging, get_logger, bind_context, clear_context
from src.api.dependencies import get_flow_graph
from src.api.routes import calls, flow, health
from src.api.exception_handlers import setup_exception_handlers

# Configure logging before anything else
configure_logging()
log = get_logger(__name__)


# =============================================================================
# Correlation ID Middleware
# =============================================================================


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique correlation ID to each request.

    - Generates a UUID4 request_id for each incoming request
    - Binds it to structlog context for all logs in that request
    - Adds X-Request-ID header to responses
    """

    async def dispatch(self, request: Request, call_next):
        """Process request and add correlation ID."""
        request_id = str(uuid.uuid4())

        bind_context(request_id=request_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Loads the flow graph at startup so a broken flow file fails fast.
    """
    log.info(
        "application_starting",
        debug=settings.debug,
        flow_name=settings.flow_name,
        legacy_id_inference=callflow_config.legacy_id_inference,
    )

    graph = get_flow_graph()
    issues = graph.find_issues()
    log.info(
        "application_started",
        node_count=len(graph),
        integrity_errors=sum(1 for i in issues if i.severity == "error"),
        integrity_warnings=sum(1 for i in issues if i.severity == "warning"),
    )

    yield

    log.info("application_shutting_down")


# Create FastAPI application
app = FastAPI(
    title="Call Navigator",
    description="Guided call-flow navigation for outbound sales calls",
    version="0.1.0",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS middleware for development
if settings.debug:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(CorrelationIDMiddleware)

setup_exception_handlers(app)

app.include_router(health.router, tags=["system"])
app.include_router(flow.router)
app.include_router(calls.router)


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with basic info."""
    return {"name": "Call Navigator", "version": "0.1.0", "status": "running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
