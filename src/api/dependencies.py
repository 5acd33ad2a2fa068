"""Dependency injection for API routes."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from src.core.config import callflow_config, settings
from src.core.flow_loader import load_flow_graph
from src.domain.models.flow_graph import FlowGraph
from src.services.call_session_service import CallSessionService
from src.services.export_service import ExportService


@lru_cache(maxsize=1)
def get_flow_graph() -> FlowGraph:
    """Flow graph served by this process.

    Loaded once from config/flows/<settings.flow_name>.yaml and shared by
    every call.
    """
    return load_flow_graph(settings.flow_name)


@lru_cache(maxsize=1)
def get_export_service() -> ExportService:
    """Export service configured with outcome and trigger labels."""
    return ExportService(
        outcome_labels=callflow_config.outcome_labels,
        trigger_labels=callflow_config.trigger_labels(),
    )


@lru_cache(maxsize=1)
def get_call_session_service() -> CallSessionService:
    """Process-wide registry of live calls.

    Calls live in memory only; a restart ends them.
    """
    return CallSessionService(
        get_flow_graph(),
        default_opening_id=settings.default_opening_id,
        export_service=get_export_service(),
    )


# Type aliases for dependency injection
FlowGraphDep = Annotated[FlowGraph, Depends(get_flow_graph)]
ExportServiceDep = Annotated[ExportService, Depends(get_export_service)]
CallSessionServiceDep = Annotated[CallSessionService, Depends(get_call_session_service)]
