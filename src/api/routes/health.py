"""
Health check endpoints.

Provides system health information for monitoring.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
import structlog

from src.api.dependencies import get_call_session_service, get_flow_graph
from src.core.config import settings
from src.core.exceptions import FlowGraphError

log = structlog.get_logger(__name__)

router = APIRouter()


def check_flow_health() -> Dict[str, Any]:
    """Load (or reuse) the flow graph and report its state."""
    try:
        graph = get_flow_graph()
    except (FileNotFoundError, FlowGraphError) as e:
        log.warning("flow_graph_unhealthy", error=str(e))
        return {"status": "unhealthy", "error": str(e)}

    errors = [i for i in graph.find_issues() if i.severity == "error"]
    return {
        "status": "healthy",
        "flow_name": settings.flow_name,
        "node_count": len(graph),
        "integrity_errors": len(errors),
    }


@router.get("/health")
async def health_check(flow_health: Dict[str, Any] = Depends(check_flow_health)):
    """
    Health check endpoint.

    Returns:
        System health status including flow graph availability.
    """
    overall_status = "healthy" if flow_health["status"] == "healthy" else "unhealthy"

    components: Dict[str, Any] = {"flow_graph": flow_health}
    if overall_status == "healthy":
        components["calls"] = {"active": get_call_session_service().active_count}

    return {
        "status": overall_status,
        "version": "0.1.0",
        "debug": settings.debug,
        "components": components,
    }


@router.get("/health/live")
async def liveness():
    """
    Kubernetes-style liveness probe.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness(flow_health: Dict[str, Any] = Depends(check_flow_health)):
    """
    Kubernetes-style readiness probe.

    Returns 200 once the flow graph is loaded.
    """
    if flow_health["status"] != "healthy":
        raise HTTPException(status_code=503, detail="Flow graph not ready")

    return {"status": "ready"}
