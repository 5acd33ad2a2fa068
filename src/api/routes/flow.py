"""
API routes for reading the call flow graph.

GET /flow - All nodes and topic groups
GET /flow/nodes/{node_id} - One node
GET /flow/issues - Integrity report (dangling edges, unreachable nodes, ...)
GET /flow/search?q= - Script search across the whole graph
"""

from fastapi import APIRouter, Query
import structlog

from src.api.dependencies import FlowGraphDep
from src.api.schemas import FlowIssuesResponse, FlowResponse, NodeSchema, SearchResponse
from src.core.exceptions import NodeNotFoundError

log = structlog.get_logger(__name__)
router = APIRouter(prefix="/flow", tags=["flow"])


@router.get("", response_model=FlowResponse)
async def get_flow(graph: FlowGraphDep):
    """Return every node of the flow graph with its topic groups."""
    return FlowResponse(
        node_count=len(graph),
        nodes=[NodeSchema.from_node(node, graph) for node in graph],
        topic_groups=graph.topic_groups,
    )


@router.get("/issues", response_model=FlowIssuesResponse)
async def get_flow_issues(graph: FlowGraphDep):
    """Authoring-time integrity report of the loaded graph."""
    issues = graph.find_issues()
    errors = sum(1 for i in issues if i.severity == "error")
    return FlowIssuesResponse(
        error_count=errors,
        warning_count=len(issues) - errors,
        issues=issues,
    )


@router.get("/search", response_model=SearchResponse)
async def search_flow(graph: FlowGraphDep, q: str = Query("", max_length=200)):
    """Case-insensitive search over titles, scripts, context, key points
    and competitor info. An empty query returns no results."""
    results = graph.search(q)
    log.info("flow_searched", query=q, result_count=len(results))
    return SearchResponse(
        query=q, results=[NodeSchema.from_node(n, graph) for n in results]
    )


@router.get("/nodes/{node_id}", response_model=NodeSchema)
async def get_node(node_id: str, graph: FlowGraphDep):
    """Return a single node. 404 if it does not exist."""
    node = graph.lookup(node_id)
    if node is None:
        raise NodeNotFoundError(f"Node {node_id} not found")
    return NodeSchema.from_node(node, graph)
