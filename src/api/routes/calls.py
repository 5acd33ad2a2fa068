"""
Call API routes.

Endpoints for starting calls and driving the navigation engine.

Navigation endpoints always answer 200 with {applied, reason, state}: a
refused move (unknown node, nothing to go back to, no detour to return
from) is a normal outcome of a live call, not an HTTP error. Unknown call
ids are 404.
"""

from fastapi import APIRouter, Query, status
from fastapi.responses import Response
import structlog

from src.api.dependencies import CallSessionServiceDep, ExportServiceDep
from src.api.schemas import (
    CallCreate,
    CallEndResponse,
    CallListItem,
    CallListResponse,
    CallStateResponse,
    ItemRequest,
    MetadataUpdate,
    NavigateRequest,
    NavigationResponse,
    NodeSchema,
    NotesUpdate,
    OutcomeUpdate,
    PathEntrySchema,
    SearchResponse,
)
from src.core.exceptions import ValidationError
from src.core.logging import bind_context
from src.domain.models.call_state import NavigationResult
from src.services.call_navigator import CallNavigator

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/calls", tags=["calls"])


# ============ HELPERS ============


def _state_response(navigator: CallNavigator) -> CallStateResponse:
    state = navigator.state
    graph = navigator.graph
    path = []
    for node_id in state.conversation_path:
        node = graph.lookup(node_id)
        path.append(
            PathEntrySchema(
                node_id=node_id,
                title=node.title if node else None,
                type=node.type if node else None,
            )
        )
    return CallStateResponse(
        call_id=navigator.call_id,
        current_node=NodeSchema.from_node(navigator.current_node(), graph),
        conversation_path=path,
        previous_non_objection_node=state.previous_non_objection_node,
        metadata=state.metadata.model_copy(deep=True),
        notes=state.notes,
        outcome=state.outcome,
        topic=navigator.topic_for_current(),
        search_query=state.search_query,
        search_results=list(state.search_results),
    )


def _navigation_response(
    navigator: CallNavigator, result: NavigationResult
) -> NavigationResponse:
    return NavigationResponse(
        applied=result.applied,
        operation=result.operation,
        reason=result.reason,
        state=_state_response(navigator),
    )


def _get_call(service, call_id: str) -> CallNavigator:
    bind_context(call_id=call_id)
    return service.get(call_id)


# ============ CALL LIFECYCLE ============


@router.post("", response_model=CallStateResponse, status_code=status.HTTP_201_CREATED)
async def start_call(request: CallCreate, service: CallSessionServiceDep):
    """Start a call on an opening node."""
    navigator = service.start_call(opening_id=request.opening_id)
    bind_context(call_id=navigator.call_id)
    return _state_response(navigator)


@router.get("", response_model=CallListResponse)
async def list_calls(service: CallSessionServiceDep):
    """List live calls."""
    calls = [
        CallListItem(
            call_id=n.call_id,
            current_node_id=n.state.current_node_id,
            path_length=len(n.state.conversation_path),
            outcome=n.state.outcome,
        )
        for n in service.list_calls()
    ]
    return CallListResponse(calls=calls, total=len(calls))


@router.get("/{call_id}", response_model=CallStateResponse)
async def get_call(call_id: str, service: CallSessionServiceDep):
    """Current state of a call."""
    return _state_response(_get_call(service, call_id))


@router.delete("/{call_id}", response_model=CallEndResponse)
async def end_call(call_id: str, service: CallSessionServiceDep):
    """End a call and return its final summary and scripts."""
    bind_context(call_id=call_id)
    return CallEndResponse(**service.end_call(call_id))


@router.post("/{call_id}/reset", response_model=CallStateResponse)
async def reset_call(call_id: str, service: CallSessionServiceDep):
    """Start the call over on its opening node."""
    navigator = _get_call(service, call_id)
    navigator.reset()
    return _state_response(navigator)


# ============ NAVIGATION ============


@router.post("/{call_id}/navigate", response_model=NavigationResponse)
async def navigate(call_id: str, request: NavigateRequest, service: CallSessionServiceDep):
    """Follow a response to another node."""
    navigator = _get_call(service, call_id)
    result = navigator.navigate_to(request.node_id)
    return _navigation_response(navigator, result)


@router.post("/{call_id}/back", response_model=NavigationResponse)
async def go_back(call_id: str, service: CallSessionServiceDep):
    """Drop the last visit."""
    navigator = _get_call(service, call_id)
    return _navigation_response(navigator, navigator.go_back())


@router.post("/{call_id}/rewind", response_model=NavigationResponse)
async def rewind(call_id: str, request: NavigateRequest, service: CallSessionServiceDep):
    """Rewind to the first occurrence of a node already in the path."""
    navigator = _get_call(service, call_id)
    result = navigator.navigate_to_historical_node(request.node_id)
    return _navigation_response(navigator, result)


@router.post("/{call_id}/return", response_model=NavigationResponse)
async def return_to_flow(call_id: str, service: CallSessionServiceDep):
    """Leave an objection detour."""
    navigator = _get_call(service, call_id)
    return _navigation_response(navigator, navigator.return_to_flow())


@router.post("/{call_id}/remove", response_model=NavigationResponse)
async def remove_from_path(
    call_id: str, request: NavigateRequest, service: CallSessionServiceDep
):
    """Remove every occurrence of a node from the path."""
    navigator = _get_call(service, call_id)
    result = navigator.remove_from_path(request.node_id)
    return _navigation_response(navigator, result)


# ============ METADATA, NOTES, OUTCOME ============


@router.patch("/{call_id}/metadata", response_model=CallStateResponse)
async def update_metadata(
    call_id: str, request: MetadataUpdate, service: CallSessionServiceDep
):
    """Overlay metadata fields. Derived fields are replaced on the next move."""
    navigator = _get_call(service, call_id)
    navigator.update_metadata(**request.model_dump(exclude_unset=True, exclude_none=True))
    return _state_response(navigator)


@router.post("/{call_id}/pain-points", response_model=CallStateResponse)
async def add_pain_point(call_id: str, request: ItemRequest, service: CallSessionServiceDep):
    navigator = _get_call(service, call_id)
    navigator.add_pain_point(request.value)
    return _state_response(navigator)


@router.post("/{call_id}/competitors", response_model=CallStateResponse)
async def add_competitor(call_id: str, request: ItemRequest, service: CallSessionServiceDep):
    navigator = _get_call(service, call_id)
    navigator.add_competitor(request.value)
    return _state_response(navigator)


@router.post("/{call_id}/objections", response_model=CallStateResponse)
async def add_objection(call_id: str, request: ItemRequest, service: CallSessionServiceDep):
    navigator = _get_call(service, call_id)
    navigator.add_objection(request.value)
    return _state_response(navigator)


@router.put("/{call_id}/notes", response_model=CallStateResponse)
async def set_notes(call_id: str, request: NotesUpdate, service: CallSessionServiceDep):
    navigator = _get_call(service, call_id)
    navigator.set_notes(request.notes)
    return _state_response(navigator)


@router.put("/{call_id}/outcome", response_model=CallStateResponse)
async def set_outcome(call_id: str, request: OutcomeUpdate, service: CallSessionServiceDep):
    """Set the outcome by hand. The next path mutation replays it."""
    navigator = _get_call(service, call_id)
    navigator.set_outcome(request.outcome)
    return _state_response(navigator)


# ============ SEARCH & EXPORT ============


@router.get("/{call_id}/search", response_model=SearchResponse)
async def search(
    call_id: str,
    service: CallSessionServiceDep,
    q: str = Query("", max_length=200),
):
    """Search the whole flow graph and remember the results on the call."""
    navigator = _get_call(service, call_id)
    results = navigator.search(q)
    return SearchResponse(
        query=q, results=[NodeSchema.from_node(n, navigator.graph) for n in results]
    )


@router.get(
    "/{call_id}/export",
    response_class=Response,
    summary="Export call",
    description="Export the call as a text summary, a scripts transcript, or JSON",
)
async def export_call(
    call_id: str,
    service: CallSessionServiceDep,
    export_service: ExportServiceDep,
    format: str = Query(
        "summary",
        description="Export format: summary, scripts, or json",
    ),
) -> Response:
    """Export call data in the requested format.

    Raises:
        CallNotFoundError: unknown call (404)
        ValidationError: unsupported format (400)
    """
    navigator = _get_call(service, call_id)
    log_ctx = log.bind(call_id=call_id, format=format)

    try:
        data = export_service.export_call(navigator, format)
    except ValueError as e:
        log_ctx.warning("export_call_invalid_format", error=str(e))
        raise ValidationError(str(e)) from e

    content_type = "application/json" if format.lower() == "json" else "text/plain"
    return Response(content=data, media_type=content_type)
