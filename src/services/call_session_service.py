"""
In-memory registry of live calls.

Each call gets its own CallNavigator; all of them share one read-only
FlowGraph. The registry only tracks membership. Persisting a finished call
belongs to whoever consumes the snapshot returned by end_call().
"""

import uuid
from threading import Lock
from typing import Any, Dict, List, Optional

import structlog

from src.core.exceptions import CallNotFoundError
from src.domain.models.flow_graph import FlowGraph
from src.services.call_navigator import CallNavigator
from src.services.export_service import ExportService

log = structlog.get_logger(__name__)


class CallSessionService:
    """Starts, looks up and ends calls.

    Usage:
        service = CallSessionService(graph)
        navigator = service.start_call()
        service.get(navigator.call_id).navigate_to("disc_mostly_manual")
        final = service.end_call(navigator.call_id)
    """

    def __init__(
        self,
        graph: FlowGraph,
        default_opening_id: Optional[str] = None,
        export_service: Optional[ExportService] = None,
    ) -> None:
        self.graph = graph
        self.default_opening_id = default_opening_id
        self.export_service = export_service
        self._calls: Dict[str, CallNavigator] = {}
        self._lock = Lock()

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._calls)

    def start_call(self, opening_id: Optional[str] = None) -> CallNavigator:
        """Create a navigator for a new call.

        Raises:
            FlowGraphError: graph has no opening node
        """
        call_id = str(uuid.uuid4())
        navigator = CallNavigator(
            self.graph,
            opening_id=opening_id or self.default_opening_id,
            export_service=self.export_service,
            call_id=call_id,
        )
        with self._lock:
            self._calls[call_id] = navigator

        log.info(
            "call_started",
            call_id=call_id,
            opening_id=navigator.opening_id,
        )
        return navigator

    def get(self, call_id: str) -> CallNavigator:
        """Look up a live call.

        Raises:
            CallNotFoundError: no live call with this id
        """
        with self._lock:
            navigator = self._calls.get(call_id)
        if navigator is None:
            raise CallNotFoundError(f"Call {call_id} not found")
        return navigator

    def list_calls(self) -> List[CallNavigator]:
        with self._lock:
            return list(self._calls.values())

    def end_call(self, call_id: str) -> Dict[str, Any]:
        """Discard a call and return its final exports.

        Returns:
            Dict with call_id, outcome, summary, scripts and conversation path

        Raises:
            CallNotFoundError: no live call with this id
        """
        with self._lock:
            navigator = self._calls.pop(call_id, None)
        if navigator is None:
            raise CallNotFoundError(f"Call {call_id} not found")

        state = navigator.state
        final = {
            "call_id": call_id,
            "outcome": state.outcome.value if state.outcome else None,
            "conversation_path": list(state.conversation_path),
            "summary": navigator.generate_summary(),
            "scripts": navigator.generate_scripts(),
        }
        log.info(
            "call_ended",
            call_id=call_id,
            outcome=final["outcome"],
            path_length=len(state.conversation_path),
        )
        return final

    def swap_graph(self, graph: FlowGraph) -> None:
        """Point the registry and every live call at a refreshed graph.

        Raises:
            FlowGraphError: graph has no opening node; nothing is swapped
        """
        graph.default_opening_id(self.default_opening_id)
        with self._lock:
            self.graph = graph
            navigators = list(self._calls.values())
        for navigator in navigators:
            navigator.set_graph(graph)
        log.info("call_graph_swapped", live_calls=len(navigators))
