"""CallNavigator: the call-flow navigation engine.

Holds the live ConversationState for one call and moves it through a
FlowGraph in response to the rep's choices:

    - navigate_to: follow a response (objection detours, opening reset)
    - go_back: destructive pop of the last visit
    - navigate_to_historical_node: rewind to the first occurrence of a node
    - return_to_flow: leave an objection detour, back to the saved node
    - remove_from_path: drop every occurrence of a mistaken entry

After every path mutation the derived metadata (EHR, DMS, competitors,
environment triggers, outcome) is replayed from the whole path.

Error policy: navigation never raises for bad input. A refused operation
returns NavigationResult(applied=False, reason=...) and leaves the state
exactly as it was, so a malformed edge in hand-authored content cannot break
a call in progress. Graph integrity is checked offline (FlowGraph.find_issues).

One navigator per call; instances are not shared between threads.
"""

import uuid
from typing import List, Optional, Union

import structlog

from src.core.config import callflow_config
from src.domain.models.call_node import CallNode, Outcome, Response, TopicGroup
from src.domain.models.call_state import (
    DERIVED_FIELDS,
    CallMetadata,
    ConversationState,
    NavigationResult,
)
from src.domain.models.flow_graph import FlowGraph
from src.services.export_service import ExportService
from src.services.metadata_replay import MetadataReplayer

logger = structlog.get_logger(__name__)


class CallNavigator:
    """Navigation engine for a single call.

    Usage:
        navigator = CallNavigator(graph)
        navigator.navigate_to("disc_mostly_manual")
        navigator.navigate_to("obj_timing")      # detour, return point saved
        navigator.return_to_flow()               # back to disc_mostly_manual
        print(navigator.generate_summary())
    """

    def __init__(
        self,
        graph: FlowGraph,
        opening_id: Optional[str] = None,
        replayer: Optional[MetadataReplayer] = None,
        export_service: Optional[ExportService] = None,
        call_id: Optional[str] = None,
    ) -> None:
        """Start a call on an opening node.

        Args:
            graph: Flow graph to navigate (shared, read-only)
            opening_id: Preferred opening node; first opening node if None
                or not an opening
            replayer: Metadata replayer (default honours legacy_id_inference)
            export_service: Summary/scripts builder (default uses configured
                outcome and trigger labels)
            call_id: Identifier for logs and the session registry

        Raises:
            FlowGraphError: graph has no opening node
        """
        self.graph = graph
        self.call_id = call_id or str(uuid.uuid4())
        self.replayer = replayer or MetadataReplayer(
            graph,
            legacy_inference=callflow_config.legacy_id_inference,
            trigger_types=callflow_config.trigger_types(),
        )
        self.export_service = export_service or ExportService(
            outcome_labels=callflow_config.outcome_labels,
            trigger_labels=callflow_config.trigger_labels(),
        )
        self._preferred_opening = opening_id
        self.opening_id = graph.default_opening_id(opening_id)
        self.log = logger.bind(call_id=self.call_id)

        self.state = ConversationState.initial(self.opening_id)
        self.recalculate_metadata()

    # ==========================================================================
    # Navigation
    # ==========================================================================

    def navigate_to(self, target_id: str) -> NavigationResult:
        """Follow an edge to target_id.

        Appends to the path (revisits included). Entering an objection from a
        non-objection node saves the pre-move node as the return point; moves
        between objections keep the original return point. An opening target
        restarts the path at [target_id] and clears the return point.
        """
        target = self.graph.lookup(target_id)
        if target is None:
            return self._ignored("navigate_to", "unknown_node", target_id=target_id)

        state = self.state
        current = self.graph.lookup(state.current_node_id)
        from_id = state.current_node_id

        if self.graph.is_opening_type(target):
            state.conversation_path = [target_id]
            state.previous_non_objection_node = None
        else:
            if self.graph.is_objection_type(target) and not self.graph.is_objection_type(
                current
            ):
                state.previous_non_objection_node = from_id
            state.conversation_path.append(target_id)
        state.current_node_id = target_id

        self.recalculate_metadata()
        self.log.info(
            "navigated",
            from_node=from_id,
            to_node=target_id,
            node_type=target.type.value,
            path_length=len(state.conversation_path),
            return_point=state.previous_non_objection_node,
        )
        return NavigationResult(applied=True, operation="navigate_to")

    def go_back(self) -> NavigationResult:
        """Drop the last visit and move to the previous entry."""
        state = self.state
        if len(state.conversation_path) <= 1:
            return self._ignored("go_back", "at_start")

        removed = state.conversation_path.pop()
        state.current_node_id = state.conversation_path[-1]

        self.recalculate_metadata()
        self.log.info(
            "went_back",
            removed_node=removed,
            current_node=state.current_node_id,
            path_length=len(state.conversation_path),
        )
        return NavigationResult(applied=True, operation="go_back")

    def navigate_to_historical_node(self, target_id: str) -> NavigationResult:
        """Rewind the path to the first occurrence of target_id.

        The path is truncated to end at that occurrence (inclusive). Nothing
        is appended. Ignored if the node is unknown, not in the path, or its
        first occurrence is already the last entry.
        """
        if self.graph.lookup(target_id) is None:
            return self._ignored(
                "navigate_to_historical_node", "unknown_node", target_id=target_id
            )

        state = self.state
        if target_id not in state.conversation_path:
            return self._ignored(
                "navigate_to_historical_node", "not_in_path", target_id=target_id
            )

        index = state.conversation_path.index(target_id)
        if index == len(state.conversation_path) - 1:
            return self._ignored(
                "navigate_to_historical_node", "already_current", target_id=target_id
            )

        dropped = len(state.conversation_path) - (index + 1)
        state.conversation_path = state.conversation_path[: index + 1]
        state.current_node_id = target_id

        self.recalculate_metadata()
        self.log.info(
            "rewound",
            to_node=target_id,
            dropped_entries=dropped,
            path_length=len(state.conversation_path),
        )
        return NavigationResult(applied=True, operation="navigate_to_historical_node")

    def return_to_flow(self) -> NavigationResult:
        """Leave an objection detour.

        Appends the saved return point to the path, makes it current and
        clears it.
        """
        state = self.state
        return_id = state.previous_non_objection_node
        if return_id is None:
            return self._ignored("return_to_flow", "no_return_point")
        if self.graph.lookup(return_id) is None:
            return self._ignored("return_to_flow", "unknown_node", target_id=return_id)

        state.conversation_path.append(return_id)
        state.current_node_id = return_id
        state.previous_non_objection_node = None

        self.recalculate_metadata()
        self.log.info(
            "returned_to_flow",
            to_node=return_id,
            path_length=len(state.conversation_path),
        )
        return NavigationResult(applied=True, operation="return_to_flow")

    def remove_from_path(self, node_id: str) -> NavigationResult:
        """Remove every occurrence of node_id from the path.

        If the current node was removed, the new last entry becomes current.
        A return point naming the removed node is cleared. Ignored when the
        node is not in the path or removal would empty it.
        """
        state = self.state
        if len(state.conversation_path) <= 1:
            return self._ignored("remove_from_path", "at_start", target_id=node_id)
        if node_id not in state.conversation_path:
            return self._ignored("remove_from_path", "not_in_path", target_id=node_id)

        new_path = [nid for nid in state.conversation_path if nid != node_id]
        if not new_path:
            return self._ignored(
                "remove_from_path", "would_empty_path", target_id=node_id
            )

        removed_count = len(state.conversation_path) - len(new_path)
        state.conversation_path = new_path
        if state.current_node_id == node_id:
            state.current_node_id = new_path[-1]
        if state.previous_non_objection_node == node_id:
            state.previous_non_objection_node = None

        self.recalculate_metadata()
        self.log.info(
            "removed_from_path",
            node_id=node_id,
            removed_count=removed_count,
            current_node=state.current_node_id,
            path_length=len(new_path),
        )
        return NavigationResult(applied=True, operation="remove_from_path")

    def reset(self) -> None:
        """Discard the call and start over on the opening node."""
        self.state = ConversationState.initial(self.opening_id)
        self.recalculate_metadata()
        self.log.info("call_reset", opening_id=self.opening_id)

    def set_graph(self, graph: FlowGraph) -> None:
        """Swap in a new flow graph (e.g. content refreshed from the store).

        If the current node no longer exists the call restarts on the new
        graph's opening node; operator metadata and notes are kept.

        Raises:
            FlowGraphError: new graph has no opening node
        """
        opening_id = graph.default_opening_id(self._preferred_opening)

        self.graph = graph
        self.replayer.graph = graph
        self.opening_id = opening_id

        state = self.state
        if graph.lookup(state.current_node_id) is None:
            self.log.warning(
                "current_node_missing_after_graph_swap",
                missing_node=state.current_node_id,
                opening_id=opening_id,
            )
            state.current_node_id = opening_id
            state.conversation_path = [opening_id]
            state.previous_non_objection_node = None
        elif (
            state.previous_non_objection_node is not None
            and graph.lookup(state.previous_non_objection_node) is None
        ):
            state.previous_non_objection_node = None

        state.search_results = [nid for nid in state.search_results if nid in graph]
        self.recalculate_metadata()
        self.log.info("flow_graph_swapped", node_count=len(graph))

    # ==========================================================================
    # Metadata
    # ==========================================================================

    def recalculate_metadata(self) -> None:
        """Replay the whole path and overwrite the derived fields and outcome."""
        derived = self.replayer.replay(self.state.conversation_path)
        self.state.metadata = self.replayer.apply(self.state.metadata, derived)
        self.state.outcome = derived.outcome

    def update_metadata(self, **updates) -> CallMetadata:
        """Overlay metadata fields. Unknown field names are ignored.

        Derived fields (ehr, dms, competitors, environment_triggers) may be
        edited, but the next path mutation replaces them.
        """
        known = {k: v for k, v in updates.items() if k in CallMetadata.model_fields}
        unknown = sorted(set(updates) - set(known))
        if unknown:
            self.log.warning("unknown_metadata_fields_ignored", fields=unknown)
        derived = sorted(set(known) & set(DERIVED_FIELDS))
        if derived:
            self.log.info("derived_metadata_edited", fields=derived)

        merged = {**self.state.metadata.model_dump(), **known}
        self.state.metadata = CallMetadata.model_validate(merged)
        return self.state.metadata

    def add_pain_point(self, pain_point: str) -> bool:
        return self._add_unique("pain_points", pain_point)

    def add_competitor(self, competitor: str) -> bool:
        """Add a competitor by hand (replaced on the next path mutation)."""
        return self._add_unique("competitors", competitor)

    def add_objection(self, objection: str) -> bool:
        return self._add_unique("objections", objection)

    def set_notes(self, notes: str) -> None:
        self.state.notes = notes

    def set_outcome(self, outcome: Union[Outcome, str, None]) -> None:
        """Set the outcome by hand.

        Raises:
            ValueError: outcome is not a known Outcome value
        """
        self.state.outcome = Outcome(outcome) if outcome is not None else None

    # ==========================================================================
    # Read side
    # ==========================================================================

    def current_node(self) -> CallNode:
        return self.graph.lookup(self.state.current_node_id)

    def available_responses(self) -> List[Response]:
        """Responses of the current node whose targets exist in the graph."""
        return [r for r in self.current_node().responses if r.next_node in self.graph]

    def topic_for_current(self) -> Optional[TopicGroup]:
        return self.graph.topic_for_node(self.state.current_node_id)

    def snapshot(self) -> ConversationState:
        """Deep copy of the state, safe to hand to other layers."""
        return self.state.model_copy(deep=True)

    def search(self, query: str) -> List[CallNode]:
        """Search the whole graph; a blank query clears the results."""
        results = self.graph.search(query)
        self.state.search_query = query
        self.state.search_results = [n.id for n in results]
        return results

    def generate_summary(self) -> str:
        return self.export_service.generate_summary(self.state)

    def generate_scripts(self) -> str:
        return self.export_service.generate_scripts(
            self.graph, self.state.conversation_path
        )

    # ==========================================================================
    # Helpers
    # ==========================================================================

    def _add_unique(self, field_name: str, value: str) -> bool:
        value = value.strip()
        if not value:
            return False
        items: List[str] = getattr(self.state.metadata, field_name)
        if value in items:
            return False
        items.append(value)
        return True

    def _ignored(
        self, operation: str, reason: str, target_id: Optional[str] = None
    ) -> NavigationResult:
        self.log.info(
            "navigation_ignored",
            operation=operation,
            reason=reason,
            target_id=target_id,
            current_node=self.state.current_node_id,
        )
        return NavigationResult(applied=False, operation=operation, reason=reason)
