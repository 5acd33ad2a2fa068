"""Read-only flow graph of call script nodes.

FlowGraph wraps the externally supplied node set with O(1) lookup, the
node-type predicates the navigation engine branches on, whole-graph search,
and an authoring-time integrity report.

The graph is a directed multigraph; cycles are normal (an objection can lead
back to a discovery node). Dangling response targets are tolerated: lookup
returns None and the engine refuses to navigate there. They are surfaced by
find_issues() so the content layer can fix them before serving the graph.
"""

from collections import deque
from typing import Dict, Iterable, Iterator, List, Literal, Mapping, Optional, Union

import structlog
from pydantic import BaseModel

from src.core.exceptions import FlowGraphError
from src.domain.models.call_node import CallNode, NodeType, TopicGroup

log = structlog.get_logger(__name__)

TERMINAL_TYPES = frozenset({NodeType.SUCCESS, NodeType.END})


class GraphIssue(BaseModel):
    """A single integrity finding in a flow graph."""

    severity: Literal["error", "warning"]
    code: str
    node_id: Optional[str] = None
    message: str


class FlowGraph:
    """Immutable id -> CallNode mapping with engine-facing predicates.

    Usage:
        graph = FlowGraph(nodes, topic_groups)
        node = graph.lookup("disc_ehr_epic")
        if graph.is_objection_type(node):
            ...
    """

    def __init__(
        self,
        nodes: Union[Iterable[CallNode], Mapping[str, CallNode]],
        topic_groups: Optional[Iterable[TopicGroup]] = None,
    ) -> None:
        self._nodes: Dict[str, CallNode] = {}

        if isinstance(nodes, Mapping):
            for key, node in nodes.items():
                if key != node.id:
                    raise FlowGraphError(
                        f"Node key '{key}' does not match node id '{node.id}'"
                    )
                self._nodes[key] = node
        else:
            for node in nodes:
                if node.id in self._nodes:
                    raise FlowGraphError(f"Duplicate node id: {node.id}")
                self._nodes[node.id] = node

        self._topic_groups: List[TopicGroup] = list(topic_groups or [])

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def lookup(self, node_id: Optional[str]) -> Optional[CallNode]:
        """Return the node for node_id, or None if it does not exist."""
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[CallNode]:
        return iter(self._nodes.values())

    @property
    def node_ids(self) -> List[str]:
        return list(self._nodes.keys())

    @property
    def nodes(self) -> Dict[str, CallNode]:
        return dict(self._nodes)

    @property
    def topic_groups(self) -> List[TopicGroup]:
        return list(self._topic_groups)

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    @staticmethod
    def is_opening_type(node: Optional[CallNode]) -> bool:
        return node is not None and node.type == NodeType.OPENING

    @staticmethod
    def is_objection_type(node: Optional[CallNode]) -> bool:
        return node is not None and node.type == NodeType.OBJECTION

    def opening_nodes(self) -> List[CallNode]:
        """Opening nodes in declaration order."""
        return [n for n in self._nodes.values() if n.type == NodeType.OPENING]

    def default_opening_id(self, preferred: Optional[str] = None) -> str:
        """Pick the node a new call starts on.

        Args:
            preferred: Opening node id to use if it exists and is an opening

        Returns:
            preferred if valid, otherwise the first opening node id

        Raises:
            FlowGraphError: The graph has no opening node
        """
        if preferred is not None and self.is_opening_type(self.lookup(preferred)):
            return preferred

        openings = self.opening_nodes()
        if not openings:
            raise FlowGraphError("Flow graph has no opening node")

        if preferred is not None:
            log.warning(
                "preferred_opening_unavailable",
                preferred=preferred,
                fallback=openings[0].id,
            )
        return openings[0].id

    def topic_for_node(self, node_id: str) -> Optional[TopicGroup]:
        """Topic group containing node_id (explicit group id first)."""
        node = self.lookup(node_id)
        if node is not None and node.topic_group_id:
            for group in self._topic_groups:
                if group.id == node.topic_group_id:
                    return group
        for group in self._topic_groups:
            if node_id in group.nodes:
                return group
        return None

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, query: str) -> List[CallNode]:
        """Case-insensitive substring search over every node.

        Matches against title, script, context, key points and competitor
        info. A blank query matches nothing.
        """
        if not query or not query.strip():
            return []
        needle = query.lower()
        return [n for n in self._nodes.values() if needle in n.search_text()]

    # ------------------------------------------------------------------
    # Integrity
    # ------------------------------------------------------------------

    def reachable_ids(self) -> List[str]:
        """Node ids reachable from any opening node, in BFS order."""
        seen: Dict[str, None] = {}
        queue = deque(n.id for n in self.opening_nodes())
        while queue:
            node_id = queue.popleft()
            if node_id in seen:
                continue
            seen[node_id] = None
            node = self._nodes[node_id]
            for target in node.next_node_ids:
                if target in self._nodes and target not in seen:
                    queue.append(target)
        return list(seen.keys())

    def find_issues(self) -> List[GraphIssue]:
        """Report integrity problems without raising.

        Errors: dangling response targets, no opening node.
        Warnings: nodes unreachable from every opening, non-terminal nodes
        without responses, topic groups naming unknown nodes.
        """
        issues: List[GraphIssue] = []

        if not self.opening_nodes():
            issues.append(
                GraphIssue(
                    severity="error",
                    code="no_opening",
                    message="Flow graph has no opening node",
                )
            )

        for node in self._nodes.values():
            for response in node.responses:
                if response.next_node not in self._nodes:
                    issues.append(
                        GraphIssue(
                            severity="error",
                            code="dangling_response",
                            node_id=node.id,
                            message=(
                                f"Response '{response.label}' points to unknown "
                                f"node '{response.next_node}'"
                            ),
                        )
                    )
            if not node.responses and node.type not in TERMINAL_TYPES:
                issues.append(
                    GraphIssue(
                        severity="warning",
                        code="dead_end",
                        node_id=node.id,
                        message=f"Non-terminal {node.type.value} node has no responses",
                    )
                )

        if self.opening_nodes():
            reachable = set(self.reachable_ids())
            for node_id in self._nodes:
                if node_id not in reachable:
                    issues.append(
                        GraphIssue(
                            severity="warning",
                            code="unreachable",
                            node_id=node_id,
                            message="Node is not reachable from any opening node",
                        )
                    )

        for group in self._topic_groups:
            for node_id in group.nodes:
                if node_id not in self._nodes:
                    issues.append(
                        GraphIssue(
                            severity="warning",
                            code="unknown_topic_node",
                            node_id=node_id,
                            message=f"Topic group '{group.id}' lists unknown node",
                        )
                    )

        return issues
