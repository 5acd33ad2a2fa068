"""Domain models package."""

from .call_node import CallNode, NodeMetadata, NodeType, Outcome, Response, TopicGroup
from .call_state import CallMetadata, ConversationState, NavigationResult
from .flow_graph import FlowGraph, GraphIssue

__all__ = [
    "CallNode",
    "NodeMetadata",
    "NodeType",
    "Outcome",
    "Response",
    "TopicGroup",
    "CallMetadata",
    "ConversationState",
    "NavigationResult",
    "FlowGraph",
    "GraphIssue",
]
