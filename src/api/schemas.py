"""
API request/response schemas.

Pydantic models for API validation and serialization.
"""

from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field

from src.domain.models.call_node import CallNode, NodeType, Outcome, TopicGroup
from src.domain.models.call_state import CallMetadata
from src.domain.models.flow_graph import FlowGraph, GraphIssue


# ============ FLOW SCHEMAS ============


class ResponseSchema(BaseModel):
    """Outgoing response of a node."""

    label: str
    next_node: str
    note: Optional[str] = None
    available: bool = Field(
        default=True, description="False when the target node does not exist"
    )


class NodeSchema(BaseModel):
    """Script node as rendered by the UI."""

    id: str
    type: NodeType
    title: str
    script: str
    context: Optional[str] = None
    key_points: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    listen_for: List[str] = Field(default_factory=list)
    responses: List[ResponseSchema] = Field(default_factory=list)
    competitor_info: Optional[str] = None
    green_flags: List[str] = Field(default_factory=list)
    red_flags: List[str] = Field(default_factory=list)
    topic_group_id: Optional[str] = None

    @classmethod
    def from_node(cls, node: CallNode, graph: FlowGraph) -> "NodeSchema":
        meta = node.metadata
        return cls(
            id=node.id,
            type=node.type,
            title=node.title,
            script=node.script,
            context=node.context,
            key_points=list(node.key_points),
            warnings=list(node.warnings),
            listen_for=list(node.listen_for),
            responses=[
                ResponseSchema(
                    label=r.label,
                    next_node=r.next_node,
                    note=r.note,
                    available=r.next_node in graph,
                )
                for r in node.responses
            ],
            competitor_info=meta.competitor_info if meta else None,
            green_flags=list(meta.green_flags) if meta else [],
            red_flags=list(meta.red_flags) if meta else [],
            topic_group_id=node.topic_group_id,
        )


class FlowResponse(BaseModel):
    """Whole flow graph."""

    node_count: int
    nodes: List[NodeSchema]
    topic_groups: List[TopicGroup] = Field(default_factory=list)


class FlowIssuesResponse(BaseModel):
    """Integrity report of the loaded flow graph."""

    error_count: int
    warning_count: int
    issues: List[GraphIssue]


class SearchResponse(BaseModel):
    """Script search results."""

    query: str
    results: List[NodeSchema]


# ============ CALL SCHEMAS ============


class CallCreate(BaseModel):
    """Request to start a call."""

    opening_id: Optional[str] = Field(
        default=None, description="Opening node to start on (default opening if omitted)"
    )


class NavigateRequest(BaseModel):
    """Target node for navigate/rewind/remove."""

    node_id: str = Field(..., min_length=1)


class MetadataUpdate(BaseModel):
    """Partial metadata update; omitted fields are left alone."""

    prospect_name: Optional[str] = None
    organization: Optional[str] = None
    automation: Optional[str] = None
    pain_points: Optional[List[str]] = None
    objections: Optional[List[str]] = None
    ehr: Optional[str] = None
    dms: Optional[str] = None
    competitors: Optional[List[str]] = None
    environment_triggers: Optional[Dict[str, Union[str, List[str]]]] = None


class NotesUpdate(BaseModel):
    """Replace the call notes."""

    notes: str = Field(default="", max_length=20000)


class OutcomeUpdate(BaseModel):
    """Set or clear the call outcome."""

    outcome: Optional[Outcome] = None


class ItemRequest(BaseModel):
    """Single list item (pain point, competitor, objection)."""

    value: str = Field(..., min_length=1, max_length=500)


class PathEntrySchema(BaseModel):
    """One visit in the conversation path."""

    node_id: str
    title: Optional[str] = None
    type: Optional[NodeType] = None


class CallStateResponse(BaseModel):
    """Full state of a live call."""

    call_id: str
    current_node: NodeSchema
    conversation_path: List[PathEntrySchema]
    previous_non_objection_node: Optional[str] = None
    metadata: CallMetadata
    notes: str = ""
    outcome: Optional[Outcome] = None
    topic: Optional[TopicGroup] = None
    search_query: str = ""
    search_results: List[str] = Field(default_factory=list)


class NavigationResponse(BaseModel):
    """Result of a navigation operation plus the resulting state."""

    applied: bool
    operation: str
    reason: Optional[str] = None
    state: CallStateResponse


class CallListItem(BaseModel):
    """Compact view of a live call."""

    call_id: str
    current_node_id: str
    path_length: int
    outcome: Optional[Outcome] = None


class CallListResponse(BaseModel):
    """Live calls."""

    calls: List[CallListItem]
    total: int


class CallEndResponse(BaseModel):
    """Final exports of an ended call."""

    call_id: str
    outcome: Optional[Outcome] = None
    conversation_path: List[str]
    summary: str
    scripts: str
