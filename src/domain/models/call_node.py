"""Domain models for call flow script nodes.

A call flow is a directed graph of script beats. Each CallNode carries the
text a rep reads aloud, coaching annotations, and labelled outgoing
responses pointing at other node ids.

Core Models:
    - NodeType: closed set of node categories (drives detour/reset logic)
    - Outcome: closed set of call outcomes
    - Response: labelled edge to another node
    - NodeMetadata: derivation hints (ehr, dms, competitors, outcome, triggers)
      plus informational competitive intel
    - CallNode: one script beat
    - TopicGroup: breadcrumb grouping of node ids

Nodes are frozen so a single graph can be shared by every active call.
Field aliases accept the camelCase keys used by content exported from the
script editor (nextNode, keyPoints, listenFor, competitorInfo).
"""

from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

TriggerValue = Union[str, List[str]]


class NodeType(str, Enum):
    """Category of a script node."""

    OPENING = "opening"
    DISCOVERY = "discovery"
    PITCH = "pitch"
    OBJECTION = "objection"
    CLOSE = "close"
    SUCCESS = "success"
    END = "end"


class Outcome(str, Enum):
    """Terminal outcome of a call."""

    MEETING_SET = "meeting_set"
    FOLLOW_UP = "follow_up"
    SEND_INFO = "send_info"
    NOT_INTERESTED = "not_interested"


class Response(BaseModel):
    """A labelled transition to another node (what the prospect said)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    label: str
    next_node: str = Field(..., alias="nextNode", min_length=1)
    note: Optional[str] = None


class NodeMetadata(BaseModel):
    """Structured hints attached to a node.

    ehr, ehr_default, dms, competitors, outcome and triggers feed metadata
    replay only;
    they have no navigation semantics. competitor_info and the flag lists
    are informational (shown to the rep, searched by competitor_info).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ehr: Optional[str] = None
    ehr_default: Optional[str] = Field(
        default=None,
        alias="ehrDefault",
        description="EHR assumed when none was detected earlier in the path",
    )
    dms: Optional[str] = None
    competitors: List[str] = Field(default_factory=list)
    outcome: Optional[Outcome] = None
    triggers: Dict[str, TriggerValue] = Field(
        default_factory=dict,
        description="Custom environment trigger values keyed by trigger key",
    )

    competitor_info: Optional[str] = Field(default=None, alias="competitorInfo")
    green_flags: List[str] = Field(default_factory=list, alias="greenFlags")
    red_flags: List[str] = Field(default_factory=list, alias="redFlags")

    @property
    def has_derivation_hints(self) -> bool:
        """True when any replay-relevant field is set."""
        return bool(
            self.ehr
            or self.ehr_default
            or self.dms
            or self.competitors
            or self.outcome is not None
            or self.triggers
        )


class CallNode(BaseModel):
    """One script beat in the call flow."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    type: NodeType
    title: str
    script: str = ""
    context: Optional[str] = None
    key_points: List[str] = Field(default_factory=list, alias="keyPoints")
    warnings: List[str] = Field(default_factory=list)
    listen_for: List[str] = Field(default_factory=list, alias="listenFor")
    responses: List[Response] = Field(default_factory=list)
    metadata: Optional[NodeMetadata] = None
    topic_group_id: Optional[str] = None

    @property
    def next_node_ids(self) -> List[str]:
        return [r.next_node for r in self.responses]

    def search_text(self) -> str:
        """Lowercased text searched by the script search box."""
        competitor_info = self.metadata.competitor_info if self.metadata else None
        return " ".join(
            [
                self.title,
                self.script,
                self.context or "",
                " ".join(self.key_points),
                competitor_info or "",
            ]
        ).lower()


class TopicGroup(BaseModel):
    """Named group of nodes used for breadcrumb and navigation menus."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    nodes: List[str] = Field(default_factory=list)
