"""Conversation state for a single live call.

ConversationState is owned by one CallNavigator and mutated only through its
operations. It holds the traversal log, the objection detour return point,
call metadata, notes and outcome.

Metadata has two kinds of fields:
    - Operator fields (prospect_name, organization, automation, pain_points,
      objections) are entered by the rep and never touched by replay.
    - Derived fields (ehr, dms, competitors, environment_triggers) are
      rebuilt from the conversation path after every path mutation; manual
      edits to them last only until the next navigation.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from src.domain.models.call_node import Outcome, TriggerValue

DERIVED_FIELDS = ("ehr", "dms", "competitors", "environment_triggers")


class CallMetadata(BaseModel):
    """Call attributes shown in the side panel and the summary."""

    prospect_name: str = ""
    organization: str = ""
    automation: str = ""
    pain_points: List[str] = Field(default_factory=list)
    objections: List[str] = Field(default_factory=list)

    ehr: str = ""
    dms: str = ""
    competitors: List[str] = Field(default_factory=list)
    environment_triggers: Dict[str, TriggerValue] = Field(default_factory=dict)


class ConversationState(BaseModel):
    """Mutable navigation state of one call.

    Invariants maintained by CallNavigator:
        - conversation_path is never empty
        - current_node_id == conversation_path[-1]
        - current_node_id resolves in the flow graph
    """

    current_node_id: str
    conversation_path: List[str]
    previous_non_objection_node: Optional[str] = None
    metadata: CallMetadata = Field(default_factory=CallMetadata)
    notes: str = ""
    outcome: Optional[Outcome] = None

    search_query: str = ""
    search_results: List[str] = Field(
        default_factory=list, description="Ids of nodes matching search_query"
    )

    @classmethod
    def initial(cls, opening_id: str) -> "ConversationState":
        """Fresh state seeded on an opening node."""
        return cls(current_node_id=opening_id, conversation_path=[opening_id])


class NavigationResult(BaseModel):
    """Outcome of a navigation operation.

    Navigation never raises for bad input; a refused operation comes back
    with applied=False and a short machine-readable reason, and the state
    is left exactly as it was.
    """

    applied: bool
    operation: str
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.applied
