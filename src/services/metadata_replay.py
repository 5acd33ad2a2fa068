"""Derived call metadata rebuilt from the conversation path.

Every path mutation (navigate, back, rewind, return, remove) triggers a full
replay of the path against the flow graph instead of an incremental update.
Rewind and removal shrink history non-monotonically, and replay from scratch
stays correct for any path shape.

Replay rules, in path order:
    - ehr / dms: last write wins; ehr_default only fills an empty EHR
    - competitors: de-duplicated, order of first appearance
    - outcome: last terminal marker wins, None if the path has none
    - environment triggers: follow the configured trigger type (text: last
      write wins, array: accumulate de-duplicated); unconfigured keys go by
      value shape

Nodes with explicit metadata hints use them. Nodes without hints fall back to
node id inference when legacy inference is enabled. Ids missing from the
graph contribute nothing.
"""

import copy
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

import structlog

from src.domain.models.call_node import CallNode, Outcome, TriggerValue
from src.domain.models.call_state import DERIVED_FIELDS, CallMetadata
from src.domain.models.flow_graph import FlowGraph
from src.services.legacy_inference import infer_from_node_id

log = structlog.get_logger(__name__)


@dataclass
class DerivedMetadata:
    """Replay output: the derived subset of call metadata plus outcome."""

    ehr: str = ""
    dms: str = ""
    competitors: List[str] = field(default_factory=list)
    environment_triggers: Dict[str, TriggerValue] = field(default_factory=dict)
    outcome: Optional[Outcome] = None

    def add_competitor(self, name: str) -> None:
        if name and name not in self.competitors:
            self.competitors.append(name)

    def add_trigger(
        self, key: str, value: TriggerValue, trigger_type: Optional[str] = None
    ) -> None:
        """Record a trigger value.

        Array triggers accumulate (scalars are wrapped), text triggers are
        last write wins. Keys without a configured type go by value shape.
        """
        if trigger_type is None:
            trigger_type = "array" if isinstance(value, list) else "text"

        if trigger_type == "array":
            existing = self.environment_triggers.get(key)
            if isinstance(existing, list):
                merged = list(existing)
            elif existing:
                merged = [existing]
            else:
                merged = []
            for item in value if isinstance(value, list) else [value]:
                if item and item not in merged:
                    merged.append(item)
            self.environment_triggers[key] = merged
        else:
            self.environment_triggers[key] = (
                ", ".join(value) if isinstance(value, list) else value
            )


class MetadataReplayer:
    """Replays a conversation path against a flow graph.

    Usage:
        replayer = MetadataReplayer(graph)
        derived = replayer.replay(["opening_general", "disc_ehr_epic"])
        metadata = replayer.apply(state.metadata, derived)
    """

    def __init__(
        self,
        graph: FlowGraph,
        legacy_inference: bool = True,
        trigger_types: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.graph = graph
        self.legacy_inference = legacy_inference
        self.trigger_types = dict(trigger_types or {})

    def replay(self, path: Sequence[str]) -> DerivedMetadata:
        """Rebuild derived metadata from scratch for path."""
        derived = DerivedMetadata()

        for node_id in path:
            node = self.graph.lookup(node_id)
            if node is None:
                continue
            if node.metadata is not None and node.metadata.has_derivation_hints:
                self._apply_hints(derived, node)
            elif self.legacy_inference:
                self._apply_legacy(derived, node_id)

        log.debug(
            "metadata_replayed",
            path_length=len(path),
            ehr=derived.ehr,
            dms=derived.dms,
            competitors=derived.competitors,
            outcome=derived.outcome.value if derived.outcome else None,
        )
        return derived

    def _apply_hints(self, derived: DerivedMetadata, node: CallNode) -> None:
        hints = node.metadata
        if hints.ehr:
            derived.ehr = hints.ehr
        elif hints.ehr_default and not derived.ehr:
            derived.ehr = hints.ehr_default
        if hints.dms:
            derived.dms = hints.dms
        for competitor in hints.competitors:
            derived.add_competitor(competitor)
        if hints.outcome is not None:
            derived.outcome = hints.outcome
        for key, value in hints.triggers.items():
            derived.add_trigger(key, value, self.trigger_types.get(key))

    @staticmethod
    def _apply_legacy(derived: DerivedMetadata, node_id: str) -> None:
        signals = infer_from_node_id(node_id, current_ehr=derived.ehr)
        if signals.ehr is not None:
            derived.ehr = signals.ehr
        if signals.dms is not None:
            derived.dms = signals.dms
        for competitor in signals.competitors:
            derived.add_competitor(competitor)
        if signals.outcome is not None:
            derived.outcome = signals.outcome

    @staticmethod
    def apply(metadata: CallMetadata, derived: DerivedMetadata) -> CallMetadata:
        """Merge the derived subset into a copy of metadata.

        Only DERIVED_FIELDS are replaced. Operator fields (prospect name,
        organization, automation, pain points, objections) are carried over
        untouched.
        """
        return metadata.model_copy(
            update={
                name: copy.deepcopy(getattr(derived, name)) for name in DERIVED_FIELDS
            },
            deep=True,
        )
