"""
Export service for turning call state into text.

Supports export to:
- summary: Human-readable call summary (contact, environment, competitors,
  pain points, objections, notes) for pasting into a CRM
- scripts: Transcript of every script read, in visit order
- json: Machine snapshot of the call for an external persistence layer

All exports are pure projections of the state; nothing here mutates it.
"""

import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence

import structlog

from src.core.config import DEFAULT_OUTCOME_LABELS
from src.domain.models.call_state import ConversationState
from src.domain.models.flow_graph import FlowGraph

if TYPE_CHECKING:
    from src.services.call_navigator import CallNavigator


log = structlog.get_logger(__name__)

EXPORT_FORMATS = ("summary", "scripts", "json")


class ExportService:
    """
    Service for exporting call state to various formats.

    Usage:
        service = ExportService()
        summary = service.generate_summary(navigator.state)
        scripts = service.generate_scripts(graph, navigator.state.conversation_path)
        text = service.export_call(navigator, "json")
    """

    def __init__(
        self,
        outcome_labels: Optional[Mapping[str, str]] = None,
        trigger_labels: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize export service.

        Args:
            outcome_labels: Display label per outcome value
            trigger_labels: Display label per environment trigger key
        """
        self.outcome_labels = dict(DEFAULT_OUTCOME_LABELS)
        if outcome_labels:
            self.outcome_labels.update(outcome_labels)
        self.trigger_labels = dict(trigger_labels or {})

    def generate_summary(self, state: ConversationState) -> str:
        """Build the call summary block.

        Empty fields are omitted; list sections are separated by a blank
        line and rendered as "- item" bullets.
        """
        metadata = state.metadata
        lines: List[str] = []

        if metadata.prospect_name:
            lines.append(f"Contact: {metadata.prospect_name}")
        if metadata.organization:
            lines.append(f"Organization: {metadata.organization}")
        if state.outcome is not None:
            label = self.outcome_labels.get(state.outcome.value, state.outcome.value)
            lines.append(f"Outcome: {label}")

        lines.append("ENVIRONMENT:")
        if metadata.ehr:
            lines.append(f"EHR: {metadata.ehr}")
        if metadata.dms:
            lines.append(f"DMS: {metadata.dms}")
        if metadata.automation:
            lines.append(f"Automation: {metadata.automation}")
        for key, value in metadata.environment_triggers.items():
            rendered = ", ".join(value) if isinstance(value, list) else value
            if rendered:
                label = self.trigger_labels.get(key, key.replace("_", " ").title())
                lines.append(f"{label}: {rendered}")

        for heading, items in (
            ("COMPETITORS MENTIONED:", metadata.competitors),
            ("PAIN POINTS:", metadata.pain_points),
            ("OBJECTIONS:", metadata.objections),
        ):
            if items:
                lines.append("")
                lines.append(heading)
                lines.extend(f"- {item}" for item in items)

        if state.notes.strip():
            lines.append("")
            lines.append("ADDITIONAL NOTES:")
            lines.append(state.notes)

        return "\n".join(lines)

    def generate_scripts(self, graph: FlowGraph, path: Sequence[str]) -> str:
        """Concatenate title and script of every visited node in order.

        Revisited nodes appear once per visit. Numbering follows the path
        position; ids missing from the graph and nodes without script text
        are skipped.
        """
        scripts: List[str] = []
        for index, node_id in enumerate(path):
            node = graph.lookup(node_id)
            if node is not None and node.script:
                scripts.append(f'{index + 1}. {node.title}\n\n"{node.script}"\n')
        return "\n".join(scripts)

    def build_snapshot(self, navigator: "CallNavigator") -> Dict[str, Any]:
        """Collect a JSON-serialisable snapshot of the call."""
        state = navigator.state
        graph = navigator.graph
        return {
            "call_id": navigator.call_id,
            "exported_at": datetime.now(timezone.utc).isoformat(),
            "current_node_id": state.current_node_id,
            "conversation_path": [
                {
                    "node_id": node_id,
                    "title": node.title if node else None,
                    "type": node.type.value if node else None,
                }
                for node_id, node in (
                    (nid, graph.lookup(nid)) for nid in state.conversation_path
                )
            ],
            "metadata": state.metadata.model_dump(mode="json"),
            "notes": state.notes,
            "outcome": state.outcome.value if state.outcome else None,
        }

    def export_call(self, navigator: "CallNavigator", format: str = "summary") -> str:
        """
        Export a call to the specified format.

        Args:
            navigator: Engine holding the call state
            format: One of "summary", "scripts", "json"

        Returns:
            Exported data as string

        Raises:
            ValueError: If format is not supported
        """
        fmt = format.lower()
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"Unsupported export format: {format}")

        if fmt == "summary":
            result = self.generate_summary(navigator.state)
        elif fmt == "scripts":
            result = self.generate_scripts(
                navigator.graph, navigator.state.conversation_path
            )
        else:
            result = json.dumps(self.build_snapshot(navigator), indent=2, default=str)

        log.info(
            "call_exported",
            call_id=navigator.call_id,
            format=fmt,
            output_length=len(result),
        )
        return result
