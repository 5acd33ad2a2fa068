"""Flow graph loader for call flow YAML files.

Loads a call flow definition from config/flows/{name}.yaml (or from an
already-parsed dict, e.g. content fetched from a script store), validates it
with Pydantic and builds a FlowGraph. Graphs are cached after first load.

File layout:

    id: default
    name: Cold call
    topic_groups:
      - id: discovery
        label: Discovery
        nodes: [disc_mostly_manual, disc_ehr_followup]
    nodes:
      opening_general:          # key is the node id ("id" may be omitted)
        type: opening
        title: Opening Script
        script: ...
        responses:
          - label: Mostly manual
            nextNode: disc_mostly_manual

``nodes`` may also be a list of node mappings that each carry an ``id``.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
import yaml
from pydantic import ValidationError as PydanticValidationError

from src.core.config import callflow_config, resolve_flows_dir, settings
from src.core.exceptions import FlowGraphError
from src.domain.models.call_node import CallNode, TopicGroup
from src.domain.models.flow_graph import FlowGraph

log = structlog.get_logger(__name__)

# Module-level cache (flow content does not change within a process)
_cache: Dict[str, FlowGraph] = {}


def load_flow_graph(
    name: Optional[str] = None,
    flows_dir: Optional[Path] = None,
    strict: Optional[bool] = None,
) -> FlowGraph:
    """Load a flow graph from YAML. Cached after first load.

    Args:
        name: Flow name, e.g. "default" (default: settings.flow_name)
        flows_dir: Override config/flows/ path (mainly for testing)
        strict: Refuse graphs with integrity errors
            (default: callflow_config.strict_validation)

    Returns:
        Validated FlowGraph

    Raises:
        FileNotFoundError: Flow file missing
        FlowGraphError: Invalid structure, duplicate ids, or (strict) errors
    """
    name = name or settings.flow_name
    if flows_dir is None:
        flows_dir = resolve_flows_dir()

    path = Path(flows_dir) / f"{name}.yaml"
    cache_key = str(path.resolve())
    if cache_key in _cache:
        return _cache[cache_key]

    if not path.exists():
        raise FileNotFoundError(f"Flow graph not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise FlowGraphError(f"Invalid YAML in {path}: {e}") from e

    graph = load_flow_graph_from_dict(data or {}, source=str(path), strict=strict)
    _cache[cache_key] = graph
    return graph


def load_flow_graph_from_dict(
    data: Dict[str, Any],
    source: str = "<dict>",
    strict: Optional[bool] = None,
) -> FlowGraph:
    """Build a FlowGraph from parsed content.

    Args:
        data: Mapping with "nodes" and optional "topic_groups"
        source: Label used in logs and error messages
        strict: Refuse graphs with integrity errors

    Raises:
        FlowGraphError: Invalid structure, duplicate ids, or (strict) errors
    """
    if strict is None:
        strict = callflow_config.strict_validation

    if not isinstance(data, dict):
        raise FlowGraphError(f"Flow graph {source} must be a mapping")

    raw_nodes = data.get("nodes")
    if not raw_nodes:
        raise FlowGraphError(f"Flow graph {source} defines no nodes")

    try:
        nodes = _parse_nodes(raw_nodes)
        topic_groups = [
            TopicGroup.model_validate(g) for g in data.get("topic_groups") or []
        ]
    except PydanticValidationError as e:
        raise FlowGraphError(f"Invalid flow graph {source}: {e}") from e

    graph = FlowGraph(nodes, topic_groups)

    issues = graph.find_issues()
    errors = [i for i in issues if i.severity == "error"]
    for issue in issues:
        log.warning(
            "flow_graph_issue",
            source=source,
            severity=issue.severity,
            code=issue.code,
            node_id=issue.node_id,
            message=issue.message,
        )

    if strict and errors:
        raise FlowGraphError(
            f"Flow graph {source} has {len(errors)} integrity error(s): "
            + "; ".join(e.message for e in errors[:5])
        )

    log.info(
        "flow_graph_loaded",
        source=source,
        node_count=len(graph),
        opening_count=len(graph.opening_nodes()),
        errors=len(errors),
        warnings=len(issues) - len(errors),
    )
    return graph


def _parse_nodes(raw_nodes: Any) -> List[CallNode]:
    if isinstance(raw_nodes, dict):
        nodes = []
        for key, body in raw_nodes.items():
            body = dict(body or {})
            node_id = body.setdefault("id", key)
            if node_id != key:
                raise FlowGraphError(
                    f"Node key '{key}' does not match node id '{node_id}'"
                )
            nodes.append(CallNode.model_validate(body))
        return nodes

    if isinstance(raw_nodes, list):
        return [CallNode.model_validate(body) for body in raw_nodes]

    raise FlowGraphError("'nodes' must be a mapping or a list")


def clear_cache() -> None:
    """Clear the flow graph cache (mainly for testing)."""
    _cache.clear()
