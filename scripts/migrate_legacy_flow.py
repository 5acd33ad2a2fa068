#!/usr/bin/env python3
"""
Migrate a legacy call flow to prefixed node ids with explicit metadata hints.

Legacy flows name nodes "response_path_1", "ehr_epic", "call_end_info" and
rely on node id inference for EHR / DMS / competitors / outcome. This script
renames every node (and every response target) to the
{type_prefix}_{topic}_{qualifier} convention and writes the inferred signals
into node metadata, so legacy_id_inference can be switched off.

Usage:
    python scripts/migrate_legacy_flow.py <input.yaml> <output.yaml>
"""

import argparse
import sys
from pathlib import Path

import yaml

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.core.logging import configure_logging

configure_logging()

from src.core.flow_loader import load_flow_graph_from_dict
from src.domain.models.call_node import TopicGroup
from src.services.legacy_inference import LEGACY_ID_MIGRATION, migrate_legacy_node


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Migrate a legacy call flow")
    parser.add_argument("input", type=Path, help="Legacy flow YAML")
    parser.add_argument("output", type=Path, help="Where to write the migrated flow")
    args = parser.parse_args()

    data = yaml.safe_load(args.input.read_text()) or {}
    graph = load_flow_graph_from_dict(data, source=str(args.input), strict=False)

    migrated = [migrate_legacy_node(node) for node in graph]
    renamed = sum(1 for node in graph if node.id in LEGACY_ID_MIGRATION)

    topic_groups = [
        TopicGroup(
            id=group.id,
            label=group.label,
            nodes=[LEGACY_ID_MIGRATION.get(n, n) for n in group.nodes],
        )
        for group in graph.topic_groups
    ]

    output = {k: v for k, v in data.items() if k not in ("nodes", "topic_groups")}
    if topic_groups:
        output["topic_groups"] = [g.model_dump() for g in topic_groups]
    output["nodes"] = {
        node.id: node.model_dump(
            mode="json", by_alias=True, exclude_none=True, exclude={"id"}
        )
        for node in migrated
    }

    # Validate the result before writing it
    new_graph = load_flow_graph_from_dict(output, source=str(args.output), strict=False)
    errors = [i for i in new_graph.find_issues() if i.severity == "error"]

    args.output.parent.mkdir(parents=True, exist_ok=True)
    with open(args.output, "w") as f:
        yaml.safe_dump(output, f, sort_keys=False, allow_unicode=True)

    print(f"✓ Migrated {len(migrated)} nodes ({renamed} renamed)")
    print(f"✓ Written to {args.output}")
    if errors:
        print(f"✗ {len(errors)} integrity error(s) remain; run scripts/validate_flow.py")
        sys.exit(1)


if __name__ == "__main__":
    main()
