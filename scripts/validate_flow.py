#!/usr/bin/env python3
"""
Validate a call flow YAML file before serving it.

Reports dangling responses and missing openings (errors) plus unreachable
nodes, dead ends and stale topic group entries (warnings).

Usage:
    python scripts/validate_flow.py [flow_name] [--flows-dir DIR] [--strict]

Exit code is 1 when the flow has integrity errors (or any issue with
--strict), 0 otherwise.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.core.config import settings
from src.core.exceptions import FlowGraphError
from src.core.flow_loader import load_flow_graph


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Validate a call flow graph")
    parser.add_argument(
        "flow_name",
        nargs="?",
        default=settings.flow_name,
        help=f"Flow name under config/flows/ (default: {settings.flow_name})",
    )
    parser.add_argument(
        "--flows-dir",
        type=Path,
        default=None,
        help="Directory containing flow YAML files",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail on warnings as well as errors",
    )
    args = parser.parse_args()

    try:
        graph = load_flow_graph(args.flow_name, flows_dir=args.flows_dir, strict=False)
    except (FileNotFoundError, FlowGraphError) as e:
        print(f"✗ Could not load flow '{args.flow_name}': {e}")
        sys.exit(1)

    issues = graph.find_issues()
    errors = [i for i in issues if i.severity == "error"]
    warnings = [i for i in issues if i.severity == "warning"]

    print(f"Flow: {args.flow_name}")
    print(f"  Nodes: {len(graph)}")
    print(f"  Openings: {', '.join(n.id for n in graph.opening_nodes()) or '-'}")
    print(f"  Topic groups: {len(graph.topic_groups)}")
    print()

    for issue in issues:
        marker = "✗" if issue.severity == "error" else "!"
        where = f"[{issue.node_id}] " if issue.node_id else ""
        print(f"  {marker} {issue.code}: {where}{issue.message}")

    if issues:
        print()
    print(f"{len(errors)} error(s), {len(warnings)} warning(s)")

    if errors or (args.strict and warnings):
        sys.exit(1)
    print("✓ Flow is valid")


if __name__ == "__main__":
    main()
