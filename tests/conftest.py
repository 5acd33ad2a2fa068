"""
Shared test fixtures for the call navigator.

Graphs are built in code with make_node() so each test can see the exact
shape it navigates; the shipped YAML flow is covered by the loader and API
tests.
"""

import pytest

from src.core import flow_loader
from src.domain.models.call_node import TopicGroup
from src.domain.models.flow_graph import FlowGraph
from src.services.call_navigator import CallNavigator
from src.services.export_service import ExportService
from src.services.metadata_replay import MetadataReplayer
from tests.flow_helpers import make_node


@pytest.fixture
def sales_graph() -> FlowGraph:
    """Small sales flow with two openings, an objection chain and endings."""
    nodes = [
        make_node(
            "opening_a",
            "opening",
            ["disc_1", "obj_1"],
            script="Hi, quick question about your documents.",
        ),
        make_node("opening_b", "opening", ["disc_1"]),
        make_node("disc_1", "discovery", ["disc_ehr_epic", "obj_1", "opening_b"]),
        make_node("disc_ehr_epic", "discovery", ["disc_onbase", "disc_gallery"]),
        make_node("disc_onbase", "discovery", ["disc_onbase_brainware", "pitch_1"]),
        make_node("disc_onbase_brainware", "discovery", ["pitch_1"]),
        make_node("disc_gallery", "discovery", ["pitch_1"]),
        make_node(
            "pitch_1",
            "pitch",
            ["close_1", "obj_1"],
            metadata={"competitorInfo": "OnBase has no AI for indexing"},
        ),
        make_node("obj_1", "objection", ["obj_2", "close_1"]),
        make_node("obj_2", "objection", ["close_1"]),
        make_node("close_1", "close", ["success_meeting_set", "end_call_info"]),
        make_node("success_meeting_set", "success", [], title="Meeting Set"),
        make_node("end_call_info", "end", [], title="Sending Info"),
    ]
    groups = [
        TopicGroup(id="discovery", label="Discovery", nodes=["disc_1", "disc_ehr_epic"]),
        TopicGroup(id="objections", label="Objections", nodes=["obj_1", "obj_2"]),
    ]
    return FlowGraph(nodes, groups)


@pytest.fixture
def navigator(sales_graph) -> CallNavigator:
    """Navigator on sales_graph starting at opening_a, legacy inference on."""
    return CallNavigator(
        sales_graph,
        opening_id="opening_a",
        replayer=MetadataReplayer(sales_graph, legacy_inference=True),
        export_service=ExportService(),
        call_id="test-call",
    )


@pytest.fixture
def flow_yaml() -> str:
    """Minimal flow file content in the on-disk layout."""
    return """
id: sample
name: Sample
topic_groups:
  - id: discovery
    label: Discovery
    nodes: [disc_manual]
nodes:
  opening_general:
    type: opening
    title: Opening
    script: Hello
    responses:
      - label: Manual
        nextNode: disc_manual
  disc_manual:
    type: discovery
    title: Manual Work
    script: What takes the most time?
    keyPoints: [Capture volume]
    metadata:
      triggers:
        document_volume: High
    responses:
      - label: Done
        nextNode: end_call_no
  end_call_no:
    type: end
    title: Not Interested
    script: Thanks for your time.
"""


@pytest.fixture(autouse=True)
def clear_flow_cache():
    """Loader cache is per-path; keep tests independent."""
    flow_loader.clear_cache()
    yield
    flow_loader.clear_cache()
