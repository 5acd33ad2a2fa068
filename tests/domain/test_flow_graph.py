"""Tests for FlowGraph lookup, classification, search and integrity checks."""

import pytest

from src.core.exceptions import FlowGraphError
from src.domain.models.call_node import TopicGroup
from src.domain.models.flow_graph import FlowGraph
from tests.flow_helpers import make_node


class TestLookup:
    def test_lookup_known_and_unknown(self, sales_graph):
        assert sales_graph.lookup("disc_1").id == "disc_1"
        assert sales_graph.lookup("nope") is None
        assert sales_graph.lookup(None) is None

    def test_container_protocol(self, sales_graph):
        assert "pitch_1" in sales_graph
        assert "missing" not in sales_graph
        assert len(sales_graph) == 13
        assert [n.id for n in sales_graph][:2] == ["opening_a", "opening_b"]

    def test_duplicate_ids_rejected(self):
        with pytest.raises(FlowGraphError):
            FlowGraph([make_node("a", "opening"), make_node("a", "discovery")])

    def test_mapping_key_must_match_id(self):
        with pytest.raises(FlowGraphError):
            FlowGraph({"other": make_node("a", "opening")})

    def test_mapping_input(self):
        graph = FlowGraph({"a": make_node("a", "opening")})
        assert graph.node_ids == ["a"]


class TestClassification:
    def test_type_predicates_are_null_safe(self, sales_graph):
        assert FlowGraph.is_opening_type(sales_graph.lookup("opening_b"))
        assert FlowGraph.is_objection_type(sales_graph.lookup("obj_2"))
        assert not FlowGraph.is_opening_type(None)
        assert not FlowGraph.is_objection_type(None)

    def test_default_opening_prefers_valid_choice(self, sales_graph):
        assert sales_graph.default_opening_id("opening_b") == "opening_b"

    def test_default_opening_falls_back_to_first(self, sales_graph):
        assert sales_graph.default_opening_id() == "opening_a"
        assert sales_graph.default_opening_id("disc_1") == "opening_a"
        assert sales_graph.default_opening_id("missing") == "opening_a"

    def test_default_opening_requires_an_opening(self):
        graph = FlowGraph([make_node("disc_1", "discovery")])
        with pytest.raises(FlowGraphError):
            graph.default_opening_id()


class TestTopics:
    def test_topic_by_membership(self, sales_graph):
        assert sales_graph.topic_for_node("obj_2").id == "objections"
        assert sales_graph.topic_for_node("close_1") is None

    def test_explicit_topic_group_id_wins(self):
        graph = FlowGraph(
            [make_node("a", "opening", topic_group_id="intro")],
            [
                TopicGroup(id="other", label="Other", nodes=["a"]),
                TopicGroup(id="intro", label="Intro", nodes=[]),
            ],
        )
        assert graph.topic_for_node("a").id == "intro"


class TestSearch:
    def test_search_is_case_insensitive(self, sales_graph):
        results = sales_graph.search("QUICK QUESTION")
        assert [n.id for n in results] == ["opening_a"]

    def test_search_matches_competitor_info(self, sales_graph):
        assert [n.id for n in sales_graph.search("no ai")] == ["pitch_1"]

    @pytest.mark.parametrize("query", ["", "   "])
    def test_blank_query_matches_nothing(self, sales_graph, query):
        assert sales_graph.search(query) == []


class TestIntegrity:
    def test_clean_graph_has_no_errors(self, sales_graph):
        errors = [i for i in sales_graph.find_issues() if i.severity == "error"]
        assert errors == []

    def test_reports_dangling_response(self):
        graph = FlowGraph([make_node("opening_a", "opening", ["ghost"])])
        codes = {(i.code, i.node_id) for i in graph.find_issues()}
        assert ("dangling_response", "opening_a") in codes

    def test_reports_missing_opening(self):
        graph = FlowGraph([make_node("end_1", "end")])
        issues = graph.find_issues()
        assert any(i.code == "no_opening" and i.severity == "error" for i in issues)

    def test_reports_unreachable_and_dead_end(self):
        graph = FlowGraph(
            [
                make_node("opening_a", "opening", ["end_1"]),
                make_node("end_1", "end"),
                make_node("orphan", "discovery"),
            ]
        )
        issues = {(i.code, i.node_id): i.severity for i in graph.find_issues()}
        assert issues[("unreachable", "orphan")] == "warning"
        assert issues[("dead_end", "orphan")] == "warning"
        assert ("dead_end", "end_1") not in issues

    def test_reports_unknown_topic_node(self):
        graph = FlowGraph(
            [make_node("opening_a", "opening")],
            [TopicGroup(id="g", label="G", nodes=["ghost"])],
        )
        assert any(i.code == "unknown_topic_node" for i in graph.find_issues())

    def test_reachable_ids_follow_responses(self, sales_graph):
        reachable = sales_graph.reachable_ids()
        assert reachable[0] == "opening_a"
        assert set(reachable) == set(sales_graph.node_ids)
