"""Tests for node id inference and legacy flow migration."""

import pytest

from src.domain.models.call_node import CallNode, Outcome
from src.domain.models.flow_graph import FlowGraph
from src.services.legacy_inference import (
    LEGACY_ID_MIGRATION,
    OUTCOME_IDS,
    infer_from_node_id,
    migrate_legacy_node,
)
from src.services.metadata_replay import MetadataReplayer


class TestInferFromNodeId:
    @pytest.mark.parametrize("node_id", ["ehr_epic", "disc_ehr_epic"])
    def test_epic(self, node_id):
        assert infer_from_node_id(node_id).ehr == "Epic"

    @pytest.mark.parametrize(
        "node_id", ["ehr_other", "ehr_other_than", "disc_ehr_other", "disc_ehr_other_than"]
    )
    def test_other_ehr(self, node_id):
        assert infer_from_node_id(node_id).ehr == "Other"

    @pytest.mark.parametrize("node_id", ["onbase_path", "disc_onbase", "pitch_onbase"])
    def test_onbase(self, node_id):
        signals = infer_from_node_id(node_id)
        assert signals.dms == "OnBase"
        assert signals.competitors == ["OnBase"]

    def test_brainware_with_onbase(self):
        signals = infer_from_node_id("onbase_brainware")
        assert signals.competitors == ["OnBase", "Brainware"]

    def test_brainware_alone(self):
        signals = infer_from_node_id("brainware_dissatisfied")
        assert signals.dms is None
        assert signals.competitors == ["Brainware"]

    def test_gallery_sets_epic(self):
        signals = infer_from_node_id("epic_gallery_path")
        assert signals.ehr == "Epic"
        assert signals.dms == "Epic Gallery"
        assert signals.competitors == ["Epic Gallery"]

    def test_other_dms(self):
        assert infer_from_node_id("other_dms_manual").dms == "Other"

    @pytest.mark.parametrize("node_id", ["epic_only_path", "disc_epic_only"])
    def test_epic_only(self, node_id):
        signals = infer_from_node_id(node_id)
        assert signals.ehr == "Epic"
        assert signals.dms == "None"

    def test_ehr_only_without_prior_ehr(self):
        signals = infer_from_node_id("ehr_only_path")
        assert signals.ehr == "Other"
        assert signals.dms == "None"

    def test_ehr_only_with_prior_ehr(self):
        signals = infer_from_node_id("disc_ehr_only", current_ehr="Cerner")
        assert signals.ehr is None
        assert signals.dms == "None"

    @pytest.mark.parametrize("node_id,outcome", sorted(OUTCOME_IDS.items()))
    def test_outcomes(self, node_id, outcome):
        assert infer_from_node_id(node_id).outcome == outcome

    def test_plain_node_has_no_signals(self):
        assert infer_from_node_id("pitch_full").is_empty


class TestMigrateLegacyNode:
    def test_renames_id_and_targets(self):
        node = CallNode.model_validate(
            {
                "id": "response_path_1_followup",
                "type": "discovery",
                "title": "Get EHR Info",
                "responses": [
                    {"label": "Epic", "nextNode": "ehr_epic"},
                    {"label": "Custom", "nextNode": "custom_node"},
                ],
            }
        )

        migrated = migrate_legacy_node(node)

        assert migrated.id == "disc_ehr_followup"
        assert migrated.next_node_ids == ["disc_ehr_epic", "custom_node"]
        assert migrated.metadata is None

    def test_adds_explicit_hints(self):
        node = CallNode(
            id="onbase_brainware",
            type="discovery",
            title="OnBase + Brainware",
            metadata={"competitorInfo": "Hyland add-on"},
        )

        migrated = migrate_legacy_node(node)

        assert migrated.id == "disc_onbase_brainware"
        assert migrated.metadata.dms == "OnBase"
        assert migrated.metadata.competitors == ["OnBase", "Brainware"]
        assert migrated.metadata.competitor_info == "Hyland add-on"

    def test_outcome_hint(self):
        node = CallNode(id="call_end_info", type="end", title="Sending Info")
        migrated = migrate_legacy_node(node)
        assert migrated.id == "end_call_info"
        assert migrated.metadata.outcome == Outcome.SEND_INFO

    def test_ehr_only_gets_default_not_static_ehr(self):
        node = CallNode(id="ehr_only_path", type="discovery", title="EHR Only")
        migrated = migrate_legacy_node(node)
        assert migrated.metadata.ehr is None
        assert migrated.metadata.ehr_default == "Other"
        assert migrated.metadata.dms == "None"

    @pytest.mark.parametrize(
        "legacy_path",
        [
            ["opening", "ehr_only_path"],
            ["opening", "ehr_epic", "ehr_only_path"],
            ["opening", "ehr_other", "onbase_brainware", "call_end_no"],
        ],
    )
    def test_migrated_flow_replays_like_legacy_flow(self, legacy_path):
        """A migrated flow needs no id inference to derive the same metadata."""
        legacy_graph = FlowGraph(
            [
                CallNode(id="opening", type="opening", title="Opening"),
                CallNode(id="ehr_epic", type="discovery", title="Epic"),
                CallNode(id="ehr_other", type="discovery", title="Other EHR"),
                CallNode(id="ehr_only_path", type="discovery", title="EHR Only"),
                CallNode(id="onbase_brainware", type="discovery", title="OnBase"),
                CallNode(id="call_end_no", type="end", title="No"),
            ]
        )
        migrated_graph = FlowGraph(
            [migrate_legacy_node(node) for node in legacy_graph.nodes.values()]
        )
        migrated_path = [LEGACY_ID_MIGRATION[node_id] for node_id in legacy_path]

        legacy = MetadataReplayer(legacy_graph, legacy_inference=True).replay(legacy_path)
        migrated = MetadataReplayer(migrated_graph, legacy_inference=False).replay(
            migrated_path
        )

        assert migrated == legacy

    def test_existing_hints_win(self):
        node = CallNode(
            id="ehr_epic",
            type="discovery",
            title="Epic",
            metadata={"ehr": "Epic Hyperdrive"},
        )
        assert migrate_legacy_node(node).metadata.ehr == "Epic Hyperdrive"

    def test_migration_targets_are_unique(self):
        targets = list(LEGACY_ID_MIGRATION.values())
        assert len(targets) == len(set(targets))
