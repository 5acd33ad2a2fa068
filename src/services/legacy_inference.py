"""Node id conventions for graphs authored before explicit metadata hints.

Older call flows encode environment and outcome information only in node ids
("ehr_epic", "disc_onbase_brainware", "call_end_info"). This module is the
back-compat shim for those graphs:

    - infer_from_node_id(): per-node inference used by metadata replay for
      nodes that carry no explicit hints (toggle: legacy_id_inference)
    - migrate_legacy_node(): one-time rewrite of a node into the prefixed id
      convention with explicit metadata hints, so the shim can be retired

Both the pre-migration ids and their prefixed replacements are recognised.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from src.domain.models.call_node import CallNode, NodeMetadata, Outcome, Response

EPIC = "Epic"
OTHER = "Other"
NONE = "None"

EHR_EPIC_IDS = frozenset({"ehr_epic", "disc_ehr_epic"})
EHR_OTHER_IDS = frozenset(
    {"ehr_other", "ehr_other_than", "disc_ehr_other", "disc_ehr_other_than"}
)
EPIC_ONLY_IDS = frozenset({"epic_only_path", "disc_epic_only"})
EHR_ONLY_IDS = frozenset({"ehr_only_path", "disc_ehr_only"})

OUTCOME_IDS: Dict[str, Outcome] = {
    "call_end_success": Outcome.MEETING_SET,
    "success_call_end": Outcome.MEETING_SET,
    "meeting_set": Outcome.MEETING_SET,
    "success_meeting_set": Outcome.MEETING_SET,
    "call_end_info": Outcome.SEND_INFO,
    "end_call_info": Outcome.SEND_INFO,
    "call_end_followup": Outcome.FOLLOW_UP,
    "end_call_followup": Outcome.FOLLOW_UP,
    "call_end_no": Outcome.NOT_INTERESTED,
    "end_call_no": Outcome.NOT_INTERESTED,
}

# Old id -> prefixed id ({type_prefix}_{topic}_{qualifier})
LEGACY_ID_MIGRATION: Dict[str, str] = {
    "opening": "opening_general",
    "response_path_1": "disc_mostly_manual",
    "response_path_1_followup": "disc_ehr_followup",
    "response_path_2": "disc_some_automated",
    "response_path_2_followup": "disc_dms_followup",
    "response_path_3": "disc_all_automated",
    "response_path_3_challenge": "disc_automation_challenge",
    "response_path_3_pivot": "pitch_automation_pivot",
    "ehr_epic": "disc_ehr_epic",
    "ehr_other": "disc_ehr_other",
    "ehr_other_than": "disc_ehr_other_than",
    "onbase_path": "disc_onbase",
    "onbase_basic": "pitch_onbase_basic",
    "onbase_pitch": "pitch_onbase",
    "onbase_brainware": "disc_onbase_brainware",
    "brainware_dissatisfied": "pitch_brainware_dissatisfied",
    "brainware_satisfied": "disc_brainware_satisfied",
    "brainware_satisfied_pivot": "pitch_brainware_satisfied",
    "epic_gallery_path": "disc_gallery",
    "gallery_planning": "disc_gallery_planning",
    "gallery_pitch": "pitch_gallery",
    "gallery_using": "disc_gallery_using",
    "gallery_complement_pitch": "pitch_gallery_complement",
    "other_dms_path": "disc_other_dms",
    "other_dms_manual": "pitch_other_dms_manual",
    "other_dms_automated": "disc_other_dms_automated",
    "other_dms_probe_ai": "disc_other_dms_probe_ai",
    "other_dms_rule_based_pitch": "pitch_other_dms_rule_based",
    "other_dms_ai_pitch": "pitch_other_dms_ai",
    "epic_only_path": "disc_epic_only",
    "epic_only_pitch": "pitch_epic_only",
    "ehr_only_path": "disc_ehr_only",
    "ehr_only_pitch": "pitch_ehr_only",
    "the_ask": "close_ask_main",
    "the_ask_soft": "close_ask_soft",
    "meeting_set": "success_meeting_set",
    "objection_not_interested": "obj_not_interested",
    "objection_timing": "obj_timing",
    "objection_timing_followup": "close_timing_followup",
    "objection_happy_current": "obj_happy_current",
    "objection_happy_current_pivot": "pitch_happy_current_pivot",
    "objection_send_info": "obj_send_info",
    "objection_send_info_persistent": "obj_send_info_persistent",
    "objection_send_info_tentative": "close_send_info_tentative",
    "objection_not_decision_maker": "obj_not_decision_maker",
    "objection_include_others": "close_include_others",
    "objection_get_referral": "disc_get_referral",
    "objection_get_contacts": "close_get_contacts",
    "objection_cost": "obj_cost",
    "objection_cost_pushback": "obj_cost_pushback",
    "objection_no_budget": "obj_no_budget",
    "objection_budget_cycle": "close_budget_cycle",
    "objection_contract": "obj_contract",
    "objection_implementing": "obj_implementing",
    "objection_waiting_gallery": "obj_waiting_gallery",
    "objection_looking_competitor": "obj_looking_competitor",
    "objection_vendor_consolidation": "obj_vendor_consolidation",
    "objection_procurement": "obj_procurement",
    "objection_change_management": "obj_change_management",
    "objection_whats_this_about": "obj_whats_this_about",
    "satisfied_customer": "end_satisfied_customer",
    "call_end_success": "success_call_end",
    "call_end_info": "end_call_info",
    "call_end_followup": "end_call_followup",
    "call_end_no": "end_call_no",
    "voicemail": "end_voicemail",
}


@dataclass
class LegacySignals:
    """What a single node id implies. None means "no signal"."""

    ehr: Optional[str] = None
    dms: Optional[str] = None
    competitors: List[str] = field(default_factory=list)
    outcome: Optional[Outcome] = None

    @property
    def is_empty(self) -> bool:
        return (
            self.ehr is None
            and self.dms is None
            and not self.competitors
            and self.outcome is None
        )


def infer_from_node_id(node_id: str, current_ehr: str = "") -> LegacySignals:
    """Infer environment and outcome signals from a node id.

    Args:
        node_id: Visited node id
        current_ehr: EHR detected so far along the path; the EHR-only
            branch only fills EHR when nothing was detected earlier

    Returns:
        LegacySignals for this node (possibly empty)
    """
    signals = LegacySignals()

    if node_id in EHR_EPIC_IDS:
        signals.ehr = EPIC
    elif node_id in EHR_OTHER_IDS:
        signals.ehr = OTHER

    if "onbase" in node_id:
        signals.dms = "OnBase"
        signals.competitors.append("OnBase")
    if "gallery" in node_id:
        # Gallery is Epic-only
        signals.dms = "Epic Gallery"
        signals.ehr = EPIC
        signals.competitors.append("Epic Gallery")
    if "other_dms" in node_id:
        signals.dms = OTHER

    if node_id in EPIC_ONLY_IDS:
        signals.ehr = EPIC
        signals.dms = NONE
    if node_id in EHR_ONLY_IDS:
        signals.dms = NONE
        if not (signals.ehr or current_ehr):
            signals.ehr = OTHER

    if "brainware" in node_id:
        signals.competitors.append("Brainware")

    signals.outcome = OUTCOME_IDS.get(node_id)
    return signals


def migrate_legacy_node(node: CallNode) -> CallNode:
    """Rewrite a legacy node into the prefixed convention with explicit hints.

    Response targets are renamed with the same mapping. The EHR-only branch
    gets an ehr_default hint, so replay of a migrated flow matches the
    id-inferred result. Existing metadata
    (competitor info, flags) is kept; inferred hints are added only where the
    node does not already declare them.
    """
    new_id = LEGACY_ID_MIGRATION.get(node.id, node.id)
    signals = infer_from_node_id(node.id)
    ehr_default = None
    if node.id in EHR_ONLY_IDS:
        # Other only applies when the path detected no EHR earlier
        ehr_default, signals.ehr = signals.ehr, None

    base = node.metadata or NodeMetadata()
    metadata: Optional[NodeMetadata] = node.metadata
    if not signals.is_empty:
        metadata = base.model_copy(
            update={
                "ehr": base.ehr or signals.ehr,
                "ehr_default": base.ehr_default or ehr_default,
                "dms": base.dms or signals.dms,
                "competitors": base.competitors or list(signals.competitors),
                "outcome": base.outcome or signals.outcome,
            }
        )

    responses = [
        Response(
            label=r.label,
            next_node=LEGACY_ID_MIGRATION.get(r.next_node, r.next_node),
            note=r.note,
        )
        for r in node.responses
    ]

    return node.model_copy(
        update={"id": new_id, "responses": responses, "metadata": metadata}
    )
