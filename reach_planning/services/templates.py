"""Validation templates.

One validation pipeline serves every upload kind; what differs between them
(required columns, field types, conditional TV / Digital field sets, which
business rules apply) is declared here and selected by template id.

``FIELD_MAPPING`` / ``GAME_PLAN_FIELD_MAPPING`` translate upload headers into
the internal identifiers the CSV collaborator and the UI agree on.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, Tuple

from reach_planning.exceptions import UnknownTemplate
from reach_planning.models.db.enums import TemplateId
from .field_validator import STRING, NUMERIC, PERCENTAGE, DATE, COPY_LENGTH_FIELDS

# Header -> internal field id for reach sufficiency uploads
FIELD_MAPPING: Dict[str, str] = {
    "Last Update": "lastUpdate",
    "Sub Region": "subRegion",
    "Country": "country",
    "BU": "bu",
    "Category": "category",
    "Range": "range",
    "Campaign": "campaign",
    "Franchise NS": "franchiseNs",
    "Campaign Socio-Demo Target": "campaignSocioDemoTarget",
    "Total Country Population On Target": "totalCountryPopulationOnTarget",
    "TV Demo Gender": "tvDemoGender",
    "TV Demo Min. Age": "tvDemoMinAge",
    "TV Demo Max. Age": "tvDemoMaxAge",
    "TV SEL": "tvSel",
    "TV Copy Length": "tvCopyLength",
    "TV Target Size": "tvTargetSize",
    "WOA Open TV": "woaOpenTv",
    "WOA Paid TV": "woaPaidTv",
    "Total TRPs": "totalTrps",
    "TV R1+": "tvR1Plus",
    "TV R3+": "tvR3Plus",
    "TV Ideal Reach": "tvIdealReach",
    "CPP 2024": "cpp2024",
    "CPP 2025": "cpp2025",
    "Is Digital target the same than TV?": "isDigitalTargetSameAsTv",
    "Digital Demo Gender": "digitalDemoGender",
    "Digital Demo Min. Age": "digitalDemoMinAge",
    "Digital Demo Max. Age": "digitalDemoMaxAge",
    "Digital SEL": "digitalSel",
    "Digital Target": "digitalTarget",
    "Digital Target Size": "digitalTargetSize",
    "WOA PM FF": "woaPmFf",
    "WOA Influencers Amplification": "woaInfluencersAmplification",
    "Digital R1+": "digitalR1Plus",
    "Digital R3+": "digitalR3Plus",
    "Digital Ideal Reach": "digitalIdealReach",
    "Planned Combined Reach": "plannedCombinedReach",
    "Combined Ideal Reach": "combinedIdealReach",
    "Digital Reach Level Check": "digitalReachLevelCheck",
    "TV Reach Level Check": "tvReachLevelCheck",
    "Combined Reach Level Check": "combinedReachLevelCheck",
    "Start Date": "startDate",
    "End Date": "endDate",
    "Media": "media",
    "Media Sub Type": "mediaSubType",
}

# Header -> internal field id for game plan uploads
GAME_PLAN_FIELD_MAPPING: Dict[str, str] = {
    "Last Update": "lastUpdate",
    "Sub Region": "subRegion",
    "Country": "country",
    "BU": "bu",
    "Category": "category",
    "Range": "range",
    "Campaign": "campaign",
    "Media": "media",
    "Media Subtype": "mediaSubtype",
    "PM Type": "pmType",
    "Start Date": "startDate",
    "End Date": "endDate",
    "Budget": "totalBudget",
    "Q1 Budget": "q1Budget",
    "Q2 Budget": "q2Budget",
    "Q3 Budget": "q3Budget",
    "Q4 Budget": "q4Budget",
    "Total TRPs": "totalTrps",
    "Reach 1+": "reach1Plus",
    "Reach 3+": "reach3Plus",
    "Target Reach": "reach1Plus",
    "Current Reach": "reach3Plus",
    "Total WOA": "totalWoa",
    "Weeks Off Air": "weeksOffAir",
    "Playbook ID": "playbookId",
}

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_attribute(field_id: str) -> str:
    """``tvR1Plus`` -> ``tv_r1_plus`` (model attribute name)."""
    return _CAMEL_BOUNDARY.sub("_", field_id).lower()


@dataclass(frozen=True)
class ValidationTemplate:
    """Rule set for one upload kind."""
    template_id: str
    field_mapping: Dict[str, str]
    required_fields: Tuple[str, ...]
    field_types: Dict[str, str]
    media_subtype_field: str
    copy_length_fields: FrozenSet[str] = COPY_LENGTH_FIELDS
    trend_fields: FrozenSet[str] = frozenset()
    tv_fields: Tuple[str, ...] = ()
    digital_fields: Tuple[str, ...] = ()
    digital_demo_fields: Tuple[str, ...] = ()
    digital_same_as_tv_field: str | None = None
    # (tv column, digital column, combined column that becomes mandatory)
    combined_reach_rules: Tuple[Tuple[str, str, str], ...] = ()
    # (min age column, max age column)
    age_ranges: Tuple[Tuple[str, str], ...] = ()
    # Entities the importer creates on the fly: a miss is a warning, not critical
    creatable_entities: FrozenSet[str] = frozenset()
    franchise_rule: bool = False
    cpp_trend_rule: bool = False
    budget_rule: bool = False
    cross_reference: bool = False

    def columns_of_type(self, field_type: str) -> list[str]:
        return [name for name, kind in self.field_types.items() if kind == field_type]


TV_FIELDS: Tuple[str, ...] = (
    "TV Copy Length",
    "TV Target Size",
    "TV R1+",
    "TV R3+",
    "TV Ideal Reach",
    "CPP 2024",
    "CPP 2025",
)

DIGITAL_FIELDS: Tuple[str, ...] = (
    "Digital Target Size",
    "Digital R1+",
    "Digital Ideal Reach",
)

DIGITAL_DEMO_FIELDS: Tuple[str, ...] = (
    "Digital Demo Gender",
    "Digital Demo Min. Age",
    "Digital Demo Max. Age",
    "Digital SEL",
)

REACH_PLANNING_TEMPLATE = ValidationTemplate(
    template_id=TemplateId.REACH_PLANNING.value,
    field_mapping=FIELD_MAPPING,
    required_fields=("Last Update", "Sub Region", "Country", "Category", "Range", "Campaign"),
    field_types={
        **{name: STRING for name in (
            "Last Update", "Sub Region", "Country", "BU", "Category", "Range", "Campaign",
            "Franchise NS", "Campaign Socio-Demo Target", "TV Copy Length", "Digital Target",
            "TV Demo Gender", "TV SEL", "Digital Demo Gender", "Digital SEL",
            "Media", "Media Sub Type",
        )},
        **{name: NUMERIC for name in (
            "Total Country Population On Target", "TV Target Size", "WOA Open TV", "WOA Paid TV",
            "Total TRPs", "CPP 2024", "CPP 2025", "Digital Target Size", "WOA PM FF",
            "WOA Influencers Amplification", "TV Demo Min. Age", "TV Demo Max. Age",
            "Digital Demo Min. Age", "Digital Demo Max. Age",
        )},
        **{name: PERCENTAGE for name in (
            "TV R1+", "TV R3+", "TV Ideal Reach", "Digital R1+", "Digital R3+", "Digital Ideal Reach",
            "Planned Combined Reach", "Combined Ideal Reach",
            "Digital Reach Level Check", "TV Reach Level Check", "Combined Reach Level Check",
        )},
        "Start Date": DATE,
        "End Date": DATE,
    },
    media_subtype_field="Media Sub Type",
    # Level checks are planned-minus-ideal gaps and may be negative
    trend_fields=frozenset({"Digital Reach Level Check", "TV Reach Level Check", "Combined Reach Level Check"}),
    tv_fields=TV_FIELDS,
    digital_fields=DIGITAL_FIELDS,
    digital_demo_fields=DIGITAL_DEMO_FIELDS,
    digital_same_as_tv_field="Is Digital target the same than TV?",
    combined_reach_rules=(
        ("TV R1+", "Digital R1+", "Planned Combined Reach"),
        ("TV Ideal Reach", "Digital Ideal Reach", "Combined Ideal Reach"),
    ),
    age_ranges=(
        ("TV Demo Min. Age", "TV Demo Max. Age"),
        ("Digital Demo Min. Age", "Digital Demo Max. Age"),
    ),
    franchise_rule=True,
    cpp_trend_rule=True,
    cross_reference=True,
)

GAME_PLAN_TEMPLATE = ValidationTemplate(
    template_id=TemplateId.GAME_PLANS.value,
    field_mapping=GAME_PLAN_FIELD_MAPPING,
    required_fields=(
        "Campaign", "Media", "Media Subtype", "Start Date", "End Date",
        "Budget", "Country", "Category", "Range",
    ),
    field_types={
        **{name: STRING for name in (
            "Last Update", "Sub Region", "Country", "BU", "Category", "Range", "Campaign",
            "Media", "Media Subtype", "PM Type",
        )},
        **{name: NUMERIC for name in (
            "Budget", "Q1 Budget", "Q2 Budget", "Q3 Budget", "Q4 Budget",
            "Total TRPs", "Total WOA", "Weeks Off Air",
        )},
        **{name: PERCENTAGE for name in ("Reach 1+", "Reach 3+", "Target Reach", "Current Reach")},
        "Start Date": DATE,
        "End Date": DATE,
    },
    media_subtype_field="Media Subtype",
    creatable_entities=frozenset({"Range", "Campaign", "Media Subtype"}),
    budget_rule=True,
)

TEMPLATES: Dict[str, ValidationTemplate] = {
    REACH_PLANNING_TEMPLATE.template_id: REACH_PLANNING_TEMPLATE,
    GAME_PLAN_TEMPLATE.template_id: GAME_PLAN_TEMPLATE,
}


def get_template(template_id: str) -> ValidationTemplate:
    try:
        return TEMPLATES[template_id]
    except KeyError:
        raise UnknownTemplate(template_id, sorted(TEMPLATES)) from None


__all__ = [
    "FIELD_MAPPING",
    "GAME_PLAN_FIELD_MAPPING",
    "TV_FIELDS",
    "DIGITAL_FIELDS",
    "DIGITAL_DEMO_FIELDS",
    "ValidationTemplate",
    "REACH_PLANNING_TEMPLATE",
    "GAME_PLAN_TEMPLATE",
    "TEMPLATES",
    "get_template",
    "to_attribute",
]
