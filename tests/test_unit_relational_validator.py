import pytest

from reach_planning.models.db.enums import IssueSeverity
from reach_planning.models.schemas.validation import ValidationSummary
from reach_planning.services.master_data import MasterDataSnapshot
from reach_planning.services.relational_validator import (
    is_franchise_campaign,
    validate_record,
    validate_records,
)
from reach_planning.services.templates import GAME_PLAN_TEMPLATE, REACH_PLANNING_TEMPLATE


@pytest.fixture()
def snapshot():
    return MasterDataSnapshot(
        countries=frozenset({"germany", "sweden"}),
        sub_regions=frozenset({"dach", "nordics"}),
        categories=frozenset({"deo", "face care"}),
        ranges=frozenset({"black & white", "dry impact", "sun protect", "anti-pigment"}),
        campaigns=frozenset({"black & white", "eucerin anti-pigment"}),
        business_units=frozenset({"nivea", "derma"}),
        media_types=frozenset({"tv", "digital"}),
        media_subtypes=frozenset({"open tv", "paid tv", "social"}),
        pm_types=frozenset({"programmatic"}),
        financial_cycles=frozenset({"fc05 2025"}),
        country_to_sub_region={"germany": "DACH", "sweden": "Nordics"},
        category_to_ranges={"deo": ("Black & White", "Dry Impact"), "face care": ("Anti-Pigment",)},
        campaign_to_range={"black & white": ("Black & White",), "eucerin anti-pigment": ("Anti-Pigment",)},
        media_type_to_subtypes={"tv": ("Open TV", "Paid TV"), "digital": ("Social",)},
    )


def _by_column(issues):
    return {issue.column_name: issue for issue in issues}


def test_clean_row_has_no_issues(snapshot, reach_row):
    assert validate_record(reach_row(), 0, snapshot, REACH_PLANNING_TEMPLATE) == []


def test_names_compare_trimmed_and_case_insensitive(snapshot, reach_row):
    row = reach_row({"Country": "  GERMANY ", "Range": "black  &  white", "Campaign": "Black & white"})
    assert validate_record(row, 0, snapshot, REACH_PLANNING_TEMPLATE) == []


def test_missing_required_fields_are_critical(snapshot, reach_row):
    issues = validate_record(reach_row({"Campaign": "", "Country": None}), 3, snapshot, REACH_PLANNING_TEMPLATE)
    by_column = _by_column(issues)
    assert by_column["Campaign"].severity == IssueSeverity.CRITICAL
    assert by_column["Campaign"].message == "Campaign is required"
    assert by_column["Country"].row_index == 3


def test_unknown_entity_is_critical(snapshot, reach_row):
    issues = validate_record(reach_row({"Country": "Atlantis"}), 0, snapshot, REACH_PLANNING_TEMPLATE)
    country = _by_column(issues)["Country"]
    assert country.severity == IssueSeverity.CRITICAL
    assert country.message == 'Country "Atlantis" does not exist in the database'


def test_range_category_mismatch_is_only_a_warning(snapshot, reach_row):
    # Sun Protect exists but is not linked to Deo; the campaign pairing also looks off
    issues = validate_record(reach_row({"Range": "Sun Protect"}), 0, snapshot, REACH_PLANNING_TEMPLATE)
    by_column = _by_column(issues)
    assert by_column["Range"].severity == IssueSeverity.WARNING
    assert "may not be compatible with Category" in by_column["Range"].message
    assert by_column["Campaign"].severity == IssueSeverity.WARNING
    assert all(issue.severity != IssueSeverity.CRITICAL for issue in issues)


def test_sub_region_country_mismatch_is_a_warning(snapshot, reach_row):
    issues = validate_record(reach_row({"Sub Region": "Nordics"}), 0, snapshot, REACH_PLANNING_TEMPLATE)
    sub_region = _by_column(issues)["Sub Region"]
    assert sub_region.severity == IssueSeverity.WARNING
    assert 'Expected: "DACH"' in sub_region.message


def test_cpp_drop_beyond_threshold_is_a_suggestion(snapshot, reach_row):
    issues = validate_record(reach_row({"CPP 2024": 10, "CPP 2025": 7}), 0, snapshot, REACH_PLANNING_TEMPLATE)
    assert len(issues) == 1
    assert issues[0].column_name == "CPP 2025"
    assert issues[0].severity == IssueSeverity.SUGGESTION


def test_cpp_drop_within_threshold_is_accepted(snapshot, reach_row):
    issues = validate_record(reach_row({"CPP 2024": 10, "CPP 2025": 8.5}), 0, snapshot, REACH_PLANNING_TEMPLATE)
    assert issues == []


def test_end_date_before_start_date_is_critical(snapshot, reach_row):
    row = reach_row({"Start Date": "2025-09-01", "End Date": "2025-08-01"})
    issues = validate_record(row, 0, snapshot, REACH_PLANNING_TEMPLATE)
    assert len(issues) == 1
    assert issues[0].column_name == "End Date"
    assert issues[0].severity == IssueSeverity.CRITICAL
    assert issues[0].message == "End Date must be after Start Date"


def test_malformed_cells_use_type_messages(snapshot, reach_row):
    row = reach_row({"TV R1+": "lots", "TV Target Size": "many", "Start Date": "2025/31/12"})
    by_column = _by_column(validate_record(row, 0, snapshot, REACH_PLANNING_TEMPLATE))
    assert by_column["TV R1+"].message == "TV R1+ must be a valid percentage (0-100% or 0-1)"
    assert by_column["TV Target Size"].message == "TV Target Size must be a valid number"
    assert by_column["Start Date"].message.startswith("Start Date must be a valid date")


def test_reach_level_checks_accept_negative_gaps(snapshot, reach_row):
    row = reach_row({"TV Reach Level Check": "-5%", "Combined Reach Level Check": "-150%"})
    by_column = _by_column(validate_record(row, 0, snapshot, REACH_PLANNING_TEMPLATE))
    assert "TV Reach Level Check" not in by_column
    assert by_column["Combined Reach Level Check"].message == (
        "Combined Reach Level Check must be a valid percentage (-100% to 100% or -1 to 1)"
    )


def test_franchise_campaign_requires_franchise_ns(snapshot, reach_row):
    row = reach_row({"Category": "Face Care", "Range": "Anti-Pigment", "Campaign": "Eucerin Anti-Pigment"})
    franchise = _by_column(validate_record(row, 0, snapshot, REACH_PLANNING_TEMPLATE))["Franchise NS"]
    assert franchise.severity == IssueSeverity.CRITICAL
    assert "appears to be a Derma campaign" in franchise.message


def test_franchise_ns_on_regular_campaign_is_a_warning(snapshot, reach_row):
    franchise = _by_column(
        validate_record(reach_row({"Franchise NS": "Actual"}), 0, snapshot, REACH_PLANNING_TEMPLATE)
    )["Franchise NS"]
    assert franchise.severity == IssueSeverity.WARNING


def test_is_franchise_campaign_keywords():
    assert is_franchise_campaign("EUCERIN Hyaluron")
    assert is_franchise_campaign("Aquaphor Repair")
    assert not is_franchise_campaign("Black & White")


def test_combined_reach_required_when_tv_and_digital_reach_present(snapshot, reach_row):
    row = reach_row({"Digital R1+": "30%"})
    combined = _by_column(validate_record(row, 0, snapshot, REACH_PLANNING_TEMPLATE))["Planned Combined Reach"]
    assert combined.severity == IssueSeverity.CRITICAL
    assert combined.message == "Planned Combined Reach is required when both TV R1+ and Digital R1+ have values."


def test_inverted_age_range_is_a_warning(snapshot, reach_row):
    age = _by_column(
        validate_record(reach_row({"TV Demo Min. Age": 54, "TV Demo Max. Age": 25}), 0, snapshot, REACH_PLANNING_TEMPLATE)
    )["TV Demo Max. Age"]
    assert age.severity == IssueSeverity.WARNING


def test_game_plan_template_downgrades_creatable_entities(snapshot, game_plan_row):
    row = game_plan_row({"Range": "Hydra Boost", "Campaign": "Hydra Boost Launch", "Media Subtype": "Cinema"})
    by_column = _by_column(validate_record(row, 0, snapshot, GAME_PLAN_TEMPLATE))
    for column in ("Range", "Campaign", "Media Subtype"):
        assert by_column[column].severity == IssueSeverity.WARNING
        assert "will be created on import" in by_column[column].message


def test_game_plan_unknown_media_type_stays_critical(snapshot, game_plan_row):
    media = _by_column(validate_record(game_plan_row({"Media": "Radio"}), 0, snapshot, GAME_PLAN_TEMPLATE))["Media"]
    assert media.severity == IssueSeverity.CRITICAL


def test_budget_must_equal_quarter_split(snapshot, game_plan_row):
    assert validate_record(game_plan_row(), 0, snapshot, GAME_PLAN_TEMPLATE) == []
    budget = _by_column(
        validate_record(game_plan_row({"Budget": 5000}), 0, snapshot, GAME_PLAN_TEMPLATE)
    )["Budget"]
    assert budget.severity == IssueSeverity.WARNING


def test_validate_records_offsets_row_indexes_and_summary(snapshot, reach_row):
    rows = [reach_row(), reach_row({"Country": "Atlantis"}), reach_row({"CPP 2024": 10, "CPP 2025": 7})]
    issues = validate_records(rows, snapshot, REACH_PLANNING_TEMPLATE, start_index=500)
    assert {issue.row_index for issue in issues} == {501, 502}
    summary = ValidationSummary.from_issues(issues)
    assert summary.critical == 1
    assert summary.suggestion == 1
    assert summary.unique_rows == 2
    assert not summary.can_import
