"""Row-level relational validation.

``validate_record`` checks one uploaded row against the master data snapshot
and the template's rule set and returns the issues found. Nothing is raised:
an empty list means the row is clean.

Severity policy:
  critical    missing required value, unknown entity, malformed cell,
              Start Date not before End Date, missing combined reach
  warning     entity exists but the pairing looks wrong (Sub Region/Country,
              Range/Category, Campaign/Range, Media Subtype/Media), franchise
              value on a non-franchise campaign, budget split mismatch,
              demo age range inverted
  suggestion  CPP drop year over year
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from reach_planning.config import VALIDATION_SETTINGS
from reach_planning.models.db.enums import IssueSeverity
from reach_planning.models.schemas.validation import ValidationIssue
from reach_planning.utils.text import clean, is_blank, normalize_name
from .field_validator import DATE, NUMERIC, PERCENTAGE, STRING, is_valid, parse_date, parse_number
from .master_data import MasterDataSnapshot
from .templates import ValidationTemplate

# Campaign name fragments identifying franchise (derma) brands
FRANCHISE_KEYWORDS = ("derma", "eucerin", "aquaphor", "atopia")
FRANCHISE_FIELD = "Franchise NS"

QUARTER_BUDGET_FIELDS = ("Q1 Budget", "Q2 Budget", "Q3 Budget", "Q4 Budget")

_TYPE_MESSAGES = {
    STRING: "{field} must contain valid text",
    NUMERIC: "{field} must be a valid number",
    PERCENTAGE: "{field} must be a valid percentage (0-100% or 0-1)",
    DATE: "{field} must be a valid date (formats: DD/MM/YYYY, DD-MM-YYYY, or YYYY-MM-DD)",
}
_TREND_MESSAGE = "{field} must be a valid percentage (-100% to 100% or -1 to 1)"


class _IssueCollector:
    """Accumulates issues for one row."""

    def __init__(self, row: Mapping[str, Any], index: int):
        self.row = row
        self.index = index
        self.issues: List[ValidationIssue] = []

    def value(self, column: str) -> Any:
        return self.row.get(column)

    def filled(self, column: str) -> bool:
        return not is_blank(self.row.get(column))

    def add(self, column: str, severity: IssueSeverity, message: str, current: Any = None) -> None:
        if current is None:
            current = self.row.get(column)
        self.issues.append(ValidationIssue(
            row_index=self.index,
            column_name=column,
            severity=severity,
            message=message,
            current_value="" if current is None else current,
        ))


def is_franchise_campaign(campaign: Any) -> bool:
    name = normalize_name(campaign)
    return any(keyword in name for keyword in FRANCHISE_KEYWORDS)


def _missing_entity(out: _IssueCollector, column: str, label: str, template: ValidationTemplate) -> None:
    value = out.value(column)
    if column in template.creatable_entities:
        out.add(column, IssueSeverity.WARNING,
                f'{label} "{clean(value)}" does not exist in the database and will be created on import')
    else:
        out.add(column, IssueSeverity.CRITICAL, f'{label} "{clean(value)}" does not exist in the database')


def _check_required(out: _IssueCollector, template: ValidationTemplate) -> None:
    for column in template.required_fields:
        if not out.filled(column):
            out.add(column, IssueSeverity.CRITICAL, f"{column} is required")


def _check_entities(out: _IssueCollector, snapshot: MasterDataSnapshot, template: ValidationTemplate) -> None:
    country = out.value("Country")
    if out.filled("Country") and not snapshot.has("countries", country):
        _missing_entity(out, "Country", "Country", template)

    sub_region = out.value("Sub Region")
    if out.filled("Sub Region"):
        if not snapshot.has("sub_regions", sub_region):
            _missing_entity(out, "Sub Region", "Sub Region", template)
        elif out.filled("Country"):
            expected = snapshot.country_to_sub_region.get(normalize_name(country))
            if expected and normalize_name(expected) != normalize_name(sub_region):
                out.add("Sub Region", IssueSeverity.WARNING,
                        f'Sub Region "{clean(sub_region)}" may not match Country "{clean(country)}". '
                        f'Expected: "{expected}"')

    if out.filled("BU") and not snapshot.has("business_units", out.value("BU")):
        _missing_entity(out, "BU", "Business Unit", template)

    category = out.value("Category")
    if out.filled("Category") and not snapshot.has("categories", category):
        _missing_entity(out, "Category", "Category", template)

    range_name = out.value("Range")
    if out.filled("Range"):
        if not snapshot.has("ranges", range_name):
            _missing_entity(out, "Range", "Range", template)
        elif out.filled("Category"):
            valid_ranges = snapshot.category_to_ranges.get(normalize_name(category), ())
            if valid_ranges and normalize_name(range_name) not in {normalize_name(r) for r in valid_ranges}:
                out.add("Range", IssueSeverity.WARNING,
                        f'Range "{clean(range_name)}" may not be compatible with Category "{clean(category)}". '
                        f'Valid ranges: {", ".join(valid_ranges)}')

    campaign = out.value("Campaign")
    if out.filled("Campaign"):
        if not snapshot.has("campaigns", campaign):
            _missing_entity(out, "Campaign", "Campaign", template)
        elif out.filled("Range"):
            expected_ranges = snapshot.campaign_to_range.get(normalize_name(campaign), ())
            if expected_ranges and normalize_name(range_name) not in {normalize_name(r) for r in expected_ranges}:
                out.add("Campaign", IssueSeverity.WARNING,
                        f'Campaign "{clean(campaign)}" may not be compatible with Range "{clean(range_name)}". '
                        f'Expected range: "{", ".join(expected_ranges)}"')

    media = out.value("Media")
    if out.filled("Media") and not snapshot.has("media_types", media):
        out.add("Media", IssueSeverity.CRITICAL, f'Media type "{clean(media)}" does not exist in the database')

    subtype_column = template.media_subtype_field
    subtype = out.value(subtype_column)
    if out.filled(subtype_column):
        if not snapshot.has("media_subtypes", subtype):
            _missing_entity(out, subtype_column, subtype_column, template)
        elif out.filled("Media"):
            valid_subtypes = snapshot.media_type_to_subtypes.get(normalize_name(media), ())
            if valid_subtypes and normalize_name(subtype) not in {normalize_name(s) for s in valid_subtypes}:
                out.add(subtype_column, IssueSeverity.WARNING,
                        f'{subtype_column} "{clean(subtype)}" may not be compatible with Media type "{clean(media)}". '
                        f'Valid sub types: {", ".join(valid_subtypes)}')


def _check_field_types(out: _IssueCollector, template: ValidationTemplate) -> None:
    for column, field_type in template.field_types.items():
        value = out.value(column)
        if is_blank(value):
            continue
        trend = column in template.trend_fields
        if not is_valid(field_type, value, allow_negative=trend, field_name=column,
                        copy_length_fields=template.copy_length_fields):
            message = _TREND_MESSAGE if trend and field_type == PERCENTAGE else _TYPE_MESSAGES[field_type]
            out.add(column, IssueSeverity.CRITICAL, message.format(field=column))


def _check_franchise(out: _IssueCollector) -> None:
    campaign = out.value("Campaign")
    if not out.filled("Campaign"):
        return
    franchise = is_franchise_campaign(campaign)
    has_value = out.filled(FRANCHISE_FIELD)
    if franchise and not has_value:
        out.add(FRANCHISE_FIELD, IssueSeverity.CRITICAL,
                f'Franchise NS (Actual or Projected) is required for Derma campaigns. '
                f'Campaign "{clean(campaign)}" appears to be a Derma campaign.')
    elif not franchise and has_value:
        out.add(FRANCHISE_FIELD, IssueSeverity.WARNING,
                f'Franchise NS (Actual or Projected) should only be filled for Derma campaigns. '
                f'Campaign "{clean(campaign)}" does not appear to be a Derma campaign.')


def _check_date_order(out: _IssueCollector) -> None:
    start = parse_date(out.value("Start Date"))
    end = parse_date(out.value("End Date"))
    if start is None or end is None:
        return
    if start >= end:
        out.add("End Date", IssueSeverity.CRITICAL, "End Date must be after Start Date")


def _check_cpp_trend(out: _IssueCollector) -> None:
    cpp_prev = parse_number(out.value("CPP 2024"))
    cpp_curr = parse_number(out.value("CPP 2025"))
    if cpp_prev is None or cpp_curr is None:
        return
    max_drop = float(VALIDATION_SETTINGS["cpp_max_drop_pct"])
    if cpp_curr < cpp_prev * (1 - max_drop):
        out.add("CPP 2025", IssueSeverity.SUGGESTION,
                "CPP 2025 is significantly lower than CPP 2024, please verify")


def _check_combined_reach(out: _IssueCollector, template: ValidationTemplate) -> None:
    for tv_column, digital_column, combined_column in template.combined_reach_rules:
        if out.filled(tv_column) and out.filled(digital_column) and not out.filled(combined_column):
            out.add(combined_column, IssueSeverity.CRITICAL,
                    f"{combined_column} is required when both {tv_column} and {digital_column} have values.")


def _check_budget(out: _IssueCollector) -> None:
    total = parse_number(out.value("Budget"))
    quarters = [parse_number(out.value(column)) for column in QUARTER_BUDGET_FIELDS]
    if total is None or all(q is None for q in quarters):
        return
    quarter_sum = sum(q for q in quarters if q is not None)
    tolerance = float(VALIDATION_SETTINGS["budget_tolerance"])
    if abs(total - quarter_sum) > tolerance:
        out.add("Budget", IssueSeverity.WARNING,
                f"Budget {total:,.2f} does not equal the sum of Q1-Q4 budgets ({quarter_sum:,.2f})")


def _check_age_ranges(out: _IssueCollector, template: ValidationTemplate) -> None:
    for min_column, max_column in template.age_ranges:
        low = parse_number(out.value(min_column))
        high = parse_number(out.value(max_column))
        if low is not None and high is not None and low > high:
            out.add(max_column, IssueSeverity.WARNING,
                    f"{max_column} ({high:g}) is lower than {min_column} ({low:g})")


def validate_record(
    row: Mapping[str, Any],
    index: int,
    snapshot: Optional[MasterDataSnapshot],
    template: ValidationTemplate,
) -> List[ValidationIssue]:
    """Validate one row. ``snapshot`` may be None to skip master data checks."""
    out = _IssueCollector(row, index)
    _check_required(out, template)
    if snapshot is not None:
        _check_entities(out, snapshot, template)
    _check_field_types(out, template)
    if template.franchise_rule:
        _check_franchise(out)
    _check_date_order(out)
    if template.cpp_trend_rule:
        _check_cpp_trend(out)
    _check_combined_reach(out, template)
    if template.budget_rule:
        _check_budget(out)
    _check_age_ranges(out, template)
    return out.issues


def validate_records(
    rows: List[Dict[str, Any]],
    snapshot: Optional[MasterDataSnapshot],
    template: ValidationTemplate,
    start_index: int = 0,
) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    for offset, row in enumerate(rows):
        issues.extend(validate_record(row, start_index + offset, snapshot, template))
    return issues


__all__ = [
    "FRANCHISE_KEYWORDS",
    "is_franchise_campaign",
    "validate_record",
    "validate_records",
]
