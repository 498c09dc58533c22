"""Cross-reference validation of sufficiency rows against committed game plans.

For the selected country + financial cycle the media types planned per
campaign decide which TV / Digital columns a row must (or must not) fill:

1. campaign without any game plan -> critical on ``Campaign``, row skipped
2. TV columns: critical when TV is planned and the cell is blank,
   warning when TV is not planned and the cell is filled
3. Digital columns: same rule; Digital demo columns are required when both
   media are planned and the "same as TV" flag is not an affirmative yes,
   and should be blank (warning) when it is
4. TV and Digital both planned: every TV and Digital column is mandatory

Store failures are not handled here: the validation pipeline bounds this pass
in time and turns any failure into ``cross_reference_unavailable()``.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from sqlalchemy import select
from sqlalchemy.orm import Session

from reach_planning.config import CROSS_REFERENCE_SETTINGS
from reach_planning.models.db import Campaign, GamePlan, MediaSubType, MediaType
from reach_planning.models.db.enums import IssueSeverity
from reach_planning.models.schemas.validation import ValidationIssue
from reach_planning.utils.logger import get_logger
from reach_planning.utils.text import clean, is_blank, normalize_name
from .templates import ValidationTemplate

logger = get_logger(__name__)

TV = "tv"
DIGITAL = "digital"
AFFIRMATIVE = frozenset({"yes", "y", "true", "1", "si", "sí", "oui", "ja"})


def cross_reference_unavailable() -> ValidationIssue:
    return ValidationIssue(
        row_index=0,
        column_name="General",
        severity=IssueSeverity.WARNING,
        message="Unable to perform cross-reference validation against game plans. Please check manually.",
        current_value="",
    )


def load_campaign_media(db: Session, country_id: int, cycle_id: int) -> Dict[str, Set[str]]:
    """Normalised campaign name -> normalised media type names planned for it."""
    limit = int(CROSS_REFERENCE_SETTINGS["max_game_plans"])
    stmt = (
        select(Campaign.name, MediaType.name)
        .select_from(GamePlan)
        .join(Campaign, GamePlan.campaign_id == Campaign.id)
        .join(MediaSubType, GamePlan.media_sub_type_id == MediaSubType.id)
        .join(MediaType, MediaSubType.media_type_id == MediaType.id)
        .where(GamePlan.country_id == country_id, GamePlan.financial_cycle_id == cycle_id)
        .limit(limit)
    )
    rows = db.execute(stmt).all()
    if len(rows) >= limit:
        logger.warning("Game plan fetch hit the configured cap", country_id=country_id,
                       financial_cycle_id=cycle_id, cap=limit)
    grouped: Dict[str, Set[str]] = defaultdict(set)
    for campaign_name, media_type_name in rows:
        grouped[normalize_name(campaign_name)].add(normalize_name(media_type_name))
    return dict(grouped)


def _is_affirmative(value: Any) -> bool:
    return normalize_name(value) in AFFIRMATIVE


class _RowChecker:
    def __init__(self, row: Mapping[str, Any], index: int, campaign: str):
        self.row = row
        self.index = index
        self.campaign = campaign
        self.issues: List[ValidationIssue] = []
        self._critical_columns: Set[str] = set()

    def filled(self, column: str) -> bool:
        return not is_blank(self.row.get(column))

    def add(self, column: str, severity: IssueSeverity, message: str) -> None:
        if severity == IssueSeverity.CRITICAL:
            if column in self._critical_columns:
                return
            self._critical_columns.add(column)
        value = self.row.get(column)
        self.issues.append(ValidationIssue(
            row_index=self.index,
            column_name=column,
            severity=severity,
            message=message,
            current_value="" if value is None else value,
        ))

    def media_fields(self, columns: Sequence[str], label: str, planned: bool) -> None:
        for column in columns:
            has_value = self.filled(column)
            if planned and not has_value:
                self.add(column, IssueSeverity.CRITICAL,
                         f'{column} is required because campaign "{self.campaign}" has {label} media '
                         f'in game plans for this country/financial cycle.')
            elif not planned and has_value:
                self.add(column, IssueSeverity.WARNING,
                         f'{column} should be empty because campaign "{self.campaign}" has no {label} media '
                         f'in game plans for this country/financial cycle.')


def validate_row(
    row: Mapping[str, Any],
    index: int,
    campaign_media: Mapping[str, Set[str]],
    template: ValidationTemplate,
) -> List[ValidationIssue]:
    campaign_raw = row.get("Campaign")
    if is_blank(campaign_raw):
        return []
    campaign = clean(campaign_raw)
    media = campaign_media.get(normalize_name(campaign_raw))
    checker = _RowChecker(row, index, campaign)
    if not media:
        checker.add("Campaign", IssueSeverity.CRITICAL,
                    f'No game plans found for campaign "{campaign}" in this country/financial cycle. '
                    f'Please verify campaign name.')
        return checker.issues

    has_tv = TV in media
    has_digital = DIGITAL in media
    checker.media_fields(template.tv_fields, "TV", has_tv)
    checker.media_fields(template.digital_fields, "Digital", has_digital)

    if has_digital and template.digital_demo_fields:
        same_as_tv = template.digital_same_as_tv_field and _is_affirmative(row.get(template.digital_same_as_tv_field))
        for column in template.digital_demo_fields:
            if not same_as_tv and not checker.filled(column):
                checker.add(column, IssueSeverity.CRITICAL,
                            f'{column} is required because the Digital target of campaign "{campaign}" '
                            f'differs from the TV target.')
            elif same_as_tv and checker.filled(column):
                checker.add(column, IssueSeverity.WARNING,
                            f'{column} should be empty because the Digital target of campaign "{campaign}" '
                            f'is the same as the TV target.')

    if has_tv and has_digital:
        for column in (*template.tv_fields, *template.digital_fields):
            if not checker.filled(column):
                checker.add(column, IssueSeverity.CRITICAL,
                            f'{column} is required because campaign "{campaign}" has both TV and Digital media '
                            f'in game plans for this country/financial cycle.')
    return checker.issues


def validate_against_game_plans(
    db: Session,
    records: Sequence[Mapping[str, Any]],
    country_id: int,
    cycle_id: int,
    template: ValidationTemplate,
    campaign_media: Optional[Dict[str, Set[str]]] = None,
) -> List[ValidationIssue]:
    """Check every row's conditional TV / Digital columns against planned media.

    ``campaign_media`` may be passed in when the grouping was already loaded.
    """
    if campaign_media is None:
        campaign_media = load_campaign_media(db, country_id, cycle_id)
    logger.info("Cross-reference grouping loaded", country_id=country_id,
                financial_cycle_id=cycle_id, campaigns=len(campaign_media))
    issues: List[ValidationIssue] = []
    for index, row in enumerate(records):
        issues.extend(validate_row(row, index, campaign_media, template))
    return issues


__all__ = [
    "cross_reference_unavailable",
    "load_campaign_media",
    "validate_row",
    "validate_against_game_plans",
]
