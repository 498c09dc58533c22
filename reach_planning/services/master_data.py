"""Master data cache.

``MasterDataCache.load()`` reads every reference table once and returns an
immutable ``MasterDataSnapshot``; every later lookup for the same unit of
work is answered from memory.

All names are compared through ``normalize_name`` (trim, collapse internal
whitespace, case-insensitive). Snapshot keys are normalised; the values
of the relationship maps keep display spelling so messages can quote them.

The importer also uses ``get_or_create_*`` for the leaf entities it is
allowed to create (Range, MediaSubType, PMType, Campaign).
"""
from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from reach_planning.models.db import (
    BusinessUnit,
    Campaign,
    Category,
    Country,
    FinancialCycle,
    MediaSubType,
    MediaType,
    PMType,
    Range,
    SubRegion,
    category_ranges,
)
from reach_planning.utils.logger import get_logger, log_performance
from reach_planning.utils.text import clean, normalize_name
from reach_planning.utils.time import elapsed_ms

logger = get_logger(__name__)


@dataclass(frozen=True)
class MasterDataSnapshot:
    countries: FrozenSet[str] = frozenset()
    sub_regions: FrozenSet[str] = frozenset()
    categories: FrozenSet[str] = frozenset()
    ranges: FrozenSet[str] = frozenset()
    campaigns: FrozenSet[str] = frozenset()
    business_units: FrozenSet[str] = frozenset()
    media_types: FrozenSet[str] = frozenset()
    media_subtypes: FrozenSet[str] = frozenset()
    pm_types: FrozenSet[str] = frozenset()
    financial_cycles: FrozenSet[str] = frozenset()
    # normalised country -> display sub region
    country_to_sub_region: Dict[str, str] = field(default_factory=dict)
    # normalised category -> display ranges linked to it
    category_to_ranges: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    # normalised campaign -> display range(s); a campaign name is expected under one range
    campaign_to_range: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    # normalised media type -> display subtypes
    media_type_to_subtypes: Dict[str, Tuple[str, ...]] = field(default_factory=dict)

    def has(self, kind: str, name: str) -> bool:
        return normalize_name(name) in getattr(self, kind)

    def to_dict(self) -> dict:
        """Plain JSON-friendly view (sorted lists) for the read-only API."""
        return {
            "countries": sorted(self.countries),
            "subRegions": sorted(self.sub_regions),
            "categories": sorted(self.categories),
            "ranges": sorted(self.ranges),
            "campaigns": sorted(self.campaigns),
            "businessUnits": sorted(self.business_units),
            "mediaTypes": sorted(self.media_types),
            "mediaSubtypes": sorted(self.media_subtypes),
            "pmTypes": sorted(self.pm_types),
            "financialCycles": sorted(self.financial_cycles),
            "countryToSubRegion": dict(self.country_to_sub_region),
            "categoryToRanges": {k: list(v) for k, v in self.category_to_ranges.items()},
            "campaignToRange": {k: list(v) for k, v in self.campaign_to_range.items()},
            "mediaTypeToSubtypes": {k: list(v) for k, v in self.media_type_to_subtypes.items()},
        }


# (id, parent id) rows per normalised name
_IndexRows = List[Tuple[int, Optional[int]]]


class MasterDataCache:
    """Per unit-of-work cache over the reference tables.

    Never shared between sessions or runs: construct one with the DB session
    of the current unit of work.
    """

    def __init__(self, db: Session):
        self.db = db
        self._snapshot: MasterDataSnapshot | None = None
        self._index: Dict[str, Dict[str, _IndexRows]] = defaultdict(lambda: defaultdict(list))
        self._memo: Dict[Tuple[str, str, Optional[int]], Optional[int]] = {}
        # Rows created since the last commit: (kind, normalised name, id)
        self._pending: List[Tuple[str, str, int]] = []

    # ------------------------------------------------------------------ load
    def load(self) -> MasterDataSnapshot:
        if self._snapshot is not None:
            return self._snapshot
        started = time.time()

        sub_regions = self.db.query(SubRegion).all()
        countries = self.db.query(Country).all()
        business_units = self.db.query(BusinessUnit).all()
        categories = self.db.query(Category).all()
        ranges = self.db.query(Range).all()
        campaigns = self.db.query(Campaign).all()
        media_types = self.db.query(MediaType).all()
        media_subtypes = self.db.query(MediaSubType).all()
        pm_types = self.db.query(PMType).all()
        cycles = self.db.query(FinancialCycle).all()
        links = self.db.execute(select(category_ranges.c.category_id, category_ranges.c.range_id)).all()

        sub_region_names = {sr.id: sr.name for sr in sub_regions}
        range_names = {r.id: r.name for r in ranges}
        media_type_names = {mt.id: mt.name for mt in media_types}

        for kind, rows, parent_attr in (
            ("sub_region", sub_regions, None),
            ("country", countries, "sub_region_id"),
            ("business_unit", business_units, None),
            ("category", categories, "business_unit_id"),
            ("range", ranges, None),
            ("campaign", campaigns, "range_id"),
            ("media_type", media_types, None),
            ("media_subtype", media_subtypes, "media_type_id"),
            ("pm_type", pm_types, None),
            ("financial_cycle", cycles, None),
        ):
            for row in rows:
                parent = getattr(row, parent_attr) if parent_attr else None
                self._index[kind][normalize_name(row.name)].append((row.id, parent))

        country_to_sub_region = {
            normalize_name(c.name): sub_region_names[c.sub_region_id]
            for c in countries
            if c.sub_region_id in sub_region_names
        }
        category_names = {c.id: c.name for c in categories}
        category_to_ranges: Dict[str, Tuple[str, ...]] = defaultdict(tuple)
        for category_id, range_id in links:
            if category_id in category_names and range_id in range_names:
                key = normalize_name(category_names[category_id])
                category_to_ranges[key] = tuple(dict.fromkeys(category_to_ranges[key] + (range_names[range_id],)))
        campaign_to_range: Dict[str, Tuple[str, ...]] = defaultdict(tuple)
        for campaign in campaigns:
            if campaign.range_id in range_names:
                key = normalize_name(campaign.name)
                campaign_to_range[key] = tuple(dict.fromkeys(campaign_to_range[key] + (range_names[campaign.range_id],)))
        media_type_to_subtypes: Dict[str, Tuple[str, ...]] = defaultdict(tuple)
        for subtype in media_subtypes:
            if subtype.media_type_id in media_type_names:
                key = normalize_name(media_type_names[subtype.media_type_id])
                media_type_to_subtypes[key] = media_type_to_subtypes[key] + (subtype.name,)

        def names(rows) -> FrozenSet[str]:
            return frozenset(normalize_name(row.name) for row in rows)

        self._snapshot = MasterDataSnapshot(
            countries=names(countries),
            sub_regions=names(sub_regions),
            categories=names(categories),
            ranges=names(ranges),
            campaigns=names(campaigns),
            business_units=names(business_units),
            media_types=names(media_types),
            media_subtypes=names(media_subtypes),
            pm_types=names(pm_types),
            financial_cycles=names(cycles),
            country_to_sub_region=country_to_sub_region,
            category_to_ranges=dict(category_to_ranges),
            campaign_to_range=dict(campaign_to_range),
            media_type_to_subtypes=dict(media_type_to_subtypes),
        )
        log_performance("master_data_load", elapsed_ms(started), {
            "countries": len(countries),
            "categories": len(categories),
            "ranges": len(ranges),
            "campaigns": len(campaigns),
        })
        return self._snapshot

    @property
    def snapshot(self) -> MasterDataSnapshot:
        return self.load()

    # ---------------------------------------------------------------- lookups
    def _find(self, kind: str, name: Optional[str], parent_id: Optional[int] = None, *, fallback: bool = False) -> Optional[int]:
        norm = normalize_name(name)
        if not norm:
            return None
        key = (kind, norm, parent_id)
        if key in self._memo:
            return self._memo[key]
        self.load()
        rows = self._index[kind].get(norm, [])
        found: Optional[int] = None
        if parent_id is None:
            found = rows[0][0] if rows else None
        else:
            scoped = [row_id for row_id, parent in rows if parent == parent_id]
            if scoped:
                found = scoped[0]
            elif fallback and rows:
                found = rows[0][0]
        self._memo[key] = found
        return found

    def find_country(self, name: Optional[str]) -> Optional[int]:
        return self._find("country", name)

    def find_sub_region(self, name: Optional[str]) -> Optional[int]:
        return self._find("sub_region", name)

    def find_business_unit(self, name: Optional[str]) -> Optional[int]:
        return self._find("business_unit", name)

    def find_category(self, name: Optional[str], business_unit_id: Optional[int] = None) -> Optional[int]:
        return self._find("category", name, business_unit_id)

    def find_range(self, name: Optional[str]) -> Optional[int]:
        return self._find("range", name)

    def find_campaign(self, name: Optional[str], range_id: Optional[int] = None) -> Optional[int]:
        return self._find("campaign", name, range_id)

    def find_media_type(self, name: Optional[str]) -> Optional[int]:
        return self._find("media_type", name)

    def find_media_subtype(self, name: Optional[str], media_type_id: Optional[int] = None) -> Optional[int]:
        # A subtype filed under another media type is still the same subtype
        return self._find("media_subtype", name, media_type_id, fallback=True)

    def find_pm_type(self, name: Optional[str]) -> Optional[int]:
        return self._find("pm_type", name)

    def find_financial_cycle(self, name: Optional[str]) -> Optional[int]:
        return self._find("financial_cycle", name)

    # ---------------------------------------------------------- get or create
    def _forget_memo(self, kind: str, norm: str) -> None:
        for key in [k for k in self._memo if k[0] == kind and k[1] == norm]:
            del self._memo[key]

    def _remember(self, kind: str, name: str, row_id: int, parent_id: Optional[int]) -> None:
        norm = normalize_name(name)
        self._index[kind][norm].append((row_id, parent_id))
        self._pending.append((kind, norm, row_id))
        # Misses memoised before the creation are now stale
        self._forget_memo(kind, norm)

    def commit(self) -> None:
        self.db.commit()
        self._pending.clear()

    def rollback(self) -> None:
        """Roll back the DB session and drop entities created since the last commit."""
        self.db.rollback()
        for kind, norm, row_id in self._pending:
            self._index[kind][norm] = [row for row in self._index[kind][norm] if row[0] != row_id]
            self._forget_memo(kind, norm)
        self._pending.clear()

    def _create(self, kind: str, row, parent_id: Optional[int] = None) -> int:
        self.db.add(row)
        self.db.flush()
        self._remember(kind, row.name, row.id, parent_id)
        logger.info("Created master data entity", kind=kind, name=row.name, entity_id=row.id)
        return row.id

    def get_or_create_range(self, name: str) -> Tuple[int, bool]:
        existing = self.find_range(name)
        if existing is not None:
            return existing, False
        return self._create("range", Range(name=clean(name))), True

    def get_or_create_media_subtype(self, name: str, media_type_id: Optional[int]) -> Tuple[int, bool]:
        existing = self.find_media_subtype(name, media_type_id)
        if existing is not None:
            return existing, False
        row = MediaSubType(name=clean(name), media_type_id=media_type_id)
        return self._create("media_subtype", row, media_type_id), True

    def get_or_create_pm_type(self, name: str) -> Tuple[int, bool]:
        existing = self.find_pm_type(name)
        if existing is not None:
            return existing, False
        return self._create("pm_type", PMType(name=clean(name))), True

    def get_or_create_campaign(self, name: str, range_id: int) -> Tuple[int, bool]:
        existing = self.find_campaign(name, range_id)
        if existing is not None:
            return existing, False
        row = Campaign(name=clean(name), range_id=range_id)
        return self._create("campaign", row, range_id), True


__all__ = ["MasterDataSnapshot", "MasterDataCache"]
