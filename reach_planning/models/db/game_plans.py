from __future__ import annotations
"""SQLAlchemy model for committed game plan line items.

Dates are stored as normalised ``YYYY-MM-DD`` strings: the natural key
(campaign, media subtype, start date, end date) is compared on exact strings,
not calendar equality.
"""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, String, Float, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from reach_planning.database import Base

if TYPE_CHECKING:  # pragma: no cover
    from .taxonomy import Campaign
    from .media import MediaSubType
    from .geography import Country


class GamePlan(Base):
    __tablename__ = "game_plans"
    __table_args__ = (
        Index("ix_game_plans_natural_key", "campaign_id", "media_sub_type_id", "start_date", "end_date"),
        Index("ix_game_plans_country_cycle", "country_id", "financial_cycle_id"),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    campaign_id: Mapped[int] = mapped_column(Integer, ForeignKey("campaigns.id"), nullable=False)
    media_sub_type_id: Mapped[int] = mapped_column(Integer, ForeignKey("media_sub_types.id"), nullable=False)
    pm_type_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("pm_types.id"), nullable=True)
    country_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("countries.id"), nullable=True)
    financial_cycle_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("financial_cycles.id"), nullable=True)
    sub_region_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("sub_regions.id"), nullable=True)
    category_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("categories.id"), nullable=True)
    range_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("ranges.id"), nullable=True)
    business_unit_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("business_units.id"), nullable=True)

    start_date: Mapped[str] = mapped_column(String(10), nullable=False)
    end_date: Mapped[str] = mapped_column(String(10), nullable=False)

    total_budget: Mapped[float] = mapped_column(Float, default=0.0)
    q1_budget: Mapped[float | None] = mapped_column(Float, nullable=True)
    q2_budget: Mapped[float | None] = mapped_column(Float, nullable=True)
    q3_budget: Mapped[float | None] = mapped_column(Float, nullable=True)
    q4_budget: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_trps: Mapped[float | None] = mapped_column(Float, nullable=True)
    # Reach stored as fractions in [0, 1]
    reach_1_plus: Mapped[float | None] = mapped_column(Float, nullable=True)
    reach_3_plus: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_woa: Mapped[float | None] = mapped_column(Float, nullable=True)
    weeks_off_air: Mapped[float | None] = mapped_column(Float, nullable=True)
    playbook_id: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    campaign: Mapped["Campaign"] = relationship("Campaign", back_populates="game_plans")
    media_sub_type: Mapped["MediaSubType"] = relationship("MediaSubType", back_populates="game_plans")
    country: Mapped[Country | None] = relationship("Country", back_populates="game_plans")
