from __future__ import annotations
"""SQLAlchemy model for reach sufficiency records.

One record per (campaign, country, financial cycle). Attribute names are the
snake_case forms of the upload field identifiers (``tvR1Plus`` -> ``tv_r1_plus``).
"""
from sqlalchemy import Integer, String, Float, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from reach_planning.database import Base


class SufficiencyRecord(Base):
    __tablename__ = "sufficiency_records"
    __table_args__ = (
        UniqueConstraint("campaign_id", "country_id", "financial_cycle_id", name="uq_sufficiency_natural_key"),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    campaign_id: Mapped[int] = mapped_column(Integer, ForeignKey("campaigns.id"), nullable=False, index=True)
    country_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("countries.id"), nullable=True, index=True)
    financial_cycle_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("financial_cycles.id"), nullable=True, index=True)
    category_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("categories.id"), nullable=True)
    range_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("ranges.id"), nullable=True)
    business_unit_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("business_units.id"), nullable=True)

    last_update: Mapped[str | None] = mapped_column(String, nullable=True)
    franchise_ns: Mapped[str | None] = mapped_column(String, nullable=True)
    campaign_socio_demo_target: Mapped[str | None] = mapped_column(String, nullable=True)
    total_country_population_on_target: Mapped[float | None] = mapped_column(Float, nullable=True)

    # TV
    tv_demo_gender: Mapped[str | None] = mapped_column(String, nullable=True)
    tv_demo_min_age: Mapped[float | None] = mapped_column(Float, nullable=True)
    tv_demo_max_age: Mapped[float | None] = mapped_column(Float, nullable=True)
    tv_sel: Mapped[str | None] = mapped_column(String, nullable=True)
    tv_copy_length: Mapped[str | None] = mapped_column(String, nullable=True)
    tv_target_size: Mapped[float | None] = mapped_column(Float, nullable=True)
    woa_open_tv: Mapped[float | None] = mapped_column(Float, nullable=True)
    woa_paid_tv: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_trps: Mapped[float | None] = mapped_column(Float, nullable=True)
    tv_r1_plus: Mapped[float | None] = mapped_column(Float, nullable=True)
    tv_r3_plus: Mapped[float | None] = mapped_column(Float, nullable=True)
    tv_ideal_reach: Mapped[float | None] = mapped_column(Float, nullable=True)
    cpp2024: Mapped[float | None] = mapped_column(Float, nullable=True)
    cpp2025: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Digital
    is_digital_target_same_as_tv: Mapped[str | None] = mapped_column(String, nullable=True)
    digital_demo_gender: Mapped[str | None] = mapped_column(String, nullable=True)
    digital_demo_min_age: Mapped[float | None] = mapped_column(Float, nullable=True)
    digital_demo_max_age: Mapped[float | None] = mapped_column(Float, nullable=True)
    digital_sel: Mapped[str | None] = mapped_column(String, nullable=True)
    digital_target: Mapped[str | None] = mapped_column(String, nullable=True)
    digital_target_size: Mapped[float | None] = mapped_column(Float, nullable=True)
    woa_pm_ff: Mapped[float | None] = mapped_column(Float, nullable=True)
    woa_influencers_amplification: Mapped[float | None] = mapped_column(Float, nullable=True)
    digital_r1_plus: Mapped[float | None] = mapped_column(Float, nullable=True)
    digital_r3_plus: Mapped[float | None] = mapped_column(Float, nullable=True)
    digital_ideal_reach: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Combined
    planned_combined_reach: Mapped[float | None] = mapped_column(Float, nullable=True)
    combined_ideal_reach: Mapped[float | None] = mapped_column(Float, nullable=True)
    digital_reach_level_check: Mapped[float | None] = mapped_column(Float, nullable=True)
    tv_reach_level_check: Mapped[float | None] = mapped_column(Float, nullable=True)
    combined_reach_level_check: Mapped[float | None] = mapped_column(Float, nullable=True)

    upload_session: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now(), nullable=True)
