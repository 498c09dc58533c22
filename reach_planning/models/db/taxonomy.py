from __future__ import annotations
"""SQLAlchemy models for the product taxonomy: business units, categories,
ranges and campaigns.

Ranges are global entities linked to categories many-to-many; a campaign
belongs to exactly one range.
"""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, String, DateTime, Table, ForeignKey, Column, UniqueConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from reach_planning.database import Base

if TYPE_CHECKING:  # pragma: no cover
    from .game_plans import GamePlan

# Association Table for Many-to-Many: Categories <-> Ranges
category_ranges = Table(
    'category_ranges',
    Base.metadata,
    Column('category_id', Integer, ForeignKey('categories.id'), primary_key=True),
    Column('range_id', Integer, ForeignKey('ranges.id'), primary_key=True)
)


class BusinessUnit(Base):
    __tablename__ = "business_units"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String, unique=True, index=True)

    categories: Mapped[list["Category"]] = relationship("Category", back_populates="business_unit")


class Category(Base):
    __tablename__ = "categories"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String, index=True)
    business_unit_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("business_units.id"), nullable=True, index=True)

    business_unit: Mapped[BusinessUnit | None] = relationship("BusinessUnit", back_populates="categories")
    ranges: Mapped[list["Range"]] = relationship(
        "Range", secondary=category_ranges, back_populates="categories"
    )


class Range(Base):
    __tablename__ = "ranges"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String, unique=True, index=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    categories: Mapped[list["Category"]] = relationship(
        "Category", secondary=category_ranges, back_populates="ranges"
    )
    campaigns: Mapped[list["Campaign"]] = relationship("Campaign", back_populates="range")


class Campaign(Base):
    __tablename__ = "campaigns"
    __table_args__ = (UniqueConstraint("name", "range_id", name="uq_campaign_name_range"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String, index=True)
    range_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("ranges.id"), nullable=True, index=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    range: Mapped[Range | None] = relationship("Range", back_populates="campaigns")
    game_plans: Mapped[list["GamePlan"]] = relationship("GamePlan", back_populates="campaign")
