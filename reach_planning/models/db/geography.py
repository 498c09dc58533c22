from __future__ import annotations
"""SQLAlchemy models for the geographic hierarchy (sub regions and countries)."""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, String, ForeignKey
from sqlalchemy.orm import relationship, Mapped, mapped_column

from reach_planning.database import Base

if TYPE_CHECKING:  # pragma: no cover
    from .game_plans import GamePlan


class SubRegion(Base):
    __tablename__ = "sub_regions"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String, unique=True, index=True)

    countries: Mapped[list["Country"]] = relationship("Country", back_populates="sub_region")


class Country(Base):
    __tablename__ = "countries"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String, unique=True, index=True)
    sub_region_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("sub_regions.id"), nullable=True, index=True)

    sub_region: Mapped[SubRegion | None] = relationship("SubRegion", back_populates="countries")
    game_plans: Mapped[list["GamePlan"]] = relationship("GamePlan", back_populates="country")
