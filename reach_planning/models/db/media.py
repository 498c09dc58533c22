from __future__ import annotations
"""SQLAlchemy models for the media taxonomy (media types, subtypes, PM types)."""
from typing import TYPE_CHECKING
from sqlalchemy import Integer, String, ForeignKey
from sqlalchemy.orm import relationship, Mapped, mapped_column

from reach_planning.database import Base

if TYPE_CHECKING:  # pragma: no cover
    from .game_plans import GamePlan


class MediaType(Base):
    __tablename__ = "media_types"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String, unique=True, index=True)

    subtypes: Mapped[list["MediaSubType"]] = relationship("MediaSubType", back_populates="media_type")


class MediaSubType(Base):
    __tablename__ = "media_sub_types"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String, index=True)
    media_type_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("media_types.id"), nullable=True, index=True)

    media_type: Mapped[MediaType | None] = relationship("MediaType", back_populates="subtypes")
    game_plans: Mapped[list["GamePlan"]] = relationship("GamePlan", back_populates="media_sub_type")


class PMType(Base):
    __tablename__ = "pm_types"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String, unique=True, index=True)
