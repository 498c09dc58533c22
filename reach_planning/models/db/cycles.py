from __future__ import annotations
"""SQLAlchemy model for financial cycles (e.g. "FC05 2025")."""
from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from reach_planning.database import Base


class FinancialCycle(Base):
    __tablename__ = "financial_cycles"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String, unique=True, index=True)
