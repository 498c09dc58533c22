from __future__ import annotations
"""SQLAlchemy model for the durable import session document.

Uploaded rows, issues, progress and results are JSON columns; the status
column drives the uploaded -> validated -> importing -> imported|error
lifecycle enforced by ``services.session_store``.
"""
from sqlalchemy import Integer, String, Text, DateTime, Enum, JSON
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from reach_planning.database import Base
from .enums import SessionStatus


class ImportSession(Base):
    __tablename__ = "import_sessions"
    session_id: Mapped[str] = mapped_column(String, primary_key=True)
    template: Mapped[str] = mapped_column(String, nullable=False)
    country_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    financial_cycle_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[SessionStatus] = mapped_column(Enum(SessionStatus), default=SessionStatus.UPLOADED, index=True)

    records: Mapped[list] = mapped_column(JSON, default=list)
    validation_issues: Mapped[list | None] = mapped_column(JSON, nullable=True)
    validation_summary: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    import_progress: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    import_errors: Mapped[list | None] = mapped_column(JSON, nullable=True)
    import_results: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    validated_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now(), nullable=True)
    expires_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
