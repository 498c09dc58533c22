"""Central Enum definitions for validation, session and job states.

These replace scattered string literals so DB models, schemas and the
services agree on spelling.
"""
from __future__ import annotations
import enum


class IssueSeverity(str, enum.Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    SUGGESTION = "suggestion"


class SessionStatus(str, enum.Enum):
    UPLOADED = "uploaded"
    VALIDATED = "validated"
    IMPORTING = "importing"
    IMPORTED = "imported"
    ERROR = "error"


class JobState(str, enum.Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TemplateId(str, enum.Enum):
    GAME_PLANS = "game_plans"
    REACH_PLANNING = "reach_planning"


__all__ = [
    "IssueSeverity",
    "SessionStatus",
    "JobState",
    "TemplateId",
]
