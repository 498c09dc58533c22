"""Exceptions raised by the validation / import engine.

Validation problems in uploaded rows are never raised; they are collected as
``ValidationIssue`` objects. These exceptions cover structural failures that
abort a whole run and flip the session to ``error``.
"""
from __future__ import annotations


class ReachPlanningError(Exception):
    """Base exception for the engine."""


class SessionNotFound(ReachPlanningError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")


class SessionAlreadyExists(ReachPlanningError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} already exists")


class InvalidSessionTransition(ReachPlanningError):
    def __init__(self, session_id: str, current: str, target: str):
        self.session_id = session_id
        self.current = current
        self.target = target
        super().__init__(f"Session {session_id} cannot move from '{current}' to '{target}'")


class ImportBlocked(ReachPlanningError):
    """Import requested while critical validation issues remain."""

    def __init__(self, session_id: str, critical: int):
        self.session_id = session_id
        self.critical = critical
        super().__init__(
            f"Cannot import session {session_id}: {critical} critical validation issue(s) remain"
        )


class ImportCancelled(ReachPlanningError):
    pass


class UnknownTemplate(ReachPlanningError):
    def __init__(self, template_id: str, available: list[str]):
        self.template_id = template_id
        self.available = available
        super().__init__(f"Unknown template '{template_id}'. Available: {available}")


__all__ = [
    "ReachPlanningError",
    "SessionNotFound",
    "SessionAlreadyExists",
    "InvalidSessionTransition",
    "ImportBlocked",
    "ImportCancelled",
    "UnknownTemplate",
]
