"""Core application configuration & tunable validation/import rules.

Thresholds that may evolve (trend tolerance, cross-reference caps and
timeouts, progress flush cadence, session lifetime, queue priorities) are
centralized here so they can be adjusted without diving into service logic.
Values are read from the environment once at import; tests monkeypatch the
dicts directly.
"""
from __future__ import annotations

import os

# Database URL; SQLite file by default so the worker thread and request
# handlers can share data across connections.
DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+pysqlite:///./reach_planning.db")

# ------------------------------- Validation ------------------------------- #
VALIDATION_SETTINGS: dict[str, float | int] = {
	# CPP of the current year lower than (1 - drop) * previous year => suggestion
	"cpp_max_drop_pct": 0.20,
	# Tolerance used when comparing a total budget with its period budgets
	"budget_tolerance": 0.01,
	# Rows validated per chunk (logged between chunks)
	"chunk_size": int(os.getenv("VALIDATION_CHUNK_SIZE", "500")),
	# Issues returned inline by the validate endpoint
	"max_issues_in_response": 100,
}

# --------------------------- Cross-reference pass ------------------------- #
CROSS_REFERENCE_SETTINGS: dict[str, float | int] = {
	# Upper bound of game plans loaded for one country + financial cycle
	"max_game_plans": 10_000,
	# Seconds before the pass is abandoned and degraded to a warning issue
	"timeout_seconds": float(os.getenv("CROSS_REFERENCE_TIMEOUT", "30")),
}

# --------------------------------- Import --------------------------------- #
IMPORT_SETTINGS: dict[str, str | int] = {
	# Media type assigned to newly created subtypes when a row has no Media value
	"default_media_type": os.getenv("IMPORT_DEFAULT_MEDIA_TYPE", "TV"),
	# Flush progress to the session document every N rows (and on the last row)
	"progress_every": 5,
}

# -------------------------------- Sessions -------------------------------- #
SESSION_SETTINGS: dict[str, str | int] = {
	"id_prefix": "reach-planning-",
	"timeout_hours": int(os.getenv("SESSION_TIMEOUT_HOURS", "6")),
}

# --------------------------------- Queue ---------------------------------- #
QUEUE_SETTINGS: dict[str, dict[str, int] | int | float] = {
	"priorities": {  # Lower number = higher priority
		"high": 0,
		"normal": 5,
		"low": 10,
	},
	"warn_depth": 100,
	"max_in_memory": 1000,
	"poll_timeout_seconds": 1.0,
}

__all__ = [
	"DATABASE_URL",
	"VALIDATION_SETTINGS",
	"CROSS_REFERENCE_SETTINGS",
	"IMPORT_SETTINGS",
	"SESSION_SETTINGS",
	"QUEUE_SETTINGS",
]
