"""Reach planning import backend.

Validates uploaded game plan / reach sufficiency rows against master data and
previously committed game plans, then commits them through a two-phase import.
"""

__all__: list[str] = []
