"""
Utilities package initialization.
"""
from .logger import get_logger, log_business_event, log_performance, setup_logging
from .text import clean, is_blank, normalize_name

__all__ = [
    "get_logger",
    "log_business_event",
    "log_performance",
    "setup_logging",
    "clean",
    "is_blank",
    "normalize_name",
]
