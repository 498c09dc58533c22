from .base import ResponseBase, WireModel
from .validation import ValidationIssue, ValidationSummary
from .sessions import (
    ImportProgress,
    ImportErrorEntry,
    ImportResults,
    ImportOutcome,
    SessionCreate,
    SessionIdRequest,
    SessionRead,
    ValidateResponse,
    ImportTriggerResponse,
    ProgressResponse,
)

__all__ = [
    # Base
    "ResponseBase",
    "WireModel",

    # Validation
    "ValidationIssue",
    "ValidationSummary",

    # Sessions / import
    "ImportProgress",
    "ImportErrorEntry",
    "ImportResults",
    "ImportOutcome",
    "SessionCreate",
    "SessionIdRequest",
    "SessionRead",
    "ValidateResponse",
    "ImportTriggerResponse",
    "ProgressResponse",
]
