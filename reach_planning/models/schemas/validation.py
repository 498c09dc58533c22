"""
Pydantic schemas for validation results.
"""
from collections import Counter
from typing import Any, Iterable, Optional
from pydantic import Field
from .base import WireModel
from ..db.enums import IssueSeverity

class ValidationIssue(WireModel):
    """One problem found in one uploaded row.

    ``row_index`` is the zero-based position of the row in the upload;
    cross-reference failures that concern the whole batch use row 0 and the
    pseudo column ``General``.
    """
    row_index: int = Field(alias="rowIndex", ge=0)
    column_name: str = Field(alias="columnName")
    severity: IssueSeverity
    message: str
    current_value: Optional[Any] = Field(None, alias="currentValue")

    @property
    def is_blocking(self) -> bool:
        return self.severity == IssueSeverity.CRITICAL

class ValidationSummary(WireModel):
    total: int = 0
    critical: int = 0
    warning: int = 0
    suggestion: int = 0
    unique_rows: int = Field(0, alias="uniqueRows", description="Rows carrying at least one issue")

    @classmethod
    def from_issues(cls, issues: Iterable[ValidationIssue]) -> "ValidationSummary":
        issues = list(issues)
        counts = Counter(issue.severity for issue in issues)
        return cls(
            total=len(issues),
            critical=counts.get(IssueSeverity.CRITICAL, 0),
            warning=counts.get(IssueSeverity.WARNING, 0),
            suggestion=counts.get(IssueSeverity.SUGGESTION, 0),
            unique_rows=len({issue.row_index for issue in issues}),
        )

    @property
    def can_import(self) -> bool:
        return self.critical == 0
