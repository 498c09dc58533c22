"""Import job payload."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Optional


@dataclass(slots=True)
class ImportJob:
    session_id: str
    priority: str = "normal"
    correlation_id: Optional[str] = None
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def key(self) -> str:
        # One pending import per session
        return f"import:{self.session_id}"


__all__ = ["ImportJob"]
