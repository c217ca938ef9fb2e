"""
Domain models for last-contact reconciliation.
"""

from dataclasses import dataclass, field
from datetime import date


@dataclass(slots=True)
class ProspectContact:
    """The slice of a prospect row the reconciler reads."""

    id: str
    user_id: str
    company: str | None
    last_contact_date: date | None

    @property
    def label(self) -> str:
        return self.company or self.id


@dataclass(slots=True)
class ReconciliationResult:
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    total: int = 0
    details: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        return f"Done. Updated {self.updated} prospects, skipped {self.skipped}."

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "total": self.total,
            "details": list(self.details),
        }


class ReconciliationError(Exception):
    """Raised when a reconciliation pass cannot start."""

    def __init__(self, message: str, user_id: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.user_id = user_id
        self.recoverable = recoverable
