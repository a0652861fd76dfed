"""
Per-item result collection for batch jobs.

Batch jobs never raise on a single bad record. Instead every record
gets an ItemOutcome, so failures are visible to callers and tests
rather than only in the logs.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Outcome(Enum):
    """What a batch job did with one record."""
    UNCHANGED = "unchanged"
    TRANSITIONED = "transitioned"
    REMINDED = "reminded"
    EMAIL_FAILED = "email_failed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ItemOutcome:
    """Result for a single record."""
    domain_id: str
    outcome: Outcome
    detail: str = ""


@dataclass
class BatchReport:
    """
    Result of one batch run.

    Mutable because items are appended as the run progresses.
    """
    job: str
    started_at: datetime
    items: list[ItemOutcome] = field(default_factory=list)
    interrupted: bool = False

    def add(self, domain_id: str, outcome: Outcome, detail: str = "") -> None:
        self.items.append(ItemOutcome(domain_id, outcome, detail))

    def count(self, outcome: Outcome) -> int:
        return sum(1 for item in self.items if item.outcome == outcome)

    @property
    def failures(self) -> list[ItemOutcome]:
        return [item for item in self.items if item.outcome == Outcome.FAILED]

    def summary(self) -> dict[str, int]:
        """Counts per outcome, for logs and API responses."""
        return {outcome.value: self.count(outcome) for outcome in Outcome}
