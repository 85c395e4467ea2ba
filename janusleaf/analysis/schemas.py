import datetime
from dataclasses import dataclass, field
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel


@dataclass(frozen=True)
class ClaimedTask:
    """Detached copy of a queue row handed to a worker."""

    journal_entry_id: UUID
    body_snapshot: str
    retry_count: int
    revision: int
    scheduled_for: datetime.datetime


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Exponential backoff for failed analyses: base * 2**retry_count, capped.

    Rate-limited failures start from the longer base.
    """

    retry_base: float = 2.0
    rate_limit_base: float = 10.0
    max_delay: float = 600.0
    max_retries: int = 5

    def delay_for(self, retry_count: int, rate_limited: bool) -> datetime.timedelta:
        base = self.rate_limit_base if rate_limited else self.retry_base
        return datetime.timedelta(seconds=min(base * (2 ** retry_count), self.max_delay))


@dataclass(frozen=True)
class FailureOutcome:
    abandoned: bool
    retry_count: int
    scheduled_for: Optional[datetime.datetime] = None


@dataclass
class BatchReport:
    claimed: int = 0
    processed: int = 0
    rescheduled: int = 0
    abandoned: int = 0
    superseded: int = 0
    entry_ids: List[UUID] = field(default_factory=list)


class PendingAnalysisCount(BaseModel):
    pending: int
