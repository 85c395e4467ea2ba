from dataclasses import dataclass, field
from typing import List
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel


class BaseSchema(BaseModel):
    class Config:
        from_attributes = True


class QuoteResponse(BaseSchema):
    quote: str
    tags: List[str]
    last_generated_at: datetime
    updated_at: datetime


class NoQuoteResponse(BaseSchema):
    detail: str = (
        "No inspirational quote generated yet. "
        "One will be created shortly based on your journal entries."
    )


@dataclass
class QuoteJobReport:
    """Outcome of one run of the periodic quote job."""

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    failed_user_ids: List[UUID] = field(default_factory=list)
