from typing import Optional
from uuid import UUID
from datetime import date, datetime
from pydantic import BaseModel


class BaseSchema(BaseModel):
    class Config:
        from_attributes = True


class JournalEntryBase(BaseSchema):
    id: UUID
    user_id: UUID
    title: str
    body: str
    mood_score: Optional[int] = None
    entry_date: date
    version: int
    created_at: datetime
    updated_at: datetime


class JournalEntrySummary(BaseSchema):
    id: UUID
    title: str
    body_preview: str
    mood_score: Optional[int] = None
    entry_date: date
    updated_at: datetime


class JournalEntryCreate(BaseSchema):
    title: Optional[str] = None
    body: Optional[str] = None
    entry_date: Optional[date] = None


class JournalBodyUpdate(BaseSchema):
    body: str
    expected_version: Optional[int] = None


class JournalMetadataUpdate(BaseSchema):
    title: Optional[str] = None
    expected_version: Optional[int] = None


class JournalBodyUpdateResponse(BaseSchema):
    id: UUID
    body: str
    version: int
    updated_at: datetime
