import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, ForeignKey, Integer, Text, Uuid
from janusleaf.core.database import Base


class MoodAnalysisTask(Base):
    """
    Pending AI mood analysis for one journal entry.

    At most one row per entry (unique journal_entry_id). Each edit rewrites
    body_snapshot, pushes scheduled_for out by the debounce delay and bumps
    revision; retry_count only moves on failures.
    """

    __tablename__ = "mood_analysis_queue"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    journal_entry_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("journal_entries.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    body_snapshot = Column(Text, nullable=False)
    scheduled_for = Column(DateTime(timezone=True), nullable=False, index=True)
    retry_count = Column(Integer, nullable=False, default=0)
    revision = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
