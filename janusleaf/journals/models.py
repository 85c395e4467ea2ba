import uuid
from datetime import datetime, timezone
from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship
from janusleaf.core.database import Base


class JournalEntry(Base):
    __tablename__ = "journal_entries"

    id = Column(Uuid(as_uuid=True), primary_key=True, index=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)

    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False, default="")
    mood_score = Column(Integer, nullable=True)  # AI-generated, 1..10
    entry_date = Column(Date, nullable=False)

    # Checked and bumped explicitly by journals.db, see update_body/update_metadata
    version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    user = relationship("User", back_populates="journals")

    __table_args__ = (
        CheckConstraint("mood_score IS NULL OR (mood_score >= 1 AND mood_score <= 10)", name="ck_journal_entries_mood_score"),
        Index("ix_journal_entries_user_date", "user_id", "entry_date"),
    )
