import uuid
from datetime import datetime, timezone
from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Text, Uuid
from sqlalchemy.orm import relationship
from janusleaf.core.database import Base


class InspirationalQuote(Base):
    __tablename__ = "inspirational_quotes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    quote = Column(Text, nullable=False)
    tags = Column(JSON, nullable=False, default=list)  # up to 4 strings
    needs_regeneration = Column(Boolean, nullable=False, default=False)
    # Bumped on every regeneration request
    revision = Column(Integer, nullable=False, default=0)
    last_generated_at = Column(DateTime(timezone=True), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    user = relationship("User", back_populates="quote")


class QuoteGenerationFailure(Base):
    """Failed generation attempts for a user; removed once a quote is saved."""

    __tablename__ = "quote_generation_failures"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    failed_attempts = Column(Integer, nullable=False, default=0)
    last_attempted_at = Column(DateTime(timezone=True), nullable=False)
    retry_after = Column(DateTime(timezone=True), nullable=False)
