"""
Dead Letter Queue (DLQ) model.

Failed order sync work, kept for admin retry: whole sweeps that could
not reach the carrier, and single carrier orders that could not be
stored.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
import enum


class DLQStatus(str, enum.Enum):
    FAILED = "FAILED"
    RETRYING = "RETRYING"
    PROCESSED = "PROCESSED"
    ARCHIVED = "ARCHIVED"  # given up by an admin


OPEN_STATUSES = (DLQStatus.FAILED, DLQStatus.RETRYING)


class DeadLetterQueue(Base):
    """
    Dead Letter Queue table.

    `task_name` selects the retry handler. `source_ref` identifies the
    failing input (the channel order id for ingest failures) so a later
    sweep hitting the same order updates the open item instead of adding
    another.
    """
    __tablename__ = "dead_letter_queue"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    task_name = Column(String(100), nullable=False, index=True)
    source_ref = Column(String(100), nullable=True, index=True)
    error_message = Column(Text, nullable=False)
    payload = Column(JSON, nullable=True)

    status = Column(Enum(DLQStatus), default=DLQStatus.FAILED, nullable=False, index=True)
    retry_count = Column(Integer, default=0, nullable=False)
    occurrences = Column(Integer, default=1, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_retry_at = Column(DateTime(timezone=True), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<DLQ(id={self.id}, task='{self.task_name}', ref={self.source_ref}, status='{self.status}')>"
