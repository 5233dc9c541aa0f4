import datetime as dt
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import Date, DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from venue.db.base import Base


class QueueState(str, Enum):
    WAITING = "waiting"
    CONFIRMED = "confirmed"
    DECLINED = "declined"


class WaitListEntry(Base):
    """Explicit queue membership for room types that do not use single-capacity slots."""

    __tablename__ = "wait_list_entries"
    __table_args__ = (Index("ix_wait_list_entries_key", "date", "start_time", "room_type", "queue_state"),)

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    room_type: Mapped[str] = mapped_column(String(20), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    queue_state: Mapped[str] = mapped_column(String(20), nullable=False, default=QueueState.WAITING.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    user = relationship("User")

    def transition(self, state: QueueState, now: datetime | None = None) -> None:
        self.queue_state = state.value
        self.updated_at = now or datetime.now(UTC)
