import datetime as dt
from datetime import datetime

from sqlalchemy import Date, DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from venue.db.base import Base


class BlockedSlot(Base):
    __tablename__ = "blocked_slots"
    __table_args__ = (Index("ix_blocked_slots_lookup", "date", "room_type"),)

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    room_type: Mapped[str] = mapped_column(String(20), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
