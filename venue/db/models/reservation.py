import datetime as dt
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from venue.db.base import Base


class RoomType(str, Enum):
    BAR = "bar"
    MAHJONG = "mahjong"
    POKER = "poker"

    @property
    def shares_room(self) -> bool:
        return self in (RoomType.BAR, RoomType.MAHJONG)

    @property
    def shared_counterpart(self) -> "RoomType | None":
        if self is RoomType.BAR:
            return RoomType.MAHJONG
        if self is RoomType.MAHJONG:
            return RoomType.BAR
        return None


class ReservationStatus(str, Enum):
    CONFIRMED = "confirmed"
    WAITLISTED = "waitlisted"
    CANCELLED = "cancelled"


OCCUPYING_STATUSES = (ReservationStatus.CONFIRMED.value, ReservationStatus.WAITLISTED.value)

_ONE_CONFIRMED_PER_SLOT = "status = 'confirmed' AND room_type != 'poker'"


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        Index("ix_reservations_slot_lookup", "date", "start_time", "room_type", "status"),
        Index(
            "uq_reservations_confirmed_slot",
            "date",
            "start_time",
            "room_type",
            unique=True,
            postgresql_where=text(_ONE_CONFIRMED_PER_SLOT),
            sqlite_where=text(_ONE_CONFIRMED_PER_SLOT),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    room_type: Mapped[str] = mapped_column(String(20), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    party_size: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ReservationStatus.CONFIRMED.value)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    reminder_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    attendance_confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    user = relationship("User", back_populates="reservations")

    @property
    def is_confirmed(self) -> bool:
        return self.status == ReservationStatus.CONFIRMED.value

    @property
    def is_waitlisted(self) -> bool:
        return self.status == ReservationStatus.WAITLISTED.value

    @property
    def is_cancelled(self) -> bool:
        return self.status == ReservationStatus.CANCELLED.value

    def cancel(self, now: datetime | None = None) -> None:
        self.status = ReservationStatus.CANCELLED.value
        self.updated_at = now or datetime.now(UTC)

    def promote(self, now: datetime | None = None) -> None:
        self.status = ReservationStatus.CONFIRMED.value
        self.updated_at = now or datetime.now(UTC)
