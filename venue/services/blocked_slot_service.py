import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from venue.core.exceptions import BlockedSlotNotFound
from venue.db.models import BlockedSlot, RoomType
from venue.services.time_service import validate_time_range

logger = logging.getLogger(__name__)


def create_blocked_slot(
    db: Session,
    room_type: RoomType | str,
    day: date,
    start_time: str,
    end_time: str,
    reason: str | None = None,
) -> BlockedSlot:
    validate_time_range(start_time, end_time, day)
    blocked_slot = BlockedSlot(
        room_type=RoomType(room_type).value,
        date=day,
        start_time=start_time,
        end_time=end_time,
        reason=reason,
    )
    db.add(blocked_slot)
    db.commit()
    db.refresh(blocked_slot)
    logger.info(
        "slot_blocked id=%s date=%s room_type=%s range=%s-%s",
        blocked_slot.id,
        day,
        blocked_slot.room_type,
        start_time,
        end_time,
    )
    return blocked_slot


def list_blocked_slots(db: Session, day: date, room_type: RoomType | str | None = None) -> list[BlockedSlot]:
    query = select(BlockedSlot).where(BlockedSlot.date == day)
    if room_type is not None:
        query = query.where(BlockedSlot.room_type == RoomType(room_type).value)
    return list(db.scalars(query.order_by(BlockedSlot.start_time, BlockedSlot.id)).all())


def delete_blocked_slot(db: Session, blocked_slot_id: int) -> None:
    blocked_slot = db.get(BlockedSlot, blocked_slot_id)
    if blocked_slot is None:
        raise BlockedSlotNotFound(blocked_slot_id)
    db.delete(blocked_slot)
    db.commit()
    logger.info("slot_unblocked id=%s", blocked_slot_id)
