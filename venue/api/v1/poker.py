from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from venue.api.deps import get_current_user, get_now
from venue.core.rate_limiter import LimitedAction, enforce_rate_limit
from venue.db.models import RoomType, User
from venue.db.session import get_db
from venue.schemas.reservation import TIME_PATTERN
from venue.schemas.wait_list import QueueKeyRequest, QueuePositionResponse, WaitListEntryResponse
from venue.services.wait_list_service import decline_queue_entry, get_queue, join_queue

router = APIRouter(prefix="/poker/wait-list", tags=["poker"])


@router.post("", response_model=QueuePositionResponse, status_code=status.HTTP_201_CREATED)
def join(
    payload: QueueKeyRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> QueuePositionResponse:
    enforce_rate_limit(LimitedAction.POKER_JOIN, current_user.id)
    queued = join_queue(db, current_user.id, payload.date, payload.start_time, RoomType.POKER)
    return QueuePositionResponse.model_validate(queued)


@router.get("", response_model=list[QueuePositionResponse], status_code=status.HTTP_200_OK)
def list_queue(
    day: date = Query(alias="date"),
    start_time: str = Query(pattern=TIME_PATTERN),
    _: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[QueuePositionResponse]:
    return [QueuePositionResponse.model_validate(item) for item in get_queue(db, day, start_time, RoomType.POKER)]


@router.delete("/{entry_id}", response_model=WaitListEntryResponse, status_code=status.HTTP_200_OK)
def leave(
    entry_id: int,
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
) -> WaitListEntryResponse:
    entry = decline_queue_entry(db, entry_id, current_user, now=now)
    return WaitListEntryResponse.model_validate(entry)
