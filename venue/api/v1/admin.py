from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from venue.api.deps import get_notifier, get_now, require_admin
from venue.api.pagination import LimitParam, OffsetParam
from venue.db.models import DeliveryStatus, Reservation, RoomType, SmsMessage
from venue.db.session import get_db
from venue.schemas.blocked_slot import BlockedSlotCreateRequest, BlockedSlotResponse
from venue.schemas.reservation import PromoteRequest, PromoteResponse, ReservationResponse
from venue.schemas.sms import SmsDeliveryUpdate, SmsMessageResponse
from venue.schemas.wait_list import QueueKeyRequest, WaitListEntryResponse
from venue.services.blocked_slot_service import create_blocked_slot, delete_blocked_slot, list_blocked_slots
from venue.services.notification_service import (
    NotificationDispatcher,
    dispatch_safely,
    list_sms_queue,
    mark_sms_delivery,
)
from venue.services.reservation_service import list_reservations_for_date
from venue.services.wait_list_service import confirm_next_in_queue, promote_from_waitlist

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.post("/blocked-slots", response_model=BlockedSlotResponse, status_code=status.HTTP_201_CREATED)
def block_slot(payload: BlockedSlotCreateRequest, db: Session = Depends(get_db)) -> BlockedSlotResponse:
    blocked_slot = create_blocked_slot(
        db,
        room_type=payload.room_type,
        day=payload.date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        reason=payload.reason,
    )
    return BlockedSlotResponse.model_validate(blocked_slot)


@router.get("/blocked-slots", response_model=list[BlockedSlotResponse], status_code=status.HTTP_200_OK)
def blocked_slots(
    day: date = Query(alias="date"),
    room_type: RoomType | None = Query(default=None, alias="type"),
    db: Session = Depends(get_db),
) -> list[BlockedSlotResponse]:
    return [BlockedSlotResponse.model_validate(item) for item in list_blocked_slots(db, day, room_type)]


@router.delete("/blocked-slots/{blocked_slot_id}", status_code=status.HTTP_204_NO_CONTENT)
def unblock_slot(blocked_slot_id: int, db: Session = Depends(get_db)) -> Response:
    delete_blocked_slot(db, blocked_slot_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/reservations", response_model=list[ReservationResponse], status_code=status.HTTP_200_OK)
def reservations_for_date(
    day: date = Query(alias="date"),
    room_type: RoomType | None = Query(default=None, alias="type"),
    db: Session = Depends(get_db),
) -> list[ReservationResponse]:
    return [ReservationResponse.model_validate(item) for item in list_reservations_for_date(db, day, room_type)]


@router.post("/reservations/promote", response_model=PromoteResponse, status_code=status.HTTP_200_OK)
def promote(
    payload: PromoteRequest,
    notifier: NotificationDispatcher = Depends(get_notifier),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
) -> PromoteResponse:
    promoted_id = promote_from_waitlist(db, payload.date, payload.start_time, payload.room_type, now=now)
    if promoted_id is not None:
        dispatch_safely(db, notifier.send_promotion, db.get(Reservation, promoted_id))
    return PromoteResponse(promoted_reservation_id=promoted_id)


@router.post(
    "/poker/wait-list/confirm-next",
    response_model=WaitListEntryResponse | None,
    status_code=status.HTTP_200_OK,
)
def confirm_next(
    payload: QueueKeyRequest,
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
) -> WaitListEntryResponse | None:
    entry = confirm_next_in_queue(db, payload.date, payload.start_time, RoomType.POKER, now=now)
    return WaitListEntryResponse.model_validate(entry) if entry else None


@router.get("/sms/queue", response_model=list[SmsMessageResponse], status_code=status.HTTP_200_OK)
def sms_queue(
    delivery_status: DeliveryStatus | None = Query(default=DeliveryStatus.PENDING, alias="status"),
    limit: LimitParam = 50,
    offset: OffsetParam = 0,
    db: Session = Depends(get_db),
) -> list[SmsMessageResponse]:
    messages = list_sms_queue(db, status=delivery_status, limit=limit, offset=offset)
    return [SmsMessageResponse.model_validate(message) for message in messages]


@router.patch("/sms/queue/{message_id}", response_model=SmsMessageResponse, status_code=status.HTTP_200_OK)
def report_sms_delivery(
    message_id: int,
    payload: SmsDeliveryUpdate,
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
) -> SmsMessageResponse:
    message = db.get(SmsMessage, message_id)
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="SMS message not found")
    message = mark_sms_delivery(db, message, payload.delivered, now=now)
    return SmsMessageResponse.model_validate(message)
