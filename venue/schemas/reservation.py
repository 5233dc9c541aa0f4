import datetime as dt
from datetime import datetime

from pydantic import BaseModel, Field

from venue.db.models.reservation import RoomType

TIME_PATTERN = r"^\d{2}:\d{2}$"


class ReservationCreateRequest(BaseModel):
    date: dt.date
    start_time: str = Field(pattern=TIME_PATTERN, examples=["20:00"])
    end_time: str | None = Field(default=None, pattern=TIME_PATTERN)
    room_type: RoomType
    party_size: int = Field(ge=1, le=50)
    notes: str | None = Field(default=None, max_length=500)


class ReservationResponse(BaseModel):
    id: int
    user_id: int
    room_type: RoomType
    date: dt.date
    start_time: str
    end_time: str
    party_size: int
    status: str
    notes: str | None
    reminder_sent_at: datetime | None
    attendance_confirmed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ReservationCreateResponse(BaseModel):
    reservation: ReservationResponse
    waitlisted: bool
    waitlist_position: int | None = None


class CancellationResponse(BaseModel):
    reservation: ReservationResponse
    promoted_reservation_id: int | None = None


class WaitListPositionResponse(BaseModel):
    reservation_id: int
    status: str
    position: int | None


class PromoteRequest(BaseModel):
    date: dt.date
    start_time: str = Field(pattern=TIME_PATTERN)
    room_type: RoomType


class PromoteResponse(BaseModel):
    promoted_reservation_id: int | None
