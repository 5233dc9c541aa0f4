import datetime as dt

from pydantic import BaseModel

from venue.db.models.reservation import RoomType
from venue.services.availability_service import SlotStatus


class SlotStateResponse(BaseModel):
    time: str
    status: SlotStatus

    model_config = {"from_attributes": True}


class AvailabilityResponse(BaseModel):
    date: dt.date
    room_type: RoomType
    operating_hours: str
    slots: list[SlotStateResponse]
    available_start_times: list[str]


class ConsecutiveSlotsResponse(BaseModel):
    date: dt.date
    room_type: RoomType
    duration_hours: float
    windows: list[list[str]]


class MaxDurationResponse(BaseModel):
    date: dt.date
    room_type: RoomType
    start_time: str
    party_size: int
    max_hours: float
    limited_by_closing_time: bool
    limited_by_bookings: bool
    limited_by_party_size: bool
