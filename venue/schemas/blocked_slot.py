import datetime as dt
from datetime import datetime

from pydantic import BaseModel, Field

from venue.db.models.reservation import RoomType
from venue.schemas.reservation import TIME_PATTERN


class BlockedSlotCreateRequest(BaseModel):
    room_type: RoomType
    date: dt.date
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)
    reason: str | None = Field(default=None, max_length=255)


class BlockedSlotResponse(BaseModel):
    id: int
    room_type: RoomType
    date: dt.date
    start_time: str
    end_time: str
    reason: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
