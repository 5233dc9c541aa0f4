import datetime as dt
from datetime import datetime

from pydantic import BaseModel, Field

from venue.db.models.reservation import RoomType
from venue.db.models.wait_list_entry import QueueState
from venue.schemas.reservation import TIME_PATTERN


class QueueKeyRequest(BaseModel):
    date: dt.date
    start_time: str = Field(pattern=TIME_PATTERN)


class WaitListEntryResponse(BaseModel):
    id: int
    user_id: int
    room_type: RoomType
    date: dt.date
    start_time: str
    queue_state: QueueState
    created_at: datetime

    model_config = {"from_attributes": True}


class QueuePositionResponse(BaseModel):
    entry: WaitListEntryResponse
    position: int

    model_config = {"from_attributes": True}
