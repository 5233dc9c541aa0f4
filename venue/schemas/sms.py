from datetime import datetime

from pydantic import BaseModel

from venue.db.models.notification import DeliveryStatus


class SmsMessageResponse(BaseModel):
    id: int
    phone_number: str
    message: str
    status: DeliveryStatus
    notification_id: int | None
    created_at: datetime
    sent_at: datetime | None

    model_config = {"from_attributes": True}


class SmsDeliveryUpdate(BaseModel):
    delivered: bool
