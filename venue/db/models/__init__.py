from venue.db.models.blocked_slot import BlockedSlot
from venue.db.models.notification import DeliveryStatus, Notification, NotificationKind, SmsMessage
from venue.db.models.reservation import OCCUPYING_STATUSES, Reservation, ReservationStatus, RoomType
from venue.db.models.user import User, UserRole
from venue.db.models.wait_list_entry import QueueState, WaitListEntry

__all__ = [
    "User",
    "UserRole",
    "Reservation",
    "ReservationStatus",
    "RoomType",
    "OCCUPYING_STATUSES",
    "BlockedSlot",
    "WaitListEntry",
    "QueueState",
    "Notification",
    "NotificationKind",
    "DeliveryStatus",
    "SmsMessage",
]
