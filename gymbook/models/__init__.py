from gymbook.models.slot import Slot
from gymbook.models.reservation import Reservation
from gymbook.models.waiting_list import WaitingListEntry
from gymbook.models.member_preference import MemberBookingPreference
from gymbook.models.notification import NotificationLog, SlotReminder

__all__ = [
    "Slot",
    "Reservation",
    "WaitingListEntry",
    "MemberBookingPreference",
    "NotificationLog",
    "SlotReminder",
]
