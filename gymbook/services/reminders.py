"""Pre-class reminders for members holding a spot, sent once per slot."""
import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from gymbook.core import config
from gymbook.models.notification import SlotReminder
from gymbook.models.slot import Slot
from gymbook.services import reservation_store
from gymbook.services.notifications import Dispatcher, SlotReminderIntent, emit
from gymbook.services.slot_lock import slot_guard

logger = logging.getLogger(__name__)


def due_slot_ids(db: Session, now: datetime) -> list[int]:
    window_start = now + timedelta(minutes=config.REMINDER_WINDOW_START_MINUTES)
    window_end = now + timedelta(minutes=config.REMINDER_WINDOW_END_MINUTES)

    rows = db.query(Slot.id).outerjoin(SlotReminder, SlotReminder.slot_id == Slot.id).filter(
        Slot.start_time >= window_start,
        Slot.start_time <= window_end,
        SlotReminder.id.is_(None),
    ).order_by(Slot.start_time.asc()).all()
    return [slot_id for (slot_id,) in rows]


def remind_slot(db: Session, slot_id: int, now: datetime, dispatcher: Dispatcher | None = None) -> int:
    with slot_guard(db, slot_id) as slot:
        already_sent = db.query(SlotReminder.id).filter(SlotReminder.slot_id == slot.id).first()
        if already_sent is not None:
            return 0

        member_ids = reservation_store.active_member_ids(db, slot.id)
        if not member_ids:
            return 0

        db.add(SlotReminder(slot_id=slot.id, sent_at=now, recipient_count=len(member_ids)))
        db.flush()

    emit([SlotReminderIntent(slot_id=slot_id, member_ids=tuple(member_ids))], dispatcher)
    logger.info('Sent %s reminders for slot %s', len(member_ids), slot_id)
    return len(member_ids)


def send_due_reminders(db: Session, now: datetime, dispatcher: Dispatcher | None = None) -> int:
    total = 0
    for slot_id in due_slot_ids(db, now):
        try:
            total += remind_slot(db, slot_id, now, dispatcher)
        except Exception:
            logger.exception('Reminder failed for slot %s', slot_id)
    return total
