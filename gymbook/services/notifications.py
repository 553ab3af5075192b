"""
Notification intents emitted by the booking engine.

The engine never delivers anything itself: it hands one intent object per event to a
dispatcher after the booking transaction has committed. Delivery failures are logged and
dropped so they can never undo a committed reservation.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, ClassVar, Protocol, Union

from sqlalchemy.orm import Session

from gymbook.models.notification import NotificationLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotFullIntent:
    type: ClassVar[str] = 'slot_full'
    slot_id: int

    def to_payload(self) -> dict:
        return {'type': self.type, 'slotId': self.slot_id, 'targetStaff': True}


@dataclass(frozen=True)
class SpotFreedIntent:
    type: ClassVar[str] = 'spot_freed'
    slot_id: int
    exclude_member_ids: tuple[str, ...] = ()

    def to_payload(self) -> dict:
        return {'type': self.type, 'slotId': self.slot_id, 'excludeMemberIds': list(self.exclude_member_ids)}


@dataclass(frozen=True)
class WaitingListPromotedIntent:
    type: ClassVar[str] = 'waiting_list_promoted'
    slot_id: int
    member_id: str

    def to_payload(self) -> dict:
        return {'type': self.type, 'slotId': self.slot_id, 'targetMemberIds': [self.member_id]}


@dataclass(frozen=True)
class AutoReservedIntent:
    type: ClassVar[str] = 'auto_reserved'
    slot_id: int
    member_ids: tuple[str, ...] = ()

    def to_payload(self) -> dict:
        return {'type': self.type, 'slotId': self.slot_id, 'targetMemberIds': list(self.member_ids)}


@dataclass(frozen=True)
class SlotReminderIntent:
    type: ClassVar[str] = 'slot_reminder'
    slot_id: int
    member_ids: tuple[str, ...] = ()

    def to_payload(self) -> dict:
        return {'type': self.type, 'slotId': self.slot_id, 'targetMemberIds': list(self.member_ids)}


NotificationIntent = Union[
    SlotFullIntent,
    SpotFreedIntent,
    WaitingListPromotedIntent,
    AutoReservedIntent,
    SlotReminderIntent,
]


class Dispatcher(Protocol):
    def dispatch(self, intent: NotificationIntent) -> None:
        ...


class NotificationLogDispatcher:
    """Writes each intent to notification_log for the push fan-out service to pick up."""

    def __init__(self, session_factory: Callable[[], Session], clock: Callable[[], datetime]):
        self._session_factory = session_factory
        self._clock = clock

    def dispatch(self, intent: NotificationIntent) -> None:
        payload = intent.to_payload()
        db = self._session_factory()
        try:
            db.add(
                NotificationLog(
                    type=intent.type,
                    slot_id=intent.slot_id,
                    target_member_ids=payload.get('targetMemberIds'),
                    exclude_member_ids=payload.get('excludeMemberIds'),
                    target_staff=payload.get('targetStaff', False),
                    created_at=self._clock(),
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        logger.info('Queued %s notification for slot %s', intent.type, intent.slot_id)


_default_dispatcher: Dispatcher | None = None


def set_default_dispatcher(dispatcher: Dispatcher | None) -> None:
    global _default_dispatcher
    _default_dispatcher = dispatcher


def get_default_dispatcher() -> Dispatcher | None:
    return _default_dispatcher


def emit(intents: list[NotificationIntent], dispatcher: Dispatcher | None = None) -> None:
    """Hand intents to the dispatcher; never raises."""
    target = dispatcher if dispatcher is not None else _default_dispatcher
    for intent in intents:
        if target is None:
            logger.debug('No dispatcher configured; dropping %s for slot %s', intent.type, intent.slot_id)
            continue
        try:
            target.dispatch(intent)
        except Exception:
            logger.exception('Failed to dispatch %s notification for slot %s', intent.type, intent.slot_id)
