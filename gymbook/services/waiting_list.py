"""
FIFO waiting list per slot.

Positions come from a per-slot monotonic counter: the highest position ever handed out
for the slot plus one. Leaving or being promoted only flips ``is_active``; nothing is
renumbered, so the oldest active entry is always the one with the lowest position.
"""
import logging
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from gymbook.core.errors import NotEligible, NotFound, PermissionDenied
from gymbook.models.reservation import SOURCE_WAITING_LIST
from gymbook.models.slot import Slot
from gymbook.models.waiting_list import WaitingListEntry
from gymbook.services import access_window, reservation_store
from gymbook.services.access_window import Actor, Phase
from gymbook.services.slot_lock import slot_guard

logger = logging.getLogger(__name__)


def next_position(db: Session, slot_id: int) -> int:
    highest = db.query(func.max(WaitingListEntry.position)).filter(
        WaitingListEntry.slot_id == slot_id,
    ).scalar()
    return (highest or 0) + 1


def active_entry(db: Session, slot_id: int, member_id: str) -> WaitingListEntry | None:
    return db.query(WaitingListEntry).filter(
        WaitingListEntry.slot_id == slot_id,
        WaitingListEntry.member_id == member_id,
        WaitingListEntry.is_active.is_(True),
    ).first()


def list_active_entries(db: Session, slot_id: int) -> list[WaitingListEntry]:
    return db.query(WaitingListEntry).filter(
        WaitingListEntry.slot_id == slot_id,
        WaitingListEntry.is_active.is_(True),
    ).order_by(WaitingListEntry.position.asc()).all()


def queue_position(db: Session, slot_id: int, member_id: str) -> int | None:
    """1-based rank of the member among active entries, or None when not waiting."""
    entry = active_entry(db, slot_id, member_id)
    if entry is None:
        return None

    ahead = db.query(func.count(WaitingListEntry.id)).filter(
        WaitingListEntry.slot_id == slot_id,
        WaitingListEntry.is_active.is_(True),
        WaitingListEntry.position < entry.position,
    ).scalar() or 0
    return ahead + 1


def join(db: Session, actor: Actor, slot_id: int, now: datetime) -> WaitingListEntry:
    if actor.is_staff:
        raise PermissionDenied('Staff accounts cannot join waiting lists.')

    with slot_guard(db, slot_id) as slot:
        if access_window.phase(slot, now) == Phase.PASSED:
            raise NotEligible('This class has already taken place.')
        if reservation_store.available(db, slot) > 0:
            raise NotEligible('Spots are still available for this class. Reserve one instead.')
        if reservation_store.active_reservation(db, slot.id, actor.member_id) is not None:
            raise NotEligible('You already have a reservation for this class.')
        if active_entry(db, slot.id, actor.member_id) is not None:
            raise NotEligible('You are already on the waiting list for this class.')

        entry = WaitingListEntry(
            slot_id=slot.id,
            member_id=actor.member_id,
            position=next_position(db, slot.id),
            is_active=True,
            joined_at=now,
        )
        db.add(entry)
        db.flush()

    logger.info('Member %s joined waiting list for slot %s at position %s', actor.member_id, slot_id, entry.position)
    return entry


def leave(db: Session, actor: Actor, slot_id: int, now: datetime) -> WaitingListEntry:
    with slot_guard(db, slot_id) as slot:
        entry = active_entry(db, slot.id, actor.member_id)
        if entry is None:
            raise NotFound('You are not on the waiting list for this class.')

        entry.is_active = False
        entry.left_at = now
        db.flush()

    logger.info('Member %s left waiting list for slot %s', actor.member_id, slot_id)
    return entry


def promote(db: Session, slot: Slot, now: datetime) -> str | None:
    """Give the freed spot to the longest-waiting member.

    Runs inside the caller's slot guard. Returns the promoted member id, or None when
    nobody is waiting or the slot has no free spot.
    """
    if reservation_store.available(db, slot) <= 0:
        return None

    entry = db.query(WaitingListEntry).filter(
        WaitingListEntry.slot_id == slot.id,
        WaitingListEntry.is_active.is_(True),
    ).order_by(WaitingListEntry.position.asc()).first()
    if entry is None:
        return None

    entry.is_active = False
    entry.promoted_at = now
    db.flush()

    reservation_store.activate_reservation(db, slot.id, entry.member_id, now, source=SOURCE_WAITING_LIST)
    logger.info('Promoted member %s from position %s for slot %s', entry.member_id, entry.position, slot.id)
    return entry.member_id


def promote_until_full(db: Session, slot: Slot, now: datetime) -> list[str]:
    """Promote in position order until the slot is full or nobody is left waiting.

    Runs inside the caller's slot guard.
    """
    promoted: list[str] = []
    while True:
        member_id = promote(db, slot, now)
        if member_id is None:
            return promoted
        promoted.append(member_id)
