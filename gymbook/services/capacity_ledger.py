"""
Reserve and cancel spots in a slot without ever exceeding its capacity.

Each write runs inside slot_guard so the count check and the insert/update happen
under the same lock. Notification intents are emitted only after the guard commits.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from gymbook.core.errors import AlreadyReserved, NotFound, PermissionDenied, SlotFull, SlotNotFound, WindowClosed
from gymbook.models.reservation import SOURCE_MEMBER, SOURCE_STAFF, Reservation
from gymbook.models.slot import Slot
from gymbook.services import access_window, reservation_store, waiting_list
from gymbook.services.access_window import Actor, Tier
from gymbook.services.notifications import (
    Dispatcher,
    SlotFullIntent,
    SpotFreedIntent,
    WaitingListPromotedIntent,
    emit,
)
from gymbook.services.slot_lock import slot_guard

logger = logging.getLogger(__name__)


@dataclass
class CancelOutcome:
    reservation: Reservation
    promoted_member_ids: list[str] = field(default_factory=list)


def get_slot(db: Session, slot_id: int) -> Slot:
    slot = db.query(Slot).filter(Slot.id == slot_id).first()
    if slot is None:
        raise SlotNotFound()
    return slot


def available(db: Session, slot: Slot) -> int:
    return reservation_store.available(db, slot)


def list_active_reservations(db: Session, actor: Actor, slot_id: int) -> list[Reservation]:
    if not actor.is_staff:
        raise PermissionDenied('Only staff can view the class roster.')

    get_slot(db, slot_id)
    return db.query(Reservation).filter(
        Reservation.slot_id == slot_id,
        Reservation.is_active.is_(True),
    ).order_by(Reservation.reserved_at.asc(), Reservation.id.asc()).all()


def _book(
    db: Session,
    slot: Slot,
    member_id: str,
    now: datetime,
    source: str,
    tier: Tier | None = None,
) -> tuple[Reservation, bool]:
    """Book ``member_id`` into the guarded slot; returns the reservation and whether the slot is now full.

    When ``tier`` is given the booking window for that tier is enforced as well.
    """
    if reservation_store.active_reservation(db, slot.id, member_id) is not None:
        raise AlreadyReserved()
    if reservation_store.available(db, slot) <= 0:
        raise SlotFull()
    if tier is not None and not access_window.can_reserve(tier, slot, now):
        raise WindowClosed(access_window.phase(slot, now))

    reservation = reservation_store.activate_reservation(db, slot.id, member_id, now, source=source)
    return reservation, reservation_store.available(db, slot) == 0


def reserve(
    db: Session,
    actor: Actor,
    slot_id: int,
    now: datetime,
    dispatcher: Dispatcher | None = None,
) -> Reservation:
    if actor.is_staff:
        raise PermissionDenied()

    with slot_guard(db, slot_id) as slot:
        reservation, filled = _book(db, slot, actor.member_id, now, SOURCE_MEMBER, tier=actor.tier)

    logger.info('Member %s reserved a spot in slot %s', actor.member_id, slot_id)
    if filled:
        emit([SlotFullIntent(slot_id=slot_id)], dispatcher)
    return reservation


def staff_reserve(
    db: Session,
    actor: Actor,
    slot_id: int,
    member_id: str,
    now: datetime,
    dispatcher: Dispatcher | None = None,
) -> Reservation:
    """Staff books a member in regardless of the booking phase."""
    if not actor.is_staff:
        raise PermissionDenied('Only staff can add members to a class.')

    with slot_guard(db, slot_id) as slot:
        reservation, filled = _book(db, slot, member_id, now, SOURCE_STAFF)

    logger.info('Staff %s added member %s to slot %s', actor.member_id, member_id, slot_id)
    if filled:
        emit([SlotFullIntent(slot_id=slot_id)], dispatcher)
    return reservation


def _cancel(
    db: Session,
    slot_id: int,
    member_id: str,
    now: datetime,
    dispatcher: Dispatcher | None,
) -> CancelOutcome:
    with slot_guard(db, slot_id) as slot:
        reservation = reservation_store.active_reservation(db, slot.id, member_id)
        if reservation is None:
            raise NotFound()

        reservation_store.deactivate_reservation(db, reservation, now)
        promoted_member_ids = waiting_list.promote_until_full(db, slot, now)
        still_free = reservation_store.available(db, slot) > 0

    intents = [WaitingListPromotedIntent(slot_id=slot_id, member_id=promoted) for promoted in promoted_member_ids]
    if still_free:
        intents.append(SpotFreedIntent(slot_id=slot_id, exclude_member_ids=(member_id, *promoted_member_ids)))
    emit(intents, dispatcher)

    return CancelOutcome(reservation=reservation, promoted_member_ids=promoted_member_ids)


def cancel(
    db: Session,
    actor: Actor,
    slot_id: int,
    now: datetime,
    dispatcher: Dispatcher | None = None,
) -> CancelOutcome:
    outcome = _cancel(db, slot_id, actor.member_id, now, dispatcher)
    logger.info('Member %s cancelled their reservation in slot %s', actor.member_id, slot_id)
    return outcome


def staff_cancel(
    db: Session,
    actor: Actor,
    slot_id: int,
    member_id: str,
    now: datetime,
    dispatcher: Dispatcher | None = None,
) -> CancelOutcome:
    if not actor.is_staff:
        raise PermissionDenied('Only staff can remove members from a class.')

    outcome = _cancel(db, slot_id, member_id, now, dispatcher)
    logger.info('Staff %s cancelled the reservation of member %s in slot %s', actor.member_id, member_id, slot_id)
    return outcome
