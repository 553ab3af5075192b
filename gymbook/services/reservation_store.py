"""Reservation queries and the internal create-or-reactivate path.

Callers must already hold the slot guard for any function that writes.
"""
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from gymbook.models.reservation import SOURCE_MEMBER, Reservation
from gymbook.models.slot import Slot
from gymbook.models.waiting_list import WaitingListEntry


def find_reservation(db: Session, slot_id: int, member_id: str) -> Reservation | None:
    return db.query(Reservation).filter(
        Reservation.slot_id == slot_id,
        Reservation.member_id == member_id,
    ).first()


def active_reservation(db: Session, slot_id: int, member_id: str) -> Reservation | None:
    return db.query(Reservation).filter(
        Reservation.slot_id == slot_id,
        Reservation.member_id == member_id,
        Reservation.is_active.is_(True),
    ).first()


def count_active(db: Session, slot_id: int) -> int:
    return db.query(func.count(Reservation.id)).filter(
        Reservation.slot_id == slot_id,
        Reservation.is_active.is_(True),
    ).scalar() or 0


def available(db: Session, slot: Slot) -> int:
    return slot.capacity - count_active(db, slot.id)


def active_member_ids(db: Session, slot_id: int) -> list[str]:
    rows = db.query(Reservation.member_id).filter(
        Reservation.slot_id == slot_id,
        Reservation.is_active.is_(True),
    ).order_by(Reservation.reserved_at.asc(), Reservation.id.asc()).all()
    return [member_id for (member_id,) in rows]


def activate_reservation(
    db: Session,
    slot_id: int,
    member_id: str,
    now: datetime,
    source: str = SOURCE_MEMBER,
) -> Reservation:
    """Reactivate the member's existing row for the slot, or insert one.

    No window or capacity checks happen here. A member who gets a spot also leaves
    the waiting list for that slot.
    """
    reservation = find_reservation(db, slot_id, member_id)
    if reservation is None:
        reservation = Reservation(slot_id=slot_id, member_id=member_id)
        db.add(reservation)

    reservation.is_active = True
    reservation.cancelled_at = None
    reservation.reserved_at = now
    reservation.source = source

    db.query(WaitingListEntry).filter(
        WaitingListEntry.slot_id == slot_id,
        WaitingListEntry.member_id == member_id,
        WaitingListEntry.is_active.is_(True),
    ).update({'is_active': False, 'left_at': now}, synchronize_session='fetch')

    db.flush()
    return reservation


def deactivate_reservation(db: Session, reservation: Reservation, now: datetime) -> Reservation:
    reservation.is_active = False
    reservation.cancelled_at = now
    db.flush()
    return reservation
