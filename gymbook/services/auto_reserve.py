"""
Automated reservations for priority members who opted in.

Once a slot is in its priority phase, check_and_run books the eligible members in
member-id order up to the free capacity and flips ``auto_reserve_executed`` so the
periodic trigger can call it as often as it likes. The flag flips whenever eligibility
was computed, even if nobody ended up being booked.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from gymbook.models.member_preference import MemberBookingPreference
from gymbook.models.reservation import SOURCE_AUTO_RESERVE
from gymbook.models.slot import Slot
from gymbook.services import access_window, reservation_store
from gymbook.services.access_window import Phase, Tier
from gymbook.services.notifications import AutoReservedIntent, Dispatcher, emit
from gymbook.services.slot_lock import slot_guard

logger = logging.getLogger(__name__)

SKIP_PRIORITY_DISABLED = 'priority_disabled'
SKIP_AUTO_RESERVE_DISABLED = 'auto_reserve_disabled'
SKIP_ALREADY_EXECUTED = 'already_executed'
SKIP_NOT_IN_PRIORITY_PHASE = 'not_in_priority_phase'


@dataclass
class AutoReserveResult:
    slot_id: int
    executed: bool
    reserved_member_ids: list[str] = field(default_factory=list)
    eligible_count: int = 0
    skipped_reason: str | None = None


def _skip_reason(slot: Slot, now: datetime) -> str | None:
    if not slot.priority_enabled:
        return SKIP_PRIORITY_DISABLED
    if not slot.auto_reserve_enabled:
        return SKIP_AUTO_RESERVE_DISABLED
    if slot.auto_reserve_executed:
        return SKIP_ALREADY_EXECUTED
    if access_window.phase(slot, now) != Phase.PRIORITY:
        return SKIP_NOT_IN_PRIORITY_PHASE
    return None


def eligible_member_ids(db: Session, slot: Slot) -> list[str]:
    """Opted-in priority members whose preference matches the slot, ordered by member id."""
    rows = db.query(MemberBookingPreference.member_id).filter(
        MemberBookingPreference.tier == Tier.PRIORITY.value,
        MemberBookingPreference.auto_reserve_enabled.is_(True),
        or_(
            MemberBookingPreference.preferred_category.is_(None),
            MemberBookingPreference.preferred_category == slot.category,
        ),
    ).order_by(MemberBookingPreference.member_id.asc()).all()

    already_reserved = set(reservation_store.active_member_ids(db, slot.id))
    return [member_id for (member_id,) in rows if member_id not in already_reserved]


def _mark_executed(db: Session, slot_id: int) -> bool:
    result = db.execute(
        update(Slot)
        .where(Slot.id == slot_id, Slot.auto_reserve_executed.is_(False))
        .values(auto_reserve_executed=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def check_and_run(
    db: Session,
    slot_id: int,
    now: datetime,
    dispatcher: Dispatcher | None = None,
) -> AutoReserveResult:
    with slot_guard(db, slot_id) as slot:
        reason = _skip_reason(slot, now)
        if reason is not None:
            logger.debug('Auto-reserve skipped for slot %s: %s', slot_id, reason)
            return AutoReserveResult(slot_id=slot_id, executed=False, skipped_reason=reason)

        eligible = eligible_member_ids(db, slot)
        spots = max(reservation_store.available(db, slot), 0)
        selected = eligible[:min(spots, len(eligible))]

        for member_id in selected:
            reservation_store.activate_reservation(db, slot.id, member_id, now, source=SOURCE_AUTO_RESERVE)

        if not _mark_executed(db, slot.id):
            # Another worker finished this slot first; drop our batch.
            db.rollback()
            logger.warning('Auto-reserve for slot %s already executed elsewhere; batch discarded', slot_id)
            return AutoReserveResult(slot_id=slot_id, executed=False, skipped_reason=SKIP_ALREADY_EXECUTED)

    logger.info(
        'Auto-reserved %s of %s eligible priority members for slot %s',
        len(selected),
        len(eligible),
        slot_id,
    )
    emit([AutoReservedIntent(slot_id=slot_id, member_ids=tuple(selected))], dispatcher)
    return AutoReserveResult(
        slot_id=slot_id,
        executed=True,
        reserved_member_ids=list(selected),
        eligible_count=len(eligible),
    )


def due_slot_ids(db: Session, now: datetime) -> list[int]:
    rows = db.query(Slot.id).filter(
        Slot.priority_enabled.is_(True),
        Slot.auto_reserve_enabled.is_(True),
        Slot.auto_reserve_executed.is_(False),
        Slot.start_time > now,
    ).order_by(Slot.start_time.asc()).all()
    return [slot_id for (slot_id,) in rows]


def run_due_auto_reservations(
    db: Session,
    now: datetime,
    dispatcher: Dispatcher | None = None,
) -> list[AutoReserveResult]:
    """One scheduler tick: run check_and_run for every slot that might still need it."""
    results: list[AutoReserveResult] = []
    for slot_id in due_slot_ids(db, now):
        try:
            result = check_and_run(db, slot_id, now, dispatcher)
        except Exception:
            logger.exception('Auto-reserve failed for slot %s', slot_id)
            continue
        if result.executed:
            results.append(result)
    return results
