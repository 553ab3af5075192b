from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from gymbook.auth.dependencies import get_current_actor, require_staff
from gymbook.routes.deps import booking_errors, ensure_database_ready, get_db, get_dispatcher, get_now
from gymbook.services import access_window, auto_reserve, capacity_ledger, reminders, reservation_store, waiting_list
from gymbook.services.access_window import Actor
from gymbook.services.notifications import Dispatcher

router = APIRouter(tags=['slots'])


class SlotStatusResponse(BaseModel):
    slot_id: int
    title: str
    category: str
    start_time: datetime
    end_time: datetime
    capacity: int
    available: int
    phase: str
    opens_at: datetime
    open_to_all_at: datetime
    can_reserve: bool
    is_reserved: bool
    waiting_list_position: int | None = None


class AutoReserveResponse(BaseModel):
    slot_id: int
    executed: bool
    reserved_member_ids: list[str]
    eligible_count: int
    skipped_reason: str | None = None


class AutoReserveRunResponse(BaseModel):
    slots_executed: int
    reserved: int
    results: list[AutoReserveResponse]


class ReminderRunResponse(BaseModel):
    reminded: int


def to_auto_reserve_response(result: auto_reserve.AutoReserveResult) -> AutoReserveResponse:
    return AutoReserveResponse(
        slot_id=result.slot_id,
        executed=result.executed,
        reserved_member_ids=result.reserved_member_ids,
        eligible_count=result.eligible_count,
        skipped_reason=result.skipped_reason,
    )


@router.get('/slots/{slot_id}', response_model=SlotStatusResponse)
def get_slot_status(
    slot_id: int,
    actor: Actor = Depends(get_current_actor),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with booking_errors(db):
        slot = capacity_ledger.get_slot(db, slot_id)
        summary = access_window.window_summary(slot, now)
        available = reservation_store.available(db, slot)
        is_reserved = reservation_store.active_reservation(db, slot.id, actor.member_id) is not None

        return SlotStatusResponse(
            slot_id=slot.id,
            title=slot.title,
            category=slot.category,
            start_time=slot.start_time,
            end_time=slot.end_time,
            capacity=slot.capacity,
            available=available,
            phase=summary.phase.value,
            opens_at=summary.opens_at,
            open_to_all_at=summary.open_to_all_at,
            can_reserve=(
                not is_reserved
                and available > 0
                and access_window.can_reserve(actor.tier, slot, now)
            ),
            is_reserved=is_reserved,
            waiting_list_position=waiting_list.queue_position(db, slot.id, actor.member_id),
        )


@router.post('/slots/auto-reserve/run', response_model=AutoReserveRunResponse)
def run_auto_reservations(
    actor: Actor = Depends(require_staff),
    now: datetime = Depends(get_now),
    dispatcher: Dispatcher | None = Depends(get_dispatcher),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with booking_errors(db):
        results = auto_reserve.run_due_auto_reservations(db, now, dispatcher)
        return AutoReserveRunResponse(
            slots_executed=len(results),
            reserved=sum(len(result.reserved_member_ids) for result in results),
            results=[to_auto_reserve_response(result) for result in results],
        )


@router.post('/slots/reminders/run', response_model=ReminderRunResponse)
def run_reminders(
    actor: Actor = Depends(require_staff),
    now: datetime = Depends(get_now),
    dispatcher: Dispatcher | None = Depends(get_dispatcher),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with booking_errors(db):
        return ReminderRunResponse(reminded=reminders.send_due_reminders(db, now, dispatcher))


@router.post('/slots/{slot_id}/auto-reserve', response_model=AutoReserveResponse)
def auto_reserve_slot(
    slot_id: int,
    actor: Actor = Depends(require_staff),
    now: datetime = Depends(get_now),
    dispatcher: Dispatcher | None = Depends(get_dispatcher),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with booking_errors(db):
        return to_auto_reserve_response(auto_reserve.check_and_run(db, slot_id, now, dispatcher))
