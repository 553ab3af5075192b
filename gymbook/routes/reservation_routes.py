from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from gymbook.auth.dependencies import get_current_actor
from gymbook.core.errors import PermissionDenied
from gymbook.routes.deps import booking_errors, ensure_database_ready, get_db, get_dispatcher, get_now
from gymbook.services import capacity_ledger, waiting_list
from gymbook.services.access_window import Actor
from gymbook.services.notifications import Dispatcher

router = APIRouter(tags=['reservations'])


class ReservationResponse(BaseModel):
    id: int
    slot_id: int
    member_id: str
    is_active: bool
    reserved_at: datetime
    cancelled_at: datetime | None = None
    source: str

    class Config:
        from_attributes = True


class CancelReservationResponse(BaseModel):
    reservation: ReservationResponse
    promoted_member_ids: list[str] = []


class WaitingListEntryResponse(BaseModel):
    id: int
    slot_id: int
    member_id: str
    position: int
    is_active: bool
    joined_at: datetime
    queue_position: int | None = None

    class Config:
        from_attributes = True


@router.post(
    '/slots/{slot_id}/reservations',
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
)
def reserve_spot(
    slot_id: int,
    actor: Actor = Depends(get_current_actor),
    now: datetime = Depends(get_now),
    dispatcher: Dispatcher | None = Depends(get_dispatcher),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with booking_errors(db):
        reservation = capacity_ledger.reserve(db, actor, slot_id, now, dispatcher)
        return ReservationResponse.model_validate(reservation)


@router.delete('/slots/{slot_id}/reservations', response_model=CancelReservationResponse)
def cancel_my_reservation(
    slot_id: int,
    actor: Actor = Depends(get_current_actor),
    now: datetime = Depends(get_now),
    dispatcher: Dispatcher | None = Depends(get_dispatcher),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with booking_errors(db):
        outcome = capacity_ledger.cancel(db, actor, slot_id, now, dispatcher)
        return CancelReservationResponse(
            reservation=ReservationResponse.model_validate(outcome.reservation),
            promoted_member_ids=outcome.promoted_member_ids,
        )


@router.get('/slots/{slot_id}/reservations', response_model=list[ReservationResponse])
def list_slot_reservations(
    slot_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with booking_errors(db):
        reservations = capacity_ledger.list_active_reservations(db, actor, slot_id)
        return [ReservationResponse.model_validate(reservation) for reservation in reservations]


@router.post(
    '/slots/{slot_id}/reservations/{member_id}',
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_member_to_slot(
    slot_id: int,
    member_id: str,
    actor: Actor = Depends(get_current_actor),
    now: datetime = Depends(get_now),
    dispatcher: Dispatcher | None = Depends(get_dispatcher),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with booking_errors(db):
        reservation = capacity_ledger.staff_reserve(db, actor, slot_id, member_id.strip(), now, dispatcher)
        return ReservationResponse.model_validate(reservation)


@router.delete('/slots/{slot_id}/reservations/{member_id}', response_model=CancelReservationResponse)
def remove_member_from_slot(
    slot_id: int,
    member_id: str,
    actor: Actor = Depends(get_current_actor),
    now: datetime = Depends(get_now),
    dispatcher: Dispatcher | None = Depends(get_dispatcher),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with booking_errors(db):
        outcome = capacity_ledger.staff_cancel(db, actor, slot_id, member_id.strip(), now, dispatcher)
        return CancelReservationResponse(
            reservation=ReservationResponse.model_validate(outcome.reservation),
            promoted_member_ids=outcome.promoted_member_ids,
        )


@router.post(
    '/slots/{slot_id}/waiting-list',
    response_model=WaitingListEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
def join_waiting_list(
    slot_id: int,
    actor: Actor = Depends(get_current_actor),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with booking_errors(db):
        entry = waiting_list.join(db, actor, slot_id, now)
        response = WaitingListEntryResponse.model_validate(entry)
        response.queue_position = waiting_list.queue_position(db, slot_id, actor.member_id)
        return response


@router.delete('/slots/{slot_id}/waiting-list', status_code=status.HTTP_204_NO_CONTENT)
def leave_waiting_list(
    slot_id: int,
    actor: Actor = Depends(get_current_actor),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with booking_errors(db):
        waiting_list.leave(db, actor, slot_id, now)


@router.get('/slots/{slot_id}/waiting-list', response_model=list[WaitingListEntryResponse])
def list_waiting_list(
    slot_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with booking_errors(db):
        if not actor.is_staff:
            raise PermissionDenied('Only staff can view the waiting list.')
        capacity_ledger.get_slot(db, slot_id)
        return [
            WaitingListEntryResponse(
                id=entry.id,
                slot_id=entry.slot_id,
                member_id=entry.member_id,
                position=entry.position,
                is_active=entry.is_active,
                joined_at=entry.joined_at,
                queue_position=rank,
            )
            for rank, entry in enumerate(waiting_list.list_active_entries(db, slot_id), start=1)
        ]
