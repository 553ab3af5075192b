from datetime import timedelta

import pytest

from gymbook.core.errors import NotEligible, NotFound, PermissionDenied, SlotFull
from gymbook.models import WaitingListEntry
from gymbook.services import capacity_ledger, reservation_store, waiting_list
from gymbook.services.access_window import Actor, Tier


def _member(member_id: str) -> Actor:
    return Actor(member_id=member_id, tier=Tier.ORDINARY)


@pytest.fixture
def full_slot(booking_db, make_slot, now):
    slot = make_slot(capacity=1, start_time=now + timedelta(hours=6))
    capacity_ledger.reserve(booking_db, _member('holder'), slot.id, now)
    return slot


def test_cancel_promotes_waiting_member_synchronously(booking_db, make_slot, now, dispatcher) -> None:
    slot = make_slot(capacity=1, start_time=now + timedelta(hours=6))
    capacity_ledger.reserve(booking_db, _member('member-a'), slot.id, now, dispatcher)

    with pytest.raises(SlotFull):
        capacity_ledger.reserve(booking_db, _member('member-b'), slot.id, now, dispatcher)

    entry = waiting_list.join(booking_db, _member('member-b'), slot.id, now)
    assert entry.position == 1

    outcome = capacity_ledger.cancel(booking_db, _member('member-a'), slot.id, now + timedelta(minutes=3), dispatcher)

    assert outcome.promoted_member_ids == ['member-b']
    promoted = reservation_store.active_reservation(booking_db, slot.id, 'member-b')
    assert promoted is not None
    assert promoted.source == 'waiting_list'

    booking_db.refresh(entry)
    assert entry.is_active is False
    assert entry.promoted_at == now + timedelta(minutes=3)
    assert reservation_store.count_active(booking_db, slot.id) == 1

    promoted_intents = dispatcher.of_type('waiting_list_promoted')
    assert [intent.member_id for intent in promoted_intents] == ['member-b']
    assert dispatcher.of_type('spot_freed') == []


def test_oldest_active_entry_is_promoted_first(booking_db, full_slot, now) -> None:
    for member_id in ('member-a', 'member-b', 'member-c'):
        waiting_list.join(booking_db, _member(member_id), full_slot.id, now)

    first = capacity_ledger.cancel(booking_db, _member('holder'), full_slot.id, now)
    second = capacity_ledger.cancel(booking_db, _member('member-a'), full_slot.id, now)

    assert first.promoted_member_ids == ['member-a']
    assert second.promoted_member_ids == ['member-b']
    assert waiting_list.queue_position(booking_db, full_slot.id, 'member-c') == 1
    assert [entry.member_id for entry in waiting_list.list_active_entries(booking_db, full_slot.id)] == ['member-c']


def test_positions_are_never_reused_after_leaving(booking_db, full_slot, now) -> None:
    first = waiting_list.join(booking_db, _member('member-a'), full_slot.id, now)
    waiting_list.leave(booking_db, _member('member-a'), full_slot.id, now + timedelta(minutes=1))

    second = waiting_list.join(booking_db, _member('member-b'), full_slot.id, now + timedelta(minutes=2))
    rejoined = waiting_list.join(booking_db, _member('member-a'), full_slot.id, now + timedelta(minutes=3))

    assert (first.position, second.position, rejoined.position) == (1, 2, 3)
    assert first.left_at == now + timedelta(minutes=1)
    assert waiting_list.queue_position(booking_db, full_slot.id, 'member-b') == 1
    assert waiting_list.queue_position(booking_db, full_slot.id, 'member-a') == 2
    assert booking_db.query(WaitingListEntry).filter(WaitingListEntry.slot_id == full_slot.id).count() == 3


def test_join_is_refused_while_spots_are_available(booking_db, make_slot, now) -> None:
    slot = make_slot(capacity=2, start_time=now + timedelta(hours=6))

    with pytest.raises(NotEligible, match='Spots are still available'):
        waiting_list.join(booking_db, _member('member-a'), slot.id, now)


def test_join_is_refused_for_reserved_or_already_waiting_member(booking_db, full_slot, now) -> None:
    with pytest.raises(NotEligible, match='already have a reservation'):
        waiting_list.join(booking_db, _member('holder'), full_slot.id, now)

    waiting_list.join(booking_db, _member('member-a'), full_slot.id, now)
    with pytest.raises(NotEligible, match='already on the waiting list'):
        waiting_list.join(booking_db, _member('member-a'), full_slot.id, now)


def test_join_is_refused_after_the_class(booking_db, make_slot, now) -> None:
    slot = make_slot(capacity=1, start_time=now - timedelta(hours=3))

    with pytest.raises(NotEligible, match='already taken place'):
        waiting_list.join(booking_db, _member('member-a'), slot.id, now)


def test_staff_cannot_join_waiting_list(booking_db, full_slot, now) -> None:
    with pytest.raises(PermissionDenied):
        waiting_list.join(booking_db, Actor(member_id='coach-1', tier=Tier.STAFF), full_slot.id, now)


def test_leave_without_entry_raises_not_found(booking_db, full_slot, now) -> None:
    with pytest.raises(NotFound):
        waiting_list.leave(booking_db, _member('member-a'), full_slot.id, now)

    assert waiting_list.queue_position(booking_db, full_slot.id, 'member-a') is None


def test_promote_does_nothing_when_slot_is_still_full(booking_db, full_slot, now) -> None:
    waiting_list.join(booking_db, _member('member-a'), full_slot.id, now)

    assert waiting_list.promote(booking_db, full_slot, now) is None
    assert waiting_list.queue_position(booking_db, full_slot.id, 'member-a') == 1


def test_reserving_directly_removes_member_from_waiting_list(booking_db, full_slot, now) -> None:
    entry = waiting_list.join(booking_db, _member('member-a'), full_slot.id, now)

    full_slot.capacity = 2
    booking_db.commit()

    capacity_ledger.reserve(booking_db, _member('member-a'), full_slot.id, now + timedelta(minutes=1))

    booking_db.refresh(entry)
    assert entry.is_active is False
    assert entry.left_at == now + timedelta(minutes=1)
    assert waiting_list.list_active_entries(booking_db, full_slot.id) == []


def test_cancel_after_capacity_increase_promotes_until_full(booking_db, full_slot, now, dispatcher) -> None:
    for member_id in ('member-a', 'member-b', 'member-c'):
        waiting_list.join(booking_db, _member(member_id), full_slot.id, now)

    full_slot.capacity = 3
    booking_db.commit()

    outcome = capacity_ledger.cancel(booking_db, _member('holder'), full_slot.id, now, dispatcher)

    assert outcome.promoted_member_ids == ['member-a', 'member-b', 'member-c']
    assert reservation_store.active_member_ids(booking_db, full_slot.id) == ['member-a', 'member-b', 'member-c']
    assert waiting_list.list_active_entries(booking_db, full_slot.id) == []
    assert [intent.member_id for intent in dispatcher.of_type('waiting_list_promoted')] == [
        'member-a',
        'member-b',
        'member-c',
    ]
    assert dispatcher.of_type('spot_freed') == []

    with pytest.raises(SlotFull):
        capacity_ledger.reserve(booking_db, _member('latecomer'), full_slot.id, now)


def test_promotion_stops_at_capacity_and_keeps_the_rest_queued(booking_db, full_slot, now) -> None:
    for member_id in ('member-a', 'member-b', 'member-c'):
        waiting_list.join(booking_db, _member(member_id), full_slot.id, now)

    full_slot.capacity = 2
    booking_db.commit()

    outcome = capacity_ledger.cancel(booking_db, _member('holder'), full_slot.id, now)

    assert outcome.promoted_member_ids == ['member-a', 'member-b']
    assert waiting_list.queue_position(booking_db, full_slot.id, 'member-c') == 1


def test_spot_freed_follows_promotions_when_queue_runs_out(booking_db, full_slot, now, dispatcher) -> None:
    waiting_list.join(booking_db, _member('member-a'), full_slot.id, now)

    full_slot.capacity = 3
    booking_db.commit()

    outcome = capacity_ledger.cancel(booking_db, _member('holder'), full_slot.id, now, dispatcher)

    assert outcome.promoted_member_ids == ['member-a']
    assert [intent.type for intent in dispatcher.intents] == ['waiting_list_promoted', 'spot_freed']
    assert dispatcher.of_type('spot_freed')[0].exclude_member_ids == ('holder', 'member-a')
    assert capacity_ledger.available(booking_db, full_slot) == 2
