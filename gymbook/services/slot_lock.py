"""
Per-slot mutual exclusion for every write to a slot's reservations and waiting list.

An in-process lock keyed by slot id serializes requests handled by this worker; the
``SELECT ... FOR UPDATE`` on the slot row serializes across workers on PostgreSQL.
"""
import logging
from contextlib import contextmanager
from threading import Lock
from typing import Iterator

from sqlalchemy.orm import Session

from gymbook.core import config
from gymbook.core.errors import SlotBusy, SlotNotFound
from gymbook.models.slot import Slot

logger = logging.getLogger(__name__)

_registry_lock = Lock()
# One lock per slot id this worker has touched; never pruned, bounded by the slots table.
_slot_locks: dict[int, Lock] = {}


def _lock_for(slot_id: int) -> Lock:
    with _registry_lock:
        lock = _slot_locks.get(slot_id)
        if lock is None:
            lock = Lock()
            _slot_locks[slot_id] = lock
        return lock


@contextmanager
def slot_guard(db: Session, slot_id: int, timeout: float | None = None) -> Iterator[Slot]:
    """Yield the locked slot; commit when the block exits cleanly, roll back otherwise."""
    lock = _lock_for(slot_id)
    wait = config.SLOT_LOCK_TIMEOUT_SECONDS if timeout is None else timeout
    if not lock.acquire(timeout=wait):
        logger.warning('Timed out after %.1fs waiting for slot %s', wait, slot_id)
        raise SlotBusy(f'Slot {slot_id} is busy.')

    try:
        slot = db.query(Slot).filter(Slot.id == slot_id).populate_existing().with_for_update().first()
        if slot is None:
            db.rollback()
            raise SlotNotFound()

        try:
            yield slot
            db.commit()
        except Exception:
            db.rollback()
            raise
    finally:
        lock.release()
