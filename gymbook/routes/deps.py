from contextlib import contextmanager
from datetime import datetime

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gymbook.core.clock import utcnow
from gymbook.core.errors import (
    MSG_DATABASE_UNAVAILABLE,
    MSG_SLOT_BUSY,
    BookingError,
    SlotBusy,
    booking_error_to_http,
)
from gymbook.database import SessionLocal, ensure_booking_schema
from gymbook.services.notifications import Dispatcher, get_default_dispatcher


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_now() -> datetime:
    return utcnow()


def get_dispatcher() -> Dispatcher | None:
    return get_default_dispatcher()


def ensure_database_ready() -> None:
    try:
        ensure_booking_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=MSG_DATABASE_UNAVAILABLE,
        ) from exc


@contextmanager
def booking_errors(db: Session):
    """Translate booking outcomes and store failures raised inside the block into HTTP errors."""
    try:
        yield
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    except SlotBusy as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=MSG_SLOT_BUSY,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=MSG_DATABASE_UNAVAILABLE,
        ) from exc
