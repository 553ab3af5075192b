import os
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from gymbook.database import Base  # noqa: E402
from gymbook.models import MemberBookingPreference, Slot  # noqa: E402

NOW = datetime(2026, 3, 2, 8, 0)


class RecordingDispatcher:
    def __init__(self):
        self.intents = []

    def dispatch(self, intent) -> None:
        self.intents.append(intent)

    def of_type(self, intent_type: str) -> list:
        return [intent for intent in self.intents if intent.type == intent_type]


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def booking_db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def make_slot(booking_db):
    def _make_slot(**overrides) -> Slot:
        start_time = overrides.pop('start_time', NOW + timedelta(hours=20))
        values = {
            'title': 'Morning Conditioning',
            'start_time': start_time,
            'end_time': start_time + timedelta(hours=1),
            'capacity': 2,
            'access_opens_hours': 24,
            'priority_enabled': True,
            'auto_reserve_enabled': True,
            'auto_reserve_executed': False,
            'category': 'early',
        }
        values.update(overrides)

        slot = Slot(**values)
        booking_db.add(slot)
        booking_db.commit()
        booking_db.refresh(slot)
        return slot

    return _make_slot


@pytest.fixture
def add_preference(booking_db):
    def _add_preference(
        member_id: str,
        tier: str = 'priority',
        auto_reserve_enabled: bool = True,
        preferred_category: str | None = None,
    ) -> MemberBookingPreference:
        preference = MemberBookingPreference(
            member_id=member_id,
            tier=tier,
            auto_reserve_enabled=auto_reserve_enabled,
            preferred_category=preferred_category,
        )
        booking_db.add(preference)
        booking_db.commit()
        return preference

    return _add_preference
