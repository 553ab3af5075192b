import os

import pytest
from sqlalchemy import create_engine, inspect, text

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from gymbook.core import config  # noqa: E402
from gymbook.database import ensure_booking_schema  # noqa: E402


@pytest.fixture
def legacy_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'legacy.db'}")
    with engine.begin() as connection:
        connection.execute(
            text(
                'CREATE TABLE slots ('
                'id INTEGER PRIMARY KEY, '
                'title VARCHAR NOT NULL, '
                'start_time DATETIME NOT NULL, '
                'end_time DATETIME NOT NULL, '
                'capacity INTEGER NOT NULL, '
                'priority_enabled BOOLEAN DEFAULT 1)'
            )
        )
        connection.execute(
            text(
                "INSERT INTO slots (title, start_time, end_time, capacity) "
                "VALUES ('Legacy Spin', '2026-03-02 18:00:00', '2026-03-02 19:00:00', 12)"
            )
        )
    yield engine
    engine.dispose()


def test_ensure_booking_schema_adds_missing_slot_columns(legacy_engine) -> None:
    ensure_booking_schema(bind=legacy_engine)

    columns = {column['name'] for column in inspect(legacy_engine).get_columns('slots')}
    assert {'access_opens_hours', 'auto_reserve_enabled', 'auto_reserve_executed', 'category'} <= columns

    with legacy_engine.connect() as connection:
        row = connection.execute(
            text('SELECT access_opens_hours, category FROM slots WHERE title = :title'),
            {'title': 'Legacy Spin'},
        ).one()
    assert row.access_opens_hours == config.DEFAULT_ACCESS_OPENS_HOURS
    assert row.category == config.DEFAULT_SLOT_CATEGORY

    indexes = {index['name'] for index in inspect(legacy_engine).get_indexes('slots')}
    assert 'idx_slots_start_time' in indexes


def test_ensure_booking_schema_is_repeatable(legacy_engine) -> None:
    ensure_booking_schema(bind=legacy_engine)
    ensure_booking_schema(bind=legacy_engine)

    names = [column['name'] for column in inspect(legacy_engine).get_columns('slots')]
    assert names.count('category') == 1


def test_ensure_booking_schema_ignores_missing_slots_table(tmp_path) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'empty.db'}")

    ensure_booking_schema(bind=engine)

    assert inspect(engine).get_table_names() == []
    engine.dispose()


def test_validate_runtime_config_rejects_default_secret_in_production(monkeypatch) -> None:
    monkeypatch.setattr(config, 'APP_ENV', 'production')
    monkeypatch.setattr(config, 'JWT_SECRET_KEY', 'change-me')

    with pytest.raises(RuntimeError, match='JWT_SECRET_KEY'):
        config.validate_runtime_config()


def test_validate_runtime_config_rejects_inverted_reminder_window(monkeypatch) -> None:
    monkeypatch.setattr(config, 'REMINDER_WINDOW_START_MINUTES', 150)
    monkeypatch.setattr(config, 'REMINDER_WINDOW_END_MINUTES', 90)

    with pytest.raises(RuntimeError, match='REMINDER_WINDOW_START_MINUTES'):
        config.validate_runtime_config()
