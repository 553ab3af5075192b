import os
from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from gymbook.core import config


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL")


def build_engine(url: str) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        # Sessions are handed across FastAPI's worker threads.
        connect_args["check_same_thread"] = False
    return create_engine(url, echo=config.SQL_ECHO, pool_pre_ping=True, connect_args=connect_args)


engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_booking_schema_checked = False


def ensure_booking_schema(bind: Engine | None = None) -> None:
    global _booking_schema_checked

    if _booking_schema_checked and bind is None:
        return

    with _schema_lock:
        if _booking_schema_checked and bind is None:
            return

        target = bind or engine
        inspector = inspect(target)

        if 'slots' not in inspector.get_table_names():
            if bind is None:
                _booking_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('slots')}
        migration_steps = [
            (
                'access_opens_hours',
                f'ALTER TABLE slots ADD COLUMN access_opens_hours INTEGER DEFAULT {config.DEFAULT_ACCESS_OPENS_HOURS}',
            ),
            ('auto_reserve_enabled', 'ALTER TABLE slots ADD COLUMN auto_reserve_enabled BOOLEAN DEFAULT TRUE'),
            ('auto_reserve_executed', 'ALTER TABLE slots ADD COLUMN auto_reserve_executed BOOLEAN DEFAULT FALSE'),
            ('category', f"ALTER TABLE slots ADD COLUMN category VARCHAR DEFAULT '{config.DEFAULT_SLOT_CATEGORY}'"),
        ]

        with target.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_slots_start_time ON slots(start_time)')
            )
            if 'reservations' in inspector.get_table_names():
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_reservations_slot_active ON reservations(slot_id, is_active)')
                )
            if 'waiting_list' in inspector.get_table_names():
                connection.execute(
                    text(
                        'CREATE INDEX IF NOT EXISTS idx_waiting_list_slot_active_position '
                        'ON waiting_list(slot_id, is_active, position)'
                    )
                )

        if bind is None:
            _booking_schema_checked = True
