import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from gymbook.core import config
from gymbook.core.clock import utcnow
from gymbook.database import Base, SessionLocal, engine, ensure_booking_schema
from gymbook.routes import reservation_routes, slot_routes
from gymbook.services.notifications import NotificationLogDispatcher, set_default_dispatcher

import gymbook.models  # noqa: F401  registers every table on Base.metadata

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = FastAPI(title='Gym Booking API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    set_default_dispatcher(NotificationLogDispatcher(SessionLocal, utcnow))
    try:
        Base.metadata.create_all(bind=engine)
        ensure_booking_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and Postgres credentials.')


@app.get('/')
def root():
    return {'status': 'Gym Booking API Running'}


app.include_router(slot_routes.router)
app.include_router(reservation_routes.router)
