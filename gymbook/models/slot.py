"""Slot model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from gymbook.core import config
from gymbook.database import Base


class Slot(Base):
    """Represents a bookable, time-boxed class instance."""
    __tablename__ = "slots"

    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=False, default="")
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    capacity = Column(Integer, nullable=False, default=10)
    access_opens_hours = Column(Integer, nullable=False, default=config.DEFAULT_ACCESS_OPENS_HOURS)
    priority_enabled = Column(Boolean, nullable=False, default=True)
    auto_reserve_enabled = Column(Boolean, nullable=False, default=True)
    # Flipped false -> true exactly once by the auto-reservation engine.
    auto_reserve_executed = Column(Boolean, nullable=False, default=False)
    category = Column(String, nullable=False, default=config.DEFAULT_SLOT_CATEGORY)

    reservations = relationship("Reservation", back_populates="slot", cascade="all, delete-orphan", passive_deletes=True)
    waiting_list_entries = relationship(
        "WaitingListEntry", back_populates="slot", cascade="all, delete-orphan", passive_deletes=True
    )
    reminder = relationship(
        "SlotReminder", back_populates="slot", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )
