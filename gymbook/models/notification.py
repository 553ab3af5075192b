"""Notification bookkeeping model definitions."""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from gymbook.database import Base


class NotificationLog(Base):
    """Outbox of emitted notification intents, read by the push fan-out service."""
    __tablename__ = "notification_log"

    id = Column(Integer, primary_key=True)
    type = Column(String(32), nullable=False, index=True)
    slot_id = Column(Integer, nullable=False, index=True)
    target_member_ids = Column(JSON, nullable=True)
    exclude_member_ids = Column(JSON, nullable=True)
    target_staff = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False)


class SlotReminder(Base):
    """Marks a slot whose pre-start reminder has already gone out."""
    __tablename__ = "slot_reminders"

    id = Column(Integer, primary_key=True)
    slot_id = Column(Integer, ForeignKey("slots.id", ondelete="CASCADE"), nullable=False, unique=True)
    sent_at = Column(DateTime, nullable=False)
    recipient_count = Column(Integer, nullable=False, default=0)

    slot = relationship("Slot", back_populates="reminder")
