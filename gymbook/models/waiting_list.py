"""Waiting list model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from gymbook.database import Base


class WaitingListEntry(Base):
    """A member's place in line for a full slot."""
    __tablename__ = "waiting_list"
    __table_args__ = (
        UniqueConstraint("slot_id", "position", name="uq_waiting_list_slot_position"),
    )

    id = Column(Integer, primary_key=True)
    slot_id = Column(Integer, ForeignKey("slots.id", ondelete="CASCADE"), nullable=False, index=True)
    member_id = Column(String(64), nullable=False, index=True)
    # Never reassigned or reused, even after the entry goes inactive.
    position = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    joined_at = Column(DateTime, nullable=False)
    left_at = Column(DateTime, nullable=True)
    promoted_at = Column(DateTime, nullable=True)

    slot = relationship("Slot", back_populates="waiting_list_entries")
