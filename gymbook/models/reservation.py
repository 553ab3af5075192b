"""Reservation model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from gymbook.database import Base

SOURCE_MEMBER = "member"
SOURCE_STAFF = "staff"
SOURCE_WAITING_LIST = "waiting_list"
SOURCE_AUTO_RESERVE = "auto_reserve"


class Reservation(Base):
    """A member's claim on one spot in one slot.

    There is a single row per (slot, member); cancelling flips ``is_active``
    and booking again reactivates the same row.
    """
    __tablename__ = "reservations"
    __table_args__ = (
        UniqueConstraint("slot_id", "member_id", name="uq_reservations_slot_member"),
    )

    id = Column(Integer, primary_key=True)
    slot_id = Column(Integer, ForeignKey("slots.id", ondelete="CASCADE"), nullable=False, index=True)
    member_id = Column(String(64), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    reserved_at = Column(DateTime, nullable=False)
    cancelled_at = Column(DateTime, nullable=True)
    source = Column(String(16), nullable=False, default=SOURCE_MEMBER)

    slot = relationship("Slot", back_populates="reservations")
