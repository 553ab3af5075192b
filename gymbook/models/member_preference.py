"""Member booking preference model definitions."""

from sqlalchemy import Boolean, Column, String

from gymbook.database import Base


class MemberBookingPreference(Base):
    """Per-member tier and automated booking opt-in."""
    __tablename__ = "member_booking_preferences"

    member_id = Column(String(64), primary_key=True)
    tier = Column(String(16), nullable=False, default="ordinary")  # ordinary/priority
    auto_reserve_enabled = Column(Boolean, nullable=False, default=True)
    preferred_category = Column(String, nullable=True)  # null matches every category
