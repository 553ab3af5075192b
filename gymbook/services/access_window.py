"""
Booking phases of a slot and who may reserve in each.

Everything here is a pure function of (slot, now, tier); callers pass ``now`` explicitly.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum


class Phase(str, Enum):
    NOT_OPEN = 'not_open'
    PRIORITY = 'priority'
    OPEN = 'open'
    PASSED = 'passed'


class Tier(str, Enum):
    STAFF = 'staff'
    PRIORITY = 'priority'
    ORDINARY = 'ordinary'


@dataclass(frozen=True)
class Actor:
    member_id: str
    tier: Tier

    @property
    def is_staff(self) -> bool:
        return self.tier == Tier.STAFF


@dataclass(frozen=True)
class WindowSummary:
    phase: Phase
    hours_until_start: float
    opens_at: datetime
    open_to_all_at: datetime


def hours_until_start(slot, now: datetime) -> float:
    return (slot.start_time - now).total_seconds() / 3600


def phase(slot, now: datetime) -> Phase:
    if now > slot.end_time:
        return Phase.PASSED

    hours_until = hours_until_start(slot, now)
    if hours_until > slot.access_opens_hours:
        return Phase.NOT_OPEN

    # The first half of the access window belongs to priority members.
    if slot.priority_enabled and hours_until > slot.access_opens_hours / 2:
        return Phase.PRIORITY

    return Phase.OPEN


def can_reserve(tier: Tier, slot, now: datetime) -> bool:
    if tier == Tier.STAFF:
        return False

    current = phase(slot, now)
    if current in (Phase.PASSED, Phase.NOT_OPEN):
        return False
    if current == Phase.PRIORITY:
        return tier == Tier.PRIORITY
    return True


def window_summary(slot, now: datetime) -> WindowSummary:
    opens_at = slot.start_time - timedelta(hours=slot.access_opens_hours)
    if slot.priority_enabled:
        open_to_all_at = slot.start_time - timedelta(hours=slot.access_opens_hours / 2)
    else:
        open_to_all_at = opens_at

    return WindowSummary(
        phase=phase(slot, now),
        hours_until_start=hours_until_start(slot, now),
        opens_at=opens_at,
        open_to_all_at=open_to_all_at,
    )
