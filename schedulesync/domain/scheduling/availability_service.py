"""Availability service - working hours and free slot calculation"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...models import Booking, User

logger = logging.getLogger(__name__)

SLOT_MINUTES = 30
WEEKDAY_KEYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
BLOCKING_STATUSES = ("pending", "confirmed", "pending_approval")

DEFAULT_WORKING_HOURS = {
    day: {"enabled": day not in ("saturday", "sunday"), "start": "09:00", "end": "17:00"}
    for day in WEEKDAY_KEYS
}


def _parse_clock(value: Optional[str], fallback: time) -> time:
    if not value:
        return fallback
    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except ValueError:
        logger.debug(f"Failed to parse working hours time: {value}")
        return fallback


def working_window(working_hours: Optional[dict], day: date) -> Optional[tuple[datetime, datetime]]:
    """The day's [start, end) working window, or None if the day is disabled"""
    key = WEEKDAY_KEYS[day.weekday()]
    entry = (working_hours or {}).get(key) or DEFAULT_WORKING_HOURS[key]

    if not entry.get("enabled", False):
        return None

    start = datetime.combine(day, _parse_clock(entry.get("start"), time(9, 0)))
    end = datetime.combine(day, _parse_clock(entry.get("end"), time(17, 0)))
    if end <= start:
        return None
    return start, end


def round_up_to_slot(moment: datetime) -> datetime:
    """Round up to the next :00 or :30 boundary (unchanged if already on one)"""
    base = moment.replace(second=0, microsecond=0)
    if base < moment:
        base += timedelta(minutes=1)
    remainder = base.minute % SLOT_MINUTES
    if remainder:
        base += timedelta(minutes=SLOT_MINUTES - remainder)
    return base


def _interval(booking) -> tuple[datetime, datetime]:
    if isinstance(booking, dict):
        return booking["start_time"], booking["end_time"]
    return booking.start_time, booking.end_time


def get_available_slots_for_date(
    working_hours: Optional[dict],
    existing_bookings: Iterable,
    day: date,
    now: datetime,
) -> list[dict]:
    """
    Free 30-minute slots for a day.

    A slot is free when it does not overlap any booking's half-open
    [start, end) interval. Slots start no earlier than `now` rounded up to the
    next half hour.
    """
    window = working_window(working_hours, day)
    if window is None:
        return []

    day_start, day_end = window
    busy = [_interval(b) for b in existing_bookings]

    cursor = max(day_start, round_up_to_slot(now))
    step = timedelta(minutes=SLOT_MINUTES)
    slots = []

    while cursor + step <= day_end:
        slot_end = cursor + step
        overlaps = any(cursor < b_end and slot_end > b_start for b_start, b_end in busy)
        if not overlaps:
            slots.append({"start": cursor.isoformat(), "end": slot_end.isoformat()})
        cursor = slot_end

    return slots


def get_bookings_for_day(db: Session, user_id: int, day: date) -> list[Booking]:
    """Bookings that block time on the given day"""
    day_start = datetime.combine(day, time.min)
    day_end = day_start + timedelta(days=1)
    return (
        db.query(Booking)
        .filter(
            Booking.user_id == user_id,
            Booking.start_time < day_end,
            Booking.end_time > day_start,
            Booking.status.in_(BLOCKING_STATUSES),
        )
        .order_by(Booking.start_time.asc())
        .all()
    )


def get_user_available_slots(db: Session, user: User, day: date, now: datetime) -> list[dict]:
    bookings = get_bookings_for_day(db, user.id, day)
    return get_available_slots_for_date(user.working_hours, bookings, day, now)
