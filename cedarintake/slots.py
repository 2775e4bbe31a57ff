"""Booking slot availability.

Consultations are booked in fixed one-hour slots. A slot is unavailable on
a calendar day when a booking for the same slot time already exists on that
day; the time of day in a stored booking date is ignored for the
comparison.
"""

import datetime
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Union

from dateutil import parser as date_parser


@dataclass(frozen=True)
class TimeSlot:
    """A bookable slot.

    Attributes:
        time: 24-hour slot start, as submitted by the booking form ("09:00")
        label: 12-hour display label ("9:00 AM")
    """
    time: str
    label: str


TIME_SLOTS = (
    TimeSlot("09:00", "9:00 AM"),
    TimeSlot("10:00", "10:00 AM"),
    TimeSlot("11:00", "11:00 AM"),
    TimeSlot("13:00", "1:00 PM"),
    TimeSlot("14:00", "2:00 PM"),
    TimeSlot("15:00", "3:00 PM"),
    TimeSlot("16:00", "4:00 PM"),
)


def parse_booking_date(value: Union[str, datetime.date, datetime.datetime]) -> datetime.date:
    """Truncate a booking date to its calendar day.

    Accepts ``YYYY-MM-DD`` strings, ISO-8601 datetimes (as sent by browsers
    serializing a Date) and date/datetime objects.

    Raises:
        ValueError: If the value is not a recognizable ISO date

    Examples:
        >>> parse_booking_date("2026-10-20")
        datetime.date(2026, 10, 20)
        >>> parse_booking_date("2026-10-20T14:30:00.000Z")
        datetime.date(2026, 10, 20)
    """
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid date: {value!r}")
    return date_parser.isoparse(value.strip()).date()


def booked_times(bookings: Iterable[Dict[str, Any]]) -> List[str]:
    return [booking["time"] for booking in bookings if booking.get("time")]


def available_slots(storage: Any, day: datetime.date) -> List[Dict[str, Any]]:
    """Enumerate every configured slot for a day with its availability.

    Args:
        storage: Store exposing ``get_bookings_by_date``
        day: Calendar day to check

    Returns:
        One dict per slot: ``{"time", "formattedTime", "available"}``
    """
    taken = set(booked_times(storage.get_bookings_by_date(day)))
    return [
        {"time": slot.time, "formattedTime": slot.label, "available": slot.time not in taken}
        for slot in TIME_SLOTS
    ]


__all__ = [
    "TimeSlot",
    "TIME_SLOTS",
    "parse_booking_date",
    "available_slots",
]
