"""Conversion between serial date values and ``datetime`` / ``timedelta``.

Spreadsheets store dates as OLE Automation serial numbers: the integer part
counts days since 1899-12-30 and the fraction is the time of day.  Serial
60 is the fictitious 1900-02-29 inherited from early spreadsheet programs;
it is retained, so every serial below 60 is shifted forward by one day and
1900-01-01 is serial 1.

All conversions are exact to the millisecond, which makes
``date_from_serial(serial_from_date(date_from_serial(d)))`` equal to
``date_from_serial(d)`` for every ``d`` within
``[MIN_OADATE_VALUE, MAX_OADATE_VALUE]``.
"""

from __future__ import annotations

from datetime import datetime, timedelta

ROOT_DATE = datetime(1899, 12, 30)
FIRST_ALLOWED_DATE = datetime(1900, 1, 1)
LAST_ALLOWED_DATE = datetime(9999, 12, 31, 23, 59, 59)
# First date after the fictitious 1900-02-29.
FIRST_VALID_DATE = datetime(1900, 3, 1)

MIN_OADATE_VALUE = 0.0
# 9999-12-31 23:59:59
MAX_OADATE_VALUE = 2958465.999988426

_LEAP_YEAR_ERROR_SERIAL = 60
_MILLIS_PER_DAY = 86_400_000
_SECONDS_PER_DAY = 86_400


def date_from_serial(serial: float) -> datetime:
    """Convert a serial date value into a ``datetime``.

    Raises ``OverflowError`` when the serial lies outside the range
    ``datetime`` can represent; callers check the range first.
    """
    if serial < _LEAP_YEAR_ERROR_SERIAL:
        serial += 1
    return ROOT_DATE + timedelta(milliseconds=round(serial * _MILLIS_PER_DAY))


def serial_from_date(value: datetime) -> float:
    """Convert a ``datetime`` into its serial date value (no range check)."""
    if value < FIRST_VALID_DATE:
        value = value - timedelta(days=1)
    delta = value - ROOT_DATE
    seconds = delta.seconds + delta.microseconds / 1_000_000
    return delta.days + seconds / _SECONDS_PER_DAY


def time_from_serial(serial: float) -> timedelta:
    """Convert a serial value into a duration of whole days plus time of day.

    Sub-second parts are dropped.
    """
    moment = date_from_serial(serial)
    return timedelta(
        days=int(serial),
        hours=moment.hour,
        minutes=moment.minute,
        seconds=moment.second,
    )


def serial_from_time(value: timedelta) -> float:
    """Convert a duration into a serial value (days plus fraction of a day)."""
    return value.total_seconds() / _SECONDS_PER_DAY


def is_date_serial_in_range(serial: float) -> bool:
    return MIN_OADATE_VALUE <= serial <= MAX_OADATE_VALUE


def is_time_serial_in_range(serial: float) -> bool:
    return 0.0 <= serial <= MAX_OADATE_VALUE
