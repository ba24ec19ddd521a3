"""Import-option enforcement pipeline.

Applies the rules of :class:`~ingestkit_xlsx.config.ImportOptions` on top
of the resolver's output, for cells at or below the configured start row:

1. per-column type enforcement (formulas excluded),
2. global type enforcement,
3. global flags (date/times as numbers, empty values as strings),
4. date correction for dates before 1900-01-01 (time values without a day).

The reported cell type is derived from the kind of the final value, so a
converted value is re-typed automatically; formulas are never touched.

Every converter returns either :class:`Converted` or ``UNCHANGED``.  A value
that cannot be converted is never an error; callers fall back to the
original value with :func:`or_original`.
"""

from __future__ import annotations

import locale
import logging
import re
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum

from pydantic import BaseModel, ConfigDict

from ingestkit_xlsx.config import ColumnType, GlobalType, ImportOptions
from ingestkit_xlsx.models import (
    FLOAT_KINDS,
    INTEGER_KINDS,
    NUMBER_KINDS,
    Address,
    TypedValue,
    ValueKind,
)
from ingestkit_xlsx.oadate import (
    FIRST_ALLOWED_DATE,
    LAST_ALLOWED_DATE,
    MAX_OADATE_VALUE,
    MIN_OADATE_VALUE,
    date_from_serial,
    serial_from_date,
    serial_from_time,
    time_from_serial,
)
from ingestkit_xlsx.resolver import (
    DECIMAL_MAX,
    INT32_MAX,
    INT32_MIN,
    get_numeric_value,
    try_parse_bool,
)

logger = logging.getLogger("ingestkit_xlsx")

_NUMBER_STYLE_RE = re.compile(r"^\s*[+-]?([0-9][0-9,]*\.?[0-9]*|\.[0-9]+)\s*$")
_INT32_RE = re.compile(r"^\s*[+-]?[0-9]+\s*$")
_GENERAL_TIME_RE = re.compile(
    r"^\s*(?:(\d+)\.)?(\d{1,2}):(\d{1,2})(?::(\d{1,2})(?:\.(\d{1,7}))?)?\s*$"
)
_DAYS_ONLY_RE = re.compile(r"^\s*(\d+)\s*$")
_TIME_DIRECTIVES = {"D": r"(?P<days>\d+)", "H": r"(?P<hours>\d{1,2})",
                    "M": r"(?P<minutes>\d{1,2})", "S": r"(?P<seconds>\d{1,2})"}

_LOCALE_LOCK = threading.Lock()


# ---------------------------------------------------------------------------
# Conversion results
# ---------------------------------------------------------------------------


class Converted(BaseModel):
    """A successful conversion."""

    model_config = ConfigDict(frozen=True)

    value: TypedValue


class Unchanged(Enum):
    """Marker for a conversion that did not apply."""

    UNCHANGED = "unchanged"


UNCHANGED = Unchanged.UNCHANGED

ConversionResult = Converted | Unchanged


def or_original(result: ConversionResult, original: TypedValue) -> TypedValue:
    """Return the converted value, or *original* when nothing changed."""
    if isinstance(result, Converted):
        return result.value
    return original


# ---------------------------------------------------------------------------
# Temporal parsing and formatting
# ---------------------------------------------------------------------------


@contextmanager
def _temporal_locale(name: str | None) -> Iterator[None]:
    """Temporarily switch ``LC_TIME`` to *name* (no-op when None).

    Raises ``locale.Error`` when the locale is not available.
    """
    if name is None:
        yield
        return
    with _LOCALE_LOCK:
        previous = locale.setlocale(locale.LC_TIME)
        try:
            locale.setlocale(locale.LC_TIME, name)
            yield
        finally:
            locale.setlocale(locale.LC_TIME, previous)


def _time_pattern(time_format: str) -> re.Pattern[str]:
    parts: list[str] = []
    index = 0
    while index < len(time_format):
        char = time_format[index]
        if char == "%" and index + 1 < len(time_format):
            directive = time_format[index + 1]
            if directive == "%":
                parts.append("%")
            else:
                parts.append(_TIME_DIRECTIVES.get(directive, re.escape("%" + directive)))
            index += 2
            continue
        parts.append(re.escape(char))
        index += 1
    return re.compile("^" + "".join(parts) + "$")


def format_time(value: timedelta, time_format: str | None) -> str:
    """Format a duration with ``%D`` (days), ``%H``, ``%M``, ``%S`` directives.

    Without a format the result is ``[d.]hh:mm:ss``.
    """
    total = int(value.total_seconds())
    days, remainder = divmod(total, 86_400)
    hours, remainder = divmod(remainder, 3_600)
    minutes, seconds = divmod(remainder, 60)
    if time_format is None:
        clock = f"{hours:02d}:{minutes:02d}:{seconds:02d}"
        return f"{days}.{clock}" if days else clock
    replacements = {
        "D": str(days),
        "H": f"{hours:02d}",
        "M": f"{minutes:02d}",
        "S": f"{seconds:02d}",
        "%": "%",
    }
    return re.sub(
        r"%(.)",
        lambda match: replacements.get(match.group(1), match.group(0)),
        time_format,
    )


def _format_float(value: float) -> str:
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return repr(value)


def _float_to_decimal(value: float) -> Decimal | None:
    try:
        number = Decimal(repr(value))
    except InvalidOperation:
        return None
    if not number.is_finite() or abs(number) > DECIMAL_MAX:
        return None
    return number


class ValueConverter:
    """Converters between value kinds, parameterized by temporal formats.

    Parameters
    ----------
    options:
        Supplies ``date_time_format``, ``time_span_format`` and
        ``temporal_locale`` for parsing and formatting dates and times.
    """

    def __init__(self, options: ImportOptions) -> None:
        self._options = options
        self._time_regex = (
            _time_pattern(options.time_span_format)
            if options.time_span_format
            else None
        )

    # ------------------------------------------------------------------
    # Temporal helpers
    # ------------------------------------------------------------------

    def parse_date(self, raw: str) -> datetime | None:
        """Parse *raw* into a date within the supported range, or None."""
        options = self._options
        try:
            if options.date_time_format:
                with _temporal_locale(options.temporal_locale):
                    value = datetime.strptime(raw.strip(), options.date_time_format)
            else:
                value = datetime.fromisoformat(raw.strip()).replace(tzinfo=None)
        except (ValueError, locale.Error):
            return None
        if FIRST_ALLOWED_DATE <= value <= LAST_ALLOWED_DATE:
            return value
        return None

    def parse_time(self, raw: str) -> timedelta | None:
        """Parse *raw* into a non-negative duration, or None."""
        if self._time_regex is not None:
            match = self._time_regex.match(raw.strip())
            if match is None:
                return None
            fields = {key: int(text) for key, text in match.groupdict().items()}
            value = _build_duration(
                fields.get("days", 0),
                fields.get("hours", 0),
                fields.get("minutes", 0),
                fields.get("seconds", 0),
            )
        else:
            value = _parse_general_time(raw)
        if value is None or not 0 <= value.days < MAX_OADATE_VALUE:
            return None
        return value

    def format_date(self, value: datetime) -> str:
        options = self._options
        if not options.date_time_format:
            return value.isoformat(sep=" ")
        try:
            with _temporal_locale(options.temporal_locale):
                return value.strftime(options.date_time_format)
        except locale.Error:
            logger.debug("Locale %s unavailable; formatting without it", options.temporal_locale)
            return value.strftime(options.date_time_format)

    # ------------------------------------------------------------------
    # Converters
    # ------------------------------------------------------------------

    def to_bool(self, value: TypedValue) -> ConversionResult:
        kind = value.kind
        if kind in NUMBER_KINDS:
            number = value.value
            if number == 0:
                return Converted(value=TypedValue.of_bool(False))
            if number == 1:
                return Converted(value=TypedValue.of_bool(True))
            return UNCHANGED
        if kind is ValueKind.STRING:
            flag = try_parse_bool(value.value)
            if flag is not None:
                return Converted(value=TypedValue.of_bool(flag))
        return UNCHANGED

    def to_decimal(self, value: TypedValue) -> ConversionResult:
        kind = value.kind
        number: Decimal | None = None
        if kind in INTEGER_KINDS:
            candidate = Decimal(value.value)
            number = candidate if abs(candidate) <= DECIMAL_MAX else None
        elif kind in FLOAT_KINDS:
            number = _float_to_decimal(value.value)
        elif kind is ValueKind.BOOL:
            number = Decimal(1) if value.value else Decimal(0)
        elif kind is ValueKind.DATE:
            number = _float_to_decimal(serial_from_date(value.value))
        elif kind is ValueKind.TIME:
            number = _float_to_decimal(serial_from_time(value.value))
        elif kind is ValueKind.STRING:
            number = self._string_to_decimal(value.value)
        if number is None:
            return UNCHANGED
        return Converted(value=TypedValue.of_decimal(number))

    def to_double(self, value: TypedValue) -> ConversionResult:
        kind = value.kind
        if kind is ValueKind.FLOAT64:
            return UNCHANGED
        if kind is ValueKind.DECIMAL:
            return Converted(value=TypedValue.of_double(float(value.value)))
        result = self.to_decimal(value)
        if isinstance(result, Converted):
            return Converted(value=TypedValue.of_double(float(result.value.value)))
        return UNCHANGED

    def to_int(self, value: TypedValue) -> ConversionResult:
        kind = value.kind
        if kind in INTEGER_KINDS:
            return UNCHANGED
        if kind in FLOAT_KINDS or kind is ValueKind.DECIMAL:
            number = float(value.value)
            if INT32_MIN < number < INT32_MAX:
                return Converted(value=TypedValue.of_int32(round(number)))
            return UNCHANGED
        if kind is ValueKind.DATE:
            return _rounded_int32(serial_from_date(value.value))
        if kind is ValueKind.TIME:
            return _rounded_int32(serial_from_time(value.value))
        if kind is ValueKind.BOOL:
            return Converted(value=TypedValue.of_int32(1 if value.value else 0))
        if kind is ValueKind.STRING and _INT32_RE.match(value.value):
            number = int(value.value)
            if INT32_MIN <= number <= INT32_MAX:
                return Converted(value=TypedValue.of_int32(number))
        return UNCHANGED

    def to_date(self, value: TypedValue) -> ConversionResult:
        kind = value.kind
        if kind is ValueKind.DATE:
            return UNCHANGED
        if kind is ValueKind.TIME:
            # Time of day on the day before the first allowed date; the
            # pipeline's date correction moves it onto 1900-01-01.
            seconds = value.value.seconds
            root = FIRST_ALLOWED_DATE - timedelta(days=1)
            return Converted(value=TypedValue.of_date(root + timedelta(seconds=seconds)))
        if kind in NUMBER_KINDS:
            return self._date_from_number(value)
        if kind is ValueKind.STRING:
            parsed = self.parse_date(value.value)
            if parsed is not None:
                return Converted(value=TypedValue.of_date(parsed))
            return self._date_from_number(value)
        return UNCHANGED

    def to_time(self, value: TypedValue) -> ConversionResult:
        kind = value.kind
        if kind is ValueKind.TIME:
            return UNCHANGED
        if kind is ValueKind.DATE or kind in NUMBER_KINDS:
            return self._time_from_number(value)
        if kind is ValueKind.STRING:
            parsed = self.parse_time(value.value)
            if parsed is not None:
                return Converted(value=TypedValue.of_time(parsed))
            return self._time_from_number(value)
        return UNCHANGED

    def to_numeric(self, value: TypedValue) -> ConversionResult:
        """Best-fitting number for any value (the ``NUMERIC`` column type)."""
        kind = value.kind
        if kind is ValueKind.DATE:
            return Converted(value=TypedValue.of_double(serial_from_date(value.value)))
        if kind is ValueKind.TIME:
            return Converted(value=TypedValue.of_double(serial_from_time(value.value)))
        if kind is ValueKind.BOOL:
            return Converted(value=TypedValue.of_int32(1 if value.value else 0))
        if kind is not ValueKind.STRING:
            return UNCHANGED
        text = value.value
        number = get_numeric_value(text)
        if number is not None:
            return Converted(value=number)
        parsed_date = self.parse_date(text)
        if parsed_date is not None:
            return Converted(value=TypedValue.of_double(serial_from_date(parsed_date)))
        parsed_time = self.parse_time(text)
        if parsed_time is not None:
            return Converted(value=TypedValue.of_double(serial_from_time(parsed_time)))
        flag = try_parse_bool(text)
        if flag is not None:
            return Converted(value=TypedValue.of_int32(1 if flag else 0))
        return UNCHANGED

    def to_string(self, value: TypedValue) -> ConversionResult:
        kind = value.kind
        if kind in (ValueKind.EMPTY, ValueKind.STRING, ValueKind.FORMULA):
            return UNCHANGED
        if kind in INTEGER_KINDS:
            text = str(value.value)
        elif kind in FLOAT_KINDS:
            text = _format_float(value.value)
        elif kind is ValueKind.DECIMAL:
            text = str(value.value)
        elif kind is ValueKind.BOOL:
            text = "True" if value.value else "False"
        elif kind is ValueKind.DATE:
            text = self.format_date(value.value)
        elif kind is ValueKind.TIME:
            text = format_time(value.value, self._options.time_span_format)
        else:
            return UNCHANGED
        return Converted(value=TypedValue.of_string(text))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _string_to_decimal(self, text: str) -> Decimal | None:
        if _NUMBER_STYLE_RE.match(text):
            try:
                number = Decimal(text.strip().replace(",", ""))
            except InvalidOperation:
                number = None
            if number is not None and abs(number) <= DECIMAL_MAX:
                return number
        parsed_date = self.parse_date(text)
        if parsed_date is not None:
            return _float_to_decimal(serial_from_date(parsed_date))
        parsed_time = self.parse_time(text)
        if parsed_time is not None:
            return _float_to_decimal(serial_from_time(parsed_time))
        return None

    def _as_double(self, value: TypedValue) -> float | None:
        if value.kind is ValueKind.FLOAT64:
            return value.value
        result = self.to_double(value)
        if isinstance(result, Converted):
            return result.value.value
        return None

    def _date_from_number(self, value: TypedValue) -> ConversionResult:
        serial = self._as_double(value)
        if serial is None or not serial < MAX_OADATE_VALUE:
            return UNCHANGED
        try:
            date = date_from_serial(serial)
        except OverflowError:
            return UNCHANGED
        if FIRST_ALLOWED_DATE <= date <= LAST_ALLOWED_DATE:
            return Converted(value=TypedValue.of_date(date))
        return UNCHANGED

    def _time_from_number(self, value: TypedValue) -> ConversionResult:
        serial = self._as_double(value)
        if serial is None or not MIN_OADATE_VALUE <= serial <= MAX_OADATE_VALUE:
            return UNCHANGED
        return Converted(value=TypedValue.of_time(time_from_serial(serial)))


def _rounded_int32(number: float) -> ConversionResult:
    rounded = round(number)
    if INT32_MIN <= rounded <= INT32_MAX:
        return Converted(value=TypedValue.of_int32(rounded))
    return UNCHANGED


def _build_duration(days: int, hours: int, minutes: int, seconds: int) -> timedelta | None:
    if hours > 23 or minutes > 59 or seconds > 59:
        return None
    return timedelta(days=days, hours=hours, minutes=minutes, seconds=seconds)


def _parse_general_time(raw: str) -> timedelta | None:
    """Parse ``[d.]hh:mm[:ss[.fffffff]]`` or a plain day count."""
    match = _GENERAL_TIME_RE.match(raw)
    if match is not None:
        days, hours, minutes, seconds, fraction = match.groups()
        value = _build_duration(
            int(days or 0), int(hours), int(minutes), int(seconds or 0)
        )
        if value is not None and fraction:
            value += timedelta(microseconds=int(fraction.ljust(7, "0")[:6]))
        return value
    match = _DAYS_ONLY_RE.match(raw)
    if match is not None:
        return timedelta(days=int(match.group(1)))
    return None


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class EnforcementPipeline:
    """Applies configured import options to resolved cell values.

    Parameters
    ----------
    options:
        Immutable import options; read-only during a read.
    """

    def __init__(self, options: ImportOptions) -> None:
        self._options = options
        self._converter = ValueConverter(options)

    def apply(self, value: TypedValue, address: Address) -> TypedValue:
        """Return the enforced value of the cell at *address*.

        Cells above ``enforcing_start_row`` and formulas are returned as-is.
        """
        if address.row < self._options.enforcing_start_row:
            return value
        if value.kind is ValueKind.FORMULA:
            return value
        value = self._enforce_column(value, address.column)
        value = self._enforce_global(value)
        value = self._enforce_flags(value)
        if value.kind is ValueKind.DATE and value.value < FIRST_ALLOWED_DATE:
            value = TypedValue.of_date(value.value + timedelta(days=1))
        return value

    def _enforce_column(self, value: TypedValue, column: int) -> TypedValue:
        column_type = self._options.enforced_column_types.get(column)
        if column_type is None:
            return value
        converter = self._converter
        if column_type is ColumnType.NUMERIC:
            result = converter.to_numeric(value)
        elif column_type is ColumnType.DECIMAL:
            result = converter.to_decimal(value)
        elif column_type is ColumnType.DOUBLE:
            result = converter.to_double(value)
        elif column_type is ColumnType.DATE:
            result = converter.to_date(value)
        elif column_type is ColumnType.TIME:
            result = converter.to_time(value)
        elif column_type is ColumnType.BOOL:
            result = converter.to_bool(value)
        else:
            result = converter.to_string(value)
        return or_original(result, value)

    def _enforce_global(self, value: TypedValue) -> TypedValue:
        mode = self._options.global_enforcing_type
        if mode is GlobalType.NONE:
            return value
        if mode is GlobalType.EVERYTHING_TO_STRING:
            return or_original(self._converter.to_string(value), value)
        if not value.is_number:
            return value
        if mode is GlobalType.ALL_NUMBERS_TO_DOUBLE:
            result = self._converter.to_double(value)
        elif mode is GlobalType.ALL_NUMBERS_TO_DECIMAL:
            result = self._converter.to_decimal(value)
        else:
            result = self._converter.to_int(value)
        return or_original(result, value)

    def _enforce_flags(self, value: TypedValue) -> TypedValue:
        options = self._options
        if options.enforce_date_times_as_numbers and value.is_temporal:
            if value.kind is ValueKind.DATE:
                value = TypedValue.of_double(serial_from_date(value.value))
            else:
                value = TypedValue.of_double(serial_from_time(value.value))
        if options.enforce_empty_values_as_string and value.is_empty:
            value = TypedValue.of_string("")
        return value
