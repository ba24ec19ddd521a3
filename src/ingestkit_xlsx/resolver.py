"""Cell value type resolution.

Turns the raw text of a ``<c>`` node, its ``t`` type code and its ``s``
style id into a :class:`~ingestkit_xlsx.models.TypedValue`.  The decision
order is fixed:

1. ``t="b"``: boolean, else number.
2. ``t="s"``: shared string by id, else the raw text.
3. ``t="str"``: formula (opaque text).
4. ``t="inlineStr"``: the inline text; ``t="d"``: ISO 8601 date.
5. date style (no or numeric type code): serial date, out of range -> number.
6. time style (same condition): serial time, out of range -> number.
7. anything else: number.

A step that yields no value falls back to EMPTY for empty text and to
STRING (the raw text) otherwise.  Nothing in this module raises on bad
cell content.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation

from ingestkit_xlsx.models import TypedValue, ValueKind
from ingestkit_xlsx.oadate import (
    FIRST_ALLOWED_DATE,
    LAST_ALLOWED_DATE,
    date_from_serial,
    is_date_serial_in_range,
    is_time_serial_in_range,
    time_from_serial,
)
from ingestkit_xlsx.protocols import SharedStringSource
from ingestkit_xlsx.styles import StyleClassification

logger = logging.getLogger("ingestkit_xlsx")

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1
UINT32_MAX = 2**32 - 1
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
UINT64_MAX = 2**64 - 1
FLOAT32_MAX = 3.4028234663852886e38
DECIMAL_MAX = Decimal("79228162514264337593543950335")
# Fractional digits from which a decimal literal no longer fits a 32-bit float
FLOAT32_MAX_SCALE = 7

_INTEGER_RE = re.compile(r"^\s*[+-]?[0-9]+\s*$")
_DECIMAL_RE = re.compile(r"^\s*[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?\s*$")
_WIDE_FLOAT_RE = re.compile(
    r"^\s*[+-]?([0-9][0-9,]*\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?\s*$"
)
_SPECIAL_FLOAT_RE = re.compile(r"^\s*[+-]?(nan|inf|infinity)\s*$", re.IGNORECASE)

_NUMERIC_TYPE_CODES = frozenset({None, "", "n"})


def get_numeric_value(raw: str) -> TypedValue | None:
    """Return the narrowest numeric kind that represents *raw*, or None.

    Tried in order: 32-bit signed (preferred over unsigned when both fit),
    32-bit unsigned, 64-bit signed, 64-bit unsigned, then a decimal
    literal stored as FLOAT32 when it has fewer than seven fractional
    digits and as FLOAT64 otherwise, then a finite 32-bit float (thousands
    separators allowed), then any 64-bit float.
    """
    if _INTEGER_RE.match(raw):
        number = int(raw)
        if INT32_MIN <= number <= INT32_MAX:
            return TypedValue(kind=ValueKind.INT32, value=number)
        if 0 <= number <= UINT32_MAX:
            return TypedValue(kind=ValueKind.UINT32, value=number)
        if INT64_MIN <= number <= INT64_MAX:
            return TypedValue(kind=ValueKind.INT64, value=number)
        if 0 <= number <= UINT64_MAX:
            return TypedValue(kind=ValueKind.UINT64, value=number)

    if _DECIMAL_RE.match(raw):
        try:
            decimal_value = Decimal(raw.strip())
        except InvalidOperation:
            decimal_value = None
        if decimal_value is not None and abs(decimal_value) <= DECIMAL_MAX:
            scale = max(0, -decimal_value.as_tuple().exponent)
            kind = ValueKind.FLOAT32 if scale < FLOAT32_MAX_SCALE else ValueKind.FLOAT64
            return TypedValue(kind=kind, value=float(decimal_value))

    if _WIDE_FLOAT_RE.match(raw):
        number = float(raw.replace(",", ""))
        if math.isfinite(number) and abs(number) <= FLOAT32_MAX:
            return TypedValue(kind=ValueKind.FLOAT32, value=number)
        return TypedValue(kind=ValueKind.FLOAT64, value=number)

    if _SPECIAL_FLOAT_RE.match(raw):
        return TypedValue(kind=ValueKind.FLOAT64, value=float(raw))
    return None


def parse_serial(raw: str) -> float | None:
    """Parse *raw* as a floating-point serial value, or None."""
    if _WIDE_FLOAT_RE.match(raw):
        return float(raw.replace(",", ""))
    if _SPECIAL_FLOAT_RE.match(raw):
        return float(raw)
    return None


def try_parse_bool(raw: str) -> bool | None:
    """Parse ``0``/``1`` or a case-insensitive ``true``/``false`` literal."""
    if raw == "0":
        return False
    if raw == "1":
        return True
    literal = raw.strip().lower()
    if literal == "true":
        return True
    if literal == "false":
        return False
    return None


def serial_to_date(serial: float) -> TypedValue | None:
    """Convert an in-range serial into a DATE value, or None when out of range.

    Serials below 1.0 carry no day part; they are moved onto the first
    allowed day (1900-01-01) instead of the day before it.
    """
    if not is_date_serial_in_range(serial):
        return None
    value = date_from_serial(serial)
    if serial < 1.0:
        value += timedelta(days=1)
    return TypedValue.of_date(value)


def serial_to_time(serial: float) -> TypedValue | None:
    """Convert an in-range serial into a TIME value, or None when out of range."""
    if not is_time_serial_in_range(serial):
        return None
    return TypedValue.of_time(time_from_serial(serial))


class ValueResolver:
    """Resolves raw cell text into typed values.

    Parameters
    ----------
    shared_strings:
        Lookup used for ``t="s"`` cells.  When *None*, shared-string cells
        keep their raw text.
    classification:
        Date/time style ids computed once from the style table.
    """

    def __init__(
        self,
        shared_strings: SharedStringSource | None,
        classification: StyleClassification,
    ) -> None:
        self._shared_strings = shared_strings
        self._classification = classification

    def resolve(
        self, raw: str, type_code: str | None, style_id: str | None
    ) -> TypedValue:
        """Return the typed value of one cell."""
        value = self._resolve_value(raw, type_code, style_id)
        if value is None:
            if raw == "":
                return TypedValue.empty()
            return TypedValue.of_string(raw)
        return value

    def _resolve_value(
        self, raw: str, type_code: str | None, style_id: str | None
    ) -> TypedValue | None:
        if type_code == "b":
            flag = try_parse_bool(raw)
            if flag is not None:
                return TypedValue.of_bool(flag)
            return get_numeric_value(raw)
        if type_code == "s":
            return TypedValue.of_string(self._resolve_shared_string(raw))
        if type_code == "str":
            return TypedValue.of_formula(raw)
        if type_code == "inlineStr":
            return TypedValue.of_string(raw)
        if type_code == "d":
            return _parse_iso_date(raw)

        numeric_code = type_code in _NUMERIC_TYPE_CODES
        if numeric_code and self._classification.is_date_style(style_id):
            return self._serial_value(raw, serial_to_date)
        if numeric_code and self._classification.is_time_style(style_id):
            return self._serial_value(raw, serial_to_time)
        return get_numeric_value(raw)

    @staticmethod
    def _serial_value(raw: str, convert) -> TypedValue | None:
        serial = parse_serial(raw)
        if serial is None:
            return None
        value = convert(serial)
        if value is None:
            # Out of range for a date/time; keep the number
            return get_numeric_value(raw)
        return value

    def _resolve_shared_string(self, raw: str) -> str:
        if self._shared_strings is None or not _INTEGER_RE.match(raw):
            return raw
        resolved = self._shared_strings.get_string(int(raw))
        if resolved is None:
            logger.debug("Shared string id %s not found; keeping raw text", raw)
            return raw
        return resolved


def _parse_iso_date(raw: str) -> TypedValue | None:
    try:
        value = datetime.fromisoformat(raw.strip())
    except ValueError:
        return None
    value = value.replace(tzinfo=None)
    if FIRST_ALLOWED_DATE <= value <= LAST_ALLOWED_DATE:
        return TypedValue.of_date(value)
    return None
