"""Pydantic data models and enumerations for ingestkit-xlsx.

Defines the tagged cell value (``ValueKind`` + ``TypedValue``), cell
addressing, the style components (number format, border, fill) and the
composite ``Style``, structural worksheet records, and the result models
returned by the readers and the router.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ingestkit_xlsx.errors import IngestError

# ---------------------------------------------------------------------------
# Cell values
# ---------------------------------------------------------------------------


class ValueKind(str, Enum):
    """Tag of a ``TypedValue``.  One member per representable payload."""

    EMPTY = "empty"
    BOOL = "bool"
    INT32 = "int32"
    INT64 = "int64"
    UINT32 = "uint32"
    UINT64 = "uint64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    DECIMAL = "decimal"
    STRING = "string"
    DATE = "date"
    TIME = "time"
    FORMULA = "formula"


INTEGER_KINDS = frozenset(
    {ValueKind.INT32, ValueKind.INT64, ValueKind.UINT32, ValueKind.UINT64}
)
FLOAT_KINDS = frozenset({ValueKind.FLOAT32, ValueKind.FLOAT64})
NUMBER_KINDS = INTEGER_KINDS | FLOAT_KINDS | {ValueKind.DECIMAL}
TEMPORAL_KINDS = frozenset({ValueKind.DATE, ValueKind.TIME})


class TypedValue(BaseModel):
    """A cell value together with its kind.

    The kind is authoritative: ``value`` is ``None`` for EMPTY, ``bool`` for
    BOOL, ``int`` for the integer kinds, ``float`` for FLOAT32/FLOAT64,
    ``Decimal`` for DECIMAL, ``str`` for STRING and FORMULA, ``datetime``
    for DATE and ``timedelta`` for TIME.  Instances are immutable; the
    enforcement pipeline replaces them rather than mutating them.
    """

    model_config = ConfigDict(frozen=True)

    kind: ValueKind
    value: Any = None

    @classmethod
    def empty(cls) -> TypedValue:
        return cls(kind=ValueKind.EMPTY)

    @classmethod
    def of_bool(cls, value: bool) -> TypedValue:
        return cls(kind=ValueKind.BOOL, value=value)

    @classmethod
    def of_string(cls, value: str) -> TypedValue:
        return cls(kind=ValueKind.STRING, value=value)

    @classmethod
    def of_formula(cls, value: str) -> TypedValue:
        return cls(kind=ValueKind.FORMULA, value=value)

    @classmethod
    def of_date(cls, value: datetime) -> TypedValue:
        return cls(kind=ValueKind.DATE, value=value)

    @classmethod
    def of_time(cls, value: timedelta) -> TypedValue:
        return cls(kind=ValueKind.TIME, value=value)

    @classmethod
    def of_double(cls, value: float) -> TypedValue:
        return cls(kind=ValueKind.FLOAT64, value=float(value))

    @classmethod
    def of_decimal(cls, value: Decimal) -> TypedValue:
        return cls(kind=ValueKind.DECIMAL, value=value)

    @classmethod
    def of_int32(cls, value: int) -> TypedValue:
        return cls(kind=ValueKind.INT32, value=value)

    @property
    def is_number(self) -> bool:
        return self.kind in NUMBER_KINDS

    @property
    def is_temporal(self) -> bool:
        return self.kind in TEMPORAL_KINDS

    @property
    def is_empty(self) -> bool:
        return self.kind is ValueKind.EMPTY


class CellType(str, Enum):
    """Semantic type reported for a cell."""

    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    TIME = "time"
    BOOL = "bool"
    FORMULA = "formula"
    EMPTY = "empty"
    DEFAULT = "default"


def cell_type_of(value: TypedValue) -> CellType:
    """Derive the reported cell type from the kind of *value*."""
    kind = value.kind
    if kind is ValueKind.FORMULA:
        return CellType.FORMULA
    if kind is ValueKind.EMPTY:
        return CellType.EMPTY
    if kind in NUMBER_KINDS:
        return CellType.NUMBER
    if kind is ValueKind.DATE:
        return CellType.DATE
    if kind is ValueKind.TIME:
        return CellType.TIME
    if kind is ValueKind.BOOL:
        return CellType.BOOL
    return CellType.STRING


# ---------------------------------------------------------------------------
# Addressing
# ---------------------------------------------------------------------------

MAX_COLUMN_NUMBER = 16383
MAX_ROW_NUMBER = 1048575

_ADDRESS_RE = re.compile(r"^\$?([A-Za-z]{1,3})\$?([0-9]+)$")


def letters_to_column(letters: str) -> int:
    """Convert column letters (``A``, ``AB``) into a zero-based column number."""
    letters = letters.strip().upper()
    if not letters or not letters.isalpha() or not letters.isascii():
        raise ValueError(f"Invalid column letters: {letters!r}")
    number = 0
    for char in letters:
        number = number * 26 + (ord(char) - ord("A") + 1)
    number -= 1
    if number > MAX_COLUMN_NUMBER:
        raise ValueError(f"Column {letters!r} is out of range")
    return number


def column_to_letters(column: int) -> str:
    """Convert a zero-based column number into column letters."""
    if column < 0 or column > MAX_COLUMN_NUMBER:
        raise ValueError(f"Column number {column} is out of range")
    letters = ""
    column += 1
    while column > 0:
        column, remainder = divmod(column - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


class Address(BaseModel):
    """Cell address with zero-based column and row numbers."""

    model_config = ConfigDict(frozen=True)

    column: int = Field(ge=0, le=MAX_COLUMN_NUMBER)
    row: int = Field(ge=0, le=MAX_ROW_NUMBER)

    @classmethod
    def parse(cls, reference: str) -> Address:
        """Parse an ``A1``-style reference (case-insensitive, ``$`` allowed)."""
        match = _ADDRESS_RE.match(reference.strip())
        if match is None:
            raise ValueError(f"Invalid cell address: {reference!r}")
        row_number = int(match.group(2))
        if row_number < 1:
            raise ValueError(f"Invalid cell address: {reference!r}")
        return cls(column=letters_to_column(match.group(1)), row=row_number - 1)

    def __str__(self) -> str:
        return f"{column_to_letters(self.column)}{self.row + 1}"


class CellRange(BaseModel):
    """Rectangular range between two addresses (inclusive)."""

    model_config = ConfigDict(frozen=True)

    start: Address
    end: Address

    @classmethod
    def parse(cls, reference: str) -> CellRange:
        """Parse ``A1:C10``; a single reference yields a one-cell range."""
        parts = reference.split(":")
        if len(parts) == 1:
            address = Address.parse(parts[0])
            return cls(start=address, end=address)
        if len(parts) != 2:
            raise ValueError(f"Invalid cell range: {reference!r}")
        return cls(start=Address.parse(parts[0]), end=Address.parse(parts[1]))

    def __str__(self) -> str:
        return f"{self.start}:{self.end}"


# ---------------------------------------------------------------------------
# Style components
# ---------------------------------------------------------------------------

CUSTOMFORMAT_START_NUMBER = 164


class FormatNumber(IntEnum):
    """Built-in number formats of SpreadsheetML (ids below 164)."""

    NONE = 0
    FORMAT_1 = 1
    FORMAT_2 = 2
    FORMAT_3 = 3
    FORMAT_4 = 4
    FORMAT_5 = 5
    FORMAT_6 = 6
    FORMAT_7 = 7
    FORMAT_8 = 8
    FORMAT_9 = 9
    FORMAT_10 = 10
    FORMAT_11 = 11
    FORMAT_12 = 12
    FORMAT_13 = 13
    FORMAT_14 = 14
    FORMAT_15 = 15
    FORMAT_16 = 16
    FORMAT_17 = 17
    FORMAT_18 = 18
    FORMAT_19 = 19
    FORMAT_20 = 20
    FORMAT_21 = 21
    FORMAT_22 = 22
    FORMAT_37 = 37
    FORMAT_38 = 38
    FORMAT_39 = 39
    FORMAT_40 = 40
    FORMAT_45 = 45
    FORMAT_46 = 46
    FORMAT_47 = 47
    FORMAT_48 = 48
    FORMAT_49 = 49
    CUSTOM = CUSTOMFORMAT_START_NUMBER

    @classmethod
    def is_builtin(cls, number: int) -> bool:
        try:
            member = cls(number)
        except ValueError:
            return False
        return member is not cls.CUSTOM


class BorderStyle(str, Enum):
    """Line style of one border side; values equal the XML attribute."""

    NONE = "none"
    HAIR = "hair"
    DOTTED = "dotted"
    DASH_DOT_DOT = "dashDotDot"
    DASH_DOT = "dashDot"
    DASHED = "dashed"
    THIN = "thin"
    MEDIUM_DASH_DOT_DOT = "mediumDashDotDot"
    SLANT_DASH_DOT = "slantDashDot"
    MEDIUM_DASH_DOT = "mediumDashDot"
    MEDIUM_DASHED = "mediumDashed"
    MEDIUM = "medium"
    THICK = "thick"
    DOUBLE = "double"


class PatternValue(str, Enum):
    """Pattern of a cell fill; values equal the XML attribute."""

    NONE = "none"
    SOLID = "solid"
    DARK_GRAY = "darkGray"
    MEDIUM_GRAY = "mediumGray"
    LIGHT_GRAY = "lightGray"
    GRAY_0625 = "gray0625"
    GRAY_125 = "gray125"


class NumberFormat(BaseModel):
    """Number format component.

    ``internal_id`` is the declared ``numFmtId``.  Built-in formats carry a
    ``FormatNumber`` member; document-specific ones carry ``CUSTOM`` plus
    ``custom_format_id`` / ``custom_format_code``.
    """

    internal_id: int = 0
    number: FormatNumber = FormatNumber.NONE
    custom_format_id: int | None = None
    custom_format_code: str = ""

    @property
    def is_custom(self) -> bool:
        return self.number is FormatNumber.CUSTOM


class Border(BaseModel):
    """Border component; identity is its declaration order."""

    internal_id: int = 0
    left_style: BorderStyle = BorderStyle.NONE
    right_style: BorderStyle = BorderStyle.NONE
    top_style: BorderStyle = BorderStyle.NONE
    bottom_style: BorderStyle = BorderStyle.NONE
    diagonal_style: BorderStyle = BorderStyle.NONE
    left_color: str | None = None
    right_color: str | None = None
    top_color: str | None = None
    bottom_color: str | None = None
    diagonal_color: str | None = None
    diagonal_up: bool = False
    diagonal_down: bool = False


DEFAULT_FILL_COLOR = "FF000000"
DEFAULT_INDEXED_COLOR = 64


class Fill(BaseModel):
    """Fill component; identity is its declaration order."""

    internal_id: int = 0
    pattern_fill: PatternValue = PatternValue.NONE
    foreground_color: str = DEFAULT_FILL_COLOR
    background_color: str = DEFAULT_FILL_COLOR
    indexed_color: int = DEFAULT_INDEXED_COLOR


class Style(BaseModel):
    """Composite style built from one ``cellXfs/xf`` record."""

    internal_id: int
    number_format: NumberFormat
    border: Border
    fill: Fill


class ResolvedStyle(BaseModel):
    """A composite style plus its date/time classification."""

    style: Style
    is_date: bool = False
    is_time: bool = False


# ---------------------------------------------------------------------------
# Worksheet records
# ---------------------------------------------------------------------------

DEFAULT_COLUMN_WIDTH = 9.140625


class Cell(BaseModel):
    """A typed, optionally styled worksheet cell."""

    address: str
    value: TypedValue
    type: CellType
    style: Style | None = None


class RawCellRecord(BaseModel):
    """One ``<c>`` node as found in the worksheet XML."""

    address: str
    type_code: str | None = None
    style_id: str | None = None
    raw: str = ""


class RowDefinition(BaseModel):
    """Non-default row properties, keyed by the 1-based row number."""

    hidden: bool = False
    height: float | None = None


class Column(BaseModel):
    """Column definition; ``index`` is the 1-based number from the XML."""

    index: int
    width: float = DEFAULT_COLUMN_WIDTH
    hidden: bool = False


class WorksheetData(BaseModel):
    """Everything read from one worksheet payload."""

    cells: dict[str, Cell] = {}
    style_assignment: dict[str, str | None] = {}
    auto_filter_range: CellRange | None = None
    columns: list[Column] = []
    default_column_width: float | None = None
    default_row_height: float | None = None
    rows: dict[int, RowDefinition] = {}


# ---------------------------------------------------------------------------
# Router results
# ---------------------------------------------------------------------------


class SheetResult(BaseModel):
    """One worksheet of a processed archive."""

    name: str
    part_name: str
    data: WorksheetData


class ProcessingResult(BaseModel):
    """Final result of reading an archive via ``XLSXRouter.process()``."""

    file_path: str
    parser_version: str
    sheets: list[SheetResult] = []
    style_count: int = 0
    shared_string_count: int = 0
    cells_read: int = 0
    errors: list[str] = []
    warnings: list[str] = []
    error_details: list[IngestError] = []
    processing_time_seconds: float = 0.0
