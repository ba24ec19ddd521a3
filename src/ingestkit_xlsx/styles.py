"""Style component table, style reader and date/time style classifier.

Styles are rebuilt in two phases from ``xl/styles.xml``:

1. ``numFmts``, ``borders`` and ``fills`` are loaded into independent
   id-indexed tables.
2. Every ``cellXfs/xf`` record is resolved against those tables into one
   composite :class:`~ingestkit_xlsx.models.Style` with a fresh id.  A
   referenced component that does not exist is replaced by a default one.

Once built, the table is frozen and its :class:`StyleClassification` (the
ids of date and time styles) is computed a single time.  Both are read-only
afterwards and may be shared between worksheet reads.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict

from ingestkit_xlsx._xml import attribute, child_node, is_node, parse_payload
from ingestkit_xlsx.errors import ErrorCode, XLSXReadException
from ingestkit_xlsx.models import (
    Border,
    BorderStyle,
    Fill,
    FormatNumber,
    NumberFormat,
    PatternValue,
    ResolvedStyle,
    Style,
)

logger = logging.getLogger("ingestkit_xlsx")

STYLES_PART = "xl/styles.xml"

_BORDER_STYLES = frozenset(member.value for member in BorderStyle)
_PATTERN_VALUES = frozenset(member.value for member in PatternValue)

_BUILTIN_DATE_FORMATS = frozenset(
    {
        FormatNumber.FORMAT_14,
        FormatNumber.FORMAT_15,
        FormatNumber.FORMAT_16,
        FormatNumber.FORMAT_17,
        FormatNumber.FORMAT_22,
    }
)
_BUILTIN_TIME_FORMATS = frozenset(
    {
        FormatNumber.FORMAT_18,
        FormatNumber.FORMAT_19,
        FormatNumber.FORMAT_20,
        FormatNumber.FORMAT_21,
        FormatNumber.FORMAT_22,
        FormatNumber.FORMAT_45,
        FormatNumber.FORMAT_46,
        FormatNumber.FORMAT_47,
    }
)


class MissingStyleComponentError(KeyError):
    """Raised by the table getters when an id is absent and not allowed to be."""


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

_QUOTED_RE = re.compile(r'"[^"]*"')
_ESCAPED_RE = re.compile(r"\\.|[_*].")
_BRACKET_RE = re.compile(r"\[([^\]]*)\]")
_ELAPSED_RE = re.compile(r"^(h+|m+|s+)$", re.IGNORECASE)
_AMPM_RE = re.compile(r"am/pm|a/p", re.IGNORECASE)


def _format_tokens(code: str) -> tuple[list[str], bool]:
    """Split a format code into runs of date/time letters.

    Returns the runs (``yy``, ``m``, ``hh``, ...) and whether an elapsed-time
    or AM/PM marker was present.
    """
    text = _QUOTED_RE.sub("", code)
    text = _ESCAPED_RE.sub("", text)
    has_time_marker = False

    def _bracket(match: re.Match[str]) -> str:
        nonlocal has_time_marker
        if _ELAPSED_RE.match(match.group(1)):
            has_time_marker = True
            return match.group(1)
        return ""

    text = _BRACKET_RE.sub(_bracket, text)
    if _AMPM_RE.search(text):
        has_time_marker = True
        text = _AMPM_RE.sub("", text)

    tokens: list[str] = []
    for char in text.lower():
        if char not in "ymdhs":
            continue
        if tokens and tokens[-1][0] == char:
            tokens[-1] += char
        else:
            tokens.append(char)
    return tokens, has_time_marker


def _is_minute(tokens: list[str], index: int) -> bool:
    previous = tokens[index - 1][0] if index > 0 else ""
    following = tokens[index + 1][0] if index + 1 < len(tokens) else ""
    return previous == "h" or following == "s"


def is_date_format(code: str) -> bool:
    """Return True if the custom format *code* displays a calendar date."""
    tokens, _ = _format_tokens(code)
    for index, token in enumerate(tokens):
        if token[0] in "yd":
            return True
        if token[0] == "m" and not _is_minute(tokens, index):
            return True
    return False


def is_time_format(code: str) -> bool:
    """Return True if the custom format *code* displays a time of day."""
    tokens, has_time_marker = _format_tokens(code)
    if has_time_marker:
        return True
    for index, token in enumerate(tokens):
        if token[0] in "hs":
            return True
        if token[0] == "m" and _is_minute(tokens, index):
            return True
    return False


def is_date(style: Style) -> bool:
    """Return True if the number format of *style* denotes a date."""
    number_format = style.number_format
    if number_format.is_custom:
        return is_date_format(number_format.custom_format_code)
    return number_format.number in _BUILTIN_DATE_FORMATS


def is_time(style: Style) -> bool:
    """Return True if the number format of *style* denotes a time."""
    number_format = style.number_format
    if number_format.is_custom:
        return is_time_format(number_format.custom_format_code)
    return number_format.number in _BUILTIN_TIME_FORMATS


class StyleClassification(BaseModel):
    """Ids (as strings, matching the cell ``s`` attribute) of date and time styles.

    The two sets are disjoint: a style matching both heuristics is placed
    in one set according to ``prefer_date``.
    """

    model_config = ConfigDict(frozen=True)

    date_style_ids: frozenset[str] = frozenset()
    time_style_ids: frozenset[str] = frozenset()

    @classmethod
    def build(
        cls, styles: Iterable[Style], prefer_date: bool = True
    ) -> StyleClassification:
        date_ids: set[str] = set()
        time_ids: set[str] = set()
        for style in styles:
            style_id = str(style.internal_id)
            date_flag = is_date(style)
            time_flag = is_time(style)
            if date_flag and time_flag:
                if prefer_date:
                    time_flag = False
                else:
                    date_flag = False
            if date_flag:
                date_ids.add(style_id)
            elif time_flag:
                time_ids.add(style_id)
        return cls(date_style_ids=frozenset(date_ids), time_style_ids=frozenset(time_ids))

    def is_date_style(self, style_id: str | None) -> bool:
        return style_id is not None and style_id in self.date_style_ids

    def is_time_style(self, style_id: str | None) -> bool:
        return style_id is not None and style_id in self.time_style_ids


# ---------------------------------------------------------------------------
# Component table
# ---------------------------------------------------------------------------


class StyleComponentTable:
    """Id-indexed tables of number formats, borders, fills and composite styles.

    Parameters
    ----------
    prefer_date:
        Tie-break used by the classification for formats showing both a
        date and a time.
    """

    def __init__(self, prefer_date: bool = True) -> None:
        self._prefer_date = prefer_date
        self._number_formats: dict[int, NumberFormat] = {}
        self._borders: dict[int, Border] = {}
        self._fills: dict[int, Fill] = {}
        self._styles: dict[int, Style] = {}
        self._classification: StyleClassification | None = None

    # ------------------------------------------------------------------
    # Build phase
    # ------------------------------------------------------------------

    def add(self, component: NumberFormat | Border | Fill | Style) -> None:
        """Record *component* under its ``internal_id``."""
        if self._classification is not None:
            raise RuntimeError("Style component table is frozen")
        if isinstance(component, NumberFormat):
            self._number_formats[component.internal_id] = component
        elif isinstance(component, Border):
            self._borders[component.internal_id] = component
        elif isinstance(component, Fill):
            self._fills[component.internal_id] = component
        elif isinstance(component, Style):
            self._styles[component.internal_id] = component
        else:
            raise TypeError(f"Unsupported style component: {type(component).__name__}")

    def next_number_format_id(self) -> int:
        return _next_id(self._number_formats)

    def next_border_id(self) -> int:
        return _next_id(self._borders)

    def next_fill_id(self) -> int:
        return _next_id(self._fills)

    def next_style_id(self) -> int:
        return _next_id(self._styles)

    def freeze(self) -> StyleClassification:
        """End the build phase and compute the date/time classification."""
        if self._classification is None:
            self._classification = StyleClassification.build(
                self._styles.values(), prefer_date=self._prefer_date
            )
        return self._classification

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_number_format(
        self, format_id: int, allow_missing: bool = False
    ) -> NumberFormat | None:
        return _lookup(self._number_formats, format_id, allow_missing, "number format")

    def get_border(self, border_id: int, allow_missing: bool = False) -> Border | None:
        return _lookup(self._borders, border_id, allow_missing, "border")

    def get_fill(self, fill_id: int, allow_missing: bool = False) -> Fill | None:
        return _lookup(self._fills, fill_id, allow_missing, "fill")

    def get_style(self, style_id: int, allow_missing: bool = False) -> Style | None:
        return _lookup(self._styles, style_id, allow_missing, "style")

    @property
    def style_count(self) -> int:
        return len(self._styles)

    @property
    def styles(self) -> list[Style]:
        return [self._styles[key] for key in sorted(self._styles)]

    @property
    def classification(self) -> StyleClassification:
        """Date/time classification; freezes the table on first access."""
        return self.freeze()

    @property
    def is_frozen(self) -> bool:
        return self._classification is not None

    def resolve(self, index: int, allow_missing: bool = False) -> ResolvedStyle | None:
        """Return the composite style *index* with its date/time flags."""
        style = self.get_style(index, allow_missing)
        if style is None:
            return None
        classification = self.classification
        style_id = str(style.internal_id)
        return ResolvedStyle(
            style=style,
            is_date=classification.is_date_style(style_id),
            is_time=classification.is_time_style(style_id),
        )

    def resolved_styles(self) -> dict[str, Style]:
        """Map of style-id strings to composite styles, as used by cells."""
        return {str(key): style for key, style in self._styles.items()}


def _next_id(table: dict[int, object]) -> int:
    return max(table) + 1 if table else 0


def _lookup(table: dict, component_id: int, allow_missing: bool, label: str):
    component = table.get(component_id)
    if component is None and not allow_missing:
        raise MissingStyleComponentError(f"No {label} with id {component_id}")
    return component


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------


class StyleReader:
    """Reads ``xl/styles.xml`` into a frozen :class:`StyleComponentTable`."""

    def __init__(self, prefer_date: bool = True, part_name: str = STYLES_PART) -> None:
        self._prefer_date = prefer_date
        self._part_name = part_name

    def read(self, payload: bytes) -> StyleComponentTable:
        """Run both build phases over a buffered styles payload.

        Raises ``XLSXReadException`` (``E_PARSE_STYLES``) on malformed XML
        or a non-integer id attribute.  No partial table is returned.
        """
        root = parse_payload(
            payload,
            code=ErrorCode.E_PARSE_STYLES,
            part_name=self._part_name,
            stage="styles",
        )
        table = StyleComponentTable(prefer_date=self._prefer_date)

        for node in root:
            if is_node(node, "numFmts"):
                self._read_number_formats(node, table)
            elif is_node(node, "borders"):
                self._read_borders(node, table)
            elif is_node(node, "fills"):
                self._read_fills(node, table)

        # Composite styles reference the components above
        for node in root:
            if is_node(node, "cellXfs"):
                self._read_cell_xfs(node, table)

        table.freeze()
        logger.debug(
            "Read %d composite styles from %s", table.style_count, self._part_name
        )
        return table

    def _read_number_formats(self, node: ET.Element, table: StyleComponentTable) -> None:
        for child in node:
            if not is_node(child, "numFmt"):
                continue
            format_id = self._int_attribute(child, "numFmtId", required=True)
            number_format = NumberFormat(
                internal_id=format_id,
                custom_format_code=attribute(child, "formatCode", "") or "",
            )
            if FormatNumber.is_builtin(format_id):
                number_format.number = FormatNumber(format_id)
            else:
                number_format.number = FormatNumber.CUSTOM
                number_format.custom_format_id = format_id
            table.add(number_format)

    def _read_borders(self, node: ET.Element, table: StyleComponentTable) -> None:
        for border_node in node:
            border = Border(internal_id=table.next_border_id())
            border.diagonal_down = attribute(border_node, "diagonalDown") == "1"
            border.diagonal_up = attribute(border_node, "diagonalUp") == "1"
            for side in ("diagonal", "top", "bottom", "left", "right"):
                side_node = child_node(border_node, side)
                if side_node is None:
                    continue
                setattr(border, f"{side}_style", _parse_border_style(side_node))
                setattr(border, f"{side}_color", _color(side_node))
            table.add(border)

    def _read_fills(self, node: ET.Element, table: StyleComponentTable) -> None:
        for fill_node in node:
            fill = Fill(internal_id=table.next_fill_id())
            pattern_node = child_node(fill_node, "patternFill")
            if pattern_node is not None:
                pattern = attribute(pattern_node, "patternType")
                if pattern in _PATTERN_VALUES:
                    fill.pattern_fill = PatternValue(pattern)
                foreground = child_node(pattern_node, "fgColor")
                rgb = attribute(foreground, "rgb")
                if rgb:
                    fill.foreground_color = rgb
                background = child_node(pattern_node, "bgColor")
                rgb = attribute(background, "rgb")
                if rgb:
                    fill.background_color = rgb
                indexed = attribute(background, "indexed")
                if indexed:
                    fill.indexed_color = self._parse_int(indexed, "indexed")
            table.add(fill)

    def _read_cell_xfs(self, node: ET.Element, table: StyleComponentTable) -> None:
        for child in node:
            if not is_node(child, "xf"):
                continue
            format_id = self._int_attribute(child, "numFmtId")
            number_format = table.get_number_format(format_id, allow_missing=True)
            if number_format is None:
                # Registered under the referenced id: later xfs with the same
                # numFmtId share it and no other id can resolve to it.
                number_format = NumberFormat(internal_id=format_id)
                if FormatNumber.is_builtin(format_id):
                    number_format.number = FormatNumber(format_id)
                else:
                    logger.debug("Undeclared number format id %d; using none", format_id)
                table.add(number_format)

            border_id = self._int_attribute(child, "borderId")
            border = table.get_border(border_id, allow_missing=True)
            if border is None:
                logger.debug("Missing border id %d; using default border", border_id)
                border = Border(internal_id=table.next_border_id())

            fill_id = self._int_attribute(child, "fillId")
            fill = table.get_fill(fill_id, allow_missing=True)
            if fill is None:
                logger.debug("Missing fill id %d; using default fill", fill_id)
                fill = Fill(internal_id=table.next_fill_id())

            table.add(
                Style(
                    internal_id=table.next_style_id(),
                    number_format=number_format,
                    border=border,
                    fill=fill,
                )
            )

    def _int_attribute(self, node: ET.Element, name: str, required: bool = False) -> int:
        value = attribute(node, name)
        if value is None:
            if required:
                raise XLSXReadException(
                    code=ErrorCode.E_PARSE_STYLES,
                    message=f"Mandatory attribute '{name}' is missing",
                    stage="styles",
                    part_name=self._part_name,
                )
            return 0
        return self._parse_int(value, name)

    def _parse_int(self, value: str, name: str) -> int:
        try:
            return int(value.strip())
        except ValueError as exc:
            raise XLSXReadException(
                code=ErrorCode.E_PARSE_STYLES,
                message=f"The style information could not be resolved: {name}={value!r}",
                stage="styles",
                part_name=self._part_name,
            ) from exc


def _parse_border_style(node: ET.Element) -> BorderStyle:
    value = attribute(node, "style")
    if value is None:
        return BorderStyle.NONE
    if value.lower() == "double":
        return BorderStyle.DOUBLE
    if value in _BORDER_STYLES:
        return BorderStyle(value)
    return BorderStyle.NONE


def _color(node: ET.Element) -> str | None:
    return attribute(child_node(node, "color"), "rgb")
