"""Worksheet reader: typed cells plus structural sheet information.

One fully-buffered ``xl/worksheets/sheetN.xml`` payload is parsed once.
Every ``<c>`` node is resolved into a typed :class:`~ingestkit_xlsx.models.Cell`
(with import options enforced when configured) and the structural scanner
collects row definitions, column definitions, sheet defaults and the auto
filter range from the same document.

A read either completes or raises ``XLSXReadException``; no partial
:class:`~ingestkit_xlsx.models.WorksheetData` is returned.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET

from ingestkit_xlsx._xml import (
    attribute,
    first_node,
    is_node,
    iter_nodes,
    parse_payload,
)
from ingestkit_xlsx.config import ImportOptions
from ingestkit_xlsx.enforcement import EnforcementPipeline
from ingestkit_xlsx.errors import ErrorCode, XLSXReadException
from ingestkit_xlsx.models import (
    DEFAULT_COLUMN_WIDTH,
    MAX_COLUMN_NUMBER,
    Address,
    Cell,
    CellRange,
    Column,
    RawCellRecord,
    RowDefinition,
    Style,
    WorksheetData,
    cell_type_of,
    column_to_letters,
)
from ingestkit_xlsx.protocols import SharedStringSource
from ingestkit_xlsx.resolver import ValueResolver
from ingestkit_xlsx.shared_strings import rich_text
from ingestkit_xlsx.styles import StyleComponentTable

logger = logging.getLogger("ingestkit_xlsx")

DEFAULT_WORKSHEET_PART = "xl/worksheets/sheet1.xml"

_STAGE = "worksheet"


class WorksheetReader:
    """Reads one worksheet payload into :class:`WorksheetData`.

    Parameters
    ----------
    shared_strings:
        Lookup for shared-string cells.  *None* keeps the raw ids as text.
    styles:
        Style table built once per workbook; frozen on first use and only
        read afterwards, so one table can serve every worksheet.
    options:
        Import options to enforce.  No enforcement when *None*.
    """

    def __init__(
        self,
        shared_strings: SharedStringSource | None,
        styles: StyleComponentTable,
        options: ImportOptions | None = None,
    ) -> None:
        self._styles = styles
        self._resolver = ValueResolver(shared_strings, styles.classification)
        self._pipeline = EnforcementPipeline(options) if options is not None else None

    def read(
        self, payload: bytes, part_name: str = DEFAULT_WORKSHEET_PART
    ) -> WorksheetData:
        """Parse *payload* and return its cells and structural records.

        Raises ``XLSXReadException`` with ``E_PARSE_WORKSHEET`` for malformed
        XML or non-numeric structural attributes, and
        ``E_PARSE_DUPLICATE_CELL`` when two cells share an address.
        """
        root = parse_payload(
            payload,
            code=ErrorCode.E_PARSE_WORKSHEET,
            part_name=part_name,
            stage=_STAGE,
        )
        data = WorksheetData()
        resolved_styles = self._styles.resolved_styles()

        previous_row = 0
        for row in iter_nodes(root, "row"):
            row_number = self._row_number(row, previous_row, part_name)
            previous_row = row_number
            definition = data.rows.setdefault(row_number, RowDefinition())
            if attribute(row, "hidden") == "1":
                definition.hidden = True
            height = attribute(row, "ht")
            if height is not None:
                definition.height = _parse_float(height, "ht", part_name)

            previous_column = -1
            for node in row:
                if not is_node(node, "c"):
                    continue
                record = _read_cell_record(node, row_number, previous_column)
                address = self._address(record, part_name)
                previous_column = address.column
                key = str(address)
                if key in data.cells:
                    raise XLSXReadException(
                        code=ErrorCode.E_PARSE_DUPLICATE_CELL,
                        message=f"Cell {key} is defined more than once",
                        stage=_STAGE,
                        part_name=part_name,
                        cell_address=key,
                    )
                data.style_assignment[key] = record.style_id
                data.cells[key] = self._build_cell(record, address, resolved_styles)

        self._read_sheet_format(root, data, part_name)
        self._read_auto_filter(root, data, part_name)
        self._read_columns(root, data, part_name)

        logger.debug(
            "Read %d cells, %d rows, %d columns from %s",
            len(data.cells),
            len(data.rows),
            len(data.columns),
            part_name,
        )
        return data

    # ------------------------------------------------------------------
    # Cells
    # ------------------------------------------------------------------

    def _build_cell(
        self,
        record: RawCellRecord,
        address: Address,
        resolved_styles: dict[str, Style],
    ) -> Cell:
        value = self._resolver.resolve(record.raw, record.type_code, record.style_id)
        if self._pipeline is not None:
            value = self._pipeline.apply(value, address)
        style = resolved_styles.get(record.style_id) if record.style_id else None
        return Cell(
            address=str(address),
            value=value,
            type=cell_type_of(value),
            style=style,
        )

    @staticmethod
    def _address(record: RawCellRecord, part_name: str) -> Address:
        try:
            return Address.parse(record.address)
        except ValueError as exc:
            raise XLSXReadException(
                code=ErrorCode.E_PARSE_WORKSHEET,
                message=f"Invalid cell address {record.address!r}",
                stage=_STAGE,
                part_name=part_name,
                cell_address=record.address,
            ) from exc

    @staticmethod
    def _row_number(row: ET.Element, previous_row: int, part_name: str) -> int:
        value = attribute(row, "r")
        if value is None:
            return previous_row + 1
        try:
            return int(value)
        except ValueError as exc:
            raise XLSXReadException(
                code=ErrorCode.E_PARSE_WORKSHEET,
                message=f"Row number {value!r} is not an integer",
                stage=_STAGE,
                part_name=part_name,
            ) from exc

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    @staticmethod
    def _read_sheet_format(root: ET.Element, data: WorksheetData, part_name: str) -> None:
        node = first_node(root, "sheetFormatPr")
        if node is None:
            return
        width = attribute(node, "defaultColWidth")
        if width is not None:
            data.default_column_width = _parse_float(width, "defaultColWidth", part_name)
        height = attribute(node, "defaultRowHeight")
        if height is not None:
            data.default_row_height = _parse_float(height, "defaultRowHeight", part_name)

    @staticmethod
    def _read_auto_filter(root: ET.Element, data: WorksheetData, part_name: str) -> None:
        node = first_node(root, "autoFilter")
        reference = attribute(node, "ref")
        if reference is None:
            return
        try:
            data.auto_filter_range = CellRange.parse(reference)
        except ValueError as exc:
            raise XLSXReadException(
                code=ErrorCode.E_PARSE_WORKSHEET,
                message=f"Invalid auto filter range {reference!r}",
                stage=_STAGE,
                part_name=part_name,
            ) from exc

    @staticmethod
    def _read_columns(root: ET.Element, data: WorksheetData, part_name: str) -> None:
        for node in iter_nodes(root, "col"):
            minimum = attribute(node, "min")
            if minimum is None:
                continue
            first = _parse_int(minimum, "min", part_name)
            maximum = attribute(node, "max")
            last = _parse_int(maximum, "max", part_name) if maximum is not None else first

            width = attribute(node, "width")
            column_width = (
                _parse_float(width, "width", part_name)
                if width is not None
                else DEFAULT_COLUMN_WIDTH
            )
            hidden = attribute(node, "hidden") == "1"
            for index in range(first, max(first, last) + 1):
                data.columns.append(Column(index=index, width=column_width, hidden=hidden))


def _read_cell_record(node: ET.Element, row_number: int, previous_column: int) -> RawCellRecord:
    """Collect address, type code, style id and raw text of one ``<c>``."""
    address = attribute(node, "r")
    if address is None:
        # Cells may omit the reference; they follow the previous cell
        column = min(previous_column + 1, MAX_COLUMN_NUMBER)
        address = f"{column_to_letters(column)}{row_number}"
    type_code = attribute(node, "t")

    raw = ""
    for child in node:
        if is_node(child, "v") or is_node(child, "f"):
            raw = "".join(child.itertext())
        elif is_node(child, "is") and type_code == "inlineStr":
            raw = rich_text(child)
    return RawCellRecord(
        address=address.upper(),
        type_code=type_code,
        style_id=attribute(node, "s"),
        raw=raw,
    )


def _parse_int(value: str, name: str, part_name: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise XLSXReadException(
            code=ErrorCode.E_PARSE_WORKSHEET,
            message=f"Attribute {name}={value!r} is not an integer",
            stage=_STAGE,
            part_name=part_name,
        ) from exc


def _parse_float(value: str, name: str, part_name: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise XLSXReadException(
            code=ErrorCode.E_PARSE_WORKSHEET,
            message=f"Attribute {name}={value!r} is not a number",
            stage=_STAGE,
            part_name=part_name,
        ) from exc
