"""Unit tests for ingestkit_xlsx.worksheet -- cells and structural scanner."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from conftest import build_worksheet_xml
from ingestkit_xlsx.config import ColumnType, GlobalType, ImportOptions
from ingestkit_xlsx.errors import ErrorCode, XLSXReadException
from ingestkit_xlsx.models import CellRange, CellType, ValueKind
from ingestkit_xlsx.worksheet import WorksheetReader


@pytest.fixture
def reader(style_table, mock_shared_strings) -> WorksheetReader:
    return WorksheetReader(mock_shared_strings, style_table)


class TestCells:
    """Typed cells and style assignment."""

    def test_mixed_row(self, reader):
        payload = build_worksheet_xml(
            '<row r="1">'
            '<c r="A1" t="s"><v>0</v></c>'
            '<c r="B1"><v>42</v></c>'
            '<c r="C1" t="b"><v>1</v></c>'
            '<c r="D1" s="1"><v>44197</v></c>'
            '<c r="E1" s="2"><v>0.5</v></c>'
            '<c r="F1" t="str"><f>SUM(B1:B2)</f><v>42</v></c>'
            '<c r="G1" s="5"/>'
            "</row>"
        )
        data = reader.read(payload)
        cells = data.cells
        assert cells["A1"].value.value == "alpha"
        assert cells["A1"].type is CellType.STRING
        assert cells["B1"].value.kind is ValueKind.INT32
        assert cells["B1"].type is CellType.NUMBER
        assert cells["C1"].type is CellType.BOOL
        assert cells["D1"].type is CellType.DATE
        assert cells["D1"].value.value == datetime(2021, 1, 1)
        assert cells["E1"].type is CellType.TIME
        assert cells["E1"].value.value == timedelta(hours=12)
        assert cells["F1"].type is CellType.FORMULA
        assert cells["G1"].type is CellType.EMPTY

    def test_last_value_child_wins(self, reader):
        payload = build_worksheet_xml(
            '<row r="1"><c r="A1" t="str"><v>3</v><f>1+2</f></c></row>'
        )
        assert reader.read(payload).cells["A1"].value.value == "1+2"

    def test_inline_string(self, reader):
        payload = build_worksheet_xml(
            '<row r="1"><c r="A1" t="inlineStr"><is><t>inline</t></is></c></row>'
        )
        cell = reader.read(payload).cells["A1"]
        assert cell.type is CellType.STRING
        assert cell.value.value == "inline"

    def test_styles_attached(self, reader, style_table):
        payload = build_worksheet_xml(
            '<row r="1"><c r="A1" s="5"><v>1</v></c><c r="B1" s="77"><v>1</v></c>'
            '<c r="C1"><v>1</v></c></row>'
        )
        data = reader.read(payload)
        assert data.cells["A1"].style == style_table.get_style(5)
        assert data.cells["B1"].style is None
        assert data.cells["C1"].style is None
        assert data.style_assignment == {"A1": "5", "B1": "77", "C1": None}

    def test_addresses_normalized(self, reader):
        payload = build_worksheet_xml('<row r="3"><c r="b3"><v>1</v></c></row>')
        data = reader.read(payload)
        assert list(data.cells) == ["B3"]
        assert data.cells["B3"].address == "B3"

    def test_missing_references_inferred(self, reader):
        payload = build_worksheet_xml(
            '<row r="2"><c r="C2"><v>1</v></c><c><v>2</v></c></row>'
            "<row><c><v>3</v></c></row>"
        )
        data = reader.read(payload)
        assert data.cells["D2"].value.value == 2
        assert data.cells["A3"].value.value == 3
        assert 3 in data.rows

    def test_non_cell_children_ignored(self, reader):
        payload = build_worksheet_xml(
            '<row r="1"><c r="A1"><v>1</v></c><extLst/></row>'
        )
        assert list(reader.read(payload).cells) == ["A1"]

    def test_duplicate_address_rejected(self, reader):
        payload = build_worksheet_xml(
            '<row r="1"><c r="A1"><v>1</v></c><c r="a1"><v>2</v></c></row>'
        )
        with pytest.raises(XLSXReadException) as exc_info:
            reader.read(payload)
        assert exc_info.value.code == ErrorCode.E_PARSE_DUPLICATE_CELL
        assert exc_info.value.error.cell_address == "A1"

    def test_invalid_address(self, reader):
        payload = build_worksheet_xml('<row r="1"><c r="1A"><v>1</v></c></row>')
        with pytest.raises(XLSXReadException, match="Invalid cell address"):
            reader.read(payload)

    def test_malformed_xml(self, reader):
        with pytest.raises(XLSXReadException) as exc_info:
            reader.read(b"<worksheet><sheetData><row>", "xl/worksheets/sheet2.xml")
        assert exc_info.value.code == ErrorCode.E_PARSE_WORKSHEET
        assert exc_info.value.error.part_name == "xl/worksheets/sheet2.xml"


class TestEnforcement:
    """Import options applied while reading."""

    def test_header_row_kept(self, style_table, mock_shared_strings):
        options = ImportOptions(
            enforcing_start_row=1,
            enforced_column_types={"A": ColumnType.DATE},
        )
        reader = WorksheetReader(mock_shared_strings, style_table, options)
        payload = build_worksheet_xml(
            '<row r="1"><c r="A1"><v>44197</v></c></row>'
            '<row r="2"><c r="A2"><v>44197</v></c></row>'
        )
        data = reader.read(payload)
        assert data.cells["A1"].type is CellType.NUMBER
        assert data.cells["A2"].type is CellType.DATE

    def test_type_follows_enforced_value(self, style_table, mock_shared_strings):
        options = ImportOptions(
            global_enforcing_type=GlobalType.EVERYTHING_TO_STRING,
            enforce_empty_values_as_string=True,
        )
        reader = WorksheetReader(mock_shared_strings, style_table, options)
        payload = build_worksheet_xml(
            '<row r="1"><c r="A1" s="1"><v>44197</v></c><c r="B1" s="5"/>'
            '<c r="C1" t="str"><f>A1</f></c></row>'
        )
        cells = reader.read(payload).cells
        assert cells["A1"].type is CellType.STRING
        assert cells["A1"].value.value == "2021-01-01 00:00:00"
        assert cells["B1"].type is CellType.STRING
        assert cells["B1"].value.value == ""
        assert cells["C1"].type is CellType.FORMULA


class TestStructure:
    """Rows, columns, sheet defaults and auto filter."""

    def test_columns_expanded(self, reader):
        payload = build_worksheet_xml(
            "",
            before=(
                '<cols><col min="2" max="4" width="12.5" hidden="1"/>'
                '<col min="6" max="6"/></cols>'
            ),
        )
        columns = reader.read(payload).columns
        assert [column.index for column in columns] == [2, 3, 4, 6]
        assert all(column.width == 12.5 and column.hidden for column in columns[:3])
        assert columns[3].width == 9.140625
        assert columns[3].hidden is False

    def test_column_without_min_skipped(self, reader):
        payload = build_worksheet_xml("", before='<cols><col max="3"/></cols>')
        assert reader.read(payload).columns == []

    def test_rows(self, reader):
        payload = build_worksheet_xml(
            '<row r="1"/><row r="2" hidden="1"/><row r="3" ht="20.25"/>'
            '<row r="4" hidden="1" ht="7"/>'
        )
        rows = reader.read(payload).rows
        assert set(rows) == {1, 2, 3, 4}
        assert rows[1].hidden is False and rows[1].height is None
        assert rows[2].hidden is True
        assert rows[3].height == 20.25
        assert rows[4].hidden is True and rows[4].height == 7.0

    def test_sheet_defaults(self, reader):
        payload = build_worksheet_xml(
            "",
            before='<sheetFormatPr defaultColWidth="10.5" defaultRowHeight="15"/>',
        )
        data = reader.read(payload)
        assert data.default_column_width == 10.5
        assert data.default_row_height == 15.0

    def test_no_sheet_defaults(self, reader):
        data = reader.read(build_worksheet_xml(""))
        assert data.default_column_width is None
        assert data.default_row_height is None
        assert data.auto_filter_range is None

    def test_auto_filter(self, reader):
        payload = build_worksheet_xml("", after='<autoFilter ref="A1:C10"/>')
        assert reader.read(payload).auto_filter_range == CellRange.parse("A1:C10")

    def test_non_numeric_row_number(self, reader):
        payload = build_worksheet_xml('<row r="x"/>')
        with pytest.raises(XLSXReadException) as exc_info:
            reader.read(payload)
        assert exc_info.value.code == ErrorCode.E_PARSE_WORKSHEET

    def test_non_numeric_width(self, reader):
        payload = build_worksheet_xml("", before='<cols><col min="1" width="wide"/></cols>')
        with pytest.raises(XLSXReadException, match="width"):
            reader.read(payload)
