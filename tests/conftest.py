"""Shared test fixtures for ingestkit-xlsx tests."""

from __future__ import annotations

import zipfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from ingestkit_xlsx.config import XLSXProcessorConfig
from ingestkit_xlsx.styles import StyleComponentTable, StyleReader

MAIN_NS = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
REL_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
PKG_REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
WORKSHEET_REL_TYPE = (
    "http://schemas.openxmlformats.org/officeDocument/2006/relationships/worksheet"
)

# Style ids of the default styles payload:
#   0 general, 1 built-in date (14), 2 built-in time (21),
#   3 custom date+time, 4 custom elapsed time, 5 thin border + solid fill
DEFAULT_CELL_XFS = [
    (0, 0, 0),
    (14, 0, 0),
    (21, 0, 0),
    (164, 0, 0),
    (165, 0, 0),
    (0, 1, 2),
]
DEFAULT_NUM_FMTS = [
    (164, "yyyy-mm-dd hh:mm"),
    (165, "[h]:mm:ss"),
]


def build_styles_xml(
    num_fmts: list[tuple[int, str]] | None = None,
    cell_xfs: list[tuple[int, int, int]] | None = None,
) -> bytes:
    """Styles payload with two borders (none, thin) and three fills."""
    num_fmts = DEFAULT_NUM_FMTS if num_fmts is None else num_fmts
    cell_xfs = DEFAULT_CELL_XFS if cell_xfs is None else cell_xfs
    fmt_xml = "".join(
        f'<numFmt numFmtId="{fmt_id}" formatCode="{code}"/>' for fmt_id, code in num_fmts
    )
    xf_xml = "".join(
        f'<xf numFmtId="{n}" fontId="0" fillId="{f}" borderId="{b}" xfId="0"/>'
        for n, b, f in cell_xfs
    )
    return (
        f'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<styleSheet xmlns="{MAIN_NS}">'
        f'<numFmts count="{len(num_fmts)}">{fmt_xml}</numFmts>'
        "<fills count=\"3\">"
        '<fill><patternFill patternType="none"/></fill>'
        '<fill><patternFill patternType="gray125"/></fill>'
        '<fill><patternFill patternType="solid">'
        '<fgColor rgb="FFFFFF00"/><bgColor indexed="64"/>'
        "</patternFill></fill>"
        "</fills>"
        '<borders count="2">'
        "<border><left/><right/><top/><bottom/><diagonal/></border>"
        '<border diagonalUp="1"><left style="thin"><color rgb="FF000000"/></left>'
        '<right style="Double"/><top/><bottom style="medium"/><diagonal/></border>'
        "</borders>"
        f'<cellXfs count="{len(cell_xfs)}">{xf_xml}</cellXfs>'
        "</styleSheet>"
    ).encode("utf-8")


def build_worksheet_xml(sheet_data: str, before: str = "", after: str = "") -> bytes:
    """Worksheet payload wrapping *sheet_data* (the ``<row>`` elements)."""
    return (
        f'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<worksheet xmlns="{MAIN_NS}" xmlns:r="{REL_NS}">'
        f"{before}<sheetData>{sheet_data}</sheetData>{after}"
        "</worksheet>"
    ).encode("utf-8")


def build_shared_strings_xml(strings: list[str]) -> bytes:
    items = "".join(f"<si><t>{text}</t></si>" for text in strings)
    return (
        f'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<sst xmlns="{MAIN_NS}" count="{len(strings)}" uniqueCount="{len(strings)}">'
        f"{items}</sst>"
    ).encode("utf-8")


def build_workbook_xml(sheet_names: list[str]) -> bytes:
    sheets = "".join(
        f'<sheet name="{name}" sheetId="{index}" r:id="rId{index}"/>'
        for index, name in enumerate(sheet_names, start=1)
    )
    return (
        f'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<workbook xmlns="{MAIN_NS}" xmlns:r="{REL_NS}">'
        f"<sheets>{sheets}</sheets></workbook>"
    ).encode("utf-8")


def build_workbook_rels_xml(sheet_count: int) -> bytes:
    rels = "".join(
        f'<Relationship Id="rId{index}" Type="{WORKSHEET_REL_TYPE}" '
        f'Target="worksheets/sheet{index}.xml"/>'
        for index in range(1, sheet_count + 1)
    )
    return (
        f'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<Relationships xmlns="{PKG_REL_NS}">{rels}</Relationships>'
    ).encode("utf-8")


@pytest.fixture
def default_config() -> XLSXProcessorConfig:
    """Return a default XLSXProcessorConfig."""
    return XLSXProcessorConfig()


@pytest.fixture
def styles_payload() -> bytes:
    return build_styles_xml()


@pytest.fixture
def style_table(styles_payload: bytes) -> StyleComponentTable:
    """Frozen style table built from the default styles payload."""
    return StyleReader().read(styles_payload)


@pytest.fixture
def mock_shared_strings() -> MagicMock:
    """Return a mock SharedStringSource with ids 0 and 1."""
    strings = {0: "alpha", 1: "beta"}
    mock = MagicMock()
    mock.get_string.side_effect = strings.get
    return mock


@pytest.fixture
def tmp_xlsx_file(tmp_path: Path):
    """Factory fixture writing an archive from worksheet payloads.

    ``entries`` overrides or adds raw archive members; a value of ``None``
    removes the member.
    """

    def _write(
        sheets: dict[str, bytes],
        shared_strings: list[str] | None = None,
        entries: dict[str, bytes | None] | None = None,
        filename: str = "book.xlsx",
    ) -> str:
        members: dict[str, bytes | None] = {
            "xl/workbook.xml": build_workbook_xml(list(sheets)),
            "xl/_rels/workbook.xml.rels": build_workbook_rels_xml(len(sheets)),
            "xl/styles.xml": build_styles_xml(),
            "xl/sharedStrings.xml": build_shared_strings_xml(shared_strings or []),
        }
        for index, payload in enumerate(sheets.values(), start=1):
            members[f"xl/worksheets/sheet{index}.xml"] = payload
        members.update(entries or {})

        file_path = tmp_path / filename
        with zipfile.ZipFile(file_path, "w") as archive:
            for name, payload in members.items():
                if payload is not None:
                    archive.writestr(name, payload)
        return str(file_path)

    return _write
