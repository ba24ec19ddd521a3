"""ingestkit-xlsx -- typed, styled cell data from XLSX worksheets.

Public API re-exports for convenient access.
"""

from ingestkit_xlsx.config import (
    ColumnType,
    GlobalType,
    ImportOptions,
    XLSXProcessorConfig,
)
from ingestkit_xlsx.enforcement import (
    UNCHANGED,
    Converted,
    EnforcementPipeline,
    ValueConverter,
)
from ingestkit_xlsx.errors import ErrorCode, IngestError, XLSXReadException
from ingestkit_xlsx.models import (
    Address,
    Border,
    Cell,
    CellRange,
    CellType,
    Column,
    Fill,
    NumberFormat,
    ProcessingResult,
    RowDefinition,
    SheetResult,
    Style,
    TypedValue,
    ValueKind,
    WorksheetData,
)
from ingestkit_xlsx.protocols import SharedStringSource
from ingestkit_xlsx.resolver import ValueResolver, get_numeric_value
from ingestkit_xlsx.router import XLSXRouter
from ingestkit_xlsx.security import PayloadSecurityScanner
from ingestkit_xlsx.shared_strings import SharedStringTable
from ingestkit_xlsx.styles import StyleClassification, StyleComponentTable, StyleReader
from ingestkit_xlsx.worksheet import WorksheetReader

__all__ = [
    "XLSXRouter",
    "XLSXProcessorConfig",
    "ImportOptions",
    "ColumnType",
    "GlobalType",
    "ErrorCode",
    "IngestError",
    "XLSXReadException",
    "WorksheetReader",
    "WorksheetData",
    "StyleReader",
    "StyleComponentTable",
    "StyleClassification",
    "SharedStringSource",
    "SharedStringTable",
    "ValueResolver",
    "get_numeric_value",
    "EnforcementPipeline",
    "ValueConverter",
    "Converted",
    "UNCHANGED",
    "PayloadSecurityScanner",
    "Address",
    "CellRange",
    "Cell",
    "CellType",
    "TypedValue",
    "ValueKind",
    "NumberFormat",
    "Border",
    "Fill",
    "Style",
    "Column",
    "RowDefinition",
    "SheetResult",
    "ProcessingResult",
]
