"""Error codes and structured error model for the ingestkit-xlsx package.

``ErrorCode`` contains all error/warning codes relevant to XLSX reading.
``IngestError`` is the Pydantic data model carrying code, message and
location context (``part_name`` for the archive entry, ``cell_address`` for
the offending cell).  ``XLSXReadException`` wraps an ``IngestError`` so it
can be raised and caught in control flow.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Error codes for XLSX reading.

    Values equal their names so they are stable strings suitable for
    metrics and alerting.  ``E_`` prefix = fatal, ``W_`` prefix = warning.
    """

    # Security
    E_SECURITY_TOO_LARGE = "E_SECURITY_TOO_LARGE"
    E_SECURITY_BAD_EXTENSION = "E_SECURITY_BAD_EXTENSION"
    E_SECURITY_ENTITY_DECLARATION = "E_SECURITY_ENTITY_DECLARATION"
    E_SECURITY_INVALID_XML = "E_SECURITY_INVALID_XML"
    E_SECURITY_DEPTH_BOMB = "E_SECURITY_DEPTH_BOMB"

    # Parse
    E_PARSE_EMPTY = "E_PARSE_EMPTY"
    E_PARSE_CORRUPT = "E_PARSE_CORRUPT"
    E_PARSE_STYLES = "E_PARSE_STYLES"
    E_PARSE_WORKSHEET = "E_PARSE_WORKSHEET"
    E_PARSE_SHARED_STRINGS = "E_PARSE_SHARED_STRINGS"
    E_PARSE_DUPLICATE_CELL = "E_PARSE_DUPLICATE_CELL"

    # Warnings (non-fatal)
    W_LARGE_PAYLOAD = "W_LARGE_PAYLOAD"
    W_STYLE_COMPONENT_MISSING = "W_STYLE_COMPONENT_MISSING"
    W_SHEET_MISSING = "W_SHEET_MISSING"


class IngestError(BaseModel):
    """Structured error with code, message, and archive location context.

    ``part_name`` names the archive entry (e.g. ``xl/styles.xml``) and
    ``cell_address`` the cell that caused the issue, when known.
    """

    code: ErrorCode
    message: str
    stage: str | None = None
    recoverable: bool = False
    part_name: str | None = None
    cell_address: str | None = None


class XLSXReadException(Exception):
    """Raisable exception wrapping an ``IngestError`` data model.

    Raised for structural failures (malformed XML, unreadable payloads,
    duplicate cells) that abort the read of a whole part.  The structured
    error is available as ``.error``.
    """

    def __init__(self, **kwargs: object) -> None:
        self.error = IngestError(**kwargs)  # type: ignore[arg-type]
        super().__init__(self.error.message)

    @property
    def code(self) -> ErrorCode:
        return self.error.code

    @property
    def message(self) -> str:
        return self.error.message

    @property
    def stage(self) -> str | None:
        return self.error.stage

    @property
    def recoverable(self) -> bool:
        return self.error.recoverable
