"""XLSXRouter -- orchestrator and public API for reading XLSX archives.

Routes an ``.xlsx`` / ``.xlsm`` file through the full read pipeline:

1. Security scan of the archive via :class:`PayloadSecurityScanner`.
2. Open the archive and locate the worksheets through ``xl/workbook.xml``
   and its relationships.
3. Build the style table once (two phases) from ``xl/styles.xml``.
4. Read the shared-string table from ``xl/sharedStrings.xml``.
5. Read every worksheet with a :class:`WorksheetReader` sharing the style
   table, shared strings and import options.
6. Assemble and return :class:`ProcessingResult`.

Every archive entry is security-scanned before it is parsed.  The router
enforces **fail-closed** semantics: any fatal error returns a result with
error codes and no worksheets.
"""

from __future__ import annotations

import asyncio
import logging
import os
import posixpath
import time
import zipfile
from typing import NamedTuple

from ingestkit_xlsx._xml import attribute, iter_nodes, parse_payload
from ingestkit_xlsx.config import XLSXProcessorConfig
from ingestkit_xlsx.errors import ErrorCode, IngestError, XLSXReadException
from ingestkit_xlsx.models import ProcessingResult, SheetResult
from ingestkit_xlsx.security import PayloadSecurityScanner
from ingestkit_xlsx.shared_strings import SHARED_STRINGS_PART, SharedStringTable
from ingestkit_xlsx.styles import STYLES_PART, StyleComponentTable, StyleReader
from ingestkit_xlsx.worksheet import WorksheetReader

logger = logging.getLogger("ingestkit_xlsx")

WORKBOOK_PART = "xl/workbook.xml"
WORKBOOK_RELS_PART = "xl/_rels/workbook.xml.rels"


class _SheetEntry(NamedTuple):
    """Name and archive path of one worksheet declared by the workbook."""

    name: str
    part_name: str


class XLSXRouter:
    """Top-level orchestrator for reading XLSX archives.

    Parameters
    ----------
    config:
        Reader configuration.  Uses defaults when *None*.
    """

    def __init__(self, config: XLSXProcessorConfig | None = None) -> None:
        self._config = config or XLSXProcessorConfig()
        self._security_scanner = PayloadSecurityScanner(self._config)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def can_handle(self, file_path: str) -> bool:
        """Return True if *file_path* ends with ``.xlsx`` or ``.xlsm``."""
        return file_path.lower().endswith((".xlsx", ".xlsm"))

    def process(self, file_path: str) -> ProcessingResult:
        """Read every worksheet of the archive at *file_path*.

        Parameters
        ----------
        file_path:
            Filesystem path to the archive.

        Returns
        -------
        ProcessingResult
            The assembled result; ``errors`` is non-empty and ``sheets`` is
            empty when reading failed.
        """
        overall_start = time.monotonic()
        filename = os.path.basename(file_path)

        # ==============================================================
        # Step 1: Security Scan
        # ==============================================================
        security_errors = self._security_scanner.scan_file(file_path)
        fatal_errors = [e for e in security_errors if e.code.startswith("E_")]
        warnings = [e for e in security_errors if not e.code.startswith("E_")]

        if fatal_errors:
            return self._failed(file_path, fatal_errors[0], warnings, overall_start)

        # ==============================================================
        # Steps 2-5: Workbook, styles, shared strings, worksheets
        # ==============================================================
        try:
            with zipfile.ZipFile(file_path) as archive:
                result = self._read_archive(file_path, archive, warnings)
        except zipfile.BadZipFile as exc:
            error = IngestError(
                code=ErrorCode.E_PARSE_CORRUPT,
                message=f"File is not a valid zip archive: {exc}",
                stage="parse",
            )
            return self._failed(file_path, error, warnings, overall_start)
        except XLSXReadException as exc:
            return self._failed(file_path, exc.error, warnings, overall_start)

        # ==============================================================
        # Step 6: Assemble Result
        # ==============================================================
        elapsed = time.monotonic() - overall_start
        result.processing_time_seconds = elapsed

        logger.info(
            "ingestkit_xlsx | file=%s | sheets=%d | styles=%d | strings=%d | "
            "cells=%d | time=%.1fs",
            filename,
            len(result.sheets),
            result.style_count,
            result.shared_string_count,
            result.cells_read,
            elapsed,
        )
        return result

    async def aprocess(self, file_path: str) -> ProcessingResult:
        """Async wrapper around :meth:`process`.

        Offloads the synchronous ``process()`` call to a thread via
        ``asyncio.to_thread()``.
        """
        return await asyncio.to_thread(self.process, file_path)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _read_archive(
        self,
        file_path: str,
        archive: zipfile.ZipFile,
        warnings: list[IngestError],
    ) -> ProcessingResult:
        config = self._config
        names = set(archive.namelist())

        workbook = self._read_entry(archive, WORKBOOK_PART, names, warnings)
        if workbook is None:
            raise XLSXReadException(
                code=ErrorCode.E_PARSE_CORRUPT,
                message=f"Archive has no {WORKBOOK_PART}; not a SpreadsheetML workbook",
                stage="parse",
                part_name=WORKBOOK_PART,
            )
        relationships = self._read_entry(archive, WORKBOOK_RELS_PART, names, warnings)
        sheets = _sheet_entries(workbook, relationships)

        styles_payload = self._read_entry(archive, STYLES_PART, names, warnings)
        if styles_payload is None:
            warnings.append(
                IngestError(
                    code=ErrorCode.W_STYLE_COMPONENT_MISSING,
                    message=f"Archive has no {STYLES_PART}; cells are read unstyled",
                    stage="styles",
                    recoverable=True,
                    part_name=STYLES_PART,
                )
            )
            styles = StyleComponentTable(prefer_date=config.prefer_date_classification)
            styles.freeze()
        else:
            styles = StyleReader(prefer_date=config.prefer_date_classification).read(
                styles_payload
            )

        strings_payload = self._read_entry(archive, SHARED_STRINGS_PART, names, warnings)
        shared_strings = (
            SharedStringTable.read(strings_payload)
            if strings_payload is not None
            else SharedStringTable()
        )

        reader = WorksheetReader(shared_strings, styles, config.import_options)
        results: list[SheetResult] = []
        for sheet in sheets:
            payload = self._read_entry(archive, sheet.part_name, names, warnings)
            if payload is None:
                warnings.append(
                    IngestError(
                        code=ErrorCode.W_SHEET_MISSING,
                        message=f"Worksheet {sheet.name!r} not found at {sheet.part_name}",
                        stage="worksheet",
                        recoverable=True,
                        part_name=sheet.part_name,
                    )
                )
                continue
            data = reader.read(payload, sheet.part_name)
            results.append(
                SheetResult(name=sheet.name, part_name=sheet.part_name, data=data)
            )

        return ProcessingResult(
            file_path=file_path,
            parser_version=config.parser_version,
            sheets=results,
            style_count=styles.style_count,
            shared_string_count=shared_strings.count,
            cells_read=sum(len(sheet.data.cells) for sheet in results),
            warnings=[e.code.value for e in warnings],
            error_details=list(warnings),
        )

    def _read_entry(
        self,
        archive: zipfile.ZipFile,
        part_name: str,
        names: set[str],
        warnings: list[IngestError],
    ) -> bytes | None:
        """Buffer and scan one archive entry; None when it does not exist.

        Raises ``XLSXReadException`` with the first fatal scan error.
        """
        if part_name not in names:
            return None
        info = archive.getinfo(part_name)
        max_bytes = self._config.max_payload_size_mb * 1024 * 1024
        if info.file_size > max_bytes:
            raise XLSXReadException(
                code=ErrorCode.E_SECURITY_TOO_LARGE,
                message=(
                    f"{part_name} expands to {info.file_size} bytes; limit is "
                    f"{max_bytes} bytes"
                ),
                stage="security",
                part_name=part_name,
            )
        payload = archive.read(part_name)

        scan_errors = self._security_scanner.scan_payload(payload, part_name)
        for error in scan_errors:
            if error.code.startswith("E_"):
                raise XLSXReadException(**error.model_dump())
            warnings.append(error)
        return payload

    def _failed(
        self,
        file_path: str,
        error: IngestError,
        warnings: list[IngestError],
        overall_start: float,
    ) -> ProcessingResult:
        elapsed = time.monotonic() - overall_start
        logger.error(
            "ingestkit_xlsx | file=%s | code=%s | detail=%s",
            os.path.basename(file_path),
            error.code.value,
            error.message,
        )
        return ProcessingResult(
            file_path=file_path,
            parser_version=self._config.parser_version,
            errors=[error.code.value],
            warnings=[e.code.value for e in warnings],
            error_details=[error, *warnings],
            processing_time_seconds=elapsed,
        )


def _sheet_entries(workbook: bytes, relationships: bytes | None) -> list[_SheetEntry]:
    """Worksheet names and archive paths, in workbook order."""
    targets: dict[str, str] = {}
    if relationships is not None:
        rels_root = parse_payload(
            relationships,
            code=ErrorCode.E_PARSE_CORRUPT,
            part_name=WORKBOOK_RELS_PART,
            stage="parse",
        )
        for node in iter_nodes(rels_root, "Relationship"):
            rel_id = attribute(node, "Id")
            target = attribute(node, "Target")
            if rel_id is not None and target is not None:
                targets[rel_id] = _resolve_target(target)

    root = parse_payload(
        workbook, code=ErrorCode.E_PARSE_CORRUPT, part_name=WORKBOOK_PART, stage="parse"
    )
    entries: list[_SheetEntry] = []
    for position, node in enumerate(iter_nodes(root, "sheet"), start=1):
        name = attribute(node, "name") or f"Sheet{position}"
        part_name = targets.get(attribute(node, "id") or "")
        if part_name is None:
            part_name = f"xl/worksheets/sheet{position}.xml"
        entries.append(_SheetEntry(name, part_name))
    return entries


def _resolve_target(target: str) -> str:
    """Archive path of a relationship target relative to ``xl/``."""
    if target.startswith("/"):
        return target.lstrip("/")
    return posixpath.normpath(posixpath.join("xl", target))
