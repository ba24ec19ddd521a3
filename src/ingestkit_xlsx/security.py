"""Pre-flight security scanner for XLSX archives and their XML entries.

Rejects dangerous or oversized input before any parsing begins.
``scan_file`` checks the archive itself (extension, existence, emptiness,
size); ``scan_payload`` checks each buffered XML entry (emptiness, size,
entity declarations, XML validity and nesting depth).
"""

from __future__ import annotations

import logging
import os
import xml.etree.ElementTree as ET

from ingestkit_xlsx.config import XLSXProcessorConfig
from ingestkit_xlsx.errors import ErrorCode, IngestError

logger = logging.getLogger("ingestkit_xlsx")

_LARGE_PAYLOAD_THRESHOLD_MB = 10
_SUPPORTED_EXTENSIONS = (".xlsx", ".xlsm")


class PayloadSecurityScanner:
    """Run pre-flight security checks on an archive and its XML entries.

    Returns a list of errors/warnings.  Fatal errors (``E_*`` codes) mean
    the input should not be processed further.
    """

    def __init__(self, config: XLSXProcessorConfig | None = None) -> None:
        self.config = config or XLSXProcessorConfig()

    def scan_file(self, file_path: str) -> list[IngestError]:
        """Check the archive file before it is opened."""
        errors: list[IngestError] = []

        # --- 1. Extension check ---
        if not file_path.lower().endswith(_SUPPORTED_EXTENSIONS):
            errors.append(
                IngestError(
                    code=ErrorCode.E_SECURITY_BAD_EXTENSION,
                    message=f"File does not have .xlsx/.xlsm extension: {file_path}",
                    stage="security",
                )
            )
            return errors

        # --- 2. File existence ---
        if not os.path.isfile(file_path):
            errors.append(
                IngestError(
                    code=ErrorCode.E_PARSE_CORRUPT,
                    message=f"File not found or not readable: {file_path}",
                    stage="security",
                )
            )
            return errors

        # --- 3. Empty file ---
        file_size = os.path.getsize(file_path)
        if file_size == 0:
            errors.append(
                IngestError(
                    code=ErrorCode.E_PARSE_EMPTY,
                    message=f"File is empty (0 bytes): {file_path}",
                    stage="security",
                )
            )
            return errors

        # --- 4. Size limit ---
        errors.extend(self._check_size(file_size, part_name=None))
        return errors

    def scan_payload(self, payload: bytes, part_name: str) -> list[IngestError]:
        """Check one buffered XML entry of the archive."""
        errors: list[IngestError] = []

        # --- 1. Empty entry ---
        if not payload.strip():
            errors.append(
                IngestError(
                    code=ErrorCode.E_PARSE_EMPTY,
                    message=f"Archive entry is empty: {part_name}",
                    stage="security",
                    part_name=part_name,
                )
            )
            return errors

        # --- 2. Size limit ---
        errors.extend(self._check_size(len(payload), part_name=part_name))
        if any(e.code.startswith("E_") for e in errors):
            return errors

        # --- 3. Entity declaration scan (billion laughs / XXE prevention) ---
        raw_upper = payload.upper()
        if b"<!ENTITY" in raw_upper:
            errors.append(
                IngestError(
                    code=ErrorCode.E_SECURITY_ENTITY_DECLARATION,
                    message=(
                        f"{part_name} contains <!ENTITY declaration "
                        "(potential billion laughs / XXE attack)"
                    ),
                    stage="security",
                    part_name=part_name,
                )
            )
            return errors

        if b"<!DOCTYPE" in raw_upper:
            doctype_pos = raw_upper.find(b"<!DOCTYPE")
            bracket_pos = payload.find(b"[", doctype_pos)
            close_pos = payload.find(b">", doctype_pos)
            if bracket_pos != -1 and (close_pos == -1 or bracket_pos < close_pos):
                errors.append(
                    IngestError(
                        code=ErrorCode.E_SECURITY_ENTITY_DECLARATION,
                        message=(
                            f"{part_name} contains <!DOCTYPE with internal subset "
                            "(potential entity expansion attack)"
                        ),
                        stage="security",
                        part_name=part_name,
                    )
                )
                return errors

        # --- 4. XML validity ---
        try:
            root = ET.fromstring(payload)  # noqa: S314
        except ET.ParseError as exc:
            errors.append(
                IngestError(
                    code=ErrorCode.E_SECURITY_INVALID_XML,
                    message=f"Invalid XML in {part_name}: {exc}",
                    stage="security",
                    part_name=part_name,
                )
            )
            return errors

        # --- 5. Depth check ---
        depth = _measure_depth(root)
        if depth > self.config.max_depth:
            errors.append(
                IngestError(
                    code=ErrorCode.E_SECURITY_DEPTH_BOMB,
                    message=(
                        f"XML nesting depth {depth} in {part_name} exceeds limit of "
                        f"{self.config.max_depth}"
                    ),
                    stage="security",
                    part_name=part_name,
                )
            )

        return errors

    def _check_size(self, size: int, part_name: str | None) -> list[IngestError]:
        label = part_name or "File"
        max_bytes = self.config.max_payload_size_mb * 1024 * 1024
        if size > max_bytes:
            return [
                IngestError(
                    code=ErrorCode.E_SECURITY_TOO_LARGE,
                    message=(
                        f"{label} size {size} bytes exceeds limit of "
                        f"{max_bytes} bytes ({self.config.max_payload_size_mb} MB)"
                    ),
                    stage="security",
                    part_name=part_name,
                )
            ]

        large_threshold = _LARGE_PAYLOAD_THRESHOLD_MB * 1024 * 1024
        if size > large_threshold:
            return [
                IngestError(
                    code=ErrorCode.W_LARGE_PAYLOAD,
                    message=(
                        f"{label} is {size / (1024 * 1024):.1f} MB "
                        f"(> {_LARGE_PAYLOAD_THRESHOLD_MB} MB)"
                    ),
                    stage="security",
                    recoverable=True,
                    part_name=part_name,
                )
            ]
        return []


def _measure_depth(element: ET.Element) -> int:
    """Maximum nesting depth of an XML tree (the root counts as 1)."""
    deepest = 0
    stack = [(element, 1)]
    while stack:
        node, depth = stack.pop()
        deepest = max(deepest, depth)
        stack.extend((child, depth + 1) for child in node)
    return deepest
