"""Reader for the shared-string table (``xl/sharedStrings.xml``)."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET

from ingestkit_xlsx._xml import is_node, parse_payload
from ingestkit_xlsx.errors import ErrorCode

logger = logging.getLogger("ingestkit_xlsx")

SHARED_STRINGS_PART = "xl/sharedStrings.xml"


class SharedStringTable:
    """In-memory shared-string table implementing ``SharedStringSource``.

    Each ``<si>`` entry becomes one string: plain entries contribute their
    ``<t>`` text, rich-text entries the concatenation of their runs.
    Phonetic hints (``<rPh>``) are ignored.
    """

    def __init__(self, strings: list[str] | None = None) -> None:
        self._strings: list[str] = list(strings or [])

    @classmethod
    def read(
        cls, payload: bytes, part_name: str = SHARED_STRINGS_PART
    ) -> SharedStringTable:
        """Build a table from a buffered ``sharedStrings.xml`` payload.

        Raises ``XLSXReadException`` (``E_PARSE_SHARED_STRINGS``) on
        malformed XML.
        """
        root = parse_payload(
            payload,
            code=ErrorCode.E_PARSE_SHARED_STRINGS,
            part_name=part_name,
            stage="shared_strings",
        )
        strings = [rich_text(node) for node in root if is_node(node, "si")]
        logger.debug("Read %d shared strings from %s", len(strings), part_name)
        return cls(strings)

    @property
    def count(self) -> int:
        return len(self._strings)

    def get_string(self, string_id: int) -> str | None:
        if 0 <= string_id < len(self._strings):
            return self._strings[string_id]
        return None


def rich_text(entry: ET.Element) -> str:
    """Text of an ``<si>`` or ``<is>`` element: plain ``<t>`` plus run text."""
    parts: list[str] = []
    for child in entry:
        if is_node(child, "t"):
            parts.append(child.text or "")
        elif is_node(child, "r"):
            for run_child in child:
                if is_node(run_child, "t"):
                    parts.append(run_child.text or "")
    return "".join(parts)
