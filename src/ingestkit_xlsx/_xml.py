"""ElementTree helpers shared by the readers.

SpreadsheetML parts are namespaced; matching is done on local names,
case-insensitively, so documents written with or without the main namespace
(or with a prefix) are read the same way.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from collections.abc import Iterator

from ingestkit_xlsx.errors import ErrorCode, XLSXReadException


def parse_payload(
    payload: bytes,
    *,
    code: ErrorCode,
    part_name: str | None,
    stage: str,
) -> ET.Element:
    """Parse a fully-buffered XML payload and return its root element.

    Raises ``XLSXReadException`` with *code* when the payload is not
    well-formed XML; the parser error is chained.
    """
    try:
        return ET.fromstring(payload)  # noqa: S314
    except ET.ParseError as exc:
        raise XLSXReadException(
            code=code,
            message=f"The XML entry could not be read: {exc}",
            stage=stage,
            part_name=part_name,
        ) from exc


def local_name(tag: str) -> str:
    """Remove namespace URI prefix from a tag or attribute name.

    If the tag is ``{http://example.com}localname``, returns ``localname``.
    """
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def is_node(element: ET.Element, name: str) -> bool:
    return local_name(element.tag).lower() == name.lower()


def iter_nodes(root: ET.Element, name: str) -> Iterator[ET.Element]:
    """Yield every descendant (and *root* itself) with the local *name*."""
    for element in root.iter():
        if is_node(element, name):
            yield element


def first_node(root: ET.Element, name: str) -> ET.Element | None:
    return next(iter_nodes(root, name), None)


def child_node(element: ET.Element | None, name: str) -> ET.Element | None:
    """Return the first direct child with the local *name*."""
    if element is None:
        return None
    for child in element:
        if is_node(child, name):
            return child
    return None


def attribute(
    element: ET.Element | None, name: str, default: str | None = None
) -> str | None:
    """Look up an attribute by local name; *default* when absent."""
    if element is None:
        return default
    value = element.get(name)
    if value is not None:
        return value
    for key, candidate in element.attrib.items():
        if local_name(key) == name:
            return candidate
    return default
