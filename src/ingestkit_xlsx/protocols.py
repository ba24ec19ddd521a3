"""Collaborator protocols for the ingestkit-xlsx readers.

Protocols are ``@runtime_checkable`` so callers can optionally verify
conformance with ``isinstance`` checks.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class SharedStringSource(Protocol):
    """Lookup of deduplicated strings referenced by integer id."""

    def get_string(self, string_id: int) -> str | None:
        """Return the string with *string_id*, or None if it does not exist."""
        ...
