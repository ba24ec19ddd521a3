"""Configuration models for the ingestkit-xlsx reader.

Provides ``ImportOptions`` (per-read value enforcement rules) and
``XLSXProcessorConfig`` (limits and identity for the router).  Both support
loading overrides from YAML or JSON files via the ``from_file()``
classmethod.

Also exports the ``ColumnType`` and ``GlobalType`` enums used by the
enforcement pipeline.
"""

from __future__ import annotations

import json
import pathlib
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ingestkit_xlsx.models import letters_to_column


class ColumnType(str, Enum):
    """Target type for a per-column enforcement rule."""

    NUMERIC = "numeric"
    DECIMAL = "decimal"
    DOUBLE = "double"
    DATE = "date"
    TIME = "time"
    BOOL = "bool"
    STRING = "string"


class GlobalType(str, Enum):
    """Workbook-wide enforcement mode applied after per-column rules."""

    NONE = "none"
    ALL_NUMBERS_TO_DOUBLE = "all_numbers_to_double"
    ALL_NUMBERS_TO_DECIMAL = "all_numbers_to_decimal"
    ALL_NUMBERS_TO_INT = "all_numbers_to_int"
    EVERYTHING_TO_STRING = "everything_to_string"


def _load_mapping(path: str) -> dict[str, Any]:
    """Read a YAML or JSON file into a dict.

    File format is detected by extension: ``.yaml`` / ``.yml`` for YAML,
    ``.json`` for JSON.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the file extension is not recognized.
    """
    file_path = pathlib.Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    suffix = file_path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        import yaml  # type: ignore[import-untyped]

        with open(file_path) as fh:
            data = yaml.safe_load(fh)
    elif suffix == ".json":
        with open(file_path) as fh:
            data = json.load(fh)
    else:
        raise ValueError(
            f"Unsupported config file extension '{suffix}'. "
            "Use .yaml, .yml, or .json."
        )

    if data is None:
        data = {}
    return data


class ImportOptions(BaseModel):
    """Rules overriding the automatic cell typing of the reader.

    Column keys of ``enforced_column_types`` are zero-based column numbers
    (``A`` = 0); column letters are accepted on input and converted.
    ``enforcing_start_row`` is the zero-based row of the cell address; rows
    above it are never enforced (useful to keep header rows as strings).

    Date/time formats use ``strftime`` / ``strptime`` directives.  The time
    format understands ``%H``, ``%M``, ``%S`` and ``%D`` (whole days) and is
    applied to durations.  When a format is ``None`` the ISO representation
    is used for formatting and ISO parsing for input.
    """

    model_config = ConfigDict(frozen=True)

    enforced_column_types: dict[int, ColumnType] = Field(default_factory=dict)
    global_enforcing_type: GlobalType = GlobalType.NONE
    enforcing_start_row: int = Field(default=0, ge=0)
    enforce_date_times_as_numbers: bool = False
    enforce_empty_values_as_string: bool = False
    date_time_format: str | None = "%Y-%m-%d %H:%M:%S"
    time_span_format: str | None = "%H:%M:%S"
    temporal_locale: str | None = Field(
        default=None,
        description="Locale name (e.g. 'de_DE.UTF-8') for month/day names in temporal formats.",
    )

    @field_validator("enforced_column_types", mode="before")
    @classmethod
    def _normalize_column_keys(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        normalized: dict[int, Any] = {}
        for key, column_type in value.items():
            if isinstance(key, str) and not key.strip().isdigit():
                normalized[letters_to_column(key)] = column_type
            else:
                normalized[int(key)] = column_type
        return normalized

    @field_validator("time_span_format")
    @classmethod
    def _single_duration_directives(cls, value: str | None) -> str | None:
        if value is None:
            return value
        directives = [d for d in re.findall(r"%(.)", value) if d in "DHMS"]
        repeated = sorted({d for d in directives if directives.count(d) > 1})
        if repeated:
            raise ValueError(
                "time_span_format repeats directive(s): "
                + ", ".join(f"%{d}" for d in repeated)
            )
        return value

    @classmethod
    def from_file(cls, path: str) -> ImportOptions:
        """Load import options from a YAML or JSON file.

        Any keys present in the file override the corresponding defaults;
        keys not present retain their defaults.
        """
        return cls(**_load_mapping(path))


class XLSXProcessorConfig(BaseModel):
    """All tunable parameters for reading XLSX archives.

    Override individual values via constructor kwargs or load a complete
    config from a file with ``XLSXProcessorConfig.from_file(path)``.
    """

    # --- Identity ---
    parser_version: str = "ingestkit_xlsx:1.0.0"

    # --- Security limits (per archive entry) ---
    max_payload_size_mb: int = 100
    max_depth: int = 64

    # --- Style classification ---
    prefer_date_classification: bool = True

    # --- Value enforcement ---
    import_options: ImportOptions | None = None

    @classmethod
    def from_file(cls, path: str) -> XLSXProcessorConfig:
        """Load configuration from a YAML or JSON file.

        Raises:
            FileNotFoundError: If *path* does not exist.
            ValueError: If the file extension is not recognized.
        """
        return cls(**_load_mapping(path))
