"""Unit tests for ingestkit_xlsx.config -- configuration models."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from ingestkit_xlsx.config import (
    ColumnType,
    GlobalType,
    ImportOptions,
    XLSXProcessorConfig,
)


class TestDefaults:
    """Test that default values are correct."""

    def test_parser_version(self):
        config = XLSXProcessorConfig()
        assert config.parser_version == "ingestkit_xlsx:1.0.0"

    def test_limits(self):
        config = XLSXProcessorConfig()
        assert config.max_payload_size_mb == 100
        assert config.max_depth == 64

    def test_date_preferred(self):
        assert XLSXProcessorConfig().prefer_date_classification is True

    def test_no_import_options(self):
        assert XLSXProcessorConfig().import_options is None

    def test_import_options_defaults(self):
        options = ImportOptions()
        assert options.enforced_column_types == {}
        assert options.global_enforcing_type is GlobalType.NONE
        assert options.enforcing_start_row == 0
        assert options.enforce_date_times_as_numbers is False
        assert options.enforce_empty_values_as_string is False
        assert options.date_time_format == "%Y-%m-%d %H:%M:%S"
        assert options.time_span_format == "%H:%M:%S"
        assert options.temporal_locale is None


class TestImportOptions:
    """Validation of import options."""

    def test_column_letters_converted(self):
        options = ImportOptions(enforced_column_types={"A": "date", "c": ColumnType.BOOL})
        assert options.enforced_column_types == {0: ColumnType.DATE, 2: ColumnType.BOOL}

    def test_numeric_string_keys(self):
        options = ImportOptions(enforced_column_types={"3": "string"})
        assert options.enforced_column_types == {3: ColumnType.STRING}

    def test_negative_start_row_rejected(self):
        with pytest.raises(ValidationError):
            ImportOptions(enforcing_start_row=-1)

    def test_unknown_column_type_rejected(self):
        with pytest.raises(ValidationError):
            ImportOptions(enforced_column_types={0: "currency"})

    def test_repeated_duration_directive_rejected(self):
        with pytest.raises(ValidationError, match="%H"):
            ImportOptions(time_span_format="%H:%H")

    def test_escaped_percent_not_a_directive(self):
        options = ImportOptions(time_span_format="%%H %H:%M")
        assert options.time_span_format == "%%H %H:%M"

    def test_frozen(self):
        options = ImportOptions()
        with pytest.raises(ValidationError):
            options.enforcing_start_row = 3


class TestFromFile:
    """Loading overrides from YAML and JSON files."""

    def test_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "max_depth: 10\n"
            "prefer_date_classification: false\n"
            "import_options:\n"
            "  global_enforcing_type: everything_to_string\n"
            "  enforced_column_types:\n"
            "    B: numeric\n"
        )
        config = XLSXProcessorConfig.from_file(str(path))
        assert config.max_depth == 10
        assert config.prefer_date_classification is False
        assert config.import_options.global_enforcing_type is GlobalType.EVERYTHING_TO_STRING
        assert config.import_options.enforced_column_types == {1: ColumnType.NUMERIC}
        assert config.parser_version == "ingestkit_xlsx:1.0.0"

    def test_json(self, tmp_path):
        path = tmp_path / "options.json"
        path.write_text(json.dumps({"enforcing_start_row": 1, "date_time_format": None}))
        options = ImportOptions.from_file(str(path))
        assert options.enforcing_start_row == 1
        assert options.date_time_format is None

    def test_empty_yaml_keeps_defaults(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert XLSXProcessorConfig.from_file(str(path)) == XLSXProcessorConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            XLSXProcessorConfig.from_file(str(tmp_path / "absent.yaml"))

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("max_depth = 3")
        with pytest.raises(ValueError, match="Unsupported config file extension"):
            XLSXProcessorConfig.from_file(str(path))
