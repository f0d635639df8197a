from __future__ import annotations

import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from tutor_import.config.loader import ConfigError, _validate_config_schema

"""Config schema validation error cases."""


def test_validate_config_schema_missing_schema_file():
    with patch("tutor_import.config.loader.SCHEMA_PATH", Path("/nonexistent/schema.json")):
        with pytest.raises(ConfigError) as e:
            _validate_config_schema({})
        assert "config schema not found" in str(e.value)


def test_validate_config_schema_invalid_json_schema():
    """A schema file that is not JSON is a config error, not a crash."""
    with tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False) as f:
        f.write("{ invalid json }")
        f.flush()
        temp_path = Path(f.name)

    try:
        with patch("tutor_import.config.loader.SCHEMA_PATH", temp_path):
            with pytest.raises(ConfigError) as e:
                _validate_config_schema({})
            assert "invalid schema file" in str(e.value)
    finally:
        temp_path.unlink()


def test_validate_config_schema_empty_config_is_valid():
    _validate_config_schema({})


@pytest.mark.parametrize(
    "invalid_config",
    [
        {"database": {"port": "not_an_integer"}},
        {"database": {"host": "localhost", "extra_db_field": "x"}},
        {"matching": {"bank_confidence": -1}},
        {"persistence": {"max_code_attempts": 0}},
        {"persistence": {"batch_timeout_seconds": 0}},
        {"tables": {"identity": "users; drop table x"}},
        {"reference": {"tables": {"regions": {"table": "x"}}}},
        {"reference": {"tables": {"banks": {"columns": {"logo": "logo_url"}}}}},
    ],
)
def test_validate_config_schema_rejects(invalid_config):
    with pytest.raises(ConfigError) as e:
        _validate_config_schema(invalid_config)
    assert "config validation failed" in str(e.value)


def test_validate_config_schema_full_config():
    valid_config = {
        "timezone": "Asia/Jakarta",
        "error_log_dir": "logs",
        "database": {"host": "localhost", "port": 5432, "user": "u", "password": None, "database": "db"},
        "reference": {
            "directory": None,
            "tables": {"banks": {"table": "banks", "where": "is_active", "columns": {"name": "bank_name"}}},
        },
        "tables": {"identity": "public.users_universal"},
        "matching": {"reject_floor": 60, "location_confidence": 85},
        "persistence": {"batch_timeout_seconds": 30.5, "statement_timeout_ms": None},
    }
    _validate_config_schema(valid_config)
