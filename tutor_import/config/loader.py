from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..errors import ImportFatalError
from ..models.reference import ReferenceKind

"""Config loader.

Responsibilities:
- Load YAML config (config/import.yml by default)
- Validate against the bundled JSON schema (config_schema.json)
- Apply defaults for every optional section
- Return frozen dataclasses; database settings are a fallback for the
  DATABASE_URL / PGDSN / PG* environment variables (resolved by the CLI)
"""

__all__ = [
    "SCHEMA_PATH",
    "DEFAULT_TABLES",
    "DEFAULT_REFERENCE_TABLES",
    "ConfigError",
    "DatabaseConfig",
    "ReferenceTableConfig",
    "ReferenceSourceConfig",
    "MatchingConfig",
    "PersistenceConfig",
    "ImportConfig",
    "load_config",
    "config_from_dict",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")

# logical name -> physical table
DEFAULT_TABLES: dict[str, str] = {
    "identity": "users_universal",
    "profile": "user_profiles",
    "demographics": "user_demographics",
    "address": "user_addresses",
    "banking": "tutor_banking_info",
    "educator_details": "tutor_details",
    "management": "tutor_management",
    "teaching_preferences": "tutor_teaching_preferences",
    "personality_traits": "tutor_personality_traits",
    "availability": "tutor_availability_config",
    "program_mappings": "tutor_program_mappings",
    "additional_subjects": "tutor_additional_subjects",
    "roles": "user_roles",
}

DEFAULT_REFERENCE_TABLES: dict[str, dict[str, Any]] = {
    "provinces": {
        "table": "provinces",
        "columns": {"id": "id", "name": "region_name", "local_name": "region_local_name"},
    },
    "cities": {
        "table": "location_cities",
        "columns": {
            "id": "id",
            "name": "city_name",
            "local_name": "city_local_name",
            "parent_id": "province_id",
        },
    },
    "banks": {
        "table": "finance_banks_indonesia",
        "columns": {"id": "id", "name": "bank_name", "local_name": "popular_bank_name"},
    },
    "subjects": {
        "table": "programs_unit",
        "columns": {
            "id": "id",
            "name": "program_name",
            "local_name": "program_name_local",
            "alternate_name": "program_name_short",
        },
    },
}


class ConfigError(ImportFatalError):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ReferenceTableConfig:
    table: str
    columns: dict[str, str]  # id / name / local_name / parent_id / alternate_name -> column
    where: str | None = None  # optional SQL filter, e.g. "is_active"


@dataclass(frozen=True)
class ReferenceSourceConfig:
    directory: str | None = None  # when set, reference data is read from files instead of the DB
    tables: dict[ReferenceKind, ReferenceTableConfig] = field(default_factory=dict)


@dataclass(frozen=True)
class MatchingConfig:
    reject_floor: int = 50  # below: unmatched
    location_confidence: int = 90  # below: low-confidence warning (province / city)
    bank_confidence: int = 90
    subject_confidence: int = 75


@dataclass(frozen=True)
class PersistenceConfig:
    batch_timeout_seconds: float | None = 600.0
    statement_timeout_ms: int | None = 30000
    max_code_attempts: int = 5
    tutor_role_name: str = "tutor"
    default_status: str = "registration"


@dataclass(frozen=True)
class ImportConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    reference: ReferenceSourceConfig = field(default_factory=ReferenceSourceConfig)
    tables: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_TABLES))
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    error_log_dir: str = "logs"
    timezone: str = "UTC"


def _validate_config_schema(data: Mapping[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: schema file missing / not JSON, or the data violates it.
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path)
        prefix = f"{where}: " if where else ""
        raise ConfigError(f"config validation failed: {prefix}{e.message}") from e


def _reference_tables(raw: Mapping[str, Any]) -> dict[ReferenceKind, ReferenceTableConfig]:
    merged: dict[ReferenceKind, ReferenceTableConfig] = {}
    for kind in ReferenceKind:
        base = DEFAULT_REFERENCE_TABLES[kind.value]
        override = raw.get(kind.value) or {}
        columns = {**base["columns"], **(override.get("columns") or {})}
        merged[kind] = ReferenceTableConfig(
            table=override.get("table", base["table"]),
            columns=columns,
            where=override.get("where"),
        )
    return merged


def config_from_dict(data: Mapping[str, Any]) -> ImportConfig:
    """Build ImportConfig from already validated raw data, applying defaults."""
    db_raw = data.get("database") or {}
    ref_raw = data.get("reference") or {}
    match_raw = data.get("matching") or {}
    pers_raw = data.get("persistence") or {}

    unknown_tables = set(data.get("tables") or {}) - set(DEFAULT_TABLES)
    if unknown_tables:
        raise ConfigError(f"unknown logical table(s): {', '.join(sorted(unknown_tables))}")

    defaults_p = PersistenceConfig()
    return ImportConfig(
        database=DatabaseConfig(
            host=db_raw.get("host"),
            port=db_raw.get("port"),
            user=db_raw.get("user"),
            password=db_raw.get("password"),
            database=db_raw.get("database"),
            dsn=db_raw.get("dsn"),
        ),
        reference=ReferenceSourceConfig(
            directory=ref_raw.get("directory"),
            tables=_reference_tables(ref_raw.get("tables") or {}),
        ),
        tables={**DEFAULT_TABLES, **(data.get("tables") or {})},
        matching=MatchingConfig(**match_raw),
        persistence=PersistenceConfig(
            batch_timeout_seconds=pers_raw.get(
                "batch_timeout_seconds", defaults_p.batch_timeout_seconds
            ),
            statement_timeout_ms=pers_raw.get(
                "statement_timeout_ms", defaults_p.statement_timeout_ms
            ),
            max_code_attempts=pers_raw.get("max_code_attempts", defaults_p.max_code_attempts),
            tutor_role_name=pers_raw.get("tutor_role_name", defaults_p.tutor_role_name),
            default_status=pers_raw.get("default_status", defaults_p.default_status),
        ),
        error_log_dir=data.get("error_log_dir", "logs"),
        timezone=data.get("timezone", "UTC"),
    )


def load_config(path: Path) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")

    _validate_config_schema(data)
    return config_from_dict(data)
