from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_MAX_FILE_SIZE_MB,
    DEFAULT_PREVIEW_ROW_COUNT,
    DatabaseConfig,
    ImporterConfig,
)

"""Config loader.

Responsibilities:
- Load YAML config (default config/importer.yml)
- Validate against contracts/config.schema.json
- Apply defaults for every optional key
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
]

DEFAULT_CONFIG_PATH = Path("config/importer.yml")

# risk_importer/config/loader.py -> risk_importer/contracts
SCHEMA_PATH = Path(__file__).resolve().parent.parent / "contracts" / "config.schema.json"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or the
            config data fails schema validation (unknown keys, wrong types,
            out-of-range values).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path) -> ImporterConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config validation failed: top level must be a mapping, got {type(data).__name__}")

    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return ImporterConfig(
        max_file_size_mb=data.get("max_file_size_mb", DEFAULT_MAX_FILE_SIZE_MB),
        default_risk_type=data.get("default_risk_type", "project"),
        default_duplicate_action=data.get("default_duplicate_action", "skip"),
        auto_calculate_risk_level=data.get("auto_calculate_risk_level", True),
        preview_row_count=data.get("preview_row_count", DEFAULT_PREVIEW_ROW_COUNT),
        error_log_dir=data.get("error_log_dir", "./logs"),
        database=db,
    )
