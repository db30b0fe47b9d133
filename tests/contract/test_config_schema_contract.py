from __future__ import annotations

import json

import jsonschema
import pytest
import yaml
from jsonschema.exceptions import ValidationError

from risk_importer.config.loader import SCHEMA_PATH

"""Config schema contract."""


def _schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def test_config_schema_valid_example(sample_config_yaml: str):
    jsonschema.validate(yaml.safe_load(sample_config_yaml), _schema())


def test_config_schema_accepts_empty_mapping():
    jsonschema.validate({}, _schema())


def test_config_schema_database_dsn_only():
    jsonschema.validate({"database": {"dsn": "postgresql://u:p@db/app"}}, _schema())


@pytest.mark.parametrize(
    "config",
    [
        {"unknown": 1},
        {"database": {"hostname": "x"}},
        {"auto_calculate_risk_level": "yes"},
        {"error_log_dir": ""},
    ],
)
def test_config_schema_rejects(config):
    with pytest.raises(ValidationError):
        jsonschema.validate(config, _schema())
