from __future__ import annotations

import json
import pathlib

import jsonschema
import pytest

from risk_importer.models.error_record import ErrorRecord

"""Error log JSON Lines contract."""

SCHEMA_PATH = pathlib.Path(__file__).resolve().parents[2] / "risk_importer" / "contracts" / "error_log.schema.json"


def _schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


@pytest.mark.parametrize(
    "row,error_type",
    [(2, "ROW_WRITE_ERROR"), (7, "VENDOR_NOT_SELECTED"), (-1, "TRANSACTION_ERROR")],
)
def test_error_records_match_schema(row, error_type):
    record = json.loads(ErrorRecord.create("acme", "project", row, error_type, "msg").to_json_line())
    jsonschema.validate(record, _schema())


def test_error_log_schema_rejects_extra_key():
    record = json.loads(ErrorRecord.create("acme", "vendor", 2, "ROW_WRITE_ERROR", "m").to_json_line())
    record["extra"] = "not allowed"
    with pytest.raises(jsonschema.exceptions.ValidationError):
        jsonschema.validate(record, _schema())


def test_error_log_schema_rejects_lowercase_error_type():
    record = json.loads(ErrorRecord.create("acme", "vendor", 2, "row_write_error", "m").to_json_line())
    with pytest.raises(jsonschema.exceptions.ValidationError):
        jsonschema.validate(record, _schema())
