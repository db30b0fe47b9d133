from __future__ import annotations

import base64
from contextlib import contextmanager
from unittest.mock import patch

import psycopg2
import pytest

from risk_importer.models.config_models import ImporterConfig
from risk_importer.services.orchestrator import RiskImportService
from risk_importer.services.requests import (
    handle_check_duplicates,
    handle_config,
    handle_decode,
    handle_fields,
    handle_import,
    handle_template,
    handle_validate,
)

"""Request/response envelope contract for the JSON handlers."""

CSV = b"Risk name,Risk description\nServer outage,DB unreachable\n"


@pytest.fixture()
def service(temp_workdir) -> RiskImportService:
    return RiskImportService(ImporterConfig(error_log_dir=str(temp_workdir / "logs")), connection=object())


@pytest.fixture()
def store_transaction(memory_store):
    @contextmanager
    def fake(connection, tenant_id, *, read_only=False):
        yield memory_store

    with patch("risk_importer.services.orchestrator.tenant_transaction", fake):
        yield memory_store


def _b64(content: bytes) -> str:
    return base64.b64encode(content).decode("ascii")


def _validated(service, rows=None, risk_type="project"):
    payload = {
        "rows": rows or [{"rowIndex": 2, "data": {"Risk name": "Server outage", "Risk description": "DB unreachable"}}],
        "mapping": [
            {"sourceColumn": "Risk name", "targetField": "risk_name"},
            {"sourceColumn": "Risk description", "targetField": "risk_description"},
        ],
        "riskType": risk_type,
    }
    return handle_validate(service, payload)["data"]["results"]


# -- decode --------------------------------------------------------------


def test_decode_success_shape(service):
    resp = handle_decode(service, {"fileContent": _b64(CSV), "fileName": "risks.csv"})
    assert resp["success"] is True
    data = resp["data"]
    assert set(data) == {"columns", "rowCount", "preview", "allRows"}
    assert data["columns"] == ["Risk name", "Risk description"]
    assert data["rowCount"] == 1
    assert data["allRows"][0]["rowIndex"] == 2


@pytest.mark.parametrize(
    "payload,message",
    [
        ({}, "No file content provided"),
        ({"fileContent": "", "fileName": "r.csv"}, "No file content provided"),
        ({"fileContent": _b64(CSV)}, "File name is required"),
        ({"fileContent": _b64(CSV), "fileName": "r.docx"}, "Unsupported file format. Please upload a CSV or Excel file."),
        ({"fileContent": _b64(b"Risk name\n"), "fileName": "r.csv"}, "File contains no data rows"),
    ],
)
def test_decode_input_errors_are_400(service, payload, message):
    resp = handle_decode(service, payload)
    assert resp == {"success": False, "error": message, "status": 400}


def test_decode_size_limit_is_400(temp_workdir):
    service = RiskImportService(ImporterConfig(max_file_size_mb=0.00001))
    resp = handle_decode(service, {"fileContent": _b64(CSV * 10), "fileName": "r.csv"})
    assert resp["status"] == 400
    assert resp["error"].startswith("File size exceeds")


def test_decode_parse_failure_is_500(service):
    resp = handle_decode(service, {"fileContent": _b64(b"not a workbook"), "fileName": "r.xlsx"})
    assert resp == {"success": False, "error": "Failed to parse file", "status": 500}


# -- validate ------------------------------------------------------------


def test_validate_shape(service):
    resp = handle_validate(
        service,
        {
            "rows": [
                {"rowIndex": 2, "data": {"Name": "A", "Desc": "B"}},
                {"rowIndex": 3, "data": {"Name": "", "Desc": "B"}},
            ],
            "mapping": [
                {"sourceColumn": "Name", "targetField": "risk_name"},
                {"sourceColumn": "Desc", "targetField": "risk_description"},
            ],
            "riskType": "project",
        },
    )
    assert resp["success"] is True
    assert resp["data"]["summary"] == {"total": 2, "valid": 1, "invalid": 1}
    assert resp["data"]["results"][1]["errors"] == ["Risk name is required"]


def test_validate_rejects_malformed_payload(service):
    resp = handle_validate(service, {"rows": "nope", "mapping": []})
    assert resp["success"] is False
    assert resp["status"] == 400
    assert resp["error"].startswith("Invalid request:")


@pytest.mark.parametrize("risk_type", ["Project", "supplier", "", None])
def test_validate_unknown_risk_type_falls_back_to_project(service, risk_type):
    resp = handle_validate(
        service,
        {
            "rows": [{"rowIndex": 2, "data": {"Name": "A", "Desc": "B"}}],
            "mapping": [
                {"sourceColumn": "Name", "targetField": "risk_name"},
                {"sourceColumn": "Desc", "targetField": "risk_description"},
            ],
            "riskType": risk_type,
        },
    )
    assert resp["success"] is True
    assert resp["data"]["summary"] == {"total": 1, "valid": 1, "invalid": 0}
    assert resp["data"]["results"][0]["data"]["risk_name"] == "A"


def test_fields_unknown_risk_type_falls_back_to_project(service):
    resp = handle_fields(service, {"riskType": "Vendor"})
    assert resp["success"] is True
    assert resp["data"]["riskType"] == "project"


def test_validate_rejects_non_string_risk_type(service):
    resp = handle_validate(service, {"rows": [], "mapping": [], "riskType": 7})
    assert resp["status"] == 400


# -- duplicates / import ---------------------------------------------------


def test_check_duplicates_requires_tenant(service):
    resp = handle_check_duplicates(service, {"validatedRows": [], "riskType": "project"}, None)
    assert resp == {"success": False, "error": "Unauthorized - tenant not found", "status": 401}


def test_check_duplicates_without_database():
    resp = handle_check_duplicates(RiskImportService(), {"validatedRows": []}, "acme")
    assert resp == {"success": False, "error": "Database not available", "status": 500}


def test_check_duplicates_shape(service, store_transaction):
    store_transaction.seed_project("Server outage")
    rows = _validated(service)
    resp = handle_check_duplicates(service, {"validatedRows": rows, "riskType": "project"}, "acme")
    assert resp["success"] is True
    assert resp["data"]["summary"] == {"total": 1, "duplicates": 1, "unique": 0}
    assert resp["data"]["duplicates"][0]["existingRecordName"] == "Server outage"


def test_import_shape_and_round_trip(service, store_transaction):
    rows = _validated(service)
    resp = handle_import(service, {"validatedRows": rows, "duplicateActions": {}, "riskType": "project"}, "acme")
    assert resp["success"] is True
    assert resp["data"]["summary"] == {
        "total": 1,
        "success": 1,
        "created": 1,
        "overwritten": 0,
        "skipped": 0,
        "errors": 0,
    }
    record_id = resp["data"]["results"][0]["recordId"]
    assert record_id is not None

    dup = handle_check_duplicates(service, {"validatedRows": rows, "riskType": "project"}, "acme")
    assert dup["data"]["duplicates"][0]["isDuplicate"] is True
    assert dup["data"]["duplicates"][0]["existingRecordId"] == record_id


def test_import_duplicate_actions_keys_are_row_indexes(service, store_transaction):
    store_transaction.seed_project("Server outage")
    rows = _validated(service)
    resp = handle_import(service, {"validatedRows": rows, "duplicateActions": {"2": "skip"}}, "acme")
    assert resp["data"]["results"][0]["action"] == "skipped"
    assert store_transaction.write_calls == []


def test_import_rejects_bad_action_keys(service, store_transaction):
    resp = handle_import(service, {"validatedRows": [], "duplicateActions": {"second": "skip"}}, "acme")
    assert resp["status"] == 400


def test_import_invalid_row_sent_back_by_client(service, store_transaction):
    payload = {
        "validatedRows": [{"rowIndex": 2, "isValid": False, "errors": ["Risk name is required"], "data": {}}],
        "riskType": "project",
    }
    resp = handle_import(service, payload, "acme")
    outcome = resp["data"]["results"][0]
    assert outcome == {
        "rowIndex": 2,
        "success": False,
        "action": "error",
        "recordId": None,
        "error": "Risk name is required",
    }
    assert store_transaction.calls == []


def test_vendor_import_with_link(service, store_transaction):
    rows = _validated(
        service,
        rows=[{"rowIndex": 2, "data": {"Risk name": "ignored", "Risk description": "Vendor breach"}}],
        risk_type="vendor",
    )
    resp = handle_import(
        service,
        {"validatedRows": rows, "riskType": "vendor", "linkTo": {"type": "vendor", "id": 12}},
        "acme",
    )
    assert resp["data"]["summary"]["created"] == 1
    (stored,) = store_transaction.vendor_risks.values()
    assert stored["vendor_id"] == 12


def test_import_transaction_failure_is_500(service, store_transaction):
    store_transaction.fail_with = psycopg2.OperationalError
    rows = _validated(service)
    resp = handle_import(service, {"validatedRows": rows}, "acme")
    assert resp["success"] is False
    assert resp["status"] == 500
    assert resp["error"].startswith("Import failed: ")


# -- schema export / config -------------------------------------------------


def test_fields_and_template(service):
    fields = handle_fields(service, {"riskType": "vendor"})
    assert fields["data"]["riskType"] == "vendor"
    tpl = handle_template(service, {"riskType": "project", "format": "csv"})
    assert tpl["data"]["fileName"] == "risk-import-template-project.csv"
    assert tpl["data"]["contentType"] == "text/csv"
    assert base64.b64decode(tpl["data"]["content"]).startswith(b"Risk name,Risk description")


def test_template_rejects_unknown_format(service):
    assert handle_template(service, {"format": "pdf"})["status"] == 400


def test_config_shape(service):
    resp = handle_config(service)
    assert resp["success"] is True
    assert set(resp["data"]) == {
        "maxFileSizeMB",
        "defaultRiskType",
        "defaultDuplicateAction",
        "autoCalculateRiskLevel",
        "previewRowCount",
    }
