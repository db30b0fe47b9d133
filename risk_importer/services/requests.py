from __future__ import annotations

import base64
import json
import logging
from collections.abc import Callable
from functools import lru_cache, wraps
from pathlib import Path
from typing import Any

import jsonschema
from jsonschema.exceptions import ValidationError

from ..excel.reader import DecodeError, FileParseError
from ..models.import_result import LinkTarget
from ..models.mapped_row import MappedRow
from ..models.row_data import ParsedRow
from .orchestrator import (
    DatabaseUnavailableError,
    ProcessingError,
    RequestError,
    RiskImportService,
    TenantContextError,
)
from .validation import parse_mapping

"""JSON request handlers for the import pipeline.

Each handler takes the decoded request body (a dict with camelCase keys) and
returns an envelope:

    {"success": True, "data": {...}}
    {"success": False, "error": "<message>", "status": 400 | 401 | 500}

Payloads are checked against contracts/requests.schema.json before anything
else runs. Rows travel between steps in their to_dict() form, so a client can
decode, validate, check duplicates and import in separate requests.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "REQUESTS_SCHEMA_PATH",
    "handle_decode",
    "handle_validate",
    "handle_check_duplicates",
    "handle_import",
    "handle_fields",
    "handle_template",
    "handle_config",
]

REQUESTS_SCHEMA_PATH = Path(__file__).resolve().parent.parent / "contracts" / "requests.schema.json"

Envelope = dict[str, Any]


@lru_cache(maxsize=1)
def _schema_defs() -> dict[str, Any]:
    return json.loads(REQUESTS_SCHEMA_PATH.read_text(encoding="utf-8"))["$defs"]


def _check_payload(name: str, payload: Any) -> dict[str, Any]:
    if payload is None:
        payload = {}
    schema = {"$ref": f"#/$defs/{name}", "$defs": _schema_defs()}
    try:
        jsonschema.validate(payload, schema)
    except ValidationError as e:
        raise RequestError(f"Invalid request: {e.message}") from e
    return payload


def _ok(data: Any) -> Envelope:
    return {"success": True, "data": data}


def _fail(message: str, status: int) -> Envelope:
    return {"success": False, "error": message, "status": status}


def _guard(failure_message: str) -> Callable[[Callable[..., Envelope]], Callable[..., Envelope]]:
    """Translate pipeline exceptions into error envelopes.

    Input problems map to 400, missing tenant context to 401 and everything
    else to 500 with ``failure_message`` unless the error carries its own.
    """
    def decorator(fn: Callable[..., Envelope]) -> Callable[..., Envelope]:
        @wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Envelope:
            try:
                return fn(*args, **kwargs)
            except RequestError as e:
                return _fail(str(e), 400)
            except FileParseError as e:
                logger.error("%s: %s", e, e.detail)
                return _fail(str(e), 500)
            except DecodeError as e:
                return _fail(str(e), 400)
            except TenantContextError as e:
                return _fail(str(e), 401)
            except (DatabaseUnavailableError, ProcessingError) as e:
                return _fail(str(e), 500)
            except Exception:
                logger.exception(failure_message)
                return _fail(failure_message, 500)

        return wrapper

    return decorator


def _mapped_rows(payload: dict[str, Any], risk_type: Any) -> list[MappedRow]:
    return [MappedRow.from_dict(raw, risk_type) for raw in payload.get("validatedRows") or []]


@_guard("Failed to parse file")
def handle_decode(service: RiskImportService, payload: dict[str, Any] | None) -> Envelope:
    payload = payload or {}
    if not payload.get("fileContent"):
        raise RequestError("No file content provided")
    if not payload.get("fileName"):
        raise RequestError("File name is required")
    payload = _check_payload("decode", payload)
    decoded = service.decode_base64(payload["fileContent"], payload["fileName"])
    return _ok(decoded.to_dict())


@_guard("Validation failed")
def handle_validate(service: RiskImportService, payload: dict[str, Any] | None) -> Envelope:
    payload = _check_payload("validate", payload)
    rows = [ParsedRow.from_dict(raw) for raw in payload["rows"]]
    mapping = parse_mapping(payload["mapping"])
    result = service.validate(rows, mapping, payload.get("riskType"))
    return _ok(result.to_dict())


@_guard("Duplicate check failed")
def handle_check_duplicates(
    service: RiskImportService,
    payload: dict[str, Any] | None,
    tenant_id: str | None = None,
) -> Envelope:
    payload = _check_payload("checkDuplicates", payload)
    risk_type = service.resolve_risk_type(payload.get("riskType"))
    result = service.check_duplicates(_mapped_rows(payload, risk_type), risk_type, tenant_id)
    return _ok(result.to_dict())


@_guard("Import failed")
def handle_import(
    service: RiskImportService,
    payload: dict[str, Any] | None,
    tenant_id: str | None = None,
) -> Envelope:
    payload = _check_payload("import", payload)
    risk_type = service.resolve_risk_type(payload.get("riskType"))
    actions = {int(k): v for k, v in (payload.get("duplicateActions") or {}).items()}
    try:
        link_to = LinkTarget.from_dict(payload.get("linkTo"))
    except (TypeError, ValueError) as e:
        raise RequestError(f"Invalid request: linkTo.id must be an integer ({e})") from e
    result = service.import_rows(_mapped_rows(payload, risk_type), actions, risk_type, link_to, tenant_id)
    return _ok(result.to_dict())


@_guard("Failed to load fields")
def handle_fields(service: RiskImportService, payload: dict[str, Any] | None = None) -> Envelope:
    payload = _check_payload("fields", payload)
    return _ok(service.fields(payload.get("riskType")))


@_guard("Failed to generate template")
def handle_template(service: RiskImportService, payload: dict[str, Any] | None = None) -> Envelope:
    payload = _check_payload("template", payload)
    template = service.template(payload.get("riskType"), payload.get("format", "csv"))
    return _ok(
        {
            "fileName": template.file_name,
            "contentType": template.content_type,
            "content": base64.b64encode(template.content).decode("ascii"),
        }
    )


@_guard("Failed to load configuration")
def handle_config(service: RiskImportService, payload: dict[str, Any] | None = None) -> Envelope:
    return _ok(service.public_config())
