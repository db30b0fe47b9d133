from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import fields
from datetime import UTC
from typing import Any

import pandas as pd

from ..models.field_schema import FieldDefinition, FieldType, RiskType, schema_for
from ..models.import_result import ValidationResult
from ..models.mapped_row import MappedRow, ProjectRiskData, VendorRiskData, record_type_for
from ..models.risk_matrix import risk_level
from ..models.row_data import ParsedRow

"""Mapping & validation engine.

Per row:
1. apply the column -> field mapping (empty cells become None)
2. required fields
3. enum membership
4. date parsing, rewriting valid values to ISO 8601 UTC
5. optional likelihood x severity auto-calculation

Problems are collected as row messages; nothing in here raises on bad data.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "normalize_date",
    "parse_mapping",
    "auto_mapping",
    "map_row",
    "validate_rows",
]

RELATIVE_DATE_WORDS = frozenset({"now", "today", "tomorrow", "yesterday"})


def normalize_date(value: str) -> str | None:
    """Parse a calendar date/time and return it as ``YYYY-MM-DDTHH:MM:SS.mmmZ``.

    Naive values are taken as UTC. Returns None when the text is not a date,
    including the relative words pandas would resolve against the clock.
    """
    if value.strip().lower() in RELATIVE_DATE_WORDS:
        return None
    try:
        ts = pd.Timestamp(value)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    if ts.tzinfo is None:
        ts = ts.tz_localize(UTC)
    else:
        ts = ts.tz_convert(UTC)
    return ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"


def parse_mapping(entries: Iterable[Mapping[str, Any]]) -> list[tuple[str, str]]:
    """Turn ``[{sourceColumn, targetField}, ...]`` into ordered pairs."""
    pairs: list[tuple[str, str]] = []
    for entry in entries:
        source = entry.get("sourceColumn")
        target = entry.get("targetField")
        if source is None or not target:
            continue
        pairs.append((str(source), str(target)))
    return pairs


def auto_mapping(columns: Sequence[str], risk_type: Any) -> list[tuple[str, str]]:
    """Map headers that spell a field label or key (case-insensitive)."""
    lookup: dict[str, str] = {}
    for f in schema_for(risk_type):
        lookup[f.label.casefold()] = f.field
        lookup[f.field.casefold()] = f.field
    pairs = []
    for column in columns:
        target = lookup.get(column.strip().casefold())
        if target:
            pairs.append((column, target))
    return pairs


def _check_required(schema: Sequence[FieldDefinition], values: dict[str, str | None], errors: list[str]) -> None:
    for f in schema:
        if f.required and not values.get(f.field):
            errors.append(f"{f.label} is required")


def _check_enums(schema: Sequence[FieldDefinition], values: dict[str, str | None], errors: list[str]) -> None:
    for f in schema:
        if f.type is not FieldType.ENUM:
            continue
        value = values.get(f.field)
        if value and f.options and value not in f.options:
            errors.append(f"{f.label} must be one of: {', '.join(f.options)}")


def _check_dates(schema: Sequence[FieldDefinition], values: dict[str, str | None], errors: list[str]) -> None:
    for f in schema:
        if f.type is not FieldType.DATE:
            continue
        value = values.get(f.field)
        if not value:
            continue
        normalized = normalize_date(value)
        if normalized is None:
            errors.append(f"{f.label} must be a valid date")
        else:
            values[f.field] = normalized


def _apply_risk_level(risk_type: RiskType, values: dict[str, str | None]) -> None:
    if risk_type is RiskType.PROJECT:
        level = risk_level(values.get("likelihood"), values.get("severity"))
        if level:
            values["risk_level_autocalculated"] = level
    else:
        level = risk_level(values.get("likelihood"), values.get("risk_severity"))
        if level:
            values["risk_level"] = level


def map_row(
    row: ParsedRow,
    mapping: Sequence[tuple[str, str]],
    risk_type: Any,
    *,
    auto_calculate: bool = True,
) -> MappedRow:
    rt = RiskType.parse(risk_type)
    schema = schema_for(rt)
    field_keys = {f.field for f in schema}

    values: dict[str, str | None] = {}
    for source, target in mapping:
        if target not in field_keys:
            logger.debug("row=%d ignoring mapping to unknown field %r", row.row_index, target)
            continue
        values[target] = row.data.get(source) or None

    errors: list[str] = []
    _check_required(schema, values, errors)
    _check_enums(schema, values, errors)
    _check_dates(schema, values, errors)

    if auto_calculate:
        _apply_risk_level(rt, values)

    record_cls = record_type_for(rt)
    known = {f.name for f in fields(record_cls)}
    record: ProjectRiskData | VendorRiskData = record_cls(**{k: v for k, v in values.items() if k in known})
    return MappedRow(row_index=row.row_index, data=record, errors=errors)


def validate_rows(
    rows: Iterable[ParsedRow],
    mapping: Sequence[tuple[str, str]],
    risk_type: Any,
    *,
    auto_calculate: bool = True,
) -> ValidationResult:
    """Map and validate every row, preserving input order."""
    results = [map_row(r, mapping, risk_type, auto_calculate=auto_calculate) for r in rows]
    result = ValidationResult(results=results)
    summary = result.summary
    logger.info(
        "validated risk_type=%s total=%d valid=%d invalid=%d",
        RiskType.parse(risk_type).value,
        summary.total,
        summary.valid,
        summary.invalid,
    )
    return result
