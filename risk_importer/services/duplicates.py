from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from ..db.risk_store import ExistingRisk, RiskStore
from ..models.field_schema import RiskType
from ..models.import_result import DuplicateCheckResult, DuplicateResult
from ..models.mapped_row import MappedRow

"""Duplicate detection against the tenant's stored risks.

Natural keys:
- project: risk_name
- vendor: risk_description (any vendor)
Matching is exact and case-sensitive, soft-deleted rows are ignored and the
lowest id wins. Invalid rows are passed through without a query.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "find_existing",
    "check_duplicates",
]


def find_existing(store: RiskStore, row: MappedRow, risk_type: RiskType) -> ExistingRisk | None:
    key = row.data.natural_key
    if not key:
        return None
    if risk_type is RiskType.PROJECT:
        return store.find_project_risk(key)
    return store.find_vendor_risk(key)


def check_duplicates(store: RiskStore, rows: Iterable[MappedRow], risk_type: Any) -> DuplicateCheckResult:
    """Look up every valid row sequentially, in input order."""
    rt = RiskType.parse(risk_type)
    results: list[DuplicateResult] = []
    for row in rows:
        if not row.is_valid:
            results.append(DuplicateResult(row.row_index, None, None, False, checked=False))
            continue
        existing = find_existing(store, row, rt)
        results.append(
            DuplicateResult(
                row_index=row.row_index,
                existing_record_id=existing.id if existing else None,
                existing_record_name=existing.name if existing else None,
                is_duplicate=existing is not None,
            )
        )
    result = DuplicateCheckResult(duplicates=results)
    summary = result.summary
    logger.info(
        "duplicate check risk_type=%s total=%d duplicates=%d unique=%d",
        rt.value,
        summary.total,
        summary.duplicates,
        summary.unique,
    )
    return result
