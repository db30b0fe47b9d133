from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from ..db.risk_store import RiskStore, RowWriteError
from ..logging.error_log import ROW_WRITE_ERROR, VENDOR_NOT_SELECTED, ImportErrorLog
from ..models.field_schema import RiskType
from ..models.import_result import (
    ImportAction,
    ImportOutcome,
    ImportResult,
    LinkTarget,
    LinkType,
    OutcomeAction,
)
from ..models.mapped_row import MappedRow, ProjectRiskData, VendorRiskData
from .progress import ImportProgressTracker

"""Row application for one import call.

The caller owns the transaction (see db/tenant.py); this module walks the rows
in input order and decides, per row, between error / skip / overwrite / create.

Row failures never abort the batch:
- invalid rows and vendor rows without a vendor link are rejected before any
  database access
- RowWriteError raised inside a row's savepoint becomes an ``error`` outcome
Anything else (connection loss, programming errors) propagates to the caller,
which rolls the whole transaction back.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "VENDOR_NOT_SELECTED_MESSAGE",
    "import_rows",
]

VENDOR_NOT_SELECTED_MESSAGE = "Vendor must be selected for vendor risk import"


def _record_error(error_log: ImportErrorLog | None, row_index: int, error_type: str, message: str) -> None:
    if error_log is not None:
        error_log.record(row_index, error_type, message)


def _overwrite(store: RiskStore, row: MappedRow, link_to: LinkTarget | None) -> ImportOutcome | None:
    """Update the matching record. Returns None when nothing matches."""
    data = row.data
    if isinstance(data, ProjectRiskData):
        existing = store.find_project_risk(data.risk_name) if data.risk_name else None
        if existing is None:
            return None
        store.update_project_risk(existing.id, data)
    else:
        vendor_id = link_to.id if link_to is not None else None
        existing = store.find_vendor_risk(data.risk_description, vendor_id) if data.risk_description else None
        if existing is None:
            return None
        store.update_vendor_risk(existing.id, data)
    return ImportOutcome(row.row_index, True, OutcomeAction.OVERWRITTEN, record_id=existing.id)


def _create(store: RiskStore, row: MappedRow, link_to: LinkTarget | None) -> ImportOutcome:
    data = row.data
    if isinstance(data, VendorRiskData):
        if link_to is None or link_to.type is not LinkType.VENDOR:
            raise RowWriteError(VENDOR_NOT_SELECTED_MESSAGE)
        record_id = store.insert_vendor_risk(link_to.id, data)
    else:
        record_id = store.insert_project_risk(data)
        if link_to is not None:
            if link_to.type is LinkType.PROJECT:
                store.link_project(link_to.id, record_id)
            elif link_to.type is LinkType.FRAMEWORK:
                store.link_framework(link_to.id, record_id)
    return ImportOutcome(row.row_index, True, OutcomeAction.CREATED, record_id=record_id)


def _apply_row(
    store: RiskStore,
    row: MappedRow,
    action: ImportAction,
    link_to: LinkTarget | None,
) -> ImportOutcome:
    with store.savepoint():
        if action is ImportAction.OVERWRITE:
            outcome = _overwrite(store, row, link_to)
            if outcome is not None:
                return outcome
        return _create(store, row, link_to)


def import_rows(
    store: RiskStore,
    rows: Sequence[MappedRow],
    actions: Mapping[int, Any] | None,
    risk_type: Any,
    link_to: LinkTarget | None = None,
    *,
    error_log: ImportErrorLog | None = None,
) -> ImportResult:
    """Apply every row to ``store`` and return the ordered outcomes.

    Args:
        store: Tenant-scoped RiskStore inside an open transaction
        rows: Validated rows, in input order
        actions: rowIndex -> create / overwrite / skip (missing means create)
        risk_type: "project" or "vendor"
        link_to: Optional project / framework / vendor target
        error_log: Receives one record per rejected or failed row

    Returns:
        ImportResult with one outcome per input row
    """
    rt = RiskType.parse(risk_type)
    actions = actions or {}
    vendor_linked = link_to is not None and link_to.type is LinkType.VENDOR
    outcomes: list[ImportOutcome] = []

    with ImportProgressTracker(len(rows)) as progress:
        for row in rows:
            action = ImportAction.parse(actions.get(row.row_index))

            if not row.is_valid:
                outcome = ImportOutcome(row.row_index, False, OutcomeAction.ERROR, error="; ".join(row.errors))
            elif action is ImportAction.SKIP:
                outcome = ImportOutcome(row.row_index, True, OutcomeAction.SKIPPED)
            elif rt is RiskType.VENDOR and not vendor_linked:
                outcome = ImportOutcome(row.row_index, False, OutcomeAction.ERROR, error=VENDOR_NOT_SELECTED_MESSAGE)
                _record_error(error_log, row.row_index, VENDOR_NOT_SELECTED, VENDOR_NOT_SELECTED_MESSAGE)
            else:
                try:
                    outcome = _apply_row(store, row, action, link_to)
                except RowWriteError as e:
                    logger.warning("row %d failed: %s", row.row_index, e)
                    outcome = ImportOutcome(row.row_index, False, OutcomeAction.ERROR, error=str(e))
                    _record_error(error_log, row.row_index, ROW_WRITE_ERROR, str(e))

            outcomes.append(outcome)
            progress.advance(action=outcome.action.value)

    result = ImportResult(results=outcomes)
    summary = result.summary
    logger.info(
        "import risk_type=%s total=%d created=%d overwritten=%d skipped=%d errors=%d",
        rt.value,
        summary.total,
        summary.created,
        summary.overwritten,
        summary.skipped,
        summary.errors,
    )
    return result
