from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import psycopg2

from ..models.mapped_row import ProjectRiskData, VendorRiskData

"""Parameterized SQL for the tenant's risk tables.

The cursor handed to RiskStore is already scoped to the tenant schema
(see db/tenant.py), so every statement uses bare table names.

Error classification:
- psycopg2.OperationalError / InterfaceError propagate untouched. These are
  infrastructure failures and abort the whole import.
- Every other psycopg2.Error is wrapped in RowWriteError. The importer turns
  it into an error outcome for that row and keeps going.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "RowWriteError",
    "ExistingRisk",
    "RiskStore",
    "PROJECT_RISK_DEFAULTS",
]


class RowWriteError(Exception):
    pass


@dataclass(frozen=True)
class ExistingRisk:
    id: int
    name: str | None  # risk_name for project risks, risk_description for vendor risks


# Column values used when a created project risk does not supply them.
# "now" placeholders (deadline, date_of_assessment) are filled with NOW() in SQL.
PROJECT_RISK_DEFAULTS: dict[str, Any] = {
    "ai_lifecycle_phase": "Problem definition & planning",
    "risk_category": "Operational risk",
    "impact": "To be assessed",
    "assessment_mapping": "",
    "controls_mapping": "",
    "likelihood": "Possible",
    "severity": "Moderate",
    "risk_level_autocalculated": "Medium risk",
    "review_notes": None,
    "mitigation_status": "Not Started",
    "current_risk_level": "Medium risk",
    "mitigation_plan": "To be defined",
    "implementation_strategy": "",
    "mitigation_evidence_document": "",
    "likelihood_mitigation": "Possible",
    "risk_severity": "Moderate",
    "final_risk_level": "",
    "approval_status": "Pending",
}

_PROJECT_INSERT_SQL = """
INSERT INTO risks (
    risk_name, ai_lifecycle_phase, risk_description,
    risk_category, impact, assessment_mapping, controls_mapping, likelihood,
    severity, risk_level_autocalculated, review_notes, mitigation_status,
    current_risk_level, deadline, mitigation_plan, implementation_strategy,
    mitigation_evidence_document, likelihood_mitigation, risk_severity,
    final_risk_level, approval_status, date_of_assessment
) VALUES (
    %(risk_name)s, %(ai_lifecycle_phase)s, %(risk_description)s,
    %(risk_category)s, %(impact)s, %(assessment_mapping)s, %(controls_mapping)s, %(likelihood)s,
    %(severity)s, %(risk_level_autocalculated)s, %(review_notes)s, %(mitigation_status)s,
    %(current_risk_level)s, COALESCE(%(deadline)s::timestamptz, NOW()), %(mitigation_plan)s,
    %(implementation_strategy)s, %(mitigation_evidence_document)s, %(likelihood_mitigation)s,
    %(risk_severity)s, %(final_risk_level)s, %(approval_status)s, NOW()
) RETURNING id
"""

_PROJECT_UPDATE_SQL = """
UPDATE risks SET
    ai_lifecycle_phase = COALESCE(%(ai_lifecycle_phase)s, ai_lifecycle_phase),
    risk_description = COALESCE(%(risk_description)s, risk_description),
    risk_category = COALESCE(%(risk_category)s, risk_category),
    impact = COALESCE(%(impact)s, impact),
    likelihood = COALESCE(%(likelihood)s, likelihood),
    severity = COALESCE(%(severity)s, severity),
    risk_level_autocalculated = COALESCE(%(risk_level_autocalculated)s, risk_level_autocalculated),
    review_notes = COALESCE(%(review_notes)s, review_notes),
    mitigation_status = COALESCE(%(mitigation_status)s, mitigation_status),
    current_risk_level = COALESCE(%(current_risk_level)s, current_risk_level),
    deadline = COALESCE(%(deadline)s::timestamptz, deadline),
    mitigation_plan = COALESCE(%(mitigation_plan)s, mitigation_plan),
    updated_at = NOW()
WHERE id = %(id)s
"""

_VENDOR_INSERT_SQL = """
INSERT INTO vendorrisks (
    vendor_id, risk_description, impact_description,
    likelihood, risk_severity, action_plan, action_owner, risk_level
) VALUES (
    %(vendor_id)s, %(risk_description)s, %(impact_description)s,
    %(likelihood)s, %(risk_severity)s, %(action_plan)s, %(action_owner)s, %(risk_level)s
) RETURNING id
"""

_VENDOR_UPDATE_SQL = """
UPDATE vendorrisks SET
    impact_description = COALESCE(%(impact_description)s, impact_description),
    likelihood = COALESCE(%(likelihood)s, likelihood),
    risk_severity = COALESCE(%(risk_severity)s, risk_severity),
    action_plan = COALESCE(%(action_plan)s, action_plan),
    action_owner = COALESCE(%(action_owner)s, action_owner),
    risk_level = COALESCE(%(risk_level)s, risk_level),
    updated_at = NOW()
WHERE id = %(id)s
"""


def _category_array(value: str | None) -> list[str] | None:
    # risks.risk_category is a text[] column; psycopg2 adapts lists to ARRAY
    return [value] if value else None


class RiskStore:
    """Thin data access object over a tenant-scoped psycopg2 cursor."""

    def __init__(self, cursor: Any) -> None:
        self.cursor = cursor
        self._savepoint_seq = 0

    def _execute(self, sql: Any, params: Sequence[Any] | dict[str, Any] | None = None) -> None:
        try:
            self.cursor.execute(sql, params)
        except (psycopg2.OperationalError, psycopg2.InterfaceError):
            raise
        except psycopg2.Error as e:
            raise RowWriteError(str(e).strip()) from e

    def _fetch_id(self) -> int:
        row = self.cursor.fetchone()
        if row is None:
            raise RowWriteError("INSERT returned no id")
        return row[0]

    # -- lookups ---------------------------------------------------------

    def find_project_risk(self, risk_name: str) -> ExistingRisk | None:
        self._execute(
            "SELECT id, risk_name FROM risks WHERE risk_name = %s AND is_deleted = false ORDER BY id LIMIT 1",
            (risk_name,),
        )
        row = self.cursor.fetchone()
        return ExistingRisk(id=row[0], name=row[1]) if row else None

    def find_vendor_risk(self, risk_description: str, vendor_id: int | None = None) -> ExistingRisk | None:
        if vendor_id is None:
            self._execute(
                "SELECT id, risk_description FROM vendorrisks"
                " WHERE risk_description = %s AND is_deleted = false ORDER BY id LIMIT 1",
                (risk_description,),
            )
        else:
            self._execute(
                "SELECT id, risk_description FROM vendorrisks"
                " WHERE risk_description = %s AND vendor_id = %s AND is_deleted = false ORDER BY id LIMIT 1",
                (risk_description, vendor_id),
            )
        row = self.cursor.fetchone()
        return ExistingRisk(id=row[0], name=row[1]) if row else None

    # -- writes ----------------------------------------------------------

    def insert_project_risk(self, data: ProjectRiskData) -> int:
        params = dict(PROJECT_RISK_DEFAULTS)
        supplied = {
            "risk_name": data.risk_name,
            "risk_description": data.risk_description,
            "ai_lifecycle_phase": data.ai_lifecycle_phase,
            "risk_category": data.risk_category,
            "impact": data.impact,
            "likelihood": data.likelihood,
            "severity": data.severity,
            "risk_level_autocalculated": data.risk_level_autocalculated,
            "review_notes": data.review_notes,
            "mitigation_status": data.mitigation_status,
            "current_risk_level": data.current_risk_level,
            "mitigation_plan": data.mitigation_plan,
        }
        params.update({k: v for k, v in supplied.items() if v is not None})
        params["risk_category"] = _category_array(params["risk_category"])
        params["deadline"] = data.deadline
        self._execute(_PROJECT_INSERT_SQL, params)
        return self._fetch_id()

    def update_project_risk(self, risk_id: int, data: ProjectRiskData) -> None:
        self._execute(
            _PROJECT_UPDATE_SQL,
            {
                "id": risk_id,
                "ai_lifecycle_phase": data.ai_lifecycle_phase,
                "risk_description": data.risk_description,
                "risk_category": _category_array(data.risk_category),
                "impact": data.impact,
                "likelihood": data.likelihood,
                "severity": data.severity,
                "risk_level_autocalculated": data.risk_level_autocalculated,
                "review_notes": data.review_notes,
                "mitigation_status": data.mitigation_status,
                "current_risk_level": data.current_risk_level,
                "deadline": data.deadline,
                "mitigation_plan": data.mitigation_plan,
            },
        )

    def insert_vendor_risk(self, vendor_id: int, data: VendorRiskData) -> int:
        self._execute(
            _VENDOR_INSERT_SQL,
            {
                "vendor_id": vendor_id,
                "risk_description": data.risk_description,
                "impact_description": data.impact_description,
                "likelihood": data.likelihood,
                "risk_severity": data.risk_severity,
                "action_plan": data.action_plan,
                "action_owner": data.action_owner,
                "risk_level": data.risk_level,
            },
        )
        return self._fetch_id()

    def update_vendor_risk(self, risk_id: int, data: VendorRiskData) -> None:
        self._execute(
            _VENDOR_UPDATE_SQL,
            {
                "id": risk_id,
                "impact_description": data.impact_description,
                "likelihood": data.likelihood,
                "risk_severity": data.risk_severity,
                "action_plan": data.action_plan,
                "action_owner": data.action_owner,
                "risk_level": data.risk_level,
            },
        )

    def link_project(self, project_id: int, risk_id: int) -> None:
        self._execute(
            "INSERT INTO projects_risks (project_id, risk_id) VALUES (%s, %s)",
            (project_id, risk_id),
        )

    def link_framework(self, framework_id: int, risk_id: int) -> None:
        self._execute(
            "INSERT INTO frameworks_risks (framework_id, risk_id) VALUES (%s, %s)",
            (framework_id, risk_id),
        )

    # -- row isolation ---------------------------------------------------

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        """Run one row's statements inside a SAVEPOINT.

        A RowWriteError rolls back to the savepoint so the surrounding
        transaction stays usable, then re-raises for the caller to record.
        """
        self._savepoint_seq += 1
        name = f"risk_row_{self._savepoint_seq}"
        self.cursor.execute(f"SAVEPOINT {name}")
        try:
            yield
        except RowWriteError:
            self.cursor.execute(f"ROLLBACK TO SAVEPOINT {name}")
            raise
        self.cursor.execute(f"RELEASE SAVEPOINT {name}")
