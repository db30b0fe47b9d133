from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, ClassVar

from .field_schema import RiskType

"""Typed mapped records and the MappedRow produced by the validation engine.

Every attribute of a risk record is optional: a row may map any subset of the
schema, and absent values stay None all the way into the database layer.
"""

__all__ = [
    "ProjectRiskData",
    "VendorRiskData",
    "RiskData",
    "MappedRow",
    "record_type_for",
]


@dataclass
class ProjectRiskData:
    RISK_TYPE: ClassVar[RiskType] = RiskType.PROJECT

    risk_name: str | None = None
    risk_description: str | None = None
    ai_lifecycle_phase: str | None = None
    risk_category: str | None = None
    impact: str | None = None
    likelihood: str | None = None
    severity: str | None = None
    review_notes: str | None = None
    mitigation_status: str | None = None
    current_risk_level: str | None = None
    deadline: str | None = None  # ISO 8601 after validation
    mitigation_plan: str | None = None
    risk_level_autocalculated: str | None = None  # derived, never mapped from a column

    @property
    def natural_key(self) -> str | None:
        return self.risk_name

    @property
    def display_name(self) -> str | None:
        return self.risk_name


@dataclass
class VendorRiskData:
    RISK_TYPE: ClassVar[RiskType] = RiskType.VENDOR

    risk_description: str | None = None
    impact_description: str | None = None
    likelihood: str | None = None
    risk_severity: str | None = None
    action_plan: str | None = None
    action_owner: str | None = None
    risk_level: str | None = None  # derived from likelihood x risk_severity

    @property
    def natural_key(self) -> str | None:
        return self.risk_description

    @property
    def display_name(self) -> str | None:
        return self.risk_description


RiskData = ProjectRiskData | VendorRiskData


def record_type_for(risk_type: Any) -> type[ProjectRiskData] | type[VendorRiskData]:
    if RiskType.parse(risk_type) is RiskType.VENDOR:
        return VendorRiskData
    return ProjectRiskData


def _record_from_dict(risk_type: Any, raw: dict[str, Any]) -> RiskData:
    cls = record_type_for(risk_type)
    known = {f.name for f in fields(cls)}
    values = {k: (None if v in (None, "") else str(v)) for k, v in raw.items() if k in known}
    return cls(**values)


@dataclass
class MappedRow:
    """Result of mapping + validating one ParsedRow."""
    row_index: int
    data: RiskData
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def risk_type(self) -> RiskType:
        return self.data.RISK_TYPE

    def to_dict(self) -> dict[str, Any]:
        return {
            "rowIndex": self.row_index,
            "isValid": self.is_valid,
            "errors": list(self.errors),
            "data": asdict(self.data),
        }

    @staticmethod
    def from_dict(raw: dict[str, Any], risk_type: Any) -> MappedRow:
        """Rebuild a row sent back by a caller between pipeline steps.

        A caller-supplied ``isValid: false`` without messages still marks the
        row invalid.
        """
        errors = [str(e) for e in raw.get("errors") or []]
        if raw.get("isValid") is False and not errors:
            errors = ["Row is not valid"]
        return MappedRow(
            row_index=int(raw["rowIndex"]),
            data=_record_from_dict(risk_type, raw.get("data") or {}),
            errors=errors,
        )
