from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

"""Field schema registry for the bulk risk importer.

Each risk type owns an ordered, immutable list of importable fields. The
project and vendor catalogues use different labels and enum vocabularies and
must not be merged.
"""

__all__ = [
    "FieldType",
    "RiskType",
    "FieldDefinition",
    "PROJECT_RISK_FIELDS",
    "VENDOR_RISK_FIELDS",
    "schema_for",
    "field_catalogue",
]


class FieldType(Enum):
    STRING = "string"
    ENUM = "enum"
    DATE = "date"


class RiskType(Enum):
    """Import category. Unknown or absent values fall back to PROJECT."""
    PROJECT = "project"
    VENDOR = "vendor"

    @classmethod
    def parse(cls, value: Any) -> RiskType:
        if isinstance(value, RiskType):
            return value
        if value == cls.VENDOR.value:
            return cls.VENDOR
        return cls.PROJECT


@dataclass(frozen=True)
class FieldDefinition:
    """One importable attribute of a risk record."""
    field: str  # stable key, also the column name in the risk table
    label: str  # human name used in headers and validation messages
    required: bool
    type: FieldType
    options: tuple[str, ...] = ()  # enum only, order preserved

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "field": self.field,
            "label": self.label,
            "required": self.required,
            "type": self.type.value,
        }
        if self.type is FieldType.ENUM:
            data["options"] = list(self.options)
        return data


def _string(field: str, label: str, required: bool = False) -> FieldDefinition:
    return FieldDefinition(field=field, label=label, required=required, type=FieldType.STRING)


def _enum(field: str, label: str, options: tuple[str, ...]) -> FieldDefinition:
    return FieldDefinition(field=field, label=label, required=False, type=FieldType.ENUM, options=options)


PROJECT_RISK_FIELDS: tuple[FieldDefinition, ...] = (
    _string("risk_name", "Risk name", required=True),
    _string("risk_description", "Risk description", required=True),
    _enum(
        "ai_lifecycle_phase",
        "AI lifecycle phase",
        (
            "Problem definition & planning",
            "Data collection & processing",
            "Model development & training",
            "Model validation & testing",
            "Deployment & integration",
            "Monitoring & maintenance",
            "Decommissioning & retirement",
        ),
    ),
    _enum(
        "risk_category",
        "Risk category",
        (
            "Strategic risk",
            "Operational risk",
            "Compliance risk",
            "Financial risk",
            "Cybersecurity risk",
            "Reputational risk",
            "Legal risk",
            "Technological risk",
            "Third-party/vendor risk",
            "Environmental risk",
            "Human resources risk",
            "Geopolitical risk",
            "Fraud risk",
            "Data privacy risk",
            "Health and safety risk",
        ),
    ),
    _string("impact", "Impact"),
    _enum("likelihood", "Likelihood", ("Rare", "Unlikely", "Possible", "Likely", "Almost Certain")),
    _enum("severity", "Severity", ("Negligible", "Minor", "Moderate", "Major", "Catastrophic")),
    _string("review_notes", "Review notes"),
    _enum(
        "mitigation_status",
        "Mitigation status",
        ("Not Started", "In Progress", "Completed", "On Hold", "Deferred", "Canceled", "Requires review"),
    ),
    _enum(
        "current_risk_level",
        "Current risk level",
        ("Very Low risk", "Low risk", "Medium risk", "High risk", "Very high risk"),
    ),
    FieldDefinition(field="deadline", label="Deadline", required=False, type=FieldType.DATE),
    _string("mitigation_plan", "Mitigation plan"),
)

VENDOR_RISK_FIELDS: tuple[FieldDefinition, ...] = (
    _string("risk_description", "Risk description", required=True),
    _string("impact_description", "Impact description"),
    _enum("likelihood", "Likelihood", ("Very likely", "Likely", "Possible", "Unlikely", "Rare")),
    _enum("risk_severity", "Risk severity", ("Very high", "High", "Moderate", "Low", "Very low")),
    _string("action_plan", "Action plan"),
    _string("action_owner", "Action owner"),
)


def schema_for(risk_type: Any) -> tuple[FieldDefinition, ...]:
    """Return the ordered field definitions for ``risk_type`` (default: project)."""
    if RiskType.parse(risk_type) is RiskType.VENDOR:
        return VENDOR_RISK_FIELDS
    return PROJECT_RISK_FIELDS


def field_catalogue(risk_type: Any) -> dict[str, Any]:
    """Render the field list the way the schema export returns it."""
    rt = RiskType.parse(risk_type)
    return {
        "fields": [f.to_dict() for f in schema_for(rt)],
        "riskType": rt.value,
    }
