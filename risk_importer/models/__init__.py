"""Domain models for the bulk risk importer.

Value objects shared by the decode, validate, duplicate-check and import steps.
All of them are request-scoped; nothing here is persisted directly.
"""

from .config_models import DatabaseConfig, ImporterConfig
from .field_schema import FieldDefinition, FieldType, RiskType, schema_for
from .import_result import (
    DuplicateCheckResult,
    DuplicateResult,
    ImportAction,
    ImportOutcome,
    ImportResult,
    LinkTarget,
    LinkType,
    OutcomeAction,
    ValidationResult,
)
from .mapped_row import MappedRow, ProjectRiskData, VendorRiskData
from .risk_matrix import risk_level
from .row_data import ParsedRow

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImporterConfig",
    # Field schema registry
    "FieldDefinition",
    "FieldType",
    "RiskType",
    "schema_for",
    "risk_level",
    # Row models
    "ParsedRow",
    "MappedRow",
    "ProjectRiskData",
    "VendorRiskData",
    # Results
    "ValidationResult",
    "DuplicateResult",
    "DuplicateCheckResult",
    "ImportAction",
    "ImportOutcome",
    "ImportResult",
    "LinkTarget",
    "LinkType",
    "OutcomeAction",
]
