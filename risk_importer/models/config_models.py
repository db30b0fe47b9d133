from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Config dataclasses for the bulk risk importer.

These are the typed view of config/importer.yml. The loader in
risk_importer/config/loader.py builds them after schema validation; constructing
ImporterConfig() directly gives the documented defaults.
"""

__all__ = [
    "DatabaseConfig",
    "ImporterConfig",
]

DEFAULT_MAX_FILE_SIZE_MB = 10
DEFAULT_PREVIEW_ROW_COUNT = 5


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection fallback.

    Environment variables (DATABASE_URL / PGDSN / PGHOST ...) take precedence.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImporterConfig:
    """Runtime settings consumed by the decode / validate / import steps."""
    max_file_size_mb: float = DEFAULT_MAX_FILE_SIZE_MB
    default_risk_type: str = "project"
    default_duplicate_action: str = "skip"  # applied by callers to rows flagged as duplicates
    auto_calculate_risk_level: bool = True
    preview_row_count: int = DEFAULT_PREVIEW_ROW_COUNT
    error_log_dir: str = "./logs"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * 1024 * 1024)

    def to_public_dict(self) -> dict[str, Any]:
        """Settings a client UI needs; connection details are left out."""
        return {
            "maxFileSizeMB": self.max_file_size_mb,
            "defaultRiskType": self.default_risk_type,
            "defaultDuplicateAction": self.default_duplicate_action,
            "autoCalculateRiskLevel": self.auto_calculate_risk_level,
            "previewRowCount": self.preview_row_count,
        }
