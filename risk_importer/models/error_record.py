from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines failure log.

Supports row=-1 as a sentinel for request-level failures (transaction errors,
tenant problems) where no single spreadsheet row is to blame.

The key set is fixed: timestamp, tenant, risk_type, row, error_type, message.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        tenant: Tenant schema the import ran against
        risk_type: "project" or "vendor"
        row: Sheet row number. Use -1 for request-level errors
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Database error message or description
    """
    timestamp: str  # ISO8601 UTC
    tenant: str
    risk_type: str
    row: int  # -1 when not tied to a row
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(tenant: str, risk_type: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            tenant=tenant,
            risk_type=risk_type,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize to one JSON line without extra keys."""
        return json.dumps(asdict(self), ensure_ascii=False)
