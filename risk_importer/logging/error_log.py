from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord

"""Per-import failure log.

One ImportErrorLog belongs to one import call: tenant and risk type are bound
at construction, callers only report the row, the error type and the message.
Records stay in memory until flush(), which appends JSON Lines to
<logs_dir>/errors-YYYYMMDD-HHMMSS.log (UTC).

row = -1 marks failures of the whole request (the transaction was rolled back).
"""

__all__ = [
    "ROW_WRITE_ERROR",
    "VENDOR_NOT_SELECTED",
    "TRANSACTION_ERROR",
    "REQUEST_ROW",
    "ImportErrorLog",
]

ROW_WRITE_ERROR = "ROW_WRITE_ERROR"
VENDOR_NOT_SELECTED = "VENDOR_NOT_SELECTED"
TRANSACTION_ERROR = "TRANSACTION_ERROR"
REQUEST_ROW = -1

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ImportErrorLog:
    """Error records of one import, scoped to a tenant and a risk type."""

    def __init__(
        self,
        logs_dir: Path | str | None = None,
        *,
        tenant: str = "",
        risk_type: str = "project",
    ) -> None:
        self.tenant = tenant
        self.risk_type = risk_type
        self._logs_dir = Path(logs_dir) if logs_dir is not None else LOGS_DIR
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        # fixed on first use so repeated flushes land in the same file
        if self._file_path is None:
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._records)

    def record(self, row: int, error_type: str, message: str) -> ErrorRecord:
        rec = ErrorRecord.create(self.tenant, self.risk_type, row, error_type, message)
        self._records.append(rec)
        return rec

    def request_failed(self, message: str) -> ErrorRecord:
        return self.record(REQUEST_ROW, TRANSACTION_ERROR, message)

    def counts(self) -> dict[str, int]:
        """error_type -> number of pending records."""
        return dict(Counter(r.error_type for r in self._records))

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Append pending records to the log file and clear them.

        Returns None without touching the filesystem when nothing is pending.
        """
        if not self._records:
            return None
        self._logs_dir.mkdir(parents=True, exist_ok=True)
        fp = self.file_path
        payload = "".join(r.to_json_line() + "\n" for r in self._records)
        with fp.open("a", encoding="utf-8") as f:
            f.write(payload)
        self._records.clear()
        return fp
