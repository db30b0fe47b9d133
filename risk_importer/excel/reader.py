from __future__ import annotations

import base64
import binascii
import csv
import io
import logging
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any

import pandas as pd

from ..models.config_models import DEFAULT_MAX_FILE_SIZE_MB, DEFAULT_PREVIEW_ROW_COUNT
from ..models.row_data import ParsedRow

"""Upload decoder: CSV / XLSX / XLS byte buffer -> ordered ParsedRow list.

- Only the first sheet is read (CSV has one implicit sheet).
- First row = header names, stringified and trimmed; blank trailing header
  cells are dropped.
- Every later row becomes a ParsedRow keyed by header; missing trailing cells
  become "", cells beyond the last header are ignored.
- CSV is read as UTF-8 (BOM tolerated); undecodable bytes become U+FFFD.
- Rows whose every cell is empty are dropped, but row numbers keep pointing at
  the original sheet line.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "DecodeError",
    "UnsupportedFormatError",
    "FileTooLargeError",
    "EmptyFileError",
    "FileParseError",
    "DecodedFile",
    "SUPPORTED_EXTENSIONS",
    "decode_file",
    "decode_base64_upload",
]

SUPPORTED_EXTENSIONS = frozenset({".csv", ".xlsx", ".xls"})


class DecodeError(Exception):
    """Base class for upload problems reported before any row is processed."""


class UnsupportedFormatError(DecodeError):
    def __init__(self, extension: str) -> None:
        super().__init__("Unsupported file format. Please upload a CSV or Excel file.")
        self.extension = extension


class FileTooLargeError(DecodeError):
    def __init__(self, size: int, limit_mb: float) -> None:
        limit_text = f"{limit_mb:g}"
        super().__init__(f"File size exceeds {limit_text}MB limit")
        self.size = size
        self.limit_mb = limit_mb


class EmptyFileError(DecodeError):
    def __init__(self, reason: str = "File is empty") -> None:
        super().__init__(reason)


class FileParseError(DecodeError):
    def __init__(self, detail: str) -> None:
        super().__init__("Failed to parse file")
        self.detail = detail


@dataclass(frozen=True)
class DecodedFile:
    file_name: str
    columns: list[str]
    rows: list[ParsedRow]
    preview_size: int = DEFAULT_PREVIEW_ROW_COUNT

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def preview(self) -> list[ParsedRow]:
        return self.rows[: self.preview_size]

    def to_dict(self) -> dict[str, Any]:
        return {
            "columns": list(self.columns),
            "rowCount": self.row_count,
            "preview": [r.to_dict() for r in self.preview],
            "allRows": [r.to_dict() for r in self.rows],
        }


def _cell_text(value: Any) -> str:
    """Stringify a raw cell the way it reads in the spreadsheet, trimmed."""
    if value is None or value is pd.NaT:
        return ""
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return str(value).strip()
    return str(value).strip()


def _read_csv_frame(content: bytes) -> pd.DataFrame:
    # rows may be ragged (trailing commas, extra notes), so no fixed width
    text = content.decode("utf-8-sig", errors="replace")
    records = list(csv.reader(io.StringIO(text, newline="")))
    return pd.DataFrame(records, dtype=object)


def _read_frame(content: bytes, extension: str) -> pd.DataFrame:
    if extension == ".csv":
        return _read_csv_frame(content)
    buffer = io.BytesIO(content)
    engine = "openpyxl" if extension == ".xlsx" else "xlrd"
    # sheet_name=0 -> first sheet only
    return pd.read_excel(buffer, sheet_name=0, header=None, engine=engine)


def decode_file(
    content: bytes,
    file_name: str,
    *,
    max_size_bytes: int | None = None,
    preview_rows: int = DEFAULT_PREVIEW_ROW_COUNT,
) -> DecodedFile:
    """Decode an uploaded spreadsheet.

    Parameters
    ----------
    content: raw file bytes
    file_name: declared name, only its extension is used
    max_size_bytes: upload limit (None -> 10 MiB)
    preview_rows: size of the preview slice reported alongside all rows

    Raises
    ------
    UnsupportedFormatError, FileTooLargeError, EmptyFileError, FileParseError
    """
    extension = PurePath(file_name or "").suffix.lower()
    if extension not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormatError(extension)

    limit = max_size_bytes if max_size_bytes is not None else DEFAULT_MAX_FILE_SIZE_MB * 1024 * 1024
    if len(content) > limit:
        raise FileTooLargeError(len(content), limit / (1024 * 1024))

    if not content:
        raise EmptyFileError()

    try:
        df = _read_frame(content, extension)
    except Exception as e:  # openpyxl / xlrd / csv parser failures all surface here
        logger.warning("failed to parse %s: %s", file_name, e)
        raise FileParseError(str(e)) from e

    if df.shape[0] == 0:
        raise EmptyFileError()

    columns = [_cell_text(c) for c in df.iloc[0].tolist()]
    while columns and columns[-1] == "":
        columns.pop()
    rows: list[ParsedRow] = []
    for pos, raw in enumerate(df.iloc[1:].itertuples(index=False, name=None), start=1):
        values = list(raw)
        data = {
            header: _cell_text(values[i]) if i < len(values) else ""
            for i, header in enumerate(columns)
        }
        row = ParsedRow(row_index=pos + 1, data=data)  # header occupies sheet row 1
        if row.is_blank():
            continue
        rows.append(row)

    if not rows:
        raise EmptyFileError("File contains no data rows")

    logger.debug("decoded %s columns=%d rows=%d", file_name, len(columns), len(rows))
    return DecodedFile(file_name=file_name, columns=columns, rows=rows, preview_size=preview_rows)


def decode_base64_upload(
    content_b64: str,
    file_name: str,
    *,
    max_size_bytes: int | None = None,
    preview_rows: int = DEFAULT_PREVIEW_ROW_COUNT,
) -> DecodedFile:
    """Decode a base64 upload body, then the spreadsheet inside it."""
    try:
        content = base64.b64decode(content_b64)
    except (binascii.Error, ValueError) as e:
        raise FileParseError(f"invalid base64 content: {e}") from e
    return decode_file(content, file_name, max_size_bytes=max_size_bytes, preview_rows=preview_rows)
