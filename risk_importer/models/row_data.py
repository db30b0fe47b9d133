from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""ParsedRow model: one decoded spreadsheet row before mapping.

row_index is the row number in the source sheet (header = 1, first data row = 2),
so messages shown to users point at the line they see in their spreadsheet.
"""

__all__ = [
    "ParsedRow",
]


@dataclass(frozen=True)
class ParsedRow:
    """Logical representation of a single data row after decoding."""
    row_index: int  # sheet row number, header row excluded from the sequence
    data: dict[str, str] = field(default_factory=dict)  # header -> trimmed cell text

    def is_blank(self) -> bool:
        return all(v == "" for v in self.data.values())

    def to_dict(self) -> dict[str, Any]:
        return {"rowIndex": self.row_index, "data": dict(self.data)}

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> ParsedRow:
        data = raw.get("data") or {}
        return ParsedRow(
            row_index=int(raw["rowIndex"]),
            data={str(k): "" if v is None else str(v) for k, v in data.items()},
        )
