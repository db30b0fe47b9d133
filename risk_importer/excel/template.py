from __future__ import annotations

import io
from dataclasses import dataclass
from datetime import date
from typing import Any

import pandas as pd

from ..models.field_schema import FieldDefinition, FieldType, RiskType, schema_for

"""Blank import template rendering (CSV / XLSX).

Row 1 holds the field labels, row 2 one example row:
- required fields: "Required: <label>"
- enum fields: first option
- date fields: today's date (YYYY-MM-DD)
- everything else blank
"""

__all__ = [
    "TemplateFile",
    "TEMPLATE_SHEET_NAME",
    "template_rows",
    "render_template",
]

TEMPLATE_SHEET_NAME = "Risks"

CONTENT_TYPES = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


@dataclass(frozen=True)
class TemplateFile:
    content: bytes
    content_type: str
    file_name: str


def _example_value(f: FieldDefinition, today: date) -> str:
    if f.required:
        return f"Required: {f.label}"
    if f.type is FieldType.ENUM and f.options:
        return f.options[0]
    if f.type is FieldType.DATE:
        return today.isoformat()
    return ""


def template_rows(risk_type: Any, today: date | None = None) -> list[list[str]]:
    fields = schema_for(risk_type)
    day = today or date.today()
    return [
        [f.label for f in fields],
        [_example_value(f, day) for f in fields],
    ]


def render_template(risk_type: Any, fmt: str = "csv", today: date | None = None) -> TemplateFile:
    """Render the template; any format other than "xlsx" yields CSV."""
    rt = RiskType.parse(risk_type)
    fmt = "xlsx" if fmt == "xlsx" else "csv"
    df = pd.DataFrame(template_rows(rt, today))
    buffer = io.BytesIO()
    if fmt == "xlsx":
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name=TEMPLATE_SHEET_NAME, header=False, index=False)
    else:
        buffer.write(df.to_csv(header=False, index=False).encode("utf-8"))
    return TemplateFile(
        content=buffer.getvalue(),
        content_type=CONTENT_TYPES[fmt],
        file_name=f"risk-import-template-{rt.value}.{fmt}",
    )
