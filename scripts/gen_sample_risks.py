#!/usr/bin/env python3
"""Sample risk sheet generator.

Writes a CSV or XLSX file whose header row uses the field labels of the chosen
risk type, followed by synthetic rows. A fraction of rows can be made invalid
(missing required value, bad enum option, bad date) to exercise the
validation report, and a fraction can repeat earlier natural keys so the
duplicate check has something to find.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from risk_importer.models.field_schema import FieldType, RiskType, schema_for


def generate_risks(
    rows: int,
    risk_type: RiskType,
    invalid_ratio: float = 0.0,
    duplicate_ratio: float = 0.0,
    seed: int = 42,
) -> pd.DataFrame:
    """Generate a DataFrame keyed by field label.

    Args:
        rows: Number of data rows
        risk_type: Which field schema to follow
        invalid_ratio: Share of rows carrying one validation error
        duplicate_ratio: Share of rows reusing an earlier natural key
        seed: Random seed for reproducible data

    Returns:
        DataFrame with one column per field label
    """
    rng = np.random.default_rng(seed)
    fields = schema_for(risk_type)
    key_field = "risk_name" if risk_type is RiskType.PROJECT else "risk_description"

    data: dict[str, list[Any]] = {}
    for f in fields:
        if f.type is FieldType.ENUM:
            data[f.label] = rng.choice(list(f.options), rows).tolist()
        elif f.type is FieldType.DATE:
            days = rng.integers(0, 365, rows)
            data[f.label] = [
                (pd.Timestamp("2025-01-01") + pd.Timedelta(days=int(d))).strftime("%Y-%m-%d") for d in days
            ]
        elif f.field == key_field:
            data[f.label] = [f"Sample risk {i + 1:05d}" for i in range(rows)]
        else:
            data[f.label] = [f"{f.label} for sample row {i + 1}" for i in range(rows)]

    df = pd.DataFrame(data)
    key_label = next(f.label for f in fields if f.field == key_field)

    n_dup = int(rows * duplicate_ratio)
    if n_dup and rows > 1:
        targets = rng.choice(np.arange(1, rows), size=min(n_dup, rows - 1), replace=False)
        for t in targets:
            df.at[int(t), key_label] = df.at[int(rng.integers(0, t)), key_label]

    n_bad = int(rows * invalid_ratio)
    if n_bad:
        enum_labels = [f.label for f in fields if f.type is FieldType.ENUM]
        date_labels = [f.label for f in fields if f.type is FieldType.DATE]
        for i, t in enumerate(rng.choice(rows, size=min(n_bad, rows), replace=False)):
            kind = i % 3
            if kind == 0:
                df.at[int(t), key_label] = ""
            elif kind == 1 and enum_labels:
                df.at[int(t), enum_labels[0]] = "Not an option"
            elif date_labels:
                df.at[int(t), date_labels[0]] = "not-a-date"
            else:
                df.at[int(t), key_label] = ""
    return df


def write_sheet(df: pd.DataFrame, output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if output_path.suffix.lower() == ".xlsx":
        with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name="Risks", index=False)
    else:
        df.to_csv(output_path, index=False)
    print(f"Created {output_path} rows={len(df)} columns={len(df.columns)}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate sample risk import files")
    parser.add_argument("output", type=Path, help="Output file (.csv or .xlsx)")
    parser.add_argument("--risk-type", choices=[rt.value for rt in RiskType], default="project")
    parser.add_argument("--rows", type=int, default=1_000, help="Number of data rows (default: 1,000)")
    parser.add_argument("--invalid-ratio", type=float, default=0.0, help="Share of invalid rows (0-1)")
    parser.add_argument("--duplicate-ratio", type=float, default=0.0, help="Share of repeated keys (0-1)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    for name in ("invalid_ratio", "duplicate_ratio"):
        if not 0 <= getattr(args, name) <= 1:
            print(f"Error: --{name.replace('_', '-')} must be between 0 and 1", file=sys.stderr)
            return 1

    df = generate_risks(
        args.rows,
        RiskType(args.risk_type),
        invalid_ratio=args.invalid_ratio,
        duplicate_ratio=args.duplicate_ratio,
        seed=args.seed,
    )
    write_sheet(df, args.output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
