from __future__ import annotations

from ..models.import_result import DuplicateSummary, ImportSummary, ValidationSummary

"""SUMMARY line rendering.

Formats (one line each, key=value pairs separated by single spaces):
    SUMMARY validated total=<n> valid=<n> invalid=<n>
    SUMMARY duplicates total=<n> duplicates=<n> unique=<n>
    SUMMARY total=<n> success=<n> created=<n> overwritten=<n> skipped=<n> errors=<n>
"""

__all__ = [
    "render_validation_line",
    "render_duplicate_line",
    "render_summary_line",
]


def render_validation_line(summary: ValidationSummary) -> str:
    return f"SUMMARY validated total={summary.total} valid={summary.valid} invalid={summary.invalid}"


def render_duplicate_line(summary: DuplicateSummary) -> str:
    return (
        f"SUMMARY duplicates total={summary.total} "
        f"duplicates={summary.duplicates} "
        f"unique={summary.unique}"
    )


def render_summary_line(summary: ImportSummary) -> str:
    """Render the import SUMMARY line.

    Examples:
        >>> s = ImportSummary(total=3, success=2, created=1, overwritten=1, skipped=0, errors=1)
        >>> render_summary_line(s)
        'SUMMARY total=3 success=2 created=1 overwritten=1 skipped=0 errors=1'
    """
    return (
        f"SUMMARY total={summary.total} "
        f"success={summary.success} "
        f"created={summary.created} "
        f"overwritten={summary.overwritten} "
        f"skipped={summary.skipped} "
        f"errors={summary.errors}"
    )
