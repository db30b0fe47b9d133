from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .mapped_row import MappedRow

"""Result models for the validate / check-duplicates / import steps.

All of these are request-scoped values. Summaries are computed from the row
results, never tracked separately, so the counters cannot drift from the rows.
"""

__all__ = [
    "ImportAction",
    "OutcomeAction",
    "LinkType",
    "LinkTarget",
    "ValidationSummary",
    "ValidationResult",
    "DuplicateResult",
    "DuplicateSummary",
    "DuplicateCheckResult",
    "ImportOutcome",
    "ImportSummary",
    "ImportResult",
]


class ImportAction(Enum):
    """Caller decision for one row. Anything unrecognised means CREATE."""
    CREATE = "create"
    OVERWRITE = "overwrite"
    SKIP = "skip"

    @classmethod
    def parse(cls, value: Any) -> ImportAction:
        if isinstance(value, ImportAction):
            return value
        for member in cls:
            if member.value == value:
                return member
        return cls.CREATE


class OutcomeAction(Enum):
    CREATED = "created"
    OVERWRITTEN = "overwritten"
    SKIPPED = "skipped"
    ERROR = "error"


class LinkType(Enum):
    PROJECT = "project"
    FRAMEWORK = "framework"
    VENDOR = "vendor"


@dataclass(frozen=True)
class LinkTarget:
    """Project, framework or vendor a created risk gets attached to."""
    type: LinkType
    id: int

    @staticmethod
    def from_dict(raw: dict[str, Any] | None) -> LinkTarget | None:
        if not raw or raw.get("id") in (None, "", 0):
            return None
        try:
            link_type = LinkType(raw.get("type"))
        except ValueError:
            return None
        return LinkTarget(type=link_type, id=int(raw["id"]))

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "id": self.id}


@dataclass(frozen=True)
class ValidationSummary:
    total: int
    valid: int
    invalid: int

    def to_dict(self) -> dict[str, int]:
        return {"total": self.total, "valid": self.valid, "invalid": self.invalid}


@dataclass(frozen=True)
class ValidationResult:
    results: list[MappedRow]

    @property
    def summary(self) -> ValidationSummary:
        valid = sum(1 for r in self.results if r.is_valid)
        return ValidationSummary(total=len(self.results), valid=valid, invalid=len(self.results) - valid)

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "summary": self.summary.to_dict(),
        }


@dataclass(frozen=True)
class DuplicateResult:
    row_index: int
    existing_record_id: int | None
    existing_record_name: str | None  # display only
    is_duplicate: bool
    checked: bool = True  # False for invalid rows, which are never looked up

    def to_dict(self) -> dict[str, Any]:
        return {
            "rowIndex": self.row_index,
            "existingRecordId": self.existing_record_id,
            "existingRecordName": self.existing_record_name,
            "isDuplicate": self.is_duplicate,
        }


@dataclass(frozen=True)
class DuplicateSummary:
    total: int
    duplicates: int
    unique: int

    def to_dict(self) -> dict[str, int]:
        return {"total": self.total, "duplicates": self.duplicates, "unique": self.unique}


@dataclass(frozen=True)
class DuplicateCheckResult:
    duplicates: list[DuplicateResult]

    @property
    def summary(self) -> DuplicateSummary:
        dup = sum(1 for d in self.duplicates if d.is_duplicate)
        unique = sum(1 for d in self.duplicates if d.checked and not d.is_duplicate)
        return DuplicateSummary(total=len(self.duplicates), duplicates=dup, unique=unique)

    def duplicate_row_indexes(self) -> set[int]:
        return {d.row_index for d in self.duplicates if d.is_duplicate}

    def to_dict(self) -> dict[str, Any]:
        return {
            "duplicates": [d.to_dict() for d in self.duplicates],
            "summary": self.summary.to_dict(),
        }


@dataclass(frozen=True)
class ImportOutcome:
    row_index: int
    success: bool
    action: OutcomeAction
    record_id: int | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "rowIndex": self.row_index,
            "success": self.success,
            "action": self.action.value,
            "recordId": self.record_id,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class ImportSummary:
    total: int
    success: int
    created: int
    overwritten: int
    skipped: int
    errors: int

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "success": self.success,
            "created": self.created,
            "overwritten": self.overwritten,
            "skipped": self.skipped,
            "errors": self.errors,
        }


@dataclass(frozen=True)
class ImportResult:
    results: list[ImportOutcome]

    @property
    def summary(self) -> ImportSummary:
        def count(action: OutcomeAction) -> int:
            return sum(1 for r in self.results if r.action is action)

        return ImportSummary(
            total=len(self.results),
            success=sum(1 for r in self.results if r.success),
            created=count(OutcomeAction.CREATED),
            overwritten=count(OutcomeAction.OVERWRITTEN),
            skipped=count(OutcomeAction.SKIPPED),
            errors=count(OutcomeAction.ERROR),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "summary": self.summary.to_dict(),
        }
