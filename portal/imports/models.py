from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from portal.models import ImportKind, ImportLog


@dataclass(frozen=True)
class ImportRow:
    row_number: int
    values: Mapping[str, str]

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def get(self, name: str) -> str:
        value = self.values.get(name)
        return value.strip() if value else ""

    def as_dict(self) -> dict[str, str]:
        return dict(self.values)


@dataclass
class ImportIssue:
    row_number: int
    message: str
    field: Optional[str] = None
    raw_value: Optional[str] = None


@dataclass
class ImportPreviewSummary:
    entities_to_create: dict[str, list[str]] = field(default_factory=dict)
    entities_found: dict[str, list[str]] = field(default_factory=dict)
    target_record_count: int = 0
    distributions: dict[str, dict[str, int]] = field(default_factory=dict)
    duplicate_emails: list[str] = field(default_factory=list)


@dataclass
class ImportPreview:
    kind: ImportKind
    total_rows: int
    valid_rows: int
    errors: list[ImportIssue] = field(default_factory=list)
    summary: ImportPreviewSummary = field(default_factory=ImportPreviewSummary)
    sample_rows: list[dict[str, str]] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class ImportCommitResult:
    kind: ImportKind
    log: Optional[ImportLog] = None
    success_count: int = 0
    failure_count: int = 0
    skipped_count: int = 0
    entities_created: dict[str, int] = field(default_factory=dict)
    counters: dict[str, int] = field(default_factory=dict)
    failures: list[dict[str, Any]] = field(default_factory=list)


class ImportParseError(Exception):
    def __init__(self, message: str, location: str = "file") -> None:
        super().__init__(message)
        self.location = location


class ImportValidationFailed(Exception):
    def __init__(self, preview: ImportPreview) -> None:
        super().__init__(
            f"Import validation failed: {len(preview.errors)} errors found"
        )
        self.preview = preview


class ImportCommitError(Exception):
    def __init__(self, message: str, log: Optional[ImportLog] = None) -> None:
        super().__init__(message)
        self.log = log


class InvitationRowError(Exception):
    """A single invitation row failed; the rest of the batch carries on."""

    def __init__(self, row_number: int, email: str, message: str) -> None:
        super().__init__(message)
        self.row_number = row_number
        self.email = email
