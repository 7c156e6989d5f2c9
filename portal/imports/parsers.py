from __future__ import annotations

import csv
import io
import re
from typing import Iterable

from portal.models import ImportKind

from .models import ImportParseError, ImportRow

_WHITESPACE_PATTERN = re.compile(r"\s+")

REQUIRED_COLUMNS: dict[ImportKind, tuple[str, ...]] = {
    ImportKind.USERS: ("email", "name", "role", "organisation"),
    ImportKind.WORKFLOWS: ("ai_mba", "category", "topic"),
    ImportKind.BOOK_WORKFLOWS: (
        "department",
        "category",
        "book",
        "author",
        "workflow",
        "activity_type",
        "problem_goal",
    ),
}

OPTIONAL_COLUMNS: dict[ImportKind, tuple[str, ...]] = {
    ImportKind.USERS: ("courses",),
    ImportKind.WORKFLOWS: ("workflow", "course", "author", "link"),
    ImportKind.BOOK_WORKFLOWS: ("content",),
}


def normalize_header(name: str) -> str:
    return _WHITESPACE_PATTERN.sub("_", name.strip()).lower()


def _read_csv(data: bytes) -> tuple[list[dict[str, str]], list[str]]:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ImportParseError("CSV is not valid UTF-8.") from exc
    reader = csv.reader(io.StringIO(text))
    try:
        header = next(reader)
    except StopIteration:
        raise ImportParseError("CSV file is empty.") from None
    except csv.Error as exc:
        raise ImportParseError(f"Malformed CSV: {exc}") from exc
    fieldnames = [normalize_header(name) for name in header]
    rows: list[dict[str, str]] = []
    try:
        for record in reader:
            if not any(cell.strip() for cell in record):
                continue
            rows.append(
                {
                    name: record[index] if index < len(record) else ""
                    for index, name in enumerate(fieldnames)
                    if name
                }
            )
    except csv.Error as exc:
        raise ImportParseError(f"Malformed CSV: {exc}") from exc
    return rows, fieldnames


def _require_columns(fieldnames: Iterable[str], required: Iterable[str]) -> None:
    missing = [name for name in required if name not in set(fieldnames)]
    if missing:
        raise ImportParseError(
            f"Missing required columns: {', '.join(missing)}.",
            location="header",
        )


def parse_rows(kind: ImportKind, data: bytes) -> list[ImportRow]:
    rows, fieldnames = _read_csv(data)
    _require_columns(fieldnames, REQUIRED_COLUMNS[kind])
    known = REQUIRED_COLUMNS[kind] + OPTIONAL_COLUMNS[kind]
    return [
        ImportRow(
            row_number=index,
            values={name: row.get(name, "") for name in known},
        )
        for index, row in enumerate(rows, start=1)
    ]
