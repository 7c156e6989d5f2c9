from portal.imports.commit import CommitTally
from portal.imports.models import (
    ImportCommitError,
    ImportCommitResult,
    ImportIssue,
    ImportParseError,
    ImportPreview,
    ImportPreviewSummary,
    ImportRow,
    ImportValidationFailed,
    InvitationRowError,
)
from portal.imports.parsers import parse_rows
from portal.imports.pipeline import commit_import, preview_import
from portal.imports.saga import CommitSaga

__all__ = [
    "ImportRow",
    "ImportIssue",
    "ImportPreview",
    "ImportPreviewSummary",
    "ImportCommitResult",
    "ImportParseError",
    "ImportValidationFailed",
    "ImportCommitError",
    "InvitationRowError",
    "CommitSaga",
    "CommitTally",
    "parse_rows",
    "preview_import",
    "commit_import",
]
