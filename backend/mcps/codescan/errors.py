"""
Error taxonomy for the scanning engine.

Run-level errors abort a scan and reach the caller. Per-file and per-rule
errors are absorbed by the engine and only show up in the report statistics
and its ``errors`` list.
"""

from typing import Optional


class ScanError(Exception):
    """Base class for every error raised by the scanner."""


class InvalidInput(ScanError):
    """Missing repository path or credential; the scan never starts."""


class RepositoryNotFound(ScanError):
    """The repository client reports no such project."""

    def __init__(self, project_path: str):
        super().__init__(f"Repository not found: {project_path}")
        self.project_path = project_path


class AuthenticationFailed(ScanError):
    """The credential was rejected by the repository host."""


class FileError(ScanError):
    """Base class for per-file failures."""

    def __init__(self, file_path: str, reason: str):
        super().__init__(f"{file_path}: {reason}")
        self.file_path = file_path
        self.reason = reason


class FileFetchFailed(FileError):
    """File content could not be fetched (HTTP error, timeout, transport)."""


class FileDecodeError(FileError):
    """File content is binary or not valid text."""


class RuleEvaluationError(ScanError):
    """A rule pattern could not be evaluated against a file's content."""

    def __init__(self, rule_id: str, file_path: str, cause: Optional[BaseException] = None):
        message = f"Rule {rule_id} failed on {file_path}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.rule_id = rule_id
        self.file_path = file_path
        self.cause = cause
