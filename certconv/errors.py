# certconv/errors.py
from __future__ import annotations

from enum import Enum
from typing import Optional


class CertconvError(Exception):
    """Base error type for certificate operations."""


class UsageError(CertconvError):
    """Conflicting or invalid options; raised before any subprocess runs."""


class OutputExistsError(UsageError):
    """The requested output path already exists. Outputs are never overwritten."""

    def __init__(self, path: str, suggest: Optional[str] = None) -> None:
        self.path = path
        self.suggest = suggest
        if suggest and suggest != path:
            msg = f"output already exists: {path} (try: {suggest})"
        else:
            msg = f"output already exists: {path}"
        super().__init__(msg)


class MalformedReason(str, Enum):
    DUPLICATE_BEGIN = "duplicate-begin"
    DUPLICATE_END = "duplicate-end"
    MISSING_BEGIN = "missing-begin"
    MISSING_END = "missing-end"
    LABEL_MISMATCH = "label-mismatch"
    BLANK_LINE_IN_BLOCK = "blank-line-in-block"
    NON_BASE64_CONTENT = "non-base64-content"
    CONTENT_OUTSIDE_BLOCK = "content-outside-block"
    EMPTY_PAYLOAD = "empty-payload"


class MalformedInput(CertconvError):
    """Structural validation failure; the input never reaches the toolchain."""

    def __init__(self, reason: MalformedReason, detail: str = "", path: Optional[str] = None) -> None:
        self.reason = reason
        self.detail = detail
        self.path = path
        msg = f"malformed input ({reason.value})"
        if detail:
            msg += f": {detail}"
        if path:
            msg += f": {path}"
        super().__init__(msg)


class ToolchainFailure(CertconvError):
    """The external toolchain exited non-zero. The raw diagnostic is kept verbatim."""

    def __init__(
        self,
        message: str,
        *,
        subkind: Optional[str] = None,
        stderr: str = "",
        stdout: str = "",
        returncode: Optional[int] = None,
    ) -> None:
        self.subkind = subkind
        self.stderr = stderr
        self.stdout = stdout
        self.returncode = returncode
        super().__init__(message)


class Cancelled(ToolchainFailure):
    def __init__(self, message: str = "cancelled", *, stderr: str = "", stdout: str = "") -> None:
        super().__init__(message, subkind="cancelled", stderr=stderr, stdout=stdout)


class IOFailure(CertconvError):
    """Filesystem error around temp files, secret carriers or outputs."""

    def __init__(self, message: str, cause: Optional[OSError] = None) -> None:
        self.cause = cause
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
