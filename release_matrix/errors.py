"""Error taxonomy for release_matrix.

Every error carries a stable ``code`` for programmatic handling and for
the JSON run report. Per-target errors (build, packaging) are collected
into target statuses by the orchestrators; only configuration errors and
the run-level publish failure terminate a run.
"""

from __future__ import annotations

from pathlib import Path

# Error code constants
CONFIGURATION_ERROR = "configuration_error"
BUILD_FAILED = "build_failed"
BUILD_TIMEOUT = "timeout"
BUILD_CANCELLED = "cancelled"
MISSING_FILE = "missing-file"
DUPLICATE_ENTRY = "duplicate-entry"
IO_ERROR = "io-error"
PUBLISH_FAILED = "publish_failed"
INCOMPLETE_BUNDLE = "incomplete_bundle"


class ReleaseMatrixError(Exception):
    """Base error for release_matrix operations."""

    def __init__(self, message: str, code: str = "release_matrix_error") -> None:
        super().__init__(message)
        self.code = code


class ConfigurationError(ReleaseMatrixError):
    """Raised when the matrix or run parameters are invalid.

    Always raised before any build starts.
    """

    def __init__(self, message: str, code: str = CONFIGURATION_ERROR) -> None:
        super().__init__(message, code=code)


class BuildFailure(ReleaseMatrixError):
    """Raised inside a build step when the toolchain fails or times out."""

    def __init__(self, message: str, code: str = BUILD_FAILED) -> None:
        super().__init__(message, code=code)


class PackagingError(ReleaseMatrixError):
    """Raised when an archive or its checksum cannot be produced.

    Attributes:
        kind: One of ``missing-file``, ``duplicate-entry``, ``io-error``.
        path: The offending file path or archive entry name.
    """

    def __init__(self, kind: str, path: Path | str, detail: str | None = None) -> None:
        message = f"{kind}: {path}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message, code=kind)
        self.kind = kind
        self.path = str(path)


class PublishFailure(ReleaseMatrixError):
    """Raised when the release sink rejects or cannot accept a bundle."""

    def __init__(self, reason: str, code: str = PUBLISH_FAILED) -> None:
        super().__init__(reason, code=code)
        self.reason = reason


__all__ = [
    "BUILD_CANCELLED",
    "BUILD_FAILED",
    "BUILD_TIMEOUT",
    "CONFIGURATION_ERROR",
    "DUPLICATE_ENTRY",
    "INCOMPLETE_BUNDLE",
    "IO_ERROR",
    "MISSING_FILE",
    "PUBLISH_FAILED",
    "BuildFailure",
    "ConfigurationError",
    "PackagingError",
    "PublishFailure",
    "ReleaseMatrixError",
]
