"""Shared type definitions for release_matrix.

This module contains enums and dataclasses shared across subpackages
to avoid circular imports.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


class ArchiveFormat(str, Enum):
    """Archive format of a packaged release artifact."""

    ZIP = "zip"
    TAR_GZ = "tar.gz"


class BuildOutcome(str, Enum):
    """Outcome of a single build step."""

    SUCCESS = "success"
    FAILURE = "failure"


class TargetState(str, Enum):
    """State of one target within a run."""

    PENDING = "pending"
    BUILDING = "building"
    BUILT = "built"
    BUILD_FAILED = "build_failed"
    PACKAGING = "packaging"
    PACKAGED = "packaged"
    PACKAGE_FAILED = "package_failed"
    CANCELLED = "cancelled"

    @property
    def is_failure(self) -> bool:
        """Whether this state is a failed terminal state."""
        return self in (
            TargetState.BUILD_FAILED,
            TargetState.PACKAGE_FAILED,
            TargetState.CANCELLED,
        )


class CIOutcome(str, Enum):
    """Terminal outcome of a CI run."""

    ALL_PASSED = "all_passed"
    SOME_FAILED = "some_failed"


class ReleaseOutcome(str, Enum):
    """Terminal outcome of a release run."""

    PUBLISHED = "published"
    PUBLISH_FAILED = "publish_failed"
    RELEASE_ABORTED = "release_aborted"
    # Dry runs stop at the publication barrier.
    PACKAGED = "packaged"


_SLUG_RE = re.compile(r"[^a-z0-9_.]+")


@dataclass(frozen=True)
class TargetSpec:
    """One entry of the target matrix.

    Attributes:
        display_name: Human label, e.g. "Linux - X86_64".
        triple: Toolchain target identifier, e.g. "x86_64-unknown-linux-musl".
        archive_format: Archive format; required for release targets only.
        extra_files: Auxiliary files packaged next to the binary.
    """

    display_name: str
    triple: str
    archive_format: ArchiveFormat | None = None
    extra_files: tuple[str, ...] = ()

    @property
    def slug(self) -> str:
        """Filesystem-safe form of the display name."""
        return _SLUG_RE.sub("-", self.display_name.lower()).strip("-")

    @property
    def is_windows(self) -> bool:
        """Whether the triple produces a Windows executable."""
        return "windows" in self.triple


@dataclass
class BuildResult:
    """Result of building one target.

    Attributes:
        target: The target that was built.
        outcome: Success or failure.
        binary_path: Produced binary, set on success.
        error_detail: Captured diagnostic on failure ("timeout" on timeout).
        log_path: Path to the captured build log.
        exit_code: Toolchain exit code (-1 if killed, None if never started).
        started_at: Build start time.
        finished_at: Build finish time.
        command: The command that was executed.
    """

    target: TargetSpec
    outcome: BuildOutcome
    binary_path: Path | None = None
    error_detail: str | None = None
    log_path: Path | None = None
    exit_code: int | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    command: str | None = None

    @property
    def success(self) -> bool:
        return self.outcome is BuildOutcome.SUCCESS


@dataclass(frozen=True)
class PackagedArtifact:
    """An archive and its sibling checksum file for one target."""

    target: TargetSpec
    archive_path: Path
    checksum_path: Path
    sha256: str
    size_bytes: int


@dataclass(frozen=True)
class ReleaseBundle:
    """The complete, immutable artifact set of one release run."""

    release_tag: str
    artifacts: tuple[PackagedArtifact, ...]
    notes: str = ""

    def files(self) -> list[Path]:
        """Every file the sink must receive, archive then checksum per target."""
        paths: list[Path] = []
        for artifact in self.artifacts:
            paths.append(artifact.archive_path)
            paths.append(artifact.checksum_path)
        return paths


@dataclass
class PublishResult:
    """Result of publishing a release bundle."""

    success: bool
    message: str
    code: str | None = None
    url: str | None = None
    details: dict[str, object] = field(default_factory=dict)


__all__ = [
    "ArchiveFormat",
    "BuildOutcome",
    "BuildResult",
    "CIOutcome",
    "PackagedArtifact",
    "PublishResult",
    "ReleaseBundle",
    "ReleaseOutcome",
    "TargetSpec",
    "TargetState",
]
