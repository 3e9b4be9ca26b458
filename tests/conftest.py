"""Shared fixtures and deterministic fakes for orchestration tests."""

from __future__ import annotations

import threading
from collections.abc import Sequence
from pathlib import Path

import pytest

from release_matrix.matrix.models import TargetMatrix
from release_matrix.packaging import Packager
from release_matrix.types import (
    ArchiveFormat,
    BuildOutcome,
    BuildResult,
    PackagedArtifact,
    PublishResult,
    ReleaseBundle,
    TargetSpec,
)

LINUX = TargetSpec(
    display_name="Linux - X86_64",
    triple="x86_64-unknown-linux-musl",
    archive_format=ArchiveFormat.TAR_GZ,
    extra_files=("readme.md", "LICENSE"),
)
WINDOWS = TargetSpec(
    display_name="Windows - X86_64",
    triple="x86_64-pc-windows-gnu",
    archive_format=ArchiveFormat.ZIP,
    extra_files=("readme.md", "LICENSE"),
)


class FakeBuildStep:
    """Build step that writes a fake binary, or fails on demand.

    Args:
        output_dir: Root for per-target binaries.
        fail: triple -> error detail for targets that must fail.
        hang: triples whose build blocks until cancelled.
    """

    def __init__(
        self,
        output_dir: Path,
        fail: dict[str, str] | None = None,
        hang: set[str] | None = None,
    ) -> None:
        self.output_dir = output_dir
        self.fail = fail or {}
        self.hang = hang or set()
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def build(
        self,
        target: TargetSpec,
        source_root: Path,
        timeout: float,
        cancel_event: threading.Event | None = None,
    ) -> BuildResult:
        with self._lock:
            self.calls.append(target.triple)

        if target.triple in self.hang:
            assert cancel_event is not None
            cancel_event.wait(timeout)
            detail = "cancelled" if cancel_event.is_set() else "timeout"
            return BuildResult(target, BuildOutcome.FAILURE, error_detail=detail)

        if target.triple in self.fail:
            return BuildResult(
                target, BuildOutcome.FAILURE, error_detail=self.fail[target.triple]
            )

        name = "rask.exe" if target.is_windows else "rask"
        binary = self.output_dir / "build" / target.triple / "release" / name
        binary.parent.mkdir(parents=True, exist_ok=True)
        binary.write_bytes(b"\x7fELF fake binary for " + target.triple.encode())
        return BuildResult(target, BuildOutcome.SUCCESS, binary_path=binary)


class FakePublisher:
    """Publisher that records every call."""

    def __init__(self, succeed: bool = True, notes: str = "notes") -> None:
        self.succeed = succeed
        self.notes = notes
        self.notes_calls: list[str] = []
        self.bundles: list[ReleaseBundle] = []

    def generate_notes(self, tag: str, artifacts: Sequence[PackagedArtifact]) -> str:
        self.notes_calls.append(tag)
        return self.notes

    def publish(self, bundle: ReleaseBundle) -> PublishResult:
        self.bundles.append(bundle)
        if self.succeed:
            return PublishResult(success=True, message="published", url="https://x/r")
        return PublishResult(success=False, message="sink unreachable", code="network_error")


@pytest.fixture
def source_root(tmp_path: Path) -> Path:
    """A checked-out source tree with the usual extra files."""
    root = tmp_path / "src"
    root.mkdir()
    (root / "readme.md").write_text("# rask\n")
    (root / "LICENSE").write_text("MIT License\n")
    return root


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    return tmp_path / "out"


@pytest.fixture
def two_target_matrix() -> TargetMatrix:
    """Linux tar.gz + Windows zip, as shipped by the project."""
    return TargetMatrix(binary_name="rask", entries=(LINUX, WINDOWS))


@pytest.fixture
def linux() -> TargetSpec:
    return LINUX


@pytest.fixture
def windows() -> TargetSpec:
    return WINDOWS


@pytest.fixture
def make_build_step(output_dir: Path):
    """Factory for FakeBuildStep writing under the test output directory."""

    def factory(
        fail: dict[str, str] | None = None, hang: set[str] | None = None
    ) -> FakeBuildStep:
        return FakeBuildStep(output_dir, fail=fail, hang=hang)

    return factory


@pytest.fixture
def make_publisher():
    """Factory for FakePublisher."""

    def factory(succeed: bool = True) -> FakePublisher:
        return FakePublisher(succeed=succeed)

    return factory


@pytest.fixture
def release_bundle(tmp_path: Path, source_root: Path) -> ReleaseBundle:
    """A complete two-target bundle packaged from fake binaries."""
    packager = Packager(tmp_path / "pkg", "v1.0.0", "rask")
    artifacts = []
    for target in (LINUX, WINDOWS):
        name = "rask.exe" if target.is_windows else "rask"
        binary = tmp_path / "bin" / target.triple / name
        binary.parent.mkdir(parents=True)
        binary.write_bytes(b"binary for " + target.triple.encode())
        artifacts.append(packager.package(target, binary, base_dir=source_root))
    return ReleaseBundle(release_tag="v1.0.0", artifacts=tuple(artifacts), notes="notes")
