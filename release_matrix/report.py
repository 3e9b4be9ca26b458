"""Run reports.

This module handles:
- Per-target status tracking through the run state machines
- CI and release run reports with JSON serialization
- Rendering a report as a Rich table
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from release_matrix.errors import BUILD_CANCELLED, BUILD_FAILED, BUILD_TIMEOUT
from release_matrix.types import (
    BuildResult,
    CIOutcome,
    PackagedArtifact,
    PublishResult,
    ReleaseBundle,
    ReleaseOutcome,
    TargetSpec,
    TargetState,
)

logger = logging.getLogger(__name__)

# Longest diagnostic excerpt shown in the rendered table
DETAIL_EXCERPT_LINES = 20

_STATE_COLORS = {
    TargetState.BUILT: "green",
    TargetState.PACKAGED: "green",
    TargetState.BUILD_FAILED: "red",
    TargetState.PACKAGE_FAILED: "red",
    TargetState.CANCELLED: "yellow",
}


@dataclass
class TargetStatus:
    """Current state of one target within a run.

    Each status is mutated only by the worker processing its target and
    read by the orchestrator after the join.
    """

    target: TargetSpec
    state: TargetState = TargetState.PENDING
    error_code: str | None = None
    detail: str | None = None
    binary_path: Path | None = None
    log_path: Path | None = None
    artifact: PackagedArtifact | None = None

    def transition(self, state: TargetState) -> None:
        """Move to a new state."""
        logger.debug(
            "[%s] %s -> %s", self.target.triple, self.state.value, state.value
        )
        self.state = state

    def fail(self, state: TargetState, code: str, detail: str | None) -> None:
        """Move to a failed terminal state with its diagnostic."""
        self.transition(state)
        self.error_code = code
        self.detail = detail

    def cancel(self) -> None:
        """Mark a target abandoned by run cancellation."""
        self.fail(TargetState.CANCELLED, BUILD_CANCELLED, "cancelled")

    def record_build(self, result: BuildResult, cancelled: bool = False) -> None:
        """Apply a build result."""
        self.log_path = result.log_path
        if result.success:
            self.binary_path = result.binary_path
            self.transition(TargetState.BUILT)
        elif cancelled and result.error_detail == BUILD_CANCELLED:
            self.cancel()
        else:
            code = BUILD_TIMEOUT if result.error_detail == BUILD_TIMEOUT else BUILD_FAILED
            self.fail(TargetState.BUILD_FAILED, code, result.error_detail)

    def record_package(self, artifact: PackagedArtifact) -> None:
        """Apply a packaged artifact."""
        self.artifact = artifact
        self.transition(TargetState.PACKAGED)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "display_name": self.target.display_name,
            "triple": self.target.triple,
            "state": self.state.value,
        }
        if self.error_code is not None:
            result["error_code"] = self.error_code
        if self.detail is not None:
            result["detail"] = self.detail
        if self.binary_path is not None:
            result["binary_path"] = str(self.binary_path)
        if self.log_path is not None:
            result["log_path"] = str(self.log_path)
        if self.artifact is not None:
            result["archive_path"] = str(self.artifact.archive_path)
            result["checksum_path"] = str(self.artifact.checksum_path)
            result["sha256"] = self.artifact.sha256
        return result


@dataclass
class CIReport:
    """Terminal report of a CI run."""

    outcome: CIOutcome
    targets: list[TargetStatus] = field(default_factory=list)
    timed_out: bool = False

    @property
    def exit_code(self) -> int:
        return 0 if self.outcome is CIOutcome.ALL_PASSED else 1

    def failed_targets(self) -> list[TargetStatus]:
        """Targets that did not build."""
        return [t for t in self.targets if t.state is not TargetState.BUILT]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "run": "ci",
            "outcome": self.outcome.value,
            "timed_out": self.timed_out,
            "exit_code": self.exit_code,
            "targets": [t.to_dict() for t in self.targets],
            "failed": [t.target.triple for t in self.failed_targets()],
        }


@dataclass
class ReleaseReport:
    """Terminal report of a release run."""

    release_tag: str
    outcome: ReleaseOutcome
    targets: list[TargetStatus] = field(default_factory=list)
    bundle: ReleaseBundle | None = None
    publish_result: PublishResult | None = None
    timed_out: bool = False

    @property
    def exit_code(self) -> int:
        if self.outcome in (ReleaseOutcome.PUBLISHED, ReleaseOutcome.PACKAGED):
            return 0
        return 1

    def failed_targets(self) -> list[TargetStatus]:
        """Targets that did not reach the packaged state."""
        return [t for t in self.targets if t.state is not TargetState.PACKAGED]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "run": "release",
            "release_tag": self.release_tag,
            "outcome": self.outcome.value,
            "timed_out": self.timed_out,
            "exit_code": self.exit_code,
            "targets": [t.to_dict() for t in self.targets],
            "failed": [t.target.triple for t in self.failed_targets()],
        }
        if self.bundle is not None:
            result["files"] = [str(p) for p in self.bundle.files()]
        if self.publish_result is not None:
            result["publish"] = {
                "success": self.publish_result.success,
                "message": self.publish_result.message,
                "code": self.publish_result.code,
                "url": self.publish_result.url,
            }
        return result


def _excerpt(detail: str) -> str:
    lines = detail.rstrip().splitlines()
    if len(lines) <= DETAIL_EXCERPT_LINES:
        return "\n".join(lines)
    skipped = len(lines) - DETAIL_EXCERPT_LINES
    return "\n".join([f"... ({skipped} lines omitted)", *lines[-DETAIL_EXCERPT_LINES:]])


def render_report(report: CIReport | ReleaseReport, console: Console) -> None:
    """Print every target with its terminal state and diagnostics.

    Args:
        report: CI or release report.
        console: Rich console to print to.
    """
    if isinstance(report, ReleaseReport):
        title = f"Release {report.release_tag}"
    else:
        title = "CI build"

    table = Table(title=title, show_lines=True)
    table.add_column("Target")
    table.add_column("Triple")
    table.add_column("State")
    table.add_column("Detail", overflow="fold")

    for status in report.targets:
        color = _STATE_COLORS.get(status.state, "white")
        if status.artifact is not None:
            detail = status.artifact.archive_path.name
        elif status.detail:
            detail = escape(_excerpt(status.detail))
        else:
            detail = ""
        table.add_row(
            status.target.display_name,
            status.target.triple,
            f"[{color}]{status.state.value}[/{color}]",
            detail,
        )

    console.print(table)
    if report.timed_out:
        console.print("[yellow]Run timeout elapsed; in-flight builds were cancelled[/yellow]")

    outcome = report.outcome.value
    if report.exit_code == 0:
        console.print(f"[green]✓ {outcome}[/green]")
    else:
        console.print(f"[red]✗ {outcome}[/red]")

    if isinstance(report, ReleaseReport) and report.publish_result is not None:
        result = report.publish_result
        if result.success:
            console.print(f"  {result.message}")
            if result.url:
                console.print(f"  URL: {result.url}")
        else:
            console.print(f"[red]  Publish failed: {escape(result.message)}[/red]")
            console.print("  Artifacts were kept for inspection:")
            for status in report.targets:
                if status.artifact is not None:
                    console.print(f"    {status.artifact.archive_path}")
                    console.print(f"    {status.artifact.checksum_path}")


__all__ = [
    "DETAIL_EXCERPT_LINES",
    "CIReport",
    "ReleaseReport",
    "TargetStatus",
    "render_report",
]
