"""Release orchestration.

This module drives a release run:
1. Build and package every target in parallel (build then package,
   strictly sequential per target)
2. Join on every target's terminal state
3. Only if every target is packaged, assemble the ReleaseBundle and
   publish it exactly once

Any build or packaging failure, or an elapsed run timeout, aborts the
release before the publisher is touched. Nothing is retried.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from release_matrix.builds.runner import BuildStep
from release_matrix.errors import (
    PUBLISH_FAILED,
    ConfigurationError,
    PackagingError,
    PublishFailure,
)
from release_matrix.matrix.models import TargetMatrix
from release_matrix.orchestration.pipeline import build_target, fan_out
from release_matrix.packaging.packager import Packager
from release_matrix.publish.base import Publisher
from release_matrix.report import ReleaseReport, TargetStatus
from release_matrix.types import (
    PackagedArtifact,
    PublishResult,
    ReleaseBundle,
    ReleaseOutcome,
    TargetState,
)

logger = logging.getLogger(__name__)


class ReleaseOrchestrator:
    """All-or-nothing release of the full target matrix.

    Per target: pending -> building -> build_failed | built -> packaging
    -> package_failed | packaged (or cancelled when the run timeout
    elapses). The publisher is invoked only when every target is packaged.
    """

    def __init__(
        self,
        matrix: TargetMatrix,
        release_tag: str,
        build_step: BuildStep,
        packager: Packager,
        publisher: Publisher | None,
        source_root: Path,
        build_timeout: float,
        run_timeout: float | None = None,
        max_workers: int = 2,
        dry_run: bool = False,
    ) -> None:
        """Initialize ReleaseOrchestrator.

        Args:
            matrix: Targets to release.
            release_tag: Tag of the release.
            build_step: Capability that builds one target.
            packager: Packager for this release tag.
            publisher: Release sink; may be None only for dry runs.
            source_root: Checked-out source tree; relative extra files
                resolve against it.
            build_timeout: Per-target build timeout in seconds.
            run_timeout: Global run timeout in seconds (None = no limit).
            max_workers: Targets processed in parallel.
            dry_run: Stop before publishing.

        Raises:
            ConfigurationError: If any target has no archive format, or no
                publisher is given for a real release.
        """
        matrix.require_archive_formats()
        if publisher is None and not dry_run:
            raise ConfigurationError("A publisher is required unless dry_run is set")
        self.matrix = matrix
        self.release_tag = release_tag
        self.build_step = build_step
        self.packager = packager
        self.publisher = publisher
        self.source_root = source_root
        self.build_timeout = build_timeout
        self.run_timeout = run_timeout
        self.max_workers = max_workers
        self.dry_run = dry_run

    def _run_target(self, status: TargetStatus, cancel_event: threading.Event) -> None:
        result = build_target(
            status, self.build_step, self.source_root, self.build_timeout, cancel_event
        )
        if result is None or status.state is not TargetState.BUILT:
            return
        if cancel_event.is_set():
            status.cancel()
            return

        status.transition(TargetState.PACKAGING)
        try:
            artifact = self.packager.package(
                status.target, result.binary_path, base_dir=self.source_root
            )
        except PackagingError as e:
            logger.error("[%s] Packaging failed: %s", status.target.triple, e)
            status.fail(TargetState.PACKAGE_FAILED, e.code, str(e))
            return
        status.record_package(artifact)

    def run(self) -> ReleaseReport:
        """Execute the release run.

        Returns:
            ReleaseReport; outcome published only when every target was
            packaged and the publisher accepted the bundle.
        """
        logger.info(
            "Release %s: building %d target(s)", self.release_tag, len(self.matrix)
        )
        statuses, timed_out = fan_out(
            self.matrix.targets(), self._run_target, self.max_workers, self.run_timeout
        )

        failed = [s for s in statuses if s.state is not TargetState.PACKAGED]
        if timed_out or failed:
            for status in failed:
                logger.error(
                    "[%s] %s: %s",
                    status.target.triple,
                    status.state.value,
                    status.error_code,
                )
            logger.error(
                "Release %s aborted: %d of %d target(s) not packaged; nothing published",
                self.release_tag,
                len(failed),
                len(statuses),
            )
            return ReleaseReport(
                release_tag=self.release_tag,
                outcome=ReleaseOutcome.RELEASE_ABORTED,
                targets=statuses,
                timed_out=timed_out,
            )

        artifacts: tuple[PackagedArtifact, ...] = tuple(
            s.artifact for s in statuses if s.artifact is not None
        )

        if self.dry_run:
            logger.info(
                "Dry run: %d artifact(s) packaged for %s, not publishing",
                len(artifacts),
                self.release_tag,
            )
            return ReleaseReport(
                release_tag=self.release_tag,
                outcome=ReleaseOutcome.PACKAGED,
                targets=statuses,
                bundle=ReleaseBundle(release_tag=self.release_tag, artifacts=artifacts),
            )

        bundle: ReleaseBundle | None = None
        try:
            notes = self.publisher.generate_notes(self.release_tag, artifacts)
            bundle = ReleaseBundle(
                release_tag=self.release_tag, artifacts=artifacts, notes=notes
            )
            publish_result = self.publisher.publish(bundle)
        except PublishFailure as e:
            publish_result = PublishResult(success=False, message=e.reason, code=e.code)
        except Exception as e:
            logger.error(
                "Publisher raised %s: %s", type(e).__name__, e, exc_info=e
            )
            publish_result = PublishResult(
                success=False,
                message=f"{type(e).__name__}: {e}",
                code=PUBLISH_FAILED,
            )

        if publish_result.success:
            outcome = ReleaseOutcome.PUBLISHED
            logger.info("Release %s published", self.release_tag)
        else:
            outcome = ReleaseOutcome.PUBLISH_FAILED
            logger.error(
                "Release %s publish failed: %s; artifacts kept in %s",
                self.release_tag,
                publish_result.message,
                self.packager.dist_dir,
            )

        return ReleaseReport(
            release_tag=self.release_tag,
            outcome=outcome,
            targets=statuses,
            bundle=bundle,
            publish_result=publish_result,
        )


__all__ = ["ReleaseOrchestrator"]
