"""CI orchestration: build every target, package and publish nothing."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from release_matrix.builds.runner import BuildStep
from release_matrix.matrix.models import TargetMatrix
from release_matrix.orchestration.pipeline import build_target, fan_out
from release_matrix.report import CIReport, TargetStatus
from release_matrix.types import CIOutcome, TargetState

logger = logging.getLogger(__name__)


class CIOrchestrator:
    """Pre-merge gate that compiles the full matrix.

    Per target: pending -> building -> built | build_failed (or cancelled
    when the run timeout elapses).
    """

    def __init__(
        self,
        matrix: TargetMatrix,
        build_step: BuildStep,
        source_root: Path,
        build_timeout: float,
        run_timeout: float | None = None,
        max_workers: int = 2,
    ) -> None:
        self.matrix = matrix
        self.build_step = build_step
        self.source_root = source_root
        self.build_timeout = build_timeout
        self.run_timeout = run_timeout
        self.max_workers = max_workers

    def _run_target(self, status: TargetStatus, cancel_event: threading.Event) -> None:
        build_target(
            status, self.build_step, self.source_root, self.build_timeout, cancel_event
        )

    def run(self) -> CIReport:
        """Build every target and report.

        Returns:
            CIReport with outcome all_passed only if every target built.
        """
        logger.info("CI run: building %d target(s)", len(self.matrix))
        statuses, timed_out = fan_out(
            self.matrix.targets(), self._run_target, self.max_workers, self.run_timeout
        )

        if not timed_out and all(s.state is TargetState.BUILT for s in statuses):
            outcome = CIOutcome.ALL_PASSED
            logger.info("CI run passed for all %d target(s)", len(statuses))
        else:
            outcome = CIOutcome.SOME_FAILED
            for status in statuses:
                if status.state is not TargetState.BUILT:
                    logger.error(
                        "[%s] %s: %s",
                        status.target.triple,
                        status.state.value,
                        status.error_code,
                    )

        return CIReport(outcome=outcome, targets=statuses, timed_out=timed_out)


__all__ = ["CIOrchestrator"]
