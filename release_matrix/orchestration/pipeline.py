"""Fan-out/fan-in execution of per-target pipelines.

Every target runs its own pipeline on a bounded thread pool. The caller
gets back one terminal status per target, in matrix order, only after
every pipeline has finished or the run timeout elapsed and in-flight
builds were cancelled.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path

from release_matrix.builds.runner import BuildStep
from release_matrix.report import TargetStatus
from release_matrix.types import BuildResult, TargetSpec, TargetState

logger = logging.getLogger(__name__)

TargetWork = Callable[[TargetStatus, threading.Event], None]


def build_target(
    status: TargetStatus,
    build_step: BuildStep,
    source_root: Path,
    timeout: float,
    cancel_event: threading.Event,
) -> BuildResult | None:
    """Run the build stage for one target and record its outcome.

    Returns:
        The BuildResult, or None if the run was cancelled before the
        build started.
    """
    if cancel_event.is_set():
        status.cancel()
        return None
    status.transition(TargetState.BUILDING)
    result = build_step.build(status.target, source_root, timeout, cancel_event)
    status.record_build(result, cancelled=cancel_event.is_set())
    return result


def _record_crash(status: TargetStatus, exc: BaseException) -> None:
    """Record an unexpected error raised by a target pipeline."""
    if status.state is TargetState.PACKAGING:
        state = TargetState.PACKAGE_FAILED
    else:
        state = TargetState.BUILD_FAILED
    logger.error(
        "[%s] Pipeline raised %s: %s",
        status.target.triple,
        type(exc).__name__,
        exc,
        exc_info=exc,
    )
    status.fail(state, getattr(exc, "code", "internal_error"), f"{type(exc).__name__}: {exc}")


def fan_out(
    targets: Sequence[TargetSpec],
    work: TargetWork,
    max_workers: int,
    run_timeout: float | None = None,
) -> tuple[list[TargetStatus], bool]:
    """Run ``work`` for every target in parallel and join.

    Args:
        targets: Targets in matrix order.
        work: Per-target pipeline; records its progress on the status.
        max_workers: Thread pool size.
        run_timeout: Global timeout in seconds (None = wait for all).

    Returns:
        Tuple of (statuses in matrix order, whether the run timed out).
    """
    statuses = [TargetStatus(target=t) for t in targets]
    cancel_event = threading.Event()
    timed_out = False

    executor = ThreadPoolExecutor(
        max_workers=max_workers, thread_name_prefix="release-matrix"
    )
    futures: dict[Future[None], TargetStatus] = {}
    try:
        for status in statuses:
            futures[executor.submit(work, status, cancel_event)] = status
        _, not_done = wait(futures, timeout=run_timeout)
        if not_done:
            timed_out = True
            logger.error(
                "Run timeout of %ss elapsed with %d target(s) unfinished; cancelling",
                run_timeout,
                len(not_done),
            )
            cancel_event.set()
    finally:
        executor.shutdown(wait=True, cancel_futures=True)

    for future, status in futures.items():
        if future.cancelled():
            status.cancel()
            continue
        exc = future.exception()
        if exc is not None:
            _record_crash(status, exc)

    return statuses, timed_out


__all__ = ["TargetWork", "build_target", "fan_out"]
