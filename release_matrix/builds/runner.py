"""Build runner for executing the external toolchain.

This module handles:
- Composing the toolchain command for a target triple
- Executing builds with subprocess in a target-qualified output directory
- Capturing stdout/stderr to log files
- Enforcing per-target timeouts and run-level cancellation

The toolchain is opaque: a command that turns the source tree and a
target triple into a binary, or fails.
"""

from __future__ import annotations

import logging
import os
import shlex
import signal
import subprocess
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from release_matrix.config import DEFAULT_BUILD_COMMAND
from release_matrix.errors import BUILD_CANCELLED, BUILD_TIMEOUT, BuildFailure
from release_matrix.types import BuildOutcome, BuildResult, TargetSpec

logger = logging.getLogger(__name__)

# How often a running build checks its deadline and the cancel flag
POLL_INTERVAL = 0.2


class BuildStep(Protocol):
    """Capability to build one target."""

    def build(
        self,
        target: TargetSpec,
        source_root: Path,
        timeout: float,
        cancel_event: threading.Event | None = None,
    ) -> BuildResult:
        """Build ``target`` from ``source_root`` within ``timeout`` seconds."""
        ...


def compose_build_command(
    template: str,
    target: TargetSpec,
    target_dir: Path,
    binary_name: str,
) -> list[str]:
    """Compose the toolchain command for a target.

    The template is split with shell rules first, then ``{triple}``,
    ``{target_dir}`` and ``{binary_name}`` are replaced in each word, so
    substituted values never need quoting. Any other braces, such as
    ``${HOME}`` in a shell snippet, are passed through unchanged.

    Args:
        template: Command template, e.g. "cargo build --release --target {triple}".
        target: Target to build.
        target_dir: Target-qualified build directory.
        binary_name: Name of the produced binary.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    values = {
        "triple": target.triple,
        "target_dir": str(target_dir),
        "binary_name": binary_name,
    }
    words = shlex.split(template)
    for name, value in values.items():
        words = [word.replace("{" + name + "}", value) for word in words]
    return words


def binary_output_path(target_dir: Path, target: TargetSpec, binary_name: str) -> Path:
    """Return where the toolchain leaves the binary for a target.

    Args:
        target_dir: Target-qualified build directory.
        target: Target being built.
        binary_name: Name of the produced binary.

    Returns:
        Expected binary path (``.exe`` suffix for Windows targets).
    """
    filename = f"{binary_name}.exe" if target.is_windows else binary_name
    return target_dir / target.triple / "release" / filename


def _kill(proc: subprocess.Popen[bytes]) -> None:
    """Kill a build process and everything it spawned."""
    try:
        if os.name == "posix":
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except ProcessLookupError:
        pass
    proc.wait()


def _wait_for_process(
    proc: subprocess.Popen[bytes],
    deadline: float,
    timeout: float,
    cancel_event: threading.Event | None,
) -> int:
    """Wait for a build process, enforcing its deadline.

    Returns:
        The process exit code.

    Raises:
        BuildFailure: With code "timeout" or "cancelled" after killing the process.
    """
    while True:
        if cancel_event is not None and cancel_event.is_set():
            _kill(proc)
            raise BuildFailure("Build cancelled", code=BUILD_CANCELLED)
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            _kill(proc)
            raise BuildFailure(
                f"Build timed out after {timeout} seconds", code=BUILD_TIMEOUT
            )
        try:
            return proc.wait(timeout=min(POLL_INTERVAL, remaining))
        except subprocess.TimeoutExpired:
            continue


class CommandBuildStep:
    """Build step that runs a toolchain command per target.

    Each target builds into ``<output_dir>/build/<triple>``, exported to the
    command as ``CARGO_TARGET_DIR`` and ``RELMAT_TARGET_DIR``, so concurrent
    builds for different targets never share an output path.
    """

    def __init__(
        self,
        binary_name: str,
        output_dir: Path,
        command_template: str = DEFAULT_BUILD_COMMAND,
        env_override: dict[str, str] | None = None,
    ) -> None:
        self.binary_name = binary_name
        self.output_dir = output_dir
        self.command_template = command_template
        self.env_override = env_override or {}

    def target_dir(self, target: TargetSpec) -> Path:
        """Target-qualified build directory."""
        return self.output_dir / "build" / target.triple

    def build(
        self,
        target: TargetSpec,
        source_root: Path,
        timeout: float,
        cancel_event: threading.Event | None = None,
    ) -> BuildResult:
        """Execute the toolchain for one target.

        Args:
            target: Target to build.
            source_root: Checked-out source tree.
            timeout: Hard wall-clock timeout in seconds.
            cancel_event: Set by the orchestrator to abandon the build.

        Returns:
            BuildResult; failures are reported, never raised.
        """
        target_dir = self.target_dir(target)
        target_dir.mkdir(parents=True, exist_ok=True)
        log_path = target_dir / "build.log"
        binary_path = binary_output_path(target_dir, target, self.binary_name)

        cmd = compose_build_command(
            self.command_template, target, target_dir, self.binary_name
        )
        cmd_str = shlex.join(cmd)
        logger.info("[%s] Executing build: %s", target.triple, cmd_str)
        logger.debug("[%s] Working directory: %s", target.triple, source_root)

        env = dict(os.environ)
        env.update(self.env_override)
        env["CARGO_TARGET_DIR"] = str(target_dir)
        env["RELMAT_TARGET_DIR"] = str(target_dir)
        env["RELMAT_TARGET_TRIPLE"] = target.triple

        started_at = datetime.now(timezone.utc)
        deadline = time.monotonic() + timeout
        exit_code: int | None = None
        error_detail: str | None = None

        with log_path.open("w") as log_file:
            log_file.write(f"# Command: {cmd_str}\n")
            log_file.write(f"# Started: {started_at.isoformat()}\n")
            log_file.write(f"# CWD: {source_root}\n")
            log_file.write("# " + "=" * 70 + "\n\n")
            log_file.flush()
            output_offset = log_file.tell()

            try:
                proc = subprocess.Popen(
                    cmd,
                    cwd=source_root,
                    stdout=log_file,
                    stderr=subprocess.STDOUT,
                    env=env,
                    start_new_session=os.name == "posix",
                )
            except OSError as e:
                error_detail = f"Failed to execute build: {e}"
                logger.error("[%s] %s", target.triple, error_detail)
            else:
                try:
                    exit_code = _wait_for_process(proc, deadline, timeout, cancel_event)
                except BuildFailure as e:
                    exit_code = -1
                    error_detail = e.code
                    logger.error("[%s] %s. See log: %s", target.triple, e, log_path)
                    log_file.write(f"\n# {e.code.upper()}: {e}\n")

        finished_at = datetime.now(timezone.utc)

        if error_detail is None:
            output = _read_output(log_path, output_offset)
            if exit_code != 0:
                error_detail = output or f"Build failed with exit code {exit_code}"
                logger.error(
                    "[%s] Build failed with exit code %s. See log: %s",
                    target.triple,
                    exit_code,
                    log_path,
                )
            elif not binary_path.is_file():
                error_detail = f"Build produced no binary at {binary_path}\n{output}"
                logger.error("[%s] Missing output binary: %s", target.triple, binary_path)

        with log_path.open("a") as log_file:
            log_file.write(f"\n# Finished: {finished_at.isoformat()}\n")
            log_file.write(f"# Exit code: {exit_code}\n")
            duration = (finished_at - started_at).total_seconds()
            log_file.write(f"# Duration: {duration:.1f}s\n")

        if error_detail is not None:
            return BuildResult(
                target=target,
                outcome=BuildOutcome.FAILURE,
                error_detail=error_detail,
                log_path=log_path,
                exit_code=exit_code,
                started_at=started_at,
                finished_at=finished_at,
                command=cmd_str,
            )

        logger.info("[%s] Built %s", target.triple, binary_path)
        return BuildResult(
            target=target,
            outcome=BuildOutcome.SUCCESS,
            binary_path=binary_path,
            log_path=log_path,
            exit_code=exit_code,
            started_at=started_at,
            finished_at=finished_at,
            command=cmd_str,
        )


def _read_output(log_path: Path, offset: int) -> str:
    """Read the toolchain output captured after the log header."""
    with log_path.open("rb") as f:
        f.seek(offset)
        return f.read().decode("utf-8", errors="replace")


__all__ = [
    "POLL_INTERVAL",
    "BuildStep",
    "CommandBuildStep",
    "binary_output_path",
    "compose_build_command",
]
