# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Shell-free wrappers around ``subprocess`` used to run checkers."""

from __future__ import annotations

import os
import shutil

# Bandit: commands come from resolved checker plans and are never run through a shell.
import subprocess  # nosec B404 suppression_valid: Shell-free subprocess wrapper enforces safe execution.
import threading
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from ..errors import ExecutionError

TIMEOUT_RETURNCODE: Final[int] = 124
_TERMINATE_GRACE_SECONDS: Final[float] = 5.0


@dataclass(frozen=True, slots=True)
class ProcessOutput:
    """Exit status, decoded streams and wall-clock duration of a finished process."""

    returncode: int
    stdout: str
    stderr: str
    duration_ms: int
    non_utf8: bool = False

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


class ProcessRegistry:
    """Track live child processes so an interrupted run can terminate them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._live: set[subprocess.Popen[bytes]] = set()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def register(self, process: subprocess.Popen[bytes]) -> None:
        with self._lock:
            if self._cancelled:
                process.kill()
            self._live.add(process)

    def unregister(self, process: subprocess.Popen[bytes]) -> None:
        with self._lock:
            self._live.discard(process)

    def terminate_all(self) -> int:
        """Terminate every live process and refuse new ones.

        Returns:
            int: Number of processes that were signalled.
        """

        with self._lock:
            self._cancelled = True
            live = list(self._live)
        for process in live:
            if process.poll() is None:
                process.terminate()
        for process in live:
            try:
                process.wait(timeout=_TERMINATE_GRACE_SECONDS)
            except subprocess.TimeoutExpired:
                process.kill()
        return len(live)


def _decode(payload: bytes | None) -> tuple[str, bool]:
    if not payload:
        return "", False
    try:
        return payload.decode("utf-8"), False
    except UnicodeDecodeError:
        return payload.decode("utf-8", errors="replace"), True


def _normalize_args(args: Sequence[str]) -> list[str]:
    """Resolve the executable in ``args`` against ``PATH``.

    Raises:
        ExecutionError: If no arguments are given or the executable is missing.
    """

    if not args:
        raise ExecutionError("subprocess command requires at least one argument", command="")
    head, *rest = args
    if Path(head).is_absolute() or os.sep in head:
        return [head, *rest]
    resolved = shutil.which(head)
    if resolved is None:
        raise ExecutionError(f"Executable '{head}' was not found on PATH", command=" ".join(args))
    return [resolved, *rest]


def run_command(
    args: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
    registry: ProcessRegistry | None = None,
) -> ProcessOutput:
    """Run ``args`` to completion and capture its output.

    A nonzero exit status is not an error: checkers report findings that way.

    Args:
        args: Command and argument sequence to execute.
        cwd: Working directory of the child.
        env: Variables added on top of the current environment.
        timeout: Seconds after which the child is killed.
        registry: Registry notified of the live process for cancellation.

    Returns:
        ProcessOutput: Captured result. A timeout yields return code 124 and
        a note on stderr.

    Raises:
        ExecutionError: If the process cannot be spawned or the run was
            cancelled before it started.
    """

    normalized = _normalize_args(args)
    command = " ".join(args)
    if registry is not None and registry.cancelled:
        raise ExecutionError("run cancelled", command=command)
    merged_env = {**os.environ, **env} if env else None
    started = time.monotonic()
    try:
        # Bandit: argument lists are passed directly without shell expansion.
        process = subprocess.Popen(  # nosec B603 - controlled arguments, not user supplied
            normalized,
            cwd=str(cwd) if cwd is not None else None,
            env=merged_env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as exc:
        raise ExecutionError(f"failed to spawn `{command}`: {exc}", command=command) from exc

    if registry is not None:
        registry.register(process)
    timed_out = False
    try:
        try:
            raw_stdout, raw_stderr = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            raw_stdout, raw_stderr = process.communicate()
            timed_out = True
    finally:
        if registry is not None:
            registry.unregister(process)
    duration_ms = int((time.monotonic() - started) * 1000)

    stdout, stdout_lossy = _decode(raw_stdout)
    stderr, stderr_lossy = _decode(raw_stderr)
    returncode = process.returncode
    if timed_out:
        note = f"Command timed out after {timeout:.1f}s"
        stderr = f"{stderr}\n{note}" if stderr else note
        returncode = TIMEOUT_RETURNCODE
    return ProcessOutput(
        returncode=returncode,
        stdout=stdout,
        stderr=stderr,
        duration_ms=duration_ms,
        non_utf8=stdout_lossy or stderr_lossy,
    )


__all__ = ["ProcessOutput", "ProcessRegistry", "TIMEOUT_RETURNCODE", "run_command"]
