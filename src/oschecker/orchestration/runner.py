# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Run the resolved checker invocations of repositories."""

from __future__ import annotations

import logging
import math
import os
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field

from ..cache.repo import DbRepo
from ..cache.store import CacheStore
from ..cache.values import CacheValue
from ..checkers import needs_cargo_clean
from ..config.loader import Config
from ..config.models import RepoConfig
from ..config.resolve import SHELL, Resolve
from ..config.resolver import resolve_repo
from ..config.toolchain import ToolchainInfo, ToolchainRegistry
from ..diagnostics.raw import split_output
from ..errors import ConfigError, ExecutionError, OsCheckerError
from ..execution.process import ProcessOutput, ProcessRegistry, run_command
from ..layout.git import RepoIdentity, repo_identity
from ..layout.packages import CommandRunner, Package, Packages, discover_packages
from ..layout.targets import TargetDetection, detect_targets
from ..outputs.packages import PackagesOutputs
from ..outputs.reports import PackageReport, build_reports
from .errors import ErrorStage, RunError, RunErrors

LOGGER = logging.getLogger(__name__)


class CommandExecutor(Protocol):
    """Callable running one command; :func:`run_command` is the default."""

    def __call__(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        registry: ProcessRegistry | None = None,
    ) -> ProcessOutput: ...


def default_parallel_jobs() -> int:
    """Return a CPU count scaled down for concurrent checking.

    Returns:
        int: Rounded-down count representing roughly 75% of available CPU
        cores while guaranteeing a minimum of one worker.
    """

    cores = os.cpu_count() or 1
    return max(1, math.floor(cores * 0.75))


class RepoReport(BaseModel):
    """Everything produced for one repository, ready to be written as JSON."""

    repo: str
    sha: str
    branch: str
    toolchains: list[ToolchainInfo] = Field(default_factory=list)
    packages: list[PackageReport] = Field(default_factory=list)
    errors: list[RunError] = Field(default_factory=list)


@dataclass(slots=True)
class RunContext:
    """State owned by the run of one repository."""

    repo: str
    config: RepoConfig
    repo_root: Path
    packages: Packages
    db_repo: DbRepo
    jobs: int = field(default_factory=default_parallel_jobs)
    timeout: float | None = None
    toolchains: ToolchainRegistry = field(default_factory=ToolchainRegistry)
    processes: ProcessRegistry = field(default_factory=ProcessRegistry)
    errors: RunErrors = field(default_factory=RunErrors)
    executor: CommandExecutor = run_command
    detect: Callable[[Package], TargetDetection] | None = None

    @property
    def identity(self) -> RepoIdentity:
        return self.db_repo.identity

    @property
    def rerun(self) -> bool:
        return self.config.meta is not None and self.config.meta.rerun

    @property
    def use_last_cache(self) -> bool:
        return self.config.meta is not None and self.config.meta.use_last_cache

    def record(self, stage: ErrorStage, message: str, resolve: Resolve | None = None) -> None:
        error = RunError(
            stage=stage,
            repo=self.repo,
            message=message,
            pkg_name=resolve.pkg_name if resolve else None,
            checker=resolve.checker if resolve else None,
            cmd=resolve.cmd if resolve else None,
        )
        LOGGER.warning("%s: %s", error.location(), message)
        self.errors.add(error)


def _run_setup(ctx: RunContext) -> None:
    for step in ctx.config.setup or ():
        try:
            output = ctx.executor([SHELL, "-c", step], cwd=ctx.repo_root, registry=ctx.processes, timeout=ctx.timeout)
        except ExecutionError as exc:
            ctx.record(ErrorStage.SETUP, str(exc))
            continue
        if not output.succeeded:
            ctx.record(ErrorStage.SETUP, f"`{step}` exited with {output.returncode}:\n{output.stderr.strip()}")


def _cargo_clean(ctx: RunContext, resolve: Resolve) -> None:
    try:
        output = ctx.executor(["cargo", "clean"], cwd=resolve.cwd, registry=ctx.processes, timeout=ctx.timeout)
    except ExecutionError as exc:
        ctx.record(ErrorStage.EXECUTION, f"cargo clean failed: {exc}", resolve)
        return
    if not output.succeeded:
        LOGGER.warning("cargo clean failed in %s: %s", resolve.cwd, output.stderr.strip())


def execute_resolve(ctx: RunContext, resolve: Resolve, outputs: PackagesOutputs) -> None:
    """Run one invocation, cache its result and record it in ``outputs``.

    Args:
        ctx: Run context of the repository.
        resolve: Invocation to run.
        outputs: Collected results of the repository.

    Raises:
        ExecutionError: If the command cannot be spawned.
    """

    if needs_cargo_clean(resolve.checker):
        _cargo_clean(ctx, resolve)
    LOGGER.debug("running %s", resolve.describe())
    output = ctx.executor(
        resolve.argv,
        cwd=resolve.cwd,
        env=resolve.run_env,
        timeout=ctx.timeout,
        registry=ctx.processes,
    )
    if output.non_utf8:
        ctx.record(ErrorStage.EXECUTION, "output was not valid UTF-8; undecodable bytes were replaced", resolve)
    value = CacheValue.new(split_output(resolve.checker, output), duration_ms=output.duration_ms)
    cargo_value = outputs.push_output_with_cargo(resolve, value, output.stderr)
    if ctx.db_repo.write_cache(ctx.db_repo.key(resolve), value, replace=ctx.rerun) is None:
        ctx.record(ErrorStage.CACHE, "result could not be cached", resolve)
    if cargo_value is not None:
        cargo = resolve.new_cargo()
        ctx.db_repo.write_cache(ctx.db_repo.key(cargo), cargo_value, replace=True)


def _run_guarded(ctx: RunContext, resolve: Resolve, outputs: PackagesOutputs) -> None:
    try:
        execute_resolve(ctx, resolve, outputs)
    except OsCheckerError as exc:
        ctx.record(ErrorStage.EXECUTION, str(exc), resolve)


def _execute_in_parallel(ctx: RunContext, pending: Sequence[Resolve], outputs: PackagesOutputs) -> None:
    pool = ThreadPoolExecutor(max_workers=max(1, ctx.jobs))
    future_map: dict[Future[None], Resolve] = {}
    try:
        future_map = {pool.submit(_run_guarded, ctx, resolve, outputs): resolve for resolve in pending}
        for future in as_completed(future_map):
            future.result()
    except KeyboardInterrupt:
        LOGGER.warning("interrupted; cancelling %d pending invocations", sum(not f.done() for f in future_map))
        pool.shutdown(wait=False, cancel_futures=True)
        ctx.processes.terminate_all()
        raise
    finally:
        pool.shutdown(wait=True)


def run_repo(ctx: RunContext) -> RepoReport:
    """Resolve, look up, run and report every invocation of one repository.

    Invocations with a cached result are not run. The rest run on a pool of
    ``ctx.jobs`` threads; checkers that need a clean build run afterwards,
    one at a time, so ``cargo clean`` never races a concurrent build.

    Args:
        ctx: Run context of the repository.

    Returns:
        RepoReport: Reports, toolchains and errors of the repository.

    Raises:
        ConfigError: If the configuration does not match the repository.
        KeyboardInterrupt: When interrupted; live processes are terminated
            and results committed so far stay cached.
    """

    resolves = resolve_repo(
        ctx.repo,
        ctx.config,
        ctx.packages,
        detect_targets=ctx.detect,
        toolchains=ctx.toolchains,
    )
    outputs = PackagesOutputs()
    pending: list[Resolve] = []
    for resolve in resolves:
        if ctx.rerun or not outputs.fetch_cache(resolve, ctx.db_repo, use_last_cache=ctx.use_last_cache):
            pending.append(resolve)
    LOGGER.info("%s: %d invocations, %d cached", ctx.repo, len(resolves), len(resolves) - len(pending))

    if pending:
        _run_setup(ctx)
    parallel = [resolve for resolve in pending if not needs_cargo_clean(resolve.checker)]
    serial = [resolve for resolve in pending if needs_cargo_clean(resolve.checker)]
    _execute_in_parallel(ctx, parallel, outputs)
    try:
        for resolve in serial:
            _run_guarded(ctx, resolve, outputs)
    except KeyboardInterrupt:
        ctx.processes.terminate_all()
        raise

    return RepoReport(
        repo=ctx.repo,
        sha=ctx.identity.sha,
        branch=ctx.identity.branch,
        toolchains=ctx.toolchains.infos(),
        packages=build_reports(outputs),
        errors=ctx.errors.for_repo(ctx.repo),
    )


def repo_target_detector(repo_root: Path) -> Callable[[Package], TargetDetection]:
    def detect(package: Package) -> TargetDetection:
        return detect_targets(package.pkg_dir, repo_root)

    return detect


def run_repos(
    configs: Sequence[Config],
    repos_dir: Path,
    store: CacheStore,
    *,
    jobs: int | None = None,
    timeout: float | None = None,
    executor: CommandExecutor = run_command,
    runner: CommandRunner | None = None,
) -> tuple[list[RepoReport], RunErrors]:
    """Run every configured repository checked out under ``repos_dir``.

    A repository is expected at ``repos_dir/user/repo``. Errors local to a
    repository are recorded and the next repository is processed.

    Args:
        configs: Merged configurations.
        repos_dir: Directory holding the checkouts.
        store: Open cache store.
        jobs: Worker threads per repository; defaults to 75% of the CPUs.
        timeout: Seconds after which a checker is killed.
        executor: Runs checker commands.
        runner: Runs ``cargo metadata`` and ``git``.

    Returns:
        tuple[list[RepoReport], RunErrors]: Reports of repositories that
        could be resolved and every error of the run.
    """

    errors = RunErrors()
    reports: list[RepoReport] = []
    for entry in configs:
        try:
            user, name = entry.user_and_name
        except ConfigError as exc:
            errors.add(RunError(stage=ErrorStage.CONFIG, repo=entry.repo, message=str(exc)))
            continue
        repo_root = repos_dir / user / name
        if not repo_root.is_dir():
            errors.add(RunError(stage=ErrorStage.LAYOUT, repo=entry.repo, message=f"{repo_root} is not checked out"))
            continue
        try:
            packages = discover_packages(repo_root, runner=runner)
        except ExecutionError as exc:
            errors.add(RunError(stage=ErrorStage.LAYOUT, repo=entry.repo, message=str(exc)))
            continue
        ctx = RunContext(
            repo=entry.repo,
            config=entry.config,
            repo_root=repo_root,
            packages=packages,
            db_repo=DbRepo(store, repo_identity(repo_root, user, name, runner=runner)),
            jobs=jobs or default_parallel_jobs(),
            timeout=timeout,
            executor=executor,
            detect=repo_target_detector(repo_root),
            errors=errors,
        )
        try:
            reports.append(run_repo(ctx))
        except ConfigError as exc:
            errors.add(RunError(stage=ErrorStage.CONFIG, repo=entry.repo, message=str(exc)))
    return reports, errors


__all__ = [
    "CommandExecutor",
    "RepoReport",
    "RunContext",
    "default_parallel_jobs",
    "execute_resolve",
    "repo_target_detector",
    "run_repo",
    "run_repos",
]
