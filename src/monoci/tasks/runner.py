"""Run the bundle step and configured tasks inside package directories.

Every subprocess gets its working directory through ``cwd=`` so the process
working directory is never changed. Failures are returned as data; a failing
task never stops the tasks after it. Only a failed bundle step short-circuits,
and only for its own directory.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from monoci import ui
from monoci.config import Settings
from monoci.exec import run_streamed
from monoci.tasks.types import BUNDLE_TASK, TOPLEVEL, FailureRecord, RunPlan, TaskSpec

logger = logging.getLogger(__name__)


def run_task_command(argv: list[str], cwd: Path) -> int:
    """Invoke one task subprocess; returns its exit code."""
    logger.debug("Running %s in %s", " ".join(argv), cwd)
    return run_streamed(argv, cwd=cwd)


def bundle_argv(plan: RunPlan, settings: Settings) -> list[str]:
    assert plan.bundle_mode is not None
    return [*settings.bundle_command, plan.bundle_mode.value, f"--retry={plan.bundle_retry}"]


def task_argv(task: TaskSpec, plan: RunPlan, settings: Settings) -> list[str]:
    override = settings.task_overrides.get(task.name)
    if override:
        return [*override, *plan.verbosity_flags]
    return [*settings.task_command, task.name, *plan.verbosity_flags]


def _run_bundle(label: str, cwd: Path, plan: RunPlan, settings: Settings) -> FailureRecord | None:
    ui.step(label, BUNDLE_TASK)
    if run_task_command(bundle_argv(plan, settings), cwd) != 0:
        ui.failure(label, BUNDLE_TASK)
        return FailureRecord(label, BUNDLE_TASK)
    return None


def run_directory(
    directory: str,
    plan: RunPlan,
    *,
    repo_root: Path,
    settings: Settings,
) -> list[FailureRecord]:
    """Run the bundle step and every planned task in one package directory.

    Args:
        directory: Repository-relative package directory
        plan: Run plan shared by all directories
        repo_root: Repository root
        settings: Effective settings

    Returns:
        Failures recorded for this directory, in execution order
    """
    cwd = repo_root / directory

    if plan.bundle_mode is not None:
        bundle_failure = _run_bundle(directory, cwd, plan, settings)
        if bundle_failure is not None:
            # Broken dependencies make the remaining tasks meaningless.
            return [bundle_failure]

    failures: list[FailureRecord] = []
    for task in plan.tasks:
        ui.step(directory, task.name)
        if run_task_command(task_argv(task, plan, settings), cwd) != 0:
            ui.failure(directory, task.name)
            failures.append(FailureRecord(directory, task.name))
    return failures


def run_toplevel(plan: RunPlan, *, repo_root: Path, settings: Settings) -> list[FailureRecord]:
    """Run the bundle step and optional root lint at the repository root."""
    if plan.bundle_mode is not None:
        bundle_failure = _run_bundle(TOPLEVEL, repo_root, plan, settings)
        if bundle_failure is not None:
            return [bundle_failure]

    failures: list[FailureRecord] = []
    if plan.toplevel_lint:
        ui.step(TOPLEVEL, "rubocop")
        if run_task_command(list(settings.toplevel_lint_command), repo_root) != 0:
            ui.failure(TOPLEVEL, "rubocop")
            failures.append(FailureRecord(TOPLEVEL, "rubocop"))
    return failures


def run_directories(
    directories: Sequence[str],
    plan: RunPlan,
    *,
    repo_root: Path,
    settings: Settings,
    jobs: int = 1,
) -> list[FailureRecord]:
    """Run every directory and merge failures in directory order.

    With ``jobs > 1`` directories run on a thread pool; each worker returns its
    own failure list, so merged output keeps the same order as a serial run.
    """
    if jobs <= 1 or len(directories) <= 1:
        results = [
            run_directory(d, plan, repo_root=repo_root, settings=settings) for d in directories
        ]
    else:
        with ThreadPoolExecutor(max_workers=jobs) as executor:
            futures = [
                executor.submit(run_directory, d, plan, repo_root=repo_root, settings=settings)
                for d in directories
            ]
            results = [future.result() for future in futures]

    return [failure for per_dir in results for failure in per_dir]
