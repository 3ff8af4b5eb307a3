"""End-to-end CI run: select directories, run tasks, report."""

from __future__ import annotations

import logging
import random
from pathlib import Path

from monoci import ui
from monoci.config import Settings
from monoci.errors import SetupError
from monoci.exec import ExecError, run_git
from monoci.gate import VersionGate
from monoci.report import CiReport, build_report, write_report_files
from monoci.selection import SelectionRequest, select_directories
from monoci.tasks.runner import run_directories, run_toplevel
from monoci.tasks.types import FailureRecord, RunPlan

logger = logging.getLogger(__name__)


def resolve_repo_root(repo: Path | None = None) -> Path:
    """Resolve git repo root from cwd or explicit path."""
    probe = (repo or Path.cwd()).resolve()
    try:
        out = run_git(["rev-parse", "--show-toplevel"], repo_root=probe)
    except (ExecError, FileNotFoundError) as exc:
        raise SetupError(f"unable to resolve git repo root from {probe}: {exc}") from exc
    root = out.stdout.strip()
    if not root:
        raise SetupError(f"unable to resolve git repo root from {probe}: empty output")
    return Path(root).resolve()


def shuffled(directories: list[str], seed: int | None = None) -> list[str]:
    """Return a shuffled copy so repeated runs do not share an ordering bias."""
    order = list(directories)
    random.Random(seed).shuffle(order)
    return order


def run_ci(
    request: SelectionRequest,
    plan: RunPlan,
    *,
    repo_root: Path,
    settings: Settings,
    cwd: Path | None = None,
    jobs: int = 1,
    seed: int | None = None,
    toplevel: bool = False,
    report_dir: Path | None = None,
) -> CiReport:
    """Run the configured tasks in every selected package directory.

    Args:
        request: Directory selection inputs
        plan: Tasks and bundle mode
        repo_root: Repository root
        settings: Effective settings
        cwd: Invocation directory, used by current-directory selection
        jobs: Number of directories to run concurrently
        seed: Seed for the directory shuffle
        toplevel: Also run the bundle step (and root lint) at the repo root
        report_dir: Optional directory for CI_REPORT.json / CI_REPORT.md

    Returns:
        CiReport with every recorded failure

    Raises:
        SetupError: For unusable payloads, config or toolchain
        ExecError: For git operations that cannot complete
    """
    gate = VersionGate(repo_root, settings)
    directories = select_directories(
        request,
        gate=gate,
        repo_root=repo_root,
        cwd=cwd or Path.cwd(),
    )

    failures: list[FailureRecord] = []
    if toplevel:
        failures.extend(run_toplevel(plan, repo_root=repo_root, settings=settings))

    order = shuffled(directories, seed)
    logger.debug("Execution order: %s", order)
    failures.extend(
        run_directories(order, plan, repo_root=repo_root, settings=settings, jobs=jobs)
    )

    report = build_report(failures, directories=directories, tasks=plan.task_names)
    print_report(report)

    if report_dir is not None:
        paths = write_report_files(report, report_dir)
        logger.info("Report written to %s", paths["json"])
    return report


def print_report(report: CiReport) -> None:
    ui.console.print()
    if report.ok:
        ui.console.print(report.text, style="bold green", markup=False)
        return
    ui.console.print(report.text.splitlines()[0], style="bold red", markup=False)
    for failure in report.failures:
        ui.console.print(str(failure), style="yellow", markup=False, highlight=False)
