"""Task runner types."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

TASKS: tuple[str, ...] = ("test", "rubocop", "build", "yard", "linkinator")
BUNDLE_TASK = "bundle"
TOPLEVEL = "toplevel"


class BundleMode(str, Enum):
    """Dependency step performed before a directory's tasks."""

    INSTALL = "install"
    UPDATE = "update"


@dataclass(frozen=True)
class TaskSpec:
    """One named task from the fixed task vocabulary."""

    name: str
    separate_process: bool = True


@dataclass(frozen=True)
class FailureRecord:
    """A (directory, task) pair whose subprocess exited non-zero."""

    directory: str
    task: str

    def __str__(self) -> str:
        return f"{self.directory}: {self.task}"


@dataclass(frozen=True)
class RunPlan:
    """Tasks and bundle mode for a whole CI run."""

    tasks: tuple[TaskSpec, ...] = ()
    bundle_mode: BundleMode | None = BundleMode.INSTALL
    bundle_retry: int = 3
    verbosity_flags: tuple[str, ...] = ()
    toplevel_lint: bool = False

    @property
    def task_names(self) -> list[str]:
        return [task.name for task in self.tasks]


def verbosity_flags(verbose: int = 0, quiet: int = 0) -> tuple[str, ...]:
    """Flags forwarded to every task tool invocation."""
    return ("--verbose",) * verbose + ("--quiet",) * quiet


def determine_plan(
    task_toggles: Mapping[str, bool | None],
    *,
    all_tasks: bool = False,
    do_bundle: bool | None = None,
    bundle_update: bool = False,
    bundle_retry: int = 3,
    verbose: int = 0,
    quiet: int = 0,
    toplevel: bool = False,
) -> RunPlan:
    """Build the run plan from task toggles.

    A task runs when its toggle is True, or when it is unset and ``all_tasks``
    is requested. Bundling is on by default, ``bundle_update`` switches it to
    update mode and ``do_bundle=False`` turns it off.
    """
    tasks = []
    for name in TASKS:
        toggle = task_toggles.get(name)
        enabled = all_tasks if toggle is None else toggle
        if enabled:
            tasks.append(TaskSpec(name))

    if bundle_update:
        logger.info("Will update bundles for tested libraries")
        bundle_mode: BundleMode | None = BundleMode.UPDATE
    elif do_bundle is False:
        logger.info("Will not install bundles for tested libraries")
        bundle_mode = None
    else:
        logger.info("Will install bundles for tested libraries")
        bundle_mode = BundleMode.INSTALL

    plan = RunPlan(
        tasks=tuple(tasks),
        bundle_mode=bundle_mode,
        bundle_retry=bundle_retry,
        verbosity_flags=verbosity_flags(verbose, quiet),
        toplevel_lint=toplevel and "rubocop" in [t.name for t in tasks],
    )
    logger.info("Running the following tasks: %s", plan.task_names)
    return plan
