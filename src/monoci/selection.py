"""Package directory selection.

Selection is an ordered chain of strategies. Each strategy either returns the
directories to process or None to pass to the next one:

1. ExplicitPackages - package names given on the command line
2. AllPackages - every package, optionally only those holding certain files
3. CurrentDirectory - the package containing the invocation directory
4. ChangedDirectories - packages touched by a commit range or working tree

The returned list is always deduplicated, gate-filtered and sorted.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from monoci import ui
from monoci.events import SCHEDULE, resolve_refs
from monoci.gate import VersionGate
from monoci.git.changes import changed_directories, changed_files
from monoci.git.refs import ensure_checkout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionRequest:
    """Inputs that decide which directories a run covers."""

    packages: tuple[str, ...] | None = None
    all_packages: bool = False
    with_files: tuple[str, ...] = ()
    event_name: str = ""
    event_payload: str = ""
    base: str | None = None
    head: str | None = None


@dataclass(frozen=True)
class SelectionContext:
    request: SelectionRequest
    gate: VersionGate
    repo_root: Path
    cwd: Path

    @property
    def remote(self) -> str:
        return self.gate.settings.remote


class SelectionStrategy(Protocol):
    name: str

    def select(self, context: SelectionContext) -> list[str] | None: ...


class ExplicitPackages:
    name = "explicit"

    def select(self, context: SelectionContext) -> list[str] | None:
        packages = context.request.packages
        if packages is None:
            return None
        return context.gate.filter_package_dirs(packages)


class AllPackages:
    name = "all"

    def select(self, context: SelectionContext) -> list[str] | None:
        request = context.request
        if not (request.all_packages or request.event_name == SCHEDULE):
            return None

        extension = context.gate.settings.spec_extension
        dirs = [
            spec.parent.name
            for spec in context.repo_root.glob(f"*/*.{extension}")
            if spec.stem == spec.parent.name
        ]
        if request.with_files:
            ui.heading(f"Running for all packages with the following files: {','.join(request.with_files)}")
            dirs = [
                d for d in dirs
                if any((context.repo_root / d / name).exists() for name in request.with_files)
            ]
        else:
            ui.heading("Running for all packages")
        return context.gate.filter_package_dirs(dirs)


class CurrentDirectory:
    name = "current-dir"

    def select(self, context: SelectionContext) -> list[str] | None:
        root = context.repo_root.resolve()
        cwd = context.cwd.resolve()
        if cwd == root or not cwd.is_relative_to(root):
            return None

        relative = cwd.relative_to(root).as_posix()
        dirs = context.gate.filter_package_dirs(
            changed_directories([f"{relative}/."], repo_root=context.repo_root)
        )
        if not dirs:
            return None
        ui.heading(f"Running in current directory: {dirs[0]}")
        return dirs


class ChangedDirectories:
    name = "changes"

    def select(self, context: SelectionContext) -> list[str] | None:
        request = context.request
        ui.heading("Evaluating changes.")
        base_ref, head_ref = resolve_refs(
            request.event_name,
            request.event_payload,
            local_base=request.base,
            local_head=request.head,
        )
        if head_ref is not None:
            ensure_checkout(head_ref, repo_root=context.repo_root, remote=context.remote)

        files = changed_files(base_ref, repo_root=context.repo_root, remote=context.remote)
        if files:
            ui.heading("Files changed:")
            for path in sorted(files):
                ui.item(path)
        else:
            ui.heading("No files changed.")

        dirs = context.gate.filter_package_dirs(
            changed_directories(files, repo_root=context.repo_root)
        )
        if dirs:
            ui.heading("Package directories changed:")
            for directory in dirs:
                ui.item(directory)
        else:
            ui.heading("No package directories changed.")
        return dirs


DEFAULT_STRATEGIES: tuple[SelectionStrategy, ...] = (
    ExplicitPackages(),
    AllPackages(),
    CurrentDirectory(),
    ChangedDirectories(),
)


def select_directories(
    request: SelectionRequest,
    *,
    gate: VersionGate,
    repo_root: Path,
    cwd: Path,
    strategies: Sequence[SelectionStrategy] = DEFAULT_STRATEGIES,
) -> list[str]:
    """Return the sorted package directories the run should process."""
    context = SelectionContext(request=request, gate=gate, repo_root=repo_root, cwd=cwd)
    for strategy in strategies:
        dirs = strategy.select(context)
        if dirs is not None:
            logger.debug("Selected %d directories via %s strategy", len(dirs), strategy.name)
            return sorted(set(dirs))
    return []
