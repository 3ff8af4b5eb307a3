"""Changed file and package directory resolution."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from pathlib import Path

from monoci.exec import run_git
from monoci.git.refs import ensure_fetched

logger = logging.getLogger(__name__)

# First path segment of a file below the repository root.
_TOP_DIR_RE = re.compile(r"^([^/]+)/.+$")
# Versioned implementation directory, e.g. "storage-v2" wrapping "storage".
_VERSIONED_DIR_RE = re.compile(r"^(.+)-v\d[^-]*$")


def parse_status_output(status_output: str) -> list[str]:
    """Parse git porcelain status output into repository-relative paths."""
    changed_files: list[str] = []
    for raw_line in status_output.splitlines():
        if not raw_line.strip():
            continue
        path_fragment = raw_line[3:]
        if " -> " in path_fragment:
            path_fragment = path_fragment.split(" -> ", 1)[1]
        if path_fragment.startswith('"') and path_fragment.endswith('"'):
            path_fragment = path_fragment[1:-1]
        changed_files.append(path_fragment)
    return changed_files


def changed_files(base_ref: str | None, *, repo_root: Path, remote: str = "origin") -> set[str]:
    """Return paths changed relative to ``base_ref``, or uncommitted changes.

    Args:
        base_ref: Base ref or commit to diff against; None uses the working tree status
        repo_root: Repository root
        remote: Remote used when the base ref must be fetched

    Returns:
        Set of repository-relative file paths
    """
    if base_ref is None:
        logger.info("No base ref. Using local diff.")
        status = run_git(["status", "--porcelain"], repo_root=repo_root).stdout
        return set(parse_status_output(status))

    logger.info("Diffing from base ref: %s", base_ref)
    base_sha = ensure_fetched(base_ref, repo_root=repo_root, remote=remote)
    diff = run_git(["diff", "--name-only", base_sha], repo_root=repo_root).stdout
    return {line.strip() for line in diff.splitlines() if line.strip()}


def changed_directories(files: Iterable[str], *, repo_root: Path) -> set[str]:
    """Map changed files to the top-level directories that contain them.

    Files at the repository root are ignored. A versioned directory such as
    ``storage-v2`` also pulls in its unversioned wrapper ``storage`` when that
    directory exists.
    """
    dirs: set[str] = set()
    for path in files:
        match = _TOP_DIR_RE.match(path)
        if not match:
            continue
        directory = match.group(1)
        dirs.add(directory)

        versioned = _VERSIONED_DIR_RE.match(directory)
        if versioned and (repo_root / versioned.group(1)).is_dir():
            dirs.add(versioned.group(1))
    return dirs
