"""Lazy ref resolution for shallow CI checkouts.

CI runners usually clone with ``--depth=1``. Rather than requiring full history,
refs are fetched on demand with the smallest depth that makes them resolvable.
"""

from __future__ import annotations

import logging
from pathlib import Path

from monoci.exec import run_git

logger = logging.getLogger(__name__)

PARENT_REF = "HEAD^"
TEMP_REF_NAMESPACE = "refs/temp"


def current_head(repo_root: Path) -> str:
    """Return the commit hash currently checked out."""
    return run_git(["rev-parse", "HEAD"], repo_root=repo_root).stdout.strip()


def ensure_fetched(ref: str, *, repo_root: Path, remote: str = "origin") -> str:
    """Resolve a ref to a commit hash, fetching it shallowly if needed.

    Args:
        ref: Branch name, tag, commit hash, or ``HEAD^``
        repo_root: Repository root
        remote: Remote to fetch from

    Returns:
        Full commit hash for the ref

    Raises:
        ExecError: If the ref cannot be fetched or resolved
    """
    local = run_git(["show", "--no-patch", "--format=%H", ref], repo_root=repo_root, check=False)
    if local.success:
        return local.stdout.strip()

    if ref == PARENT_REF:
        # Parent of a depth-1 checkout: deepen by one commit and resolve locally.
        head_sha = current_head(repo_root)
        logger.info("Fetching parent of %s", head_sha)
        run_git(["fetch", "--depth=2", remote, head_sha], repo_root=repo_root)
        return run_git(["rev-parse", PARENT_REF], repo_root=repo_root).stdout.strip()

    temp_ref = f"{TEMP_REF_NAMESPACE}/{ref}"
    logger.info("Fetching ref: %s", ref)
    run_git(["fetch", "--depth=1", remote, f"{ref}:{temp_ref}"], repo_root=repo_root)
    return run_git(["show", "--no-patch", "--format=%H", temp_ref], repo_root=repo_root).stdout.strip()


def ensure_checkout(head_ref: str, *, repo_root: Path, remote: str = "origin") -> str:
    """Check out the commit for ``head_ref`` unless it is already HEAD.

    Returns:
        The head commit hash
    """
    logger.info("Checking for head ref: %s", head_ref)
    head_sha = ensure_fetched(head_ref, repo_root=repo_root, remote=remote)
    current_sha = current_head(repo_root)
    if head_sha == current_sha:
        logger.info("Already at head SHA: %s", head_sha)
    else:
        logger.info("Checking out head SHA: %s", head_sha)
        run_git(["checkout", head_sha], repo_root=repo_root)
    return head_sha
