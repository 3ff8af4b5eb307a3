"""Tests for the end-to-end CI run."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from monoci.config import Settings
from monoci.errors import SetupError
from monoci.orchestrator import resolve_repo_root, run_ci, shuffled
from monoci.selection import SelectionRequest
from monoci.tasks.types import BundleMode, FailureRecord, RunPlan, TaskSpec


@pytest.fixture
def calls(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, tuple[str, ...]]]:
    recorded: list[tuple[str, tuple[str, ...]]] = []

    def fake(argv: list[str], cwd: Path) -> int:
        recorded.append((cwd.name, tuple(argv)))
        return 1 if (cwd.name, argv[1]) == ("pubsub", "test") else 0

    monkeypatch.setattr("monoci.tasks.runner.run_task_command", fake)
    return recorded


def test_shuffled_is_a_seeded_permutation():
    dirs = [f"pkg{i}" for i in range(20)]
    first = shuffled(dirs, seed=42)

    assert sorted(first) == sorted(dirs)
    assert shuffled(dirs, seed=42) == first
    assert dirs == [f"pkg{i}" for i in range(20)]


def test_run_ci_executes_in_shuffled_order(
    tmp_path: Path, make_package, settings: Settings, monkeypatch: pytest.MonkeyPatch
) -> None:
    names = [f"pkg{i}" for i in range(8)]
    for name in names:
        make_package(tmp_path, name)
    visited: list[str] = []

    def fake(argv: list[str], cwd: Path) -> int:
        visited.append(cwd.name)
        return 1

    monkeypatch.setattr("monoci.tasks.runner.run_task_command", fake)
    plan = RunPlan(tasks=(TaskSpec("test"), TaskSpec("rubocop")), bundle_mode=None)

    report = run_ci(
        SelectionRequest(packages=tuple(names)),
        plan,
        repo_root=tmp_path,
        settings=settings,
        cwd=tmp_path,
        seed=3,
    )

    expected = shuffled(sorted(names), seed=3)
    assert visited == [name for name in expected for _ in range(2)]
    assert report.failures == [
        FailureRecord(name, task) for name in expected for task in ("test", "rubocop")
    ]
    assert report.directories == sorted(names)


def test_run_ci_reports_failures(tmp_path: Path, make_package, settings: Settings, calls) -> None:
    for name in ("storage", "pubsub", "bigquery"):
        make_package(tmp_path, name)
    plan = RunPlan(tasks=(TaskSpec("test"), TaskSpec("rubocop")), bundle_mode=BundleMode.INSTALL)

    report = run_ci(
        SelectionRequest(packages=("storage", "pubsub", "bigquery")),
        plan,
        repo_root=tmp_path,
        settings=settings,
        cwd=tmp_path,
        seed=7,
        report_dir=tmp_path / "out",
    )

    assert report.ok is False
    assert report.exit_code == 1
    assert report.failures == [FailureRecord("pubsub", "test")]
    assert report.directories == ["bigquery", "pubsub", "storage"]
    assert {name for name, _ in calls} == {"bigquery", "pubsub", "storage"}

    data = json.loads((tmp_path / "out" / "CI_REPORT.json").read_text(encoding="utf-8"))
    assert data["failures"] == [{"directory": "pubsub", "task": "test"}]


def test_run_ci_passes(tmp_path: Path, make_package, settings: Settings, calls) -> None:
    make_package(tmp_path, "storage")
    plan = RunPlan(tasks=(TaskSpec("build"),), bundle_mode=None)

    report = run_ci(
        SelectionRequest(packages=("storage",)),
        plan,
        repo_root=tmp_path,
        settings=settings,
        cwd=tmp_path,
    )

    assert report.ok is True
    assert calls == [("storage", ("toys", "build"))]


def test_toplevel_failures_come_first(tmp_path: Path, make_package, settings: Settings, monkeypatch) -> None:
    make_package(tmp_path, "storage")
    monkeypatch.setattr("monoci.tasks.runner.run_task_command", lambda argv, cwd: 1)
    plan = RunPlan(tasks=(TaskSpec("test"),), bundle_mode=BundleMode.INSTALL)

    report = run_ci(
        SelectionRequest(packages=("storage",)),
        plan,
        repo_root=tmp_path,
        settings=settings,
        cwd=tmp_path,
        toplevel=True,
    )

    assert report.failures == [FailureRecord("toplevel", "bundle"), FailureRecord("storage", "bundle")]


def test_resolve_repo_root_from_subdirectory(git_repo: Path) -> None:
    sub = git_repo / "storage" / "lib"
    sub.mkdir(parents=True)
    assert resolve_repo_root(sub) == git_repo.resolve()


def test_resolve_repo_root_outside_git(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    with pytest.raises(SetupError, match="unable to resolve git repo root"):
        resolve_repo_root(tmp_path)
