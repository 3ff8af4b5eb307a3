"""Tests for the monoci CLI."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from monoci import __version__
from monoci.cli import cli

runner = CliRunner()


@pytest.fixture
def mono(git_repo: Path, make_package) -> Path:
    for name in ("storage", "pubsub"):
        make_package(git_repo, name)
    return git_repo


@pytest.fixture
def task_calls(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, tuple[str, ...]]]:
    recorded: list[tuple[str, tuple[str, ...]]] = []

    def fake(argv: list[str], cwd: Path) -> int:
        recorded.append((cwd.name, tuple(argv)))
        return 1 if argv[:2] == ["toys", "rubocop"] and cwd.name == "storage" else 0

    monkeypatch.setattr("monoci.tasks.runner.run_task_command", fake)
    return recorded


def test_version():
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_run_requires_a_task_flag(mono: Path):
    result = runner.invoke(cli, ["run", "--repo-root", str(mono), "--packages", "storage"])
    assert result.exit_code == 2
    assert "at least one task flag is required" in result.output


def test_run_failure_exit_code(mono: Path, task_calls):
    result = runner.invoke(
        cli,
        [
            "run",
            "--repo-root", str(mono),
            "--packages", "storage,pubsub",
            "--toolchain-version", "3.3.0",
            "--test", "--rubocop", "--no-bundle",
        ],
    )

    assert result.exit_code == 1
    assert "FAILURES:" in result.output
    assert "storage: rubocop" in result.output
    assert sorted(task_calls) == [
        ("pubsub", ("toys", "rubocop")),
        ("pubsub", ("toys", "test")),
        ("storage", ("toys", "rubocop")),
        ("storage", ("toys", "test")),
    ]


def test_run_success_exit_code(mono: Path, task_calls):
    result = runner.invoke(
        cli,
        [
            "run",
            "--repo-root", str(mono),
            "--packages", "pubsub",
            "--toolchain-version", "3.3.0",
            "--all-tasks", "--no-linkinator",
            "--bundle-retry", "5",
            "-v",
        ],
    )

    assert result.exit_code == 0
    assert "CI passed" in result.output
    assert task_calls[0] == ("pubsub", ("bundle", "install", "--retry=5"))
    assert [argv[1] for _, argv in task_calls[1:]] == ["test", "rubocop", "build", "yard"]
    assert all(argv[-1] == "--verbose" for _, argv in task_calls[1:])


def test_run_uses_working_tree_changes(mono: Path, task_calls):
    result = runner.invoke(
        cli,
        ["run", "--repo-root", str(mono), "--toolchain-version", "3.3.0", "--build", "--no-bundle"],
    )

    # Both packages are untracked, so porcelain reports "storage/" and "pubsub/"
    # without a path below them: nothing is selected.
    assert result.exit_code == 0
    assert "No package directories changed." in result.output
    assert task_calls == []


def test_bad_payload_is_fatal(mono: Path, tmp_path: Path, task_calls):
    payload = tmp_path / "event.json"
    payload.write_text("{broken", encoding="utf-8")

    result = runner.invoke(
        cli,
        [
            "run",
            "--repo-root", str(mono),
            "--toolchain-version", "3.3.0",
            "--github-event-name", "push",
            "--github-event-payload", str(payload),
            "--test",
        ],
    )

    assert result.exit_code == 2
    assert "Invalid JSON" in result.output
    assert task_calls == []


def test_run_writes_report(mono: Path, tmp_path: Path, task_calls):
    out = tmp_path / "reports"
    result = runner.invoke(
        cli,
        [
            "run",
            "--repo-root", str(mono),
            "--packages", "storage",
            "--toolchain-version", "3.3.0",
            "--rubocop", "--no-bundle",
            "--report-dir", str(out),
        ],
    )

    assert result.exit_code == 1
    data = json.loads((out / "CI_REPORT.json").read_text(encoding="utf-8"))
    assert data["failures"] == [{"directory": "storage", "task": "rubocop"}]


def test_dirs_lists_all_packages(mono: Path, make_package):
    make_package(mono, "legacy", required='"< 2.0"')
    result = runner.invoke(
        cli,
        ["dirs", "--repo-root", str(mono), "--all-packages", "--toolchain-version", "3.3.0"],
    )

    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert lines[-2:] == ["pubsub", "storage"]
    assert "legacy" not in lines


def test_dirs_schedule_event(mono: Path):
    result = runner.invoke(
        cli,
        ["dirs", "--repo-root", str(mono), "--github-event-name", "schedule", "--toolchain-version", "3.3.0"],
    )

    assert result.exit_code == 0
    assert result.output.splitlines()[-2:] == ["pubsub", "storage"]
