"""CI result aggregation and report files."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import TextIO

from monoci.tasks.types import FailureRecord

PASSED_MESSAGE = "CI passed"
FAILED_MESSAGE = "FAILURES:"


@dataclass
class CiReport:
    """Final outcome of a CI run."""

    ok: bool
    failures: list[FailureRecord] = field(default_factory=list)
    directories: list[str] = field(default_factory=list)
    tasks: list[str] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    @property
    def text(self) -> str:
        if self.ok:
            return PASSED_MESSAGE
        return "\n".join([FAILED_MESSAGE, *(str(f) for f in self.failures)])


def build_report(
    failures: Sequence[FailureRecord],
    directories: Sequence[str] = (),
    tasks: Sequence[str] = (),
) -> CiReport:
    """Reduce recorded failures to a pass/fail report, keeping recorded order."""
    return CiReport(
        ok=not failures,
        failures=list(failures),
        directories=list(directories),
        tasks=list(tasks),
    )


def write_report_files(report: CiReport, out_dir: Path) -> dict[str, str]:
    """Write CI_REPORT.json and CI_REPORT.md into ``out_dir``."""
    out_dir.mkdir(parents=True, exist_ok=True)

    payload = {
        "schema_version": "1.0",
        "status": "passed" if report.ok else "failed",
        "exit_code": report.exit_code,
        "directories": report.directories,
        "tasks": report.tasks,
        "failures": [asdict(f) for f in report.failures],
    }
    json_path = out_dir / "CI_REPORT.json"
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)

    md_path = out_dir / "CI_REPORT.md"
    with open(md_path, "w", encoding="utf-8") as f:
        _write_markdown_report(f, report)

    return {"json": str(json_path), "markdown": str(md_path)}


def _write_markdown_report(f: TextIO, report: CiReport) -> None:
    f.write("# CI Report\n\n")
    status_emoji = "✅" if report.ok else "❌"
    f.write(f"**Status**: {status_emoji} {'PASSED' if report.ok else 'FAILED'}\n\n")

    f.write("## Directories\n\n")
    if report.directories:
        for directory in report.directories:
            f.write(f"- {directory}\n")
    else:
        f.write("- none\n")

    f.write("\n## Tasks\n\n")
    f.write(f"{', '.join(report.tasks) if report.tasks else 'none'}\n\n")

    if report.failures:
        f.write("## Failures\n\n")
        for failure in report.failures:
            f.write(f"- `{failure.directory}`: {failure.task}\n")
        f.write("\n")

    f.write("## Exit Code\n\n")
    f.write(f"{report.exit_code}\n")
