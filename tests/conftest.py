"""Pytest configuration and fixtures for monoci tests."""
import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest

from monoci.config import Settings


def pytest_sessionfinish(session, exitstatus):
    """Check that coverage data was collected if --cov was requested.

    This prevents silent "no data collected" scenarios that produce 0% coverage
    without failing the test run.
    """
    cov_enabled = any("--cov" in str(arg) for arg in session.config.args)

    if not cov_enabled:
        return

    cwd = Path.cwd()
    coverage_files = list(cwd.glob(".coverage*"))

    if not coverage_files:
        pytest.exit(
            "Coverage was enabled but no data was collected. "
            "Check that tests import from 'monoci' (the package) not 'src/monoci' (filesystem path).",
            returncode=1
        )


@pytest.fixture
def settings() -> Settings:
    """Default settings with a pinned toolchain version (no probe subprocess)."""
    return Settings(toolchain_version="3.3.0")


@pytest.fixture
def make_package() -> Callable[..., Path]:
    """Factory that lays out a package directory under a repository root."""

    def _make(
        root: Path,
        name: str,
        required: str | None = '">= 2.7"',
        manifest: bool = True,
        spec: bool = True,
    ) -> Path:
        pkg = root / name
        pkg.mkdir(parents=True, exist_ok=True)
        if manifest:
            (pkg / "Gemfile").write_text('source "https://rubygems.org"\ngemspec\n')
        if spec:
            lines = ["Gem::Specification.new do |gem|", f'  gem.name = "{name}"']
            if required is not None:
                lines.append(f"  gem.required_ruby_version = {required}")
            lines.append("end")
            (pkg / f"{name}.gemspec").write_text("\n".join(lines) + "\n")
        return pkg

    return _make


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Create a temporary git repository with one commit."""
    repo = tmp_path / "mono"
    repo.mkdir()

    subprocess.run(["git", "init"], cwd=repo, check=True, capture_output=True)
    subprocess.run(
        ["git", "config", "user.email", "test@example.com"],
        cwd=repo,
        check=True,
        capture_output=True,
    )
    subprocess.run(
        ["git", "config", "user.name", "Test User"],
        cwd=repo,
        check=True,
        capture_output=True,
    )

    (repo / "README.md").write_text("# Mono\n")
    subprocess.run(["git", "add", "README.md"], cwd=repo, check=True, capture_output=True)
    subprocess.run(
        ["git", "commit", "-m", "Initial commit"],
        cwd=repo,
        check=True,
        capture_output=True,
    )

    return repo
