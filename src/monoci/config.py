"""Repository configuration loader.

Supports an optional ``.monoci.yaml`` (or ``.monoci.yml``) at the repository
root for customizing the package layout, toolchain, bundler and task commands.
Every key is optional; missing keys keep the Ruby gem monorepo defaults.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from importlib.resources import files
from pathlib import Path
from typing import Any

import yaml
from jsonschema.validators import Draft202012Validator

from monoci.errors import ConfigError

CONFIG_FILENAMES = (".monoci.yaml", ".monoci.yml")
SCHEMA_NAME = "monoci_config.schema.json"


@dataclass(frozen=True)
class Settings:
    """Effective settings for one CI run."""

    manifest: str = "Gemfile"
    spec_extension: str = "gemspec"
    version_field: str = "required_ruby_version"
    toolchain_command: tuple[str, ...] = ("ruby",)
    toolchain_version: str | None = None
    bundle_command: tuple[str, ...] = ("bundle",)
    bundle_retry: int = 3
    task_command: tuple[str, ...] = ("toys",)
    task_overrides: dict[str, tuple[str, ...]] = field(default_factory=dict)
    toplevel_lint_command: tuple[str, ...] = ("bundle", "exec", "rubocop", "-c", ".rubocop_root.yml")
    remote: str = "origin"
    source: Path | None = None

    def spec_filename(self, directory: str) -> str:
        """Name of the self-named spec file for a package directory."""
        return f"{directory}.{self.spec_extension}"

    def with_overrides(self, **changes: Any) -> Settings:
        """Return a copy with non-None overrides applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: Path | None = None) -> Settings:
        """Build settings from an already-validated config mapping."""
        layout = data.get("layout", {})
        toolchain = data.get("toolchain", {})
        bundle = data.get("bundle", {})
        tasks = data.get("tasks", {})
        toplevel = data.get("toplevel", {})
        git = data.get("git", {})
        defaults = cls()

        return cls(
            manifest=layout.get("manifest", defaults.manifest),
            spec_extension=layout.get("spec_extension", defaults.spec_extension),
            version_field=layout.get("version_field", defaults.version_field),
            toolchain_command=tuple(toolchain.get("command", defaults.toolchain_command)),
            toolchain_version=toolchain.get("version"),
            bundle_command=tuple(bundle.get("command", defaults.bundle_command)),
            bundle_retry=bundle.get("retry", defaults.bundle_retry),
            task_command=tuple(tasks.get("command", defaults.task_command)),
            task_overrides={name: tuple(argv) for name, argv in tasks.get("overrides", {}).items()},
            toplevel_lint_command=tuple(toplevel.get("lint_command", defaults.toplevel_lint_command)),
            remote=git.get("remote", defaults.remote),
            source=source,
        )


def _load_schema() -> dict[str, Any]:
    text = files("monoci.schemas").joinpath(SCHEMA_NAME).read_text(encoding="utf-8")
    return json.loads(text)


def validate_config(data: Any, source: Path) -> None:
    """Validate a parsed config document against the packaged schema.

    Raises:
        ConfigError: If the document violates the schema
    """
    validator = Draft202012Validator(_load_schema())
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        messages = [
            f"{'.'.join(str(p) for p in e.path)}: {e.message}" if e.path else e.message
            for e in errors
        ]
        raise ConfigError(
            f"Invalid config structure in {source}:\n" + "\n".join(f"  - {m}" for m in messages)
        )


def find_config_file(repo_root: Path) -> Path | None:
    for name in CONFIG_FILENAMES:
        candidate = repo_root / name
        if candidate.is_file():
            return candidate
    return None


def load_settings(repo_root: Path) -> Settings:
    """Load settings from the repository root, falling back to defaults.

    Args:
        repo_root: Repository root directory

    Returns:
        Settings built from the config file, or defaults if none exists

    Raises:
        ConfigError: If the config file is malformed or invalid
    """
    path = find_config_file(repo_root)
    if path is None:
        return Settings()

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed YAML config at {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Unable to read config at {path}: {e}") from e

    # An empty file means "all defaults".
    if data is None:
        data = {}

    validate_config(data, path)
    return Settings.from_dict(data, source=path)
