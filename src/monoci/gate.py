"""Package eligibility gate.

A package directory is eligible when it carries both the dependency manifest and
a self-named spec file, and when the spec's required-toolchain-version constraint
accepts the toolchain that is currently installed.

Constraints come from one of two sources behind ``constraint_for``:

1. A static read of the spec file, for plain string-literal requirements.
2. The toolchain's own spec loader, for anything the static read cannot parse.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Protocol

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from monoci.config import Settings
from monoci.errors import ToolchainError
from monoci.exec import ExecError, run_command

logger = logging.getLogger(__name__)

VERSION_PROBE_SCRIPT = "print RUBY_VERSION"

LOADER_SCRIPT = (
    "spec = Gem::Specification.load(ARGV[0]); "
    "puts spec.public_send(ARGV[2]).satisfied_by?(Gem::Version.new(ARGV[1]))"
)

_REQUIREMENT_RE = re.compile(r"^\s*(?P<op>~>|>=|<=|!=|=|>|<)?\s*(?P<version>[0-9A-Za-z.]+)\s*$")
_LITERAL_RE = re.compile(r"""(["'])(.*?)\1""")
_CONTROL_FLOW_RE = re.compile(r"\b(?:if|unless|case)\b")


class VersionConstraint(Protocol):
    """Anything that can answer whether a toolchain version is accepted."""

    def satisfied_by(self, version: str) -> bool: ...


@dataclass(frozen=True)
class SpecifierConstraint:
    """Constraint evaluated in-process with a ``packaging`` specifier set."""

    specifiers: SpecifierSet

    def satisfied_by(self, version: str) -> bool:
        return self.specifiers.contains(Version(version), prereleases=True)


@dataclass(frozen=True)
class LoaderConstraint:
    """Constraint evaluated by loading the real spec object in the toolchain."""

    spec_path: Path
    field: str
    toolchain_command: tuple[str, ...]
    repo_root: Path

    def satisfied_by(self, version: str) -> bool:
        argv = [*self.toolchain_command, "-e", LOADER_SCRIPT, str(self.spec_path), version, self.field]
        try:
            result = run_command(argv, cwd=self.repo_root, check=False)
        except FileNotFoundError as exc:
            raise ToolchainError(f"unable to run spec loader for {self.spec_path}: {exc}") from exc
        if not result.success:
            logger.warning("Spec loader failed for %s: %s", self.spec_path, result.stderr.strip())
            return False
        return result.stdout.strip() == "true"


def ruby_requirement_to_specifier(requirement: str) -> str:
    """Translate one Ruby requirement string into a PEP 440 specifier.

    ``~> 3`` becomes ``>=3,<4`` and ``~> 2.7`` becomes ``~=2.7``. A bare version
    means exact match, as in Ruby.

    Raises:
        ValueError: If the requirement cannot be translated
    """
    match = _REQUIREMENT_RE.match(requirement)
    if not match:
        raise ValueError(f"unsupported requirement: {requirement!r}")
    op = match.group("op") or "="
    version = match.group("version")

    if op == "=":
        return f"=={version}"
    if op == "~>":
        segments = version.split(".")
        if len(segments) == 1:
            if not segments[0].isdigit():
                raise ValueError(f"unsupported requirement: {requirement!r}")
            return f">={version},<{int(segments[0]) + 1}"
        return f"~={version}"
    return f"{op}{version}"


def parse_static_constraint(spec_text: str, field: str) -> SpecifierConstraint | None:
    """Read a literal version requirement out of spec file text.

    Returns:
        An always-true constraint when the field is not assigned at all,
        a specifier constraint for string-literal values, or None when the
        value is computed, conditional or repeated and needs the toolchain
        loader. Commented-out lines are ignored.
    """
    pattern = re.compile(rf"\.{re.escape(field)}\s*=(?!=)\s*(?P<value>.+?)\s*$")
    values: list[str] = []
    branched = False
    for line in spec_text.splitlines():
        if line.lstrip().startswith("#"):
            continue
        match = pattern.search(line)
        if match is not None:
            values.append(match.group("value"))
        elif not values and _CONTROL_FLOW_RE.search(_LITERAL_RE.sub("", line)):
            branched = True

    if not values:
        return SpecifierConstraint(SpecifierSet(""))
    if branched or len(values) > 1:
        # Conditional or repeated assignments only resolve when the spec is evaluated.
        return None

    value = values[0]
    literals = [m.group(2) for m in _LITERAL_RE.finditer(value)]
    leftover = _LITERAL_RE.sub("", value).strip()
    if leftover.startswith("[") and leftover.endswith("]"):
        leftover = leftover[1:-1]
    if not literals or leftover.replace(",", "").strip():
        return None

    try:
        clauses = [ruby_requirement_to_specifier(lit) for lit in literals]
        return SpecifierConstraint(SpecifierSet(",".join(clauses)))
    except (ValueError, InvalidSpecifier):
        return None


class VersionGate:
    """Decide which package directories may run under the current toolchain."""

    def __init__(self, repo_root: Path, settings: Settings):
        self.repo_root = repo_root
        self.settings = settings

    @cached_property
    def toolchain_version(self) -> str:
        """Version of the running toolchain, probed once."""
        if self.settings.toolchain_version:
            return self.settings.toolchain_version

        argv = [*self.settings.toolchain_command, "-e", VERSION_PROBE_SCRIPT]
        try:
            result = run_command(argv, cwd=self.repo_root)
        except (ExecError, FileNotFoundError) as exc:
            raise ToolchainError(f"unable to determine toolchain version: {exc}") from exc
        version = result.stdout.strip()
        if not version:
            raise ToolchainError(f"toolchain version probe returned no output: {' '.join(argv)}")
        logger.info("Toolchain version: %s", version)
        return version

    def has_required_files(self, directory: str) -> bool:
        base = self.repo_root / directory
        return all(
            (base / name).is_file()
            for name in (self.settings.manifest, self.settings.spec_filename(directory))
        )

    def constraint_for(self, directory: str) -> VersionConstraint:
        """Return the required-version constraint declared by a package."""
        spec_path = self.repo_root / directory / self.settings.spec_filename(directory)
        static = parse_static_constraint(spec_path.read_text(encoding="utf-8"), self.settings.version_field)
        if static is not None:
            return static

        logger.debug("Falling back to toolchain loader for %s", spec_path)
        return self._loader_constraint(directory)

    def _loader_constraint(self, directory: str) -> LoaderConstraint:
        return LoaderConstraint(
            spec_path=Path(directory) / self.settings.spec_filename(directory),
            field=self.settings.version_field,
            toolchain_command=self.settings.toolchain_command,
            repo_root=self.repo_root,
        )

    def is_eligible(self, directory: str) -> bool:
        if not self.has_required_files(directory):
            return False
        constraint = self.constraint_for(directory)
        try:
            accepted = constraint.satisfied_by(self.toolchain_version)
        except InvalidVersion:
            # Toolchain versions outside PEP 440 (e.g. odd prerelease tags) go to the loader.
            accepted = self._loader_constraint(directory).satisfied_by(self.toolchain_version)
        if not accepted:
            logger.info("Skipping %s: requires a different toolchain version", directory)
        return accepted

    def filter_package_dirs(self, dirs: Iterable[str]) -> list[str]:
        """Deduplicate, keep eligible directories, and sort."""
        return sorted(d for d in set(dirs) if self.is_eligible(d))
