"""monoci CLI - change-driven CI for multi-package repositories."""

from pathlib import Path
from typing import NoReturn

import typer
from rich.markup import escape

from monoci import __version__
from monoci.config import Settings, load_settings
from monoci.errors import SetupError
from monoci.exec import ExecError
from monoci.gate import VersionGate
from monoci.orchestrator import resolve_repo_root, run_ci
from monoci.selection import SelectionRequest, select_directories
from monoci.tasks.types import determine_plan
from monoci.ui import configure_logging, console

cli = typer.Typer(
    name="monoci",
    help="monoci - Run CI tasks for the packages a change touches",
    no_args_is_help=True,
)


def _split_csv(value: str | None) -> tuple[str, ...] | None:
    if value is None:
        return None
    return tuple(part.strip() for part in value.split(",") if part.strip())


def _fail(message: str, code: int = 2) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {escape(message)}")
    raise typer.Exit(code)


def _version_option_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@cli.callback()
def _cli_callback(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show monoci version and exit.",
        is_eager=True,
        callback=_version_option_callback,
    ),
) -> None:
    """Run CI tasks for the packages a change touches."""


def _prepare(
    repo_root: Path | None,
    *,
    toolchain_version: str | None = None,
    bundle_retry: int | None = None,
) -> tuple[Path, Settings]:
    root = resolve_repo_root(repo_root)
    settings = load_settings(root).with_overrides(
        toolchain_version=toolchain_version,
        bundle_retry=bundle_retry,
    )
    return root, settings


def _selection_request(
    *,
    packages: str | None,
    all_packages: bool,
    with_files: str | None,
    github_event_name: str,
    github_event_payload: str,
    base: str | None,
    head: str | None,
) -> SelectionRequest:
    return SelectionRequest(
        packages=_split_csv(packages),
        all_packages=all_packages or with_files is not None,
        with_files=_split_csv(with_files) or (),
        event_name=github_event_name,
        event_payload=github_event_payload,
        base=base,
        head=head,
    )


@cli.command()
def run(
    github_event_name: str = typer.Option(
        "", "--github-event-name", help="Name of the github event triggering this job."
    ),
    github_event_payload: str = typer.Option(
        "", "--github-event-payload", help="Path to the github event payload JSON file."
    ),
    head: str | None = typer.Option(
        None, "--head", help="Ref or SHA of the head commit. Defaults to the current commit."
    ),
    base: str | None = typer.Option(
        None, "--base", help="Ref or SHA of the base commit. If omitted, uses uncommitted diffs."
    ),
    packages: str | None = typer.Option(
        None, "--packages", help="Test the given packages (comma-delimited) instead of analyzing changes."
    ),
    all_packages: bool = typer.Option(False, "--all-packages", help="Test all packages."),
    with_files: str | None = typer.Option(
        None,
        "--with-files",
        help="With --all-packages, only packages containing at least one of these files (comma-delimited).",
    ),
    bundle_retry: int | None = typer.Option(
        None, "--bundle-retry", min=0, help="Number of times to retry bundler network operations (default: 3)."
    ),
    do_bundle: bool | None = typer.Option(
        None,
        "--bundle/--no-bundle",
        help="Bundle install runs before other tasks by default. --no-bundle disables it; "
        "--bundle forces it even if no other tasks run.",
    ),
    bundle_update: bool = typer.Option(False, "--bundle-update", help="Update rather than install bundles."),
    task_test: bool | None = typer.Option(None, "--test/--no-test", help="Run the test task."),
    task_rubocop: bool | None = typer.Option(None, "--rubocop/--no-rubocop", help="Run the rubocop task."),
    task_build: bool | None = typer.Option(None, "--build/--no-build", help="Run the build task."),
    task_yard: bool | None = typer.Option(None, "--yard/--no-yard", help="Run the yard task."),
    task_linkinator: bool | None = typer.Option(
        None, "--linkinator/--no-linkinator", help="Run the linkinator task."
    ),
    all_tasks: bool = typer.Option(False, "--all-tasks", help="Run all tasks."),
    toplevel: bool = typer.Option(
        False, "--toplevel", help="Also bundle (and rubocop, if enabled) at the repository root."
    ),
    jobs: int = typer.Option(1, "--jobs", "-j", min=1, help="Number of package directories to run concurrently."),
    seed: int | None = typer.Option(None, "--seed", help="Seed for the directory execution shuffle."),
    repo_root: Path | None = typer.Option(None, "--repo-root", help="Repository root directory."),
    toolchain_version: str | None = typer.Option(
        None, "--toolchain-version", help="Toolchain version to check packages against (default: probe)."
    ),
    report_dir: Path | None = typer.Option(
        None, "--report-dir", help="Write CI_REPORT.json and CI_REPORT.md to this directory."
    ),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Increase verbosity."),
    quiet: int = typer.Option(0, "--quiet", "-q", count=True, help="Decrease verbosity."),
) -> None:
    """Run CI tasks in every selected package directory."""
    configure_logging(verbose, quiet)

    toggles = {
        "test": task_test,
        "rubocop": task_rubocop,
        "build": task_build,
        "yard": task_yard,
        "linkinator": task_linkinator,
    }
    if do_bundle is None and not bundle_update and not all_tasks and all(v is None for v in toggles.values()):
        _fail("at least one task flag is required (--bundle, --bundle-update, --all-tasks, or a task flag)")

    request = _selection_request(
        packages=packages,
        all_packages=all_packages,
        with_files=with_files,
        github_event_name=github_event_name,
        github_event_payload=github_event_payload,
        base=base,
        head=head,
    )

    try:
        root, settings = _prepare(repo_root, toolchain_version=toolchain_version, bundle_retry=bundle_retry)
        plan = determine_plan(
            toggles,
            all_tasks=all_tasks,
            do_bundle=do_bundle,
            bundle_update=bundle_update,
            bundle_retry=settings.bundle_retry,
            verbose=verbose,
            quiet=quiet,
            toplevel=toplevel,
        )
        report = run_ci(
            request,
            plan,
            repo_root=root,
            settings=settings,
            cwd=Path.cwd(),
            jobs=jobs,
            seed=seed,
            toplevel=toplevel,
            report_dir=report_dir,
        )
    except (SetupError, ExecError) as exc:
        _fail(str(exc))

    raise typer.Exit(report.exit_code)


@cli.command()
def dirs(
    github_event_name: str = typer.Option("", "--github-event-name", help="Name of the github event."),
    github_event_payload: str = typer.Option("", "--github-event-payload", help="Path to the event payload JSON."),
    head: str | None = typer.Option(None, "--head", help="Ref or SHA of the head commit."),
    base: str | None = typer.Option(None, "--base", help="Ref or SHA of the base commit."),
    packages: str | None = typer.Option(None, "--packages", help="Explicit packages (comma-delimited)."),
    all_packages: bool = typer.Option(False, "--all-packages", help="Select all packages."),
    with_files: str | None = typer.Option(
        None, "--with-files", help="Only packages containing at least one of these files (comma-delimited)."
    ),
    repo_root: Path | None = typer.Option(None, "--repo-root", help="Repository root directory."),
    toolchain_version: str | None = typer.Option(
        None, "--toolchain-version", help="Toolchain version to check packages against."
    ),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Increase verbosity."),
    quiet: int = typer.Option(0, "--quiet", "-q", count=True, help="Decrease verbosity."),
) -> None:
    """Print the package directories a run would process, one per line."""
    configure_logging(verbose, quiet)

    request = _selection_request(
        packages=packages,
        all_packages=all_packages,
        with_files=with_files,
        github_event_name=github_event_name,
        github_event_payload=github_event_payload,
        base=base,
        head=head,
    )
    try:
        root, settings = _prepare(repo_root, toolchain_version=toolchain_version)
        selected = select_directories(
            request,
            gate=VersionGate(root, settings),
            repo_root=root,
            cwd=Path.cwd(),
        )
    except (SetupError, ExecError) as exc:
        _fail(str(exc))

    for directory in selected:
        typer.echo(directory)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
