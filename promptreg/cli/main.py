"""Main CLI application for promptreg."""

import logging
import signal
import threading
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from promptreg import __version__
from promptreg.config.parser import find_repository_root
from promptreg.config.schemas import COMMIT_MODES, SCOPES
from promptreg.core.context import AppContext
from promptreg.core.manager import BundleManager
from promptreg.errors import PartialMigrationError, PromptRegError, ScopeConflictError

app = typer.Typer(
    name="promptreg",
    help="Install prompt bundles into repositories and user profiles",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

logger = logging.getLogger("promptreg")

_state: dict[str, Path | None] = {"home": None}


def setup_logging(verbosity: int) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbosity: 0=WARNING, 1=INFO, 2=DEBUG, 3+=DEBUG with source paths
    """
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logger.setLevel(level)

    if not logger.handlers:
        handler = RichHandler(
            console=error_console,
            show_time=verbosity >= 2,
            show_path=verbosity >= 3,
            rich_tracebacks=True,
        )
        handler.setLevel(level)
        logger.addHandler(handler)
    else:
        for h in logger.handlers:
            h.setLevel(level)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    error_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]⚠[/yellow] {message}")


def check_choice(value: str | None, choices: tuple[str, ...], option: str) -> None:
    """Exit with an error if an option value is not one of ``choices``."""
    if value is not None and value not in choices:
        print_error(f"Invalid {option}: {value} (expected one of: {', '.join(choices)})")
        raise typer.Exit(2)


def get_context() -> AppContext:
    """Create the application context for the selected home directory."""
    try:
        return AppContext.from_environment(_state["home"])
    except PromptRegError as e:
        print_error(str(e))
        raise typer.Exit(1) from e


def get_repository_root(path: Path | None = None) -> Path:
    """Get the repository containing ``path``.

    Falls back to ``path`` itself (or the working directory) when no
    enclosing git repository is found.
    """
    start = Path.cwd() if path is None else path.resolve()
    return find_repository_root(start) or start


def get_manager(path: Path | None = None) -> BundleManager:
    """Get the bundle manager for the repository containing ``path``."""
    return get_context().manager(get_repository_root(path))


PathOption = Annotated[
    Path | None,
    typer.Option("--path", "-p", help="Repository directory (defaults to current directory)"),
]


@app.callback()
def callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            count=True,
            help="Increase verbosity (-v info, -vv debug, -vvv debug with paths)",
        ),
    ] = 0,
    home: Annotated[
        Path | None,
        typer.Option(
            "--home",
            help="promptreg home directory (defaults to $PROMPTREG_HOME or ~/.promptreg)",
        ),
    ] = None,
) -> None:
    """promptreg - prompt bundle installer for repositories and user profiles."""
    setup_logging(verbose)
    _state["home"] = home


@app.command()
def version() -> None:
    """Show the promptreg version."""
    console.print(f"promptreg {__version__}")


@app.command()
def install(
    bundle: Annotated[
        str,
        typer.Argument(help="Bundle directory, or a bundle id ('my-bundle' or 'my-bundle@1.0.0')"),
    ],
    scope: Annotated[
        str | None,
        typer.Option("--scope", "-s", help="Install scope: repository, user or workspace"),
    ] = None,
    commit_mode: Annotated[
        str | None,
        typer.Option(
            "--commit-mode",
            "-m",
            help="Repository scope: 'commit' or 'local-only' (hidden via .git/info/exclude)",
        ),
    ] = None,
    source_id: Annotated[
        str | None,
        typer.Option("--source-id", help="Only look for the bundle in this configured source"),
    ] = None,
    path: PathOption = None,
) -> None:
    """Install a bundle.

    BUNDLE is either a directory containing a deployment-manifest.yml or
    the id of a bundle available from a configured source.
    """
    check_choice(scope, SCOPES, "scope")
    check_choice(commit_mode, COMMIT_MODES, "commit mode")
    manager = get_manager(path)
    bundle_dir = Path(bundle)

    try:
        if bundle_dir.is_dir():
            result = manager.install(bundle_dir.resolve(), scope, commit_mode)
        else:
            bundle_id, _, bundle_version = bundle.partition("@")
            result = manager.install_by_id(
                bundle_id,
                scope or manager.settings.default_scope,
                commit_mode,
                version=bundle_version or None,
                source_id=source_id,
            )
    except ScopeConflictError as e:
        print_error(str(e))
        if e.requested_scope in ("user", "repository"):
            print_error(f"Use 'promptreg move {e.bundle_id} --to {e.requested_scope}' instead")
        raise typer.Exit(1) from e
    except PromptRegError as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    print_success(result.message)
    for warning in result.warnings:
        print_warning(f"  {warning}")
    for file in result.files:
        console.print(f"  {file}", style="dim")


@app.command()
def uninstall(
    bundle_id: Annotated[str, typer.Argument(help="Bundle to uninstall")],
    scope: Annotated[
        str | None,
        typer.Option("--scope", "-s", help="Scope to uninstall from (defaults to where it is)"),
    ] = None,
    path: PathOption = None,
) -> None:
    """Uninstall a bundle and remove its files."""
    check_choice(scope, SCOPES, "scope")
    manager = get_manager(path)
    try:
        result = manager.uninstall(bundle_id, scope)
    except PromptRegError as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    if not result.success:
        print_error(result.message)
        raise typer.Exit(1)
    print_success(result.message)


@app.command("list")
def list_bundles(
    scope: Annotated[
        str | None,
        typer.Option("--scope", "-s", help="Only show bundles at this scope"),
    ] = None,
    path: PathOption = None,
) -> None:
    """List installed bundles."""
    check_choice(scope, SCOPES, "scope")
    manager = get_manager(path)
    try:
        bundles = manager.list_installed(scope)
    except PromptRegError as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    if not bundles:
        console.print("No bundles installed")
        return

    table = Table(title="Installed Bundles")
    table.add_column("Bundle", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Scope")
    table.add_column("Mode")
    table.add_column("Files", justify="right")
    table.add_column("Status")

    for bundle in bundles:
        status = "[red]files missing[/red]" if bundle.files_missing else "[green]ok[/green]"
        table.add_row(
            bundle.bundle_id,
            bundle.version,
            bundle.scope,
            bundle.commit_mode or "",
            str(len(bundle.files)),
            status,
        )

    console.print(table)


@app.command()
def move(
    bundle_id: Annotated[str, typer.Argument(help="Bundle to move")],
    to: Annotated[
        str,
        typer.Option("--to", "-t", help="Destination scope: user or repository"),
    ],
    commit_mode: Annotated[
        str,
        typer.Option("--commit-mode", "-m", help="Commit mode when moving into the repository"),
    ] = "commit",
    path: PathOption = None,
) -> None:
    """Move a bundle between user and repository scope."""
    check_choice(to, ("user", "repository"), "destination scope")
    check_choice(commit_mode, COMMIT_MODES, "commit mode")

    manager = get_manager(path)
    try:
        if to == "user":
            result = manager.resolver.move_to_user(bundle_id)
        else:
            result = manager.resolver.move_to_repository(bundle_id, commit_mode)
    except PartialMigrationError as e:
        print_error(str(e))
        raise typer.Exit(2) from e
    except PromptRegError as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    print_success(
        f"Moved {result.bundle_id}@{result.version} from {result.from_scope} to {result.to_scope}"
    )


@app.command("switch-mode")
def switch_mode(
    bundle_id: Annotated[str, typer.Argument(help="Repository-scope bundle")],
    mode: Annotated[str, typer.Argument(help="'commit' or 'local-only'")],
    path: PathOption = None,
) -> None:
    """Switch a repository bundle between committed and local-only."""
    check_choice(mode, COMMIT_MODES, "commit mode")
    manager = get_manager(path)
    try:
        changed = manager.resolver.switch_commit_mode(bundle_id, mode)
    except PromptRegError as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    if changed:
        print_success(f"{bundle_id} is now {mode}")
    else:
        console.print(f"{bundle_id} is already {mode}")


@app.command()
def verify(
    bundle_id: Annotated[str, typer.Argument(help="Repository-scope bundle to check")],
    path: PathOption = None,
) -> None:
    """Report files of a bundle that were edited or deleted since install."""
    manager = get_manager(path)
    try:
        modified = manager.detect_modified_files(bundle_id)
    except PromptRegError as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    if not modified:
        print_success(f"{bundle_id}: all files match the lockfile")
        return

    table = Table(title=f"Modified files in {bundle_id}")
    table.add_column("File", style="cyan")
    table.add_column("Change")
    for item in modified:
        table.add_row(item.path, item.modification_type)
    console.print(table)
    raise typer.Exit(1)


@app.command()
def stale(
    clean: Annotated[
        bool,
        typer.Option("--clean", help="Remove stale entries from the lockfile"),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Don't ask for confirmation"),
    ] = False,
    path: PathOption = None,
) -> None:
    """List (and optionally remove) lockfile entries whose files are gone."""
    cleaner = get_context().stale_cleaner(get_repository_root(path))
    try:
        entries = cleaner.find_stale()
    except PromptRegError as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    if not entries:
        console.print("No stale entries")
        return

    for entry in entries:
        print_warning(f"{entry.bundle_id}@{entry.version} has missing files")

    if not clean:
        return
    if not yes and not typer.confirm(f"Remove {len(entries)} stale entries from the lockfile?"):
        console.print("Aborted")
        return

    summary = cleaner.remove_stale([e.bundle_id for e in entries])
    for bundle_id in summary.removed:
        print_success(f"Removed {bundle_id}")
    for bundle_id, error in summary.failed.items():
        print_error(f"Failed to remove {bundle_id}: {error}")

    if not summary.all_successful:
        console.print(f"Removed {summary.removed_count} of {len(entries)} stale entries")
        raise typer.Exit(1)


@app.command()
def activate(
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Install missing bundles without asking"),
    ] = False,
    path: PathOption = None,
) -> None:
    """Install bundles listed in the lockfile that are missing from disk."""
    activation = get_context().activation(get_repository_root(path))
    try:
        sources = activation.check_missing_sources()
        missing = activation.find_missing_bundles()
    except PromptRegError as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    for source_id in sources.missing_sources:
        print_warning(f"Source {source_id} is not configured")
    for hub in sources.missing_hubs:
        print_warning(f"Hub {hub} is not configured")

    if not missing:
        console.print("All bundles in the lockfile are installed")
        return

    console.print(f"{len(missing)} bundle(s) missing: {', '.join(missing)}")
    if not yes and not typer.confirm("Install them now?"):
        console.print("Aborted")
        return

    cancel = threading.Event()
    previous_handler = signal.signal(signal.SIGINT, lambda *_: cancel.set())
    try:
        result = activation.install_missing_bundles(
            missing,
            cancel,
            progress=lambda bundle_id, i, n: console.print(f"Installing {bundle_id} ({i}/{n})"),
        )
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    for bundle_id in result.succeeded:
        print_success(f"Installed {bundle_id}")
    for bundle_id, error in result.failed.items():
        print_error(f"Failed to install {bundle_id}: {error}")
    for bundle_id in result.skipped:
        print_warning(f"Skipped {bundle_id}")
    if result.cancelled:
        print_warning("Cancelled")

    if result.failed or result.cancelled:
        raise typer.Exit(1)


@app.command()
def status(path: PathOption = None) -> None:
    """Show the repository's prompt directories and lockfile state."""
    manager = get_manager(path)
    scope_status = manager.scope_status()

    console.print(f"Repository: {manager.repository_root}")
    if not scope_status.dir_exists:
        console.print(f"  {scope_status.base_directory.name}/ does not exist")
    else:
        console.print(f"  {scope_status.synced_files} file(s) in prompt directories")

    try:
        bundles = manager.lockfile.get_installed_bundles()
    except PromptRegError as e:
        print_error(str(e))
        raise typer.Exit(1) from e

    if not manager.lockfile.exists():
        console.print("  No lockfile")
        return

    local_only = sum(1 for b in bundles if b.commit_mode == "local-only")
    stale_count = sum(1 for b in bundles if b.files_missing)
    console.print(
        f"  {len(bundles)} bundle(s) locked ({local_only} local-only, {stale_count} with missing files)"
    )
    if not manager.exclude_patcher.has_git_directory():
        print_warning("No .git directory; local-only bundles are not hidden from git")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
