"""Command line interface for savesaver."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from .core.config import Config, RepositoryConfig
from .core.engine import BackupEngine
from .core.errors import InvalidInputError
from .core.logging import setup_logging
from .core.paths import PathRegistry
from .core.relay import write_log_mirror

console = Console()


@click.group()
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML file overriding the default settings",
)
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding the path list, repository config and temp folder",
)
@click.option("--debug", is_flag=True, help="Show debug logging")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Also write debug diagnostics to this file",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_file: Optional[Path],
    data_dir: Optional[Path],
    debug: bool,
    log_file: Optional[Path],
) -> None:
    """Game save backup tool.

    Backs up a list of save folders into one git repository, each folder in
    its own branch, and restores them back on demand.

    Main commands:

      paths     Manage the folders to back up
      repo      Show or set the remote repository
      backup    Push every folder to its branch
      restore   Pull every branch back into its folder

    Run 'savesaver COMMAND --help' for more information on a specific command.
    """
    overrides = {"data_dir": str(data_dir)} if data_dir is not None else None
    config = Config(config_file, overrides=overrides)

    errors = config.validate()
    if errors:
        for error in errors:
            console.print(f"[red]Error: {error}")
        raise click.Abort()

    setup_logging(debug=debug, log_file=log_file)
    ctx.obj = config


@cli.group()
def paths() -> None:
    """Manage the folders to back up."""


@paths.command("list")
@click.pass_obj
def list_paths(config: Config) -> None:
    """List tracked folders."""
    registry = PathRegistry(config.paths_file)
    entries = registry.load()
    if not entries:
        console.print("[yellow]No paths to backup.")
        return

    table = Table(title="Paths to backup")
    table.add_column("#", style="cyan", no_wrap=True)
    table.add_column("Name", style="green", no_wrap=True)
    table.add_column("Branch", style="magenta", no_wrap=True)
    table.add_column("Path", style="blue")
    for index, entry in enumerate(entries):
        table.add_row(str(index), entry.name, entry.branch_name, str(entry.absolute_path))
    console.print(table)


@paths.command("add")
@click.argument("name")
@click.argument("path", type=click.Path(file_okay=False, path_type=Path))
@click.pass_obj
def add_path(config: Config, name: str, path: Path) -> None:
    """Track PATH under the game NAME.

    Examples:

      savesaver paths add "Hollow Knight" ~/.config/unity3d/Team\\ Cherry/Hollow\\ Knight
    """
    registry = PathRegistry(config.paths_file)
    registry.load()
    try:
        entry = registry.add(name, path.expanduser().absolute())
    except InvalidInputError as e:
        console.print(f"[red]Error: {e}")
        raise click.Abort()
    console.print(f"[green]Added {entry.name} ({entry.branch_name}): {entry.relative_path}")


@paths.command("remove")
@click.argument("index", type=int)
@click.pass_obj
def remove_path(config: Config, index: int) -> None:
    """Stop tracking the folder at INDEX (see 'paths list')."""
    registry = PathRegistry(config.paths_file)
    registry.load()
    try:
        removed = registry.remove(index)
    except InvalidInputError as e:
        console.print(f"[red]Error: {e}")
        raise click.Abort()
    if removed is None:
        console.print("[yellow]No paths to remove.")
        return
    console.print(f"[green]Removed {removed.name}")


@cli.group()
def repo() -> None:
    """Show or set the remote repository."""


@repo.command("show")
@click.pass_obj
def show_repo(config: Config) -> None:
    """Show the configured repository URL."""
    url = RepositoryConfig(config.repo_file).load()
    if url is None:
        console.print("[yellow]No repository configured. Use 'savesaver repo set URL'.")
        return
    console.print(f"Repo URL: {url}")


@repo.command("set")
@click.argument("url")
@click.option("--replace", is_flag=True, help="Replace an already configured URL")
@click.pass_obj
def set_repo(config: Config, url: str, replace: bool) -> None:
    """Set the repository URL, e.g. https://github.com/user/game-saves."""
    repo_config = RepositoryConfig(config.repo_file)
    current = repo_config.load()
    if current is not None and replace:
        repo_config.clear()
    elif current is not None:
        console.print(f"[yellow]Repository already set to {current}. Use --replace to change it.")
        raise click.Abort()

    if not repo_config.save(url):
        console.print("[red]Error: Repository URL can not be empty")
        raise click.Abort()
    console.print(f"[green]Repo URL: {url}")


def _run_operation(config: Config, restore: bool) -> None:
    """Start an operation and drain its log until it finishes."""
    url = RepositoryConfig(config.repo_file).load()
    if url is None:
        console.print("[red]Error: No repository configured. Use 'savesaver repo set URL'.")
        raise click.Abort()

    registry = PathRegistry(config.paths_file)
    entries = registry.load()
    if not entries:
        console.print("[yellow]No paths to backup.")
        return

    engine = BackupEngine(config)
    if restore:
        engine.start_restore(url, entries)
    else:
        engine.start_backup(url, entries)

    console.print(f"You can find full logs in: {config.log_file}")
    for line in engine.follow():
        if not line.text:
            continue
        if line.is_heading:
            console.print(line.text, style="bold yellow", markup=False, highlight=False)
        else:
            console.print(line.text, markup=False, highlight=False)
        write_log_mirror(config.log_file, engine.lines)


@cli.command()
@click.pass_obj
def backup(config: Config) -> None:
    """Back up every tracked folder to its branch.

    The manifest of tracked folders on 'master' is updated first, then each
    folder is force-pushed to its own branch. Missing folders are skipped.
    """
    try:
        _run_operation(config, restore=False)
    except click.Abort:
        raise
    except Exception as e:
        console.print(f"[red]Error: {e}")
        raise click.Abort()


@cli.command()
@click.pass_obj
def restore(config: Config) -> None:
    """Restore every tracked folder from its branch.

    Files in the folders are overwritten by the backed up versions.
    """
    try:
        _run_operation(config, restore=True)
    except click.Abort:
        raise
    except Exception as e:
        console.print(f"[red]Error: {e}")
        raise click.Abort()


def main() -> None:
    """Entry point for the savesaver CLI."""
    cli()


if __name__ == "__main__":
    main()
