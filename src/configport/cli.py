"""Command line interface for configport."""

from pathlib import Path
from typing import Dict, List, Optional, Tuple

import click
from rich.console import Console
from rich.progress import Progress, TaskID
from rich.table import Table

from .core.backup import BackupManager
from .core.config import DEFAULT_CONFIG_FILE, Config
from .core.exporter import ExportManager
from .core.importer import ImportManager
from .core.logging import setup_logging
from .core.manifest import get_manifest_summary
from .core.models import (
    CodeType,
    ConfigCategory,
    CustomItem,
    ExportOptions,
    ExportScope,
    ImportOptions,
    MergeStrategy,
    ProgressInfo,
)
from .core.validator import validate_package

console = Console()

CODE_TYPE_ALIASES: Dict[str, str] = {
    "cc": CodeType.CLAUDE_CODE.value,
    "claude": CodeType.CLAUDE_CODE.value,
    "cx": CodeType.CODEX.value,
    "both": CodeType.ALL.value,
}

STRATEGY_ALIASES: Dict[str, str] = {
    "r": MergeStrategy.REPLACE.value,
    "m": MergeStrategy.MERGE.value,
    "s": MergeStrategy.SKIP_EXISTING.value,
    "skip": MergeStrategy.SKIP_EXISTING.value,
}


def _code_type(ctx: click.Context, param: click.Parameter,
               value: Optional[str]) -> Optional[CodeType]:
    if value is None:
        return None
    value = CODE_TYPE_ALIASES.get(value.lower(), value.lower())
    try:
        return CodeType(value)
    except ValueError:
        choices = ", ".join([c.value for c in CodeType] + list(CODE_TYPE_ALIASES))
        raise click.BadParameter(f"'{value}' is not one of {choices}")


def _strategy(ctx: click.Context, param: click.Parameter, value: str) -> MergeStrategy:
    value = STRATEGY_ALIASES.get(value.lower(), value.lower())
    try:
        return MergeStrategy(value)
    except ValueError:
        choices = ", ".join([s.value for s in MergeStrategy] + list(STRATEGY_ALIASES))
        raise click.BadParameter(f"'{value}' is not one of {choices}")


def _custom_items(ctx: click.Context, param: click.Parameter,
                  values: Tuple[str, ...]) -> List[CustomItem]:
    items = []
    for value in values:
        category, sep, path = value.partition("=")
        if not sep or not path:
            raise click.BadParameter(f"'{value}' is not CATEGORY=PATH")
        try:
            items.append(CustomItem(ConfigCategory(category), Path(path).expanduser()))
        except ValueError:
            choices = ", ".join(c.value for c in ConfigCategory)
            raise click.BadParameter(f"'{category}' is not one of {choices}")
    return items


class ProgressReporter:
    """Feeds :class:`ProgressInfo` callbacks into a rich progress bar."""

    def __init__(self, progress: Progress, task: TaskID):
        self.progress = progress
        self.task = task

    def __call__(self, info: ProgressInfo) -> None:
        self.progress.update(self.task, completed=info.progress, description=info.step)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--log-file", type=click.Path(dir_okay=False), help="Also write logs to a file")
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help=f"Configuration file (default: {DEFAULT_CONFIG_FILE} when it exists)",
)
@click.pass_context
def cli(ctx: click.Context, debug: bool, log_file: Optional[str],
        config_file: Optional[Path]) -> None:
    """Configuration migration tool for AI coding assistants.

    Packages Claude Code and Codex configuration into a portable zip file and
    imports it on another machine, adapting paths and merging with what is
    already there.

    Main commands:

      export    Package local configuration
      import    Apply a package to this machine
      inspect   Validate a package and show its contents
      backups   List backups taken before imports

    Run 'configport COMMAND --help' for more information on a specific command.
    """
    setup_logging(debug=debug, log_file=log_file)
    if config_file is None and DEFAULT_CONFIG_FILE.expanduser().is_file():
        config_file = DEFAULT_CONFIG_FILE
    ctx.obj = Config(config_file)


@cli.command()
@click.option(
    "--type", "-T", "code_type", default="all", callback=_code_type,
    help="Tool to export: claude-code (cc), codex (cx) or all (both)",
)
@click.option(
    "--scope", "-s", type=click.Choice([s.value for s in ExportScope]), default="all",
    help="Which part of the configuration to export",
)
@click.option(
    "--item", "items", multiple=True, callback=_custom_items,
    help="Custom item as CATEGORY=PATH (repeatable, used with --scope custom)",
)
@click.option("--include-sensitive", is_flag=True, help="Do not redact API keys and tokens")
@click.option(
    "--output", "-o", type=click.Path(path_type=Path),
    help="Output .zip file or directory (default: current export directory)",
)
@click.option("--description", "-d", help="Description stored in the manifest")
@click.option("--tag", "tags", multiple=True, help="Tag stored in the manifest (repeatable)")
@click.pass_obj
def export(config: Config, code_type: CodeType, scope: str, items: List[CustomItem],
           include_sensitive: bool, output: Optional[Path], description: Optional[str],
           tags: Tuple[str, ...]) -> None:
    """Export configuration to a package.

    Secrets such as API keys are replaced with placeholders unless
    --include-sensitive is given.

    Examples:

      # Export everything for both tools
      configport export

      # Export only Claude Code workflows to a specific file
      configport export -T cc -s workflows -o ~/claude-workflows.zip

      # Export selected files
      configport export -s custom --item workflows=~/.claude/commands/review.md
    """
    try:
        options = ExportOptions(
            code_type=code_type,
            scope=ExportScope(scope),
            include_sensitive=include_sensitive,
            output_path=output,
            custom_items=items,
            description=description,
            tags=list(tags),
        )
        manager = ExportManager(config)
        with Progress(console=console, transient=True) as progress:
            task = progress.add_task("Exporting", total=100)
            result = manager.export(options, ProgressReporter(progress, task))

        for warning in result.warnings:
            console.print(f"[yellow]Warning: {warning}")
        if not result.success:
            console.print(f"[red]Error: {result.error}")
            raise click.Abort()

        console.print(f"[green]Exported {result.file_count} files to {result.package_path}")
        if include_sensitive:
            console.print("[yellow]The package contains secrets. Store it securely.")
    except click.Abort:
        raise
    except Exception as e:
        console.print(f"[red]Error: {e}")
        raise click.Abort()


@cli.command(name="import")
@click.argument("package", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--type", "-T", "code_type", callback=_code_type,
    help="Only import files for this tool: claude-code (cc), codex (cx) or all (both)",
)
@click.option(
    "--strategy", "-m", default="merge", callback=_strategy,
    help="replace (r), merge (m) or skip-existing (s)",
)
@click.option("--import-sensitive", is_flag=True, help="Import secrets included in the package")
@click.option("--backup/--no-backup", default=True, help="Back up files before changing them")
@click.pass_obj
def import_(config: Config, package: Path, code_type: Optional[CodeType],
            strategy: MergeStrategy, import_sensitive: bool, backup: bool) -> None:
    """Import a configuration package.

    PACKAGE is a zip file created by 'configport export'.

    The import command will:
    1. Validate the package manifest and file checksums
    2. Back up every file it is about to change
    3. Adapt paths when the package came from a different platform
    4. Merge incoming configuration with the existing files

    If anything fails, the backup is restored.

    Examples:

      # Merge a package into the current configuration
      configport import configport-export-20250101-120000.zip

      # Replace existing Codex configuration without a backup
      configport import package.zip -T cx -m replace --no-backup
    """
    try:
        options = ImportOptions(
            package_path=package,
            target_code_type=code_type,
            merge_strategy=strategy,
            import_sensitive=import_sensitive,
            backup=backup,
        )
        manager = ImportManager(config)
        with Progress(console=console, transient=True) as progress:
            task = progress.add_task("Importing", total=100)
            result = manager.import_package(options, ProgressReporter(progress, task))

        for warning in result.warnings:
            console.print(f"[yellow]Warning: {warning}")
        if not result.success:
            console.print(f"[red]Error: {result.error}")
            raise click.Abort()

        console.print(f"[green]Imported {result.file_count} files")
        if result.resolved_conflicts:
            table = Table(title="Resolved Conflicts")
            table.add_column("File", style="cyan")
            table.add_column("Setting", style="magenta")
            table.add_column("Resolution", style="green")
            for conflict in result.resolved_conflicts:
                table.add_row(conflict.source or "", conflict.name or "(document)",
                              conflict.suggested_resolution.value)
            console.print(table)
        if result.backup_path:
            console.print(f"Backup saved to {result.backup_path}")
    except click.Abort:
        raise
    except Exception as e:
        console.print(f"[red]Error: {e}")
        raise click.Abort()


@cli.command()
@click.argument("package", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def inspect(package: Path) -> None:
    """Validate a package and show what it contains.

    Nothing is written to the configuration directories.
    """
    try:
        outcome = validate_package(package)
        if outcome.manifest is not None:
            console.print(get_manifest_summary(outcome.manifest))

        issues = outcome.errors + outcome.warnings
        if issues:
            table = Table(title="Validation Issues")
            table.add_column("Level", style="bold")
            table.add_column("Code", style="cyan")
            table.add_column("Message")
            for issue in outcome.errors:
                table.add_row("[red]error", issue.code.value, issue.message)
            for issue in outcome.warnings:
                table.add_row("[yellow]warning", issue.code.value, issue.message)
            console.print(table)

        if not outcome.valid:
            console.print("[red]Error: Package is not valid")
            raise click.Abort()
        console.print("[green]Package is valid")
    except click.Abort:
        raise
    except Exception as e:
        console.print(f"[red]Error: {e}")
        raise click.Abort()


@cli.command()
@click.pass_obj
def backups(config: Config) -> None:
    """List backups taken before imports, newest first."""
    found = BackupManager(config).list_backups()
    if not found:
        console.print("[yellow]No backups found.")
        return

    table = Table(title="Available Backups")
    table.add_column("Created", style="yellow")
    table.add_column("Label", style="green")
    table.add_column("Paths", style="magenta", justify="right")
    table.add_column("Location", style="blue")
    for backup in found:
        table.add_row(backup["created"], backup["label"], str(backup["entries"]),
                      str(backup["path"]))
    console.print(table)


def main() -> None:
    """Entry point for the configport CLI."""
    cli()


if __name__ == "__main__":
    main()
