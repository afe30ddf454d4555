"""Command line interface of gitlab-tree-migrate."""

import sys
from collections import Counter
from pathlib import Path
from typing import Optional

import click
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
)
from rich.table import Table

from ..config.config import Config
from ..migration.engine import MigrationEngine
from ..migration.orchestrator import MigrationSummary
from ..migration.state import MigrationStateStore
from ..models.repository import MigrationStatus
from ..utils.logging import setup_logging

console = Console()

TITLE = 'GitLab Tree Migration Tool'
DEFAULT_CONFIG_PATHS = ['config.yaml', 'config.yml', '.gitlab-tree-migrate.yaml']
MAX_WARNINGS_SHOWN = 5

STATUS_STYLES = {
    MigrationStatus.PENDING: 'white',
    MigrationStatus.IN_PROGRESS: 'blue',
    MigrationStatus.SKIPPED: 'yellow',
    MigrationStatus.MIGRATED: 'green',
    MigrationStatus.FAILED: 'red',
}


def _banner(subtitle: str, color: str) -> None:
    console.print(
        Panel.fit(f'[bold {color}]{TITLE}[/bold {color}]\n{subtitle}', border_style=color)
    )


def _abort(ctx: click.Context, message: str) -> None:
    console.print(f'[red]✗[/red] {message}')
    if ctx.obj.get('verbose'):
        console.print_exception()
    sys.exit(1)


@click.group()
@click.version_option(version='0.1.0', prog_name='gitlab-tree-migrate')
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=True),
    help='YAML settings file (otherwise config.yaml or the environment)',
)
@click.option('--verbose', '-v', is_flag=True, help='Log at DEBUG level')
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """GitLab Tree Migration Tool - copy a group's repositories and subgroups to another GitLab instance."""
    ctx.ensure_object(dict)

    if config:
        ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    # Console only until the settings name the log files
    setup_logging('DEBUG' if verbose else 'INFO')


@cli.command()
@click.option(
    '--output', '-o', default='config.yaml', help='Where to write the example settings'
)
def init(output: str) -> None:
    """Write an example settings file."""
    _banner('Writing configuration template...', 'green')

    try:
        Config.create_template(output)
    except OSError as e:
        console.print(f'[red]✗[/red] Could not write {output}: {e}')
        sys.exit(1)

    console.print(f'[green]✓[/green] Configuration template created at: {output}')
    console.print(f'[yellow]Fill in both instances and root groups in {output}[/yellow]')


@cli.command()
@click.option(
    '--dry-run',
    is_flag=True,
    help='Discover and plan without changing the destination',
)
@click.pass_context
def migrate(ctx: click.Context, dry_run: bool) -> None:
    """Migrate every repository of the source root group."""
    ctx.ensure_object(dict)
    _banner('Starting migration process...', 'blue')

    if dry_run:
        console.print('[yellow]Running in dry-run mode, the destination stays untouched[/yellow]')

    try:
        config = _load_config(ctx)
        _configure_logging(ctx, config)
        if dry_run:
            config.migration.dry_run = True

        _show_summary(_run_migration(config))
    except Exception as e:
        logger.error(f'Migration aborted: {e}')
        _abort(ctx, f'Migration failed: {e}')


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Check credentials and both root groups without migrating."""
    ctx.ensure_object(dict)
    _banner('Validating setup...', 'cyan')

    try:
        roots = MigrationEngine(_load_config(ctx)).validate()
    except Exception as e:
        _abort(ctx, f'Validation failed: {e}')
        return

    console.print('[green]✓[/green] Connectivity validation passed')
    console.print(f'[green]✓[/green] Source root group: {roots["source"]}')
    console.print(f'[green]✓[/green] Destination root group: {roots["destination"]}')


@cli.command()
@click.option(
    '--state-file',
    '-s',
    type=click.Path(),
    default=None,
    help='Status file to show (defaults to the configured one)',
)
@click.pass_context
def status(ctx: click.Context, state_file: Optional[str]) -> None:
    """List the persisted status of every repository."""
    ctx.ensure_object(dict)
    _banner('Migration Status', 'magenta')

    try:
        if state_file is None:
            state_file = _load_config(ctx).migration.state_file
        if not Path(state_file).exists():
            console.print(f'[yellow]No status file found at {state_file}[/yellow]')
            return
        records = MigrationStateStore(state_file).load()
    except Exception as e:
        _abort(ctx, f'Failed to load status: {e}')
        return

    table = Table(title=f'Repository Status ({state_file})')
    table.add_column('Repository', style='cyan')
    table.add_column('Status')
    table.add_column('Last Update', style='blue')
    for record in records:
        style = STATUS_STYLES[record.status]
        table.add_row(
            record.path or record.source_url,
            f'[{style}]{record.status.value}[/{style}]',
            record.last_update.strftime('%Y-%m-%d %H:%M:%S'),
        )
    console.print(table)

    counts = Counter(record.status for record in records)
    console.print(', '.join(f'{item.value}: {counts[item]}' for item in MigrationStatus))


def _load_config(ctx: click.Context) -> Config:
    """Settings from ``--config``, a default file, or the environment."""
    config_path = ctx.obj.get('config_path')
    if config_path:
        return Config.from_file(config_path)

    for path in DEFAULT_CONFIG_PATHS:
        if Path(path).exists():
            return Config.from_file(path)

    try:
        return Config.from_env()
    except ValueError:
        raise FileNotFoundError(
            'No configuration found. Use --config to specify a file or run '
            '"gitlab-tree-migrate init" to create one.'
        )


def _configure_logging(ctx: click.Context, config: Config) -> None:
    # --verbose wins over the configured level
    setup_logging(
        level='DEBUG' if ctx.obj.get('verbose', False) else config.logging.level,
        log_file=config.logging.file,
        log_format=config.logging.format,
        error_log_file=config.logging.error_file,
    )


def _run_migration(config: Config) -> MigrationSummary:
    """Run the engine behind a rich progress bar."""
    engine = MigrationEngine(config)
    label = 'Dry run' if config.migration.dry_run else 'Migration'

    with Progress(
        SpinnerColumn(),
        TextColumn('[progress.description]{task.description}'),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task(f'[blue]{label} initializing...', total=None)

        def update_progress(current: int, total: int, description: str) -> None:
            progress.update(
                task, completed=current, total=total, description=f'[blue]{description}'
            )

        try:
            summary = engine.migrate(update_progress)
        except Exception as e:
            progress.update(task, description=f'[red]Failed: {e}')
            raise
        progress.update(task, description=f'[green]{label} completed')

    console.print(f'[green]✓[/green] {label} completed successfully')
    return summary


def _show_summary(summary: MigrationSummary) -> None:
    columns = [
        ('Total', 'blue', summary.total_repositories),
        ('Migrated', 'green', summary.migrated),
        ('Skipped', 'yellow', summary.skipped),
        ('Failed', 'red', summary.failed),
    ]
    if summary.dry_run:
        columns.append(('To Transfer', 'white', summary.pending))

    table = Table(title='Migration Summary')
    for header, style, _ in columns:
        table.add_column(header, style=style)
    table.add_row(*(str(count) for _, _, count in columns))
    console.print(table)

    if summary.completed_at:
        console.print(
            f'\n[blue]Migration Duration:[/blue] {summary.completed_at - summary.started_at}'
        )

    warnings = [w for outcome in summary.outcomes for w in outcome.warnings]
    if warnings:
        console.print(f'\n[yellow]Warnings ({len(warnings)}):[/yellow]')
        for warning in warnings[:MAX_WARNINGS_SHOWN]:
            console.print(f'  • {warning}')
        if len(warnings) > MAX_WARNINGS_SHOWN:
            console.print(f'  ... and {len(warnings) - MAX_WARNINGS_SHOWN} more warnings')


def main() -> None:
    """Console script entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print('\n[red]Migration interrupted by user[/red]')
        sys.exit(1)


if __name__ == '__main__':
    main()
