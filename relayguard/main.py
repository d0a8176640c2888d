"""Command line entry point for the relay write-policy plugin.

The relay starts ``relayguard run`` as a child process and talks to it over
stdin/stdout, one JSON object per line. ``check-config`` and ``init-store``
are operator helpers.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Sequence

import click

from relayguard import __version__
from relayguard.adapters.identity.snapshot import SnapshotIdentitySource
from relayguard.adapters.identity.sqlite_store import SQLiteIdentitySource
from relayguard.core.app_factory import create_engine, create_processor
from relayguard.core.config import Settings, load_settings
from relayguard.core.errors import AppError
from relayguard.core.logging import configure_logging

logger = logging.getLogger(__name__)

_config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="TOML configuration file (default: $RELAYGUARD_CONFIG_FILE or /etc/relayguard/config.toml).",
)


def _startup_failure(exc: AppError) -> click.ClickException:
    logger.error(
        "startup.failed",
        extra={"error_code": exc.code, "error_message": exc.message, "details": exc.details},
    )
    return click.ClickException(exc.message)


def _load(config_path: Path | None) -> Settings:
    try:
        return load_settings(config_path)
    except AppError as exc:
        raise _startup_failure(exc) from exc


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, "--version", "-V", prog_name="relayguard")
def cli() -> None:
    """Write-policy filter plugin for a message relay."""


@cli.command("run")
@_config_option
def run_command(config_path: Path | None) -> None:
    """Read relay requests from stdin and answer on stdout until EOF."""

    settings = _load(config_path)
    configure_logging(settings.log)

    try:
        processor = create_processor(settings)
    except AppError as exc:
        raise _startup_failure(exc) from exc

    stdin = click.get_text_stream("stdin")
    stdout = click.get_text_stream("stdout")
    try:
        processor.run(stdin, stdout)
    finally:
        processor.engine.close()


@cli.command("check-config")
@_config_option
def check_config_command(config_path: Path | None) -> None:
    """Validate the configuration and open the configured data source."""

    settings = _load(config_path)
    configure_logging(settings.log)

    try:
        engine = create_engine(settings)
    except AppError as exc:
        raise _startup_failure(exc) from exc
    engine.close()

    filters = settings.filters
    click.echo(f"datasource: {settings.datasource_mode.value}")
    click.echo(f"on_error: {settings.on_error.value}")
    click.echo(f"workers: {settings.workers}")
    for name in ("identity", "category"):
        section = getattr(filters, name)
        click.echo(f"{name} filter: {section.mode.value if section.enabled else 'off'}")
    if filters.content.enabled:
        scope = ", ".join(str(c) for c in filters.content.categories) or "all categories"
        click.echo(f"content filter: on ({scope})")
    else:
        click.echo("content filter: off")
    if filters.rate_limit.enabled and filters.rate_limit.max_events > 0:
        click.echo(
            f"rate limit: {filters.rate_limit.max_events} per {filters.rate_limit.window_seconds}s"
        )
    else:
        click.echo("rate limit: off")
    click.echo("configuration OK")


@cli.command("init-store")
@click.argument("db_path", type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "--snapshot",
    "snapshot_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Seed the new store from a snapshot JSON file.",
)
def init_store_command(db_path: Path, snapshot_path: Path | None) -> None:
    """Create the store schema in DB_PATH, optionally seeding it."""

    store = SQLiteIdentitySource(db_path)
    try:
        store.init_db()
    except (sqlite3.Error, OSError) as exc:
        raise click.ClickException(f"Cannot create store schema in {db_path}: {exc}") from exc
    click.echo(f"store schema ready: {db_path}")

    if snapshot_path is None:
        return
    try:
        snapshot = SnapshotIdentitySource.from_file(snapshot_path).snapshot
    except AppError as exc:
        raise click.ClickException(exc.message) from exc
    try:
        store.seed_from_snapshot(snapshot)
    except sqlite3.Error as exc:
        raise click.ClickException(f"Cannot seed store {db_path}: {exc}") from exc
    click.echo(
        f"seeded {len(snapshot.identities)} identities, "
        f"{len(snapshot.categories)} categories, {len(snapshot.words)} words"
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Run the click group and return a process exit code."""

    args = list(argv) if argv is not None else None
    try:
        result = cli.main(args=args, prog_name="relayguard", standalone_mode=False)
    except click.ClickException as error:
        error.show()
        return error.exit_code
    except click.Abort:
        click.echo("Aborted!", err=True)
        return 1
    return result if isinstance(result, int) else 0
