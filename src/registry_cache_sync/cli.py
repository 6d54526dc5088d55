# SPDX-License-Identifier: MIT
"""Command-line interface for registry cache sync."""

import asyncio
import functools
import sys
import traceback
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import click

from . import __version__
from .config import ConfigManager, get_config_manager, set_config_manager
from .constants import DEFAULT_HISTORY_LIMIT, LIVE_TAIL
from .enums import CommitPolicy
from .exceptions import CacheTuningError
from .logging_config import get_status_logger, setup_logging
from .sync import get_sync_status, run_pipeline


F = TypeVar("F", bound=Callable[..., Any])


def handle_cli_errors(func: F) -> F:
    """Decorator to handle common CLI error patterns.

    Catches exceptions escaping a command, logs them through the status
    logger (with a traceback when verbose) and exits with status code 1.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        status_logger = get_status_logger()
        verbose = kwargs.get("verbose", False)

        try:
            return func(*args, **kwargs)
        except Exception as e:
            if verbose:
                status_logger.error(f"Error in {func.__name__}: {e}")
                traceback.print_exc()
            else:
                status_logger.error(f"Error: {e}")
            sys.exit(1)

    return wrapper  # type: ignore


def print_version(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    """Print version and exit if requested."""
    if value:
        # Ensure logging is set up before using it (--version is eager)
        setup_logging()
        status_logger = get_status_logger()
        status_logger.info(f"registry-cache-sync version {__version__}")
        ctx.exit(0)


def parse_since(
    ctx: click.Context, param: click.Parameter, value: str | None
) -> int | None:
    """Convert ``--since`` into a cursor: an integer seq, or ``now``."""
    if value is None:
        return None
    if value.strip().lower() == "now":
        return LIVE_TAIL
    try:
        since = int(value)
    except ValueError:
        raise click.BadParameter("must be a non-negative integer or 'now'") from None
    if since < 0:
        raise click.BadParameter("must be a non-negative integer or 'now'")
    return since


@click.group()
@click.option(
    "--version",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version information and exit",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Configuration file to use instead of the standard locations",
)
def main(config_path: Path | None) -> None:
    """Registry cache sync - keep a local package cache in step with a registry."""
    if config_path is not None:
        set_config_manager(ConfigManager(config_path))
    # Initialize logging on first command invocation
    detail_logger, status_logger = setup_logging()
    detail_logger.debug("CLI initialized")


@main.command()
@click.option(
    "--since",
    callback=parse_since,
    help="Feed seq to start from, or 'now' for new changes only",
)
@click.option(
    "--cachemin/--no-cachemin",
    "tune_cache_min",
    default=None,
    help="Override cache-min while running (default from config)",
)
@click.option(
    "--reconcile/--no-reconcile",
    default=None,
    help="Cross-check existing cache entries before following",
)
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    help="Maximum concurrent cache mutations",
)
@click.option(
    "--commit-policy",
    type=click.Choice([policy.value for policy in CommitPolicy]),
    help="How completed seqs become the stored cursor",
)
@click.option("--silent", is_flag=True, help="Suppress per-package output")
@click.option("--verbose", "-v", is_flag=True, help="Show internal details on stderr")
@handle_cli_errors
def follow(
    since: int | None,
    tune_cache_min: bool | None,
    reconcile: bool | None,
    concurrency: int | None,
    commit_policy: str | None,
    silent: bool,
    verbose: bool,
) -> None:
    """Follow the registry change feed and warm or invalidate the cache.

    Runs until interrupted (SIGINT, SIGTERM, SIGHUP, SIGQUIT or SIGABRT),
    then finishes accepted work, stores the cursor and restores cache-min.
    """
    config = get_config_manager().load_config()
    setup_logging(
        silent=silent or config.output.silent,
        verbose=verbose or config.output.verbose,
    )
    status_logger = get_status_logger()

    try:
        asyncio.run(
            run_pipeline(
                config,
                since_override=since,
                reconcile=reconcile,
                tune_cache_min=tune_cache_min,
                commit_policy=CommitPolicy(commit_policy) if commit_policy else None,
                concurrency=concurrency,
            )
        )
    except CacheTuningError as e:
        status_logger.error(f"Cannot start: {e}")
        sys.exit(1)


@main.command()
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=DEFAULT_HISTORY_LIMIT,
    show_default=True,
    help="Number of recent completions to show",
)
@handle_cli_errors
def status(limit: int) -> None:
    """Show the stored cursor and recent sync activity."""
    status_logger = get_status_logger()

    config = get_config_manager().load_config()
    sync_status = get_sync_status(config, history_limit=limit)

    status_logger.info("Registry Cache Sync Status")
    status_logger.info("=" * 40)

    if sync_status["cursor_stored"]:
        status_logger.info(f"Cursor: {sync_status['cursor']}")
    else:
        status_logger.info(f"Cursor: {sync_status['cursor']} (initial, never committed)")

    if sync_status["saved_cache_min"] is not None:
        status_logger.info(
            f"cache-min override pending restore (prior value "
            f"{sync_status['saved_cache_min']})"
        )

    status_logger.info("\nOutcomes:")
    for outcome, count in sync_status["outcomes"].items():
        status_logger.info(f"  {outcome}: {count:,}")

    recent = sync_status["recent"]
    if not recent:
        status_logger.info("\nNo completed work recorded yet")
        return

    status_logger.info("\nRecent:")
    for row in recent:
        seq = row["seq"] if row["seq"] is not None else "reconcile"
        spec = f"{row['name']}@{row['version'] or '*'}"
        line = f"  [{row['completed_at']}] {seq} {row['outcome']} {spec}"
        if row["error"]:
            line += f" ({row['error']})"
        status_logger.info(line)


@main.command()
@handle_cli_errors
def config() -> None:
    """Show the complete current configuration."""
    config_output = get_config_manager().show_config()
    print(config_output)


if __name__ == "__main__":
    main()
