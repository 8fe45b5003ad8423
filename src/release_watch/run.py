"""
CLI runner for release-watch.

Usage:
    python -m release_watch.run [OPTIONS]

    # Check for new releases once
    python -m release_watch.run --once

    # Run as daemon, checking every poll interval
    python -m release_watch.run --daemon

    # Show tracked components without contacting anything
    python -m release_watch.run --dry-run
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from .config import WatchConfig
from .github import GitHubReleaseSource
from .inventory import DatasettePluginInventory, StaticInventory
from .mattermost import BotSettings, MattermostClient, activate_bot
from .migrations import run_migrations
from .models import CycleResult, OutcomeStatus, StateDatabase
from .reconciler import UpdateReconciler
from .scheduler import Scheduler

logger = logging.getLogger("release-watch")


def build_inventory(config: WatchConfig):
    """Pick the inventory provider named in config."""
    if config.inventory.source == "static":
        return StaticInventory(config.inventory.components)
    if config.inventory.source == "datasette":
        return DatasettePluginInventory(config.inventory.repositories)
    raise ValueError(f"Unknown inventory source: {config.inventory.source}")


def build_reconciler(config: WatchConfig) -> UpdateReconciler:
    """Wire the reconciler to its adapters."""
    db = StateDatabase(config.db_path)
    mattermost = MattermostClient(
        server_url=config.mattermost.server_url,
        token=config.mattermost.get_token(),
        timeout_seconds=config.request_timeout_seconds,
        bot=BotSettings(
            username=config.mattermost.bot_username,
            display_name=config.mattermost.bot_display_name,
            description=config.mattermost.bot_description,
        ),
    )
    releases = GitHubReleaseSource(
        api_base=config.github.api_base,
        token=config.github.get_token(),
        timeout_seconds=config.request_timeout_seconds,
    )
    return UpdateReconciler(
        inventory=build_inventory(config),
        releases=releases,
        state=db,
        resolver=mattermost,
        notifier=mattermost,
        db=db,
    )


async def run_once(config: WatchConfig, reconciler: UpdateReconciler | None = None) -> CycleResult:
    """Run a single reconciliation cycle and log its outcomes."""
    reconciler = reconciler or build_reconciler(config)
    result = await reconciler.run_cycle(config.to_cycle_config(), config.to_dict())

    if result.failed:
        logger.error(f"Cycle failed: {result.error}")
    for outcome in result.outcomes:
        if outcome.status == OutcomeStatus.ERRORED:
            logger.warning(f"  - {outcome.identity}: {outcome.error}")
    return result


async def run_daemon(config: WatchConfig) -> None:
    """Run cycles forever on the configured interval until stopped."""
    logger.info("Starting release-watch daemon")
    logger.info(f"Database: {config.db_path}")
    logger.info(f"Checking every {config.poll_interval_seconds:g} seconds")

    reconciler = build_reconciler(config)
    await activate_bot(reconciler.notifier)
    scheduler = Scheduler(
        lambda: run_once(config, reconciler),
        interval_seconds=config.poll_interval_seconds,
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, scheduler.stop)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform; Ctrl-C still ends the process
            pass

    scheduler.start()
    await scheduler.wait()


async def describe_components(config: WatchConfig) -> int:
    """Log the tracked components. Returns the number found."""
    components = await build_inventory(config).list_components()
    logger.info(f"Dry run: {len(components)} component(s) installed")
    for component in components:
        source = component.link_base or "untracked"
        logger.info(f"  - {component.name} {component.declared_version}: {source}")
    return len(components)


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="release-watch: notify about new releases of installed plugins",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Check once
    python -m release_watch.run --once

    # Run as daemon
    python -m release_watch.run --daemon

    # Use a specific config file
    python -m release_watch.run --config datasette.yaml --once
        """,
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=Path("datasette.yaml"),
        help="Path to config file (default: datasette.yaml)",
    )
    parser.add_argument(
        "--db",
        type=Path,
        help="Override state database path from config",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle and exit",
    )
    parser.add_argument(
        "--daemon",
        action="store_true",
        help="Run cycles on the configured poll interval",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List tracked components without contacting anything",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = WatchConfig.from_yaml(args.config)
    if args.db:
        config.db_path = args.db

    logger.info(f"Config loaded from {args.config}")

    if not config.enabled:
        logger.info("release-watch is disabled in config")
        return 0

    if args.dry_run:
        asyncio.run(describe_components(config))
        return 0

    run_migrations(config.db_path)

    if args.daemon:
        try:
            asyncio.run(run_daemon(config))
        except KeyboardInterrupt:
            logger.info("Daemon stopped by user")
        return 0

    if args.once:
        result = asyncio.run(run_once(config))
        if result.failed or result.counts()[OutcomeStatus.ERRORED.value]:
            return 1
        return 0

    # Default: show help
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
