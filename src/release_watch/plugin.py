"""
Datasette plugin hooks for release-watch.

- startup: prepares the state database and, with ``background: true``, runs
  reconciliation cycles inside the Datasette process
- /-/release-watch: notification state and recent cycles (root only)
"""

import logging
from dataclasses import asdict

from datasette import Response, hookimpl
from datasette.utils.asgi import Request

from .config import PLUGIN_NAME, WatchConfig
from .mattermost import activate_bot
from .migrations import run_migrations
from .models import StateDatabase
from .scheduler import Scheduler

logger = logging.getLogger(__name__)

# id(datasette) -> background scheduler
_schedulers: dict[int, Scheduler] = {}


def get_watch_config(datasette) -> WatchConfig:
    """Get release-watch configuration from datasette.yaml."""
    config = datasette.plugin_config(PLUGIN_NAME) or {}
    return WatchConfig.from_dict(config.get("watch", {}))


def get_scheduler(datasette) -> Scheduler | None:
    return _schedulers.get(id(datasette))


async def start_background_watch(datasette, config: WatchConfig) -> Scheduler:
    """Set up the bot and start the reconciliation loop on the running event loop."""
    # Imported here: the runner pulls in modules that datasette.plugins is still loading
    from . import run

    scheduler = get_scheduler(datasette)
    if scheduler is not None and scheduler.running:
        return scheduler

    reconciler = run.build_reconciler(config)
    await activate_bot(reconciler.notifier)
    scheduler = Scheduler(
        lambda: run.run_once(config, reconciler),
        interval_seconds=config.poll_interval_seconds,
    )
    scheduler.start()
    _schedulers[id(datasette)] = scheduler
    logger.info(f"Checking for plugin releases every {config.poll_interval_seconds:g} seconds")
    return scheduler


def stop_background_watch(datasette) -> Scheduler | None:
    """Ask the background loop to stop. Returns the scheduler, if any."""
    scheduler = _schedulers.pop(id(datasette), None)
    if scheduler is not None:
        scheduler.stop()
    return scheduler


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------


async def release_watch_status(request: Request, datasette) -> Response:
    """Notification state and recent cycles as JSON."""
    if not request.actor or request.actor.get("id") != "root":
        return Response.text("Forbidden", status=403)

    config = get_watch_config(datasette)
    if not config.enabled:
        return Response.json({"enabled": False})

    db = StateDatabase(config.db_path)
    scheduler = get_scheduler(datasette)

    return Response.json(
        {
            "enabled": True,
            "config": config.to_dict(),
            "background": bool(scheduler and scheduler.running),
            "notified": db.all_records(),
            "runs": [asdict(run) for run in db.recent_runs()],
        }
    )


# -----------------------------------------------------------------------------
# Datasette Hooks
# -----------------------------------------------------------------------------


@hookimpl
def register_routes():
    """Register plugin routes with Datasette."""
    return [
        (r"^/-/release-watch$", release_watch_status),
    ]


@hookimpl
def startup(datasette):
    """
    Run on Datasette startup.

    Migrates the state database, then starts background checks if configured.
    """
    config = get_watch_config(datasette)
    if not config.enabled:
        return None

    async def inner():
        run_migrations(config.db_path)
        if config.background:
            await start_background_watch(datasette, config)

    return inner
