"""
Reconciliation cycle for release-watch.

One cycle walks the installed components in order and, for each, decides
whether a newer release exists that nobody has been told about yet:

1) Resolve the recipient (abort the cycle if that fails)
2) List installed components (abort the cycle if that fails)
3) Per component: skip untracked ones, look up the latest release, compare it
   to the installed version and to the last notified version, notify, and
   only then record the notified version

Recording happens after delivery: a failed delivery is retried next cycle,
and a failed write may repeat a notification.
"""

import logging

from .config import CycleConfig
from .errors import (
    InventoryUnavailable,
    RecipientNotFound,
    ReleaseWatchError,
    StoreWriteError,
)
from .github import parse_repository_url
from .models import (
    Component,
    ComponentOutcome,
    CycleResult,
    OutcomeStatus,
    Release,
    RunStatus,
    StateDatabase,
)
from .ports import (
    InventoryProvider,
    NotificationStateStore,
    Notifier,
    Recipient,
    RecipientResolver,
    ReleaseSource,
)
from .version import is_newer, parse_version

logger = logging.getLogger(__name__)

LINK_TEXT = "Jump to the release"


def release_url(component: Component, release: Release) -> str:
    """Link to a release tag within the component's repository."""
    return f"{component.link_base}/releases/tag/{release.tag}"


def format_notification(component: Component, release: Release, version: str) -> str:
    """Build the plain-text (Markdown link) notification message."""
    return (
        f"{component.name} can be updated to version {version}. "
        f"[{LINK_TEXT}]({release_url(component, release)})"
    )


class UpdateReconciler:
    """Runs one reconciliation cycle over all installed components."""

    def __init__(
        self,
        inventory: InventoryProvider,
        releases: ReleaseSource,
        state: NotificationStateStore,
        resolver: RecipientResolver,
        notifier: Notifier,
        db: StateDatabase | None = None,
    ):
        """
        Initialize the reconciler.

        Args:
            inventory: Lists installed components
            releases: Looks up latest releases
            state: Highest notified version per component
            resolver: Resolves the configured recipient
            notifier: Delivers notifications
            db: Optional database used to record cycle runs
        """
        self.inventory = inventory
        self.releases = releases
        self.state = state
        self.resolver = resolver
        self.notifier = notifier
        self.db = db

    async def run_cycle(
        self, config: CycleConfig, snapshot: dict | None = None
    ) -> CycleResult:
        """
        Run one cycle.

        Cycle-level failures (recipient, inventory) are reported through
        ``CycleResult.error`` with no outcomes. Per-component failures become
        ``errored`` outcomes and never stop the cycle.
        """
        run = self.db.create_run(snapshot) if self.db else None
        result = CycleResult(run_id=run.run_id if run else None)

        try:
            recipient = await self._resolve_recipient(config)
            components = await self._list_components()
        except (RecipientNotFound, InventoryUnavailable) as e:
            logger.error(f"Cycle aborted: {e}")
            result.error = f"{type(e).__name__}: {e}"
            if run:
                self.db.complete_run(
                    run.run_id, result.counts(), RunStatus.FAILED, result.error
                )
            return result

        logger.debug(f"Checking {len(components)} component(s) for updates")
        for component in components:
            result.outcomes.append(await self._reconcile_component(component, recipient))

        counts = result.counts()
        logger.info(
            f"Cycle complete: {counts['notified']} notified, "
            f"{counts['errored']} errors, {len(components)} component(s)"
        )
        if run:
            self.db.complete_run(run.run_id, counts, RunStatus.COMPLETED)
        return result

    async def _resolve_recipient(self, config: CycleConfig) -> Recipient:
        if not config.recipient:
            raise RecipientNotFound("No notification recipient configured")
        return await self.resolver.resolve(config.recipient)

    async def _list_components(self) -> list[Component]:
        return list(await self.inventory.list_components())

    async def _reconcile_component(
        self, component: Component, recipient: Recipient
    ) -> ComponentOutcome:
        try:
            return await self._check_component(component, recipient)
        except ReleaseWatchError as e:
            logger.warning(f"Update check failed for {component.identity}: {e}")
            return ComponentOutcome(
                component.identity, OutcomeStatus.ERRORED, error=f"{type(e).__name__}: {e}"
            )
        except Exception as e:
            logger.exception(f"Unexpected error checking {component.identity}")
            return ComponentOutcome(
                component.identity, OutcomeStatus.ERRORED, error=f"{type(e).__name__}: {e}"
            )

    async def _check_component(
        self, component: Component, recipient: Recipient
    ) -> ComponentOutcome:
        identity = component.identity
        logger.debug(f"Checking for updates: {identity}")

        if not component.is_tracked:
            return ComponentOutcome(identity, OutcomeStatus.SKIPPED)

        repository = component.repository or parse_repository_url(component.repository_url)
        release = await self.releases.latest_release(repository)

        declared = parse_version(component.declared_version)
        available = release.parsed_version
        if not is_newer(available, declared):
            logger.debug(f"No need to update {identity} ({declared} >= {available})")
            return ComponentOutcome(identity, OutcomeStatus.UP_TO_DATE, version=str(available))

        last_notified = self.state.get(identity)
        if last_notified is not None and not is_newer(available, last_notified):
            logger.debug(f"Already notified about {identity} {last_notified}")
            return ComponentOutcome(
                identity, OutcomeStatus.ALREADY_NOTIFIED, version=str(available)
            )

        message = format_notification(component, release, release.version)
        await self.notifier.send(recipient, message)
        logger.info(f"Notified {recipient.identity}: {identity} {declared} -> {available}")

        try:
            self.state.set(identity, available)
        except StoreWriteError as e:
            # Delivered but not recorded: the next cycle notifies again
            logger.warning(f"Could not record notification for {identity}: {e}")
            return ComponentOutcome(
                identity, OutcomeStatus.NOTIFIED, version=str(available), error=str(e)
            )

        return ComponentOutcome(identity, OutcomeStatus.NOTIFIED, version=str(available))
