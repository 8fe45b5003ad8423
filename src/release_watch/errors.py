"""
Exception taxonomy for release-watch.

Cycle-fatal errors stop a whole reconciliation cycle. Everything else is
scoped to a single component and is recorded as that component's outcome.
"""


class ReleaseWatchError(Exception):
    """Base class for all release-watch errors."""

    cycle_fatal: bool = False


# -----------------------------------------------------------------------------
# Cycle-level
# -----------------------------------------------------------------------------


class RecipientNotFound(ReleaseWatchError):
    """The configured notification recipient could not be resolved."""

    cycle_fatal = True


class InventoryUnavailable(ReleaseWatchError):
    """The list of installed components could not be obtained."""

    cycle_fatal = True


# -----------------------------------------------------------------------------
# Per-component
# -----------------------------------------------------------------------------


class RepositoryMalformed(ReleaseWatchError):
    """A repository reference does not have the expected owner/name shape."""


class LookupFailed(ReleaseWatchError):
    """The latest release for a repository could not be fetched."""


class MalformedVersion(ReleaseWatchError, ValueError):
    """A version string is not a valid semantic version."""


class DeliveryFailed(ReleaseWatchError):
    """A notification could not be delivered."""


class StoreWriteError(ReleaseWatchError):
    """The notification state could not be persisted."""
