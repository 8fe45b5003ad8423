"""
Ports (interfaces) used by the reconciler.

The reconciler only talks to these contracts, so the host inventory, release
lookup, delivery channel and state backend can each be swapped independently.
"""

from dataclasses import dataclass
from typing import Protocol

from .models import Component, Release, RepositoryRef
from .version import SemanticVersion


@dataclass(frozen=True)
class Recipient:
    """A resolved notification recipient."""

    identity: str
    handle: str


class InventoryProvider(Protocol):
    """Lists installed components. Raises InventoryUnavailable."""

    async def list_components(self) -> list[Component]:
        ...


class ReleaseSource(Protocol):
    """Looks up the latest release. Raises RepositoryMalformed or LookupFailed."""

    async def latest_release(self, repository: RepositoryRef) -> Release:
        ...


class NotificationStateStore(Protocol):
    """Highest version already notified per component identity."""

    def get(self, identity: str) -> SemanticVersion | None:
        ...

    def set(self, identity: str, version: SemanticVersion) -> bool:
        ...


class RecipientResolver(Protocol):
    """Resolves a configured identity. Raises RecipientNotFound."""

    async def resolve(self, identity: str) -> Recipient:
        ...


class Notifier(Protocol):
    """Delivers a text notification. Raises DeliveryFailed."""

    async def send(self, recipient: Recipient, message: str) -> None:
        ...
