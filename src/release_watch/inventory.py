"""
Inventory providers: which components are installed, at what version, and
where their source lives.
"""

import logging
from importlib import metadata
from typing import Any

from .errors import InventoryUnavailable, RepositoryMalformed
from .github import GITHUB_HOST, parse_repository_url
from .models import Component

logger = logging.getLogger(__name__)

# Project-URL labels checked first, in order, when picking a source repository
PREFERRED_URL_LABELS = ("source", "source code", "repository", "code", "homepage")


def build_component(name: str, version: str, repository_url: str | None) -> Component:
    """
    Create a Component, parsing the repository reference when possible.

    An unparseable reference is kept as ``repository_url`` only, so the
    reconciler can report it instead of silently skipping the component.
    """
    repository = None
    if repository_url:
        try:
            repository = parse_repository_url(repository_url)
        except RepositoryMalformed:
            logger.debug(f"Repository reference for {name} is malformed: {repository_url}")

    return Component(
        identity=name,
        name=name,
        declared_version=version,
        repository=repository,
        repository_url=repository_url or None,
    )


def repository_url_from_metadata(distribution: str) -> str | None:
    """Find a GitHub repository URL in an installed distribution's metadata."""
    try:
        meta = metadata.metadata(distribution)
    except metadata.PackageNotFoundError:
        return None

    labelled: dict[str, str] = {}
    for entry in meta.get_all("Project-URL") or []:
        label, _, url = entry.partition(",")
        url = url.strip()
        if GITHUB_HOST in url:
            labelled.setdefault(label.strip().lower(), url)

    for label in PREFERRED_URL_LABELS:
        if label in labelled:
            return labelled[label]
    if labelled:
        return next(iter(labelled.values()))

    home_page = meta.get("Home-page")
    if home_page and GITHUB_HOST in home_page:
        return home_page.strip()
    return None


class DatasettePluginInventory:
    """
    Plugins installed alongside Datasette.

    Built-in plugins shipped inside Datasette have no distribution version and
    are ignored.
    """

    def __init__(self, repositories: dict[str, str] | None = None):
        """
        Args:
            repositories: Repository URL overrides keyed by plugin name
        """
        self.repositories = dict(repositories or {})

    async def list_components(self) -> list[Component]:
        # Imported here: datasette.plugins loads this package while initialising
        from datasette.plugins import get_plugins

        try:
            plugins = get_plugins()
        except Exception as e:
            raise InventoryUnavailable(f"Could not list Datasette plugins: {e}") from e

        components = []
        for plugin in plugins:
            name = plugin.get("name")
            version = plugin.get("version")
            if not name or not version:
                continue
            repository_url = self.repositories.get(name) or repository_url_from_metadata(name)
            components.append(build_component(name, version, repository_url))

        return sorted(components, key=lambda c: c.identity)


class StaticInventory:
    """Components declared directly in configuration."""

    def __init__(self, entries: list[dict[str, Any]]):
        self.entries = list(entries)

    async def list_components(self) -> list[Component]:
        components = []
        for entry in self.entries:
            if not isinstance(entry, dict) or not entry.get("name"):
                raise InventoryUnavailable(f"Invalid inventory entry: {entry!r}")
            components.append(
                build_component(
                    entry["name"],
                    str(entry.get("version", "")),
                    entry.get("repository"),
                )
            )
        return sorted(components, key=lambda c: c.identity)
