"""Shared pytest fixtures for release-watch tests."""

import pytest

from release_watch import mattermost
from release_watch.errors import DeliveryFailed, LookupFailed, RecipientNotFound
from release_watch.migrations import run_migrations
from release_watch.models import Component, Release, RepositoryRef, StateDatabase
from release_watch.ports import Recipient


@pytest.fixture
def db_path(tmp_path):
    """Create a temporary state database with the full schema via migrations."""
    db_file = tmp_path / "release_watch.db"
    run_migrations(db_file)
    return db_file


@pytest.fixture
def state_db(db_path):
    return StateDatabase(db_path)


@pytest.fixture(autouse=True)
def reset_bot_cache():
    """Every test starts without a cached bot account."""
    mattermost.reset_bot_user_id()
    yield
    mattermost.reset_bot_user_id()


def make_component(name: str, version: str = "1.2.0", repo: str | None = "default"):
    """Build a component tracked at github.com/example/<name> unless told otherwise."""
    if repo == "default":
        repo = f"example/{name}"
    repository = None
    repository_url = None
    if repo:
        owner, repo_name = repo.split("/")
        repository = RepositoryRef("github.com", owner, repo_name)
        repository_url = repository.url
    return Component(
        identity=name,
        name=name,
        declared_version=version,
        repository=repository,
        repository_url=repository_url,
    )


class FakeInventory:
    def __init__(self, components, error: Exception | None = None):
        self.components = list(components)
        self.error = error

    async def list_components(self):
        if self.error:
            raise self.error
        return list(self.components)


class FakeReleaseSource:
    """Latest release tags keyed by repository name; missing names fail lookup."""

    def __init__(self, tags: dict[str, str]):
        self.tags = dict(tags)
        self.calls: list[str] = []

    async def latest_release(self, repository):
        self.calls.append(repository.name)
        if repository.name not in self.tags:
            raise LookupFailed(f"No release for {repository.slug}")
        return Release(tag=self.tags[repository.name])


class FakeResolver:
    def __init__(self, known=("alice",)):
        self.known = set(known)

    async def resolve(self, identity):
        if identity not in self.known:
            raise RecipientNotFound(f"Unknown recipient: {identity}")
        return Recipient(identity=identity, handle=f"user-{identity}")


class FakeNotifier:
    def __init__(self, fail_for: set[str] | None = None):
        self.sent: list[tuple[Recipient, str]] = []
        self.fail_for = fail_for or set()

    async def send(self, recipient, message):
        if any(message.startswith(f"{name} ") for name in self.fail_for):
            raise DeliveryFailed("channel unavailable")
        self.sent.append((recipient, message))
