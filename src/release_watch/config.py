"""
Configuration for release-watch.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

PLUGIN_NAME = "datasette-release-watch"


def _resolve_secret(value: str | None, env_name: str | None) -> str | None:
    if value:
        return value
    if env_name:
        return os.environ.get(env_name)
    return None


@dataclass
class GitHubConfig:
    """GitHub release lookup configuration."""

    api_base: str = "https://api.github.com"
    token: str | None = None
    token_env: str | None = "GITHUB_TOKEN"

    def get_token(self) -> str | None:
        """Get API token from config or environment."""
        return _resolve_secret(self.token, self.token_env)


@dataclass
class MattermostConfig:
    """Mattermost server used to deliver direct messages."""

    server_url: str = "http://localhost:8065"
    token: str | None = None
    token_env: str | None = "MATTERMOST_TOKEN"
    bot_username: str = "pluginupdate"
    bot_display_name: str = "Plugin Update"
    bot_description: str = "Announces new releases of installed plugins"

    def get_token(self) -> str | None:
        """Get access token from config or environment."""
        return _resolve_secret(self.token, self.token_env)


@dataclass
class InventoryConfig:
    """Where the list of installed components comes from."""

    source: str = "datasette"  # datasette, static
    # Repository URL overrides keyed by component name
    repositories: dict[str, str] = field(default_factory=dict)
    # Explicit components for source=static: [{name, version, repository}]
    components: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class CycleConfig:
    """Immutable per-cycle view of the configuration."""

    recipient: str | None
    poll_interval_seconds: float


@dataclass
class WatchConfig:
    """Complete release-watch configuration."""

    enabled: bool = True
    # Run cycles inside the Datasette process (see plugin.py)
    background: bool = False
    db_path: Path = field(default_factory=lambda: Path("release_watch.db"))
    recipient: str | None = None
    poll_interval_seconds: float = 60.0
    request_timeout_seconds: float = 10.0

    github: GitHubConfig = field(default_factory=GitHubConfig)
    mattermost: MattermostConfig = field(default_factory=MattermostConfig)
    inventory: InventoryConfig = field(default_factory=InventoryConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WatchConfig":
        """Create config from a dictionary (e.g., from YAML)."""
        config = cls()

        if "enabled" in data:
            config.enabled = data["enabled"]
        if "background" in data:
            config.background = data["background"]
        if "db_path" in data:
            config.db_path = Path(data["db_path"])
        if "recipient" in data:
            config.recipient = data["recipient"]
        if "poll_interval_seconds" in data:
            config.poll_interval_seconds = float(data["poll_interval_seconds"])
        if "request_timeout_seconds" in data:
            config.request_timeout_seconds = float(data["request_timeout_seconds"])

        if "github" in data:
            gh = data["github"]
            config.github = GitHubConfig(
                api_base=gh.get("api_base", config.github.api_base),
                token=gh.get("token"),
                token_env=gh.get("token_env", config.github.token_env),
            )

        if "mattermost" in data:
            mm = data["mattermost"]
            defaults = MattermostConfig()
            config.mattermost = MattermostConfig(
                server_url=mm.get("server_url", defaults.server_url),
                token=mm.get("token"),
                token_env=mm.get("token_env", defaults.token_env),
                bot_username=mm.get("bot_username", defaults.bot_username),
                bot_display_name=mm.get("bot_display_name", defaults.bot_display_name),
                bot_description=mm.get("bot_description", defaults.bot_description),
            )

        if "inventory" in data:
            inv = data["inventory"]
            config.inventory = InventoryConfig(
                source=inv.get("source", "datasette"),
                repositories=dict(inv.get("repositories") or {}),
                components=list(inv.get("components") or []),
            )

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "WatchConfig":
        """
        Load config from a YAML file.

        Accepts either a datasette.yaml with the settings under
        plugins.datasette-release-watch.watch, or a standalone file with a
        top-level ``watch`` key.
        """
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        plugin_config = data.get("plugins", {}).get(PLUGIN_NAME)
        if plugin_config is not None:
            return cls.from_dict(plugin_config.get("watch", {}))
        return cls.from_dict(data.get("watch", {}))

    def to_cycle_config(self) -> CycleConfig:
        """Snapshot the values a single cycle needs."""
        return CycleConfig(
            recipient=self.recipient,
            poll_interval_seconds=self.poll_interval_seconds,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for JSON serialization. Secrets are omitted."""
        return {
            "enabled": self.enabled,
            "background": self.background,
            "db_path": str(self.db_path),
            "recipient": self.recipient,
            "poll_interval_seconds": self.poll_interval_seconds,
            "request_timeout_seconds": self.request_timeout_seconds,
            "github": {"api_base": self.github.api_base},
            "mattermost": {
                "server_url": self.mattermost.server_url,
                "bot_username": self.mattermost.bot_username,
            },
            "inventory": {
                "source": self.inventory.source,
                "repositories": dict(self.inventory.repositories),
            },
        }
