"""
Mattermost delivery for release-watch.

Notifications are posted by a dedicated bot account into a direct channel
between the bot and the configured recipient. The bot's user id is resolved
once per process and then reused.
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass

import httpx

from .errors import DeliveryFailed, RecipientNotFound
from .ports import Recipient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BotSettings:
    """Account details used when the bot has to be created."""

    username: str = "pluginupdate"
    display_name: str = "Plugin Update"
    description: str = "Announces new releases of installed plugins"


# -----------------------------------------------------------------------------
# Bot actor (process-wide)
# -----------------------------------------------------------------------------

# (server_url, bot username) -> bot user id
_bot_user_ids: dict[tuple[str, str], str] = {}
# One lock per event loop; an asyncio.Lock is bound to the loop it waits on
_bot_locks: weakref.WeakKeyDictionary = weakref.WeakKeyDictionary()


def _bot_lock() -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    lock = _bot_locks.get(loop)
    if lock is None:
        lock = _bot_locks[loop] = asyncio.Lock()
    return lock


async def get_bot_user_id(client: "MattermostClient") -> str:
    """
    Return the bot user id for ``client``'s server, creating the bot if needed.

    The id is cached for the lifetime of the process. A cached id is reused
    as-is; a missing one is looked up (and the bot created) again.
    """
    key = (client.server_url, client.bot.username)
    async with _bot_lock():
        user_id = _bot_user_ids.get(key)
        if user_id is None:
            user_id = await client.ensure_bot()
            _bot_user_ids[key] = user_id
            logger.info(f"Using bot account {client.bot.username} ({user_id})")
    return user_id


def reset_bot_user_id() -> None:
    """Forget cached bot ids so the next delivery resolves them again."""
    _bot_user_ids.clear()


async def activate_bot(client: "MattermostClient") -> str | None:
    """
    Set up the bot account for the current configuration.

    Called when checks start. Any previously cached id is dropped first. A
    server that cannot be reached is logged and left to the first delivery.
    """
    reset_bot_user_id()
    try:
        return await get_bot_user_id(client)
    except (httpx.HTTPError, KeyError, ValueError) as e:
        logger.warning(f"Could not set up bot account {client.bot.username}: {e}")
        return None


# -----------------------------------------------------------------------------
# REST client
# -----------------------------------------------------------------------------


class MattermostClient:
    """Mattermost REST API v4 client: recipient resolution and delivery."""

    def __init__(
        self,
        server_url: str,
        token: str | None,
        timeout_seconds: float = 10.0,
        bot: BotSettings | None = None,
    ):
        self.server_url = server_url.rstrip("/")
        self.token = token
        self.timeout = timeout_seconds
        self.bot = bot or BotSettings()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.request(
                method, f"{self.server_url}/api/v4{path}", headers=headers, **kwargs
            )

    async def _get_user_by_username(self, username: str) -> dict | None:
        response = await self._request("GET", f"/users/username/{username}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    async def resolve(self, identity: str) -> Recipient:
        """
        Resolve a Mattermost username to a recipient.

        Raises:
            RecipientNotFound: if no username is configured, the user does
                not exist, or the server cannot be asked
        """
        if not identity:
            raise RecipientNotFound("No notification recipient configured")

        try:
            user = await self._get_user_by_username(identity)
        except (httpx.HTTPError, ValueError) as e:
            raise RecipientNotFound(f"Could not resolve recipient {identity}: {e}") from e

        if not user or not user.get("id"):
            raise RecipientNotFound(f"Unknown recipient: {identity}")
        return Recipient(identity=identity, handle=user["id"])

    async def ensure_bot(self) -> str:
        """Return the bot's user id, creating the bot account if it is missing."""
        user = await self._get_user_by_username(self.bot.username)
        if user and user.get("id"):
            return user["id"]

        logger.info(f"Creating bot account {self.bot.username}")
        response = await self._request(
            "POST",
            "/bots",
            json={
                "username": self.bot.username,
                "display_name": self.bot.display_name,
                "description": self.bot.description,
            },
        )
        response.raise_for_status()
        return response.json()["user_id"]

    async def send(self, recipient: Recipient, message: str) -> None:
        """
        Post ``message`` in the direct channel between the bot and ``recipient``.

        Raises:
            DeliveryFailed: on any API or transport error
        """
        try:
            bot_user_id = await get_bot_user_id(self)

            response = await self._request(
                "POST", "/channels/direct", json=[bot_user_id, recipient.handle]
            )
            response.raise_for_status()
            channel_id = response.json()["id"]

            response = await self._request(
                "POST",
                "/posts",
                json={"channel_id": channel_id, "message": message},
            )
            response.raise_for_status()
        except (httpx.HTTPError, KeyError, ValueError) as e:
            raise DeliveryFailed(
                f"Could not deliver notification to {recipient.identity}: {e}"
            ) from e

        logger.debug(f"Delivered notification to {recipient.identity}")
