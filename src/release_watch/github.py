"""
GitHub release lookup for release-watch.

API Documentation: https://docs.github.com/en/rest/releases/releases#get-the-latest-release
"""

import logging
import re

import httpx

from .errors import LookupFailed, RepositoryMalformed
from .models import Release, RepositoryRef

logger = logging.getLogger(__name__)

GITHUB_HOST = "github.com"
GITHUB_API_BASE = "https://api.github.com"

_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")
_SEGMENT = re.compile(r"^[A-Za-z0-9_.-]+$")


def parse_repository_url(url: str | None, default_host: str = GITHUB_HOST) -> RepositoryRef:
    """
    Parse a repository reference into host, owner and name.

    Accepted shapes:
        https://github.com/owner/name
        github.com/owner/name
        owner/name

    A trailing slash or ".git" suffix is ignored.

    Raises:
        RepositoryMalformed: if the reference does not reduce to owner/name
    """
    if not isinstance(url, str) or not url.strip():
        raise RepositoryMalformed(f"Empty repository reference: {url!r}")

    text = _SCHEME.sub("", url.strip())
    text = re.split(r"[?#]", text, maxsplit=1)[0].strip("/")
    if text.endswith(".git"):
        text = text[: -len(".git")]

    parts = text.split("/")
    host = default_host
    # Owner names cannot contain dots, so a dotted first segment is the host
    if len(parts) > 1 and "." in parts[0]:
        host = parts[0].lower()
        if host.startswith("www."):
            host = host[len("www."):]
        parts = parts[1:]

    if len(parts) != 2 or not all(_SEGMENT.match(part) for part in parts):
        raise RepositoryMalformed(
            f"Failed to extract owner and repository from {url!r}"
        )

    return RepositoryRef(host=host, owner=parts[0], name=parts[1])


class GitHubReleaseSource:
    """
    Release source backed by the GitHub REST API.

    Each lookup uses its own client with a bounded timeout, so one unreachable
    repository cannot stall the rest of a cycle.
    """

    def __init__(
        self,
        api_base: str = GITHUB_API_BASE,
        token: str | None = None,
        timeout_seconds: float = 10.0,
    ):
        """
        Initialize the release source.

        Args:
            api_base: GitHub API root (GitHub Enterprise uses a different one)
            token: Optional access token to raise rate limits
            timeout_seconds: Request timeout in seconds
        """
        self.api_base = api_base.rstrip("/")
        self.token = token
        self.timeout = timeout_seconds

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def latest_release(self, repository: RepositoryRef) -> Release:
        """
        Fetch the latest published release of a repository.

        Raises:
            LookupFailed: on unsupported hosts, HTTP or transport errors, and
                responses without a tag
        """
        if repository.host != GITHUB_HOST:
            raise LookupFailed(f"Unsupported repository host: {repository.host}")

        url = f"{self.api_base}/repos/{repository.owner}/{repository.name}/releases/latest"
        logger.debug(f"Looking up latest release of {repository.slug}")

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(
                    url, headers=self._headers(), follow_redirects=True
                )
                if response.status_code == 404:
                    raise LookupFailed(f"No published release for {repository.slug}")
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                raise LookupFailed(
                    f"HTTP {e.response.status_code} looking up {repository.slug}"
                ) from e
            except httpx.HTTPError as e:
                raise LookupFailed(f"Error looking up {repository.slug}: {e}") from e
            except ValueError as e:
                raise LookupFailed(f"Invalid response for {repository.slug}") from e

        tag = data.get("tag_name") if isinstance(data, dict) else None
        if not isinstance(tag, str) or not tag.strip():
            raise LookupFailed(f"Latest release of {repository.slug} has no tag")

        return Release(tag=tag.strip())
