"""GitHub license source.

Fetches license text from GitHub's repository license API.
"""

import asyncio
import base64
import binascii
import logging
from typing import Optional
from urllib.parse import urlparse

import aiohttp

from license_fetcher.config import DEFAULT_TIMEOUT
from license_fetcher.models import LicenseResolution, Provenance, ResolutionRequest
from license_fetcher.resolvers.http import HttpResolver

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"


def parse_github_url(url: str) -> Optional[tuple[str, str]]:
    """Parse a GitHub URL to extract owner and repository name.

    Accepts ``https://github.com/owner/repo``, with an optional ``.git``
    suffix, trailing path (``/tree/main/sub``) and ``git@github.com:``
    SSH form.

    Args:
        url: Repository URL.

    Returns:
        Tuple of (owner, repo) if valid GitHub URL, None otherwise.
    """
    if url.startswith("git@github.com:"):
        path = url[len("git@github.com:"):]
    else:
        parsed = urlparse(url)
        if parsed.netloc.lower() not in ("github.com", "www.github.com"):
            return None
        path = parsed.path

    parts = [part for part in path.strip("/").split("/") if part]
    if len(parts) < 2:
        return None

    owner, repo = parts[0], parts[1]
    if repo.endswith(".git"):
        repo = repo[:-4]
    if not owner or not repo:
        return None

    return (owner, repo)


class GitHubResolver(HttpResolver):
    """Source that fetches license text from GitHub's API.

    Missing credentials and rate limiting are not errors: the source simply
    reports nothing and the next source in the chain is tried. After the
    first rate-limited response, no further requests are made.

    Attributes:
        github_token: Optional GitHub personal access token for authentication.
    """

    def __init__(
        self,
        github_token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        api_url: str = GITHUB_API,
    ) -> None:
        """Initialize GitHubResolver.

        Args:
            github_token: Optional GitHub personal access token for API authentication.
                Increases rate limit from 60 to 5000 requests/hour.
            timeout: Total seconds allowed for one request.
            api_url: Base URL of the GitHub REST API.
        """
        super().__init__(timeout=timeout)
        self.github_token = github_token
        self.api_url = api_url.rstrip("/")
        self.rate_limited = False

    @property
    def name(self) -> str:
        return "GitHub"

    @property
    def priority(self) -> int:
        return 50

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.github_token:
            headers["Authorization"] = f"Bearer {self.github_token}"
        return headers

    async def _fetch_license(self, owner: str, repo: str) -> Optional[dict]:
        """Fetch license information from GitHub API.

        Args:
            owner: Repository owner.
            repo: Repository name.

        Returns:
            License data dictionary from GitHub API, or None if fetch failed.
        """
        url = f"{self.api_url}/repos/{owner}/{repo}/license"
        session = await self._get_session()

        try:
            async with session.get(url, headers=self._headers()) as response:
                if response.status in (403, 429):
                    self.rate_limited = True
                    logger.warning(
                        "GitHub API rate limit reached (status %d); "
                        "skipping GitHub for the remaining packages",
                        response.status,
                    )
                    return None

                if response.status == 401:
                    logger.warning("GitHub API rejected the provided token")
                    return None

                if response.status != 200:
                    logger.debug("GitHub API returned %d for %s/%s", response.status, owner, repo)
                    return None

                return await response.json()

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug("GitHub request for %s/%s failed: %r", owner, repo, e)
            return None

    async def resolve(self, request: ResolutionRequest) -> Optional[LicenseResolution]:
        if not request.repository or self.rate_limited:
            return None

        parsed = parse_github_url(request.repository)
        if parsed is None:
            return None

        owner, repo = parsed
        license_data = await self._fetch_license(owner, repo)
        if license_data is None:
            return None

        text = _decode_content(license_data)
        if text is None:
            logger.debug("GitHub license payload for %s/%s has no usable content", owner, repo)
            return None

        return LicenseResolution(text=text, provenance=Provenance.REMOTE_API)


def _decode_content(license_data: dict) -> Optional[str]:
    content = license_data.get("content")
    if not isinstance(content, str):
        return None
    if license_data.get("encoding", "base64") != "base64":
        return content
    try:
        return base64.b64decode(content).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
