"""Version-control license source.

Shallow-clones a package's repository into a temporary directory and runs
the local license file heuristic against the fetched tree.
"""

import asyncio
import logging
import re
import tempfile
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse, urlunparse

from license_fetcher.config import DEFAULT_TIMEOUT
from license_fetcher.errors import LicenseSourceFailed
from license_fetcher.models import LicenseResolution, Provenance, ResolutionRequest
from license_fetcher.process import CommandError, run_command
from license_fetcher.resolvers.base import BaseResolver
from license_fetcher.resolvers.local import LicenseFileMatcher

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"refs/tags/(?P<tag>[^\s^]+)$")

# Never prompt for credentials; a private repository is simply a failure.
GIT_ENV = {"GIT_TERMINAL_PROMPT": "0", "GIT_ASKPASS": "echo"}


def split_repository_url(url: str) -> tuple[str, Optional[str]]:
    """Split a browse URL into the clone URL and a monorepo subdirectory.

    ``https://github.com/owner/repo/tree/main/crates/foo`` becomes
    (``https://github.com/owner/repo``, ``crates/foo``). URLs without a
    ``/tree/<ref>/`` or ``/-/tree/<ref>/`` segment are returned unchanged.
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        return url, None

    parts = [part for part in parsed.path.split("/") if part]
    for marker in ("tree", "blob"):
        if marker in parts:
            index = parts.index(marker)
            repo_parts = parts[:index]
            if repo_parts and repo_parts[-1] == "-":
                repo_parts = repo_parts[:-1]
            subdir = "/".join(parts[index + 2:]) or None
            clone_url = urlunparse(parsed._replace(path="/" + "/".join(repo_parts)))
            return clone_url, subdir

    return url, None


def select_tag(tags: list[str], version: str) -> Optional[str]:
    """Pick the tag naming ``version``.

    Exact matches (``1.2.3``, ``v1.2.3``) are preferred, then tags ending in
    the version (``foo-v1.2.3``, for workspaces tagging per crate).
    """
    for candidate in (version, f"v{version}"):
        if candidate in tags:
            return candidate
    suffix = re.compile(rf"(?:^|[^0-9.])v?{re.escape(version)}$")
    suffixed = sorted(tag for tag in tags if suffix.search(tag))
    return suffixed[0] if suffixed else None


class GitResolver(BaseResolver):
    """Source cloning the package repository.

    Attributes:
        matcher: Heuristic used on the fetched tree.
        timeout: Seconds allowed for each git invocation.
        git: Git executable.
    """

    def __init__(
        self,
        matcher: Optional[LicenseFileMatcher] = None,
        timeout: float = DEFAULT_TIMEOUT,
        git: str = "git",
    ) -> None:
        self.matcher = matcher or LicenseFileMatcher()
        self.timeout = timeout
        self.git = git
        self._available: Optional[bool] = None

    @property
    def name(self) -> str:
        return "git"

    @property
    def priority(self) -> int:
        return 90

    async def git_installed(self) -> bool:
        """Return True if the git executable can be run (checked once)."""
        if self._available is None:
            try:
                await run_command([self.git, "--version"], timeout=self.timeout)
                self._available = True
            except CommandError as e:
                logger.warning("git is unavailable, skipping repository fetches: %s", e)
                self._available = False
        return self._available

    async def _remote_tags(self, url: str) -> list[str]:
        try:
            result = await run_command(
                [self.git, "ls-remote", "--tags", url],
                timeout=self.timeout,
                env=GIT_ENV,
            )
        except CommandError as e:
            logger.debug("Listing tags of %s failed: %s", url, e)
            return []

        tags = []
        for line in result.stdout.splitlines():
            match = _TAG_RE.search(line.strip())
            if match:
                tags.append(match.group("tag"))
        return tags

    async def _clone(self, url: str, tag: Optional[str], destination: Path) -> None:
        args = [self.git, "clone", "--depth", "1", "--single-branch", "--quiet"]
        if tag:
            args += ["--branch", tag]
        args += [url, str(destination)]
        try:
            await run_command(args, timeout=self.timeout, env=GIT_ENV)
        except CommandError as e:
            raise LicenseSourceFailed(f"Cloning {url} failed") from e

    async def resolve(self, request: ResolutionRequest) -> Optional[LicenseResolution]:
        if not request.repository:
            return None
        if not await self.git_installed():
            return None

        url, subdir = split_repository_url(request.repository)
        tag = select_tag(await self._remote_tags(url), request.identity.version)
        logger.debug("Cloning %s (tag=%s) for %s", url, tag, request.identity)

        with tempfile.TemporaryDirectory(prefix="license-fetcher-") as tmp:
            destination = Path(tmp) / "repository"
            await self._clone(url, tag, destination)
            text = await asyncio.to_thread(self._read_tree, destination, subdir)

        if text is None:
            return None
        return LicenseResolution(text=text, provenance=Provenance.VERSION_CONTROL)

    def _read_tree(self, root: Path, subdir: Optional[str]) -> Optional[str]:
        if subdir:
            scoped = (root / subdir).resolve()
            if scoped.is_dir() and scoped.is_relative_to(root.resolve()):
                text = self.matcher.read(scoped)
                if text is not None:
                    return text
        return self.matcher.read(root)
