"""Waterfall resolver orchestrating license sources in priority order.

This module implements the waterfall resolution strategy, which chains the
local disk, GitHub API and git sources, consulting the resolution cache
before touching any of them.
"""

import asyncio
import hashlib
import logging
from typing import Callable, Optional

import aiohttp

from license_fetcher.cache import MemoryLicenseCache, ResolutionCache
from license_fetcher.config import DEFAULT_CONCURRENCY
from license_fetcher.errors import LicenseSourceFailed, UnresolvedLicenseError
from license_fetcher.models import (
    LicenseResolution,
    PackageIdentity,
    ResolutionRequest,
)
from license_fetcher.resolvers.base import BaseResolver, WaterfallResolverBase

logger = logging.getLogger(__name__)

# Bump whenever a change to the sources would produce different results.
RESOLVER_LOGIC_VERSION = "1"


def resolver_version(license_pattern: str) -> str:
    """Return the cache version for the current logic and file name pattern.

    Changing the pattern changes which files are read, so it invalidates
    cached entries just like a logic change.
    """
    digest = hashlib.sha256(license_pattern.encode("utf-8")).hexdigest()[:12]
    return f"{RESOLVER_LOGIC_VERSION}:{digest}"


class WaterfallResolver(WaterfallResolverBase):
    """Resolves license texts through an ordered chain of sources.

    Resolution strategy:
    1. Cache: a hit for the identity and resolver version is returned as is.
    2. Sources in priority order; the first one returning a resolution wins.
       A failing source is logged and superseded, never retried.
    3. Not found: recorded in the cache; fatal only when strict applies.

    Attributes:
        cache: Resolution cache shared by all packages.
        version: Resolver version stored with, and required of, cache entries.
        is_strict: Predicate deciding whether a package must resolve.
        concurrency: Maximum number of packages resolved at once.
    """

    def __init__(
        self,
        resolvers: list[BaseResolver],
        cache: Optional[ResolutionCache] = None,
        version: str = RESOLVER_LOGIC_VERSION,
        is_strict: Optional[Callable[[str], bool]] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        super().__init__(resolvers=resolvers)
        self.cache = cache if cache is not None else MemoryLicenseCache()
        self.version = version
        self.is_strict = is_strict or (lambda name: False)
        self.concurrency = concurrency

    async def _resolve_uncached(self, request: ResolutionRequest) -> LicenseResolution:
        for resolver in self.resolvers:
            try:
                resolution = await resolver.resolve(request)
            except (LicenseSourceFailed, aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                logger.warning(
                    "%s source failed for %s: %s%s",
                    resolver.name,
                    request.identity,
                    e,
                    f" ({e.__cause__})" if e.__cause__ else "",
                )
                continue

            if resolution is not None and resolution.found:
                logger.debug(
                    "Resolved %s from %s", request.identity, resolution.provenance.value
                )
                return resolution

        return LicenseResolution.not_found()

    async def resolve(self, request: ResolutionRequest) -> LicenseResolution:
        """Resolve the license text of one package.

        Args:
            request: Package to resolve.

        Returns:
            The cached or freshly resolved LicenseResolution.

        Raises:
            UnresolvedLicenseError: If nothing was found and strict applies to
                the package.
        """
        identity = request.identity
        resolution = self.cache.get(identity, self.version)
        if resolution is not None:
            logger.debug("Cache hit for %s", identity)
        else:
            resolution = await self._resolve_uncached(request)
            self.cache.put(identity, self.version, resolution)

        if not resolution.found:
            if self.is_strict(identity.name):
                raise UnresolvedLicenseError(identity.name, identity.version)
            logger.warning("No license text found for %s", identity)

        return resolution

    async def resolve_batch(
        self, requests: list[ResolutionRequest]
    ) -> dict[PackageIdentity, LicenseResolution]:
        """Resolve many packages concurrently on a bounded pool.

        Each identity is resolved once even if requested several times.
        Completion order does not matter; results are keyed by identity.

        Raises:
            UnresolvedLicenseError: If a strict package could not be resolved.
                The remaining resolutions are cancelled before it propagates.
        """
        unique = {request.identity: request for request in requests}
        logger.info("Resolving licenses of %d packages", len(unique))

        semaphore = asyncio.Semaphore(self.concurrency)

        async def bounded(request: ResolutionRequest) -> LicenseResolution:
            async with semaphore:
                return await self.resolve(request)

        identities = list(unique)
        tasks = [asyncio.create_task(bounded(unique[i])) for i in identities]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        resolved = dict(zip(identities, results))

        found = sum(1 for resolution in resolved.values() if resolution.found)
        logger.info("License resolution complete: %d/%d found", found, len(resolved))
        return resolved

    async def close(self) -> None:
        """Close any open resources (like HTTP sessions)."""
        for resolver in self.resolvers:
            await resolver.close()

    async def __aenter__(self) -> "WaterfallResolver":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
