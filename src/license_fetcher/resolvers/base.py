"""Base interface for license sources.

Each source tries to produce the license text of one package. Sources are
chained by the waterfall resolver, which stops at the first success.
"""

from abc import ABC, abstractmethod
from typing import Optional

from license_fetcher.models import (
    LicenseResolution,
    PackageIdentity,
    ResolutionRequest,
)


class BaseResolver(ABC):
    """Abstract base class for license sources.

    Sources are async-compatible so that many packages can be resolved
    concurrently.
    """

    @abstractmethod
    async def resolve(self, request: ResolutionRequest) -> Optional[LicenseResolution]:
        """Try to resolve the license text of a package.

        Args:
            request: Package identity and where its sources may be found.

        Returns:
            LicenseResolution with the text and provenance, or None if this
            source has nothing for the package.

        Raises:
            LicenseSourceFailed: If the source broke in a way worth reporting.
                The waterfall treats this exactly like None.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the source name for logging/debugging.

        Returns:
            Name like "local-disk", "GitHub", "git".
        """
        ...

    @property
    def priority(self) -> int:
        """Return source priority for waterfall ordering.

        Lower numbers are tried first. Default is 100.

        Returns:
            Priority value.
        """
        return 100

    async def close(self) -> None:
        """Release resources held by the source."""


class WaterfallResolverBase(ABC):
    """Abstract base for waterfall resolution strategy.

    Orchestrates multiple sources in priority order, stopping at the first
    successful resolution.
    """

    def __init__(self, resolvers: list[BaseResolver]) -> None:
        """Initialize with a list of sources.

        Args:
            resolvers: Sources to try; sorted by priority.
        """
        self.resolvers = sorted(resolvers, key=lambda r: r.priority)

    @abstractmethod
    async def resolve(self, request: ResolutionRequest) -> LicenseResolution:
        """Resolve using waterfall strategy.

        Args:
            request: Package to resolve.

        Returns:
            Resolution from the first successful source, or not-found.
        """
        ...

    @abstractmethod
    async def resolve_batch(
        self, requests: list[ResolutionRequest]
    ) -> dict[PackageIdentity, LicenseResolution]:
        """Resolve multiple packages concurrently.

        Args:
            requests: Packages to resolve.

        Returns:
            Dictionary mapping identities to their resolutions.
        """
        ...
