"""License sources and the waterfall resolver chaining them.

This module provides sources for reading license texts from local package
checkouts, the GitHub API and git repositories.
"""

from license_fetcher.resolvers.base import BaseResolver, WaterfallResolverBase
from license_fetcher.resolvers.git import GitResolver
from license_fetcher.resolvers.github import GitHubResolver
from license_fetcher.resolvers.local import LicenseFileMatcher, LocalDiskResolver
from license_fetcher.resolvers.waterfall import (
    RESOLVER_LOGIC_VERSION,
    WaterfallResolver,
    resolver_version,
)

__all__ = [
    "BaseResolver",
    "WaterfallResolverBase",
    "GitResolver",
    "GitHubResolver",
    "LicenseFileMatcher",
    "LocalDiskResolver",
    "RESOLVER_LOGIC_VERSION",
    "WaterfallResolver",
    "resolver_version",
]
