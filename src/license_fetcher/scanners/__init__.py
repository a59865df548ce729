"""Dependency-graph scanners.

This module provides the scanners for the two cargo graph providers and the
graph source that runs them side by side.
"""

import asyncio
import logging

from license_fetcher.config import FetcherConfig
from license_fetcher.models import LeanGraph, RichGraph
from license_fetcher.scanners.base import BaseScanner, CargoScanner
from license_fetcher.scanners.metadata import MetadataScanner
from license_fetcher.scanners.registry import find_registry_checkout
from license_fetcher.scanners.tree import TreeScanner, parse_tree_line

__all__ = [
    "BaseScanner",
    "CargoGraphSource",
    "CargoScanner",
    "MetadataScanner",
    "TreeScanner",
    "find_registry_checkout",
    "parse_tree_line",
]

logger = logging.getLogger(__name__)


class CargoGraphSource:
    """Runs ``cargo metadata`` and ``cargo tree`` concurrently.

    Attributes:
        metadata_scanner: Scanner for the rich, over-inclusive graph.
        tree_scanner: Scanner for the lean, accurate-membership graph.
    """

    def __init__(self, config: FetcherConfig) -> None:
        self.metadata_scanner = MetadataScanner(config)
        self.tree_scanner = TreeScanner(config)

    async def fetch(self) -> tuple[RichGraph, LeanGraph]:
        """Invoke both providers and wait for both to finish.

        Returns:
            Tuple of (rich graph, lean graph).

        Raises:
            ProviderInvocationFailed: If either provider fails.
        """
        logger.info("Querying cargo for the dependency graph")
        rich, lean = await asyncio.gather(
            self.metadata_scanner.scan(),
            self.tree_scanner.scan(),
        )
        return rich, lean
