"""End-to-end license collection pipeline.

Wires the graph source, reconciler, waterfall resolver and cache together,
and writes the resulting package list as an embeddable artifact.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional, Protocol

from license_fetcher.cache import ResolutionCache, open_cache
from license_fetcher.codec import ARTIFACT_NAME, write_artifact
from license_fetcher.config import FetcherConfig
from license_fetcher.models import (
    LeanGraph,
    Package,
    RawGraphNode,
    ResolutionRequest,
    RichGraph,
    merge_package,
)
from license_fetcher.package_list import PackageList
from license_fetcher.reconcile import reconcile
from license_fetcher.resolvers import (
    BaseResolver,
    GitHubResolver,
    GitResolver,
    LicenseFileMatcher,
    LocalDiskResolver,
    WaterfallResolver,
    resolver_version,
)
from license_fetcher.scanners import CargoGraphSource, find_registry_checkout
from license_fetcher.spdx import normalize_license_expression

logger = logging.getLogger(__name__)


class GraphSource(Protocol):
    async def fetch(self) -> tuple[RichGraph, LeanGraph]: ...


def build_resolver(config: FetcherConfig, cache: ResolutionCache) -> WaterfallResolver:
    """Create the default source chain for ``config``.

    Local disk and the GitHub API are always used; the git fallback only
    when ``config.use_git`` is set.
    """
    matcher = LicenseFileMatcher(config.license_pattern)
    resolvers: list[BaseResolver] = [
        LocalDiskResolver(matcher),
        GitHubResolver(github_token=config.github_token, timeout=config.timeout),
    ]
    if config.use_git:
        resolvers.append(GitResolver(matcher, timeout=config.timeout))

    return WaterfallResolver(
        resolvers,
        cache=cache,
        version=resolver_version(config.license_pattern),
        is_strict=config.is_strict,
        concurrency=config.concurrency,
    )


class Pipeline:
    """One run of graph discovery, reconciliation and license resolution.

    Attributes:
        config: Settings for the run.
        graph_source: Provider of the rich and lean graphs.
        resolver: Waterfall resolver (already bound to the cache).
    """

    def __init__(
        self,
        config: FetcherConfig,
        graph_source: Optional[GraphSource] = None,
        resolver: Optional[WaterfallResolver] = None,
        cache: Optional[ResolutionCache] = None,
    ) -> None:
        self.config = config
        self.graph_source = graph_source or CargoGraphSource(config)
        if resolver is None:
            if cache is None:
                raise ValueError("Either a resolver or a cache is required")
            resolver = build_resolver(config, cache)
        self.resolver = resolver

    def _request_for(self, node: RawGraphNode) -> ResolutionRequest:
        checkout: Optional[Path] = node.manifest_dir
        if checkout is None or not checkout.is_dir():
            checkout = find_registry_checkout(
                self.config.cargo_home, node.identity.name, node.identity.version
            )
        return ResolutionRequest(
            identity=node.identity,
            repository=node.repository,
            checkout_dir=checkout,
        )

    async def run(self, extra_packages: Iterable[Package] = ()) -> PackageList:
        """Collect every compiled package and its license.

        Args:
            extra_packages: Packages to add verbatim (e.g. vendored code).

        Returns:
            The sorted PackageList.

        Raises:
            ProviderInvocationFailed: If cargo could not report the graph.
            ReconciliationInconsistent: If the two graphs disagree.
            UnresolvedLicenseError: If a strict package has no license text.
        """
        rich, lean = await self.graph_source.fetch()
        compiled = reconcile(rich, lean)
        logger.info("%d packages compiled into %s", len(compiled), compiled.root.identity)

        requests = [self._request_for(node) for node in compiled]
        async with self.resolver:
            resolutions = await self.resolver.resolve_batch(requests)

        packages = PackageList(
            merge_package(
                node,
                resolutions[node.identity],
                license_identifier=normalize_license_expression(node.license_identifier),
            )
            for node in compiled
        )
        packages.extend(extra_packages)
        return packages


async def collect(
    config: FetcherConfig,
    extra_packages: Iterable[Package] = (),
    graph_source: Optional[GraphSource] = None,
) -> PackageList:
    """Run the pipeline with the default components and the configured cache."""
    cache = open_cache(config.cache_path, enabled=config.use_cache)
    try:
        pipeline = Pipeline(config, graph_source=graph_source, cache=cache)
        return await pipeline.run(extra_packages)
    finally:
        cache.close()


async def generate(
    config: FetcherConfig,
    extra_packages: Iterable[Package] = (),
    graph_source: Optional[GraphSource] = None,
) -> Path:
    """Run the pipeline and write the artifact into ``config.out_dir``.

    Returns:
        Path of the written artifact.

    Raises:
        ValueError: If no output directory is configured.
    """
    if config.out_dir is None:
        raise ValueError("No output directory configured (set OUT_DIR or --out-dir)")

    packages = await collect(config, extra_packages, graph_source)
    return write_artifact(packages, config.out_dir / ARTIFACT_NAME)
