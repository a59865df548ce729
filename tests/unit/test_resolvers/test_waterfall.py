"""Unit tests for WaterfallResolver.

This module tests the orchestration of the license sources in priority
order, including caching, strict mode and bounded concurrency.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from license_fetcher.cache import MemoryLicenseCache
from license_fetcher.config import DEFAULT_LICENSE_PATTERN
from license_fetcher.errors import LicenseSourceFailed, UnresolvedLicenseError
from license_fetcher.models import (
    LicenseResolution,
    PackageIdentity,
    Provenance,
    ResolutionRequest,
)
from license_fetcher.resolvers.git import GitResolver
from license_fetcher.resolvers.github import GitHubResolver
from license_fetcher.resolvers.local import LocalDiskResolver
from license_fetcher.resolvers.waterfall import (
    RESOLVER_LOGIC_VERSION,
    WaterfallResolver,
    resolver_version,
)

LOCAL = LicenseResolution(text="local text", provenance=Provenance.LOCAL_DISK)
REMOTE = LicenseResolution(text="remote text", provenance=Provenance.REMOTE_API)
CLONED = LicenseResolution(text="cloned text", provenance=Provenance.VERSION_CONTROL)


def _mock_source(cls, name: str, priority: int, result=None) -> MagicMock:
    mock = MagicMock(spec=cls)
    mock.name = name
    mock.priority = priority
    mock.resolve = AsyncMock(return_value=result)
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def local_source() -> MagicMock:
    """Return a mock LocalDiskResolver for testing."""
    return _mock_source(LocalDiskResolver, "local-disk", 10)


@pytest.fixture
def github_source() -> MagicMock:
    """Return a mock GitHubResolver for testing."""
    return _mock_source(GitHubResolver, "GitHub", 50)


@pytest.fixture
def git_source() -> MagicMock:
    """Return a mock GitResolver for testing."""
    return _mock_source(GitResolver, "git", 90)


@pytest.fixture
def cache() -> MemoryLicenseCache:
    return MemoryLicenseCache()


@pytest.fixture
def waterfall_resolver(local_source, github_source, git_source, cache) -> WaterfallResolver:
    """Return a WaterfallResolver with mocked sources, given out of order."""
    return WaterfallResolver(
        [git_source, local_source, github_source],
        cache=cache,
        version="test",
    )


@pytest.fixture
def sample_request() -> ResolutionRequest:
    """Return a sample ResolutionRequest for testing."""
    return ResolutionRequest(
        identity=PackageIdentity("serde", "1.0.210"),
        repository="https://github.com/serde-rs/serde",
    )


def test_resolver_priority_ordering(waterfall_resolver, local_source, github_source, git_source) -> None:
    """Test that sources are ordered by priority."""
    assert waterfall_resolver.resolvers == [local_source, github_source, git_source]


def test_resolver_version_depends_on_pattern() -> None:
    """Test that changing the file name pattern changes the cache version."""
    default = resolver_version(DEFAULT_LICENSE_PATTERN)

    assert default.startswith(f"{RESOLVER_LOGIC_VERSION}:")
    assert default == resolver_version(DEFAULT_LICENSE_PATTERN)
    assert default != resolver_version(r"(?i)license")


class TestFallback:
    """Test walking the source chain."""

    @pytest.mark.asyncio
    async def test_first_source_short_circuits(
        self, waterfall_resolver, sample_request, local_source, github_source, git_source
    ) -> None:
        """Test that a local license means network sources are untouched."""
        local_source.resolve.return_value = LOCAL

        result = await waterfall_resolver.resolve(sample_request)

        assert result == LOCAL
        local_source.resolve.assert_awaited_once_with(sample_request)
        github_source.resolve.assert_not_called()
        git_source.resolve.assert_not_called()

    @pytest.mark.asyncio
    async def test_falls_through_to_github(
        self, waterfall_resolver, sample_request, github_source, git_source
    ) -> None:
        github_source.resolve.return_value = REMOTE

        result = await waterfall_resolver.resolve(sample_request)

        assert result == REMOTE
        git_source.resolve.assert_not_called()

    @pytest.mark.asyncio
    async def test_falls_through_to_git(
        self, waterfall_resolver, sample_request, local_source, github_source, git_source
    ) -> None:
        git_source.resolve.return_value = CLONED

        result = await waterfall_resolver.resolve(sample_request)

        assert result == CLONED
        local_source.resolve.assert_awaited_once()
        github_source.resolve.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            LicenseSourceFailed("clone failed"),
            aiohttp.ClientConnectionError("refused"),
            asyncio.TimeoutError(),
            OSError("disk error"),
        ],
    )
    async def test_failing_source_is_superseded(
        self, waterfall_resolver, sample_request, github_source, git_source, error
    ) -> None:
        """Test that a raising source is logged and the next one tried."""
        github_source.resolve.side_effect = error
        git_source.resolve.return_value = CLONED

        result = await waterfall_resolver.resolve(sample_request)

        assert result == CLONED
        github_source.resolve.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_not_found(self, waterfall_resolver, sample_request) -> None:
        """Test that an exhausted chain yields not-found in lenient mode."""
        result = await waterfall_resolver.resolve(sample_request)

        assert result == LicenseResolution.not_found()

    @pytest.mark.asyncio
    async def test_unexpected_error_propagates(
        self, waterfall_resolver, sample_request, local_source
    ) -> None:
        local_source.resolve.side_effect = RuntimeError("bug")

        with pytest.raises(RuntimeError):
            await waterfall_resolver.resolve(sample_request)


class TestCaching:
    """Test cache interaction."""

    @pytest.mark.asyncio
    async def test_result_is_cached(
        self, waterfall_resolver, sample_request, local_source, cache
    ) -> None:
        local_source.resolve.return_value = LOCAL

        await waterfall_resolver.resolve(sample_request)
        second = await waterfall_resolver.resolve(sample_request)

        assert second == LOCAL
        local_source.resolve.assert_awaited_once()
        assert cache.get(sample_request.identity, "test") == LOCAL

    @pytest.mark.asyncio
    async def test_not_found_is_cached(
        self, waterfall_resolver, sample_request, local_source, git_source
    ) -> None:
        """Test that a not-found outcome is not re-attempted."""
        await waterfall_resolver.resolve(sample_request)
        await waterfall_resolver.resolve(sample_request)

        local_source.resolve.assert_awaited_once()
        git_source.resolve.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_version_bump_re_resolves(
        self, local_source, github_source, git_source, cache, sample_request
    ) -> None:
        """Test that a new resolver version ignores an old not-found entry."""
        cache.put(sample_request.identity, "old", LicenseResolution.not_found())
        local_source.resolve.return_value = LOCAL
        resolver = WaterfallResolver(
            [local_source, github_source, git_source], cache=cache, version="new"
        )

        result = await resolver.resolve(sample_request)

        assert result == LOCAL
        local_source.resolve.assert_awaited_once()


class TestStrictMode:
    """Test the strict policy."""

    @pytest.mark.asyncio
    async def test_strict_raises(self, local_source, github_source, git_source, sample_request) -> None:
        resolver = WaterfallResolver(
            [local_source, github_source, git_source],
            is_strict=lambda name: True,
        )

        with pytest.raises(UnresolvedLicenseError) as excinfo:
            await resolver.resolve(sample_request)

        assert excinfo.value.name == "serde"
        assert excinfo.value.version == "1.0.210"

    @pytest.mark.asyncio
    async def test_strict_applies_to_cached_not_found(
        self, local_source, github_source, git_source, cache, sample_request
    ) -> None:
        cache.put(sample_request.identity, "test", LicenseResolution.not_found())
        resolver = WaterfallResolver(
            [local_source, github_source, git_source],
            cache=cache,
            version="test",
            is_strict=lambda name: name == "serde",
        )

        with pytest.raises(UnresolvedLicenseError):
            await resolver.resolve(sample_request)

        local_source.resolve.assert_not_called()

    @pytest.mark.asyncio
    async def test_strict_per_package(self, local_source, github_source, git_source) -> None:
        """Test that only the named packages are strict."""
        resolver = WaterfallResolver(
            [local_source, github_source, git_source],
            is_strict=lambda name: name == "openssl",
        )

        result = await resolver.resolve(ResolutionRequest(identity=PackageIdentity("serde", "1.0.0")))

        assert not result.found

    @pytest.mark.asyncio
    async def test_strict_failure_cancels_batch(self, github_source, git_source) -> None:
        """Test that no resolution keeps running once a strict package fails."""
        finished = []

        async def slow_resolve(request):
            if request.identity.name == "openssl":
                return None
            await asyncio.sleep(0.2)
            finished.append(request.identity.name)
            return LOCAL

        local = _mock_source(LocalDiskResolver, "local-disk", 10)
        local.resolve = AsyncMock(side_effect=slow_resolve)
        resolver = WaterfallResolver(
            [local, github_source, git_source],
            is_strict=lambda name: name == "openssl",
        )
        requests = [ResolutionRequest(identity=PackageIdentity("openssl", "0.10.0"))] + [
            ResolutionRequest(identity=PackageIdentity(f"crate{i}", "1.0.0")) for i in range(3)
        ]

        with pytest.raises(UnresolvedLicenseError):
            await resolver.resolve_batch(requests)

        pending = [
            task for task in asyncio.all_tasks() if task is not asyncio.current_task()
        ]
        assert pending == []
        await asyncio.sleep(0.3)
        assert finished == []


class TestBatch:
    """Test concurrent batch resolution."""

    @pytest.mark.asyncio
    async def test_resolve_batch(self, waterfall_resolver, local_source) -> None:
        requests = [
            ResolutionRequest(identity=PackageIdentity(f"crate{i}", "1.0.0")) for i in range(5)
        ]
        local_source.resolve.return_value = LOCAL

        results = await waterfall_resolver.resolve_batch(requests)

        assert set(results) == {r.identity for r in requests}
        assert all(result == LOCAL for result in results.values())

    @pytest.mark.asyncio
    async def test_duplicate_requests_resolved_once(self, waterfall_resolver, local_source) -> None:
        request = ResolutionRequest(identity=PackageIdentity("serde", "1.0.0"))
        local_source.resolve.return_value = LOCAL

        results = await waterfall_resolver.resolve_batch([request, request])

        assert len(results) == 1
        local_source.resolve.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, github_source, git_source) -> None:
        """Test that no more than `concurrency` resolutions run at once."""
        running = 0
        peak = 0

        async def slow_resolve(request):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return LOCAL

        local = _mock_source(LocalDiskResolver, "local-disk", 10)
        local.resolve = AsyncMock(side_effect=slow_resolve)
        resolver = WaterfallResolver([local, github_source, git_source], concurrency=2)
        requests = [
            ResolutionRequest(identity=PackageIdentity(f"crate{i}", "1.0.0")) for i in range(6)
        ]

        await resolver.resolve_batch(requests)

        assert peak == 2

    @pytest.mark.asyncio
    async def test_close_closes_sources(
        self, waterfall_resolver, local_source, github_source, git_source
    ) -> None:
        async with waterfall_resolver:
            pass

        for source in (local_source, github_source, git_source):
            source.close.assert_awaited_once()
