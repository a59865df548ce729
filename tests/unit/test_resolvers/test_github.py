"""Tests for GitHub license source."""

import asyncio
from typing import AsyncGenerator

import aiohttp
import pytest
from aioresponses import aioresponses
from factories import APACHE_TEXT, github_license_payload
from yarl import URL

from license_fetcher.models import PackageIdentity, Provenance, ResolutionRequest
from license_fetcher.resolvers.github import GitHubResolver, parse_github_url

LICENSE_URL = "https://api.github.com/repos/serde-rs/serde/license"


@pytest.fixture
async def github_resolver() -> AsyncGenerator[GitHubResolver, None]:
    """Return a GitHubResolver instance without token."""
    resolver = GitHubResolver()
    yield resolver
    await resolver.close()


@pytest.fixture
async def github_resolver_with_token() -> AsyncGenerator[GitHubResolver, None]:
    """Return a GitHubResolver instance with token."""
    resolver = GitHubResolver(github_token="ghp_test123token")
    yield resolver
    await resolver.close()


@pytest.fixture
def request_with_github_url() -> ResolutionRequest:
    """Return a request with a GitHub repository URL."""
    return ResolutionRequest(
        identity=PackageIdentity("serde", "1.0.210"),
        repository="https://github.com/serde-rs/serde",
    )


class TestParseGitHubUrl:
    """Test extraction of owner and repository."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://github.com/serde-rs/serde",
            "https://github.com/serde-rs/serde/",
            "https://github.com/serde-rs/serde.git",
            "https://www.github.com/serde-rs/serde",
            "https://github.com/serde-rs/serde/tree/master/serde_derive",
            "git@github.com:serde-rs/serde.git",
        ],
    )
    def test_valid_urls(self, url: str) -> None:
        assert parse_github_url(url) == ("serde-rs", "serde")

    @pytest.mark.parametrize(
        "url",
        [
            "https://gitlab.com/owner/repo",
            "https://github.com/owner",
            "https://example.com/github.com/owner/repo",
            "not a url",
        ],
    )
    def test_invalid_urls(self, url: str) -> None:
        assert parse_github_url(url) is None


class TestGitHubResolver:
    """Test suite for GitHubResolver."""

    def test_resolver_name(self, github_resolver: GitHubResolver) -> None:
        """Test that resolver has correct name."""
        assert github_resolver.name == "GitHub"

    def test_resolver_priority(self, github_resolver: GitHubResolver) -> None:
        """Test that resolver has correct priority."""
        assert github_resolver.priority == 50

    @pytest.mark.asyncio
    async def test_resolve_successful(
        self,
        github_resolver: GitHubResolver,
        request_with_github_url: ResolutionRequest,
    ) -> None:
        """Test successful license resolution from GitHub API."""
        with aioresponses() as m:
            m.get(LICENSE_URL, payload=github_license_payload(APACHE_TEXT), status=200)

            result = await github_resolver.resolve(request_with_github_url)

        assert result is not None
        assert result.text == APACHE_TEXT
        assert result.provenance is Provenance.REMOTE_API

    @pytest.mark.asyncio
    async def test_resolve_with_authentication(
        self,
        github_resolver_with_token: GitHubResolver,
        request_with_github_url: ResolutionRequest,
    ) -> None:
        """Test that authentication token is sent in request."""
        with aioresponses() as m:
            m.get(LICENSE_URL, payload=github_license_payload(APACHE_TEXT), status=200)

            result = await github_resolver_with_token.resolve(request_with_github_url)

            call = m.requests[("GET", URL(LICENSE_URL))][0]

        assert result is not None
        assert call.kwargs["headers"]["Authorization"] == "Bearer ghp_test123token"

    @pytest.mark.asyncio
    async def test_resolve_without_token_sends_no_authorization(
        self,
        github_resolver: GitHubResolver,
        request_with_github_url: ResolutionRequest,
    ) -> None:
        with aioresponses() as m:
            m.get(LICENSE_URL, payload=github_license_payload(APACHE_TEXT), status=200)

            await github_resolver.resolve(request_with_github_url)

            call = m.requests[("GET", URL(LICENSE_URL))][0]

        assert "Authorization" not in call.kwargs["headers"]

    @pytest.mark.asyncio
    async def test_resolve_missing_license(
        self,
        github_resolver: GitHubResolver,
        request_with_github_url: ResolutionRequest,
    ) -> None:
        """Test handling when repository has no license."""
        with aioresponses() as m:
            m.get(LICENSE_URL, status=404)

            result = await github_resolver.resolve(request_with_github_url)

        assert result is None

    @pytest.mark.asyncio
    async def test_bad_credentials(
        self,
        github_resolver_with_token: GitHubResolver,
        request_with_github_url: ResolutionRequest,
    ) -> None:
        """Test that a rejected token degrades to no result."""
        with aioresponses() as m:
            m.get(LICENSE_URL, status=401)

            result = await github_resolver_with_token.resolve(request_with_github_url)

        assert result is None
        assert not github_resolver_with_token.rate_limited

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [403, 429])
    async def test_rate_limiting_disables_source(
        self,
        github_resolver: GitHubResolver,
        request_with_github_url: ResolutionRequest,
        status: int,
    ) -> None:
        """Test that after a rate-limited response no further requests are made."""
        other = ResolutionRequest(
            identity=PackageIdentity("anyhow", "1.0.89"),
            repository="https://github.com/dtolnay/anyhow",
        )
        with aioresponses() as m:
            m.get(LICENSE_URL, status=status)

            first = await github_resolver.resolve(request_with_github_url)
            second = await github_resolver.resolve(other)

            assert len(m.requests) == 1

        assert first is None
        assert second is None
        assert github_resolver.rate_limited

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "exception",
        [aiohttp.ClientConnectionError("connection refused"), asyncio.TimeoutError()],
    )
    async def test_network_errors_degrade(
        self,
        github_resolver: GitHubResolver,
        request_with_github_url: ResolutionRequest,
        exception: Exception,
    ) -> None:
        with aioresponses() as m:
            m.get(LICENSE_URL, exception=exception)

            result = await github_resolver.resolve(request_with_github_url)

        assert result is None

    @pytest.mark.asyncio
    async def test_invalid_content(
        self,
        github_resolver: GitHubResolver,
        request_with_github_url: ResolutionRequest,
    ) -> None:
        """Test a payload whose content is not valid base64."""
        with aioresponses() as m:
            m.get(LICENSE_URL, payload={"encoding": "base64", "content": "abc"}, status=200)

            result = await github_resolver.resolve(request_with_github_url)

        assert result is None

    @pytest.mark.asyncio
    async def test_no_repository_url(self, github_resolver: GitHubResolver) -> None:
        """Test that packages without a repository are skipped."""
        with aioresponses() as m:
            result = await github_resolver.resolve(
                ResolutionRequest(identity=PackageIdentity("serde", "1.0.210"))
            )

            assert not m.requests

        assert result is None

    @pytest.mark.asyncio
    async def test_non_github_url(self, github_resolver: GitHubResolver) -> None:
        """Test that non-GitHub repositories are skipped without a request."""
        with aioresponses() as m:
            result = await github_resolver.resolve(
                ResolutionRequest(
                    identity=PackageIdentity("foo", "0.1.0"),
                    repository="https://gitlab.com/owner/foo",
                )
            )

            assert not m.requests

        assert result is None

    @pytest.mark.asyncio
    async def test_resolve_github_url_with_git_suffix(self, github_resolver: GitHubResolver) -> None:
        with aioresponses() as m:
            m.get(LICENSE_URL, payload=github_license_payload(APACHE_TEXT), status=200)

            result = await github_resolver.resolve(
                ResolutionRequest(
                    identity=PackageIdentity("serde", "1.0.210"),
                    repository="https://github.com/serde-rs/serde.git",
                )
            )

        assert result is not None
        assert result.text == APACHE_TEXT
