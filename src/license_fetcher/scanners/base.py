"""Base interface for dependency-graph scanners.

Scanners invoke an external provider against the project and turn its
machine-readable output into a raw dependency graph.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Union

from license_fetcher.config import CargoDirective, FetcherConfig
from license_fetcher.errors import ProviderInvocationFailed
from license_fetcher.models import LeanGraph, RichGraph
from license_fetcher.process import CommandError, CommandResult, run_command

logger = logging.getLogger(__name__)


class BaseScanner(ABC):
    """Abstract base class for dependency-graph scanners.

    Attributes:
        config: Pipeline configuration (project root, target and features).
    """

    def __init__(self, config: FetcherConfig) -> None:
        """Initialize the scanner.

        Args:
            config: Pipeline configuration.
        """
        self.config = config

    @abstractmethod
    async def scan(self) -> Union[RichGraph, LeanGraph]:
        """Invoke the provider and parse its output.

        Returns:
            The graph reported by the provider.

        Raises:
            ProviderInvocationFailed: If the provider is missing, exits with an
                error, or prints output that cannot be parsed.
        """
        ...

    @property
    @abstractmethod
    def origin(self) -> str:
        """Return the tag attached to nodes reported by this scanner."""
        ...


class CargoScanner(BaseScanner):
    """Scanner driving a ``cargo`` subcommand."""

    def selection_arguments(self) -> list[str]:
        """Return the cargo arguments for the configured feature selection."""
        arguments: list[str] = []
        if self.config.features:
            arguments += ["--features", ",".join(self.config.features)]
        if self.config.all_features:
            arguments.append("--all-features")
        if self.config.no_default_features:
            arguments.append("--no-default-features")
        return arguments

    async def run_cargo(self, arguments: list[str]) -> CommandResult:
        """Run cargo, trying each configured directive until one succeeds.

        Args:
            arguments: Subcommand and its arguments.

        Returns:
            Output of the first successful invocation.

        Raises:
            ProviderInvocationFailed: If every directive failed. The error of
                the last attempt is chained as the cause; earlier failures are
                included in the message.
        """
        failures: list[str] = []
        last_error: Optional[CommandError] = None

        for directive in self.config.directives():
            args = [self.config.cargo, *arguments]
            if directive is not CargoDirective.DEFAULT:
                args.append(directive.value)
            try:
                return await run_command(args, cwd=self.config.manifest_dir)
            except CommandError as e:
                logger.debug("%s failed with directive %s: %s", self.origin, directive.name, e)
                failures.append(f"[{directive.name.lower()}] {e}")
                last_error = e

        raise ProviderInvocationFailed(
            f"{self.origin} failed in {self.config.manifest_dir}:\n" + "\n".join(failures)
        ) from last_error
