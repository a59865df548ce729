"""Pipeline configuration.

The values are owned by the surrounding build tool or the command line; this
module only gathers them into one object and provides the defaults.
"""

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

DEFAULT_CONCURRENCY = 8
DEFAULT_TIMEOUT = 30.0

# Case-insensitive; matched against file names and first-level directory names.
DEFAULT_LICENSE_PATTERN = r"(?i)(licen[cs]e|copying|notice|authors|eula)"


class CargoDirective(Enum):
    """How cargo may treat the lockfile when reporting metadata."""

    DEFAULT = None
    LOCKED = "--locked"
    FROZEN = "--frozen"


def default_cache_dir() -> Path:
    """Return the default directory for the resolution cache."""
    return Path.home() / ".cache" / "license_fetcher"


def default_cargo_home() -> Path:
    """Return ``CARGO_HOME`` or ``~/.cargo``."""
    cargo_home = os.environ.get("CARGO_HOME")
    if cargo_home:
        return Path(cargo_home)
    return Path.home() / ".cargo"


@dataclass
class FetcherConfig:
    """Settings for one pipeline run.

    Attributes:
        manifest_dir: Directory containing the project's Cargo.toml.
        out_dir: Directory the embedded artifact is written to.
        cargo: Cargo executable.
        cargo_home: Cargo home holding the registry source checkouts.
        target: Optional target triple for the compiled tree.
        features: Features to activate.
        all_features: Activate every feature.
        no_default_features: Do not activate the default feature.
        concurrency: Maximum number of concurrent license resolutions.
        strict: Fail when any package has no license text.
        strict_packages: Package names that must resolve even when not strict.
        frozen: Require an up-to-date lockfile and no network for cargo.
        cache_dir: Directory holding the resolution cache.
        use_cache: Whether to read and write the resolution cache.
        github_token: Optional GitHub token for the license API.
        timeout: Seconds allowed for each remote fetch.
        license_pattern: Regular expression for license-like file names.
        use_git: Whether the version-control fallback may clone repositories.
    """

    manifest_dir: Path = field(default_factory=Path.cwd)
    out_dir: Optional[Path] = None
    cargo: str = "cargo"
    cargo_home: Path = field(default_factory=default_cargo_home)
    target: Optional[str] = None
    features: tuple[str, ...] = ()
    all_features: bool = False
    no_default_features: bool = False
    concurrency: int = DEFAULT_CONCURRENCY
    strict: bool = False
    strict_packages: frozenset[str] = frozenset()
    frozen: bool = False
    cache_dir: Path = field(default_factory=default_cache_dir)
    use_cache: bool = True
    github_token: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    license_pattern: str = DEFAULT_LICENSE_PATTERN
    use_git: bool = True

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        try:
            re.compile(self.license_pattern)
        except re.error as e:
            raise ValueError(f"Invalid license pattern {self.license_pattern!r}: {e}") from e

    @classmethod
    def from_env(cls, **overrides) -> "FetcherConfig":
        """Build a configuration from the variables cargo sets for build scripts.

        Reads ``CARGO``, ``CARGO_MANIFEST_DIR``, ``OUT_DIR``, ``CARGO_HOME``
        and ``GITHUB_TOKEN``. Keyword arguments take precedence.
        """
        values: dict = {}
        if os.environ.get("CARGO"):
            values["cargo"] = os.environ["CARGO"]
        if os.environ.get("CARGO_MANIFEST_DIR"):
            values["manifest_dir"] = Path(os.environ["CARGO_MANIFEST_DIR"])
        if os.environ.get("OUT_DIR"):
            values["out_dir"] = Path(os.environ["OUT_DIR"])
        if os.environ.get("GITHUB_TOKEN"):
            values["github_token"] = os.environ["GITHUB_TOKEN"]
        values.update(overrides)
        return cls(**values)

    def is_strict(self, name: str) -> bool:
        """Return True if an unresolved license for ``name`` is fatal."""
        return self.strict or name in self.strict_packages

    def directives(self) -> list[CargoDirective]:
        """Return the cargo directives to try, in order."""
        if self.frozen:
            return [CargoDirective.FROZEN]
        return [CargoDirective.LOCKED, CargoDirective.DEFAULT]

    @property
    def cache_path(self) -> Path:
        return self.cache_dir / "cache.db"
