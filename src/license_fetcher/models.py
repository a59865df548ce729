"""Core data models for license_fetcher.

This module defines the fundamental data structures shared by the pipeline:
package identities, the raw nodes reported by the graph providers, license
resolutions, cache entries and the public ``Package`` record.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional


@dataclass(frozen=True, order=True)
class PackageIdentity:
    """Immutable identity of a dependency node.

    Frozen for hashability to enable use as dictionary keys.

    Attributes:
        name: Package name (e.g., "serde").
        version: Exact version string (e.g., "1.0.210").
        source: Origin of the package (registry URL, git URL or local path).
            None when the reporting provider does not expose it.
    """

    name: str
    version: str
    source: Optional[str] = None

    @property
    def key(self) -> tuple[str, str]:
        """Return the (name, version) join key understood by both providers."""
        return (self.name, self.version)

    def __str__(self) -> str:
        return f"{self.name} {self.version}"


@dataclass(frozen=True)
class RawGraphNode:
    """A dependency node as reported by a graph provider.

    Attributes:
        identity: Identity of the package.
        license_identifier: Declared license expression, if any.
        authors: Declared authors.
        description: Optional package description.
        homepage: Optional homepage URL.
        repository: Optional source repository URL.
        dependencies: Identities of direct normal (non-dev, non-build) dependencies.
        origin: Tag of the provider that reported this node.
        manifest_dir: Local checkout of the package sources, if known.
    """

    identity: PackageIdentity
    license_identifier: Optional[str] = None
    authors: tuple[str, ...] = ()
    description: Optional[str] = None
    homepage: Optional[str] = None
    repository: Optional[str] = None
    dependencies: tuple[PackageIdentity, ...] = ()
    origin: str = ""
    manifest_dir: Optional[Path] = None


@dataclass
class RichGraph:
    """Over-inclusive graph carrying full metadata (``cargo metadata``)."""

    nodes: list[RawGraphNode]
    root: Optional[PackageIdentity]


@dataclass
class LeanGraph:
    """Accurate-membership graph without metadata (``cargo tree``)."""

    members: list[PackageIdentity]
    root: Optional[PackageIdentity]


@dataclass(frozen=True)
class CompiledPackageSet:
    """Reconciled nodes of every package actually linked into the target.

    Attributes:
        root: The project's own package.
        nodes: Merged nodes sorted by identity key, root included.
    """

    root: RawGraphNode
    nodes: tuple[RawGraphNode, ...]

    def __iter__(self) -> Iterator[RawGraphNode]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, identity: object) -> bool:
        if not isinstance(identity, PackageIdentity):
            return False
        return any(node.identity.key == identity.key for node in self.nodes)


class Provenance(Enum):
    """Source that produced a license resolution."""

    LOCAL_DISK = "local-disk"
    REMOTE_API = "remote-api"
    VERSION_CONTROL = "version-control"
    NOT_FOUND = "not-found"


@dataclass(frozen=True)
class LicenseResolution:
    """Outcome of resolving the license text of one package.

    Attributes:
        text: Resolved license text, None when nothing was found.
        provenance: Where the text came from.
    """

    text: Optional[str]
    provenance: Provenance

    @classmethod
    def not_found(cls) -> "LicenseResolution":
        return cls(text=None, provenance=Provenance.NOT_FOUND)

    @property
    def found(self) -> bool:
        return self.text is not None


@dataclass(frozen=True)
class ResolutionRequest:
    """Input handed to every license source.

    Attributes:
        identity: Package being resolved.
        repository: Optional repository URL declared by the package.
        checkout_dir: Optional local directory containing the package sources.
    """

    identity: PackageIdentity
    repository: Optional[str] = None
    checkout_dir: Optional[Path] = None


@dataclass
class CacheEntry:
    """Persisted license resolution.

    Valid only while ``resolver_version`` matches the version of the
    resolution logic in use.

    Attributes:
        identity: Package the resolution belongs to.
        resolution: The stored outcome (including not-found).
        resolver_version: Version of the resolver logic that produced it.
        resolved_at: Timestamp when resolution occurred.
    """

    identity: PackageIdentity
    resolution: LicenseResolution
    resolver_version: str
    resolved_at: datetime


@dataclass(frozen=True)
class Package:
    """Public record of one package and its license.

    Attributes:
        name: Package name.
        version: Package version.
        source: Origin of the package, if known.
        authors: Declared authors.
        description: Optional package description.
        homepage: Optional homepage URL.
        repository: Optional source repository URL.
        license_identifier: Optional SPDX license expression.
        license_text: Optional license text.
        provenance: Source of ``license_text``.
    """

    name: str
    version: str
    source: Optional[str] = None
    authors: tuple[str, ...] = ()
    description: Optional[str] = None
    homepage: Optional[str] = None
    repository: Optional[str] = None
    license_identifier: Optional[str] = None
    license_text: Optional[str] = None
    provenance: Provenance = Provenance.NOT_FOUND

    def __post_init__(self) -> None:
        object.__setattr__(self, "authors", tuple(self.authors))

    @property
    def identity(self) -> PackageIdentity:
        return PackageIdentity(self.name, self.version, self.source)

    @property
    def sort_key(self) -> tuple[str, str, str]:
        return (self.name, self.version, self.source or "")

    @property
    def has_license_text(self) -> bool:
        return self.license_text is not None


def merge_package(
    node: RawGraphNode,
    resolution: LicenseResolution,
    license_identifier: Optional[str] = None,
) -> Package:
    """Combine provider metadata with a license resolution.

    Args:
        node: Reconciled graph node.
        resolution: License resolution for the node.
        license_identifier: Normalised license expression overriding the
            declared one.

    Returns:
        The public Package record.
    """
    return Package(
        name=node.identity.name,
        version=node.identity.version,
        source=node.identity.source,
        authors=tuple(node.authors),
        description=node.description,
        homepage=node.homepage,
        repository=node.repository,
        license_identifier=license_identifier or node.license_identifier,
        license_text=resolution.text,
        provenance=resolution.provenance,
    )
