"""The package list: every compiled package with its license.

A PackageList is kept sorted by (name, version, source) at all times so that
encoding it is reproducible. Lists reconstructed from an artifact are
frozen.
"""

import bisect
from typing import Iterable, Iterator, Optional, Union, overload

from license_fetcher.models import Package

SEPARATOR_WIDTH = 80
SEPARATOR = "=" * SEPARATOR_WIDTH
SEPARATOR_LIGHT = "-" * SEPARATOR_WIDTH


class PackageList:
    """Ordered, sorted collection of Package records.

    Attributes:
        frozen: Whether the list rejects modification.
    """

    def __init__(self, packages: Iterable[Package] = (), frozen: bool = False) -> None:
        self._packages: list[Package] = sorted(packages, key=lambda p: p.sort_key)
        self.frozen = frozen

    def append(self, package: Package) -> None:
        """Insert a package at its sorted position.

        Raises:
            TypeError: If the list is frozen.
        """
        self._check_mutable()
        keys = [p.sort_key for p in self._packages]
        index = bisect.bisect_right(keys, package.sort_key)
        self._packages.insert(index, package)

    def extend(self, packages: Iterable[Package]) -> None:
        """Insert several packages, keeping the list sorted.

        Raises:
            TypeError: If the list is frozen.
        """
        self._check_mutable()
        self._packages = sorted([*self._packages, *packages], key=lambda p: p.sort_key)

    def freeze(self) -> "PackageList":
        self.frozen = True
        return self

    def _check_mutable(self) -> None:
        if self.frozen:
            raise TypeError("PackageList is frozen")

    def find(self, name: str, version: Optional[str] = None) -> Optional[Package]:
        """Return the first package with the given name (and version)."""
        for package in self._packages:
            if package.name == name and (version is None or package.version == version):
                return package
        return None

    def __iter__(self) -> Iterator[Package]:
        return iter(self._packages)

    def __len__(self) -> int:
        return len(self._packages)

    @overload
    def __getitem__(self, index: int) -> Package: ...

    @overload
    def __getitem__(self, index: slice) -> list[Package]: ...

    def __getitem__(self, index: Union[int, slice]) -> Union[Package, list[Package]]:
        return self._packages[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageList):
            return NotImplemented
        return self._packages == other._packages

    def __repr__(self) -> str:
        return f"PackageList({len(self._packages)} packages, frozen={self.frozen})"

    def render(self) -> str:
        """Return a stable one-line-per-package diagnostic listing."""
        lines = []
        for package in self._packages:
            license_id = package.license_identifier or "UNKNOWN"
            status = "text" if package.has_license_text else "no text"
            lines.append(
                f"{package.name} {package.version} [{license_id}] "
                f"({status}, {package.provenance.value})"
            )
        return "\n".join(lines)

    def by_license(self) -> dict[str, list[str]]:
        """Group package names by declared license identifier.

        Packages without an identifier are left out. Keys are sorted; names
        keep the list order.
        """
        groups: dict[str, list[str]] = {}
        for package in self._packages:
            if package.license_identifier:
                groups.setdefault(package.license_identifier, []).append(package.name)
        return dict(sorted(groups.items()))

    def to_dicts(self) -> list[dict]:
        """Return JSON-serialisable records, one per package."""
        return [
            {
                "name": package.name,
                "version": package.version,
                "source": package.source,
                "authors": list(package.authors),
                "description": package.description,
                "homepage": package.homepage,
                "repository": package.repository,
                "license_identifier": package.license_identifier,
                "license_text": package.license_text,
                "provenance": package.provenance.value,
            }
            for package in self._packages
        ]

    def __str__(self) -> str:
        parts = [f"{SEPARATOR}\n\n"]
        parts.extend(format_package(package) for package in self._packages)
        return "".join(parts)


def format_package(package: Package) -> str:
    """Format one package as a notice block terminated by a separator."""
    lines = [f"Package:     {package.name} {package.version}"]
    if package.description is not None:
        lines.append(f"Description: {package.description}")
    if package.authors:
        lines.append(f"Authors:     - {package.authors[0]}")
        lines.extend(f"             - {author}" for author in package.authors[1:])
    if package.homepage is not None:
        lines.append(f"Homepage:    {package.homepage}")
    if package.repository is not None:
        lines.append(f"Repository:  {package.repository}")
    if package.license_identifier is not None:
        lines.append(f"SPDX Ident:  {package.license_identifier}")
    if package.license_text is not None:
        lines.append(f"\n{SEPARATOR_LIGHT}\n{package.license_text}")
    lines.append(f"\n{SEPARATOR}\n")
    return "\n".join(lines) + "\n"
