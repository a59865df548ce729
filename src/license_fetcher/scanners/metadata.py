"""Scanner for ``cargo metadata``.

``cargo metadata`` reports every declared dependency with full metadata, but
also lists packages that are never compiled for the active target and feature
selection (rust-lang/cargo#10801). Its output is therefore used for metadata
only; membership comes from ``cargo tree``.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from license_fetcher.errors import ProviderInvocationFailed
from license_fetcher.models import PackageIdentity, RawGraphNode, RichGraph
from license_fetcher.scanners.base import CargoScanner

logger = logging.getLogger(__name__)


class MetadataScanner(CargoScanner):
    """Scanner producing the rich graph from ``cargo metadata --format-version 1``."""

    @property
    def origin(self) -> str:
        return "cargo-metadata"

    async def scan(self) -> RichGraph:
        arguments = ["metadata", "--format-version", "1", "--color", "never"]
        if self.config.target:
            arguments += ["--filter-platform", self.config.target]
        arguments += self.selection_arguments()

        result = await self.run_cargo(arguments)

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ProviderInvocationFailed(
                f"{self.origin} printed invalid JSON"
            ) from e

        return self.parse(data)

    def parse(self, data: dict[str, Any]) -> RichGraph:
        """Parse decoded ``cargo metadata`` output into a RichGraph.

        Args:
            data: Decoded JSON document.

        Returns:
            RichGraph with one node per reported package.

        Raises:
            ProviderInvocationFailed: If required fields are missing.
        """
        try:
            packages = data["packages"]
            resolve = data.get("resolve") or {}
            identities = {pkg["id"]: self._identity(pkg) for pkg in packages}

            deps_by_id: dict[str, tuple[PackageIdentity, ...]] = {}
            for node in resolve.get("nodes", []):
                deps_by_id[node["id"]] = tuple(
                    identities[dep["pkg"]]
                    for dep in node.get("deps", [])
                    if dep["pkg"] in identities and _is_normal(dep)
                )

            nodes = [
                self._node(pkg, identities[pkg["id"]], deps_by_id.get(pkg["id"], ()))
                for pkg in packages
            ]
            root_id = resolve.get("root")
        except (KeyError, TypeError) as e:
            raise ProviderInvocationFailed(
                f"{self.origin} output is missing a required field: {e}"
            ) from e

        root = identities.get(root_id) if root_id else None
        if root_id and root is None:
            logger.warning("Root package id %s is not among reported packages", root_id)

        logger.debug("%s reported %d packages", self.origin, len(nodes))
        return RichGraph(nodes=nodes, root=root)

    @staticmethod
    def _identity(pkg: dict[str, Any]) -> PackageIdentity:
        return PackageIdentity(
            name=pkg["name"],
            version=pkg["version"],
            source=pkg.get("source"),
        )

    def _node(
        self,
        pkg: dict[str, Any],
        identity: PackageIdentity,
        dependencies: tuple[PackageIdentity, ...],
    ) -> RawGraphNode:
        manifest_dir: Optional[Path] = None
        if pkg.get("manifest_path"):
            manifest_dir = Path(pkg["manifest_path"]).parent

        return RawGraphNode(
            identity=identity,
            license_identifier=pkg.get("license"),
            authors=tuple(pkg.get("authors") or ()),
            description=_clean(pkg.get("description")),
            homepage=pkg.get("homepage"),
            repository=pkg.get("repository"),
            dependencies=dependencies,
            origin=self.origin,
            manifest_dir=manifest_dir,
        )


def _is_normal(dep: dict[str, Any]) -> bool:
    """Return True if a resolve edge includes a normal (non-dev, non-build) kind."""
    dep_kinds = dep.get("dep_kinds")
    if not dep_kinds:
        # Cargo older than 1.41 does not report kinds.
        return True
    return any(kind.get("kind") is None for kind in dep_kinds)


def _clean(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    return " ".join(text.split())
