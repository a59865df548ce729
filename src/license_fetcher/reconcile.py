"""Reconciliation of the rich and lean dependency graphs.

The rich graph (``cargo metadata``) has complete metadata but over-reports
membership; the lean graph (``cargo tree``) reports exactly what is compiled
but carries no metadata. The compiled package set is the lean membership,
materialised with metadata looked up in the rich graph by (name, version).
"""

import logging

from license_fetcher.errors import ReconciliationInconsistent
from license_fetcher.models import (
    CompiledPackageSet,
    LeanGraph,
    RawGraphNode,
    RichGraph,
)

logger = logging.getLogger(__name__)


def index_rich_graph(rich: RichGraph) -> dict[tuple[str, str], RawGraphNode]:
    """Index rich nodes by identity key; the first node seen for a key wins."""
    index: dict[tuple[str, str], RawGraphNode] = {}
    for node in rich.nodes:
        if node.identity.key in index:
            logger.debug("Ignoring duplicate entry for %s", node.identity)
            continue
        index[node.identity.key] = node
    return index


def reconcile(rich: RichGraph, lean: LeanGraph) -> CompiledPackageSet:
    """Compute the set of packages compiled into the target.

    Args:
        rich: Graph with full metadata, possibly listing uncompiled packages.
        lean: Graph listing only compiled packages.

    Returns:
        CompiledPackageSet whose nodes are sorted by (name, version) and
        always include the root package.

    Raises:
        ReconciliationInconsistent: If the root package cannot be resolved in
            the rich graph, or a compiled package is missing from it.
    """
    index = index_rich_graph(rich)

    if rich.root is None:
        raise ReconciliationInconsistent("cargo metadata did not report a root package")
    root = index.get(rich.root.key)
    if root is None:
        raise ReconciliationInconsistent(
            f"Root package {rich.root} is missing from the reported packages"
        )
    if lean.root is not None and lean.root.key != root.identity.key:
        logger.warning(
            "cargo tree root %s differs from cargo metadata root %s",
            lean.root,
            root.identity,
        )

    members: dict[tuple[str, str], RawGraphNode] = {root.identity.key: root}
    missing = []
    for identity in lean.members:
        node = index.get(identity.key)
        if node is None:
            missing.append(str(identity))
            continue
        members.setdefault(identity.key, node)

    if missing:
        raise ReconciliationInconsistent(
            "Compiled packages missing from cargo metadata: " + ", ".join(sorted(missing))
        )

    dropped = len(index) - len(members)
    if dropped:
        logger.info("Dropped %d packages that are not compiled for this target", dropped)

    nodes = tuple(members[key] for key in sorted(members))
    return CompiledPackageSet(root=root, nodes=nodes)
