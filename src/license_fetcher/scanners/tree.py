"""Scanner for ``cargo tree``.

``cargo tree -e normal`` lists exactly the packages compiled into the target,
but carries no metadata beyond name, version and (for non-registry packages)
source. Each output line looks like::

    serde v1.0.210
    my-project v0.1.0 (/home/me/my-project)
    foo v0.3.0 (https://github.com/owner/foo#0123abcd)
"""

import logging
import re
from typing import Optional

from license_fetcher.errors import ProviderInvocationFailed
from license_fetcher.models import LeanGraph, PackageIdentity
from license_fetcher.scanners.base import CargoScanner

logger = logging.getLogger(__name__)

_LINE_RE = re.compile(
    r"^(?P<name>[A-Za-z0-9_.+-]+) v(?P<version>\S+)"
    r"(?P<annotations>(?: \([^)]*\))*)$"
)
_ANNOTATION_RE = re.compile(r"\(([^)]*)\)")
_MARKERS = {"*", "proc-macro"}


def parse_tree_line(line: str) -> Optional[PackageIdentity]:
    """Parse one ``cargo tree -f {p}`` line.

    Args:
        line: A single output line.

    Returns:
        The identity on the line, or None for blank lines and section headers.

    Raises:
        ValueError: If the line is not in the expected format.
    """
    line = line.strip()
    if not line or line.startswith("["):
        return None

    match = _LINE_RE.match(line)
    if match is None:
        raise ValueError(f"Unexpected cargo tree line: {line!r}")

    sources = [
        annotation
        for annotation in _ANNOTATION_RE.findall(match.group("annotations"))
        if annotation not in _MARKERS
    ]
    source = sources[0] if sources else None
    return PackageIdentity(
        name=match.group("name"),
        version=match.group("version"),
        source=source,
    )


class TreeScanner(CargoScanner):
    """Scanner producing the lean graph from ``cargo tree``."""

    @property
    def origin(self) -> str:
        return "cargo-tree"

    async def scan(self) -> LeanGraph:
        arguments = [
            "tree",
            "-e",
            "normal",
            "-f",
            "{p}",
            "--prefix",
            "none",
            "--color",
            "never",
            "--no-dedupe",
        ]
        if self.config.target:
            arguments += ["--target", self.config.target]
        arguments += self.selection_arguments()

        result = await self.run_cargo(arguments)
        return self.parse(result.stdout)

    def parse(self, output: str) -> LeanGraph:
        """Parse ``cargo tree`` output into a LeanGraph.

        Duplicate lines (one per occurrence in the tree) collapse to a single
        member; the first package printed is the root.

        Raises:
            ProviderInvocationFailed: If a line cannot be parsed.
        """
        members: list[PackageIdentity] = []
        seen: set[tuple[str, str]] = set()

        for line in output.splitlines():
            try:
                identity = parse_tree_line(line)
            except ValueError as e:
                raise ProviderInvocationFailed(f"{self.origin} output is unparsable") from e
            if identity is None or identity.key in seen:
                continue
            seen.add(identity.key)
            members.append(identity)

        root = members[0] if members else None
        logger.debug("%s reported %d compiled packages", self.origin, len(members))
        return LeanGraph(members=members, root=root)
