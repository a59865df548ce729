"""Lookup of package source checkouts in the cargo registry cache.

Cargo unpacks every downloaded crate into
``$CARGO_HOME/registry/src/<index>/<name>-<version>``.
"""

import logging
from pathlib import Path
from typing import Iterator, Optional

logger = logging.getLogger(__name__)


def src_registry_folders(cargo_home: Path) -> Iterator[Path]:
    """Yield the per-index source folders under ``registry/src``.

    Args:
        cargo_home: Cargo home directory.

    Yields:
        One directory per registry index, in sorted order.
    """
    src_dir = cargo_home / "registry" / "src"
    if not src_dir.is_dir():
        logger.debug("No registry source folder at %s", src_dir)
        return
    yield from sorted(p for p in src_dir.iterdir() if p.is_dir())


def find_registry_checkout(cargo_home: Path, name: str, version: str) -> Optional[Path]:
    """Find the unpacked sources of a registry package.

    Args:
        cargo_home: Cargo home directory.
        name: Package name.
        version: Package version.

    Returns:
        Path to the checkout, or None if no registry index contains it.
    """
    folder_name = f"{name}-{version}"
    for index_dir in src_registry_folders(cargo_home):
        candidate = index_dir / folder_name
        if candidate.is_dir():
            return candidate
    return None
