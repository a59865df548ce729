"""Local disk license source.

Scans a package's source checkout for license-like files.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Optional

from license_fetcher.config import DEFAULT_LICENSE_PATTERN
from license_fetcher.models import LicenseResolution, Provenance, ResolutionRequest
from license_fetcher.resolvers.base import BaseResolver

logger = logging.getLogger(__name__)

# Files with these suffixes are source code even when the name matches.
EXCLUDED_SUFFIXES = frozenset(
    {
        ".c", ".cc", ".cpp", ".go", ".h", ".js", ".json", ".lock",
        ".py", ".rs", ".sh", ".toml", ".ts", ".yaml", ".yml",
    }
)

DELIMITER = "=" * 80


class LicenseFileMatcher:
    """Finds and concatenates license-like files in a directory tree.

    The top level and one subdirectory level are scanned. A file matches if
    its name matches the pattern, or if it sits in a first-level directory
    whose name matches (``LICENSES/MIT.txt``). Hidden entries are ignored.

    Attributes:
        pattern: Compiled file name pattern.
    """

    def __init__(self, pattern: str = DEFAULT_LICENSE_PATTERN) -> None:
        self.pattern = re.compile(pattern)

    def find(self, directory: Path) -> list[Path]:
        """Return matching files sorted by their path relative to ``directory``."""
        matches: list[Path] = []
        try:
            entries = list(directory.iterdir())
        except OSError as e:
            logger.debug("Cannot list %s: %s", directory, e)
            return []

        for entry in entries:
            if entry.name.startswith("."):
                continue
            if entry.is_file():
                if self._matches(entry.name) and entry.suffix.lower() not in EXCLUDED_SUFFIXES:
                    matches.append(entry)
            elif entry.is_dir():
                matches.extend(self._find_in_subdirectory(entry))

        return sorted(matches, key=lambda p: p.relative_to(directory).as_posix())

    def _find_in_subdirectory(self, subdirectory: Path) -> list[Path]:
        dir_matches = self._matches(subdirectory.name)
        try:
            entries = list(subdirectory.iterdir())
        except OSError as e:
            logger.debug("Cannot list %s: %s", subdirectory, e)
            return []
        return [
            entry
            for entry in entries
            if entry.is_file()
            and not entry.name.startswith(".")
            and entry.suffix.lower() not in EXCLUDED_SUFFIXES
            and (dir_matches or self._matches(entry.name))
        ]

    def _matches(self, name: str) -> bool:
        return self.pattern.search(name) is not None

    def read(self, directory: Path) -> Optional[str]:
        """Read the license text found in ``directory``.

        A single match is returned verbatim. Multiple matches are joined in
        sorted order, each preceded by a delimiter line naming the file.

        Returns:
            The license text, or None if nothing readable matched.
        """
        texts: list[tuple[str, str]] = []
        for path in self.find(directory):
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.debug("Skipping unreadable license file %s: %s", path, e)
                continue
            texts.append((path.relative_to(directory).as_posix(), text))

        if not texts:
            return None
        if len(texts) == 1:
            return texts[0][1]
        return "\n\n".join(f"{DELIMITER}\n{name}\n{DELIMITER}\n\n{text}" for name, text in texts)


class LocalDiskResolver(BaseResolver):
    """Source reading license files from the package's local checkout."""

    def __init__(self, matcher: Optional[LicenseFileMatcher] = None) -> None:
        self.matcher = matcher or LicenseFileMatcher()

    @property
    def name(self) -> str:
        return "local-disk"

    @property
    def priority(self) -> int:
        return 10

    async def resolve(self, request: ResolutionRequest) -> Optional[LicenseResolution]:
        if request.checkout_dir is None or not request.checkout_dir.is_dir():
            logger.debug("No local checkout for %s", request.identity)
            return None

        text = await asyncio.to_thread(self.matcher.read, request.checkout_dir)
        if text is None:
            logger.debug("No license files in %s", request.checkout_dir)
            return None
        return LicenseResolution(text=text, provenance=Provenance.LOCAL_DISK)
