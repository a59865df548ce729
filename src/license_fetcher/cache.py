"""SQLite-based cache layer for license resolution results.

This module provides a persistent cache so that license texts are resolved
at most once per package identity, across pipeline runs. Entries are only
valid for the resolver version that produced them.
"""

import contextlib
import logging
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Optional, Protocol

from license_fetcher.errors import CacheUnavailable
from license_fetcher.models import (
    CacheEntry,
    LicenseResolution,
    PackageIdentity,
    Provenance,
)

logger = logging.getLogger(__name__)


class ResolutionCache(Protocol):
    """Interface shared by the persistent and in-memory caches."""

    def get(
        self, identity: PackageIdentity, resolver_version: str
    ) -> Optional[LicenseResolution]: ...

    def put(
        self,
        identity: PackageIdentity,
        resolver_version: str,
        resolution: LicenseResolution,
    ) -> None: ...

    def close(self) -> None: ...


class LicenseCache:
    """SQLite cache for storing license resolutions.

    Keyed by package name, version and source. A lookup only hits when the
    stored resolver version equals the requested one, so bumping the
    resolver version invalidates every older entry.

    Attributes:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Open (and if needed create) the license cache.

        Args:
            db_path: Path to SQLite database. If None, uses
                ~/.cache/license_fetcher/cache.db.

        Raises:
            CacheUnavailable: If the database cannot be created or is corrupt.
        """
        if db_path is None:
            db_path = Path.home() / ".cache" / "license_fetcher" / "cache.db"

        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_database()
        except (OSError, sqlite3.Error) as e:
            raise CacheUnavailable(f"Cannot open license cache at {self.db_path}") from e

    def __enter__(self) -> "LicenseCache":
        """Enter context manager, keeping connection open."""
        self._conn = sqlite3.connect(self.db_path)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager, closing connection."""
        self.close()

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    @contextlib.contextmanager
    def _connect(self):
        """Get a database connection.

        If used as a context manager (with statement), reuses the existing
        connection. Otherwise, creates a new one and closes it after use.
        """
        if self._conn:
            yield self._conn
        else:
            conn = sqlite3.connect(self.db_path)
            try:
                yield conn
            finally:
                conn.close()

    def _init_database(self) -> None:
        """Initialize the database schema if it doesn't exist."""
        with self._connect() as conn:
            cursor = conn.cursor()

            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS license_cache (
                    package_name TEXT NOT NULL,
                    package_version TEXT NOT NULL,
                    package_source TEXT NOT NULL,
                    resolver_version TEXT NOT NULL,
                    provenance TEXT NOT NULL,
                    license_text TEXT,
                    resolved_at TEXT NOT NULL,
                    PRIMARY KEY (package_name, package_version, package_source)
                )
                """
            )

            # Fails with DatabaseError when the file is not a SQLite database
            cursor.execute("PRAGMA quick_check").fetchone()

            conn.commit()

    @staticmethod
    def _key(identity: PackageIdentity) -> tuple[str, str, str]:
        return (identity.name, identity.version, identity.source or "")

    def get_entry(self, identity: PackageIdentity) -> Optional[CacheEntry]:
        """Retrieve the stored entry for a package regardless of resolver version.

        Returns:
            The CacheEntry, or None if absent or unreadable.
        """
        try:
            with self._connect() as conn:
                row = conn.execute(
                    """
                    SELECT resolver_version, provenance, license_text, resolved_at
                    FROM license_cache
                    WHERE package_name = ? AND package_version = ? AND package_source = ?
                    """,
                    self._key(identity),
                ).fetchone()
        except sqlite3.Error as e:
            logger.warning("License cache read failed for %s: %s", identity, e)
            return None

        if row is None:
            return None

        resolver_version, provenance, license_text, resolved_at = row
        try:
            resolution = LicenseResolution(text=license_text, provenance=Provenance(provenance))
            timestamp = datetime.fromisoformat(resolved_at)
        except (ValueError, TypeError):
            # If data is corrupted, treat as cache miss
            logger.debug("Ignoring corrupt cache row for %s", identity)
            return None

        if (resolution.text is None) != (resolution.provenance is Provenance.NOT_FOUND):
            logger.debug("Ignoring inconsistent cache row for %s", identity)
            return None

        return CacheEntry(
            identity=identity,
            resolution=resolution,
            resolver_version=resolver_version,
            resolved_at=timestamp,
        )

    def get(
        self, identity: PackageIdentity, resolver_version: str
    ) -> Optional[LicenseResolution]:
        """Retrieve a cached resolution.

        Args:
            identity: Package identity.
            resolver_version: Version of the current resolver logic.

        Returns:
            The LicenseResolution on a hit, None on a miss or a version mismatch.
        """
        entry = self.get_entry(identity)
        if entry is None or entry.resolver_version != resolver_version:
            return None
        return entry.resolution

    def put(
        self,
        identity: PackageIdentity,
        resolver_version: str,
        resolution: LicenseResolution,
    ) -> None:
        """Store a resolution, replacing any previous entry for the package.

        Write failures are logged and otherwise ignored.
        """
        resolved_at = datetime.now(UTC).isoformat()
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    REPLACE INTO license_cache
                    (package_name, package_version, package_source,
                     resolver_version, provenance, license_text, resolved_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        *self._key(identity),
                        resolver_version,
                        resolution.provenance.value,
                        resolution.text,
                        resolved_at,
                    ),
                )
                conn.commit()
        except sqlite3.Error as e:
            logger.warning("License cache write failed for %s: %s", identity, e)

    def purge_stale(self, resolver_version: str) -> int:
        """Delete entries written by another resolver version.

        Returns:
            Number of deleted entries.
        """
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM license_cache WHERE resolver_version != ?",
                (resolver_version,),
            )
            conn.commit()
            return cursor.rowcount

    def clear(
        self,
        package: Optional[str] = None,
        version: Optional[str] = None,
    ) -> None:
        """Clear cache entries.

        Args:
            package: If specified, clear only this package.
                If None, clear all entries.
            version: If specified (with package), clear only this
                specific version. Ignored if package is None.
        """
        with self._connect() as conn:
            cursor = conn.cursor()

            if package is None:
                cursor.execute("DELETE FROM license_cache")
            elif version is None:
                cursor.execute(
                    "DELETE FROM license_cache WHERE package_name = ?",
                    (package,),
                )
            else:
                cursor.execute(
                    """
                    DELETE FROM license_cache
                    WHERE package_name = ? AND package_version = ?
                    """,
                    (package, version),
                )
            conn.commit()

    def info(self) -> dict:
        """Get cache statistics.

        Returns:
            Dictionary with cache information:
                - path: Path to cache database file
                - count: Number of cached entries
                - not_found: Number of cached not-found entries
                - size_bytes: Database file size in bytes
        """
        with self._connect() as conn:
            count = conn.execute("SELECT COUNT(*) FROM license_cache").fetchone()[0]
            not_found = conn.execute(
                "SELECT COUNT(*) FROM license_cache WHERE license_text IS NULL"
            ).fetchone()[0]

        size_bytes = self.db_path.stat().st_size if self.db_path.exists() else 0

        return {
            "path": str(self.db_path),
            "count": count,
            "not_found": not_found,
            "size_bytes": size_bytes,
        }


class MemoryLicenseCache:
    """In-memory cache with the same lookup semantics as LicenseCache.

    Used when the on-disk cache is disabled or unavailable, and in tests.
    """

    def __init__(self) -> None:
        self.entries: dict[PackageIdentity, CacheEntry] = {}

    def __enter__(self) -> "MemoryLicenseCache":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        pass

    def get(
        self, identity: PackageIdentity, resolver_version: str
    ) -> Optional[LicenseResolution]:
        entry = self.entries.get(identity)
        if entry is None or entry.resolver_version != resolver_version:
            return None
        return entry.resolution

    def put(
        self,
        identity: PackageIdentity,
        resolver_version: str,
        resolution: LicenseResolution,
    ) -> None:
        self.entries[identity] = CacheEntry(
            identity=identity,
            resolution=resolution,
            resolver_version=resolver_version,
            resolved_at=datetime.now(UTC),
        )


def open_cache(db_path: Optional[Path], enabled: bool = True) -> ResolutionCache:
    """Open the persistent cache, degrading to an empty in-memory one.

    Args:
        db_path: Location of the SQLite database (None for the default).
        enabled: If False, always return an in-memory cache.

    Returns:
        A LicenseCache with an open connection, or a MemoryLicenseCache.
    """
    if not enabled:
        return MemoryLicenseCache()
    try:
        return LicenseCache(db_path=db_path).__enter__()
    except (CacheUnavailable, sqlite3.Error) as e:
        logger.warning("%s (%s); continuing with an empty cache", e, e.__cause__ or e)
        return MemoryLicenseCache()
