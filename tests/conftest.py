"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest
from factories import APACHE_TEXT, MIT_TEXT, REGISTRY

from license_fetcher.config import FetcherConfig
from license_fetcher.models import Package, PackageIdentity, Provenance


@pytest.fixture
def config(tmp_path: Path) -> FetcherConfig:
    """Return a config rooted in a temporary directory."""
    manifest_dir = tmp_path / "project"
    manifest_dir.mkdir()
    return FetcherConfig(
        manifest_dir=manifest_dir,
        out_dir=tmp_path / "out",
        cargo_home=tmp_path / "cargo-home",
        cache_dir=tmp_path / "cache",
    )


@pytest.fixture
def sample_identity() -> PackageIdentity:
    """Return a sample PackageIdentity for testing."""
    return PackageIdentity(name="serde", version="1.0.210", source=REGISTRY)


@pytest.fixture
def sample_packages() -> list[Package]:
    """Return packages covering every optional field and provenance."""
    return [
        Package(
            name="serde",
            version="1.0.210",
            source=REGISTRY,
            authors=("Erick Tryzelaar <erick.tryzelaar@gmail.com>", "David Tolnay <dtolnay@gmail.com>"),
            description="A generic serialization/deserialization framework",
            homepage="https://serde.rs",
            repository="https://github.com/serde-rs/serde",
            license_identifier="MIT OR Apache-2.0",
            license_text=MIT_TEXT,
            provenance=Provenance.LOCAL_DISK,
        ),
        Package(
            name="anyhow",
            version="1.0.89",
            source=REGISTRY,
            repository="https://github.com/dtolnay/anyhow",
            license_identifier="MIT OR Apache-2.0",
            license_text=APACHE_TEXT,
            provenance=Provenance.REMOTE_API,
        ),
        Package(
            name="my-app",
            version="0.1.0",
            description="Ünïcödé description ✓",
        ),
        Package(
            name="anyhow",
            version="1.0.88",
            source=REGISTRY,
            license_text="",
            provenance=Provenance.VERSION_CONTROL,
        ),
    ]


@pytest.fixture
def crate_dir(tmp_path: Path):
    """Return a factory creating a crate checkout with the given files."""

    def _make(name: str, files: dict[str, str]) -> Path:
        root = tmp_path / "crates" / name
        root.mkdir(parents=True)
        for relative, content in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root

    return _make
