"""License Fetcher - embed the licenses of compiled Cargo dependencies.

This package resolves the license text of every package compiled into a
Cargo project and stores them in a compressed artifact that the program
can decode again at run time.
"""

__version__ = "0.1.0"

from license_fetcher.codec import ARTIFACT_NAME, decode, encode, read_artifact, write_artifact
from license_fetcher.config import FetcherConfig
from license_fetcher.errors import LicenseFetcherError
from license_fetcher.models import Package, PackageIdentity, Provenance
from license_fetcher.package_list import PackageList
from license_fetcher.pipeline import Pipeline, collect, generate

__all__ = [
    "__version__",
    "ARTIFACT_NAME",
    "FetcherConfig",
    "LicenseFetcherError",
    "Package",
    "PackageIdentity",
    "PackageList",
    "Pipeline",
    "Provenance",
    "collect",
    "decode",
    "encode",
    "generate",
    "get_package_list",
    "read_artifact",
    "write_artifact",
]


def get_package_list(data: bytes) -> PackageList:
    """Reconstruct the package list from embedded artifact bytes.

    Raises:
        CodecError: If the bytes are not a valid artifact.
    """
    return decode(data)
