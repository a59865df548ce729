"""Binary codec for the embeddable license artifact.

Layout of the uncompressed payload (all integers big-endian):

    magic            4 bytes  b"LFPL"
    format version   u16
    package count    u32
    packages         repeated

Each package is encoded as::

    name, version                    string
    source                           optional string
    authors                          u32 count, then strings
    description, homepage,
    repository, license identifier,
    license text                     optional string
    provenance                       u8

where a string is a u32 byte length followed by UTF-8 bytes and an optional
string is a presence byte (0 or 1) followed by a string when present. The
whole payload is deflated with zlib.
"""

import logging
import os
import struct
import tempfile
import zlib
from pathlib import Path
from typing import Optional

from license_fetcher.errors import CodecError
from license_fetcher.models import Package, Provenance
from license_fetcher.package_list import PackageList

logger = logging.getLogger(__name__)

MAGIC = b"LFPL"
FORMAT_VERSION = 1
COMPRESSION_LEVEL = 9
ARTIFACT_NAME = "LICENSE-3RD-PARTY.bin.deflate"
# Permissions of a plain file created under the current umask.
ARTIFACT_MODE = 0o666

_HEADER = struct.Struct(">4sHI")
_U32 = struct.Struct(">I")
_U8 = struct.Struct(">B")

_PROVENANCE_CODES = {
    Provenance.NOT_FOUND: 0,
    Provenance.LOCAL_DISK: 1,
    Provenance.REMOTE_API: 2,
    Provenance.VERSION_CONTROL: 3,
}
_PROVENANCES = {code: provenance for provenance, code in _PROVENANCE_CODES.items()}


class _Writer:
    def __init__(self) -> None:
        self.chunks: list[bytes] = []

    def u8(self, value: int) -> None:
        self.chunks.append(_U8.pack(value))

    def u32(self, value: int) -> None:
        self.chunks.append(_U32.pack(value))

    def string(self, value: str) -> None:
        try:
            data = value.encode("utf-8")
        except UnicodeEncodeError as e:
            raise CodecError(f"Cannot encode {value[:40]!r} as UTF-8") from e
        self.u32(len(data))
        self.chunks.append(data)

    def optional(self, value: Optional[str]) -> None:
        if value is None:
            self.u8(0)
        else:
            self.u8(1)
            self.string(value)

    def getvalue(self) -> bytes:
        return b"".join(self.chunks)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.offset = 0

    def take(self, size: int) -> bytes:
        end = self.offset + size
        if end > len(self.data):
            raise CodecError(
                f"Truncated payload: needed {size} bytes at offset {self.offset}"
            )
        chunk = self.data[self.offset:end]
        self.offset = end
        return chunk

    def u8(self) -> int:
        return _U8.unpack(self.take(_U8.size))[0]

    def u32(self) -> int:
        return _U32.unpack(self.take(_U32.size))[0]

    def string(self) -> str:
        raw = self.take(self.u32())
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CodecError(f"Invalid UTF-8 at offset {self.offset - len(raw)}") from e

    def optional(self) -> Optional[str]:
        flag = self.u8()
        if flag == 0:
            return None
        if flag != 1:
            raise CodecError(f"Invalid presence flag {flag} at offset {self.offset - 1}")
        return self.string()

    @property
    def exhausted(self) -> bool:
        return self.offset == len(self.data)


def _write_package(writer: _Writer, package: Package) -> None:
    writer.string(package.name)
    writer.string(package.version)
    writer.optional(package.source)
    writer.u32(len(package.authors))
    for author in package.authors:
        writer.string(author)
    writer.optional(package.description)
    writer.optional(package.homepage)
    writer.optional(package.repository)
    writer.optional(package.license_identifier)
    writer.optional(package.license_text)
    writer.u8(_PROVENANCE_CODES[package.provenance])


def _read_package(reader: _Reader) -> Package:
    name = reader.string()
    version = reader.string()
    source = reader.optional()
    authors = tuple(reader.string() for _ in range(reader.u32()))
    description = reader.optional()
    homepage = reader.optional()
    repository = reader.optional()
    license_identifier = reader.optional()
    license_text = reader.optional()
    code = reader.u8()
    if code not in _PROVENANCES:
        raise CodecError(f"Unknown provenance code {code} for {name} {version}")
    return Package(
        name=name,
        version=version,
        source=source,
        authors=authors,
        description=description,
        homepage=homepage,
        repository=repository,
        license_identifier=license_identifier,
        license_text=license_text,
        provenance=_PROVENANCES[code],
    )


def encode(packages: PackageList) -> bytes:
    """Serialize and compress a package list.

    Args:
        packages: The list to encode.

    Returns:
        The compressed artifact bytes.

    Raises:
        CodecError: If a field cannot be represented as UTF-8.
    """
    writer = _Writer()
    writer.chunks.append(_HEADER.pack(MAGIC, FORMAT_VERSION, len(packages)))
    for package in packages:
        _write_package(writer, package)

    payload = writer.getvalue()
    compressed = zlib.compress(payload, COMPRESSION_LEVEL)
    logger.debug(
        "Encoded %d packages: %d bytes, %d compressed",
        len(packages),
        len(payload),
        len(compressed),
    )
    return compressed


def decode(data: bytes) -> PackageList:
    """Decompress and deserialize artifact bytes.

    Args:
        data: Bytes produced by :func:`encode`.

    Returns:
        A frozen PackageList.

    Raises:
        CodecError: If the bytes are not a complete, valid artifact.
    """
    try:
        payload = zlib.decompress(data)
    except zlib.error as e:
        raise CodecError("License artifact is not a valid deflate stream") from e

    reader = _Reader(payload)
    magic, version, count = _HEADER.unpack(reader.take(_HEADER.size))
    if magic != MAGIC:
        raise CodecError(f"Bad magic {magic!r}, expected {MAGIC!r}")
    if version != FORMAT_VERSION:
        raise CodecError(
            f"Unsupported format version {version}, expected {FORMAT_VERSION}"
        )

    packages = [_read_package(reader) for _ in range(count)]
    if not reader.exhausted:
        raise CodecError(
            f"{len(payload) - reader.offset} trailing bytes after {count} packages"
        )

    return PackageList(packages, frozen=True)


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def write_artifact(packages: PackageList, path: Path) -> Path:
    """Encode ``packages`` and atomically replace the file at ``path``.

    Returns:
        The path written.
    """
    data = encode(packages)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as tmp:
            tmp.write(data)
        os.chmod(tmp_name, ARTIFACT_MODE & ~_current_umask())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.info("Wrote license artifact %s (%d bytes)", path, len(data))
    return path


def read_artifact(path: Path) -> PackageList:
    """Read and decode an artifact file.

    Raises:
        CodecError: If the file cannot be read or decoded.
    """
    try:
        data = path.read_bytes()
    except OSError as e:
        raise CodecError(f"Cannot read license artifact {path}") from e
    return decode(data)
