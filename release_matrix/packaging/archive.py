"""Deterministic archive writers.

Archives are byte-for-byte reproducible: entries are written in the given
order with a fixed timestamp, fixed modes, root ownership and no
host-specific metadata. The gzip stream carries no file name and mtime 0.
"""

from __future__ import annotations

import gzip
import shutil
import stat
import tarfile
import zipfile
from dataclasses import dataclass
from pathlib import Path

from release_matrix.types import ArchiveFormat

# 1980-01-01T00:00:00Z, the earliest timestamp a zip entry can carry
ARCHIVE_EPOCH = 315532800
ZIP_DATE_TIME = (1980, 1, 1, 0, 0, 0)

GZIP_COMPRESS_LEVEL = 9
COPY_CHUNK_SIZE = 64 * 1024

BINARY_MODE = 0o755
FILE_MODE = 0o644


@dataclass(frozen=True)
class ArchiveEntry:
    """A file to place at ``name`` inside an archive."""

    name: str
    source: Path
    mode: int = FILE_MODE


def write_zip(dest: Path, entries: list[ArchiveEntry]) -> None:
    """Write a deterministic zip archive.

    Args:
        dest: Output archive path.
        entries: Entries in archive order.
    """
    with zipfile.ZipFile(dest, "w") as zf:
        for entry in entries:
            info = zipfile.ZipInfo(entry.name, date_time=ZIP_DATE_TIME)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.create_system = 3  # Unix, so external_attr carries the mode
            info.external_attr = (stat.S_IFREG | entry.mode) << 16
            info.file_size = entry.source.stat().st_size
            with entry.source.open("rb") as src, zf.open(info, "w") as dst:
                shutil.copyfileobj(src, dst, COPY_CHUNK_SIZE)


def write_tar_gz(dest: Path, entries: list[ArchiveEntry]) -> None:
    """Write a deterministic gzip-compressed tar archive.

    Args:
        dest: Output archive path.
        entries: Entries in archive order.
    """
    with dest.open("wb") as raw:
        gz = gzip.GzipFile(
            filename="",
            mode="wb",
            fileobj=raw,
            compresslevel=GZIP_COMPRESS_LEVEL,
            mtime=0,
        )
        with gz, tarfile.open(fileobj=gz, mode="w", format=tarfile.GNU_FORMAT) as tar:
            for entry in entries:
                info = tarfile.TarInfo(entry.name)
                info.size = entry.source.stat().st_size
                info.mtime = ARCHIVE_EPOCH
                info.mode = entry.mode
                info.type = tarfile.REGTYPE
                info.uid = info.gid = 0
                info.uname = info.gname = ""
                with entry.source.open("rb") as src:
                    tar.addfile(info, src)


def write_archive(dest: Path, entries: list[ArchiveEntry], fmt: ArchiveFormat) -> None:
    """Write an archive in the requested format."""
    if fmt is ArchiveFormat.ZIP:
        write_zip(dest, entries)
    else:
        write_tar_gz(dest, entries)


__all__ = [
    "ARCHIVE_EPOCH",
    "BINARY_MODE",
    "FILE_MODE",
    "ZIP_DATE_TIME",
    "ArchiveEntry",
    "write_archive",
    "write_tar_gz",
    "write_zip",
]
