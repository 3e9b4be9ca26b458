"""Checksum computation and checksum files.

Contract for downstream consumers: the digest is SHA-256 of the archive
bytes, encoded as 64 lower-case hex characters. It is written to a sibling
file named ``<archive>.sha256`` containing exactly one line in the
``sha256sum`` text format::

    <hex digest><two spaces><archive file name>\\n

so ``sha256sum -c <archive>.sha256`` verifies it from the archive's directory.
"""

from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

CHECKSUM_ALGORITHM = "sha256"
CHECKSUM_SUFFIX = ".sha256"

# Default chunk size for hashing
HASH_CHUNK_SIZE = 64 * 1024  # 64KB

_CHECKSUM_LINE_RE = re.compile(r"^([0-9a-f]{64}) [ *](.+)$")


def compute_file_hash(
    file_path: Path,
    chunk_size: int = HASH_CHUNK_SIZE,
) -> str:
    """Compute SHA-256 hash of a file.

    Args:
        file_path: Path to the file.
        chunk_size: Size of chunks for streaming hash.

    Returns:
        SHA-256 hex digest.
    """
    sha256 = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


def checksum_path_for(archive_path: Path) -> Path:
    """Return the sibling checksum file path for an archive."""
    return archive_path.with_name(archive_path.name + CHECKSUM_SUFFIX)


def format_checksum_line(digest: str, filename: str) -> str:
    """Format one line of a checksum file."""
    return f"{digest}  {filename}\n"


def write_checksum_file(archive_path: Path) -> tuple[Path, str]:
    """Hash an archive and write its sibling checksum file.

    Args:
        archive_path: Archive to hash.

    Returns:
        Tuple of (checksum file path, hex digest).
    """
    digest = compute_file_hash(archive_path)
    checksum_path = checksum_path_for(archive_path)
    checksum_path.write_text(
        format_checksum_line(digest, archive_path.name), encoding="utf-8"
    )
    logger.debug("Wrote checksum %s for %s", digest[:16], archive_path.name)
    return checksum_path, digest


def read_checksum_file(checksum_path: Path) -> tuple[str, str]:
    """Parse a checksum file.

    Args:
        checksum_path: Path to a ``.sha256`` file.

    Returns:
        Tuple of (hex digest, archive file name).

    Raises:
        ValueError: If the file is not a single valid checksum line.
    """
    lines = checksum_path.read_text(encoding="utf-8").splitlines()
    if len(lines) != 1:
        raise ValueError(f"Expected exactly one checksum line in {checksum_path}")
    match = _CHECKSUM_LINE_RE.match(lines[0])
    if not match:
        raise ValueError(f"Malformed checksum line in {checksum_path}: {lines[0]!r}")
    return match.group(1), match.group(2)


def verify_checksum_file(checksum_path: Path) -> bool:
    """Recompute an archive's digest and compare it with its checksum file.

    The archive is looked up next to the checksum file by the name recorded
    in it.

    Args:
        checksum_path: Path to a ``.sha256`` file.

    Returns:
        True if the archive exists and its digest matches.
    """
    try:
        expected, filename = read_checksum_file(checksum_path)
    except (OSError, ValueError) as e:
        logger.warning("Cannot read checksum file %s: %s", checksum_path, e)
        return False

    archive_path = checksum_path.parent / filename
    if not archive_path.is_file():
        logger.warning("Archive named in %s not found: %s", checksum_path, archive_path)
        return False

    actual = compute_file_hash(archive_path)
    if actual != expected:
        logger.warning(
            "Checksum mismatch for %s: expected %s, got %s",
            filename,
            expected[:16],
            actual[:16],
        )
        return False
    return True


__all__ = [
    "CHECKSUM_ALGORITHM",
    "CHECKSUM_SUFFIX",
    "HASH_CHUNK_SIZE",
    "checksum_path_for",
    "compute_file_hash",
    "format_checksum_line",
    "read_checksum_file",
    "verify_checksum_file",
    "write_checksum_file",
]
