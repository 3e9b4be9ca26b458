"""Packaging module.

This module handles:
- Deterministic zip and tar.gz archive writing
- SHA-256 checksum files in sha256sum format
- Packaging one built binary with its extra files
"""

from release_matrix.packaging.checksum import (
    compute_file_hash,
    verify_checksum_file,
    write_checksum_file,
)
from release_matrix.packaging.packager import Packager

__all__ = [
    "Packager",
    "compute_file_hash",
    "verify_checksum_file",
    "write_checksum_file",
]
