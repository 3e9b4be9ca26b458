"""Per-target packaging.

Bundles a built binary with the target's extra files into a deterministic
archive named from the project, release tag and target, and writes the
archive's checksum file next to it.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from release_matrix.errors import (
    DUPLICATE_ENTRY,
    IO_ERROR,
    MISSING_FILE,
    ConfigurationError,
    PackagingError,
)
from release_matrix.packaging.archive import (
    BINARY_MODE,
    FILE_MODE,
    ArchiveEntry,
    write_archive,
)
from release_matrix.packaging.checksum import write_checksum_file
from release_matrix.types import ArchiveFormat, PackagedArtifact, TargetSpec

logger = logging.getLogger(__name__)


class Packager:
    """Produces release archives for one release tag.

    Archives land in ``<output_dir>/dist`` as
    ``{project}_{tag}_{target slug}.{zip|tar.gz}`` with a sibling
    ``.sha256`` file.
    """

    def __init__(self, output_dir: Path, release_tag: str, project_name: str) -> None:
        for label, value in (("release tag", release_tag), ("project name", project_name)):
            if not value or "/" in value or "\\" in value or value in (".", ".."):
                raise ConfigurationError(f"Invalid {label} for archive names: {value!r}")
        self.dist_dir = output_dir / "dist"
        self.release_tag = release_tag
        self.project_name = project_name

    def archive_name(self, target: TargetSpec, fmt: ArchiveFormat) -> str:
        """Deterministic archive file name for a target."""
        return f"{self.project_name}_{self.release_tag}_{target.slug}.{fmt.value}"

    def package(
        self,
        target: TargetSpec,
        binary: Path,
        extra_files: tuple[str, ...] | list[Path] | None = None,
        fmt: ArchiveFormat | None = None,
        base_dir: Path | None = None,
    ) -> PackagedArtifact:
        """Package a binary and its extra files.

        Args:
            target: Target the binary was built for.
            binary: Built binary.
            extra_files: Files to include; defaults to the target's extra files.
            fmt: Archive format; defaults to the target's archive format.
            base_dir: Directory relative extra file paths resolve against.

        Returns:
            PackagedArtifact describing the archive and its checksum file.

        Raises:
            PackagingError: If a file is missing, two entries share a name,
                or the archive cannot be written.
        """
        fmt = fmt or target.archive_format
        if fmt is None:
            raise ConfigurationError(f"No archive format for target {target.display_name}")
        if extra_files is None:
            extra_files = target.extra_files

        entries = self._collect_entries(binary, extra_files, base_dir)

        self.dist_dir.mkdir(parents=True, exist_ok=True)
        archive_path = self.dist_dir / self.archive_name(target, fmt)

        fd, tmp_name = tempfile.mkstemp(
            dir=self.dist_dir, prefix=f".{archive_path.name}.", suffix=".partial"
        )
        os.close(fd)
        tmp_path = Path(tmp_name)
        try:
            write_archive(tmp_path, entries, fmt)
            os.replace(tmp_path, archive_path)
            checksum_path, digest = write_checksum_file(archive_path)
        except OSError as e:
            raise PackagingError(IO_ERROR, archive_path, str(e)) from e
        finally:
            tmp_path.unlink(missing_ok=True)

        size_bytes = archive_path.stat().st_size
        logger.info(
            "[%s] Packaged %s (%d bytes, sha256=%s)",
            target.triple,
            archive_path.name,
            size_bytes,
            digest[:16],
        )
        return PackagedArtifact(
            target=target,
            archive_path=archive_path,
            checksum_path=checksum_path,
            sha256=digest,
            size_bytes=size_bytes,
        )

    def _collect_entries(
        self,
        binary: Path,
        extra_files: tuple[str, ...] | list[Path],
        base_dir: Path | None,
    ) -> list[ArchiveEntry]:
        """Validate inputs and return archive entries, binary first."""
        if not binary.is_file():
            raise PackagingError(MISSING_FILE, binary)

        extras: list[ArchiveEntry] = []
        for item in extra_files:
            path = Path(item)
            if base_dir is not None and not path.is_absolute():
                path = base_dir / path
            if not path.is_file():
                raise PackagingError(MISSING_FILE, path)
            extras.append(ArchiveEntry(name=path.name, source=path, mode=FILE_MODE))

        entries = [ArchiveEntry(name=binary.name, source=binary, mode=BINARY_MODE)]
        entries.extend(sorted(extras, key=lambda e: e.name))

        names: set[str] = set()
        for entry in entries:
            if entry.name in names:
                raise PackagingError(DUPLICATE_ENTRY, entry.name)
            names.add(entry.name)
        return entries


__all__ = ["Packager"]
