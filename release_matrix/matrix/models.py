"""The immutable target matrix."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from release_matrix.errors import ConfigurationError
from release_matrix.matrix.schema import TRIPLE_PATTERN
from release_matrix.types import TargetSpec


@dataclass(frozen=True)
class TargetMatrix:
    """Ordered, immutable set of targets for one run.

    Order is preserved for deterministic logging and reporting only;
    correctness never depends on it.

    Attributes:
        binary_name: Name of the binary every target produces.
        entries: Ordered targets.
    """

    binary_name: str
    entries: tuple[TargetSpec, ...]

    def __post_init__(self) -> None:
        """Reject matrices whose targets would share build or archive paths.

        Raises:
            ConfigurationError: If the matrix is empty, a triple is malformed
                or repeated, or two display names give the same slug.
        """
        if not self.entries:
            raise ConfigurationError("Target matrix has no targets")
        triples: set[str] = set()
        slugs: set[str] = set()
        for target in self.entries:
            if not TRIPLE_PATTERN.match(target.triple):
                raise ConfigurationError(f"Malformed target triple '{target.triple}'")
            if target.triple in triples:
                raise ConfigurationError(f"Duplicate target triple '{target.triple}'")
            if not target.slug or target.slug in slugs:
                raise ConfigurationError(
                    f"Display name '{target.display_name}' does not give a unique "
                    "archive name"
                )
            triples.add(target.triple)
            slugs.add(target.slug)

    def targets(self) -> tuple[TargetSpec, ...]:
        """Return the ordered targets."""
        return self.entries

    def require_archive_formats(self) -> None:
        """Ensure every target can be packaged.

        Raises:
            ConfigurationError: If any target has no archive format.
        """
        missing = [t.display_name for t in self.entries if t.archive_format is None]
        if missing:
            raise ConfigurationError(
                "archive_format is required for release targets: "
                + ", ".join(missing)
            )

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[TargetSpec]:
        return iter(self.entries)


__all__ = ["TargetMatrix"]
