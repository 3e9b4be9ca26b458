"""Publisher capability and bundle checks shared by every sink."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from release_matrix.errors import INCOMPLETE_BUNDLE, PublishFailure
from release_matrix.packaging.checksum import verify_checksum_file
from release_matrix.types import PackagedArtifact, PublishResult, ReleaseBundle

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    """Capability to publish a release bundle to a release-hosting sink."""

    def generate_notes(self, tag: str, artifacts: Sequence[PackagedArtifact]) -> str:
        """Produce release notes for ``tag``.

        Raises:
            PublishFailure: If the notes cannot be produced.
        """
        ...

    def publish(self, bundle: ReleaseBundle) -> PublishResult:
        """Publish every artifact of ``bundle`` as one release."""
        ...


def ensure_bundle_complete(bundle: ReleaseBundle) -> None:
    """Fail closed unless every declared file is present and consistent.

    Args:
        bundle: Bundle about to be published.

    Raises:
        PublishFailure: If the bundle is empty, a file is missing, two
            artifacts share a file name, or a checksum file does not match
            its archive.
    """
    if not bundle.artifacts:
        raise PublishFailure("Release bundle has no artifacts", code=INCOMPLETE_BUNDLE)

    names: set[str] = set()
    for path in bundle.files():
        if not path.is_file():
            raise PublishFailure(
                f"Declared artifact is missing: {path}", code=INCOMPLETE_BUNDLE
            )
        if path.name in names:
            raise PublishFailure(
                f"Duplicate artifact name in bundle: {path.name}",
                code=INCOMPLETE_BUNDLE,
            )
        names.add(path.name)

    for artifact in bundle.artifacts:
        if not verify_checksum_file(artifact.checksum_path):
            raise PublishFailure(
                f"Checksum file does not match archive: {artifact.checksum_path}",
                code=INCOMPLETE_BUNDLE,
            )

    logger.debug(
        "Bundle %s complete: %d file(s)", bundle.release_tag, len(bundle.files())
    )


__all__ = ["Publisher", "ensure_bundle_complete"]
