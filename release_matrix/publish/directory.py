"""Local directory publisher.

Publishes a bundle into ``<root>/<tag>/`` with the archives, their checksum
files, a combined ``SHA256SUMS`` and ``RELEASE_NOTES.md``. The tag directory
is staged under a temporary name and renamed into place, so it never exists
in a partial state.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Sequence
from pathlib import Path

from release_matrix.errors import PublishFailure
from release_matrix.packaging.checksum import format_checksum_line
from release_matrix.publish.base import ensure_bundle_complete
from release_matrix.types import PackagedArtifact, PublishResult, ReleaseBundle

logger = logging.getLogger(__name__)

NOTES_FILENAME = "RELEASE_NOTES.md"
SUMS_FILENAME = "SHA256SUMS"


class DirectoryPublisher:
    """Publishes release bundles into a local directory tree."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def generate_notes(self, tag: str, artifacts: Sequence[PackagedArtifact]) -> str:
        """Render a Markdown table of the release's downloads."""
        lines = [
            f"# {tag}",
            "",
            "| Platform | Target | Archive | SHA-256 |",
            "| --- | --- | --- | --- |",
        ]
        for artifact in artifacts:
            lines.append(
                f"| {artifact.target.display_name} | `{artifact.target.triple}` "
                f"| {artifact.archive_path.name} | `{artifact.sha256}` |"
            )
        return "\n".join(lines) + "\n"

    def publish(self, bundle: ReleaseBundle) -> PublishResult:
        """Copy a bundle into ``<root>/<tag>``.

        Args:
            bundle: Complete release bundle.

        Returns:
            PublishResult; failures are reported, never raised.
        """
        dest = self.root / bundle.release_tag
        staging = self.root / f".{bundle.release_tag}.partial"
        try:
            ensure_bundle_complete(bundle)
            if dest.exists():
                raise PublishFailure(
                    f"Release {bundle.release_tag} already exists at {dest}",
                    code="release_exists",
                )

            if staging.exists():
                shutil.rmtree(staging)
            staging.mkdir(parents=True)
            for path in bundle.files():
                shutil.copy2(path, staging / path.name)
            (staging / SUMS_FILENAME).write_text(
                "".join(
                    format_checksum_line(a.sha256, a.archive_path.name)
                    for a in bundle.artifacts
                ),
                encoding="utf-8",
            )
            (staging / NOTES_FILENAME).write_text(bundle.notes, encoding="utf-8")
            staging.rename(dest)
        except PublishFailure as e:
            logger.error("Refusing to publish %s: %s", bundle.release_tag, e)
            return PublishResult(success=False, message=e.reason, code=e.code)
        except OSError as e:
            logger.error("Publishing %s to %s failed: %s", bundle.release_tag, dest, e)
            shutil.rmtree(staging, ignore_errors=True)
            return PublishResult(success=False, message=str(e), code="io_error")

        logger.info("Published release %s to %s", bundle.release_tag, dest)
        return PublishResult(
            success=True,
            message=f"Published {bundle.release_tag} with {len(bundle.files())} file(s)",
            url=dest.resolve().as_uri(),
        )


__all__ = ["NOTES_FILENAME", "SUMS_FILENAME", "DirectoryPublisher"]
