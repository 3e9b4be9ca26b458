"""Publishing module.

This module handles:
- The Publisher capability used by the release orchestrator
- Fail-closed completeness checks on release bundles
- Publishing to GitHub Releases or to a local directory
"""

from release_matrix.publish.base import Publisher, ensure_bundle_complete
from release_matrix.publish.directory import DirectoryPublisher
from release_matrix.publish.github import GitHubPublisher

__all__ = [
    "DirectoryPublisher",
    "GitHubPublisher",
    "Publisher",
    "ensure_bundle_complete",
]
