"""Run trigger conditions.

A CI run triggers on a push to any branch that is not excluded; a release
run triggers on a tag matching the version glob (``v*.*.*`` by default).
"""

from __future__ import annotations

from collections.abc import Iterable
from fnmatch import fnmatchcase

from release_matrix.errors import ConfigurationError

DEFAULT_EXCLUDED_BRANCHES = ("release",)
DEFAULT_TAG_PATTERN = "v*.*.*"


def normalize_ref(ref: str, prefix: str) -> str:
    """Strip a fully-qualified ref prefix, e.g. ``refs/tags/``."""
    return ref[len(prefix) :] if ref.startswith(prefix) else ref


def should_run_ci(
    branch: str,
    excluded_branches: Iterable[str] = DEFAULT_EXCLUDED_BRANCHES,
) -> bool:
    """Whether a push to ``branch`` triggers a CI run.

    Excluded entries are glob patterns.
    """
    branch = normalize_ref(branch, "refs/heads/")
    return not any(fnmatchcase(branch, pattern) for pattern in excluded_branches)


def is_release_tag(tag: str, pattern: str = DEFAULT_TAG_PATTERN) -> bool:
    """Whether ``tag`` triggers a release run."""
    return fnmatchcase(normalize_ref(tag, "refs/tags/"), pattern)


def require_release_tag(tag: str, pattern: str = DEFAULT_TAG_PATTERN) -> str:
    """Validate a release tag and return it without any ref prefix.

    Raises:
        ConfigurationError: If the tag does not match the pattern.
    """
    if not is_release_tag(tag, pattern):
        raise ConfigurationError(
            f"Tag '{tag}' does not match release tag pattern '{pattern}'"
        )
    return normalize_ref(tag, "refs/tags/")


__all__ = [
    "DEFAULT_EXCLUDED_BRANCHES",
    "DEFAULT_TAG_PATTERN",
    "is_release_tag",
    "normalize_ref",
    "require_release_tag",
    "should_run_ci",
]
