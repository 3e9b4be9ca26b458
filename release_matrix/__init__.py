"""Release Matrix - build and release orchestration for prebuilt binaries.

This package compiles a project for every target in a matrix, packages each
binary with its auxiliary files and a checksum, and publishes the full set
as a single release, all-or-nothing.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
