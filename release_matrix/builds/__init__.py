"""Build module.

This module handles:
- The BuildStep capability used by both orchestrators
- Running the external toolchain per target with timeouts and log capture
"""

from release_matrix.builds.runner import BuildStep, CommandBuildStep

__all__ = ["BuildStep", "CommandBuildStep"]
