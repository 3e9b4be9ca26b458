"""Run orchestration module.

This module handles:
- Parallel per-target pipelines with a single join barrier
- CI runs (build only)
- All-or-nothing release runs (build, package, publish)
"""

from release_matrix.orchestration.ci import CIOrchestrator
from release_matrix.orchestration.release import ReleaseOrchestrator

__all__ = ["CIOrchestrator", "ReleaseOrchestrator"]
