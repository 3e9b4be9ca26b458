"""Target matrix module.

This module handles:
- Matrix schema validation
- Loading matrix definitions from YAML/JSON
- The immutable TargetMatrix used by every run
"""

from release_matrix.matrix.io import load_matrix, matrix_to_dict, parse_matrix_data
from release_matrix.matrix.models import TargetMatrix

__all__ = ["TargetMatrix", "load_matrix", "matrix_to_dict", "parse_matrix_data"]
