"""Matrix loading and export.

This module provides helpers for loading a target matrix from YAML/JSON
files and rendering it back to plain data.
"""

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from release_matrix.errors import ConfigurationError
from release_matrix.matrix.models import TargetMatrix
from release_matrix.matrix.schema import MatrixSchema

logger = logging.getLogger(__name__)


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content as a dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If the content is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def load_json(path: Path) -> dict[str, Any]:
    """Load a JSON file and return its contents as a dict.

    Args:
        path: Path to the JSON file.

    Returns:
        Parsed JSON content as a dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        ValueError: If the content is not an object.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def parse_matrix_data(data: dict[str, Any]) -> TargetMatrix:
    """Validate matrix data and build an immutable TargetMatrix.

    Args:
        data: Dictionary containing the matrix definition.

    Returns:
        TargetMatrix instance.

    Raises:
        ConfigurationError: If data does not match the schema.
    """
    try:
        schema = MatrixSchema.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid target matrix: {e}") from e
    return TargetMatrix(binary_name=schema.binary_name, entries=schema.to_target_specs())


def load_matrix(path: Path) -> TargetMatrix:
    """Load and validate a target matrix file.

    The format is chosen by extension: .json is parsed as JSON, anything
    else as YAML.

    Args:
        path: Path to the matrix file.

    Returns:
        TargetMatrix instance.

    Raises:
        ConfigurationError: If the file is missing, unparsable, or invalid.
    """
    try:
        if path.suffix.lower() == ".json":
            data = load_json(path)
        else:
            data = load_yaml(path)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Matrix file not found: {path}") from e
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read matrix file {path}: {e}") from e

    matrix = parse_matrix_data(data)
    logger.info(
        "Loaded %d target(s) from %s: %s",
        len(matrix),
        path,
        ", ".join(t.triple for t in matrix),
    )
    return matrix


def matrix_to_dict(matrix: TargetMatrix) -> dict[str, Any]:
    """Render a matrix as plain data suitable for JSON/YAML output.

    Args:
        matrix: TargetMatrix instance.

    Returns:
        Dictionary in the matrix file format, with extra files resolved
        per target.
    """
    return {
        "binary_name": matrix.binary_name,
        "targets": [
            {
                "display_name": t.display_name,
                "triple": t.triple,
                "archive_format": t.archive_format.value if t.archive_format else None,
                "extra_files": list(t.extra_files),
            }
            for t in matrix
        ],
    }


__all__ = [
    "load_json",
    "load_matrix",
    "load_yaml",
    "matrix_to_dict",
    "parse_matrix_data",
]
