"""Pydantic models for target matrix validation.

This module defines the Pydantic models for validating a matrix
definition loaded from YAML/JSON before it becomes an immutable
TargetMatrix.
"""

import re
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from release_matrix.types import ArchiveFormat, TargetSpec

# arch-vendor-os[-env], e.g. x86_64-unknown-linux-musl, aarch64-apple-darwin
TRIPLE_PATTERN = re.compile(r"^[a-z0-9_]+(-[a-z0-9_.]+){1,3}$")
BINARY_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.\-]+$")


def _validate_file_list(v: list[str] | None) -> list[str] | None:
    if v is None:
        return v
    for item in v:
        if not item or not item.strip():
            raise ValueError("extra_files entries must be non-empty strings")
    if len(set(v)) != len(v):
        raise ValueError("extra_files entries must be unique")
    return v


class TargetSpecSchema(BaseModel):
    """Schema for one matrix entry.

    Attributes:
        display_name: Human label, e.g. "Windows - X86_64".
        triple: Toolchain target triple.
        archive_format: Archive format (required for release runs).
        extra_files: Overrides the matrix-level extra files for this target.
    """

    model_config = ConfigDict(extra="forbid")

    display_name: Annotated[
        str, Field(description="Human-readable label", min_length=1, max_length=255)
    ]
    triple: Annotated[
        str, Field(description="Toolchain target triple", min_length=1, max_length=255)
    ]
    archive_format: ArchiveFormat | None = Field(
        default=None, description="Archive format (zip or tar.gz)"
    )
    extra_files: list[str] | None = Field(
        default=None, description="Extra files packaged with this target"
    )

    @field_validator("triple")
    @classmethod
    def validate_triple(cls, v: str) -> str:
        """Validate triple matches arch-vendor-os[-env]."""
        if not TRIPLE_PATTERN.match(v):
            raise ValueError(
                f"triple must match pattern {TRIPLE_PATTERN.pattern}, got '{v}'"
            )
        return v

    @field_validator("extra_files")
    @classmethod
    def validate_extra_files(cls, v: list[str] | None) -> list[str] | None:
        """Validate extra file entries."""
        return _validate_file_list(v)


class MatrixSchema(BaseModel):
    """Complete matrix definition.

    Attributes:
        binary_name: Name of the binary the toolchain produces.
        extra_files: Default extra files packaged with every target.
        targets: Ordered list of targets.
    """

    model_config = ConfigDict(extra="forbid")

    binary_name: Annotated[
        str, Field(description="Binary produced by the build", min_length=1)
    ]
    extra_files: list[str] = Field(
        default_factory=list, description="Extra files packaged with every target"
    )
    targets: list[TargetSpecSchema] = Field(min_length=1)

    @field_validator("binary_name")
    @classmethod
    def validate_binary_name(cls, v: str) -> str:
        """Validate binary_name is a plain file name."""
        if not BINARY_NAME_PATTERN.match(v):
            raise ValueError(
                f"binary_name must match pattern {BINARY_NAME_PATTERN.pattern}, "
                f"got '{v}'"
            )
        return v

    @field_validator("extra_files")
    @classmethod
    def validate_extra_files(cls, v: list[str]) -> list[str]:
        """Validate extra file entries."""
        _validate_file_list(v)
        return v

    @model_validator(mode="after")
    def validate_unique_targets(self) -> "MatrixSchema":
        """Triples must be unique; display names must map to unique slugs."""
        seen_triples: set[str] = set()
        seen_slugs: set[str] = set()
        for target in self.targets:
            if target.triple in seen_triples:
                raise ValueError(f"duplicate triple '{target.triple}'")
            seen_triples.add(target.triple)

            slug = TargetSpec(target.display_name, target.triple).slug
            if not slug:
                raise ValueError(
                    f"display_name '{target.display_name}' has no usable characters"
                )
            if slug in seen_slugs:
                raise ValueError(
                    f"display_name '{target.display_name}' collides with another target"
                )
            seen_slugs.add(slug)
        return self

    def to_target_specs(self) -> tuple[TargetSpec, ...]:
        """Resolve schema entries into immutable TargetSpecs."""
        specs: list[TargetSpec] = []
        for target in self.targets:
            files = (
                target.extra_files
                if target.extra_files is not None
                else self.extra_files
            )
            specs.append(
                TargetSpec(
                    display_name=target.display_name,
                    triple=target.triple,
                    archive_format=target.archive_format,
                    extra_files=tuple(files),
                )
            )
        return tuple(specs)


__all__ = [
    "BINARY_NAME_PATTERN",
    "TRIPLE_PATTERN",
    "MatrixSchema",
    "TargetSpecSchema",
]
