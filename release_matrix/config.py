"""Configuration settings for release_matrix.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.

Settings are read once at the CLI boundary; orchestrators receive every
value they need as explicit constructor parameters.
"""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BUILD_COMMAND = "cargo build --release --target {triple}"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the RELMAT_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="RELMAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Paths
    matrix_file: Path = Field(
        default=Path("release-matrix.yaml"),
        description="Target matrix definition (YAML or JSON)",
    )
    source_root: Path = Field(
        default_factory=Path.cwd,
        description="Checked-out source tree to build",
    )
    output_dir: Path = Field(
        default=Path("target") / "release-matrix",
        description="Root directory for build outputs and release archives",
    )

    # Toolchain
    build_command: str = Field(
        default=DEFAULT_BUILD_COMMAND,
        description="Build command template; {triple} is substituted per target",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Concurrency
    max_concurrent_builds: int = Field(
        default=2,
        ge=1,
        le=32,
        description="Maximum targets built in parallel",
    )

    # Timeouts (in seconds)
    build_timeout: int = Field(
        default=600,
        ge=1,
        description="Hard wall-clock timeout for a single target build",
    )
    run_timeout: int | None = Field(
        default=None,
        ge=1,
        description="Global timeout for a whole run (None = no limit)",
    )

    # Triggers
    excluded_branches: list[str] = Field(
        default_factory=lambda: ["release"],
        description="Branches on which CI runs are skipped",
    )
    release_tag_pattern: str = Field(
        default="v*.*.*",
        description="Glob pattern a tag must match to trigger a release",
    )

    # Publishing
    github_repository: str | None = Field(
        default=None,
        description="owner/name of the GitHub repository to publish to",
    )
    github_token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("RELMAT_GITHUB_TOKEN", "GITHUB_TOKEN"),
        description="Token used to create releases",
    )
    github_api_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL",
    )
    make_latest: bool = Field(
        default=True,
        description="Mark published releases as the latest release",
    )
    publish_dir: Path | None = Field(
        default=None,
        description="Publish into this directory instead of GitHub",
    )
    publish_timeout: int = Field(
        default=300,
        ge=1,
        description="Timeout for each request to the release sink",
    )


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Secrets are masked by pydantic's SecretStr serialization.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["DEFAULT_BUILD_COMMAND", "Settings", "get_settings", "print_settings_json"]
