"""Thin CLI wrapper for release_matrix.

This module provides the command-line interface using Typer.
Settings are read here, once, and handed to the orchestrators as
explicit run parameters. All business logic is delegated to core modules.

Exit codes: 0 success, 1 run failure, 2 configuration error.
"""

import json
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from release_matrix import __version__
from release_matrix.config import Settings, get_settings, print_settings_json

app = typer.Typer(
    name="release-matrix",
    help="Release Matrix - build, package and publish binaries for every target",
    no_args_is_help=True,
)
console = Console()

CONFIG_ERROR_EXIT_CODE = 2


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"release-matrix version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Send log records to stderr through Rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Logging level (default from settings)"),
    ] = None,
) -> None:
    """Release Matrix - build, package and publish binaries for every target."""
    configure_logging((log_level or get_settings().log_level).upper())


def _fail_config(error: Exception) -> None:
    console.print(f"[red]Configuration error: {error}[/red]")
    raise typer.Exit(code=CONFIG_ERROR_EXIT_CODE) from None


def _emit_json(data: object) -> None:
    typer.echo(json.dumps(data, indent=2))


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        typer.echo(print_settings_json(settings))
        return

    run_timeout = (
        str(settings.run_timeout) if settings.run_timeout else "(no limit)"
    )
    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Matrix file:         {settings.matrix_file}")
    console.print(f"  Source root:         {settings.source_root}")
    console.print(f"  Output directory:    {settings.output_dir}")
    console.print()
    console.print("[bold]Build:[/bold]")
    console.print(f"  Build command:       {settings.build_command}")
    console.print(f"  Max builds:          {settings.max_concurrent_builds}")
    console.print(f"  Build timeout:       {settings.build_timeout}")
    console.print(f"  Run timeout:         {run_timeout}")
    console.print(f"  Log level:           {settings.log_level}")
    console.print()
    console.print("[bold]Triggers:[/bold]")
    console.print(f"  Excluded branches:   {', '.join(settings.excluded_branches)}")
    console.print(f"  Release tag pattern: {settings.release_tag_pattern}")
    console.print()
    console.print("[bold]Publishing:[/bold]")
    console.print(f"  GitHub repository:   {settings.github_repository or '(not set)'}")
    console.print(f"  GitHub token:        {'set' if settings.github_token else '(not set)'}")
    console.print(f"  GitHub API URL:      {settings.github_api_url}")
    console.print(f"  Make latest:         {settings.make_latest}")
    console.print(f"  Publish directory:   {settings.publish_dir or '(not set)'}")


matrix_app = typer.Typer(help="Inspect the target matrix")
app.add_typer(matrix_app, name="matrix")


MatrixOption = Annotated[
    Path | None,
    typer.Option("--matrix", "-m", help="Matrix file (default from settings)"),
]
SourceRootOption = Annotated[
    Path | None,
    typer.Option("--source-root", help="Source tree to build (default: cwd)"),
]
OutputDirOption = Annotated[
    Path | None,
    typer.Option("--output-dir", "-o", help="Output directory"),
]
BuildTimeoutOption = Annotated[
    int | None,
    typer.Option("--build-timeout", min=1, help="Per-target build timeout (seconds)"),
]
RunTimeoutOption = Annotated[
    int | None,
    typer.Option("--run-timeout", min=1, help="Global run timeout (seconds)"),
]
JobsOption = Annotated[
    int | None,
    typer.Option("--jobs", "-j", min=1, help="Targets built in parallel"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]


@matrix_app.command("show")
def matrix_show(
    matrix_file: MatrixOption = None,
    json_output: JsonOption = False,
) -> None:
    """Validate and show the target matrix."""
    from release_matrix.errors import ConfigurationError
    from release_matrix.matrix import load_matrix, matrix_to_dict

    settings = get_settings()
    try:
        matrix = load_matrix(matrix_file or settings.matrix_file)
    except ConfigurationError as e:
        _fail_config(e)

    if json_output:
        _emit_json(matrix_to_dict(matrix))
        return

    console.print(
        f"[bold]Binary:[/bold] {matrix.binary_name}  "
        f"[bold]Targets:[/bold] {len(matrix)}"
    )
    console.print()
    for target in matrix:
        fmt = target.archive_format.value if target.archive_format else "(ci only)"
        console.print(f"  [green]{target.display_name}[/green]")
        console.print(f"    Triple: {target.triple}")
        console.print(f"    Archive: {fmt}")
        if target.extra_files:
            console.print(f"    Extra files: {', '.join(target.extra_files)}")
        console.print()


def _build_step(settings: Settings, binary_name: str, output_dir: Path):
    from release_matrix.builds import CommandBuildStep

    return CommandBuildStep(
        binary_name=binary_name,
        output_dir=output_dir,
        command_template=settings.build_command,
    )


def _make_publisher(settings: Settings, publish_dir: Path | None):
    """Choose the release sink from CLI flags and settings."""
    from release_matrix.errors import ConfigurationError
    from release_matrix.publish import DirectoryPublisher, GitHubPublisher

    publish_dir = publish_dir or settings.publish_dir
    if publish_dir is not None:
        return DirectoryPublisher(publish_dir)
    if settings.github_repository and settings.github_token:
        try:
            return GitHubPublisher(
                repository=settings.github_repository,
                token=settings.github_token.get_secret_value(),
                api_url=settings.github_api_url,
                make_latest=settings.make_latest,
                timeout=settings.publish_timeout,
            )
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
    raise ConfigurationError(
        "No release sink configured: set RELMAT_PUBLISH_DIR or "
        "RELMAT_GITHUB_REPOSITORY and GITHUB_TOKEN"
    )


@app.command()
def ci(
    branch: Annotated[
        str | None,
        typer.Option(
            "--branch",
            "-b",
            envvar="GITHUB_REF_NAME",
            help="Pushed branch; runs on excluded branches are skipped",
        ),
    ] = None,
    matrix_file: MatrixOption = None,
    source_root: SourceRootOption = None,
    output_dir: OutputDirOption = None,
    build_timeout: BuildTimeoutOption = None,
    run_timeout: RunTimeoutOption = None,
    jobs: JobsOption = None,
    json_output: JsonOption = False,
) -> None:
    """Build every target without packaging or publishing."""
    from release_matrix.errors import ConfigurationError
    from release_matrix.matrix import load_matrix
    from release_matrix.orchestration import CIOrchestrator
    from release_matrix.report import render_report
    from release_matrix.triggers import should_run_ci

    settings = get_settings()

    if branch is not None and not should_run_ci(branch, settings.excluded_branches):
        if json_output:
            _emit_json({"run": "ci", "outcome": "skipped", "branch": branch})
        else:
            console.print(f"[yellow]CI skipped for excluded branch {branch}[/yellow]")
        return

    try:
        matrix = load_matrix(matrix_file or settings.matrix_file)
    except ConfigurationError as e:
        _fail_config(e)

    output_root = (output_dir or settings.output_dir) / "ci"
    orchestrator = CIOrchestrator(
        matrix=matrix,
        build_step=_build_step(settings, matrix.binary_name, output_root),
        source_root=source_root or settings.source_root,
        build_timeout=build_timeout or settings.build_timeout,
        run_timeout=run_timeout or settings.run_timeout,
        max_workers=jobs or settings.max_concurrent_builds,
    )
    report = orchestrator.run()

    if json_output:
        _emit_json(report.to_dict())
    else:
        render_report(report, console)
    raise typer.Exit(code=report.exit_code)


@app.command()
def release(
    tag: Annotated[
        str,
        typer.Argument(envvar="GITHUB_REF_NAME", help="Release tag, e.g. v1.2.3"),
    ],
    matrix_file: MatrixOption = None,
    source_root: SourceRootOption = None,
    output_dir: OutputDirOption = None,
    build_timeout: BuildTimeoutOption = None,
    run_timeout: RunTimeoutOption = None,
    jobs: JobsOption = None,
    publish_dir: Annotated[
        Path | None,
        typer.Option("--publish-dir", help="Publish into a directory instead of GitHub"),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Build and package, but do not publish"),
    ] = False,
    json_output: JsonOption = False,
) -> None:
    """Build, package and publish every target as one release."""
    from release_matrix.errors import ConfigurationError
    from release_matrix.matrix import load_matrix
    from release_matrix.orchestration import ReleaseOrchestrator
    from release_matrix.packaging import Packager
    from release_matrix.report import render_report
    from release_matrix.triggers import require_release_tag

    settings = get_settings()
    output_root = (output_dir or settings.output_dir) / "release"

    try:
        tag = require_release_tag(tag, settings.release_tag_pattern)
        matrix = load_matrix(matrix_file or settings.matrix_file)
        publisher = None if dry_run else _make_publisher(settings, publish_dir)
        orchestrator = ReleaseOrchestrator(
            matrix=matrix,
            release_tag=tag,
            build_step=_build_step(settings, matrix.binary_name, output_root),
            packager=Packager(output_root, tag, matrix.binary_name),
            publisher=publisher,
            source_root=source_root or settings.source_root,
            build_timeout=build_timeout or settings.build_timeout,
            run_timeout=run_timeout or settings.run_timeout,
            max_workers=jobs or settings.max_concurrent_builds,
            dry_run=dry_run,
        )
    except ConfigurationError as e:
        _fail_config(e)

    report = orchestrator.run()

    if json_output:
        _emit_json(report.to_dict())
    else:
        render_report(report, console)
    raise typer.Exit(code=report.exit_code)


@app.command()
def verify(
    checksum_files: Annotated[
        list[Path],
        typer.Argument(help="Checksum files (.sha256) to verify"),
    ],
) -> None:
    """Verify archives against their checksum files."""
    from release_matrix.packaging import verify_checksum_file

    failed = 0
    for path in checksum_files:
        if verify_checksum_file(path):
            console.print(f"[green]OK[/green]       {path}")
        else:
            console.print(f"[red]FAILED[/red]   {path}")
            failed += 1

    if failed:
        console.print(f"[red]{failed} of {len(checksum_files)} checksum(s) failed[/red]")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
