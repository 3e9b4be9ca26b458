"""Tests for the release orchestrator."""

import tarfile
import zipfile

import pytest

from release_matrix.errors import ConfigurationError, PublishFailure
from release_matrix.matrix.models import TargetMatrix
from release_matrix.orchestration import ReleaseOrchestrator
from release_matrix.packaging import Packager
from release_matrix.types import ReleaseOutcome, TargetSpec, TargetState


@pytest.fixture
def make_orchestrator(two_target_matrix, source_root, output_dir):
    """Factory building a ReleaseOrchestrator for tag v1.0.0."""

    def factory(build_step, publisher, **kwargs) -> ReleaseOrchestrator:
        options = {
            "matrix": two_target_matrix,
            "release_tag": "v1.0.0",
            "build_step": build_step,
            "packager": Packager(output_dir, "v1.0.0", "rask"),
            "publisher": publisher,
            "source_root": source_root,
            "build_timeout": 30,
        }
        options.update(kwargs)
        return ReleaseOrchestrator(**options)

    return factory


class TestReleaseSuccess:
    """Every target packaged, bundle published once."""

    def test_publishes_complete_bundle(
        self, make_orchestrator, make_build_step, make_publisher, output_dir
    ):
        publisher = make_publisher()
        report = make_orchestrator(make_build_step(), publisher).run()

        assert report.outcome is ReleaseOutcome.PUBLISHED
        assert report.exit_code == 0
        assert len(publisher.bundles) == 1
        bundle = publisher.bundles[0]
        assert bundle.release_tag == "v1.0.0"
        assert bundle.notes == "notes"
        assert publisher.notes_calls == ["v1.0.0"]
        assert {a.archive_path.name for a in bundle.artifacts} == {
            "rask_v1.0.0_linux-x86_64.tar.gz",
            "rask_v1.0.0_windows-x86_64.zip",
        }
        assert all(f.is_file() for f in bundle.files())
        assert all(f.parent == output_dir / "dist" for f in bundle.files())

    def test_archives_contain_binary_and_extras(
        self, make_orchestrator, make_build_step, make_publisher
    ):
        publisher = make_publisher()
        make_orchestrator(make_build_step(), publisher).run()

        by_triple = {a.target.triple: a for a in publisher.bundles[0].artifacts}
        with tarfile.open(by_triple["x86_64-unknown-linux-musl"].archive_path) as tar:
            assert tar.getnames() == ["rask", "LICENSE", "readme.md"]
        with zipfile.ZipFile(by_triple["x86_64-pc-windows-gnu"].archive_path) as zf:
            assert zf.namelist() == ["rask.exe", "LICENSE", "readme.md"]

    def test_all_targets_packaged(self, make_orchestrator, make_build_step, make_publisher):
        report = make_orchestrator(make_build_step(), make_publisher()).run()
        assert [t.state for t in report.targets] == [TargetState.PACKAGED] * 2
        assert report.failed_targets() == []


class TestReleaseAborted:
    """Any failed target means nothing is published."""

    def test_build_timeout_aborts(
        self, make_orchestrator, make_build_step, make_publisher, linux, windows
    ):
        """Windows times out; Linux artifacts stay on disk, publisher untouched."""
        publisher = make_publisher()
        build_step = make_build_step(hang={windows.triple})

        report = make_orchestrator(build_step, publisher, build_timeout=0.2).run()

        assert report.outcome is ReleaseOutcome.RELEASE_ABORTED
        assert report.exit_code == 1
        assert publisher.bundles == []
        assert publisher.notes_calls == []
        states = {t.target.triple: t for t in report.targets}
        assert states[windows.triple].state is TargetState.BUILD_FAILED
        assert states[windows.triple].error_code == "timeout"
        assert states[linux.triple].state is TargetState.PACKAGED
        assert states[linux.triple].artifact.archive_path.is_file()

    def test_build_failure_aborts(
        self, make_orchestrator, make_build_step, make_publisher, linux
    ):
        publisher = make_publisher()
        build_step = make_build_step(fail={linux.triple: "error: linker `cc` not found"})

        report = make_orchestrator(build_step, publisher).run()

        assert report.outcome is ReleaseOutcome.RELEASE_ABORTED
        failed = report.failed_targets()
        assert [t.target.triple for t in failed] == [linux.triple]
        assert failed[0].detail == "error: linker `cc` not found"
        assert publisher.bundles == []

    def test_missing_extra_file_aborts(
        self, make_orchestrator, make_build_step, make_publisher, source_root
    ):
        (source_root / "LICENSE").unlink()
        publisher = make_publisher()

        report = make_orchestrator(make_build_step(), publisher).run()

        assert report.outcome is ReleaseOutcome.RELEASE_ABORTED
        for status in report.targets:
            assert status.state is TargetState.PACKAGE_FAILED
            assert status.error_code == "missing-file"
            assert "LICENSE" in status.detail
        assert publisher.bundles == []

    def test_run_timeout_cancels_in_flight_builds(
        self, make_orchestrator, make_build_step, make_publisher, linux, windows
    ):
        publisher = make_publisher()
        build_step = make_build_step(hang={windows.triple})

        report = make_orchestrator(build_step, publisher, run_timeout=0.5).run()

        assert report.outcome is ReleaseOutcome.RELEASE_ABORTED
        assert report.timed_out is True
        states = {t.target.triple: t.state for t in report.targets}
        assert states[windows.triple] is TargetState.CANCELLED
        assert states[linux.triple] is TargetState.PACKAGED
        assert publisher.bundles == []

    def test_run_timeout_cancels_queued_targets(
        self, make_orchestrator, make_build_step, make_publisher, linux, windows
    ):
        """Targets still queued when the run times out never build."""
        build_step = make_build_step(hang={linux.triple})

        report = make_orchestrator(
            build_step, make_publisher(), run_timeout=0.5, max_workers=1
        ).run()

        assert report.outcome is ReleaseOutcome.RELEASE_ABORTED
        assert [t.state for t in report.targets] == [TargetState.CANCELLED] * 2
        assert windows.triple not in build_step.calls


class TestPublishFailure:
    """Publisher rejection keeps local artifacts."""

    def test_publish_failed(self, make_orchestrator, make_build_step, make_publisher):
        publisher = make_publisher(succeed=False)

        report = make_orchestrator(make_build_step(), publisher).run()

        assert report.outcome is ReleaseOutcome.PUBLISH_FAILED
        assert report.exit_code == 1
        assert report.publish_result.code == "network_error"
        assert len(publisher.bundles) == 1
        assert all(f.is_file() for f in report.bundle.files())

    def test_notes_failure_is_publish_failure(
        self, make_orchestrator, make_build_step, make_publisher
    ):
        publisher = make_publisher()

        def broken_notes(tag, artifacts):
            raise PublishFailure("notes service down", code="http_error")

        publisher.generate_notes = broken_notes

        report = make_orchestrator(make_build_step(), publisher).run()

        assert report.outcome is ReleaseOutcome.PUBLISH_FAILED
        assert report.publish_result.message == "notes service down"
        assert publisher.bundles == []

    def test_unexpected_publisher_error_is_publish_failure(
        self, make_orchestrator, make_build_step, make_publisher
    ):
        """A sink raising something other than PublishFailure still yields a report."""
        publisher = make_publisher()

        def broken_publish(bundle):
            publisher.bundles.append(bundle)
            raise OSError("connection reset")

        publisher.publish = broken_publish

        report = make_orchestrator(make_build_step(), publisher).run()

        assert report.outcome is ReleaseOutcome.PUBLISH_FAILED
        assert report.exit_code == 1
        assert report.publish_result.code == "publish_failed"
        assert report.publish_result.message == "OSError: connection reset"
        assert [t.state for t in report.targets] == [TargetState.PACKAGED] * 2
        assert all(f.is_file() for f in report.bundle.files())


class TestDryRun:
    """Dry runs package but never publish."""

    def test_dry_run(self, make_orchestrator, make_build_step):
        report = make_orchestrator(make_build_step(), None, dry_run=True).run()

        assert report.outcome is ReleaseOutcome.PACKAGED
        assert report.exit_code == 0
        assert report.publish_result is None
        assert len(report.bundle.artifacts) == 2


class TestConfiguration:
    """Invalid configuration is rejected before any build starts."""

    def test_publisher_required(self, make_orchestrator, make_build_step):
        build_step = make_build_step()
        with pytest.raises(ConfigurationError):
            make_orchestrator(build_step, None)
        assert build_step.calls == []

    def test_archive_format_required(self, make_orchestrator, make_build_step, make_publisher):
        matrix = TargetMatrix(
            binary_name="rask",
            entries=(TargetSpec("Linux", "x86_64-unknown-linux-musl"),),
        )
        build_step = make_build_step()
        with pytest.raises(ConfigurationError):
            make_orchestrator(build_step, make_publisher(), matrix=matrix)
        assert build_step.calls == []
