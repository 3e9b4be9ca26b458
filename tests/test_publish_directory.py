"""Tests for the directory publisher and bundle checks."""

from dataclasses import replace

import pytest

from release_matrix.errors import PublishFailure
from release_matrix.publish import DirectoryPublisher, ensure_bundle_complete
from release_matrix.publish.directory import NOTES_FILENAME, SUMS_FILENAME


class TestEnsureBundleComplete:
    """Tests for ensure_bundle_complete."""

    def test_complete(self, release_bundle):
        ensure_bundle_complete(release_bundle)

    def test_missing_checksum_file(self, release_bundle):
        release_bundle.artifacts[0].checksum_path.unlink()
        with pytest.raises(PublishFailure, match="missing"):
            ensure_bundle_complete(release_bundle)

    def test_checksum_mismatch(self, release_bundle):
        release_bundle.artifacts[0].archive_path.write_bytes(b"corrupted")
        with pytest.raises(PublishFailure, match="Checksum"):
            ensure_bundle_complete(release_bundle)

    def test_duplicate_names(self, release_bundle):
        first = release_bundle.artifacts[0]
        with pytest.raises(PublishFailure, match="Duplicate"):
            ensure_bundle_complete(replace(release_bundle, artifacts=(first, first)))


class TestDirectoryPublisher:
    """Tests for DirectoryPublisher."""

    def test_generate_notes(self, tmp_path, release_bundle):
        notes = DirectoryPublisher(tmp_path).generate_notes(
            "v1.0.0", release_bundle.artifacts
        )

        assert notes.startswith("# v1.0.0\n")
        assert "| Linux - X86_64 | `x86_64-unknown-linux-musl` |" in notes
        assert release_bundle.artifacts[1].sha256 in notes

    def test_publish(self, tmp_path, release_bundle):
        root = tmp_path / "releases"
        result = DirectoryPublisher(root).publish(release_bundle)

        assert result.success is True
        dest = root / "v1.0.0"
        assert result.url == dest.resolve().as_uri()
        assert sorted(p.name for p in dest.iterdir()) == sorted(
            [p.name for p in release_bundle.files()] + [NOTES_FILENAME, SUMS_FILENAME]
        )
        assert (dest / NOTES_FILENAME).read_text() == "notes"
        sums = (dest / SUMS_FILENAME).read_text().splitlines()
        assert sums == [
            f"{a.sha256}  {a.archive_path.name}" for a in release_bundle.artifacts
        ]
        assert not (root / ".v1.0.0.partial").exists()

    def test_existing_release_untouched(self, tmp_path, release_bundle):
        dest = tmp_path / "v1.0.0"
        dest.mkdir()
        (dest / "keep").write_text("x")

        result = DirectoryPublisher(tmp_path).publish(release_bundle)

        assert result.success is False
        assert result.code == "release_exists"
        assert [p.name for p in dest.iterdir()] == ["keep"]

    def test_incomplete_bundle_publishes_nothing(self, tmp_path, release_bundle):
        root = tmp_path / "releases"
        release_bundle.artifacts[1].archive_path.unlink()

        result = DirectoryPublisher(root).publish(release_bundle)

        assert result.success is False
        assert result.code == "incomplete_bundle"
        assert not root.exists()
