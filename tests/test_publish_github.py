"""Tests for the GitHub Releases publisher."""

import json
from dataclasses import replace

import httpx
import pytest
import respx

from release_matrix.errors import PublishFailure
from release_matrix.publish import GitHubPublisher

API = "https://api.example.test"
UPLOADS = "https://uploads.example.test/repos/acme/rask/releases/7/assets"
RELEASES = f"{API}/repos/acme/rask/releases"


@pytest.fixture
def publisher() -> GitHubPublisher:
    return GitHubPublisher(repository="acme/rask", token="t0ken", api_url=API)


def _mock_draft(router=respx) -> respx.Route:
    return router.post(RELEASES).mock(
        return_value=httpx.Response(
            201,
            json={"id": 7, "upload_url": UPLOADS + "{?name,label}"},
        )
    )


class TestGitHubPublisher:
    """Tests for GitHubPublisher."""

    def test_invalid_repository(self):
        with pytest.raises(ValueError):
            GitHubPublisher(repository="rask", token="t")

    @respx.mock
    def test_generate_notes(self, publisher, release_bundle):
        route = respx.post(f"{RELEASES}/generate-notes").mock(
            return_value=httpx.Response(200, json={"name": "v1.0.0", "body": "## Changes"})
        )

        notes = publisher.generate_notes("v1.0.0", release_bundle.artifacts)

        assert notes == "## Changes"
        request = route.calls.last.request
        assert json.loads(request.content) == {"tag_name": "v1.0.0"}
        assert request.headers["Authorization"] == "Bearer t0ken"

    @respx.mock
    def test_generate_notes_http_error(self, publisher, release_bundle):
        respx.post(f"{RELEASES}/generate-notes").mock(return_value=httpx.Response(404))

        with pytest.raises(PublishFailure) as exc_info:
            publisher.generate_notes("v1.0.0", release_bundle.artifacts)
        assert exc_info.value.code == "http_error"

    @respx.mock
    def test_publish_success(self, publisher, release_bundle):
        """Draft, upload all four files, then flip draft off."""
        create = _mock_draft()
        upload = respx.post(url__startswith=UPLOADS).mock(
            return_value=httpx.Response(201, json={})
        )
        finalize = respx.patch(f"{RELEASES}/7").mock(
            return_value=httpx.Response(
                200, json={"html_url": "https://github.test/acme/rask/releases/v1.0.0"}
            )
        )

        result = publisher.publish(release_bundle)

        assert result.success is True
        assert result.url == "https://github.test/acme/rask/releases/v1.0.0"
        assert json.loads(create.calls.last.request.content)["draft"] is True
        uploaded = [call.request.url.params["name"] for call in upload.calls]
        assert uploaded == [p.name for p in release_bundle.files()]
        assert json.loads(finalize.calls.last.request.content) == {
            "draft": False,
            "make_latest": "true",
        }

    def test_upload_failure_deletes_draft(self, publisher, release_bundle):
        """A failed upload leaves no visible release behind."""
        with respx.mock(assert_all_called=False) as router:
            _mock_draft(router)
            router.post(url__startswith=UPLOADS).mock(
                side_effect=[httpx.Response(201, json={}), httpx.Response(502)]
            )
            finalize = router.patch(f"{RELEASES}/7")
            delete = router.delete(f"{RELEASES}/7").mock(
                return_value=httpx.Response(204)
            )

            result = publisher.publish(release_bundle)

        assert result.success is False
        assert result.code == "http_error"
        assert result.details["release_id"] == 7
        assert delete.call_count == 1
        assert not finalize.called

    def test_failed_finalize_deletes_draft(self, publisher, release_bundle):
        """The draft is removed when it cannot be made public."""
        with respx.mock as router:
            _mock_draft(router)
            router.post(url__startswith=UPLOADS).mock(
                return_value=httpx.Response(201, json={})
            )
            router.patch(f"{RELEASES}/7").mock(return_value=httpx.Response(422))
            delete = router.delete(f"{RELEASES}/7").mock(
                return_value=httpx.Response(204)
            )

            result = publisher.publish(release_bundle)

        assert result.success is False
        assert result.code == "http_error"
        assert delete.call_count == 1

    def test_network_error_on_create(self, publisher, release_bundle):
        with respx.mock(assert_all_called=False) as router:
            create = router.post(RELEASES).mock(side_effect=httpx.ConnectError("refused"))
            delete = router.delete(f"{RELEASES}/7")

            result = publisher.publish(release_bundle)

        assert result.success is False
        assert result.code == "network_error"
        assert create.called
        assert not delete.called

    def test_incomplete_bundle_never_contacts_api(self, publisher, release_bundle):
        release_bundle.artifacts[1].archive_path.unlink()

        with respx.mock(assert_all_called=False) as router:
            create = router.post(RELEASES).mock(
                return_value=httpx.Response(201, json={"id": 7, "upload_url": UPLOADS})
            )

            result = publisher.publish(release_bundle)

        assert result.success is False
        assert result.code == "incomplete_bundle"
        assert not create.called

    def test_empty_bundle_rejected(self, publisher, release_bundle):
        with respx.mock(assert_all_called=False) as router:
            create = router.post(RELEASES).mock(
                return_value=httpx.Response(201, json={"id": 7, "upload_url": UPLOADS})
            )

            result = publisher.publish(replace(release_bundle, artifacts=()))

        assert result.success is False
        assert result.code == "incomplete_bundle"
        assert not create.called


class TestGenerateNotesPayloads:
    """Tests for unusual generate-notes responses."""

    @respx.mock
    def test_null_body_gives_empty_notes(self, publisher, release_bundle):
        respx.post(f"{RELEASES}/generate-notes").mock(
            return_value=httpx.Response(200, json={"name": "v1.0.0", "body": None})
        )
        assert publisher.generate_notes("v1.0.0", release_bundle.artifacts) == ""

    @respx.mock
    def test_non_object_payload(self, publisher, release_bundle):
        respx.post(f"{RELEASES}/generate-notes").mock(
            return_value=httpx.Response(200, json=["not", "an", "object"])
        )
        with pytest.raises(PublishFailure) as exc_info:
            publisher.generate_notes("v1.0.0", release_bundle.artifacts)
        assert exc_info.value.code == "http_error"
