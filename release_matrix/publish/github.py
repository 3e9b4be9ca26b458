"""GitHub Releases publisher.

This module handles:
- Generating release notes through the GitHub API
- Creating the release as a draft
- Uploading every archive and checksum file as release assets
- Publishing the draft only after every upload succeeded

A failure at any step deletes the draft, so the release either appears
with its complete artifact set or not at all.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from release_matrix.errors import PublishFailure
from release_matrix.publish.base import ensure_bundle_complete
from release_matrix.types import PackagedArtifact, PublishResult, ReleaseBundle

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"

# Timeout for API requests and uploads (seconds)
REQUEST_TIMEOUT = 300


class GitHubPublisher:
    """Publishes release bundles to GitHub Releases."""

    def __init__(
        self,
        repository: str,
        token: str,
        api_url: str = GITHUB_API_URL,
        make_latest: bool = True,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        """Initialize GitHubPublisher.

        Args:
            repository: Repository as "owner/name".
            token: Token with permission to create releases.
            api_url: REST API base URL.
            make_latest: Mark the release as the latest release.
            timeout: Per-request timeout in seconds.
        """
        if repository.count("/") != 1:
            raise ValueError(f"repository must be 'owner/name', got '{repository}'")
        self.repository = repository
        self.api_url = api_url.rstrip("/")
        self.make_latest = make_latest
        self.timeout = timeout
        self._headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {token}",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.api_url, headers=self._headers, timeout=self.timeout
        )

    def _request(
        self,
        client: httpx.Client,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request, converting transport and HTTP errors.

        Raises:
            PublishFailure: If the request fails or returns an error status.
        """
        try:
            response = client.request(method, url, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            raise PublishFailure(
                f"HTTP error on {method} {url}: "
                f"{e.response.status_code} {e.response.reason_phrase}",
                code="http_error",
            ) from e
        except httpx.TimeoutException as e:
            raise PublishFailure(f"Timeout on {method} {url}", code="timeout") from e
        except httpx.RequestError as e:
            raise PublishFailure(
                f"Network error on {method} {url}: {e}", code="network_error"
            ) from e

    def generate_notes(self, tag: str, artifacts: Sequence[PackagedArtifact]) -> str:
        """Ask GitHub to generate release notes for a tag.

        Args:
            tag: Release tag.
            artifacts: Packaged artifacts (GitHub derives notes from history).

        Returns:
            Markdown release notes.

        Raises:
            PublishFailure: If GitHub cannot generate notes.
        """
        with self._client() as client:
            response = self._request(
                client,
                "POST",
                f"/repos/{self.repository}/releases/generate-notes",
                json={"tag_name": tag},
            )
        try:
            body = response.json().get("body") or ""
        except (AttributeError, ValueError) as e:
            raise PublishFailure(
                f"Malformed release notes response: {e}", code="http_error"
            ) from e
        logger.info("Generated release notes for %s (%d chars)", tag, len(body))
        return body

    def publish(self, bundle: ReleaseBundle) -> PublishResult:
        """Publish a bundle as a GitHub release.

        Args:
            bundle: Complete release bundle.

        Returns:
            PublishResult; failures are reported, never raised.
        """
        try:
            ensure_bundle_complete(bundle)
        except PublishFailure as e:
            logger.error("Refusing to publish %s: %s", bundle.release_tag, e)
            return PublishResult(success=False, message=e.reason, code=e.code)

        with self._client() as client:
            release_id: int | None = None
            try:
                release = self._request(
                    client,
                    "POST",
                    f"/repos/{self.repository}/releases",
                    json={
                        "tag_name": bundle.release_tag,
                        "name": bundle.release_tag,
                        "body": bundle.notes,
                        "draft": True,
                    },
                ).json()
                release_id = release["id"]
                logger.info(
                    "Created draft release %s (id=%s)", bundle.release_tag, release_id
                )

                # upload_url is a URI template: https://uploads.github.com/...{?name,label}
                upload_url = release["upload_url"].split("{", 1)[0]
                for path in bundle.files():
                    logger.info("Uploading %s", path.name)
                    self._request(
                        client,
                        "POST",
                        upload_url,
                        params={"name": path.name},
                        content=path.read_bytes(),
                        headers={"Content-Type": "application/octet-stream"},
                    )

                final = self._request(
                    client,
                    "PATCH",
                    f"/repos/{self.repository}/releases/{release_id}",
                    json={
                        "draft": False,
                        "make_latest": "true" if self.make_latest else "false",
                    },
                ).json()
            except (PublishFailure, OSError, KeyError, ValueError) as e:
                reason = e.reason if isinstance(e, PublishFailure) else str(e)
                code = e.code if isinstance(e, PublishFailure) else "publish_failed"
                logger.error("Publishing %s failed: %s", bundle.release_tag, reason)
                if release_id is not None:
                    self._delete_draft(client, release_id)
                return PublishResult(
                    success=False,
                    message=reason,
                    code=code,
                    details={"release_id": release_id},
                )

        url = final.get("html_url")
        logger.info("Published release %s: %s", bundle.release_tag, url)
        return PublishResult(
            success=True,
            message=f"Published {bundle.release_tag} with {len(bundle.files())} file(s)",
            url=url,
            details={"release_id": release_id},
        )

    def _delete_draft(self, client: httpx.Client, release_id: int) -> None:
        """Remove a draft left behind by a failed publish."""
        try:
            self._request(
                client, "DELETE", f"/repos/{self.repository}/releases/{release_id}"
            )
            logger.info("Deleted draft release %s", release_id)
        except PublishFailure as e:
            logger.warning(
                "Could not delete draft release %s, remove it manually: %s",
                release_id,
                e,
            )


__all__ = ["GITHUB_API_URL", "GitHubPublisher"]
