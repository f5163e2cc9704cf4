"""
Shared fixtures: an in-memory GitHub Contents API served through
httpx.MockTransport, so the real client code runs against it with no network.
"""

import base64
import hashlib
import json
from collections import defaultdict, deque

import httpx
import pytest

from cid_submissions.config import Settings
from cid_submissions.services.github_contents import RAW_MEDIA_TYPE, GitHubContentsClient
from cid_submissions.services.ingestor import SubmissionIngestor

OWNER = "test-owner"
REPO = "test-repo"
CONTENTS_PREFIX = f"/repos/{OWNER}/{REPO}/contents/"


def _blob_sha(content: bytes) -> str:
    return hashlib.sha1(b"blob %d\0" % len(content) + content).hexdigest()


def _wrap_base64(content: bytes) -> str:
    """Encode the way GitHub does: base64 wrapped at 60 columns."""
    encoded = base64.b64encode(content).decode()
    return "\n".join(encoded[i:i + 60] for i in range(0, len(encoded), 60)) + "\n"


class FakeGitHubRepo:
    """
    Minimal stand-in for one repository's contents endpoint.

    files      path -> bytes currently stored
    requests   every request seen, as (method, path, json_body_or_None)
    raw_paths  the URL path of every request exactly as sent (still encoded)

    A GET with the raw media type answers with the bare file bytes, as
    GitHub does.

    intercept(method, path, action) queues a one-shot action for the next
    matching request. ``action`` may be an httpx.Response (returned as-is),
    an exception (raised), or a callable taking the repo (run, then the
    request is served normally).
    """

    def __init__(self):
        self.files = {}
        self.requests = []
        self.raw_paths = []
        self._intercepts = defaultdict(deque)

    # -- test helpers ------------------------------------------------------

    def seed(self, path: str, content: str) -> None:
        self.files[path] = content.encode("utf-8")

    def text(self, path: str) -> str:
        return self.files[path].decode("utf-8")

    def sha(self, path: str) -> str:
        return _blob_sha(self.files[path])

    def intercept(self, method: str, path: str, action) -> None:
        self._intercepts[(method, path)].append(action)

    def calls(self, method: str = None, path: str = None) -> list:
        return [
            r for r in self.requests
            if (method is None or r[0] == method) and (path is None or r[1] == path)
        ]

    # -- transport ---------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        assert request.url.path.startswith(CONTENTS_PREFIX), request.url.path
        path = request.url.path[len(CONTENTS_PREFIX):]
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, path, body))
        self.raw_paths.append(request.url.raw_path.decode("ascii"))

        queue = self._intercepts[(request.method, path)]
        if queue:
            action = queue.popleft()
            if isinstance(action, httpx.Response):
                return action
            if isinstance(action, Exception):
                raise action
            action(self)

        if request.method == "GET":
            if request.headers.get("Accept") == RAW_MEDIA_TYPE:
                return self._get_raw(path)
            return self._get(path)
        if request.method == "PUT":
            return self._put(path, body)
        return httpx.Response(405, json={"message": "Method Not Allowed"})

    def _get(self, path: str) -> httpx.Response:
        if path not in self.files:
            return httpx.Response(404, json={"message": "Not Found"})
        content = self.files[path]
        return httpx.Response(
            200,
            json={
                "name": path.rsplit("/", 1)[-1],
                "path": path,
                "sha": _blob_sha(content),
                "encoding": "base64",
                "content": _wrap_base64(content),
            },
        )

    def _get_raw(self, path: str) -> httpx.Response:
        if path not in self.files:
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(200, content=self.files[path])

    def large_file_metadata(self, path: str) -> httpx.Response:
        """What GitHub returns for files over 1 MB: a sha but no content."""
        return httpx.Response(
            200,
            json={"path": path, "sha": self.sha(path), "encoding": "none", "content": ""},
        )

    def _put(self, path: str, body: dict) -> httpx.Response:
        sha = body.get("sha")
        if path in self.files:
            if not sha:
                return httpx.Response(
                    422, json={"message": 'Invalid request.\n\n"sha" wasn\'t supplied.'}
                )
            if sha != _blob_sha(self.files[path]):
                return httpx.Response(
                    409,
                    json={"message": f"{path} does not match {sha}"},
                )
            status = 200
        else:
            status = 201

        self.files[path] = base64.b64decode(body["content"])
        return httpx.Response(
            status,
            json={"content": {"path": path, "sha": _blob_sha(self.files[path])}},
        )


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        github_token="test-token",
        github_repo=REPO,
        github_repo_owner=OWNER,
    )


@pytest.fixture()
def fake_repo() -> FakeGitHubRepo:
    return FakeGitHubRepo()


@pytest.fixture()
def client_factory(fake_repo):
    """ClientFactory that routes the real GitHubContentsClient to fake_repo."""
    def factory(s: Settings) -> GitHubContentsClient:
        return GitHubContentsClient.from_settings(
            s, transport=httpx.MockTransport(fake_repo.handler)
        )
    return factory


@pytest.fixture()
def ingestor(settings, client_factory) -> SubmissionIngestor:
    return SubmissionIngestor(settings, client_factory=client_factory)
