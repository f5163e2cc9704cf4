"""
GitHub Contents API client for the submissions repository.

Only the two calls the submission pipeline needs are implemented:

  GET /repos/{owner}/{repo}/contents/{path}   -> get_file()
  PUT /repos/{owner}/{repo}/contents/{path}   -> put_file()

Content travels base64-encoded in both directions. GitHub wraps the encoded
content of GET responses at 60 columns, so decoding ignores newlines. Files
over 1 MB come back with "encoding": "none" and no content; those are read a
second time with the raw media type.

Paths are percent-encoded as a single URL segment, so a "?" or "#" in a
filename stays part of the filename.

Errors
------
get_file() never raises for HTTP or transport failures; it returns a
FileLookup (Found / NotFound / TransientError) instead.

put_file() raises:
  GitHubConflictError    409, or 422 complaining about the sha (stale or
                         missing revision token)
  GitHubAPIError         any other non-2xx response; .message is GitHub's
                         own "message" field
  GitHubConnectionError  GitHub could not be reached at all
"""

import base64
import binascii
import logging
from typing import Optional
from urllib.parse import quote

import httpx

from cid_submissions.config import Settings
from cid_submissions.models.repository import (
    FileLookup,
    Found,
    NotFound,
    RepositoryFile,
    TransientError,
)

logger = logging.getLogger(__name__)

RAW_MEDIA_TYPE = "application/vnd.github.raw"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class GitHubError(Exception):
    """Base class for failures talking to GitHub."""


class GitHubAPIError(GitHubError):
    """GitHub was reached but answered with an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class GitHubConflictError(GitHubAPIError):
    """The sha sent with a write no longer matches the file on GitHub."""


class GitHubConnectionError(GitHubError):
    """GitHub could not be reached (DNS, connect, timeout, ...)."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def encode_content(content: bytes) -> str:
    return base64.b64encode(content).decode("ascii")


def decode_content(encoded: str) -> bytes:
    """Decode GitHub's line-wrapped base64 content."""
    return base64.b64decode("".join(encoded.split()))


def _error_message(response: httpx.Response) -> str:
    """Return GitHub's "message" field, falling back to the raw body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.text or f"HTTP {response.status_code}"


def _quote_path(path: str) -> str:
    return quote(path, safe="")


def _is_conflict(status_code: int, message: str) -> bool:
    if status_code == 409:
        return True
    # "Invalid request.\n\n\"sha\" wasn't supplied." and friends
    return status_code == 422 and "sha" in message.lower()


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class GitHubContentsClient:
    """
    Thin wrapper around httpx.Client scoped to one repository's contents.

    Use as a context manager so the connection pool is released at the end of
    the request:

        with GitHubContentsClient.from_settings(settings) as client:
            lookup = client.get_file("index.html")
    """

    def __init__(self, http_client: httpx.Client):
        self._http = http_client

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "GitHubContentsClient":
        """
        Build a client for the repository named in settings.

        ``transport`` is passed straight to httpx; tests use it to plug in an
        httpx.MockTransport.
        """
        base_url = (
            f"{settings.github_api_url}/repos/"
            f"{settings.github_repo_owner}/{settings.github_repo}/contents/"
        )
        http_client = httpx.Client(
            base_url=base_url,
            headers={
                "Authorization": f"token {settings.github_token}",
                "Accept": "application/vnd.github+json",
            },
            timeout=settings.request_timeout,
            transport=transport,
        )
        return cls(http_client)

    def __enter__(self) -> "GitHubContentsClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def get_file(self, path: str) -> FileLookup:
        """
        Look up a file in the repository.

        Returns:
            Found with the decoded file on 200, NotFound on 404, and
            TransientError for every other outcome including transport errors.
        """
        try:
            response = self._http.get(_quote_path(path))
        except httpx.HTTPError as exc:
            logger.warning(f"GET {path} failed before a response arrived: {exc}")
            return TransientError(reason=str(exc) or exc.__class__.__name__)

        if response.status_code == 404:
            return NotFound()

        if response.status_code != 200:
            message = _error_message(response)
            logger.warning(f"GET {path} returned HTTP {response.status_code}: {message}")
            return TransientError(reason=message, status_code=response.status_code)

        try:
            data = response.json()
            sha = data.get("sha")
            encoding = data.get("encoding")
            if encoding == "base64":
                content = decode_content(data.get("content") or "")
        except (ValueError, binascii.Error, AttributeError) as exc:
            logger.warning(f"GET {path} returned an unreadable body: {exc}")
            return TransientError(reason=f"Unreadable response body: {exc}")

        if encoding != "base64":
            logger.info(f"GET {path} returned encoding {encoding!r}; fetching raw content")
            return self._get_raw(path, sha)

        return Found(file=RepositoryFile(path=path, content=content, sha=sha))

    def _get_raw(self, path: str, sha: Optional[str]) -> FileLookup:
        """
        Read a file's bytes with the raw media type.

        ``sha`` comes from the metadata request. If the file changes between
        the two reads, a write using that sha is rejected as a conflict.
        """
        try:
            response = self._http.get(
                _quote_path(path), headers={"Accept": RAW_MEDIA_TYPE}
            )
        except httpx.HTTPError as exc:
            logger.warning(f"Raw GET {path} failed before a response arrived: {exc}")
            return TransientError(reason=str(exc) or exc.__class__.__name__)

        if response.status_code != 200:
            message = _error_message(response)
            logger.warning(f"Raw GET {path} returned HTTP {response.status_code}: {message}")
            return TransientError(reason=message, status_code=response.status_code)

        return Found(file=RepositoryFile(path=path, content=response.content, sha=sha))

    def put_file(
        self,
        path: str,
        content: bytes,
        message: str,
        sha: Optional[str] = None,
    ) -> Optional[str]:
        """
        Create or update a file.

        Args:
            path: Repository-relative path, e.g. "alice1234.html".
            content: Raw file bytes (encoded to base64 here).
            message: Commit message.
            sha: Current revision of the file. Omit when creating.

        Returns:
            The sha of the written content, if GitHub reported one.

        Raises:
            GitHubConflictError, GitHubAPIError, GitHubConnectionError
        """
        body = {"message": message, "content": encode_content(content)}
        if sha:
            body["sha"] = sha

        try:
            response = self._http.put(_quote_path(path), json=body)
        except httpx.HTTPError as exc:
            raise GitHubConnectionError(str(exc) or exc.__class__.__name__) from exc

        if response.is_success:
            try:
                return (response.json().get("content") or {}).get("sha")
            except (ValueError, AttributeError):
                return None

        error_message = _error_message(response)
        if _is_conflict(response.status_code, error_message):
            raise GitHubConflictError(error_message, response.status_code)
        raise GitHubAPIError(error_message, response.status_code)
