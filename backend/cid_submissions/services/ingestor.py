"""
Submission ingestion pipeline.

Writes a contest submission to the submissions repo and links it from
index.html:

1. Check configuration (500 if GitHub settings are missing).
2. Validate input (200 + success=false if a field is empty).
3. Derive the filename from the Discord handle.
4. Compose the stored page: a name comment followed by the submitted HTML.
5. Look up the submission file to pick up its sha if it already exists.
6. Create or overwrite the submission file.
7. Add a link to index.html unless it is already there.
8. Build the response.

Steps 6 and 7 are two independent commits with no transaction between them.
If step 7 fails the submission file is written but not linked; sending the
same submission again converges because step 6 simply overwrites and step 7
skips links that are already present.

Index updates run as a compare-and-swap loop: when GitHub rejects the write
because the index changed since it was read, the index is fetched again and
the append is retried, up to ``Settings.index_update_max_attempts`` times.
"""

import logging
from enum import Enum
from html import escape
from typing import Callable, Optional, Tuple
from urllib.parse import quote

from cid_submissions.config import Settings
from cid_submissions.models.repository import Found, TransientError
from cid_submissions.models.submission import SubmissionRequest, SubmissionResponse
from cid_submissions.services.github_contents import (
    GitHubAPIError,
    GitHubConflictError,
    GitHubConnectionError,
    GitHubContentsClient,
)

logger = logging.getLogger(__name__)

INDEX_PATH = "index.html"
DISCRIMINATOR_SEPARATOR = "#"
INDEX_COMMIT_MESSAGE = "Update index file"

MISSING_CONFIG_MESSAGE = "Missing environment variables"
MISSING_PARAMS_MESSAGE = (
    'Missing required params, make sure you specify "discord", "name" and "html"'
)
CONNECTION_ERROR_MESSAGE = "Could not connect to GitHub"

ClientFactory = Callable[[Settings], GitHubContentsClient]


class IndexUpdate(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def derive_filename(discord: str) -> str:
    """'alice#1234' -> 'alice1234.html'"""
    return f"{discord.replace(DISCRIMINATOR_SEPARATOR, '')}.html"


def compose_file_contents(name: str, html: str) -> str:
    """Prefix the page with the participant's name. The name is not escaped."""
    return f"<!--Name: {name}-->{html}"


def build_link_fragment(filename: str, base_path: str) -> str:
    """
    Return the index entry for a submission.

    The exact string is what duplicate detection searches for, so its format
    must stay stable across deployments. The href is percent-encoded and the
    link text HTML-escaped; ordinary handles pass through unchanged.
    """
    href = f"{base_path}/{quote(filename, safe='')}"
    return f'<p><a href="{href}">{escape(filename)}</a></p>\n'


def submission_commit_message(filename: str) -> str:
    return f"Add/Update {filename}"


def missing_fields(request: SubmissionRequest) -> list:
    return [field for field in ("discord", "name", "html") if not getattr(request, field)]


# ---------------------------------------------------------------------------
# Ingestor
# ---------------------------------------------------------------------------

class SubmissionIngestor:
    """
    Runs the submission pipeline against the repository named in ``settings``.

    ``client_factory`` builds the GitHub client for one request; it defaults to
    GitHubContentsClient.from_settings and is replaced in tests.
    """

    def __init__(self, settings: Settings, client_factory: Optional[ClientFactory] = None):
        self.settings = settings
        self._client_factory = client_factory or GitHubContentsClient.from_settings

    def handle_submission(self, request: SubmissionRequest) -> Tuple[int, SubmissionResponse]:
        """
        Process one submission.

        Returns:
            (status_code, body). 500 only for missing configuration; every
            other failure is reported as 200 with success=False.
        """
        logger.info(
            f'Received submission request for name: "{request.name}", '
            f'discord: "{request.discord}"'
        )

        missing_settings = self.settings.missing_required()
        if missing_settings:
            logger.error(f"Missing environment variables: {', '.join(missing_settings)}")
            return 500, SubmissionResponse(success=False, message=MISSING_CONFIG_MESSAGE)

        missing = missing_fields(request)
        if missing:
            logger.error(f"Missing required parameters: {', '.join(missing)}")
            return 200, SubmissionResponse(success=False, message=MISSING_PARAMS_MESSAGE)

        filename = derive_filename(request.discord)
        contents = compose_file_contents(request.name, request.html)

        with self._client_factory(self.settings) as client:
            try:
                self._write_submission(client, filename, contents)
            except GitHubAPIError as e:
                logger.error(f"GitHub rejected write of {filename} (HTTP {e.status_code}): {e.message}")
                return 200, _api_error_response(filename, e)
            except GitHubConnectionError as e:
                logger.error(f"Could not reach GitHub while writing {filename}: {e}")
                return 200, SubmissionResponse(success=False, message=CONNECTION_ERROR_MESSAGE)

            # From here on the submission file is committed; a failure leaves
            # it unlinked until the same submission is sent again.
            try:
                index_update = self._update_index(client, filename)
            except GitHubAPIError as e:
                logger.error(
                    f"{filename} was written but the index update failed "
                    f"(HTTP {e.status_code}): {e.message}"
                )
                return 200, _api_error_response(filename, e)
            except GitHubConnectionError as e:
                logger.error(
                    f"{filename} was written but GitHub became unreachable "
                    f"during the index update: {e}"
                )
                return 200, SubmissionResponse(success=False, message=CONNECTION_ERROR_MESSAGE)

        logger.info(f"Stored {filename}; index {index_update.value}")
        return 200, SubmissionResponse(
            success=True,
            message=f"Successfully created/updated {filename}",
        )

    def _write_submission(self, client: GitHubContentsClient, filename: str, contents: str) -> None:
        lookup = client.get_file(filename)

        sha: Optional[str] = None
        if isinstance(lookup, Found):
            logger.info(f"File {filename} already exists, updating it")
            sha = lookup.file.sha
        elif isinstance(lookup, TransientError):
            # Treated as absent. If the file does exist GitHub rejects the
            # sha-less write and that error is reported to the caller.
            logger.warning(
                f"Could not check whether {filename} exists ({lookup.reason}); "
                f"attempting to create it"
            )

        client.put_file(
            filename,
            contents.encode("utf-8"),
            submission_commit_message(filename),
            sha=sha,
        )
        logger.info(f"File {filename} created/updated")

    def _update_index(self, client: GitHubContentsClient, filename: str) -> IndexUpdate:
        link = build_link_fragment(filename, self.settings.link_base_path)
        max_attempts = max(1, self.settings.index_update_max_attempts)

        for attempt in range(1, max_attempts + 1):
            try:
                return self._try_update_index(client, filename, link)
            except GitHubConflictError as e:
                if attempt == max_attempts:
                    logger.error(
                        f"Index update for {filename} still conflicting after "
                        f"{max_attempts} attempts"
                    )
                    raise
                logger.warning(
                    f"Index changed while adding {filename} ({e.message}); "
                    f"retrying ({attempt}/{max_attempts})"
                )

        # unreachable: the final attempt either returns or raises
        raise RuntimeError("index update loop exited without a result")

    def _try_update_index(self, client: GitHubContentsClient, filename: str, link: str) -> IndexUpdate:
        lookup = client.get_file(INDEX_PATH)

        link_bytes = link.encode("utf-8")

        if isinstance(lookup, Found):
            # Compared and appended as bytes so that existing content is
            # written back exactly as read, whatever its encoding.
            current = lookup.file.content
            if link_bytes in current:
                logger.info(f"Index file already has link to {filename}")
                return IndexUpdate.UNCHANGED
            client.put_file(
                INDEX_PATH,
                current + link_bytes,
                INDEX_COMMIT_MESSAGE,
                sha=lookup.file.sha,
            )
            logger.info(f"Updated index with link to {filename}")
            return IndexUpdate.UPDATED

        if isinstance(lookup, TransientError):
            logger.warning(
                f"Could not read {INDEX_PATH} ({lookup.reason}); attempting to create it"
            )

        client.put_file(INDEX_PATH, link_bytes, INDEX_COMMIT_MESSAGE)
        logger.info(f"Created index with link to {filename}")
        return IndexUpdate.CREATED


def _api_error_response(filename: str, error: GitHubAPIError) -> SubmissionResponse:
    return SubmissionResponse(
        success=False,
        message=(
            f"Error creating/updating {filename} or index, "
            f"original error: {error.message}"
        ),
    )
