"""
FastAPI dependencies shared by the routers.

Tests swap these out through ``app.dependency_overrides`` instead of touching
os.environ or patching module globals.
"""

from fastapi import Depends

from cid_submissions.config import Settings, get_settings
from cid_submissions.services.github_contents import GitHubContentsClient
from cid_submissions.services.ingestor import ClientFactory, SubmissionIngestor


def get_client_factory() -> ClientFactory:
    """Return the callable that opens a GitHub client for one request."""
    return GitHubContentsClient.from_settings


def get_ingestor(
    settings: Settings = Depends(get_settings),
    client_factory: ClientFactory = Depends(get_client_factory),
) -> SubmissionIngestor:
    return SubmissionIngestor(settings, client_factory=client_factory)
