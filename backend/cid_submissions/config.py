"""
Runtime configuration for the submissions API.

Settings are read from the environment once (a .env file is honoured via
python-dotenv) and handed to the ingestor explicitly, so nothing downstream
reads os.environ per request.

Environment variables
---------------------
GITHUB_TOKEN                Personal access token with write access to the
                            submissions repo.
GITHUB_REPO                 Name of the submissions repo.
GITHUB_REPO_OWNER           Owner (user or org) of the submissions repo.
SUBMISSIONS_PATH            Path the submissions site is served under; used
                            to build the links in index.html. Should match the
                            redirect to the submissions repo deployment.
                            Default: /submissions
GITHUB_API_URL              Base URL of the GitHub REST API.
                            Default: https://api.github.com
GITHUB_TIMEOUT_SECONDS      Per-request timeout for GitHub calls. Default: 10
INDEX_UPDATE_MAX_ATTEMPTS   How many times the index read/append/write cycle
                            is attempted when GitHub reports a sha conflict.
                            Default: 3
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

DEFAULT_SUBMISSIONS_PATH = "/submissions"
DEFAULT_GITHUB_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_INDEX_UPDATE_MAX_ATTEMPTS = 3


@dataclass(frozen=True)
class Settings:
    """Immutable configuration for one process."""

    github_token: Optional[str] = None
    github_repo: Optional[str] = None
    github_repo_owner: Optional[str] = None
    submissions_path: str = DEFAULT_SUBMISSIONS_PATH
    github_api_url: str = DEFAULT_GITHUB_API_URL
    request_timeout: float = DEFAULT_TIMEOUT_SECONDS
    index_update_max_attempts: int = DEFAULT_INDEX_UPDATE_MAX_ATTEMPTS

    def missing_required(self) -> List[str]:
        """Return the environment variable names of unset required settings."""
        required = {
            "GITHUB_TOKEN": self.github_token,
            "GITHUB_REPO": self.github_repo,
            "GITHUB_REPO_OWNER": self.github_repo_owner,
        }
        return [name for name, value in required.items() if not value]

    @property
    def link_base_path(self) -> str:
        """SUBMISSIONS_PATH without trailing slashes, so hrefs never contain '//'."""
        return self.submissions_path.rstrip("/")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < 1:
        raise ValueError(f"{name} must be at least 1, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def load_settings() -> Settings:
    """
    Build Settings from the process environment.

    Missing required values are left as None rather than raising, because a
    misconfigured deployment must still answer requests with a 500 body
    explaining the problem.

    Raises:
        ValueError: if an optional numeric setting is present but malformed.
    """
    load_dotenv()

    return Settings(
        github_token=os.getenv("GITHUB_TOKEN") or None,
        github_repo=os.getenv("GITHUB_REPO") or None,
        github_repo_owner=os.getenv("GITHUB_REPO_OWNER") or None,
        submissions_path=os.getenv("SUBMISSIONS_PATH") or DEFAULT_SUBMISSIONS_PATH,
        github_api_url=(os.getenv("GITHUB_API_URL") or DEFAULT_GITHUB_API_URL).rstrip("/"),
        request_timeout=_env_float("GITHUB_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
        index_update_max_attempts=_env_int(
            "INDEX_UPDATE_MAX_ATTEMPTS", DEFAULT_INDEX_UPDATE_MAX_ATTEMPTS
        ),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """FastAPI dependency: settings loaded once per process."""
    return load_settings()
