"""
Models for files stored in the submissions repository.

A lookup of a file through the GitHub Contents API produces exactly one of:
  Found           the file exists; carries its decoded content and sha
  NotFound        GitHub answered 404
  TransientError  anything else (network failure, 401/403, 5xx)

Keeping the last two apart lets callers decide whether an unreachable file
should be treated as absent.
"""

from typing import Optional, Union
from pydantic import BaseModel


class RepositoryFile(BaseModel):
    """A file in the submissions repo, content already base64-decoded."""

    path: str
    content: bytes
    sha: Optional[str] = None   # revision token; required by GitHub to overwrite

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


class Found(BaseModel):
    file: RepositoryFile


class NotFound(BaseModel):
    pass


class TransientError(BaseModel):
    reason: str
    status_code: Optional[int] = None


FileLookup = Union[Found, NotFound, TransientError]
