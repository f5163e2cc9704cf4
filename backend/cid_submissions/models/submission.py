"""
Pydantic models for the submission endpoint.

SubmissionRequest   inbound JSON body from the contest page
SubmissionResponse  JSON body of every response, success or failure
"""

from pydantic import BaseModel


class SubmissionRequest(BaseModel):
    """
    A Code in the Dark submission.

    Fields default to "" so that an incomplete body reaches the ingestor and
    gets the soft-failure response instead of a 422 from request validation.
    Unknown fields are ignored.
    """
    model_config = {"extra": "ignore"}

    discord: str = ""      # Discord handle, may include a "#1234" discriminator
    name: str = ""         # display name, stored verbatim in an HTML comment
    html: str = ""         # the submitted page


class SubmissionResponse(BaseModel):
    success: bool
    message: str
