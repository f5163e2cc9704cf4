"""
Code in the Dark submission endpoint.

Endpoints:
  POST /api/code-in-the-dark-submission   store a submission and link it
                                         from index.html

The response body is always {"success": bool, "message": str}. Only missing
server configuration produces a non-200 status; bad input and GitHub failures
are reported with success=false so the contest page can show the message.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from cid_submissions.dependencies import get_ingestor
from cid_submissions.models.submission import SubmissionRequest, SubmissionResponse
from cid_submissions.services.ingestor import SubmissionIngestor

logger = logging.getLogger(__name__)

router = APIRouter()


async def _parse_submission(request: Request) -> SubmissionRequest:
    """
    Read the request body as a SubmissionRequest.

    An empty, non-JSON or wrongly typed body becomes an empty submission so
    that the ingestor answers with its usual "missing required params"
    message rather than a 422.
    """
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Submission body is not valid JSON; treating it as empty")
        return SubmissionRequest()

    if not isinstance(payload, dict):
        logger.warning(f"Submission body is a {type(payload).__name__}, expected an object")
        return SubmissionRequest()

    try:
        return SubmissionRequest.model_validate(payload)
    except ValidationError as exc:
        logger.warning(f"Submission body failed validation: {exc.error_count()} error(s)")
        return SubmissionRequest()


@router.post(
    "",
    response_model=SubmissionResponse,
    responses={
        200: {
            "description": "Submission stored, or rejected with success=false",
            "content": {
                "application/json": {
                    "example": {
                        "success": True,
                        "message": "Successfully created/updated alice1234.html",
                    }
                }
            },
        },
        500: {"description": "GitHub settings are missing on the server"},
    },
)
async def create_submission(
    request: Request,
    ingestor: SubmissionIngestor = Depends(get_ingestor),
) -> JSONResponse:
    """
    Store a submission as ``{discord without '#'}.html`` in the submissions
    repo and add a link to it in index.html.

    Re-submitting with the same Discord handle overwrites the earlier file and
    does not add a second link.
    """
    submission = await _parse_submission(request)
    status_code, body = ingestor.handle_submission(submission)
    return JSONResponse(status_code=status_code, content=body.model_dump())
