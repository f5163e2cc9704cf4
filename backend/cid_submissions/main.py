"""
Code in the Dark Submissions API
FastAPI application that stores contest submissions in a GitHub repository.
"""

import logging
import os
from typing import List

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from cid_submissions.config import Settings, get_settings
from cid_submissions.dependencies import get_client_factory
from cid_submissions.models.repository import TransientError
from cid_submissions.routers import submissions
from cid_submissions.services.ingestor import INDEX_PATH, ClientFactory

# Configure logging to output to console
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"

app = FastAPI(
    title="Code in the Dark Submissions API",
    description="Stores Code in the Dark submissions in a GitHub repository",
    version=API_VERSION,
)


def get_cors_origins() -> List[str]:
    """
    Build the list of allowed CORS origins.

    Always includes http://localhost:3000 (local contest page). Additional
    origins are read from the CORS_ORIGINS environment variable as a
    comma-separated list, e.g.:
        CORS_ORIGINS=https://codeinthedark.example.com,https://preview.example.com

    Duplicates are removed while preserving order.
    """
    always_included = ["http://localhost:3000"]

    extra_origins: List[str] = []
    cors_env = os.getenv("CORS_ORIGINS", "").strip()
    if cors_env:
        extra_origins = [o.strip() for o in cors_env.split(",") if o.strip()]

    seen: set = set()
    origins: List[str] = []
    for origin in always_included + extra_origins:
        if origin not in seen:
            seen.add(origin)
            origins.append(origin)

    return origins


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(
    submissions.router,
    prefix="/api/code-in-the-dark-submission",
    tags=["submissions"],
)


@app.get("/")
async def root():
    return {"message": "Code in the Dark Submissions API", "version": API_VERSION}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/health/github")
async def health_github(
    settings: Settings = Depends(get_settings),
    client_factory: ClientFactory = Depends(get_client_factory),
):
    """
    Check that the submissions repository is reachable with the configured
    token.

    Reads index.html; a 404 still counts as reachable because the index is
    created by the first submission. Returns 503 otherwise.
    """
    missing = settings.missing_required()
    if missing:
        raise HTTPException(
            status_code=503,
            detail=f"GitHub client unavailable: {', '.join(missing)} not configured",
        )

    with client_factory(settings) as client:
        lookup = client.get_file(INDEX_PATH)

    if isinstance(lookup, TransientError):
        logger.error(f"GitHub health check failed: {lookup.reason}")
        raise HTTPException(
            status_code=503,
            detail=f"GitHub repository unreachable: {lookup.reason}",
        )

    return {"status": "ok", "github": "reachable"}
