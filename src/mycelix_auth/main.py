# src/mycelix_auth/main.py
"""Main entry point for the Mycelix authorization API."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mycelix_auth.api.v1 import (
    auth_router,
    claims_router,
    songs_router,
    uploads_router,
)
from mycelix_auth.api.v1.dependencies import get_replay_store_dep
from mycelix_auth.core.errors import AuthRejected, RejectionReason
from mycelix_auth.core.settings import settings
from mycelix_auth.services.replay import ReplayStore

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Signature-authorized music catalog API",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Include API routers
app.include_router(songs_router, prefix="/api")
app.include_router(claims_router, prefix="/api")
app.include_router(uploads_router, prefix="/api")
app.include_router(auth_router, prefix="/api")


@app.exception_handler(AuthRejected)
async def auth_rejected_handler(request: Request, exc: AuthRejected) -> JSONResponse:
    """Render a rejection as ``{"reason": ..., **context}`` with its mapped status."""
    return JSONResponse(status_code=exc.rejection.status_code, content=exc.rejection.to_body())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("Rejected malformed request to %s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "reason": RejectionReason.INVALID_REQUEST.value,
            "errors": jsonable_encoder(exc.errors()),
        },
    )


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/health/ready")
async def readiness_check(
    store: Annotated[ReplayStore, Depends(get_replay_store_dep)],
) -> JSONResponse:
    """Report ready only while the replay store is reachable."""
    if not store.ping():
        logger.error("Readiness check failed: replay store unreachable")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable", "replay_store": "unreachable"},
        )
    return JSONResponse(content={"status": "ready", "replay_store": "ok"})


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("mycelix_auth.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
