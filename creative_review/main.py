import logging

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from creative_review.config import settings
from creative_review.core.errors import (
    AssetLockedError,
    ConcurrencyConflictError,
    ForeignReferenceError,
    InvalidReferenceError,
    PermissionDeniedError,
    PreconditionError,
    ReviewError,
)
from creative_review.routers import assets, auth, comments, notifications, requests, staged_media

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Most specific first
ERROR_STATUS_CODES: list[tuple[type[ReviewError], int]] = [
    (ConcurrencyConflictError, status.HTTP_409_CONFLICT),
    (AssetLockedError, status.HTTP_423_LOCKED),
    (PreconditionError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (ForeignReferenceError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidReferenceError, status.HTTP_404_NOT_FOUND),
]


def status_code_for(exc: ReviewError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


@app.exception_handler(ReviewError)
async def review_error_handler(request: Request, exc: ReviewError) -> JSONResponse:
    status_code = status_code_for(exc)
    logger.warning(f"{request.method} {request.url.path} rejected with {status_code}: {exc}")
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "error": type(exc).__name__})


# Include routers
app.include_router(auth.router)
app.include_router(assets.router)
app.include_router(comments.router)
app.include_router(staged_media.router)
app.include_router(requests.router)
app.include_router(notifications.router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy", "service": "creative_review"}


if __name__ == "__main__":
    uvicorn.run(
        "creative_review.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        loop="asyncio",
    )
