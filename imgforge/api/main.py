from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from imgforge.api.dependencies import get_storage
from imgforge.api.routers import health_router, images_router, jobs_router
from imgforge.core.config import settings
from imgforge.domain.errors import (
    DomainError,
    FileTooLargeError,
    InvalidJobStateError,
    JobNotFoundError,
    UnsupportedMediaTypeError,
)
from imgforge.models import init_db

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    init_db()
    storage = app.dependency_overrides.get(get_storage, get_storage)()
    ensure = getattr(storage, "ensure_bucket_exists", None)
    if ensure is not None:
        ensure()
    yield


app = FastAPI(
    title="imgforge - Image Variant API",
    description="""
## Image variant generation

Upload a product image and receive four size- and format-constrained versions.

### Flow

1. Upload an image in `/images/upload` (or ingest a URL in `/images/ingest`)
2. The job is queued and picked up by a worker
3. Poll `/jobs/{id}` until the status is `COMPLETED` or `FAILED`
4. Download each version from its URL
5. Restart failed or cancelled jobs with `/jobs/{id}/restart`
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints"},
        {"name": "Images", "description": "Image upload and ingestion"},
        {"name": "Jobs", "description": "Job status, listing and lifecycle"},
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _status_for(exc: DomainError) -> int:
    if isinstance(exc, JobNotFoundError):
        return 404
    if isinstance(exc, InvalidJobStateError):
        return 409
    if isinstance(exc, FileTooLargeError):
        return 413
    if isinstance(exc, UnsupportedMediaTypeError):
        return 415
    if exc.recoverable:
        return 400
    return 500


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = _status_for(exc)
    logger.warning("domain_error", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(status_code=status_code, content={"detail": exc.message, **exc.to_dict()})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_exception", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(health_router)
app.include_router(images_router, prefix=settings.api_prefix)
app.include_router(jobs_router, prefix=settings.api_prefix)


def mount_local_storage(target: FastAPI, root: str, mount_path: str) -> None:
    """Serve locally stored files under the path their public URLs point at."""
    target.mount(mount_path, StaticFiles(directory=root, check_dir=False), name="storage")


if settings.storage_backend == "local":
    mount_local_storage(app, settings.local_storage_path, settings.local_storage_mount)


@app.get("/")
async def root():
    return {"service": "imgforge", "version": "1.0.0", "docs": "/docs"}


def run() -> None:
    import uvicorn

    uvicorn.run("imgforge.api.main:app", host=settings.api_host, port=settings.api_port)
