import structlog
from fastapi import APIRouter, File, Form, UploadFile, status

from imgforge.api.dependencies import Bus, Queue, Repository, Storage
from imgforge.api.schemas import IngestRequest, UploadResponse
from imgforge.core.config import settings
from imgforge.domain.image_job import BrandContext, ProductContext
from imgforge.services.factory import build_upload
from imgforge.use_cases import EnqueueImageJob, UploadImageRequest

logger = structlog.get_logger()
router = APIRouter(prefix="/images", tags=["Images"])


@router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Upload an image",
    description=f"""
Uploads a source image and queues generation of its four versions.

**Formats:** JPEG, PNG, WEBP, TIFF, SVG, GIF

**Maximum size:** {settings.max_upload_size_mb}MB

**Versions produced:**
- `V1_MASTER` 4096x4096
- `V2_GRID` 2048x2048
- `V3_PDP` 1200x1200
- `V4_THUMBNAIL` 600x600
    """,
)
async def upload_image(
    repository: Repository,
    storage: Storage,
    queue: Queue,
    bus: Bus,
    file: UploadFile = File(..., description="Source image"),
    run_ai_analysis: bool = Form(False),
    product_id: str | None = Form(None),
    product_category: str | None = Form(None),
    brand_name: str | None = Form(None),
    brand_vertical: str | None = Form(None),
    brand_tone: str | None = Form(None),
    brand_background: str | None = Form(None),
) -> UploadResponse:
    content = await file.read()

    brand = None
    if brand_name:
        brand = BrandContext(
            name=brand_name, vertical=brand_vertical, tone=brand_tone, background=brand_background
        )
    product = None
    if product_id or product_category:
        product = ProductContext(id=product_id, category=product_category)

    request = UploadImageRequest(
        file_name=file.filename or "",
        file_size=len(content),
        mime_type=file.content_type or "application/octet-stream",
        data=content,
        brand_context=brand,
        product_context=product,
    )
    job = build_upload(repository, storage).execute(request)
    job = EnqueueImageJob(repository, queue, bus).execute(job.id, run_ai_analysis=run_ai_analysis)

    logger.info("image_uploaded", job_id=str(job.id), size=len(content))
    return UploadResponse(job_id=str(job.id), status=job.status, message="Image queued for processing")


@router.post(
    "/ingest",
    response_model=UploadResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Ingest an image from a URL",
)
async def ingest_image(
    payload: IngestRequest,
    repository: Repository,
    storage: Storage,
    queue: Queue,
    bus: Bus,
) -> UploadResponse:
    request = UploadImageRequest(
        file_name=payload.file_name,
        file_size=payload.file_size,
        mime_type=payload.mime_type,
        source_url=payload.url,
        metadata=payload.metadata,
        brand_context=BrandContext(**payload.brand_context.model_dump()) if payload.brand_context else None,
        product_context=(
            ProductContext(**payload.product_context.model_dump()) if payload.product_context else None
        ),
    )
    job = build_upload(repository, storage).execute(request)
    job = EnqueueImageJob(repository, queue, bus).execute(job.id, run_ai_analysis=payload.run_ai_analysis)

    logger.info("image_ingested", job_id=str(job.id), url=payload.url)
    return UploadResponse(job_id=str(job.id), status=job.status, message="Image queued for processing")
