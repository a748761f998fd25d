from dataclasses import dataclass, field
from typing import Any, Mapping

import httpx
import structlog

from imgforge.domain.errors import (
    DownloadFailedError,
    FileTooLargeError,
    MissingSourceError,
    UnsupportedMediaTypeError,
)
from imgforge.domain.image_job import (
    ALLOWED_MIME_TYPES,
    MAX_SOURCE_SIZE,
    BrandContext,
    ImageJob,
    ProductContext,
)
from imgforge.domain.ports import JobRepository, StoragePort

logger = structlog.get_logger()


@dataclass
class UploadImageRequest:
    file_name: str
    file_size: int
    mime_type: str
    data: bytes | None = None
    source_url: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    brand_context: BrandContext | None = None
    product_context: ProductContext | None = None


class UploadImage:
    """Validate an incoming image, create its job and store the source bytes."""

    def __init__(
        self,
        repository: JobRepository,
        storage: StoragePort,
        http_client: httpx.Client | None = None,
        max_size_bytes: int | None = None,
        download_timeout: float = 30.0,
    ) -> None:
        self.repository = repository
        self.storage = storage
        self.http_client = http_client
        # A configured ceiling may only tighten the domain limit.
        self.max_size_bytes = min(max_size_bytes or MAX_SOURCE_SIZE.bytes, MAX_SOURCE_SIZE.bytes)
        self.download_timeout = download_timeout

    def execute(self, request: UploadImageRequest) -> ImageJob:
        if request.file_size > self.max_size_bytes:
            raise FileTooLargeError(request.file_size, self.max_size_bytes)
        if request.mime_type not in ALLOWED_MIME_TYPES:
            raise UnsupportedMediaTypeError(request.mime_type, ALLOWED_MIME_TYPES)
        if request.data is None and not request.source_url:
            raise MissingSourceError()

        logger.info(
            "upload_validated",
            file_name=request.file_name,
            size=request.file_size,
            mime_type=request.mime_type,
        )

        job = ImageJob.create(
            file_name=request.file_name,
            original_path=None,
            mime_type=request.mime_type,
            original_size=request.file_size,
            metadata=request.metadata,
            brand_context=request.brand_context,
            product_context=request.product_context,
        )
        self.repository.save(job)
        logger.info("job_created", job_id=str(job.id), file_name=str(job.file_name))

        try:
            data = request.data if request.data is not None else self._download(request.source_url)
            if len(data) > self.max_size_bytes:
                raise FileTooLargeError(len(data), self.max_size_bytes)
            path = self.storage.store(
                data, str(job.id), str(job.file_name), content_type=request.mime_type
            )
        except Exception as e:
            logger.error("source_store_failed", job_id=str(job.id), error=str(e))
            self.repository.delete(job.id)
            raise

        job.attach_source(path)
        self.repository.save(job)
        logger.info("source_stored", job_id=str(job.id), path=path, size=len(data))
        return job

    def _download(self, url: str) -> bytes:
        client = self.http_client or httpx.Client(timeout=self.download_timeout, follow_redirects=True)
        try:
            response = client.get(url)
        except httpx.HTTPError as e:
            logger.warning("source_download_failed", url=url, error=str(e))
            raise DownloadFailedError(url, reason=str(e)) from e
        finally:
            if self.http_client is None:
                client.close()

        if not response.is_success:
            logger.warning("source_download_failed", url=url, status_code=response.status_code)
            raise DownloadFailedError(url, status_code=response.status_code)
        return response.content
