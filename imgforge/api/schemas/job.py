from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from imgforge.domain.image_job import ImageJob
from imgforge.domain.image_version import ImageVersion, VariantKind
from imgforge.domain.ports import ProcessingStats
from imgforge.domain.value_objects import ProcessingStatus


class VersionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    version_type: VariantKind
    width: int
    height: int
    file_size: int
    file_path: str
    file_name: str
    format: str
    quality: int
    content_hash: str
    within_size_limit: bool
    url: str | None = None
    created_at: datetime

    @classmethod
    def from_version(cls, version: ImageVersion, url: str | None = None) -> "VersionResponse":
        return cls(
            version_type=version.kind,
            width=version.resolution.width,
            height=version.resolution.height,
            file_size=version.file_size.bytes,
            file_path=version.storage_path,
            file_name=str(version.file_name),
            format=version.format.value,
            quality=version.quality,
            content_hash=version.content_hash,
            within_size_limit=version.is_within_size_limit(),
            url=url,
            created_at=version.created_at,
        )


class JobResponse(BaseModel):
    id: UUID
    status: ProcessingStatus
    status_description: str
    file_name: str
    mime_type: str
    original_size: int
    original_path: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    error_code: str | None = None
    error_message: str | None = None
    version_count: int = 0
    versions: list[VersionResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    processing_started_at: datetime | None = None
    processing_ended_at: datetime | None = None

    @classmethod
    def from_job(cls, job: ImageJob, versions: list[VersionResponse] | None = None) -> "JobResponse":
        return cls(
            id=UUID(str(job.id)),
            status=job.status,
            status_description=job.status.description,
            file_name=str(job.file_name),
            mime_type=job.mime_type,
            original_size=job.original_size.bytes,
            original_path=job.original_path,
            metadata=job.metadata,
            error_code=job.error_code,
            error_message=job.error_message,
            version_count=len(job.versions),
            versions=versions if versions is not None else [],
            created_at=job.created_at,
            updated_at=job.updated_at,
            processing_started_at=job.processing_started_at,
            processing_ended_at=job.processing_ended_at,
        )


class StatsResponse(BaseModel):
    total: int
    pending: int
    queued: int
    processing: int
    completed: int
    failed: int
    cancelled: int
    average_processing_time_ms: float | None = None

    @classmethod
    def from_stats(cls, stats: ProcessingStats) -> "StatsResponse":
        return cls(
            total=stats.total,
            pending=stats.pending,
            queued=stats.queued,
            processing=stats.processing,
            completed=stats.completed,
            failed=stats.failed,
            cancelled=stats.cancelled,
            average_processing_time_ms=stats.average_processing_time_ms,
        )


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    total: int
    page: int
    limit: int
    stats: StatsResponse | None = None


class UploadResponse(BaseModel):
    job_id: UUID
    status: ProcessingStatus
    message: str


class BrandContextIn(BaseModel):
    name: str
    vertical: str | None = None
    tone: str | None = None
    background: str | None = None


class ProductContextIn(BaseModel):
    id: str | None = None
    category: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)


class IngestRequest(BaseModel):
    url: str
    file_name: str
    mime_type: str
    file_size: int = Field(0, ge=0)
    run_ai_analysis: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)
    brand_context: BrandContextIn | None = None
    product_context: ProductContextIn | None = None


class RestartRequest(BaseModel):
    run_ai_analysis: bool = False
