from .job import (
    BrandContextIn,
    IngestRequest,
    JobListResponse,
    JobResponse,
    ProductContextIn,
    RestartRequest,
    StatsResponse,
    UploadResponse,
    VersionResponse,
)

__all__ = [
    "BrandContextIn",
    "IngestRequest",
    "JobListResponse",
    "JobResponse",
    "ProductContextIn",
    "RestartRequest",
    "StatsResponse",
    "UploadResponse",
    "VersionResponse",
]
