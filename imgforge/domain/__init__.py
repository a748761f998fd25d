from .errors import DomainError
from .events import EVENT_TYPES, DomainEvent, JobStatusChanged
from .image_job import ALLOWED_MIME_TYPES, MAX_SOURCE_SIZE, BrandContext, ImageJob, ProductContext
from .image_version import (
    FALLBACK_QUALITY,
    VARIANT_CONFIG,
    VARIANT_ORDER,
    FitMode,
    ImageFormat,
    ImageVersion,
    VariantKind,
    VersionSet,
)
from .value_objects import CropRegion, FileName, FileSize, JobId, ProcessingStatus, Resolution

__all__ = [
    "DomainError",
    "DomainEvent",
    "EVENT_TYPES",
    "JobStatusChanged",
    "ALLOWED_MIME_TYPES",
    "MAX_SOURCE_SIZE",
    "BrandContext",
    "ImageJob",
    "ProductContext",
    "FALLBACK_QUALITY",
    "VARIANT_CONFIG",
    "VARIANT_ORDER",
    "FitMode",
    "ImageFormat",
    "ImageVersion",
    "VariantKind",
    "VersionSet",
    "CropRegion",
    "FileName",
    "FileSize",
    "JobId",
    "ProcessingStatus",
    "Resolution",
]
