"""
Collaborator contracts consumed by the use cases.

Concrete implementations live in ``imgforge.services``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable

from .events import DomainEvent
from .image_job import BrandContext, ImageJob, ProductContext
from .image_version import FitMode, ImageFormat
from .value_objects import CropRegion, JobId, ProcessingStatus


@dataclass(frozen=True)
class ProcessingOptions:
    target_width: int
    target_height: int
    format: ImageFormat
    quality: int
    fit: FitMode
    background_color: str = "#FFFFFF"
    extract_region: CropRegion | None = None


@dataclass(frozen=True)
class ImageInfo:
    width: int
    height: int
    format: str
    size: int
    has_alpha: bool
    color_space: str | None = None
    density: int | None = None


@dataclass(frozen=True)
class AIImageIssue:
    type: str
    severity: str
    message: str
    suggestion: str | None = None


@dataclass(frozen=True)
class AIAnalysisResult:
    prompt: str
    quality_score: float
    detected_objects: list[str] = field(default_factory=list)
    suggested_crop: CropRegion | None = None
    dominant_colors: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    description: str | None = None
    issues: list[AIImageIssue] = field(default_factory=list)


@dataclass(frozen=True)
class ProcessingStats:
    total: int = 0
    pending: int = 0
    queued: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0
    average_processing_time_ms: float | None = None


class ImageTransformer(ABC):
    """Resize, crop and encode image bytes."""

    @abstractmethod
    def process(self, data: bytes, options: ProcessingOptions) -> bytes:
        ...

    @abstractmethod
    def compress(self, data: bytes, format: ImageFormat, quality: int) -> bytes:
        ...

    @abstractmethod
    def get_info(self, data: bytes) -> ImageInfo:
        ...


class StoragePort(ABC):
    @abstractmethod
    def store(self, data: bytes, directory: str, file_name: str, content_type: str | None = None) -> str:
        """Store bytes and return the storage path."""

    @abstractmethod
    def retrieve(self, path: str) -> bytes:
        ...

    @abstractmethod
    def delete(self, path: str) -> None:
        ...

    @abstractmethod
    def exists(self, path: str) -> bool:
        ...

    @abstractmethod
    def get_public_url(self, path: str) -> str:
        ...

    @abstractmethod
    def list_files(self, directory: str) -> list[str]:
        ...


class AIAnalyzer(ABC):
    @abstractmethod
    def analyze(
        self,
        data: bytes,
        brand_context: BrandContext | None = None,
        product_context: ProductContext | None = None,
    ) -> AIAnalysisResult:
        ...

    @abstractmethod
    def is_available(self) -> bool:
        ...


class JobRepository(ABC):
    @abstractmethod
    def save(self, job: ImageJob) -> ImageJob:
        ...

    @abstractmethod
    def find_by_id(self, job_id: JobId) -> ImageJob | None:
        ...

    @abstractmethod
    def find_all(self, limit: int | None = None, offset: int = 0) -> list[ImageJob]:
        ...

    @abstractmethod
    def delete(self, job_id: JobId) -> bool:
        ...

    @abstractmethod
    def exists(self, job_id: JobId) -> bool:
        ...

    @abstractmethod
    def find_by_status(
        self, status: ProcessingStatus, limit: int | None = None, offset: int = 0
    ) -> list[ImageJob]:
        ...

    @abstractmethod
    def count(self, status: ProcessingStatus | None = None) -> int:
        ...

    @abstractmethod
    def find_by_file_name(self, file_name: str) -> list[ImageJob]:
        ...

    @abstractmethod
    def update_status(self, job_id: JobId, status: ProcessingStatus) -> ImageJob:
        """Load, set status, save. Raises JobNotFoundError when absent."""

    @abstractmethod
    def get_stats(self) -> ProcessingStats:
        ...

    def find_pending(self, limit: int | None = None) -> list[ImageJob]:
        return self.find_by_status(ProcessingStatus.PENDING, limit=limit)


EventHandler = Callable[[DomainEvent], None]


class EventBus(ABC):
    @abstractmethod
    def publish(self, event: DomainEvent) -> None:
        ...

    @abstractmethod
    def subscribe(self, event_type: type, handler: EventHandler) -> None:
        ...

    @abstractmethod
    def unsubscribe(self, event_type: type, handler: EventHandler) -> None:
        ...


class JobQueue(ABC):
    """Hands a queued job over to the workers."""

    @abstractmethod
    def enqueue(self, job_id: str, run_ai_analysis: bool = False) -> None:
        ...
