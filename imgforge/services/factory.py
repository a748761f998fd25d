"""Builds adapters and use cases from settings."""

from functools import lru_cache

from imgforge.core.config import settings
from imgforge.core.messaging import get_publisher
from imgforge.domain.events import JobStatusChanged
from imgforge.domain.ports import AIAnalyzer, EventBus, JobQueue, JobRepository, StoragePort
from imgforge.use_cases import (
    CancelImageJob,
    EnqueueImageJob,
    ProcessImagePipeline,
    RestartImageJob,
    UploadImage,
)

from .ai_analysis import HttpAIAnalyzer
from .event_bus import InMemoryEventBus, StatusEventForwarder
from .image_processor import PillowImageProcessor
from .repository import SqlAlchemyJobRepository
from .storage import LocalStorageService, S3StorageService


def build_storage() -> StoragePort:
    if settings.storage_backend == "local":
        return LocalStorageService()
    return S3StorageService()


def build_ai_analyzer() -> AIAnalyzer | None:
    if not settings.ai_service_url:
        return None
    return HttpAIAnalyzer(
        settings.ai_service_url,
        api_key=settings.ai_api_key,
        timeout=settings.ai_timeout_seconds,
    )


@lru_cache
def get_event_bus() -> EventBus:
    bus = InMemoryEventBus()
    bus.subscribe(JobStatusChanged, StatusEventForwarder(get_publisher()))
    return bus


def build_upload(repository: JobRepository, storage: StoragePort) -> UploadImage:
    return UploadImage(
        repository,
        storage,
        max_size_bytes=settings.max_upload_size_bytes,
        download_timeout=settings.download_timeout_seconds,
    )


def build_pipeline(
    repository: JobRepository | None = None,
    storage: StoragePort | None = None,
    event_bus: EventBus | None = None,
) -> ProcessImagePipeline:
    return ProcessImagePipeline(
        repository=repository or SqlAlchemyJobRepository(),
        storage=storage or build_storage(),
        transformer=PillowImageProcessor(),
        event_bus=event_bus or get_event_bus(),
        ai_analyzer=build_ai_analyzer(),
        timeout_seconds=settings.pipeline_timeout_seconds,
    )


def build_lifecycle(
    repository: JobRepository, queue: JobQueue, event_bus: EventBus | None
) -> tuple[EnqueueImageJob, CancelImageJob, RestartImageJob]:
    enqueue = EnqueueImageJob(repository, queue, event_bus)
    return (
        enqueue,
        CancelImageJob(repository, event_bus),
        RestartImageJob(repository, event_bus, enqueuer=enqueue),
    )
