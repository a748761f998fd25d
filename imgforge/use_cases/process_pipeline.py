"""
ProcessImagePipeline: generate the four image versions for one job.

Variants are produced strictly in VARIANT_ORDER. The first variant failure
aborts the run, leaving the versions produced so far attached to the job.
"""

import hashlib
import re
import time
from dataclasses import dataclass, field
from typing import Callable

import structlog

from imgforge.domain.errors import (
    DomainError,
    JobInterruptedError,
    PipelineError,
    PipelineTimeoutError,
    VersionGenerationError,
)
from imgforge.domain.image_job import ImageJob
from imgforge.domain.image_version import (
    FALLBACK_QUALITY,
    VARIANT_CONFIG,
    VARIANT_ORDER,
    ImageVersion,
    VariantKind,
)
from imgforge.domain.ports import (
    AIAnalysisResult,
    AIAnalyzer,
    EventBus,
    ImageTransformer,
    JobRepository,
    ProcessingOptions,
    StoragePort,
)
from imgforge.domain.value_objects import CropRegion, FileName, JobId, ProcessingStatus

from .transitions import ensure_can_transition, load_job, persist_transition

logger = structlog.get_logger()

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


@dataclass
class PipelineResult:
    job: ImageJob
    versions: dict[VariantKind, ImageVersion] = field(default_factory=dict)
    ai_result: AIAnalysisResult | None = None
    elapsed_ms: float = 0.0


def enterprise_file_name(base: str, kind: VariantKind) -> FileName:
    """``{base}_{short}_{width}x{height}.{format}`` for the given variant."""
    config = VARIANT_CONFIG[kind]
    safe_base = _UNSAFE_NAME_CHARS.sub("-", base)
    return FileName(
        f"{safe_base}_{config.short_name}_{config.resolution}.{config.format.value}"
    )


def variant_directory(base: str, kind: VariantKind) -> str:
    return f"{_UNSAFE_NAME_CHARS.sub('-', base)}/{kind.value.lower()}"


def content_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class ProcessImagePipeline:
    def __init__(
        self,
        repository: JobRepository,
        storage: StoragePort,
        transformer: ImageTransformer,
        event_bus: EventBus | None = None,
        ai_analyzer: AIAnalyzer | None = None,
        timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.repository = repository
        self.storage = storage
        self.transformer = transformer
        self.event_bus = event_bus
        self.ai_analyzer = ai_analyzer
        self.timeout_seconds = timeout_seconds
        self.clock = clock

    def execute(self, job_id: JobId | str, run_ai_analysis: bool = False) -> PipelineResult:
        started = self.clock()

        job = load_job(self.repository, job_id)
        ensure_can_transition(job, ProcessingStatus.PROCESSING)
        persist_transition(job, ProcessingStatus.PROCESSING, self.repository, self.event_bus)

        logger.info("pipeline_started", job_id=str(job.id), run_ai=run_ai_analysis)

        ai_result: AIAnalysisResult | None = None
        try:
            source = self.storage.retrieve(job.original_path)
            ai_result = self._analyze(job, source, run_ai_analysis)
            crop = ai_result.suggested_crop if ai_result else None

            for kind in VARIANT_ORDER:
                self._check_deadline(job, kind, started)
                self._ensure_still_processing(job)
                self._generate(job, kind, source, crop)

            self._ensure_still_processing(job)

        except JobInterruptedError as e:
            logger.warning(
                "pipeline_interrupted",
                job_id=str(job.id),
                status=e.context["status"],
                versions=len(job.versions),
            )
            raise
        except (VersionGenerationError, PipelineTimeoutError) as e:
            self._fail(job, e)
            raise
        except Exception as e:
            error = PipelineError(str(job.id), e)
            self._fail(job, error)
            raise error from e

        persist_transition(job, ProcessingStatus.COMPLETED, self.repository, self.event_bus)

        elapsed_ms = (self.clock() - started) * 1000
        logger.info(
            "pipeline_completed",
            job_id=str(job.id),
            versions=len(job.versions),
            elapsed_ms=round(elapsed_ms, 1),
        )
        return PipelineResult(
            job=job,
            versions=job.versions.as_dict(),
            ai_result=ai_result,
            elapsed_ms=elapsed_ms,
        )

    def _analyze(self, job: ImageJob, source: bytes, requested: bool) -> AIAnalysisResult | None:
        if not requested or self.ai_analyzer is None:
            logger.info("ai_analysis_skipped", job_id=str(job.id), requested=requested)
            return None

        result = self.ai_analyzer.analyze(
            source,
            brand_context=job.brand_context,
            product_context=job.product_context,
        )
        logger.info(
            "ai_analysis_completed",
            job_id=str(job.id),
            quality_score=result.quality_score,
            has_crop=result.suggested_crop is not None,
            tags=result.tags,
        )
        return result

    def _check_deadline(self, job: ImageJob, next_kind: VariantKind, started: float) -> None:
        if self.timeout_seconds is None:
            return
        if self.clock() - started > self.timeout_seconds:
            raise PipelineTimeoutError(str(job.id), self.timeout_seconds, next_kind)

    def _ensure_still_processing(self, job: ImageJob) -> None:
        """Stop when the stored job was cancelled or removed by someone else."""
        stored = self.repository.find_by_id(job.id)
        if stored is None:
            raise JobInterruptedError(str(job.id), "DELETED")
        if stored.status != ProcessingStatus.PROCESSING:
            raise JobInterruptedError(str(job.id), stored.status)

    def _generate(
        self, job: ImageJob, kind: VariantKind, source: bytes, crop: CropRegion | None
    ) -> ImageVersion:
        config = VARIANT_CONFIG[kind]
        base = job.storage_base
        try:
            options = ProcessingOptions(
                target_width=config.resolution.width,
                target_height=config.resolution.height,
                format=config.format,
                quality=config.quality,
                fit=config.fit,
                extract_region=crop,
            )
            data = self.transformer.process(source, options)

            file_name = enterprise_file_name(base, kind)
            directory = variant_directory(base, kind)
            path = self.storage.store(data, directory, str(file_name))

            version = ImageVersion.create(
                job_id=job.id,
                kind=kind,
                storage_path=path,
                file_name=file_name,
                byte_length=len(data),
                content_hash=content_hash(data),
            )

            if not version.is_within_size_limit():
                version = self._recompress(job, version, data, directory)

            job.add_version(version)
        except Exception as e:
            logger.error("variant_failed", job_id=str(job.id), kind=kind.value, error=str(e))
            raise VersionGenerationError(str(job.id), kind, e) from e

        logger.info(
            "variant_generated",
            job_id=str(job.id),
            kind=kind.value,
            path=version.storage_path,
            size=version.file_size.bytes,
        )
        return version

    def _recompress(
        self, job: ImageJob, version: ImageVersion, data: bytes, directory: str
    ) -> ImageVersion:
        # Single attempt; the result is kept even if still over budget.
        compressed = self.transformer.compress(data, version.format, FALLBACK_QUALITY)
        compressed_name = version.file_name.with_prefix("compressed_")
        path = self.storage.store(compressed, directory, str(compressed_name))
        recompressed = version.with_recompressed(
            storage_path=path,
            byte_length=len(compressed),
            quality=FALLBACK_QUALITY,
            content_hash=content_hash(compressed),
        )
        logger.info(
            "variant_recompressed",
            job_id=str(job.id),
            kind=version.kind.value,
            original_size=version.file_size.bytes,
            compressed_size=recompressed.file_size.bytes,
            within_limit=recompressed.is_within_size_limit(),
        )
        return recompressed

    def _fail(self, job: ImageJob, error: DomainError) -> None:
        logger.error(
            "pipeline_failed",
            job_id=str(job.id),
            code=error.code,
            recoverable=error.recoverable,
            error=str(error),
        )
        stored = self.repository.find_by_id(job.id)
        if stored is None or stored.status != ProcessingStatus.PROCESSING:
            # Cancelled or removed mid-run; its stored state wins.
            return

        job.record_error(error.code, error.message)
        if job.status.can_transition_to(ProcessingStatus.FAILED):
            persist_transition(job, ProcessingStatus.FAILED, self.repository, self.event_bus)
        else:
            self.repository.save(job)
