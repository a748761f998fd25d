"""
Unit tests for domain errors, events and the VersionSet container.
"""

import pytest

from imgforge.domain.errors import (
    RECOVERABLE_CODES,
    DomainError,
    FileTooLargeError,
    InvalidValueError,
    JobNotFoundError,
    PipelineError,
    PipelineTimeoutError,
    VersionGenerationError,
)
from imgforge.domain.events import EVENT_TYPES, JobStatusChanged
from imgforge.domain.image_version import ImageVersion, VariantKind, VersionSet
from imgforge.domain.value_objects import FileName, JobId, ProcessingStatus


class TestDomainErrors:
    """Tests for the error hierarchy."""

    @pytest.mark.unit
    def test_all_errors_are_domain_errors(self):
        assert issubclass(FileTooLargeError, DomainError)
        assert issubclass(InvalidValueError, ValueError)

    @pytest.mark.unit
    def test_context_is_read_only(self):
        error = FileTooLargeError(60, 50)

        assert error.context == {"file_size": 60, "max_size": 50}
        with pytest.raises(TypeError):
            error.context["file_size"] = 1

    @pytest.mark.unit
    def test_version_generation_error_context(self):
        """Kinds are rendered by value and causes as text."""
        job_id = str(JobId.generate())

        error = VersionGenerationError(job_id, VariantKind.V2_GRID, RuntimeError("encoder crashed"))

        assert error.context == {"job_id": job_id, "kind": "V2_GRID", "cause": "encoder crashed"}
        assert "V2_GRID" in error.message
        assert job_id in error.message
        assert error.recoverable is False

    @pytest.mark.unit
    def test_recoverability_flags(self):
        job_id = str(JobId.generate())

        assert PipelineError(job_id, RuntimeError("x")).recoverable
        assert PipelineTimeoutError(job_id, 5, VariantKind.V3_PDP).recoverable
        assert not JobNotFoundError(job_id).recoverable

    @pytest.mark.unit
    def test_to_dict(self):
        error = JobNotFoundError("abc")

        payload = error.to_dict()

        assert payload["error"] == "JobNotFoundError"
        assert payload["code"] == "JOB_NOT_FOUND"
        assert payload["context"] == {"job_id": "abc"}
        assert payload["recoverable"] is False
        assert "timestamp" in payload

    @pytest.mark.unit
    def test_recoverable_codes(self):
        assert {"PIPELINE_ERROR", "PIPELINE_TIMEOUT", "STORAGE_ERROR"} <= RECOVERABLE_CODES
        assert "VERSION_GENERATION_FAILED" not in RECOVERABLE_CODES
        assert "JOB_INTERRUPTED" not in RECOVERABLE_CODES
        assert "DOMAIN_ERROR" not in RECOVERABLE_CODES


class TestJobStatusChanged:
    """Tests for JobStatusChanged."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "status,terminal,success,failure",
        [
            (ProcessingStatus.QUEUED, False, False, False),
            (ProcessingStatus.COMPLETED, True, True, False),
            (ProcessingStatus.FAILED, True, False, True),
            (ProcessingStatus.CANCELLED, True, False, False),
        ],
    )
    def test_flags(self, status, terminal, success, failure):
        event = JobStatusChanged(JobId.generate(), ProcessingStatus.PROCESSING, status)

        assert event.is_terminal_event is terminal
        assert event.is_successful_completion is success
        assert event.is_failure is failure

    @pytest.mark.unit
    def test_to_dict_and_identity(self):
        job_id = JobId.generate()
        first = JobStatusChanged(job_id, ProcessingStatus.PENDING, ProcessingStatus.QUEUED)
        second = JobStatusChanged(job_id, ProcessingStatus.PENDING, ProcessingStatus.QUEUED)

        payload = first.to_dict()

        assert payload["event_type"] == "JobStatusChanged"
        assert payload["job_id"] == str(job_id)
        assert payload["new_status"] == "QUEUED"
        assert first.event_id != second.event_id

    @pytest.mark.unit
    def test_event_types_is_closed(self):
        assert EVENT_TYPES == (JobStatusChanged,)


class TestVersionSet:
    """Tests for VersionSet."""

    @pytest.mark.unit
    def test_one_slot_per_kind(self):
        job_id = JobId.generate()
        first = ImageVersion.create(job_id, VariantKind.V4_THUMBNAIL, "a", FileName("a.webp"), 1)
        second = ImageVersion.create(job_id, VariantKind.V4_THUMBNAIL, "b", FileName("b.webp"), 2)

        versions = VersionSet().with_version(first).with_version(second)

        assert len(versions) == 1
        assert versions.get(VariantKind.V4_THUMBNAIL) is second
        assert versions.as_dict() == {VariantKind.V4_THUMBNAIL: second}

    @pytest.mark.unit
    def test_with_version_leaves_original(self):
        empty = VersionSet()
        version = ImageVersion.create(
            JobId.generate(), VariantKind.V1_MASTER, "a", FileName("a.webp")
        )

        empty.with_version(version)

        assert len(empty) == 0
        assert list(empty) == []
