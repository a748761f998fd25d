"""
Unit tests for the job repositories.

Every test runs against both the SQLAlchemy repository (SQLite in memory)
and the in-memory repository.
"""

from datetime import timedelta

import pytest

from imgforge.domain.errors import JobNotFoundError
from imgforge.domain.image_job import BrandContext, ImageJob, ProductContext
from imgforge.domain.image_version import ImageVersion, VariantKind
from imgforge.domain.value_objects import FileName, JobId, ProcessingStatus
from imgforge.services.repository import build_stats


@pytest.fixture(params=["sql_repository", "repository"])
def repo(request):
    return request.getfixturevalue(request.param)


def _job(name: str = "shoe.jpg", **kwargs) -> ImageJob:
    return ImageJob.create(name, f"uploads/{name}", "image/jpeg", 2048, **kwargs)


def _version(job: ImageJob, kind: VariantKind, size: int = 100) -> ImageVersion:
    return ImageVersion.create(
        job.id, kind, f"{job.id}/{kind.value.lower()}/v.webp", FileName("v.webp"), size, "ab" * 32
    )


def _complete(job: ImageJob) -> ImageJob:
    for status in (ProcessingStatus.QUEUED, ProcessingStatus.PROCESSING, ProcessingStatus.COMPLETED):
        job.update_status(status)
    return job


class TestSaveAndLoad:
    """Tests for save and find_by_id."""

    @pytest.mark.unit
    def test_round_trip(self, repo):
        job = _job(
            metadata={"origin": "api"},
            brand_context=BrandContext(name="Acme", background="#000000"),
            product_context=ProductContext(id="SKU-1", attributes={"color": "red"}),
        )
        job.add_version(_version(job, VariantKind.V1_MASTER, 1234))

        repo.save(job)
        loaded = repo.find_by_id(job.id)

        assert loaded.id == job.id
        assert loaded.file_name == job.file_name
        assert loaded.original_path == "uploads/shoe.jpg"
        assert loaded.metadata == {"origin": "api"}
        assert loaded.brand_context.background == "#000000"
        assert loaded.product_context.attributes == {"color": "red"}
        master = loaded.get_version(VariantKind.V1_MASTER)
        assert master.file_size.bytes == 1234
        assert master.content_hash == "ab" * 32

    @pytest.mark.unit
    def test_save_updates_existing(self, repo):
        job = _job()
        repo.save(job)

        job.update_status(ProcessingStatus.QUEUED)
        job.add_version(_version(job, VariantKind.V2_GRID))
        repo.save(job)

        loaded = repo.find_by_id(job.id)
        assert loaded.status == ProcessingStatus.QUEUED
        assert [v.kind for v in loaded.versions] == [VariantKind.V2_GRID]
        assert repo.count() == 1

    @pytest.mark.unit
    def test_save_drops_cleared_versions(self, repo):
        job = _job()
        job.update_status(ProcessingStatus.QUEUED)
        job.update_status(ProcessingStatus.PROCESSING)
        job.add_version(_version(job, VariantKind.V1_MASTER))
        job.update_status(ProcessingStatus.FAILED)
        repo.save(job)

        job.restart()
        repo.save(job)

        assert len(repo.find_by_id(job.id).versions) == 0

    @pytest.mark.unit
    def test_loaded_job_is_detached(self, repo):
        """Changing a loaded job does not change the stored one."""
        job = _job()
        repo.save(job)

        loaded = repo.find_by_id(job.id)
        loaded.update_status(ProcessingStatus.QUEUED)

        assert repo.find_by_id(job.id).status == ProcessingStatus.PENDING

    @pytest.mark.unit
    def test_missing(self, repo):
        assert repo.find_by_id(JobId.generate()) is None
        assert not repo.exists(JobId.generate())


class TestQueries:
    """Tests for listing, counting and deleting."""

    @pytest.mark.unit
    def test_find_by_status_and_count(self, repo):
        pending, queued = _job("a.jpg"), _job("b.jpg")
        queued.update_status(ProcessingStatus.QUEUED)
        repo.save(pending)
        repo.save(queued)

        assert [j.id for j in repo.find_by_status(ProcessingStatus.QUEUED)] == [queued.id]
        assert [j.id for j in repo.find_pending()] == [pending.id]
        assert repo.count() == 2
        assert repo.count(ProcessingStatus.QUEUED) == 1
        assert repo.count(ProcessingStatus.FAILED) == 0

    @pytest.mark.unit
    def test_find_all_newest_first_with_paging(self, repo):
        jobs = [_job(f"img{i}.jpg") for i in range(5)]
        for offset, job in enumerate(jobs):
            job._created_at = job.created_at + timedelta(seconds=offset)
            repo.save(job)

        page = repo.find_all(limit=2, offset=1)

        assert [str(j.file_name) for j in page] == ["img3.jpg", "img2.jpg"]
        assert len(repo.find_all()) == 5

    @pytest.mark.unit
    def test_find_by_file_name(self, repo):
        repo.save(_job("a.jpg"))
        repo.save(_job("a.jpg"))
        repo.save(_job("b.jpg"))

        assert len(repo.find_by_file_name("a.jpg")) == 2
        assert repo.find_by_file_name("c.jpg") == []

    @pytest.mark.unit
    def test_delete(self, repo):
        job = _job()
        job.add_version(_version(job, VariantKind.V1_MASTER))
        repo.save(job)

        assert repo.delete(job.id) is True
        assert repo.delete(job.id) is False
        assert not repo.exists(job.id)

    @pytest.mark.unit
    def test_update_status(self, repo):
        job = _job()
        repo.save(job)

        repo.update_status(job.id, ProcessingStatus.CANCELLED)

        assert repo.find_by_id(job.id).status == ProcessingStatus.CANCELLED
        with pytest.raises(JobNotFoundError):
            repo.update_status(JobId.generate(), ProcessingStatus.QUEUED)


class TestStats:
    """Tests for get_stats."""

    @pytest.mark.unit
    def test_counts_and_average(self, repo):
        repo.save(_job("a.jpg"))
        done = _complete(_job("b.jpg"))
        done._processing_started_at = done.processing_ended_at - timedelta(milliseconds=250)
        repo.save(done)
        failed = _job("c.jpg")
        failed.update_status(ProcessingStatus.CANCELLED)
        repo.save(failed)

        stats = repo.get_stats()

        assert stats.total == 3
        assert stats.pending == 1
        assert stats.completed == 1
        assert stats.cancelled == 1
        assert stats.average_processing_time_ms == pytest.approx(250, abs=1)

    @pytest.mark.unit
    def test_empty(self, repo):
        stats = repo.get_stats()

        assert stats.total == 0
        assert stats.average_processing_time_ms is None

    @pytest.mark.unit
    def test_build_stats_ignores_unmeasured(self):
        stats = build_stats({ProcessingStatus.COMPLETED: 2}, [100.0, None])

        assert stats.completed == 2
        assert stats.average_processing_time_ms == 100.0
