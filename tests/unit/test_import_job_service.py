"""
Unit tests for ImportJobService.

Run: pytest tests/unit/test_import_job_service.py -v
"""

import pytest

from exceptions import DatabaseError, ImportJobNotFoundError
from models.menu_upload import ImportJobStatus, ImportOverallStatus, ImportResult
from services.import_job_service import ImportJobService, get_import_job_service


@pytest.fixture
def jobs(mock_db) -> ImportJobService:
    return ImportJobService()


class TestJobLifecycle:
    """Tests for create → processing → completed/failed"""

    def test_create_job_is_pending(self, jobs, restaurant_id):
        job = jobs.create_job(restaurant_id, 120, {"restaurant_id": restaurant_id})

        assert job.status == ImportJobStatus.PENDING
        assert job.item_count == 120

        view = jobs.get_job_result(job.id)
        assert view.job_status == ImportJobStatus.PENDING
        assert view.overall_status is None
        assert view.items_processed == 120

    def test_processing_has_no_overall_status(self, jobs, restaurant_id):
        job = jobs.create_job(restaurant_id, 3, {})

        jobs.mark_processing(job.id)

        view = jobs.get_job_result(job.id)
        assert view.job_status == ImportJobStatus.PROCESSING
        assert view.overall_status is None

    def test_completed_result_is_stable(self, jobs, restaurant_id):
        job = jobs.create_job(restaurant_id, 3, {})
        jobs.complete_job(job.id, ImportResult(
            overall_status=ImportOverallStatus.PARTIAL,
            message="done",
            items_processed=3,
            items_created=2,
            items_errored=1
        ))

        first = jobs.get_job_result(job.id)
        second = jobs.get_job_result(job.id)

        assert first.job_status == ImportJobStatus.COMPLETED
        assert first.overall_status == ImportOverallStatus.PARTIAL
        assert first.items_created == 2
        assert first.model_dump() == second.model_dump()

    def test_failed_batch_marks_job_failed(self, jobs, restaurant_id):
        job = jobs.create_job(restaurant_id, 1, {})

        jobs.complete_job(job.id, ImportResult(
            overall_status=ImportOverallStatus.FAILED,
            message="Menu not found"
        ))

        stored = jobs.get_job(job.id)
        assert stored.status == ImportJobStatus.FAILED
        assert stored.error_message == "Menu not found"

    def test_fail_job(self, jobs, restaurant_id):
        job = jobs.create_job(restaurant_id, 1, {})

        jobs.fail_job(job.id, "Failed to finalize import: boom")

        view = jobs.get_job_result(job.id)
        assert view.job_status == ImportJobStatus.FAILED
        assert view.overall_status == ImportOverallStatus.FAILED
        assert view.message == "Failed to finalize import: boom"


class TestGetJob:
    """Tests for get_job()"""

    def test_unknown_job_raises(self, jobs):
        with pytest.raises(ImportJobNotFoundError) as exc_info:
            jobs.get_job("nope")

        assert exc_info.value.status_code == 404

    def test_scoped_to_restaurant(self, jobs, restaurant_id):
        job = jobs.create_job(restaurant_id, 1, {})

        with pytest.raises(ImportJobNotFoundError):
            jobs.get_job(job.id, "rest-9999")

    def test_database_error_wrapped(self, jobs, mock_supabase, restaurant_id):
        mock_supabase.fail("menu_import_jobs", "insert")

        with pytest.raises(DatabaseError):
            jobs.create_job(restaurant_id, 1, {})

    def test_singleton(self, mock_db):
        assert get_import_job_service() is get_import_job_service()
