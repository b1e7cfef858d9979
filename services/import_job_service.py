"""
Durable records of background menu imports.

Lifecycle: pending → processing → completed | failed.
The finished ImportResult is stored on the job row, so a lookup returns
the same payload a synchronous finalize would have returned.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from config import get_supabase_client
from exceptions import DatabaseError, ImportJobNotFoundError
from models.menu_upload import (
    ImportJob,
    ImportJobStatus,
    ImportOverallStatus,
    ImportResult,
)

logger = structlog.get_logger(__name__)


class ImportJobService:
    """
    Import job storage.

    Jobs live in the menu_import_jobs table.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "menu_import_jobs"

    def _now(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def create_job(self, restaurant_id: str, item_count: int, request: dict[str, Any]) -> ImportJob:
        """
        Record a queued import.

        Args:
            restaurant_id: Owning restaurant
            item_count: Number of eligible items
            request: Serialized FinalizeImportRequest, replayed by the worker
        """
        now = self._now()
        try:
            result = (
                self.db.table(self.table)
                .insert({
                    "restaurant_id": restaurant_id,
                    "status": ImportJobStatus.PENDING.value,
                    "item_count": item_count,
                    "request": request,
                    "result": None,
                    "error_message": None,
                    "created_at": now,
                    "updated_at": now,
                })
                .execute()
            )
        except Exception as e:
            logger.error("create_import_job_failed", restaurant_id=restaurant_id, error=str(e))
            raise DatabaseError("insert", str(e))

        if not result.data:
            raise DatabaseError("insert", "No data returned")

        job = ImportJob(**result.data[0])
        logger.info(
            "import_job_created",
            job_id=job.id,
            restaurant_id=restaurant_id,
            item_count=item_count
        )
        return job

    def get_job(self, job_id: str, restaurant_id: Optional[str] = None) -> ImportJob:
        """
        Raises:
            ImportJobNotFoundError: If job doesn't exist (or belongs to another restaurant)
        """
        try:
            query = self.db.table(self.table).select("*").eq("id", job_id)
            if restaurant_id:
                query = query.eq("restaurant_id", restaurant_id)
            result = query.execute()
        except Exception as e:
            logger.error("get_import_job_failed", job_id=job_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise ImportJobNotFoundError(job_id)
        return ImportJob(**result.data[0])

    def _update(self, job_id: str, changes: dict[str, Any]) -> None:
        try:
            (
                self.db.table(self.table)
                .update({**changes, "updated_at": self._now()})
                .eq("id", job_id)
                .execute()
            )
        except Exception as e:
            logger.error("update_import_job_failed", job_id=job_id, error=str(e))
            raise DatabaseError("update", str(e))

    def mark_processing(self, job_id: str) -> None:
        self._update(job_id, {"status": ImportJobStatus.PROCESSING.value})
        logger.info("import_job_processing", job_id=job_id)

    def complete_job(self, job_id: str, result: ImportResult) -> None:
        """Store the terminal result. A failed batch marks the job failed."""
        status = (
            ImportJobStatus.FAILED
            if result.overall_status == ImportOverallStatus.FAILED
            else ImportJobStatus.COMPLETED
        )
        self._update(job_id, {
            "status": status.value,
            "result": result.model_dump(mode="json"),
            "error_message": result.message if status == ImportJobStatus.FAILED else None,
            "completed_at": self._now(),
        })
        logger.info(
            "import_job_finished",
            job_id=job_id,
            status=status.value,
            overall_status=result.overall_status.value if result.overall_status else None
        )

    def fail_job(self, job_id: str, message: str) -> None:
        self._update(job_id, {
            "status": ImportJobStatus.FAILED.value,
            "error_message": message,
            "completed_at": self._now(),
        })
        logger.error("import_job_failed", job_id=job_id, error=message)

    def get_job_result(self, job_id: str, restaurant_id: Optional[str] = None) -> ImportResult:
        """
        Polling view of a job.

        Non-terminal jobs come back without overall_status. Terminal jobs
        always return the stored result, so repeated lookups agree.
        """
        job = self.get_job(job_id, restaurant_id)

        if job.status in (ImportJobStatus.PENDING, ImportJobStatus.PROCESSING):
            return ImportResult(
                job_id=job.id,
                job_status=job.status,
                message=f"Menu import with {job.item_count} items is {job.status.value}.",
                items_processed=job.item_count
            )

        if job.result:
            result = ImportResult(**job.result)
        else:
            result = ImportResult(
                overall_status=ImportOverallStatus.FAILED,
                message=job.error_message or "Failed to finalize import",
                items_processed=job.item_count
            )
        result.job_id = job.id
        result.job_status = job.status
        return result


# Singleton instance
_import_job_service: Optional[ImportJobService] = None


def get_import_job_service() -> ImportJobService:
    """Get or create import job service instance."""
    global _import_job_service
    if _import_job_service is None:
        _import_job_service = ImportJobService()
    return _import_job_service
