"""
Batch registry: lifecycle and lookup of ingest batches.

A batch is created PROCESSING and finalized once to COMPLETED or FAILED.
Only COMPLETED batches are candidates for "previous batch" lookups. Ties
on ingest_date are broken by the internal sequence id, highest first.
"""

from datetime import datetime

from psycopg import errors

from employee_sync.core.clock import utc_now
from employee_sync.core.exceptions import DuplicateBatchError
from employee_sync.core.models.ingest_batch import EmployeeIngestBatch, IngestStatus
from employee_sync.observability.logger import get_logger
from employee_sync.warehouse.connection import DatabaseConnectionPool

logger = get_logger(__name__)

MAX_ERROR_MESSAGE_LENGTH = 1000

BATCH_COLUMNS = """
    id, batch_id, ingest_date, source_file, total_records,
    new_records, updated_records, status, error_message
"""


def truncate_error_message(message: str | None) -> str | None:
    if message is None:
        return None
    return message[:MAX_ERROR_MESSAGE_LENGTH]


class BatchRegistry:
    """
    Tracks ingest batches in ``employee_ingest_batch``.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def create_batch(self, batch_id: str, source_label: str | None = None) -> EmployeeIngestBatch:
        """
        Register a new batch with status PROCESSING and the current time.

        Raises:
            DuplicateBatchError: If batch_id is already registered
        """
        logger.info(
            f"Creating ingest batch: {batch_id} for file: {source_label}",
            extra={"batch_id": batch_id, "source_file": source_label},
        )
        query = f"""
            INSERT INTO employee_ingest_batch (batch_id, ingest_date, source_file, status)
            VALUES (%s, %s, %s, %s)
            RETURNING {BATCH_COLUMNS}
        """
        try:
            rows = self.pool.execute_query(
                query,
                (batch_id, utc_now(), source_label, IngestStatus.PROCESSING.value),
            )
        except errors.UniqueViolation as e:
            raise DuplicateBatchError(batch_id, original_error=e) from e

        return EmployeeIngestBatch(**rows[0])

    def finalize_batch(
        self,
        batch_id: str,
        status: IngestStatus,
        total_records: int | None = None,
        new_records: int | None = None,
        updated_records: int | None = None,
        error_message: str | None = None,
    ) -> EmployeeIngestBatch | None:
        """
        Move a PROCESSING batch to a terminal status with its counts.

        An unknown batch, or one that is already terminal, is logged and
        left unchanged.

        Returns:
            The updated batch, or None when nothing was changed
        """
        logger.info(
            f"Updating ingest batch: {batch_id} with status: {status.value}",
            extra={"batch_id": batch_id, "status": status.value},
        )
        query = f"""
            UPDATE employee_ingest_batch
            SET status = %s,
                total_records = %s,
                new_records = %s,
                updated_records = %s,
                error_message = %s
            WHERE batch_id = %s AND status = %s
            RETURNING {BATCH_COLUMNS}
        """
        rows = self.pool.execute_query(
            query,
            (
                status.value,
                total_records,
                new_records,
                updated_records,
                truncate_error_message(error_message),
                batch_id,
                IngestStatus.PROCESSING.value,
            ),
        )
        if rows:
            return EmployeeIngestBatch(**rows[0])

        existing = self.find_batch(batch_id)
        if existing is None:
            logger.warning(f"Batch not found for update: {batch_id}", extra={"batch_id": batch_id})
        else:
            logger.warning(
                f"Batch {batch_id} is already {existing.status.value}; not changing it to {status.value}",
                extra={"batch_id": batch_id, "status": existing.status.value},
            )
        return None

    def find_batch(self, batch_id: str) -> EmployeeIngestBatch | None:
        rows = self.pool.execute_query(
            f"SELECT {BATCH_COLUMNS} FROM employee_ingest_batch WHERE batch_id = %s",
            (batch_id,),
        )
        return EmployeeIngestBatch(**rows[0]) if rows else None

    def most_recent_completed_before(self, timestamp: datetime) -> EmployeeIngestBatch | None:
        """Most recent COMPLETED batch with ingest_date strictly before timestamp."""
        rows = self.pool.execute_query(
            f"""
            SELECT {BATCH_COLUMNS}
            FROM employee_ingest_batch
            WHERE status = %s AND ingest_date < %s
            ORDER BY ingest_date DESC, id DESC
            LIMIT 1
            """,
            (IngestStatus.COMPLETED.value, timestamp),
        )
        return EmployeeIngestBatch(**rows[0]) if rows else None

    def most_recent_completed(self) -> EmployeeIngestBatch | None:
        rows = self.pool.execute_query(
            f"""
            SELECT {BATCH_COLUMNS}
            FROM employee_ingest_batch
            WHERE status = %s
            ORDER BY ingest_date DESC, id DESC
            LIMIT 1
            """,
            (IngestStatus.COMPLETED.value,),
        )
        return EmployeeIngestBatch(**rows[0]) if rows else None

    def list_batches(self, limit: int = 20) -> list[EmployeeIngestBatch]:
        """List batches of any status, newest first."""
        rows = self.pool.execute_query(
            f"""
            SELECT {BATCH_COLUMNS}
            FROM employee_ingest_batch
            ORDER BY ingest_date DESC, id DESC
            LIMIT %s
            """,
            (limit,),
        )
        return [EmployeeIngestBatch(**row) for row in rows]
