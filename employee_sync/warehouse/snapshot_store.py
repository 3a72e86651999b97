"""
Snapshot store: one row per employee per ingest batch.
"""

import psycopg

from employee_sync.core.clock import utc_now
from employee_sync.core.models.employee import Employee
from employee_sync.core.models.snapshot import EmployeeSnapshot
from employee_sync.observability.logger import get_logger
from employee_sync.warehouse.connection import DatabaseConnectionPool

logger = get_logger(__name__)


class SnapshotStore:
    """
    Inserts and reads employee snapshots. Snapshots are never updated.
    """

    def __init__(self, pool: DatabaseConnectionPool, batch_size: int = 1000):
        self.pool = pool
        self.batch_size = batch_size

    def save_snapshots(self, records: list[Employee], batch_id: str) -> list[EmployeeSnapshot]:
        """
        Persist one snapshot per record, stamped with batch_id and the current time.

        Args:
            records: Employees present in the batch
            batch_id: Batch the snapshots belong to

        Returns:
            The snapshots written

        Raises:
            psycopg.DatabaseError: If the insert fails
        """
        snapshot_date = utc_now()
        snapshots = [
            EmployeeSnapshot.from_employee(record, batch_id).model_copy(update={"snapshot_date": snapshot_date})
            for record in records
        ]
        if not snapshots:
            return []

        insert_sql = """
            INSERT INTO employee_snapshot (
                employee_id, batch_id, snapshot_date, name, age, status, dob
            ) VALUES (
                %(employee_id)s, %(batch_id)s, %(snapshot_date)s,
                %(name)s, %(age)s, %(status)s, %(dob)s
            )
        """
        params = [snapshot.model_dump(exclude={"snapshot_id"}) for snapshot in snapshots]

        try:
            with self.pool.get_connection() as conn:
                with conn.cursor() as cur:
                    for start in range(0, len(params), self.batch_size):
                        cur.executemany(insert_sql, params[start:start + self.batch_size])
                conn.commit()
        except psycopg.DatabaseError as e:
            logger.error(
                f"Failed to save snapshots: {e}",
                extra={"batch_id": batch_id, "record_count": len(snapshots)},
            )
            raise

        logger.info(
            f"Saved {len(snapshots)} employee snapshots for batch: {batch_id}",
            extra={"batch_id": batch_id},
        )
        return snapshots

    def find_by_batch(self, batch_id: str) -> list[EmployeeSnapshot]:
        rows = self.pool.execute_query(
            """
            SELECT snapshot_id, employee_id, batch_id, snapshot_date, name, age, status, dob
            FROM employee_snapshot
            WHERE batch_id = %s
            """,
            (batch_id,),
        )
        return [EmployeeSnapshot(**row) for row in rows]

    def find_employee_ids_by_batch(self, batch_id: str) -> set[int]:
        rows = self.pool.execute_query(
            "SELECT employee_id FROM employee_snapshot WHERE batch_id = %s",
            (batch_id,),
        )
        return {row["employee_id"] for row in rows}
