"""
Employee record store.

Plain inserts and status updates against the ``employee`` table. Existing
rows are never overwritten by ingest; a duplicate id surfaces as a
psycopg.errors.UniqueViolation for the caller to fail the batch on.
"""

from collections.abc import Iterable

import psycopg

from employee_sync.core.models.employee import Employee
from employee_sync.observability.logger import get_logger
from employee_sync.warehouse.connection import DatabaseConnectionPool

logger = get_logger(__name__)

EMPLOYEE_COLUMNS = "id, name, age, status, dob, batch_id, transaction_id, created_date"


class EmployeeStore:
    """
    Persists and retrieves Employee records.
    """

    def __init__(self, pool: DatabaseConnectionPool, batch_size: int = 1000):
        """
        Args:
            pool: Database connection pool
            batch_size: Ids per IN-list query and rows per executemany call
        """
        self.pool = pool
        self.batch_size = batch_size

    def find_existing_ids(self, ids: Iterable[int]) -> set[int]:
        """
        Return the subset of ids already present in the store.
        """
        id_list = sorted({i for i in ids if i is not None})
        existing: set[int] = set()

        for start in range(0, len(id_list), self.batch_size):
            chunk = id_list[start:start + self.batch_size]
            rows = self.pool.execute_query(
                "SELECT id FROM employee WHERE id = ANY(%s)",
                (chunk,),
            )
            existing.update(row["id"] for row in rows)

        return existing

    def save(self, records: list[Employee]) -> int:
        """
        Insert new employee records.

        Returns:
            Number of records inserted

        Raises:
            psycopg.DatabaseError: If the insert fails (including duplicate ids)
        """
        if not records:
            return 0

        insert_sql = """
            INSERT INTO employee (id, name, age, status, dob, batch_id)
            VALUES (%(id)s, %(name)s, %(age)s, %(status)s, %(dob)s, %(batch_id)s)
        """
        params = [
            {
                "id": record.id,
                "name": record.name,
                "age": record.age,
                "status": record.status,
                "dob": record.dob,
                "batch_id": record.batch_id,
            }
            for record in records
        ]

        try:
            with self.pool.get_connection() as conn:
                with conn.cursor() as cur:
                    for start in range(0, len(params), self.batch_size):
                        cur.executemany(insert_sql, params[start:start + self.batch_size])
                conn.commit()
        except psycopg.DatabaseError as e:
            logger.error(f"Failed to insert employees: {e}", extra={"record_count": len(records)})
            raise

        logger.debug(f"Inserted {len(records)} employees")
        return len(records)

    def find_by_id(self, employee_id: int) -> Employee | None:
        rows = self.pool.execute_query(
            f"SELECT {EMPLOYEE_COLUMNS} FROM employee WHERE id = %s",
            (employee_id,),
        )
        return Employee(**rows[0]) if rows else None

    def find_by_status(self, status: str) -> list[Employee]:
        rows = self.pool.execute_query(
            f"SELECT {EMPLOYEE_COLUMNS} FROM employee WHERE status = %s ORDER BY id",
            (status,),
        )
        return [Employee(**row) for row in rows]

    def update_status(self, ids: Iterable[int], status: str) -> int:
        """
        Set status on the given employees.

        Returns:
            Number of rows updated
        """
        id_list = sorted(set(ids))
        if not id_list:
            return 0

        updated = 0
        for start in range(0, len(id_list), self.batch_size):
            chunk = id_list[start:start + self.batch_size]
            updated += self.pool.execute_command(
                "UPDATE employee SET status = %s WHERE id = ANY(%s)",
                (status, chunk),
            )

        logger.info(f"Updated status to {status} for {updated} employees")
        return updated

    def count(self) -> int:
        rows = self.pool.execute_query("SELECT COUNT(*) AS total FROM employee")
        return rows[0]["total"]
