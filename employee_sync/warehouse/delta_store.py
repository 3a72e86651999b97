"""
Delta store: persistence and queries for detected employee deltas.

changed_fields is stored as a JSON array string.
"""

import json

import psycopg

from employee_sync.core.models.delta import DeltaType, EmployeeDelta
from employee_sync.observability.logger import get_logger
from employee_sync.warehouse.connection import DatabaseConnectionPool

logger = get_logger(__name__)

DELTA_COLUMNS = """
    delta_id, employee_id, batch_id, previous_batch_id, delta_type, detected_date,
    previous_name, previous_age, previous_status, previous_dob,
    current_name, current_age, current_status, current_dob,
    changed_fields, change_summary
"""


def _row_to_delta(row: dict) -> EmployeeDelta:
    data = dict(row)
    changed = data.get("changed_fields")
    data["changed_fields"] = json.loads(changed) if changed else []
    return EmployeeDelta(**data)


class DeltaStore:
    """
    Writes deltas in one transaction and answers per-batch and per-employee queries.
    """

    def __init__(self, pool: DatabaseConnectionPool, batch_size: int = 1000):
        self.pool = pool
        self.batch_size = batch_size

    def save_deltas(self, deltas: list[EmployeeDelta]) -> int:
        """
        Insert deltas in a single transaction.

        Returns:
            Number of deltas inserted

        Raises:
            psycopg.DatabaseError: If the insert fails
        """
        if not deltas:
            return 0

        insert_sql = """
            INSERT INTO employee_delta (
                employee_id, batch_id, previous_batch_id, delta_type, detected_date,
                previous_name, previous_age, previous_status, previous_dob,
                current_name, current_age, current_status, current_dob,
                changed_fields, change_summary
            ) VALUES (
                %(employee_id)s, %(batch_id)s, %(previous_batch_id)s, %(delta_type)s, %(detected_date)s,
                %(previous_name)s, %(previous_age)s, %(previous_status)s, %(previous_dob)s,
                %(current_name)s, %(current_age)s, %(current_status)s, %(current_dob)s,
                %(changed_fields)s, %(change_summary)s
            )
        """
        params = []
        for delta in deltas:
            values = delta.model_dump(exclude={"delta_id"})
            values["delta_type"] = delta.delta_type.value
            values["changed_fields"] = json.dumps(delta.changed_fields) if delta.changed_fields else None
            params.append(values)

        try:
            with self.pool.get_connection() as conn:
                with conn.cursor() as cur:
                    for start in range(0, len(params), self.batch_size):
                        cur.executemany(insert_sql, params[start:start + self.batch_size])
                conn.commit()
        except psycopg.DatabaseError as e:
            logger.error(f"Failed to save deltas: {e}", extra={"record_count": len(deltas)})
            raise

        return len(deltas)

    def delete_by_batch(self, batch_id: str) -> int:
        return self.pool.execute_command(
            "DELETE FROM employee_delta WHERE batch_id = %s",
            (batch_id,),
        )

    def find_by_batch(self, batch_id: str, delta_type: DeltaType | None = None) -> list[EmployeeDelta]:
        if delta_type is None:
            rows = self.pool.execute_query(
                f"SELECT {DELTA_COLUMNS} FROM employee_delta WHERE batch_id = %s ORDER BY delta_id",
                (batch_id,),
            )
        else:
            rows = self.pool.execute_query(
                f"""
                SELECT {DELTA_COLUMNS} FROM employee_delta
                WHERE batch_id = %s AND delta_type = %s
                ORDER BY delta_id
                """,
                (batch_id, delta_type.value),
            )
        return [_row_to_delta(row) for row in rows]

    def find_by_employee(self, employee_id: int) -> list[EmployeeDelta]:
        """All deltas for one employee, newest first."""
        rows = self.pool.execute_query(
            f"""
            SELECT {DELTA_COLUMNS} FROM employee_delta
            WHERE employee_id = %s
            ORDER BY detected_date DESC, delta_id DESC
            """,
            (employee_id,),
        )
        return [_row_to_delta(row) for row in rows]

    def count_by_type(self, batch_id: str) -> dict[str, int]:
        """Grouped count of deltas for a batch, keyed by delta type name."""
        rows = self.pool.execute_query(
            """
            SELECT delta_type, COUNT(*) AS total
            FROM employee_delta
            WHERE batch_id = %s
            GROUP BY delta_type
            """,
            (batch_id,),
        )
        return {row["delta_type"]: row["total"] for row in rows}
