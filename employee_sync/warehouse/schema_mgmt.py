"""
Schema management for the employee sync tables.

Creates and drops the employee, batch, snapshot and delta tables and their
indexes. All DDL is idempotent.
"""

from .connection import DatabaseConnectionPool
from employee_sync.observability.logger import get_logger

logger = get_logger(__name__)

TABLES = ("employee_delta", "employee_snapshot", "employee_ingest_batch", "employee")

DDL_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS employee (
        id BIGINT PRIMARY KEY,
        name VARCHAR(255),
        age INTEGER,
        status VARCHAR(100),
        dob DATE,
        batch_id VARCHAR(255),
        transaction_id BIGINT GENERATED ALWAYS AS IDENTITY UNIQUE,
        created_date TIMESTAMP NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_employee_status ON employee (status)",
    """
    CREATE TABLE IF NOT EXISTS employee_ingest_batch (
        id BIGSERIAL PRIMARY KEY,
        batch_id VARCHAR(255) NOT NULL UNIQUE,
        ingest_date TIMESTAMP NOT NULL,
        source_file VARCHAR(500),
        total_records INTEGER,
        new_records INTEGER,
        updated_records INTEGER,
        status VARCHAR(20) NOT NULL
            CHECK (status IN ('PROCESSING', 'COMPLETED', 'FAILED')),
        error_message VARCHAR(1000)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_ingest_batch_status_date
        ON employee_ingest_batch (status, ingest_date DESC, id DESC)
    """,
    """
    CREATE TABLE IF NOT EXISTS employee_snapshot (
        snapshot_id BIGSERIAL PRIMARY KEY,
        employee_id BIGINT NOT NULL,
        batch_id VARCHAR(255) NOT NULL,
        snapshot_date TIMESTAMP NOT NULL,
        name VARCHAR(255),
        age INTEGER,
        status VARCHAR(100),
        dob DATE,
        CONSTRAINT uq_snapshot_batch_employee UNIQUE (batch_id, employee_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_snapshot_employee ON employee_snapshot (employee_id)",
    """
    CREATE TABLE IF NOT EXISTS employee_delta (
        delta_id BIGSERIAL PRIMARY KEY,
        employee_id BIGINT NOT NULL,
        batch_id VARCHAR(255) NOT NULL,
        previous_batch_id VARCHAR(255),
        delta_type VARCHAR(20) NOT NULL
            CHECK (delta_type IN ('NEW', 'UPDATED', 'DELETED')),
        detected_date TIMESTAMP NOT NULL,
        previous_name VARCHAR(255),
        previous_age INTEGER,
        previous_status VARCHAR(100),
        previous_dob DATE,
        current_name VARCHAR(255),
        current_age INTEGER,
        current_status VARCHAR(100),
        current_dob DATE,
        changed_fields TEXT,
        change_summary TEXT,
        CONSTRAINT uq_delta_batch_employee UNIQUE (batch_id, employee_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_delta_employee ON employee_delta (employee_id, detected_date DESC)",
    "CREATE INDEX IF NOT EXISTS idx_delta_batch_type ON employee_delta (batch_id, delta_type)",
]


class SchemaManager:
    """
    Creates, inspects and drops the employee sync tables.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def create_schema(self) -> None:
        """Create all tables and indexes that do not exist yet."""
        with self.pool.get_connection() as conn:
            with conn.cursor() as cur:
                for statement in DDL_STATEMENTS:
                    cur.execute(statement)
            conn.commit()
        logger.info("Employee sync schema is in place", extra={"tables": list(TABLES)})

    def drop_schema(self) -> None:
        """Drop all tables. Used by tests and local resets."""
        with self.pool.get_connection() as conn:
            with conn.cursor() as cur:
                for table in TABLES:
                    cur.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
            conn.commit()
        logger.warning("Dropped employee sync tables", extra={"tables": list(TABLES)})

    def truncate_all(self) -> None:
        with self.pool.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"TRUNCATE TABLE {', '.join(TABLES)} RESTART IDENTITY")
            conn.commit()

    def missing_tables(self) -> list[str]:
        """
        List tables that do not exist in the current schema.

        Returns:
            Table names, empty when the schema is complete
        """
        query = """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = current_schema() AND table_name = ANY(%s)
        """
        rows = self.pool.execute_query(query, (list(TABLES),))
        present = {row["table_name"] for row in rows}
        return [table for table in TABLES if table not in present]
