"""
Pytest configuration and fixtures for employee-sync tests

Unit and e2e tests run against the in-memory stores defined here.
Integration tests run the PostgreSQL stores against a testcontainers
database and are skipped when Docker is not available.
"""
import os
import threading
from datetime import date, datetime, timedelta
from typing import Generator

import psycopg
import pytest

from employee_sync.batch.pipeline import IngestPipeline
from employee_sync.config import ExtractSettings, IngestSettings, Settings
from employee_sync.core.clock import utc_now
from employee_sync.core.delta.detector import DeltaDetector, DetectionOptions
from employee_sync.core.exceptions import DuplicateBatchError
from employee_sync.core.models import (
    DeltaType,
    Employee,
    EmployeeDelta,
    EmployeeIngestBatch,
    EmployeeSnapshot,
    IngestStatus,
)


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full pipeline"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# IN-MEMORY STORES
# =======================

class InMemoryEmployeeStore:
    """Record store backed by a dict. Duplicate ids fail like a primary key."""

    def __init__(self):
        self.employees: dict[int, Employee] = {}
        self.save_calls: list[list[Employee]] = []
        self._sequence = 0
        self._lock = threading.Lock()

    def find_existing_ids(self, ids) -> set[int]:
        return {i for i in ids if i in self.employees}

    def save(self, records: list[Employee]) -> int:
        with self._lock:
            self.save_calls.append(list(records))
            for record in records:
                if record.id in self.employees:
                    raise psycopg.errors.UniqueViolation(
                        f'duplicate key value violates unique constraint "employee_pkey" ({record.id})'
                    )
            for record in records:
                self._sequence += 1
                self.employees[record.id] = record.model_copy(
                    update={"transaction_id": self._sequence, "created_date": utc_now()}
                )
        return len(records)

    def find_by_status(self, status: str) -> list[Employee]:
        return sorted((e for e in self.employees.values() if e.status == status), key=lambda e: e.id)

    def update_status(self, ids, status: str) -> int:
        updated = 0
        for employee_id in set(ids):
            if employee_id in self.employees:
                self.employees[employee_id] = self.employees[employee_id].model_copy(update={"status": status})
                updated += 1
        return updated


class InMemorySnapshotStore:
    def __init__(self):
        self.snapshots: list[EmployeeSnapshot] = []
        self._lock = threading.Lock()

    def save_snapshots(self, records: list[Employee], batch_id: str) -> list[EmployeeSnapshot]:
        snapshots = [EmployeeSnapshot.from_employee(record, batch_id) for record in records]
        with self._lock:
            self.snapshots.extend(snapshots)
        return snapshots

    def find_by_batch(self, batch_id: str) -> list[EmployeeSnapshot]:
        return [s for s in self.snapshots if s.batch_id == batch_id]

    def find_employee_ids_by_batch(self, batch_id: str) -> set[int]:
        return {s.employee_id for s in self.snapshots if s.batch_id == batch_id}


class InMemoryBatchRegistry:
    """
    Batch registry with a clock that advances one second per created batch,
    so batches created in sequence always have increasing ingest dates.
    """

    def __init__(self, start: datetime = datetime(2025, 1, 1, 8, 0, 0)):
        self.batches: dict[str, EmployeeIngestBatch] = {}
        self._clock = start
        self._sequence = 0
        self._lock = threading.Lock()

    def create_batch(self, batch_id: str, source_label: str | None = None,
                     ingest_date: datetime | None = None) -> EmployeeIngestBatch:
        with self._lock:
            if batch_id in self.batches:
                raise DuplicateBatchError(batch_id)
            self._sequence += 1
            if ingest_date is None:
                self._clock += timedelta(seconds=1)
                ingest_date = self._clock
            batch = EmployeeIngestBatch(
                id=self._sequence,
                batch_id=batch_id,
                ingest_date=ingest_date,
                source_file=source_label,
            )
            self.batches[batch_id] = batch
            return batch

    def finalize_batch(self, batch_id, status, total_records=None, new_records=None,
                       updated_records=None, error_message=None):
        batch = self.batches.get(batch_id)
        if batch is None or batch.is_terminal:
            return None
        updated = batch.model_copy(update={
            "status": status,
            "total_records": total_records,
            "new_records": new_records,
            "updated_records": updated_records,
            "error_message": error_message,
        })
        self.batches[batch_id] = updated
        return updated

    def find_batch(self, batch_id: str) -> EmployeeIngestBatch | None:
        return self.batches.get(batch_id)

    def _all(self) -> list[EmployeeIngestBatch]:
        with self._lock:
            return list(self.batches.values())

    def _completed_newest_first(self) -> list[EmployeeIngestBatch]:
        completed = [b for b in self._all() if b.status == IngestStatus.COMPLETED]
        return sorted(completed, key=lambda b: (b.ingest_date, b.id), reverse=True)

    def most_recent_completed_before(self, timestamp: datetime) -> EmployeeIngestBatch | None:
        for batch in self._completed_newest_first():
            if batch.ingest_date < timestamp:
                return batch
        return None

    def most_recent_completed(self) -> EmployeeIngestBatch | None:
        completed = self._completed_newest_first()
        return completed[0] if completed else None

    def list_batches(self, limit: int = 20) -> list[EmployeeIngestBatch]:
        ordered = sorted(self._all(), key=lambda b: (b.ingest_date, b.id), reverse=True)
        return ordered[:limit]


class InMemoryDeltaStore:
    def __init__(self):
        self.deltas: list[EmployeeDelta] = []
        self.save_calls = 0
        self._lock = threading.Lock()

    def save_deltas(self, deltas: list[EmployeeDelta]) -> int:
        with self._lock:
            self.save_calls += 1
            self.deltas.extend(deltas)
        return len(deltas)

    def delete_by_batch(self, batch_id: str) -> int:
        with self._lock:
            before = len(self.deltas)
            self.deltas = [d for d in self.deltas if d.batch_id != batch_id]
            return before - len(self.deltas)

    def find_by_batch(self, batch_id: str, delta_type: DeltaType | None = None) -> list[EmployeeDelta]:
        return [
            d for d in self.deltas
            if d.batch_id == batch_id and (delta_type is None or d.delta_type == delta_type)
        ]

    def find_by_employee(self, employee_id: int) -> list[EmployeeDelta]:
        matches = [d for d in self.deltas if d.employee_id == employee_id]
        return list(reversed(matches))

    def count_by_type(self, batch_id: str) -> dict[str, int]:
        counts: dict[str, int] = {}
        for delta in self.deltas:
            if delta.batch_id == batch_id:
                counts[delta.delta_type.value] = counts.get(delta.delta_type.value, 0) + 1
        return counts


# =======================
# MODEL FACTORIES
# =======================

def _make_snapshot(employee_id: int, name: str | None, age: int | None, status: str | None = "ACTIVE",
                  batch_id: str = "batch-1", dob: date | None = None) -> EmployeeSnapshot:
    return EmployeeSnapshot(
        employee_id=employee_id,
        batch_id=batch_id,
        name=name,
        age=age,
        status=status,
        dob=dob,
    )


@pytest.fixture
def make_snapshot():
    """Factory for EmployeeSnapshot with sensible defaults"""
    return _make_snapshot


# =======================
# STORE FIXTURES
# =======================

@pytest.fixture
def employee_store() -> InMemoryEmployeeStore:
    return InMemoryEmployeeStore()


@pytest.fixture
def snapshot_store() -> InMemorySnapshotStore:
    return InMemorySnapshotStore()


@pytest.fixture
def batch_registry() -> InMemoryBatchRegistry:
    return InMemoryBatchRegistry()


@pytest.fixture
def delta_store() -> InMemoryDeltaStore:
    return InMemoryDeltaStore()


@pytest.fixture
def detector(batch_registry, snapshot_store, delta_store) -> DeltaDetector:
    return DeltaDetector(batch_registry, snapshot_store, delta_store, DetectionOptions())


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing every folder into tmp_path"""
    return Settings(
        ingest=IngestSettings(
            file_folder=str(tmp_path / "ingest"),
            processed_folder=str(tmp_path / "processed"),
            file_name_prefix="employees",
            default_status="NEW",
        ),
        extract=ExtractSettings(file_folder=str(tmp_path / "extract")),
    )


@pytest.fixture
def pipeline(settings, employee_store, snapshot_store, batch_registry, detector) -> IngestPipeline:
    return IngestPipeline(settings, employee_store, snapshot_store, batch_registry, delta_detector=detector)


@pytest.fixture(scope="session")
def test_data_dir() -> str:
    """Path to tests/fixtures"""
    return os.path.join(os.path.dirname(__file__), "fixtures")


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container():
    """
    Start PostgreSQL container for integration tests

    Skips the requesting tests when Docker cannot be reached.
    """
    from testcontainers.postgres import PostgresContainer

    container = PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_sync",
        password="test_password",
        dbname="test_employees",
    )
    try:
        container.start()
    except Exception as e:
        pytest.skip(f"Docker is not available for integration tests: {e}")

    yield container

    container.stop()


@pytest.fixture(scope="session")
def pg_pool(postgres_container) -> Generator:
    """Open connection pool with the employee sync schema created"""
    from employee_sync.warehouse.connection import DatabaseConnectionPool
    from employee_sync.warehouse.schema_mgmt import SchemaManager

    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_employees",
        user="test_sync",
        password="test_password",
        min_size=1,
        max_size=4,
    )
    pool.open()
    SchemaManager(pool).create_schema()

    yield pool

    pool.close()


@pytest.fixture
def clean_pool(pg_pool):
    """Connection pool over empty tables"""
    from employee_sync.warehouse.schema_mgmt import SchemaManager

    SchemaManager(pg_pool).truncate_all()
    return pg_pool
