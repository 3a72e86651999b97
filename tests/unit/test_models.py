"""
Unit tests for Pydantic data models.

Tests the employee, snapshot, batch and delta models for validation,
immutability and derived properties.
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from employee_sync.core.clock import utc_now
from employee_sync.core.models import (
    DeltaSummary,
    DeltaType,
    Employee,
    EmployeeDelta,
    EmployeeIngestBatch,
    EmployeeSnapshot,
    IngestResult,
    IngestStatus,
)


class TestEmployee:
    """Tests for Employee model"""

    def test_all_fields_optional(self):
        """An empty Employee is the starting point for row mapping"""
        employee = Employee()
        assert employee.id is None
        assert employee.transaction_id is None

    def test_employee_is_immutable(self):
        """Records cannot be mutated in place"""
        employee = Employee(id=1, name="Alice")
        with pytest.raises(ValidationError):
            employee.name = "Bob"

    def test_model_copy_produces_new_record(self):
        """Updates go through model_copy and leave the original unchanged"""
        employee = Employee(id=1, name="Alice", status="NEW")
        updated = employee.model_copy(update={"status": "READY"})
        assert employee.status == "NEW"
        assert updated.status == "READY"
        assert updated.id == 1


class TestEmployeeSnapshot:
    """Tests for EmployeeSnapshot model"""

    def test_from_employee_copies_comparable_fields(self):
        """Snapshot carries name, age, status and dob plus the batch id"""
        employee = Employee(id=7, name="Alice", age=30, status="ACTIVE", dob=date(1994, 5, 12),
                            batch_id="old-batch", transaction_id=99)
        snapshot = EmployeeSnapshot.from_employee(employee, "batch-2")

        assert snapshot.employee_id == 7
        assert snapshot.batch_id == "batch-2"
        assert snapshot.name == "Alice"
        assert snapshot.age == 30
        assert snapshot.status == "ACTIVE"
        assert snapshot.dob == date(1994, 5, 12)
        assert isinstance(snapshot.snapshot_date, datetime)
        assert snapshot.snapshot_id is None

    def test_empty_batch_id_rejected(self):
        """A snapshot must belong to a batch"""
        with pytest.raises(ValidationError) as exc_info:
            EmployeeSnapshot(employee_id=1, batch_id="")
        assert "batch_id" in str(exc_info.value)

    def test_employee_id_required(self):
        """A snapshot without an employee id is invalid"""
        with pytest.raises(ValidationError):
            EmployeeSnapshot.from_employee(Employee(name="Nobody"), "batch-1")


class TestEmployeeIngestBatch:
    """Tests for EmployeeIngestBatch model"""

    def test_new_batch_is_processing(self):
        """Batches start in PROCESSING"""
        batch = EmployeeIngestBatch(batch_id="b1", source_file="employees.csv")
        assert batch.status == IngestStatus.PROCESSING
        assert batch.is_terminal is False
        assert isinstance(batch.ingest_date, datetime)

    @pytest.mark.parametrize("status", [IngestStatus.COMPLETED, IngestStatus.FAILED])
    def test_terminal_statuses(self, status):
        """COMPLETED and FAILED are terminal"""
        batch = EmployeeIngestBatch(batch_id="b1", status=status)
        assert batch.is_terminal is True

    def test_status_parsed_from_name(self):
        """Status round-trips through its stored name"""
        batch = EmployeeIngestBatch(batch_id="b1", status="COMPLETED")
        assert batch.status is IngestStatus.COMPLETED
        assert batch.status.value == "COMPLETED"

    def test_invalid_status_rejected(self):
        with pytest.raises(ValidationError):
            EmployeeIngestBatch(batch_id="b1", status="DONE")


class TestEmployeeDelta:
    """Tests for EmployeeDelta model"""

    def test_updated_delta_requires_changed_fields(self):
        """An UPDATED delta with nothing changed is rejected"""
        with pytest.raises(ValidationError) as exc_info:
            EmployeeDelta(employee_id=1, batch_id="b2", delta_type=DeltaType.UPDATED, changed_fields=[])
        assert "changed field" in str(exc_info.value)

    def test_updated_delta_default_changed_fields_rejected(self):
        with pytest.raises(ValidationError):
            EmployeeDelta(employee_id=1, batch_id="b2", delta_type=DeltaType.UPDATED)

    def test_new_delta_cannot_list_changed_fields(self):
        with pytest.raises(ValidationError):
            EmployeeDelta(employee_id=1, batch_id="b2", delta_type=DeltaType.NEW, changed_fields=["age"])

    def test_valid_updated_delta(self):
        delta = EmployeeDelta(
            employee_id=1,
            batch_id="b2",
            previous_batch_id="b1",
            delta_type=DeltaType.UPDATED,
            previous_age=30,
            current_age=31,
            changed_fields=["age"],
        )
        assert delta.changed_fields == ["age"]
        assert delta.delta_type.value == "UPDATED"

    def test_cold_start_delta_has_no_previous_batch(self):
        delta = EmployeeDelta(employee_id=1, batch_id="b1", delta_type=DeltaType.NEW)
        assert delta.previous_batch_id is None
        assert delta.changed_fields == []


class TestSummaryAndResult:
    """Tests for DeltaSummary and IngestResult"""

    def test_total_deltas(self):
        summary = DeltaSummary(batch_id="b1", new_employees=3, updated_employees=2, deleted_employees=1)
        assert summary.total_deltas == 6

    def test_empty_summary(self):
        assert DeltaSummary(batch_id="b1").total_deltas == 0

    def test_ingest_result_succeeded(self):
        ok = IngestResult(batch_id="b1", status=IngestStatus.COMPLETED, total_records=2)
        failed = IngestResult(batch_id="b2", status=IngestStatus.FAILED, error_message="boom")
        assert ok.succeeded is True
        assert failed.succeeded is False


class TestTimestamps:
    """Tests for default timestamps"""

    def test_utc_now_is_naive_utc(self):
        now = utc_now()
        assert now.tzinfo is None
        reference = datetime.now(timezone.utc).replace(tzinfo=None)
        assert abs(reference - now) < timedelta(seconds=5)

    def test_model_defaults_are_naive_utc(self):
        before = utc_now()
        batch = EmployeeIngestBatch(batch_id="b1")
        snapshot = EmployeeSnapshot(employee_id=1, batch_id="b1")
        delta = EmployeeDelta(employee_id=1, batch_id="b1", delta_type=DeltaType.NEW)
        after = utc_now()

        for stamp in (batch.ingest_date, snapshot.snapshot_date, delta.detected_date):
            assert stamp.tzinfo is None
            assert before <= stamp <= after
