"""
Delta detection between an ingest batch and the batch before it.

compare_snapshots() holds the set comparison and needs no persistence.
DeltaDetector resolves the previous batch through the batch registry,
loads both snapshot sets, runs the comparison and stores the result.
"""

from collections import Counter
from collections.abc import Iterable
from typing import Any, Optional

from pydantic import BaseModel, Field

from employee_sync.core.exceptions import BatchNotFoundError
from employee_sync.core.models.delta import DeltaSummary, DeltaType, EmployeeDelta
from employee_sync.core.models.ingest_batch import EmployeeIngestBatch
from employee_sync.core.models.snapshot import EmployeeSnapshot
from employee_sync.observability import metrics
from employee_sync.observability.logger import get_logger

logger = get_logger(__name__)

# Fixed order so changed_fields is deterministic
COMPARABLE_FIELDS = ("name", "age", "status", "dob")

# Quoted in change summaries
_TEXT_FIELDS = {"name", "status"}


class DetectionOptions(BaseModel):
    """
    Switches controlling which deltas are produced.

    Attributes:
        ignored_fields: Fields excluded from UPDATED comparison
        detect_new: Emit NEW deltas
        detect_updated: Emit UPDATED deltas
        detect_deleted: Emit DELETED deltas
        detailed_change_logging: Include per-field parts in UPDATED summaries
    """

    ignored_fields: set[str] = Field(default_factory=lambda: {"transaction_id", "created_date"})
    detect_new: bool = True
    detect_updated: bool = True
    detect_deleted: bool = True
    detailed_change_logging: bool = True

    @classmethod
    def from_settings(cls, delta_settings: Any) -> "DetectionOptions":
        return cls(
            ignored_fields=set(delta_settings.ignored_fields),
            detect_new=delta_settings.detect_new,
            detect_updated=delta_settings.detect_updated,
            detect_deleted=delta_settings.detect_deleted,
            detailed_change_logging=delta_settings.detailed_change_logging,
        )

    def compared_fields(self) -> list[str]:
        ignored = {name.replace("_", "").lower() for name in self.ignored_fields}
        return [name for name in COMPARABLE_FIELDS if name not in ignored]


def _render(field_name: str, value: Any) -> str:
    if field_name in _TEXT_FIELDS:
        return f"'{value}'"
    return str(value)


def _new_delta(current: EmployeeSnapshot, batch_id: str, previous_batch_id: str | None) -> EmployeeDelta:
    return EmployeeDelta(
        employee_id=current.employee_id,
        batch_id=batch_id,
        previous_batch_id=previous_batch_id,
        delta_type=DeltaType.NEW,
        current_name=current.name,
        current_age=current.age,
        current_status=current.status,
        current_dob=current.dob,
        change_summary=f"New employee added: {current.name} (ID: {current.employee_id})",
    )


def _deleted_delta(previous: EmployeeSnapshot, batch_id: str, previous_batch_id: str) -> EmployeeDelta:
    return EmployeeDelta(
        employee_id=previous.employee_id,
        batch_id=batch_id,
        previous_batch_id=previous_batch_id,
        delta_type=DeltaType.DELETED,
        previous_name=previous.name,
        previous_age=previous.age,
        previous_status=previous.status,
        previous_dob=previous.dob,
        change_summary=f"Employee deleted: {previous.name} (ID: {previous.employee_id})",
    )


def _updated_delta(
    current: EmployeeSnapshot,
    previous: EmployeeSnapshot,
    batch_id: str,
    previous_batch_id: str,
    options: DetectionOptions,
) -> Optional[EmployeeDelta]:
    """Compare two snapshots of one employee. Returns None when nothing differs."""
    changed_fields = []
    parts = []
    for field_name in options.compared_fields():
        old = getattr(previous, field_name)
        new = getattr(current, field_name)
        if old != new:
            changed_fields.append(field_name)
            parts.append(f"{field_name}: {_render(field_name, old)} -> {_render(field_name, new)}")

    if not changed_fields:
        return None

    summary = f"Employee updated: {current.name} (ID: {current.employee_id})"
    if options.detailed_change_logging:
        summary = f"{summary} - {', '.join(parts)}"

    return EmployeeDelta(
        employee_id=current.employee_id,
        batch_id=batch_id,
        previous_batch_id=previous_batch_id,
        delta_type=DeltaType.UPDATED,
        previous_name=previous.name,
        previous_age=previous.age,
        previous_status=previous.status,
        previous_dob=previous.dob,
        current_name=current.name,
        current_age=current.age,
        current_status=current.status,
        current_dob=current.dob,
        changed_fields=changed_fields,
        change_summary=summary,
    )


def compare_snapshots(
    current: Iterable[EmployeeSnapshot],
    previous: Iterable[EmployeeSnapshot] | None,
    current_batch_id: str,
    previous_batch_id: str | None,
    options: DetectionOptions | None = None,
) -> list[EmployeeDelta]:
    """
    Classify every employee in either snapshot set as NEW, DELETED, UPDATED
    or unchanged.

    With no previous batch (previous_batch_id is None) every current
    employee is NEW. Unchanged employees produce no delta. Output order is
    NEW, DELETED, UPDATED, each by ascending employee id.

    Args:
        current: Snapshots of the batch being examined
        previous: Snapshots of the previous COMPLETED batch
        current_batch_id: Batch id stamped on every delta
        previous_batch_id: Previous batch id, or None on cold start
        options: Detection switches (defaults compare all four fields)

    Returns:
        Deltas in deterministic order
    """
    options = options or DetectionOptions()
    current_map = {snapshot.employee_id: snapshot for snapshot in current}

    if previous_batch_id is None:
        if not options.detect_new:
            return []
        return [_new_delta(current_map[i], current_batch_id, None) for i in sorted(current_map)]

    previous_map = {snapshot.employee_id: snapshot for snapshot in (previous or [])}
    current_ids = set(current_map)
    previous_ids = set(previous_map)

    deltas: list[EmployeeDelta] = []

    if options.detect_new:
        for employee_id in sorted(current_ids - previous_ids):
            deltas.append(_new_delta(current_map[employee_id], current_batch_id, previous_batch_id))

    if options.detect_deleted:
        for employee_id in sorted(previous_ids - current_ids):
            deltas.append(_deleted_delta(previous_map[employee_id], current_batch_id, previous_batch_id))

    if options.detect_updated:
        for employee_id in sorted(current_ids & previous_ids):
            delta = _updated_delta(
                current_map[employee_id],
                previous_map[employee_id],
                current_batch_id,
                previous_batch_id,
                options,
            )
            if delta is not None:
                deltas.append(delta)

    return deltas


def count_by_type(deltas: Iterable[EmployeeDelta]) -> dict[str, int]:
    counts = Counter(delta.delta_type.value for delta in deltas)
    return {delta_type.value: counts.get(delta_type.value, 0) for delta_type in DeltaType}


class DeltaDetector:
    """
    Detects and records deltas for an ingest batch.

    The batch must already be registered and its snapshots written before
    detect_deltas() is called. Re-running detection for a batch replaces
    the deltas stored for it.
    """

    def __init__(self, batch_registry, snapshot_store, delta_store,
                 options: DetectionOptions | None = None):
        """
        Initialize detector

        Args:
            batch_registry: BatchRegistry (or compatible) for batch lookups
            snapshot_store: SnapshotStore for loading snapshot sets
            delta_store: DeltaStore for persisting and querying deltas
            options: Detection switches
        """
        self.batch_registry = batch_registry
        self.snapshot_store = snapshot_store
        self.delta_store = delta_store
        self.options = options or DetectionOptions()

    def detect_deltas(self, batch_id: str) -> list[EmployeeDelta]:
        """
        Compare a batch with the most recent COMPLETED batch before it.

        Raises:
            BatchNotFoundError: If batch_id is not registered
        """
        batch = self.batch_registry.find_batch(batch_id)
        if batch is None:
            raise BatchNotFoundError(batch_id)

        current = self.snapshot_store.find_by_batch(batch_id)
        previous_batch = self.batch_registry.most_recent_completed_before(batch.ingest_date)

        if previous_batch is None:
            logger.info(
                f"No previous batch found. All {len(current)} employees will be marked as NEW.",
                extra={"batch_id": batch_id},
            )
            deltas = compare_snapshots(current, None, batch_id, None, self.options)
        else:
            logger.info(
                f"Comparing with previous batch: {previous_batch.batch_id}",
                extra={"batch_id": batch_id, "previous_batch_id": previous_batch.batch_id},
            )
            previous = self.snapshot_store.find_by_batch(previous_batch.batch_id)
            deltas = compare_snapshots(current, previous, batch_id, previous_batch.batch_id, self.options)

        if self.delta_store.count_by_type(batch_id):
            removed = self.delta_store.delete_by_batch(batch_id)
            logger.info(f"Replaced {removed} previously detected deltas", extra={"batch_id": batch_id})

        counts = count_by_type(deltas)
        if deltas:
            self.delta_store.save_deltas(deltas)
            metrics.record_deltas(counts)
            logger.info(
                f"Detected and saved {len(deltas)} deltas for batch: {batch_id} "
                f"(NEW: {counts['NEW']}, UPDATED: {counts['UPDATED']}, DELETED: {counts['DELETED']})",
                extra={"batch_id": batch_id, **{f"{k.lower()}_count": v for k, v in counts.items()}},
            )
        else:
            logger.info(f"No deltas detected for batch: {batch_id}", extra={"batch_id": batch_id})

        return deltas

    def deltas_for_batch(self, batch_id: str, delta_type: DeltaType | None = None) -> list[EmployeeDelta]:
        return self.delta_store.find_by_batch(batch_id, delta_type)

    def deltas_for_employee(self, employee_id: int) -> list[EmployeeDelta]:
        return self.delta_store.find_by_employee(employee_id)

    def delta_summary(self, batch_id: str) -> DeltaSummary:
        counts = self.delta_store.count_by_type(batch_id)
        return DeltaSummary(
            batch_id=batch_id,
            new_employees=counts.get(DeltaType.NEW.value, 0),
            updated_employees=counts.get(DeltaType.UPDATED.value, 0),
            deleted_employees=counts.get(DeltaType.DELETED.value, 0),
        )

    def most_recent_batch(self) -> EmployeeIngestBatch | None:
        return self.batch_registry.most_recent_completed()
