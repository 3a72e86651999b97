"""
EmployeeDelta and DeltaSummary models for changes detected between batches.
"""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from employee_sync.core.clock import utc_now


class DeltaType(str, Enum):
    NEW = "NEW"          # present now, absent from the previous batch
    UPDATED = "UPDATED"  # present in both, at least one comparable field differs
    DELETED = "DELETED"  # present in the previous batch, absent now


class EmployeeDelta(BaseModel):
    """
    One detected change for one employee in one batch.

    Attributes:
        delta_id: Auto-increment primary key
        employee_id: Employee natural key
        batch_id: Current batch
        previous_batch_id: Batch compared against; None on cold start
        delta_type: NEW, UPDATED or DELETED
        detected_date: When the delta was computed
        previous_*: Values from the previous batch (UPDATED, DELETED)
        current_*: Values from the current batch (NEW, UPDATED)
        changed_fields: Names of fields that differ (UPDATED only)
        change_summary: Human-readable description
    """

    delta_id: int | None = None
    employee_id: int
    batch_id: str = Field(..., min_length=1)
    previous_batch_id: str | None = None
    delta_type: DeltaType
    detected_date: datetime = Field(default_factory=utc_now)

    previous_name: str | None = None
    previous_age: int | None = None
    previous_status: str | None = None
    previous_dob: date | None = None

    current_name: str | None = None
    current_age: int | None = None
    current_status: str | None = None
    current_dob: date | None = None

    changed_fields: list[str] = Field(default_factory=list, validate_default=True)
    change_summary: str | None = None

    @field_validator("changed_fields")
    @classmethod
    def check_changed_fields_consistency(cls, v, info):
        """UPDATED deltas must name at least one field; other types name none."""
        delta_type = info.data.get("delta_type")
        if delta_type == DeltaType.UPDATED and not v:
            raise ValueError("UPDATED delta must list at least one changed field")
        if delta_type in (DeltaType.NEW, DeltaType.DELETED) and v:
            raise ValueError(f"{delta_type.value} delta cannot list changed fields")
        return v

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "employee_id": 1,
                "batch_id": "batch-0002",
                "previous_batch_id": "batch-0001",
                "delta_type": "UPDATED",
                "previous_age": 30,
                "current_age": 31,
                "changed_fields": ["age"],
                "change_summary": "Employee updated: Alice (ID: 1) - age: 30 -> 31"
            }
        }


class DeltaSummary(BaseModel):
    """Per-type delta counts for one batch."""

    batch_id: str
    new_employees: int = 0
    updated_employees: int = 0
    deleted_employees: int = 0

    @property
    def total_deltas(self) -> int:
        return self.new_employees + self.updated_employees + self.deleted_employees
