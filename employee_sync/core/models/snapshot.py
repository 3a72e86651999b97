"""
EmployeeSnapshot model: a point-in-time copy of an employee's comparable fields.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field

from employee_sync.core.clock import utc_now

from .employee import Employee


class EmployeeSnapshot(BaseModel):
    """
    What an employee looked like in one ingest batch.

    One snapshot exists per employee per batch, whether or not the employee
    changed. Snapshots are never mutated.

    Attributes:
        snapshot_id: Auto-increment primary key
        employee_id: Employee natural key
        batch_id: Batch the snapshot belongs to
        snapshot_date: When the snapshot was taken
        name, age, status, dob: Comparable field values
    """

    snapshot_id: int | None = None
    employee_id: int
    batch_id: str = Field(..., min_length=1)
    snapshot_date: datetime = Field(default_factory=utc_now)
    name: str | None = None
    age: int | None = None
    status: str | None = None
    dob: date | None = None

    class Config:
        frozen = True

    @classmethod
    def from_employee(cls, employee: Employee, batch_id: str) -> "EmployeeSnapshot":
        """Build a snapshot of an employee, stamped with batch_id and the current time."""
        return cls(
            employee_id=employee.id,
            batch_id=batch_id,
            name=employee.name,
            age=employee.age,
            status=employee.status,
            dob=employee.dob,
        )
