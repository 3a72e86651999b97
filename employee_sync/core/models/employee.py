"""
Employee model representing one row of the employee roster.
"""

from datetime import date, datetime

from pydantic import BaseModel


class Employee(BaseModel):
    """
    An employee as known to the record store.

    Records are immutable; each pipeline stage produces a new copy
    (raw row -> mapped record -> persisted record -> snapshot).

    Attributes:
        id: Natural key, globally unique
        name: Display name
        age: Age in years
        status: Free-text lifecycle tag (e.g. "NEW", "READY", "EXTRACTED")
        dob: Date of birth
        batch_id: Ingest batch that created or last touched this row
        transaction_id: System-assigned sequence, never ingested from CSV
        created_date: System-assigned insert timestamp
    """

    id: int | None = None
    name: str | None = None
    age: int | None = None
    status: str | None = None
    dob: date | None = None
    batch_id: str | None = None
    transaction_id: int | None = None
    created_date: datetime | None = None

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "id": 1001,
                "name": "Alice",
                "age": 30,
                "status": "NEW",
                "dob": "1994-05-12",
                "batch_id": "0b5e2f0c-3d8a-4c1e-9d55-2f1f1b1f0c11"
            }
        }
