"""
EmployeeIngestBatch model tracking one ingestion run.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from employee_sync.core.clock import utc_now


class IngestStatus(str, Enum):
    """Lifecycle of an ingest batch. PROCESSING moves once to a terminal state."""

    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class EmployeeIngestBatch(BaseModel):
    """
    One record per ingestion run.

    Attributes:
        id: Internal sequence, used as the tie-break between equal timestamps
        batch_id: Caller-supplied unique token (UUID)
        ingest_date: When the batch was registered
        source_file: Source label, usually the CSV file name
        total_records: Records mapped from the source
        new_records: Records inserted into the record store
        updated_records: UPDATED deltas detected for this batch
        status: PROCESSING, COMPLETED or FAILED
        error_message: Captured failure message for FAILED batches
    """

    id: int | None = None
    batch_id: str = Field(..., min_length=1, max_length=255)
    ingest_date: datetime = Field(default_factory=utc_now)
    source_file: str | None = None
    total_records: int | None = None
    new_records: int | None = None
    updated_records: int | None = None
    status: IngestStatus = IngestStatus.PROCESSING
    error_message: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (IngestStatus.COMPLETED, IngestStatus.FAILED)

    class Config:
        json_schema_extra = {
            "example": {
                "id": 7,
                "batch_id": "0b5e2f0c-3d8a-4c1e-9d55-2f1f1b1f0c11",
                "source_file": "employees-2025-01-31.csv",
                "total_records": 120,
                "new_records": 4,
                "updated_records": 9,
                "status": "COMPLETED"
            }
        }
