"""
IngestResult model: outcome of one ingest run (ephemeral, not persisted).
"""

from pydantic import BaseModel

from .ingest_batch import IngestStatus


class IngestResult(BaseModel):
    """
    Returned by the ingest orchestrator for each batch it runs.

    Attributes:
        batch_id: Batch the run was recorded under
        source_file: Source label (file name)
        total_records: Mapped records in the source
        new_records: Records inserted into the record store
        updated_records: UPDATED deltas detected
        status: Final batch status
        error_message: Failure message when status is FAILED
    """

    batch_id: str
    source_file: str | None = None
    total_records: int = 0
    new_records: int = 0
    updated_records: int = 0
    status: IngestStatus
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == IngestStatus.COMPLETED
