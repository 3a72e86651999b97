"""
Core data models for the employee sync pipeline.

All models use Pydantic for runtime validation and type safety.
"""

from .delta import DeltaSummary, DeltaType, EmployeeDelta
from .employee import Employee
from .ingest_batch import EmployeeIngestBatch, IngestStatus
from .ingest_result import IngestResult
from .snapshot import EmployeeSnapshot

__all__ = [
    "Employee",
    "EmployeeSnapshot",
    "EmployeeIngestBatch",
    "IngestStatus",
    "EmployeeDelta",
    "DeltaType",
    "DeltaSummary",
    "IngestResult",
]
