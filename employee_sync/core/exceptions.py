"""
Custom exceptions for the employee sync pipeline.

Every error raised on purpose by this package derives from EmployeeSyncError
so callers can catch the whole family in one place.
"""

from typing import Any


class EmployeeSyncError(Exception):
    """Base exception for all employee sync errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(EmployeeSyncError):
    """Raised when settings are missing or invalid."""

    def __init__(self, message: str, config_path: str | None = None, **kwargs):
        details = kwargs.pop("details", {})
        if config_path:
            details["config_path"] = config_path
        super().__init__(message, details=details, **kwargs)


class DuplicateBatchError(EmployeeSyncError):
    """Raised when a batch id is registered twice."""

    def __init__(self, batch_id: str, **kwargs):
        self.batch_id = batch_id
        super().__init__(
            f"Ingest batch already exists: {batch_id}",
            details={"batch_id": batch_id},
            **kwargs,
        )


class BatchNotFoundError(EmployeeSyncError):
    """Raised when an operation needs a batch that is not registered."""

    def __init__(self, batch_id: str, **kwargs):
        self.batch_id = batch_id
        super().__init__(
            f"Ingest batch not found: {batch_id}",
            details={"batch_id": batch_id},
            **kwargs,
        )


class CsvReadError(EmployeeSyncError):
    """Raised when a CSV source file cannot be read."""

    def __init__(self, message: str, file_path: str | None = None, **kwargs):
        details = kwargs.pop("details", {})
        if file_path:
            details["file_path"] = file_path
        super().__init__(message, details=details, **kwargs)


class IngestError(EmployeeSyncError):
    """Raised inside an ingest run; the run converts it into a FAILED batch."""

    def __init__(self, message: str, batch_id: str | None = None, **kwargs):
        details = kwargs.pop("details", {})
        if batch_id:
            details["batch_id"] = batch_id
        super().__init__(message, details=details, **kwargs)
