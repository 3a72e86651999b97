"""
Status-driven CSV extract of employee records.

Employees whose status marks them ready are written to a CSV file, then
moved to the extracted status so the next run does not pick them up again.
"""

import threading
import time
from pathlib import Path

from employee_sync.batch.pipeline import generate_batch_id
from employee_sync.batch.writers import CSVWriter
from employee_sync.config import ExtractSettings
from employee_sync.core.mapping.field_mapper import get_field_value
from employee_sync.observability.logger import get_logger

logger = get_logger(__name__)


class EmployeeExtractService:
    """
    Exports ready employees to ``<prefix><batch id>-<epoch millis>.csv``.
    """

    def __init__(self, settings: ExtractSettings, employee_store, writer: CSVWriter | None = None):
        """
        Args:
            settings: The ``extract`` section of Settings
            employee_store: Record store (find_by_status, update_status)
            writer: CSV writer; built from settings when omitted
        """
        self.settings = settings
        self.employee_store = employee_store
        self.writer = writer or CSVWriter(delimiter=settings.delimiter)
        self._lock = threading.Lock()

    def extract(self, extract_dir: str | Path | None = None, status: str | None = None) -> Path | None:
        """
        Write employees with the ready status to a new CSV file.

        Args:
            extract_dir: Output directory (defaults to extract.file_folder)
            status: Status to select (defaults to extract.ready_to_extract_status)

        Returns:
            Path of the written file, or None when nothing was extracted
        """
        with self._lock:
            directory = Path(extract_dir or self.settings.file_folder)
            ready_status = status or self.settings.ready_to_extract_status
            batch_id = generate_batch_id()
            log_extra = {"batch_id": batch_id, "extract_dir": str(directory)}

            logger.info(f"Extracting employees with status: {ready_status}", extra=log_extra)
            employees = self.employee_store.find_by_status(ready_status)
            if not employees:
                logger.info(
                    f"No employee records with status '{ready_status}' found. Skipping export.",
                    extra=log_extra,
                )
                return None

            mapping = self.settings.column_mapping
            columns = list(mapping.keys())
            rows = [
                {column: get_field_value(employee, mapping[column]) or "" for column in columns}
                for employee in employees
            ]

            output = directory / f"{self.settings.file_name_prefix}{batch_id}-{int(time.time() * 1000)}.csv"
            try:
                self.writer.write(output, columns, rows)
            except OSError as e:
                logger.error(
                    f"Failed to write extracted employees to file {output}: {e}",
                    extra=log_extra,
                    exc_info=True,
                )
                return None

            self.employee_store.update_status([e.id for e in employees], self.settings.extracted_status)
            logger.info(
                f"Extracted {len(employees)} employees to file: {output}",
                extra={**log_extra, "record_count": len(employees)},
            )
            return output

    def is_ready(self) -> bool:
        if not self.settings.enabled:
            logger.info("Employee extract is disabled")
            return False
        if not self.settings.file_folder:
            logger.warning("Employee extract is not configured: missing file_folder")
            return False
        try:
            Path(self.settings.file_folder).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Extract directory is not usable: {e}")
            return False
        return True
