"""
Ingest pipeline orchestration.

Coordinates the flow for one source file:
read -> map -> dedup against store -> save new -> snapshot all -> detect deltas -> finalize
"""

import shutil
import threading
import time
import uuid
from collections.abc import Callable, Iterable
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from employee_sync.batch.readers import CSVReader
from employee_sync.config import Settings
from employee_sync.core.delta.detector import DeltaDetector, DetectionOptions
from employee_sync.core.exceptions import IngestError
from employee_sync.core.mapping.field_mapper import map_row
from employee_sync.core.models import DeltaType, Employee, IngestResult, IngestStatus
from employee_sync.observability import metrics
from employee_sync.observability.logger import get_logger, log_operation
from employee_sync.warehouse.batch_registry import truncate_error_message

logger = get_logger(__name__)


def generate_batch_id() -> str:
    return str(uuid.uuid4())


def processed_file_name(file_path: Path, millis: int | None = None) -> str:
    """``employees.csv`` -> ``employees-<epoch millis>.csv``"""
    millis = int(time.time() * 1000) if millis is None else millis
    return f"{file_path.stem}-{millis}{file_path.suffix}"


def move_processed_file(file_path: Path, processed_dir: Path) -> Path | None:
    """
    Move a completed source file into processed_dir with a timestamp suffix.

    Returns:
        The new path, or None if the file could not be moved
    """
    target = processed_dir / processed_file_name(file_path)
    if not file_path.exists():
        logger.warning(f"Source file {file_path} does not exist at move time. Skipping move.")
        return None

    try:
        shutil.move(str(file_path), str(target))
    except OSError as e:
        logger.error(f"Failed to move processed file to {target}: {e}", exc_info=True)
        return None

    logger.info(f"Moved processed file to {target}", extra={"target_file": str(target)})
    return target


class IngestPipeline:
    """
    Drives ingest runs against the record, snapshot and batch stores.

    Each run is recorded as its own batch. Failures inside a run finalize
    that batch as FAILED and are returned in the IngestResult, so one bad
    file never stops a directory sweep. Calls for the same batch id are
    serialised; different batch ids run independently.
    """

    def __init__(
        self,
        settings: Settings,
        employee_store,
        snapshot_store,
        batch_registry,
        delta_detector: DeltaDetector | None = None,
        reader: CSVReader | None = None,
    ):
        """
        Initialize ingest pipeline.

        Args:
            settings: Application settings (ingest and delta sections are used)
            employee_store: Record store (find_existing_ids, save)
            snapshot_store: Snapshot store (save_snapshots, find_by_batch)
            batch_registry: Batch registry (create_batch, finalize_batch, ...)
            delta_detector: Detector; required while delta detection is enabled
            reader: CSV reader; built from ingest settings when omitted
        """
        self.settings = settings
        self.employee_store = employee_store
        self.snapshot_store = snapshot_store
        self.batch_registry = batch_registry
        self.delta_detector = delta_detector
        self.reader = reader or CSVReader(delimiter=settings.ingest.delimiter)

        self._locks: dict[str, threading.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_pool(cls, settings: Settings, pool) -> "IngestPipeline":
        """Wire the pipeline to PostgreSQL-backed stores sharing one pool."""
        from employee_sync.warehouse.batch_registry import BatchRegistry
        from employee_sync.warehouse.delta_store import DeltaStore
        from employee_sync.warehouse.employee_store import EmployeeStore
        from employee_sync.warehouse.snapshot_store import SnapshotStore

        batch_size = settings.delta.performance.batch_size
        batch_registry = BatchRegistry(pool)
        snapshot_store = SnapshotStore(pool, batch_size=batch_size)
        detector = DeltaDetector(
            batch_registry,
            snapshot_store,
            DeltaStore(pool, batch_size=batch_size),
            DetectionOptions.from_settings(settings.delta),
        )
        return cls(
            settings,
            EmployeeStore(pool, batch_size=batch_size),
            snapshot_store,
            batch_registry,
            delta_detector=detector,
        )

    @contextmanager
    def _batch_lock(self, batch_id: str):
        with self._locks_guard:
            lock = self._locks.setdefault(batch_id, threading.Lock())
            self._lock_users[batch_id] = self._lock_users.get(batch_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._locks_guard:
                self._lock_users[batch_id] -= 1
                if not self._lock_users[batch_id]:
                    del self._lock_users[batch_id]
                    del self._locks[batch_id]

    def _detector(self, batch_id: str) -> DeltaDetector:
        if self.delta_detector is None:
            raise IngestError("Delta detection is enabled but no delta detector is configured", batch_id=batch_id)
        return self.delta_detector

    # =======================
    # INGEST
    # =======================

    def ingest(
        self,
        rows: Iterable[dict[str, Any]],
        batch_id: str,
        source_label: str | None = None,
    ) -> IngestResult:
        """
        Ingest already-read rows as one batch.

        Args:
            rows: Rows of column name -> cell value
            batch_id: Caller-unique batch id (see generate_batch_id)
            source_label: Label stored on the batch, usually the file name

        Returns:
            IngestResult with the final batch status and counts

        Raises:
            DuplicateBatchError: If batch_id is already registered
        """
        return self._run(batch_id, source_label, lambda: list(rows))

    def _run(
        self,
        batch_id: str,
        source_label: str | None,
        load_rows: Callable[[], list[dict[str, Any]]],
    ) -> IngestResult:
        with self._batch_lock(batch_id):
            self.batch_registry.create_batch(batch_id, source_label)
            start = time.time()

            total = new = updated = 0
            try:
                rows = load_rows()
                records = self._map_rows(rows, batch_id)
                total = len(records)

                existing_ids = self.employee_store.find_existing_ids(r.id for r in records)
                new_records = [r for r in records if r.id not in existing_ids]
                if new_records:
                    self.employee_store.save(new_records)
                    logger.info(
                        f"Ingested {len(new_records)} new employees",
                        extra={"batch_id": batch_id, "source_file": source_label},
                    )
                else:
                    logger.info("No new employees to ingest", extra={"batch_id": batch_id})
                if existing_ids:
                    logger.info(
                        f"Skipped {len(existing_ids)} existing employees",
                        extra={"batch_id": batch_id, "existing_count": len(existing_ids)},
                    )
                new = len(new_records)

                snapshots = self.snapshot_store.save_snapshots(records, batch_id)
                metrics.record_snapshots_written(len(snapshots))

                if self.settings.delta.enabled:
                    detector = self._detector(batch_id)
                    detector.detect_deltas(batch_id)
                    summary = detector.delta_summary(batch_id)
                    updated = summary.updated_employees
                    self._check_notification_thresholds(batch_id, summary)
                else:
                    logger.info("Delta detection disabled; skipping", extra={"batch_id": batch_id})

            except Exception as e:
                logger.error(
                    f"Ingest failed for batch {batch_id}: {e}",
                    extra={"batch_id": batch_id, "source_file": source_label},
                    exc_info=True,
                )
                message = truncate_error_message(f"{type(e).__name__}: {e}")
                self.batch_registry.finalize_batch(
                    batch_id, IngestStatus.FAILED, total, new, 0, message
                )
                metrics.record_batch_finalized(
                    IngestStatus.FAILED.value, 0, 0, time.time() - start
                )
                return IngestResult(
                    batch_id=batch_id,
                    source_file=source_label,
                    total_records=total,
                    new_records=new,
                    updated_records=0,
                    status=IngestStatus.FAILED,
                    error_message=message,
                )

            self.batch_registry.finalize_batch(batch_id, IngestStatus.COMPLETED, total, new, updated)
            metrics.record_batch_finalized(
                IngestStatus.COMPLETED.value, new, total - new, time.time() - start
            )
            logger.info(
                f"Batch {batch_id} completed: total={total}, new={new}, updated={updated}",
                extra={"batch_id": batch_id, "total_records": total, "new_records": new,
                       "updated_records": updated},
            )
            return IngestResult(
                batch_id=batch_id,
                source_file=source_label,
                total_records=total,
                new_records=new,
                updated_records=updated,
                status=IngestStatus.COMPLETED,
            )

    def _map_rows(self, rows: list[dict[str, Any]], batch_id: str) -> list[Employee]:
        """
        Map raw rows to employees stamped with batch_id and the default status.

        Rows without an id are dropped. When an id repeats, the last row wins.
        """
        ingest = self.settings.ingest
        by_id: dict[int, Employee] = {}
        dropped = 0

        for row in rows:
            record = map_row(row, ingest.column_mapping, ingest.preferred_date_format, batch_id)
            update: dict[str, Any] = {"batch_id": batch_id}
            if ingest.default_status:
                update["status"] = ingest.default_status
            record = record.model_copy(update=update)

            if record.id is None:
                dropped += 1
                continue
            by_id[record.id] = record

        if dropped:
            logger.warning(
                f"Dropped {dropped} rows without an employee id",
                extra={"batch_id": batch_id, "dropped_count": dropped},
            )
        duplicates = len(rows) - dropped - len(by_id)
        if duplicates:
            logger.warning(
                f"{duplicates} rows repeated an employee id; the last occurrence was kept",
                extra={"batch_id": batch_id, "duplicate_count": duplicates},
            )

        return list(by_id.values())

    def _check_notification_thresholds(self, batch_id: str, summary) -> None:
        notifications = self.settings.delta.notifications
        if not notifications.enabled:
            return

        thresholds = (
            (DeltaType.NEW, summary.new_employees, notifications.new_employees_threshold),
            (DeltaType.UPDATED, summary.updated_employees, notifications.updated_employees_threshold),
            (DeltaType.DELETED, summary.deleted_employees, notifications.deleted_employees_threshold),
        )
        for delta_type, count, threshold in thresholds:
            if count >= threshold:
                logger.warning(
                    f"{delta_type.value} delta count {count} reached threshold {threshold}",
                    extra={
                        "batch_id": batch_id,
                        "delta_type": delta_type.value,
                        "delta_count": count,
                        "threshold": threshold,
                        "recipients": notifications.recipients,
                    },
                )

    # =======================
    # FILES AND DIRECTORIES
    # =======================

    def ingest_file(self, file_path: str | Path, processed_dir: str | Path | None = None) -> IngestResult:
        """
        Ingest one CSV file under a fresh batch id.

        The file is moved to processed_dir only when the batch COMPLETED.
        A file that cannot be read produces a FAILED batch.
        """
        path = Path(file_path)
        processed = Path(processed_dir or self.settings.ingest.processed_folder)
        batch_id = generate_batch_id()

        with log_operation("Ingest file", logger=logger, source_file=path.name, batch_id=batch_id):
            result = self._run(batch_id, path.name, lambda: self.reader.read(path))

        if result.status == IngestStatus.COMPLETED:
            processed.mkdir(parents=True, exist_ok=True)
            move_processed_file(path, processed)
        else:
            logger.warning(
                f"Leaving {path.name} in place after failed batch {batch_id}",
                extra={"batch_id": batch_id, "source_file": path.name},
            )
        return result

    def list_source_files(self, ingest_dir: str | Path | None = None) -> list[Path]:
        """``<prefix>*.csv`` files in ingest_dir, in name order."""
        directory = Path(ingest_dir or self.settings.ingest.file_folder)
        prefix = self.settings.ingest.file_name_prefix
        if not directory.is_dir():
            logger.warning(f"Ingest directory does not exist: {directory}")
            return []
        return sorted(
            p for p in directory.iterdir()
            if p.is_file() and p.name.startswith(prefix) and p.name.endswith(".csv")
        )

    def ingest_directory(
        self,
        ingest_dir: str | Path | None = None,
        processed_dir: str | Path | None = None,
    ) -> list[IngestResult]:
        """
        Ingest every matching file in a directory, each as its own batch.

        Returns:
            One IngestResult per file, in processing order
        """
        directory = Path(ingest_dir or self.settings.ingest.file_folder)
        processed = Path(processed_dir or self.settings.ingest.processed_folder)
        processed.mkdir(parents=True, exist_ok=True)

        files = self.list_source_files(directory)
        logger.info(
            f"Starting ingest sweep of {directory}: {len(files)} files",
            extra={"ingest_dir": str(directory), "file_count": len(files)},
        )

        results = [self.ingest_file(path, processed) for path in files]

        failed = sum(1 for r in results if r.status == IngestStatus.FAILED)
        logger.info(
            f"Ingest sweep of {directory} finished: {len(results) - failed} completed, {failed} failed",
            extra={"ingest_dir": str(directory), "failed_count": failed},
        )
        return results

    def is_ready(self) -> bool:
        """Check the ingest settings are present and both directories can be created."""
        ingest = self.settings.ingest
        if not ingest.enabled:
            logger.info("Employee ingest is disabled")
            return False
        if not ingest.file_folder or not ingest.processed_folder:
            logger.warning("Employee ingest is not configured: missing file_folder or processed_folder")
            return False

        try:
            Path(ingest.file_folder).mkdir(parents=True, exist_ok=True)
            Path(ingest.processed_folder).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Ingest directories are not usable: {e}")
            return False

        return self.delta_detector is not None
