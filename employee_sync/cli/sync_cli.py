"""
Command-line interface for employee sync.

Usage:
    employee-sync [--config FILE] init-db
    employee-sync [--config FILE] ingest [--dir DIR] [--processed-dir DIR]
    employee-sync [--config FILE] ingest-file PATH
    employee-sync [--config FILE] detect BATCH_ID
    employee-sync [--config FILE] summary [BATCH_ID]
    employee-sync [--config FILE] extract [--dir DIR]
    employee-sync [--config FILE] batches [--limit N]
"""

import argparse
import json
import sys

import psycopg

from employee_sync.batch.extract import EmployeeExtractService
from employee_sync.batch.pipeline import IngestPipeline
from employee_sync.config import Settings, SettingsLoader
from employee_sync.core.exceptions import EmployeeSyncError
from employee_sync.core.models import IngestStatus
from employee_sync.observability.logger import configure_logging, get_logger
from employee_sync.observability.metrics import start_metrics_server
from employee_sync.warehouse.connection import DatabaseConnectionPool
from employee_sync.warehouse.employee_store import EmployeeStore
from employee_sync.warehouse.schema_mgmt import SchemaManager

logger = get_logger(__name__)


def load_cli_settings(args) -> Settings:
    """
    Load settings from --config and apply any --db-* flags on top.
    """
    settings = SettingsLoader(args.config).load()

    overrides = {
        "host": args.db_host,
        "port": args.db_port,
        "name": args.db_name,
        "user": args.db_user,
        "password": args.db_password,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if overrides:
        settings = settings.model_copy(
            update={"database": settings.database.model_copy(update=overrides)}
        )
    return settings


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, default=str))


def init_db_command(args, settings: Settings, pool: DatabaseConnectionPool) -> int:
    SchemaManager(pool).create_schema()
    return 0


def ingest_command(args, settings: Settings, pool: DatabaseConnectionPool) -> int:
    pipeline = IngestPipeline.from_pool(settings, pool)
    if not pipeline.is_ready():
        logger.error("Ingest pipeline is not ready; check the ingest settings")
        return 1

    results = pipeline.ingest_directory(args.dir, args.processed_dir)
    _print_json([r.model_dump(mode="json") for r in results])
    return 1 if any(r.status == IngestStatus.FAILED for r in results) else 0


def ingest_file_command(args, settings: Settings, pool: DatabaseConnectionPool) -> int:
    pipeline = IngestPipeline.from_pool(settings, pool)
    result = pipeline.ingest_file(args.path, args.processed_dir)
    _print_json(result.model_dump(mode="json"))
    return 0 if result.status == IngestStatus.COMPLETED else 1


def detect_command(args, settings: Settings, pool: DatabaseConnectionPool) -> int:
    detector = IngestPipeline.from_pool(settings, pool).delta_detector
    deltas = detector.detect_deltas(args.batch_id)
    _print_json([d.model_dump(mode="json") for d in deltas])
    return 0


def summary_command(args, settings: Settings, pool: DatabaseConnectionPool) -> int:
    detector = IngestPipeline.from_pool(settings, pool).delta_detector

    batch_id = args.batch_id
    if batch_id is None:
        latest = detector.most_recent_batch()
        if latest is None:
            logger.warning("No completed batches found")
            return 1
        batch_id = latest.batch_id

    summary = detector.delta_summary(batch_id)
    _print_json({**summary.model_dump(mode="json"), "total_deltas": summary.total_deltas})
    return 0


def extract_command(args, settings: Settings, pool: DatabaseConnectionPool) -> int:
    service = EmployeeExtractService(
        settings.extract,
        EmployeeStore(pool, batch_size=settings.delta.performance.batch_size),
    )
    if not service.is_ready():
        logger.error("Extract service is not ready; check the extract settings")
        return 1

    output = service.extract(args.dir)
    _print_json({"extract_file": str(output) if output else None})
    return 0


def batches_command(args, settings: Settings, pool: DatabaseConnectionPool) -> int:
    registry = IngestPipeline.from_pool(settings, pool).batch_registry
    _print_json([b.model_dump(mode="json") for b in registry.list_batches(args.limit)])
    return 0


COMMANDS = {
    "init-db": init_db_command,
    "ingest": ingest_command,
    "ingest-file": ingest_file_command,
    "detect": detect_command,
    "summary": summary_command,
    "extract": extract_command,
    "batches": batches_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="employee-sync",
        description="Employee CSV sync with delta detection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create tables
  employee-sync --config config/employee_sync.yaml init-db

  # Ingest every employees*.csv in the configured folder
  employee-sync --config config/employee_sync.yaml ingest

  # Show NEW/UPDATED/DELETED counts for the latest completed batch
  employee-sync summary
        """
    )
    parser.add_argument("--config", default=None, help="Path to YAML settings file")
    parser.add_argument("--db-host", default=None, help="Database host (overrides config)")
    parser.add_argument("--db-port", type=int, default=None, help="Database port (overrides config)")
    parser.add_argument("--db-name", default=None, help="Database name (overrides config)")
    parser.add_argument("--db-user", default=None, help="Database user (overrides config)")
    parser.add_argument("--db-password", default=None, help="Database password (overrides config)")
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Expose Prometheus metrics on this port while the command runs"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init-db", help="Create the employee sync tables")

    ingest_parser = subparsers.add_parser("ingest", help="Ingest all matching CSV files in a directory")
    ingest_parser.add_argument("--dir", default=None, help="Ingest directory (default: ingest.file_folder)")
    ingest_parser.add_argument(
        "--processed-dir", default=None, help="Processed directory (default: ingest.processed_folder)"
    )

    file_parser = subparsers.add_parser("ingest-file", help="Ingest a single CSV file")
    file_parser.add_argument("path", help="CSV file to ingest")
    file_parser.add_argument(
        "--processed-dir", default=None, help="Processed directory (default: ingest.processed_folder)"
    )

    detect_parser = subparsers.add_parser("detect", help="Re-run delta detection for a batch")
    detect_parser.add_argument("batch_id", help="Batch id")

    summary_parser = subparsers.add_parser("summary", help="Delta counts for a batch")
    summary_parser.add_argument(
        "batch_id", nargs="?", default=None, help="Batch id (default: most recent completed batch)"
    )

    extract_parser = subparsers.add_parser("extract", help="Export ready employees to CSV")
    extract_parser.add_argument("--dir", default=None, help="Extract directory (default: extract.file_folder)")

    batches_parser = subparsers.add_parser("batches", help="List recent ingest batches")
    batches_parser.add_argument("--limit", type=int, default=20, help="Number of batches (default: 20)")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        settings = load_cli_settings(args)
    except EmployeeSyncError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    configure_logging(settings.logging.level, settings.logging.format)

    if args.metrics_port:
        start_metrics_server(args.metrics_port)

    try:
        with DatabaseConnectionPool.from_settings(settings.database) as pool:
            return COMMANDS[args.command](args, settings, pool)
    except EmployeeSyncError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    except psycopg.Error as e:
        logger.error(f"Database error during {args.command}: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
