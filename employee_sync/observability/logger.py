"""
Structured JSON logging for employee-sync

Every module obtains its logger through get_logger(__name__) so that all
output shares one format. Structured context (batch_id, file, counts) is
passed with ``extra=`` and lands as top-level JSON keys.
"""
import logging
import os
import sys
import time

from pythonjsonlogger import jsonlogger

ROOT_LOGGER_NAME = "employee_sync"

# Log level mapping
LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Applied to loggers created after configure_logging() is called
_defaults: dict[str, str | None] = {"level": None, "format_type": "json"}


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter that adds timestamp, level, logger, module, function,
    process and thread ids to every record.
    """

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = self.formatTime(record, self.datefmt)

        if log_record.get("level"):
            log_record["level"] = log_record["level"].upper()
        else:
            log_record["level"] = record.levelname

        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["process_id"] = record.process
        log_record["thread_id"] = record.thread


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: str | None = None,
    format_type: str | None = None,
) -> logging.Logger:
    """
    Setup and configure a logger

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL); falls back
            to the configured default, then LOG_LEVEL, then INFO
        format_type: "json" or "text"

    Returns:
        Configured logger instance
    """
    log_level_str = level or _defaults["level"] or os.getenv("LOG_LEVEL", "INFO")
    log_level = LOG_LEVELS.get(log_level_str.upper(), logging.INFO)
    format_type = format_type or _defaults["format_type"] or "json"

    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    if format_type == "json":
        formatter = CustomJsonFormatter(
            fmt="%(timestamp)s %(level)s %(logger)s %(module)s %(function)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    else:
        # Text format for local development
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Prevent propagation to root logger
    logger.propagate = False

    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger instance, setting it up on first use.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        return setup_logger(name)

    return logger


def configure_logging(level: str | None = None, format_type: str = "json") -> None:
    """
    Apply a level and format to every employee_sync logger.

    Loggers already handed out are reconfigured in place; loggers created
    later pick up the same settings.
    """
    _defaults["level"] = level
    _defaults["format_type"] = format_type

    names = [
        name for name in logging.Logger.manager.loggerDict
        if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + ".")
    ]
    for name in names:
        if logging.getLogger(name).handlers:
            setup_logger(name, level, format_type)


class log_operation:
    """
    Context manager for logging operation duration

    Usage:
        with log_operation("Ingest file", logger=logger, file="employees.csv"):
            # do work
            pass

    Exceptions are logged with exc_info and re-raised.
    """

    def __init__(self, operation_name: str, logger: logging.Logger | None = None, **extra_fields):
        self.operation_name = operation_name
        self.logger = logger or get_logger()
        self.extra_fields = extra_fields
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        self.logger.info(
            f"Starting: {self.operation_name}",
            extra={"operation": self.operation_name, **self.extra_fields}
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.time() - self.start_time

        if exc_type is None:
            self.logger.info(
                f"Completed: {self.operation_name}",
                extra={
                    "operation": self.operation_name,
                    "duration_seconds": round(duration, 3),
                    "status": "success",
                    **self.extra_fields
                }
            )
        else:
            self.logger.error(
                f"Failed: {self.operation_name}",
                extra={
                    "operation": self.operation_name,
                    "duration_seconds": round(duration, 3),
                    "status": "error",
                    "error_type": exc_type.__name__,
                    "error_message": str(exc_val),
                    **self.extra_fields
                },
                exc_info=True
            )
        return False
