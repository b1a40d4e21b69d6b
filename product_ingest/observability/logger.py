"""
Structured JSON logging for product-ingest

Every module logs through a named logger configured here. Runs executing
concurrently on the ingest thread pool interleave their lines, so each
run logs through a RunLogger that stamps its run_id and source_name on
every record.
"""
import logging
import os
import sys
import time
import uuid

from pythonjsonlogger import jsonlogger

DEFAULT_LOGGER_NAME = "product-ingest"

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

JSON_FORMAT = "%(timestamp)s %(level)s %(logger)s %(module)s %(function)s %(message)s"
TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(threadName)s - %(message)s"


class IngestJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter emitting one object per line

    Fixed fields: timestamp, level, logger, module, function, thread.
    Anything passed through ``extra`` is merged in as-is.
    """

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = log_record.get("timestamp") or self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["thread"] = record.threadName


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: str | None = None,
    format_type: str | None = None,
) -> logging.Logger:
    """
    Configure a logger writing to stderr

    stdout is left to the CLI's machine-readable output.

    Args:
        name: Logger name
        level: Log level name (defaults to env var LOG_LEVEL, then INFO)
        format_type: "json" or "text" (defaults to env var LOG_FORMAT, then json)

    Returns:
        Configured logger instance
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level = LOG_LEVELS.get(level_name, logging.INFO)
    format_type = format_type or os.getenv("LOG_FORMAT", "json")

    if format_type == "json":
        formatter = IngestJsonFormatter(fmt=JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")
    else:
        formatter = logging.Formatter(fmt=TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    handler.setFormatter(formatter)

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """Return the named logger, configuring it on first use."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logger(name)
    return logger


class RunLogger(logging.LoggerAdapter):
    """
    Logger adapter bound to one ingestion run

    Per-call ``extra`` fields are merged with the bound run fields instead
    of replacing them.
    """

    @property
    def run_id(self) -> str:
        return self.extra["run_id"]

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def bind_run(source_name: str, logger: logging.Logger | None = None) -> RunLogger:
    """
    Create a RunLogger with a fresh run id

    Args:
        source_name: File being ingested
        logger: Underlying logger (default logger if None)
    """
    return RunLogger(
        logger or get_logger(),
        {"run_id": uuid.uuid4().hex[:12], "source_name": source_name},
    )


class log_operation:
    """
    Context manager logging the start, end and duration of an operation

    Usage:
        with log_operation("Parsing file", logger=logger, source_name="a.csv"):
            table = reader.read(text, "a.csv")

    Exceptions are logged and re-raised.
    """

    def __init__(self, operation_name: str, logger: logging.Logger | None = None, **extra_fields):
        self.operation_name = operation_name
        self.logger = logger or get_logger()
        self.extra_fields = extra_fields
        self.start_time = 0.0
        self.duration = 0.0

    def __enter__(self):
        self.start_time = time.monotonic()
        self.logger.debug(
            f"Starting: {self.operation_name}",
            extra={"operation": self.operation_name, **self.extra_fields},
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.monotonic() - self.start_time
        fields = {
            "operation": self.operation_name,
            "duration_seconds": round(self.duration, 3),
            **self.extra_fields,
        }

        if exc_type is None:
            self.logger.info(f"Completed: {self.operation_name}", extra={"status": "success", **fields})
        else:
            self.logger.error(
                f"Failed: {self.operation_name}: {exc_val}",
                extra={"status": "error", "error_type": exc_type.__name__, **fields},
            )
        return False
