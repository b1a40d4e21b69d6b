"""
Exception hierarchy for the ingestion pipeline.

Validation problems and duplicates are not exceptions: they are reported
as data (ValidationResult, BatchResult counts). Only failures that end a
run are raised.
"""

from enum import Enum


class IngestError(Exception):
    """Base class for every failure that ends an ingestion run."""

    kind: str = "ingest_error"
    retryable: bool = False


class ParseErrorKind(str, Enum):
    UNSUPPORTED_FORMAT = "unsupported_format"
    IO_FAILURE = "io_failure"
    DECODE_FAILURE = "decode_failure"


class ParseError(IngestError):
    """Raised when a file cannot be turned into a ParsedTable."""

    def __init__(self, kind: ParseErrorKind, source_name: str, message: str):
        self.parse_kind = kind
        self.kind = f"parse_error.{kind.value}"
        self.source_name = source_name
        self.message = message
        super().__init__(f"[{kind.value}] {source_name}: {message}")


class UploadRejected(IngestError):
    """Raised when an upload is refused before it reaches the parser."""

    kind = "upload_rejected"

    def __init__(self, source_name: str, message: str):
        self.source_name = source_name
        self.message = message
        super().__init__(f"{source_name}: {message}")


class StoreError(IngestError):
    """Connectivity or write failure at the store boundary."""

    kind = "store_error"

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.message = message
        super().__init__(f"{operation} failed: {message}")


class StoreTimeout(StoreError):
    """
    A store round-trip exceeded its timeout.

    The outcome of the timed-out call is unknown, so callers may retry,
    but only after re-running duplicate resolution.
    """

    kind = "store_timeout"
    retryable = True


class RunCancelled(IngestError):
    """The caller cancelled the run before the insert was issued."""

    kind = "cancelled"

    def __init__(self, state: str):
        self.state = state
        super().__init__(f"Run cancelled during {state}")
