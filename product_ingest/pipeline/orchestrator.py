"""
Ingestion orchestration.

Coordinates the flow: parse → validate → map → resolve duplicates → insert
"""

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import BinaryIO, Optional, Union

from product_ingest.config import IngestSettings
from product_ingest.core.errors import IngestError, StoreTimeout, UploadRejected
from product_ingest.core.mapping import AliasConfigLoader, ProductMapper
from product_ingest.core.models import (
    BatchResult,
    ProductRecord,
    RunOutcome,
    RunState,
    ValidationResult,
)
from product_ingest.core.validators import TableValidator
from product_ingest.observability.logger import bind_run, get_logger
from product_ingest.observability.metrics import record_run
from product_ingest.parsing import TabularParser
from product_ingest.warehouse import BulkInserter, DuplicateResolver, ProductStore

from .cancellation import CancellationToken
from .upload import UploadedFile, UploadGate

logger = get_logger(__name__)

Source = Union[bytes, bytearray, BinaryIO, str, os.PathLike]


@dataclass
class _RunContext:
    """Mutable bookkeeping for one run; frozen into a RunOutcome at the end."""

    source_name: str
    source_format: str = "unknown"
    transitions: list[RunState] = field(default_factory=list)
    requested: int = 0
    rejected_invalid: int = 0
    skipped_as_duplicate: int = 0
    validation: Optional[ValidationResult] = None
    log: Optional[logging.LoggerAdapter] = None

    def __post_init__(self):
        if self.log is None:
            self.log = bind_run(self.source_name, logger)

    def enter(self, state: RunState, token: Optional[CancellationToken] = None) -> None:
        if token is not None:
            token.raise_if_cancelled(state.value)
        self.transitions.append(state)
        self.log.info(f"{self.source_name}: {state.value}", extra={"state": state.value})

    def fork(self) -> "_RunContext":
        """Copy for a retry of the write phase."""
        return _RunContext(
            source_name=self.source_name,
            source_format=self.source_format,
            transitions=list(self.transitions),
            requested=self.requested,
            rejected_invalid=self.rejected_invalid,
            skipped_as_duplicate=self.skipped_as_duplicate,
            validation=self.validation,
            log=self.log,
        )

    def done(self, result: BatchResult) -> RunOutcome:
        self.transitions.append(RunState.DONE)
        record_run(
            self.source_format,
            RunState.DONE.value,
            inserted=result.inserted,
            duplicates=result.skipped_as_duplicate,
            rejected=result.rejected_invalid,
        )
        self.log.info(
            f"{self.source_name}: done ({result.inserted} inserted, "
            f"{result.skipped_as_duplicate} duplicates, {result.rejected_invalid} rejected)",
            extra={
                "state": RunState.DONE.value,
                "requested": result.requested,
                "inserted": result.inserted,
                "duplicates": result.skipped_as_duplicate,
                "rejected": result.rejected_invalid,
            },
        )
        return RunOutcome(
            source_name=self.source_name,
            state=RunState.DONE,
            transitions=self.transitions,
            result=result,
            validation=self.validation,
            requested=self.requested,
            rejected_invalid=self.rejected_invalid,
            skipped_as_duplicate=self.skipped_as_duplicate,
        )

    def fail(
        self,
        reason: str,
        kind: str,
        retryable: bool = False,
        result: Optional[BatchResult] = None,
    ) -> RunOutcome:
        failed_in = self.transitions[-1].value if self.transitions else "start"
        self.transitions.append(RunState.FAILED)
        record_run(
            self.source_format,
            RunState.FAILED.value,
            duplicates=self.skipped_as_duplicate,
            rejected=self.rejected_invalid,
        )
        self.log.error(
            f"{self.source_name}: failed during {failed_in}: {reason}",
            extra={
                "state": RunState.FAILED.value,
                "failed_in": failed_in,
                "error_type": kind,
                "retryable": retryable,
            },
        )
        return RunOutcome(
            source_name=self.source_name,
            state=RunState.FAILED,
            transitions=self.transitions,
            result=result,
            validation=self.validation,
            error=reason,
            error_kind=kind,
            retryable=retryable,
            requested=self.requested,
            rejected_invalid=self.rejected_invalid,
            skipped_as_duplicate=self.skipped_as_duplicate,
        )


@dataclass
class _PreparedBatch:
    """Output of the read side: records ready for duplicate resolution."""

    context: _RunContext
    candidates: list[ProductRecord]


def split_in_file_repeats(
    records: list[ProductRecord],
) -> tuple[list[ProductRecord], list[ProductRecord]]:
    """
    Keep the first record per natural key.

    Returns:
        Tuple of (first occurrences, later repeats), both in input order
    """
    seen: set[str] = set()
    first = []
    repeats = []
    for record in records:
        if record.natural_key in seen:
            repeats.append(record)
        else:
            seen.add(record.natural_key)
            first.append(record)
    return first, repeats


class IngestionOrchestrator:
    """
    Runs one uploaded file through the ingestion pipeline.

    States:
    PARSING → VALIDATING → MAPPING → RESOLVING_DUPLICATES → INSERTING → DONE,
    with FAILED reachable from every step. Nothing is retried inside a run;
    see run_with_retry for caller-driven retries of store timeouts.
    """

    def __init__(
        self,
        store: ProductStore,
        parser: Optional[TabularParser] = None,
        validator: Optional[TableValidator] = None,
        mapper: Optional[ProductMapper] = None,
        timeout: Optional[float] = None,
        gate: Optional[UploadGate] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            store: Store handle, constructed once per process
            parser: File parser
            validator: Structural table validator
            mapper: Row to ProductRecord mapper
            timeout: Timeout in seconds for each store round-trip
            gate: Upload gate applied by ingest_many
        """
        self.store = store
        self.parser = parser or TabularParser()
        self.validator = validator or TableValidator()
        self.mapper = mapper or ProductMapper()
        self.timeout = timeout
        self.gate = gate or UploadGate()

        self.resolver = DuplicateResolver(store, timeout=timeout)
        self.inserter = BulkInserter(store, timeout=timeout)

    @classmethod
    def from_settings(cls, settings: IngestSettings, store: ProductStore) -> "IngestionOrchestrator":
        aliases = None
        if settings.upload.aliases_file:
            aliases = AliasConfigLoader(settings.upload.aliases_file).load_aliases()

        return cls(
            store,
            parser=TabularParser(fallback_encoding=settings.upload.fallback_encoding),
            mapper=ProductMapper(aliases),
            timeout=settings.store.timeout_seconds,
            gate=UploadGate(max_bytes=settings.upload.max_bytes),
        )

    def run(
        self,
        source: Source,
        filename: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> RunOutcome:
        """
        Ingest one file.

        Args:
            source: File bytes, a binary stream, or a filesystem path
            filename: Original filename; defaults to the path's name
            cancel_token: Honoured at every step boundary before the insert

        Returns:
            Terminal RunOutcome (DONE or FAILED)
        """
        context = _RunContext(source_name=self._source_name(source, filename))
        prepared = self._prepare(source, filename, context, cancel_token)
        if isinstance(prepared, RunOutcome):
            return prepared
        return self._write(prepared.context, prepared.candidates, cancel_token)

    def run_with_retry(
        self,
        source: Source,
        filename: Optional[str] = None,
        attempts: int = 3,
        backoff: float = 0.5,
        cancel_token: Optional[CancellationToken] = None,
    ) -> RunOutcome:
        """
        Ingest one file, retrying the write phase after store timeouts.

        The file is parsed, validated and mapped once. Each attempt re-runs
        duplicate resolution before inserting, so rows written by a
        timed-out attempt are reported as duplicates instead of being
        written twice. Only retryable failures are retried.

        Args:
            source: File bytes, a binary stream, or a filesystem path
            filename: Original filename
            attempts: Maximum number of write attempts
            backoff: Initial delay in seconds, doubled after each attempt
            cancel_token: Cancellation token

        Returns:
            Outcome of the last attempt
        """
        if attempts < 1:
            raise ValueError("attempts must be at least 1")

        context = _RunContext(source_name=self._source_name(source, filename))
        prepared = self._prepare(source, filename, context, cancel_token)
        if isinstance(prepared, RunOutcome):
            return prepared

        delay = backoff
        for attempt in range(1, attempts + 1):
            outcome = self._write(prepared.context.fork(), prepared.candidates, cancel_token)
            if outcome.succeeded or not outcome.retryable or attempt == attempts:
                return outcome

            prepared.context.log.warning(
                f"{outcome.source_name}: attempt {attempt}/{attempts} timed out, "
                f"retrying in {delay:.2f}s",
                extra={"attempt": attempt},
            )
            time.sleep(delay)
            delay *= 2

        return outcome

    def ingest_many(
        self,
        uploads: list[UploadedFile],
        max_workers: int = 4,
        attempts: int = 1,
        backoff: float = 0.5,
        cancel_token: Optional[CancellationToken] = None,
    ) -> list[RunOutcome]:
        """
        Ingest several uploaded files as independent concurrent runs.

        Files refused by the upload gate get a FAILED outcome without
        being parsed. Runs share nothing but the store handle.

        Args:
            uploads: Files from one upload call
            max_workers: Upper bound on concurrent runs
            attempts: Write attempts per file (see run_with_retry)
            backoff: Initial retry delay in seconds
            cancel_token: Shared cancellation token

        Returns:
            One outcome per upload, in upload order
        """
        outcomes: list[Optional[RunOutcome]] = [None] * len(uploads)
        accepted: list[int] = []
        for index, upload in enumerate(uploads):
            try:
                self.gate.check(upload)
                accepted.append(index)
            except UploadRejected as e:
                outcomes[index] = self._refused(e)

        def ingest(index: int) -> RunOutcome:
            upload = uploads[index]
            return self.run_with_retry(
                upload.content,
                filename=upload.name,
                attempts=attempts,
                backoff=backoff,
                cancel_token=cancel_token,
            )

        logger.info(
            f"Ingesting {len(accepted)} files ({len(uploads) - len(accepted)} refused at upload)",
            extra={"accepted": len(accepted), "refused": len(uploads) - len(accepted)},
        )

        if accepted:
            with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(accepted)))) as executor:
                for index, outcome in zip(accepted, executor.map(ingest, accepted)):
                    outcomes[index] = outcome

        return outcomes

    def _prepare(
        self,
        source: Source,
        filename: Optional[str],
        context: _RunContext,
        token: Optional[CancellationToken],
    ) -> Union[_PreparedBatch, RunOutcome]:
        try:
            context.enter(RunState.PARSING, token)
            table = self.parser.parse(source, filename)
            context.source_format = table.source_format
            context.requested = table.total_rows

            context.enter(RunState.VALIDATING, token)
            validation = self.validator.validate(table)
            context.validation = validation
            if not validation.is_valid:
                context.rejected_invalid = table.total_rows
                return context.fail(
                    "Validation failed: " + "; ".join(validation.errors),
                    kind="validation_failed",
                )

            context.enter(RunState.MAPPING, token)
            accepted, rejected = self.mapper.map(table)
            context.rejected_invalid = len(rejected)

            candidates, repeats = split_in_file_repeats(accepted)
            context.skipped_as_duplicate = len(repeats)
            if repeats:
                context.log.info(
                    f"{context.source_name}: {len(repeats)} rows repeat a product code "
                    "seen earlier in the file",
                    extra={"duplicates": len(repeats)},
                )
        except IngestError as e:
            return context.fail(str(e), kind=e.kind, retryable=e.retryable)

        return _PreparedBatch(context=context, candidates=candidates)

    def _write(
        self,
        context: _RunContext,
        candidates: list[ProductRecord],
        token: Optional[CancellationToken],
    ) -> RunOutcome:
        in_file_repeats = context.skipped_as_duplicate
        try:
            context.enter(RunState.RESOLVING_DUPLICATES, token)
            fresh, duplicates = self.resolver.resolve(candidates)
            context.skipped_as_duplicate = in_file_repeats + len(duplicates)

            context.enter(RunState.INSERTING, token)
        except IngestError as e:
            return context.fail(str(e), kind=e.kind, retryable=e.retryable)

        outcome = self.inserter.insert(fresh)
        if not outcome.succeeded:
            error = outcome.first_error
            kind = getattr(error, "kind", "store_error")
            retryable = isinstance(error, StoreTimeout)
            result = BatchResult(
                requested=context.requested,
                inserted=0,
                skipped_as_duplicate=context.skipped_as_duplicate,
                rejected_invalid=context.rejected_invalid,
                error=str(error),
            )
            return context.fail(str(error), kind=kind, retryable=retryable, result=result)

        result = BatchResult(
            requested=context.requested,
            inserted=outcome.inserted_count,
            skipped_as_duplicate=context.skipped_as_duplicate,
            rejected_invalid=context.rejected_invalid,
        )
        return context.done(result)

    @staticmethod
    def _refused(rejection: UploadRejected) -> RunOutcome:
        context = _RunContext(source_name=rejection.source_name)
        return context.fail(str(rejection), kind=rejection.kind)

    @staticmethod
    def _source_name(source: Source, filename: Optional[str]) -> str:
        if filename:
            return filename
        if isinstance(source, (str, os.PathLike)):
            return os.path.basename(os.fspath(source))
        return "<upload>"
