"""
Unit tests for the ingestion orchestrator.

Runs the full pipeline against the simulated store.
"""

import io
import threading

import pytest

from product_ingest.config import IngestSettings
from product_ingest.core.errors import StoreError, StoreTimeout
from product_ingest.core.models import ProductRecord, RunState
from product_ingest.pipeline import (
    CancellationToken,
    IngestionOrchestrator,
    UploadedFile,
    UploadGate,
    split_in_file_repeats,
)
from product_ingest.warehouse import SimulatedProductStore

PRODUCTS_CSV = b"code,name,price\nA1,Widget,9.99\nA2,Gadget,5.00\n"

FULL_PATH = [
    RunState.PARSING,
    RunState.VALIDATING,
    RunState.MAPPING,
    RunState.RESOLVING_DUPLICATES,
    RunState.INSERTING,
    RunState.DONE,
]


class CancelOnCall:
    """Store wrapper that cancels a token when a given operation is called."""

    def __init__(self, store, token, operation):
        self.store = store
        self.token = token
        self.operation = operation

    def __getattr__(self, name):
        attr = getattr(self.store, name)
        if name == self.operation:
            def wrapped(*args, **kwargs):
                result = attr(*args, **kwargs)
                self.token.cancel()
                return result
            return wrapped
        return attr


class TestScenarios:
    """End-to-end behaviour over the simulated store"""

    def test_products_csv_with_existing_key(self):
        store = SimulatedProductStore(existing=["A1"])
        outcome = IngestionOrchestrator(store).run(PRODUCTS_CSV, "products.csv")

        assert outcome.state is RunState.DONE
        assert outcome.transitions == FULL_PATH
        result = outcome.result
        assert (result.requested, result.inserted, result.skipped_as_duplicate, result.rejected_invalid) == (
            2,
            1,
            1,
            0,
        )
        assert result.error is None
        assert store.keys() == ["A1", "A2"]
        assert store.rows[1].created_at is not None

    def test_blank_header_spreadsheet_fails_without_result(self, xlsx_bytes):
        store = SimulatedProductStore()
        raw = xlsx_bytes([["code", None, "price"], ["A1", "Widget", 9.99]])

        outcome = IngestionOrchestrator(store).run(raw, "blank_header.xlsx")

        assert outcome.state is RunState.FAILED
        assert outcome.result is None
        assert outcome.transitions == [RunState.PARSING, RunState.VALIDATING, RunState.FAILED]
        assert not outcome.validation.is_valid
        assert any("empty" in error.lower() for error in outcome.validation.errors)
        assert outcome.error_kind == "validation_failed"
        assert store.existing_keys_calls == 0
        assert store.insert_calls == 0

    def test_rows_without_code_rejected(self):
        store = SimulatedProductStore()
        raw = b"code,name\nA1,Widget\n,Orphan\n"

        outcome = IngestionOrchestrator(store).run(raw, "p.csv")

        assert outcome.result.inserted == 1
        assert outcome.result.rejected_invalid == 1
        assert store.keys() == ["A1"]

    def test_in_file_repeats_counted_as_duplicates(self, test_data_dir):
        store = SimulatedProductStore()

        outcome = IngestionOrchestrator(store).run(f"{test_data_dir}/catalog.tsv")

        result = outcome.result
        assert outcome.source_name == "catalog.tsv"
        assert (result.requested, result.inserted, result.skipped_as_duplicate, result.rejected_invalid) == (
            4,
            2,
            1,
            1,
        )
        assert store.keys() == ["S-100", "S-101"]

    def test_all_rows_rejected_is_done_with_no_insert(self):
        store = SimulatedProductStore()

        outcome = IngestionOrchestrator(store).run(b"name\nWidget\n", "p.csv")

        assert outcome.state is RunState.DONE
        assert outcome.result.rejected_invalid == 1
        assert store.existing_keys_calls == 0
        assert store.insert_calls == 0

    def test_unsupported_format_fails_in_parsing(self):
        outcome = IngestionOrchestrator(SimulatedProductStore()).run(b"{}", "p.json")

        assert outcome.state is RunState.FAILED
        assert outcome.transitions == [RunState.PARSING, RunState.FAILED]
        assert outcome.error_kind == "parse_error.unsupported_format"
        assert not outcome.retryable

    def test_closed_stream_fails_in_parsing(self):
        stream = io.BytesIO(PRODUCTS_CSV)
        stream.close()

        outcome = IngestionOrchestrator(SimulatedProductStore()).run(stream, "p.csv")

        assert outcome.state is RunState.FAILED
        assert outcome.transitions == [RunState.PARSING, RunState.FAILED]
        assert outcome.error_kind == "parse_error.io_failure"

    def test_empty_file_fails_validation(self):
        outcome = IngestionOrchestrator(SimulatedProductStore()).run(b"\n\n", "p.csv")

        assert outcome.state is RunState.FAILED
        assert "No data rows found" in outcome.validation.errors


class TestStoreFailures:
    """Store failures end the run with a reason"""

    def test_insert_failure_carries_result_with_error(self):
        store = SimulatedProductStore(existing=["A1"])
        store.inject_failure("insert_many", StoreError("insert_many", "disk full"))

        outcome = IngestionOrchestrator(store).run(PRODUCTS_CSV, "products.csv")

        assert outcome.state is RunState.FAILED
        assert outcome.transitions[-2:] == [RunState.INSERTING, RunState.FAILED]
        assert outcome.result.inserted == 0
        assert outcome.result.skipped_as_duplicate == 1
        assert "disk full" in outcome.result.error
        assert outcome.error_kind == "store_error"
        assert not outcome.retryable

    def test_lookup_timeout_is_retryable_without_result(self):
        store = SimulatedProductStore(latency=0.2)

        outcome = IngestionOrchestrator(store, timeout=0.01).run(PRODUCTS_CSV, "products.csv")

        assert outcome.state is RunState.FAILED
        assert outcome.transitions[-2:] == [RunState.RESOLVING_DUPLICATES, RunState.FAILED]
        assert outcome.result is None
        assert outcome.retryable
        assert outcome.error_kind == "store_timeout"
        assert outcome.requested == 2

    def test_no_automatic_retry_inside_run(self):
        store = SimulatedProductStore()
        store.inject_failure("insert_many", StoreTimeout("insert_many", "slow"))

        outcome = IngestionOrchestrator(store).run(PRODUCTS_CSV, "products.csv")

        assert outcome.state is RunState.FAILED
        assert outcome.retryable
        assert store.insert_calls == 1


class TestRetry:
    """Caller-driven retry of store timeouts"""

    def test_retry_after_lost_write_does_not_double_insert(self):
        store = SimulatedProductStore()
        store.inject_failure("insert_many", StoreTimeout("insert_many", "lost reply"), commit=True)

        outcome = IngestionOrchestrator(store).run_with_retry(
            PRODUCTS_CSV, "products.csv", attempts=3, backoff=0
        )

        assert outcome.state is RunState.DONE
        assert outcome.result.inserted == 0
        assert outcome.result.skipped_as_duplicate == 2
        assert store.keys() == ["A1", "A2"]
        assert store.existing_keys_calls == 2

    def test_retry_after_failed_write_inserts_once(self):
        store = SimulatedProductStore()
        store.inject_failure("insert_many", StoreTimeout("insert_many", "no reply"))

        outcome = IngestionOrchestrator(store).run_with_retry(
            PRODUCTS_CSV, "products.csv", attempts=2, backoff=0
        )

        assert outcome.succeeded
        assert outcome.result.inserted == 2
        assert store.keys() == ["A1", "A2"]

    def test_non_retryable_failure_not_retried(self):
        store = SimulatedProductStore()
        store.inject_failure("insert_many", StoreError("insert_many", "constraint"))

        outcome = IngestionOrchestrator(store).run_with_retry(
            PRODUCTS_CSV, "products.csv", attempts=3, backoff=0
        )

        assert outcome.state is RunState.FAILED
        assert store.insert_calls == 1

    def test_attempts_exhausted(self):
        store = SimulatedProductStore(latency=0.05)

        outcome = IngestionOrchestrator(store, timeout=0.01).run_with_retry(
            PRODUCTS_CSV, "products.csv", attempts=2, backoff=0
        )

        assert outcome.state is RunState.FAILED
        assert outcome.retryable
        assert store.existing_keys_calls == 2

    def test_invalid_attempts(self):
        with pytest.raises(ValueError):
            IngestionOrchestrator(SimulatedProductStore()).run_with_retry(
                PRODUCTS_CSV, "products.csv", attempts=0
            )


class TestCancellation:
    """Cancellation is honoured up to the insert"""

    def test_cancelled_before_start(self):
        token = CancellationToken()
        token.cancel()

        outcome = IngestionOrchestrator(SimulatedProductStore()).run(
            PRODUCTS_CSV, "products.csv", cancel_token=token
        )

        assert outcome.state is RunState.FAILED
        assert outcome.error_kind == "cancelled"
        assert outcome.transitions == [RunState.FAILED]

    def test_cancelled_after_resolution_skips_insert(self):
        token = CancellationToken()
        store = SimulatedProductStore()
        wrapped = CancelOnCall(store, token, "existing_keys")

        outcome = IngestionOrchestrator(wrapped).run(PRODUCTS_CSV, "products.csv", cancel_token=token)

        assert outcome.state is RunState.FAILED
        assert outcome.error_kind == "cancelled"
        assert outcome.transitions[-2:] == [RunState.RESOLVING_DUPLICATES, RunState.FAILED]
        assert store.insert_calls == 0

    def test_cancel_during_insert_has_no_effect(self):
        token = CancellationToken()
        store = SimulatedProductStore()
        wrapped = CancelOnCall(store, token, "insert_many")

        outcome = IngestionOrchestrator(wrapped).run(PRODUCTS_CSV, "products.csv", cancel_token=token)

        assert outcome.state is RunState.DONE
        assert token.cancelled
        assert store.keys() == ["A1", "A2"]


class TestIngestMany:
    """Concurrent multi-file ingestion"""

    def test_outcomes_in_upload_order(self):
        store = SimulatedProductStore()
        uploads = [
            UploadedFile.from_bytes("a.csv", b"code\nA1\nA2\n"),
            UploadedFile.from_bytes("b.txt", b"code|name\nB1|x\n"),
            UploadedFile.from_bytes("c.json", b"{}"),
        ]

        outcomes = IngestionOrchestrator(store).ingest_many(uploads, max_workers=3)

        assert [o.source_name for o in outcomes] == ["a.csv", "b.txt", "c.json"]
        assert [o.state for o in outcomes] == [RunState.DONE, RunState.DONE, RunState.FAILED]
        assert sorted(store.keys()) == ["A1", "A2", "B1"]

    def test_oversized_upload_refused_before_parsing(self):
        store = SimulatedProductStore()
        orchestrator = IngestionOrchestrator(store, gate=UploadGate(max_bytes=16))
        uploads = [
            UploadedFile.from_bytes("small.csv", b"code\nA1\n"),
            UploadedFile.from_bytes("big.csv", b"code\n" + b"X\n" * 100),
        ]

        outcomes = orchestrator.ingest_many(uploads)

        assert outcomes[0].succeeded
        assert outcomes[1].state is RunState.FAILED
        assert outcomes[1].error_kind == "upload_rejected"
        assert outcomes[1].transitions == [RunState.FAILED]

    def test_runs_share_only_the_store(self):
        store = SimulatedProductStore(latency=0.01)
        uploads = [
            UploadedFile.from_bytes(f"f{i}.csv", f"code\nK{i}\n".encode()) for i in range(8)
        ]
        seen_threads = set()
        original = store.insert_many

        def tracking_insert(records, timeout=None):
            seen_threads.add(threading.get_ident())
            return original(records, timeout=timeout)

        store.insert_many = tracking_insert

        outcomes = IngestionOrchestrator(store).ingest_many(uploads, max_workers=4)

        assert all(o.succeeded for o in outcomes)
        assert len(store.keys()) == 8
        assert len(seen_threads) <= 4

    def test_empty_upload(self):
        assert IngestionOrchestrator(SimulatedProductStore()).ingest_many([]) == []


class TestConstruction:
    def test_from_settings_uses_alias_file(self, tmp_path):
        aliases = tmp_path / "aliases.yaml"
        aliases.write_text("aliases:\n  natural_key: [item]\n")
        settings = IngestSettings.model_validate(
            {"upload": {"aliases_file": str(aliases), "max_bytes": 1234}, "store": {"timeout_seconds": 2}}
        )
        store = SimulatedProductStore()

        orchestrator = IngestionOrchestrator.from_settings(settings, store)
        outcome = orchestrator.run(b"item,code\nI1,C1\n", "p.csv")

        assert orchestrator.gate.max_bytes == 1234
        assert orchestrator.timeout == 2
        assert store.keys() == ["I1"]
        assert outcome.succeeded


def test_split_in_file_repeats():
    first, repeats = split_in_file_repeats(
        [ProductRecord(natural_key=k) for k in ["A", "B", "A", "C", "B"]]
    )
    assert [r.natural_key for r in first] == ["A", "B", "C"]
    assert [r.natural_key for r in repeats] == ["A", "B"]
