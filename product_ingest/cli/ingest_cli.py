"""
Command-line interface for product ingestion.

Usage:
    product-ingest ingest --input <file> [<file> ...] [options]
    product-ingest preview --input <file>
    product-ingest health
    product-ingest describe-table
"""

import argparse
import json
import sys
from contextlib import contextmanager
from pathlib import Path

from product_ingest.config import IngestSettings, load_settings
from product_ingest.core.validators import TableValidator
from product_ingest.observability.health import HealthChecker
from product_ingest.observability.logger import get_logger
from product_ingest.observability.metrics import generate_metrics, start_metrics_server
from product_ingest.parsing import TabularParser
from product_ingest.pipeline import IngestionOrchestrator, UploadedFile
from product_ingest.warehouse import DatabaseConnectionPool, create_store

logger = get_logger(__name__)


def build_settings(args) -> IngestSettings:
    """Load settings and apply command-line overrides."""
    settings = load_settings(args.config)
    if getattr(args, "store", None):
        settings = settings.model_copy(
            update={"store": settings.store.model_copy(update={"mode": args.store})}
        )
    return settings


@contextmanager
def open_store(settings: IngestSettings):
    """
    Yield the configured store, owning the connection pool for live mode.
    """
    if settings.store.mode == "simulated":
        yield create_store(settings)
        return

    pool = DatabaseConnectionPool.from_settings(settings.database)
    pool.open()
    try:
        yield create_store(settings, pool)
    finally:
        pool.close()


def _emit(payload, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, default=str))


def ingest_command(args) -> int:
    """
    Ingest one or more files.

    Returns:
        0 when every run reached DONE, 1 otherwise
    """
    paths = [Path(p) for p in args.input]
    missing = [str(p) for p in paths if not p.exists()]
    if missing:
        logger.error(f"Input file not found: {', '.join(missing)}")
        return 1

    settings = build_settings(args)
    uploads = [UploadedFile.from_path(p) for p in paths]

    with open_store(settings) as store:
        orchestrator = IngestionOrchestrator.from_settings(settings, store)
        outcomes = orchestrator.ingest_many(
            uploads,
            max_workers=args.workers,
            attempts=args.retries + 1,
            backoff=args.backoff,
        )

    logger.info("=" * 60)
    logger.info("INGESTION COMPLETE")
    logger.info("=" * 60)
    for outcome in outcomes:
        if outcome.succeeded:
            result = outcome.result
            logger.info(
                f"{outcome.source_name}: requested {result.requested}, inserted {result.inserted}, "
                f"duplicates {result.skipped_as_duplicate}, rejected {result.rejected_invalid}"
            )
        else:
            logger.error(f"{outcome.source_name}: FAILED ({outcome.error_kind}) {outcome.error}")
        _emit(outcome.model_dump(mode="json"), args.json)
    logger.info("=" * 60)

    if args.metrics_file:
        Path(args.metrics_file).write_bytes(generate_metrics())
        logger.info(f"Metrics written to {args.metrics_file}")

    return 0 if all(outcome.succeeded for outcome in outcomes) else 1


def preview_command(args) -> int:
    """Parse and validate a file without writing anything."""
    settings = build_settings(args)
    table = TabularParser(fallback_encoding=settings.upload.fallback_encoding).parse(args.input)
    validation = TableValidator().validate(table)

    logger.info(
        f"{table.source_name}: {table.source_format}, {table.total_rows} rows, "
        f"{len(table.headers)} columns"
        + (f", delimiter {table.delimiter!r}" if table.delimiter else "")
    )
    for row in table.preview:
        logger.info(f"  {row}")
    if validation.is_valid:
        logger.info("Validation passed")
    else:
        for error in validation.errors:
            logger.error(f"Validation error: {error}")

    _emit(
        {
            "table": table.model_dump(mode="json", exclude={"rows"}),
            "validation": validation.model_dump(),
        },
        args.json,
    )
    return 0 if validation.is_valid else 1


def health_command(args) -> int:
    settings = build_settings(args)
    with open_store(settings) as store:
        report = HealthChecker(
            store,
            settings.text_generation.url,
            timeout=settings.text_generation.timeout_seconds,
        ).check()

    logger.info(
        f"Status: {report.status} (database: {report.services.database}, "
        f"text generation: {report.services.text_generation})"
    )
    _emit(report.model_dump(mode="json"), args.json)
    return 0 if report.status == "ok" else 1


def describe_table_command(args) -> int:
    settings = build_settings(args)
    with open_store(settings) as store:
        columns = store.describe_table()

    if not columns:
        logger.error(f"Table {settings.store.table} not found")
        return 1

    for column in columns:
        nullable = "NULL" if column.is_nullable else "NOT NULL"
        logger.info(f"{column.column_name}: {column.data_type} {nullable}")
    _emit([column.model_dump() for column in columns], args.json)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="product-ingest",
        description="Ingest product files into the product table",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Ingest a spreadsheet into the live table
  product-ingest ingest --input data/products.xlsx --store live

  # Ingest several files concurrently, retrying timeouts twice
  product-ingest ingest --input a.csv b.tsv c.xls --workers 3 --retries 2

  # Inspect a file without writing anything
  product-ingest preview --input data/products.txt
        """,
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML file (default: $INGEST_CONFIG)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print machine-readable results to stdout",
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Expose Prometheus metrics on this port while the command runs",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    ingest_parser = subparsers.add_parser("ingest", help="Ingest product files")
    ingest_parser.add_argument("--input", required=True, nargs="+", help="Paths to input files")
    ingest_parser.add_argument(
        "--workers",
        type=int,
        default=4,
        help="Maximum concurrent runs (default: 4)",
    )
    ingest_parser.add_argument(
        "--retries",
        type=int,
        default=0,
        help="Retries after a store timeout (default: 0)",
    )
    ingest_parser.add_argument(
        "--backoff",
        type=float,
        default=0.5,
        help="Initial retry delay in seconds (default: 0.5)",
    )
    ingest_parser.add_argument(
        "--store",
        choices=["simulated", "live"],
        default=None,
        help="Override STORE_MODE",
    )
    ingest_parser.add_argument(
        "--metrics-file",
        default=None,
        help="Write Prometheus metrics to this file when the runs finish",
    )

    preview_parser = subparsers.add_parser("preview", help="Parse and validate a file")
    preview_parser.add_argument("--input", required=True, help="Path to input file")

    health_parser = subparsers.add_parser("health", help="Probe the store and text-generation service")
    health_parser.add_argument("--store", choices=["simulated", "live"], default=None)

    describe_parser = subparsers.add_parser("describe-table", help="Show the product table's columns")
    describe_parser.add_argument("--store", choices=["simulated", "live"], default=None)

    return parser


COMMANDS = {
    "ingest": ingest_command,
    "preview": preview_command,
    "health": health_command,
    "describe-table": describe_table_command,
}


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.metrics_port:
        start_metrics_server(args.metrics_port)

    try:
        return COMMANDS[args.command](args)
    except Exception as e:
        logger.error(f"Error during {args.command}: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
