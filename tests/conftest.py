"""
Pytest configuration and fixtures for product-ingest tests

This module provides shared fixtures for unit, integration, and E2E tests.
"""
import io
import os
from datetime import date
from typing import Generator

import openpyxl
import psycopg
import pytest
import xlwt
from testcontainers.postgres import PostgresContainer

from product_ingest.warehouse import DatabaseConnectionPool, SimulatedProductStore

ROOT_DIR = os.path.dirname(os.path.dirname(__file__))


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full pipeline"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Skips the dependent tests when Docker is not available.

    Yields:
        PostgresContainer instance with the product table created
    """
    container = PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_pipeline",
        password="test_password",
        dbname="test_bi_sync_data",
        driver=None,
    )
    try:
        container.start()
    except Exception as e:
        pytest.skip(f"Docker is not available: {e}")

    try:
        init_sql_path = os.path.join(ROOT_DIR, "docker", "init-db.sql")
        with open(init_sql_path, "r") as f:
            init_sql = f.read()

        with psycopg.connect(container.get_connection_url()) as conn:
            with conn.cursor() as cur:
                cur.execute(init_sql)
            conn.commit()

        yield container
    finally:
        container.stop()


@pytest.fixture(scope="function")
def db_pool(postgres_container) -> Generator[DatabaseConnectionPool, None, None]:
    """
    Open connection pool against the test container

    Yields:
        Open DatabaseConnectionPool
    """
    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_bi_sync_data",
        user="test_pipeline",
        password="test_password",
        min_size=1,
        max_size=4,
        timeout=10.0,
    )
    pool.open()
    yield pool
    pool.close()


def query_rows(pool: DatabaseConnectionPool, query: str, params: tuple | None = None) -> list[dict]:
    """Run a query on a pooled connection and return every row as a dict."""
    with pool.get_connection() as conn:
        return conn.execute(query, params).fetchall()


def execute_statement(pool: DatabaseConnectionPool, command: str, params: tuple | None = None) -> int:
    """Run one statement in its own committed transaction and return the rowcount."""
    with pool.get_connection() as conn:
        with conn.transaction():
            rowcount = conn.execute(command, params).rowcount
    return rowcount


@pytest.fixture
def fetch_rows():
    """Factory fixture reading rows through a pool, for assertions"""
    return query_rows


@pytest.fixture
def run_statement():
    """Factory fixture running seeding and cleanup statements through a pool"""
    return execute_statement


@pytest.fixture(scope="function")
def clean_db(db_pool) -> Generator[DatabaseConnectionPool, None, None]:
    """
    Provide a pool over an empty product table

    Yields:
        Open DatabaseConnectionPool
    """
    execute_statement(db_pool, "TRUNCATE TABLE pim_product")
    yield db_pool


# =======================
# STORE FIXTURES
# =======================

@pytest.fixture
def simulated_store() -> SimulatedProductStore:
    """Empty in-memory product store"""
    return SimulatedProductStore()


# =======================
# FILE FIXTURES
# =======================

@pytest.fixture(scope="session")
def test_data_dir() -> str:
    """
    Get path to test data fixtures directory

    Returns:
        Path to tests/fixtures directory
    """
    return os.path.join(os.path.dirname(__file__), "fixtures")


def build_xlsx(rows: list[list]) -> bytes:
    """Build an .xlsx workbook in memory with rows on the first sheet."""
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = "Products"
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def xlsx_bytes():
    """Factory fixture building .xlsx bytes from a list of rows"""
    return build_xlsx


def build_xls(rows: list[list]) -> bytes:
    """Build a legacy .xls workbook in memory; None leaves a cell unwritten."""
    workbook = xlwt.Workbook()
    sheet = workbook.add_sheet("Products")
    date_style = xlwt.easyxf(num_format_str="YYYY-MM-DD")
    for row_index, row in enumerate(rows):
        for col_index, value in enumerate(row):
            if value is None:
                continue
            if isinstance(value, date):
                sheet.write(row_index, col_index, value, date_style)
            else:
                sheet.write(row_index, col_index, value)
    workbook.add_sheet("Archive").write(0, 0, "ignored")
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def xls_bytes():
    """Factory fixture building .xls bytes from a list of rows"""
    return build_xls


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture(scope="session")
def test_env_vars():
    """
    Set test environment variables

    This fixture loads config/test.env and sets environment variables
    """
    from dotenv import load_dotenv

    env_path = os.path.join(ROOT_DIR, "config", "test.env")

    if os.path.exists(env_path):
        load_dotenv(env_path, override=True)
