"""
Pytest configuration and shared fixtures for bqclient tests.
"""

import pytest

from bqclient import Connection


SEED_STATEMENTS = [
    "CREATE SCHEMA sales",
    "CREATE TABLE main.customers (id INTEGER PRIMARY KEY, name VARCHAR NOT NULL, email VARCHAR)",
    "CREATE TABLE sales.orders (id INTEGER PRIMARY KEY, customer_id INTEGER, "
    "total DECIMAL(10, 2), placed_on DATE, paid BOOLEAN)",
    "CREATE VIEW sales.big_orders AS SELECT * FROM sales.orders WHERE total > 100",
    "INSERT INTO main.customers VALUES (1, 'Asha', 'asha@example.com'), "
    "(2, 'Ravi', NULL), (3, 'Meera', 'meera@example.com')",
    "INSERT INTO sales.orders VALUES "
    "(10, 1, 250.00, DATE '2024-01-05', true), "
    "(11, 1, 40.50, DATE '2024-01-06', false), "
    "(12, 3, 120.00, DATE '2024-02-01', true)",
]


def seed(connection):
    """Create the sample schema and rows on an open connection."""
    for statement in SEED_STATEMENTS:
        with connection.create_command(statement) as command:
            command.execute_update()


@pytest.fixture
def duckdb_parameters():
    """Return driver parameters for an in-memory DuckDB database."""
    return {"Database": ":memory:"}


@pytest.fixture
def connection(duckdb_parameters):
    """Open an empty in-memory DuckDB connection."""
    conn = Connection("duckdb", duckdb_parameters)
    conn.open()
    yield conn
    conn.close()


@pytest.fixture
def seeded_connection(connection):
    """Open an in-memory DuckDB connection with the sample schema loaded."""
    seed(connection)
    return connection


@pytest.fixture
def database_file(tmp_path):
    """Return a seeded DuckDB database file path."""
    path = tmp_path / "sample.duckdb"
    with Connection("duckdb", {"Database": str(path)}) as conn:
        conn.open()
        seed(conn)
    return path
