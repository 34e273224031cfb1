"""
bqclient

A relational client for BigQuery: connections, commands, forward-only
readers, metadata collections and paged queries.

Example:
    from bqclient import Connection, fetch_all_pages

    with Connection("bigquery", {"ProjectId": "my-project"}) as conn:
        conn.open()

        # Discover tables
        tables = conn.get_schema("Tables", ["my-project", "analytics"])

        # Run a query
        with conn.create_command("SELECT id, total FROM analytics.orders WHERE id = ?", [7]) as cmd:
            with cmd.execute_reader() as reader:
                while reader.read():
                    print(reader.get_int64(0), reader.get_double(1))

        # Fetch everything, one page at a time
        rows = fetch_all_pages(conn, "SELECT id FROM analytics.orders ORDER BY id", page_size=500)
"""

__version__ = "1.0.0"

from .command import Command, UNKNOWN_ROW_COUNT
from .config import ConnectionSettings, build_connection_string, parse_connection_string
from .connection import Connection, ConnectionState
from .drivers import BigQueryDriver, DuckDBDriver, get_driver
from .exceptions import (
    ClientError,
    ConfigurationError,
    ConnectionError,
    InvalidOperationError,
    OutOfRangeError,
    QueryError,
    TypeMismatchError,
    UnsupportedCollectionError,
)
from .paging import PagedQuery, PagedResult, fetch_all_pages
from .reader import DataReader
from .schema import MetadataCollection
from .types import (
    ColumnDescriptor,
    ColumnInfo,
    DataColumn,
    DataTable,
    DbType,
    StructBehavior,
    TableConstraint,
    TableInfo,
)

__all__ = [
    "Command",
    "UNKNOWN_ROW_COUNT",
    "ConnectionSettings",
    "build_connection_string",
    "parse_connection_string",
    "Connection",
    "ConnectionState",
    "BigQueryDriver",
    "DuckDBDriver",
    "get_driver",
    "ClientError",
    "ConfigurationError",
    "ConnectionError",
    "InvalidOperationError",
    "OutOfRangeError",
    "QueryError",
    "TypeMismatchError",
    "UnsupportedCollectionError",
    "PagedQuery",
    "PagedResult",
    "fetch_all_pages",
    "DataReader",
    "MetadataCollection",
    "ColumnDescriptor",
    "ColumnInfo",
    "DataColumn",
    "DataTable",
    "DbType",
    "StructBehavior",
    "TableConstraint",
    "TableInfo",
]
