"""
DuckDB Driver for bqclient

DuckDB is an embedded analytical database, perfect for:
- Local development against the same client surface as BigQuery
- Testing without infrastructure

Connection modes:
- In-memory (default): Fast, ephemeral
- File-based: Persistent, shareable

Metadata mapping:
- Catalogs: attached (non-internal) databases
- Schemas: schemas inside a database
- Tables: base tables and views (temporary tables live in the internal
  "temp" database and are not enumerated)
"""

import logging
import time
from typing import Any, Dict, List, Optional

import duckdb

from bqclient.config import ConnectionSettings, parse_bool
from bqclient.drivers.base import BaseDriver, DriverSession
from bqclient.exceptions import ConnectionError, QueryError
from bqclient.types import (
    ColumnDescriptor,
    ColumnInfo,
    DbType,
    DriverResult,
    StructBehavior,
    TableConstraint,
    TableInfo,
)

logger = logging.getLogger(__name__)

_INTEGER_TYPES = {
    "TINYINT", "SMALLINT", "INTEGER", "BIGINT", "HUGEINT",
    "UTINYINT", "USMALLINT", "UINTEGER", "UBIGINT", "UHUGEINT",
}

_SIMPLE_TYPES = {
    "FLOAT": DbType.FLOAT64,
    "DOUBLE": DbType.FLOAT64,
    "BOOLEAN": DbType.BOOL,
    "VARCHAR": DbType.STRING,
    "UUID": DbType.STRING,
    "BLOB": DbType.BYTES,
    "DATE": DbType.DATE,
    "TIMESTAMP": DbType.DATETIME,
    "TIMESTAMP_S": DbType.DATETIME,
    "TIMESTAMP_MS": DbType.DATETIME,
    "TIMESTAMP_NS": DbType.DATETIME,
    "TIMESTAMP WITH TIME ZONE": DbType.TIMESTAMP,
    "TIME": DbType.TIME,
    "INTERVAL": DbType.INTERVAL,
    "JSON": DbType.JSON,
}


def map_duckdb_type(type_name: str) -> DbType:
    """Map a DuckDB type name to a DbType."""
    name = type_name.upper()
    if name.endswith("]"):
        return DbType.ARRAY
    if name in _INTEGER_TYPES:
        return DbType.INT64
    if name.startswith("DECIMAL"):
        return DbType.NUMERIC
    if name.startswith("STRUCT") or name.startswith("MAP"):
        return DbType.STRUCT
    return _SIMPLE_TYPES.get(name, DbType.OTHER)


def is_struct_array(type_name: Optional[str]) -> bool:
    """True for list types whose elements are structs, e.g. STRUCT(a INTEGER)[]."""
    name = (type_name or "").upper()
    return name.endswith("]") and name.startswith(("STRUCT", "MAP"))


class DuckDBSession(DriverSession):
    """Open DuckDB connection."""

    def __init__(self, settings: ConnectionSettings, connection, database: str):
        super().__init__(DuckDBDriver.NAME, settings)
        self._connection = connection
        self.database = database

    def _check_open(self):
        if self.closed or self._connection is None:
            raise QueryError("Not connected to DuckDB", driver=self.driver_name)

    def execute(
        self,
        sql: str,
        params: Optional[List[Any]] = None,
        timeout: Optional[float] = None,
    ) -> DriverResult:
        """
        Execute a query on DuckDB.

        DuckDB has no per-statement timeout; results are materialized before
        returning so later statements on the same connection cannot disturb
        an open reader.
        """
        self._check_open()
        sql, params = self.convert_placeholders(sql, params)
        start_time = time.perf_counter()

        try:
            relation = self._connection.sql(sql, params=params or None)
            if relation is None:
                return DriverResult(columns=[], rows=iter(()))

            columns = [
                ColumnDescriptor(name=name, db_type=map_duckdb_type(str(dtype)), native_type=str(dtype))
                for name, dtype in zip(relation.columns, relation.types)
            ]
            rows = relation.fetchall()
        except duckdb.Error as e:
            raise QueryError(
                f"DuckDB query failed: {e}",
                driver=self.driver_name,
                original_error=e
            ) from e

        logger.debug(
            f"DuckDB query returned {len(rows)} rows in "
            f"{(time.perf_counter() - start_time) * 1000:.1f}ms"
        )

        if self.settings.struct_behavior == StructBehavior.JSON_STRING:
            columns, rows = self._stringify_structs(columns, rows)

        return DriverResult(columns=columns, rows=iter(rows))

    def _stringify_structs(self, columns, rows):
        struct_indexes = [
            i for i, col in enumerate(columns)
            if col.db_type == DbType.STRUCT or is_struct_array(col.native_type)
        ]
        if not struct_indexes:
            return columns, rows

        columns = [
            ColumnDescriptor(col.name, DbType.STRING, col.native_type) if i in struct_indexes else col
            for i, col in enumerate(columns)
        ]
        converted = []
        for row in rows:
            values = list(row)
            for i in struct_indexes:
                values[i] = self.convert_struct(values[i])
            converted.append(tuple(values))
        return columns, converted

    def execute_update(
        self,
        sql: str,
        params: Optional[List[Any]] = None,
        timeout: Optional[float] = None,
    ) -> Optional[int]:
        """
        Execute a statement on DuckDB.

        DuckDB reports changed rows for INSERT/UPDATE/DELETE as a single
        "Count" column; any other statement has no count.
        """
        self._check_open()
        sql, params = self.convert_placeholders(sql, params)

        try:
            cursor = self._connection.execute(sql, params)
            description = cursor.description
            if not description or len(description) != 1 or description[0][0] != "Count":
                return None
            row = cursor.fetchone()
        except duckdb.Error as e:
            raise QueryError(
                f"DuckDB statement failed: {e}",
                driver=self.driver_name,
                original_error=e
            ) from e

        if row is None or row[0] is None:
            return None
        return int(row[0])

    def _query(self, sql: str, params: List[Any]) -> List[tuple]:
        self._check_open()
        try:
            return self._connection.execute(sql, params).fetchall()
        except duckdb.Error as e:
            raise QueryError(
                f"DuckDB metadata query failed: {e}",
                driver=self.driver_name,
                original_error=e
            ) from e

    def list_catalogs(self) -> List[str]:
        rows = self._query(
            "SELECT database_name FROM duckdb_databases() "
            "WHERE NOT internal ORDER BY database_name",
            [],
        )
        return [r[0] for r in rows]

    def list_schemas(self, catalog: str) -> List[str]:
        rows = self._query(
            "SELECT schema_name FROM information_schema.schemata "
            "WHERE catalog_name = ? "
            "AND schema_name NOT IN ('information_schema', 'pg_catalog') "
            "ORDER BY schema_name",
            [catalog],
        )
        return [r[0] for r in rows]

    def list_tables(self, catalog: str, schema: str, include_constraints: bool) -> List[TableInfo]:
        rows = self._query(
            "SELECT table_name, table_type FROM information_schema.tables "
            "WHERE table_catalog = ? AND table_schema = ? "
            "ORDER BY table_name",
            [catalog, schema],
        )
        tables = [
            TableInfo(catalog=catalog, schema=schema, name=name, table_type=table_type)
            for name, table_type in rows
        ]

        if include_constraints and tables:
            constraints = self._load_constraints(catalog, schema)
            for table in tables:
                table.constraints = constraints.get(table.name, [])

        return tables

    def _load_constraints(self, catalog: str, schema: str) -> Dict[str, List[TableConstraint]]:
        rows = self._query(
            "SELECT table_name, constraint_type, constraint_column_names "
            "FROM duckdb_constraints() "
            "WHERE database_name = ? AND schema_name = ? "
            "AND constraint_type IN ('PRIMARY KEY', 'FOREIGN KEY', 'UNIQUE') "
            "ORDER BY table_name, constraint_index",
            [catalog, schema],
        )
        constraints: Dict[str, List[TableConstraint]] = {}
        for table_name, constraint_type, column_names in rows:
            constraints.setdefault(table_name, []).append(
                TableConstraint(
                    name=None,
                    constraint_type=constraint_type,
                    columns=tuple(column_names or ()),
                )
            )
        return constraints

    def list_columns(self, catalog: str, schema: str, table: str) -> List[ColumnInfo]:
        rows = self._query(
            "SELECT column_name, ordinal_position, column_default, is_nullable, data_type, "
            "character_maximum_length, character_octet_length, numeric_precision, "
            "numeric_precision_radix, numeric_scale, datetime_precision "
            "FROM information_schema.columns "
            "WHERE table_catalog = ? AND table_schema = ? AND table_name = ? "
            "ORDER BY ordinal_position",
            [catalog, schema, table],
        )
        return [
            ColumnInfo(
                catalog=catalog,
                schema=schema,
                table=table,
                name=r[0],
                ordinal_position=int(r[1]),
                column_default=r[2],
                is_nullable=(r[3] == "YES"),
                data_type=r[4],
                character_maximum_length=r[5],
                character_octet_length=r[6],
                numeric_precision=r[7],
                numeric_precision_radix=r[8],
                numeric_scale=r[9],
                datetime_precision=r[10],
                xdbc_type_name=map_duckdb_type(r[4]).value,
            )
            for r in rows
        ]

    def table_types(self) -> List[str]:
        return ["BASE TABLE", "VIEW"]

    def _close(self) -> None:
        """Close DuckDB connection."""
        if self._connection is not None:
            try:
                self._connection.close()
            except duckdb.Error as e:
                logger.warning(f"Error closing DuckDB connection: {e}")
            finally:
                self._connection = None
        logger.info(f"DuckDB disconnected: {self.database}")


class DuckDBDriver(BaseDriver):
    """
    Driver for DuckDB embedded database.

    Parameters:
        Database: Path to database file, or ":memory:" (default)
        ReadOnly: Open in read-only mode (default: false)

    Example:
        connection = Connection(DuckDBDriver(), {"Database": ":memory:"})
        connection.open()
    """

    NAME = "duckdb"

    def open(self, settings: ConnectionSettings) -> DuckDBSession:
        """Connect to a DuckDB database."""
        database = settings.get("Database") or ":memory:"
        read_only = parse_bool("ReadOnly", settings.get("ReadOnly", "false"))

        try:
            connection = duckdb.connect(database=database, read_only=read_only)
        except duckdb.Error as e:
            raise ConnectionError(
                f"Failed to connect to DuckDB: {e}",
                driver=self.NAME,
                original_error=e
            ) from e

        logger.info(f"DuckDB connected: {database}")
        return DuckDBSession(settings, connection, database)
