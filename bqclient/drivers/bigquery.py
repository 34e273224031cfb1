"""
BigQuery Driver for bqclient

Google BigQuery is the primary backend of the client:
- TB to PB scale analytics
- Serverless architecture (no infrastructure to manage)
- No server-side cursors: large results are paged with LIMIT/OFFSET

Metadata mapping:
- Catalogs: GCP projects visible to the credentials
- Schemas: datasets inside a project
- Tables: tables, views, external tables, materialized views, snapshots
"""

import json
import logging
import time
from typing import Any, List, Optional, Tuple

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import bigquery
from google.oauth2 import service_account

from bqclient.config import ConnectionSettings
from bqclient.drivers.base import BaseDriver, DriverSession
from bqclient.exceptions import ConfigurationError, ConnectionError, QueryError
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

AUTH_APPLICATION_DEFAULT = "ApplicationDefault"
AUTH_SERVICE_ACCOUNT_FILE = "ServiceAccountFile"
AUTH_SERVICE_ACCOUNT_JSON = "ServiceAccountJson"

_AUTH_TYPES = (AUTH_APPLICATION_DEFAULT, AUTH_SERVICE_ACCOUNT_FILE, AUTH_SERVICE_ACCOUNT_JSON)

_TYPE_MAP = {
    "INTEGER": DbType.INT64,
    "INT64": DbType.INT64,
    "FLOAT": DbType.FLOAT64,
    "FLOAT64": DbType.FLOAT64,
    "NUMERIC": DbType.NUMERIC,
    "BIGNUMERIC": DbType.NUMERIC,
    "BOOLEAN": DbType.BOOL,
    "BOOL": DbType.BOOL,
    "STRING": DbType.STRING,
    "GEOGRAPHY": DbType.STRING,
    "BYTES": DbType.BYTES,
    "DATE": DbType.DATE,
    "DATETIME": DbType.DATETIME,
    "TIMESTAMP": DbType.TIMESTAMP,
    "TIME": DbType.TIME,
    "INTERVAL": DbType.INTERVAL,
    "JSON": DbType.JSON,
    "RECORD": DbType.STRUCT,
    "STRUCT": DbType.STRUCT,
}

_TABLE_TYPES = ["TABLE", "VIEW", "EXTERNAL", "MATERIALIZED_VIEW", "SNAPSHOT"]


def map_field_type(field: "bigquery.SchemaField") -> DbType:
    """Map a BigQuery schema field to a DbType."""
    if field.mode == "REPEATED":
        return DbType.ARRAY
    return _TYPE_MAP.get((field.field_type or "").upper(), DbType.OTHER)


class BigQuerySession(DriverSession):
    """Authenticated BigQuery client."""

    PLACEHOLDER = "@param"  # BigQuery uses named parameters

    def __init__(self, settings: ConnectionSettings, client: "bigquery.Client"):
        super().__init__(BigQueryDriver.NAME, settings)
        self._client = client
        self.project = client.project
        self.location = settings.get("Location")
        self.maximum_bytes_billed = _parse_int(settings, "MaximumBytesBilled")
        self.default_dataset = settings.get("DatasetId")

    def _check_open(self):
        if self.closed or self._client is None:
            raise QueryError("Not connected to BigQuery", driver=self.driver_name)

    def convert_placeholders(self, sql: str, params: Optional[List[Any]] = None) -> Tuple[str, List["bigquery.ScalarQueryParameter"]]:
        """
        Convert ? placeholders to BigQuery named parameters.

        BigQuery uses @param_name syntax for parameters.
        We convert positional ? to @p0, @p1, @p2, etc.
        Placeholders inside quoted literals are left alone.
        """
        if not params:
            return sql, []

        bq_params = []
        param_index = 0
        converted = []
        quote = None

        for ch in sql:
            if quote:
                if ch == quote:
                    quote = None
                converted.append(ch)
            elif ch in ("'", '"', "`"):
                quote = ch
                converted.append(ch)
            elif ch == "?":
                if param_index >= len(params):
                    raise QueryError(
                        "More ? placeholders than parameters",
                        driver=self.driver_name
                    )
                param_name = f"p{param_index}"
                converted.append(f"@{param_name}")
                value = params[param_index]
                bq_params.append(
                    bigquery.ScalarQueryParameter(param_name, self._infer_bq_type(value), value)
                )
                param_index += 1
            else:
                converted.append(ch)

        return "".join(converted), bq_params

    def _infer_bq_type(self, value: Any) -> str:
        """Infer BigQuery type from Python value."""
        if value is None:
            return "STRING"  # Default to STRING for NULL
        elif isinstance(value, bool):
            return "BOOL"
        elif isinstance(value, int):
            return "INT64"
        elif isinstance(value, float):
            return "FLOAT64"
        elif isinstance(value, bytes):
            return "BYTES"
        else:
            return "STRING"

    def _job_config(self, params: List[Any]) -> "bigquery.QueryJobConfig":
        job_config = bigquery.QueryJobConfig(use_legacy_sql=False)
        if params:
            job_config.query_parameters = params
        if self.maximum_bytes_billed:
            job_config.maximum_bytes_billed = self.maximum_bytes_billed
        if self.default_dataset:
            job_config.default_dataset = f"{self.project}.{self.default_dataset}"
        return job_config

    def _run(self, sql: str, params: Optional[List[Any]], timeout: Optional[float]):
        self._check_open()
        bq_sql, bq_params = self.convert_placeholders(sql, params)

        try:
            query_job = self._client.query(
                bq_sql,
                job_config=self._job_config(bq_params),
                location=self.location,
                timeout=timeout,
            )
            result = query_job.result(timeout=timeout)
        except GoogleAPIError as e:
            raise QueryError(
                f"BigQuery query failed: {e.message if hasattr(e, 'message') else str(e)}",
                driver=self.driver_name,
                original_error=e
            ) from e

        return query_job, result

    def execute(
        self,
        sql: str,
        params: Optional[List[Any]] = None,
        timeout: Optional[float] = None,
    ) -> DriverResult:
        """
        Execute SQL query on BigQuery.

        Rows are streamed page by page from the result iterator.
        """
        start_time = time.perf_counter()
        query_job, result = self._run(sql, params, timeout)

        schema = list(result.schema or [])
        json_structs = self.settings.struct_behavior == StructBehavior.JSON_STRING
        struct_indexes = [
            i for i, field in enumerate(schema)
            if (field.field_type or "").upper() in ("RECORD", "STRUCT")
        ]

        columns = []
        for i, field in enumerate(schema):
            db_type = map_field_type(field)
            if json_structs and i in struct_indexes:
                db_type = DbType.STRING
            columns.append(ColumnDescriptor(name=field.name, db_type=db_type, native_type=field.field_type))

        logger.debug(
            f"BigQuery job {query_job.job_id} finished in "
            f"{(time.perf_counter() - start_time) * 1000:.1f}ms "
            f"(cache_hit={query_job.cache_hit})"
        )

        return DriverResult(
            columns=columns,
            rows=self._iter_rows(result, struct_indexes if json_structs else []),
        )

    def _iter_rows(self, result, struct_indexes: List[int]):
        try:
            for row in result:
                values = list(row.values())
                for i in struct_indexes:
                    values[i] = self.convert_struct(values[i])
                yield tuple(values)
        except GoogleAPIError as e:
            raise QueryError(
                f"BigQuery result fetch failed: {e}",
                driver=self.driver_name,
                original_error=e
            ) from e

    def execute_update(
        self,
        sql: str,
        params: Optional[List[Any]] = None,
        timeout: Optional[float] = None,
    ) -> Optional[int]:
        """
        Execute a statement on BigQuery.

        DML jobs report num_dml_affected_rows; DDL and queries report None.
        """
        query_job, _ = self._run(sql, params, timeout)
        affected = query_job.num_dml_affected_rows
        return None if affected is None else int(affected)

    def list_catalogs(self) -> List[str]:
        self._check_open()
        try:
            projects = [p.project_id for p in self._client.list_projects()]
        except GoogleAPIError as e:
            raise QueryError(f"Failed to list projects: {e}", driver=self.driver_name, original_error=e) from e

        return [self.project] + [p for p in projects if p != self.project]

    def list_schemas(self, catalog: str) -> List[str]:
        self._check_open()
        try:
            return [ds.dataset_id for ds in self._client.list_datasets(project=catalog)]
        except GoogleAPIError as e:
            raise QueryError(f"Failed to list datasets in {catalog}: {e}", driver=self.driver_name, original_error=e) from e

    def list_tables(self, catalog: str, schema: str, include_constraints: bool) -> List[TableInfo]:
        self._check_open()
        dataset_ref = bigquery.DatasetReference(catalog, schema)
        try:
            tables = []
            for item in self._client.list_tables(dataset_ref):
                table = TableInfo(
                    catalog=catalog,
                    schema=schema,
                    name=item.table_id,
                    table_type=item.table_type,
                )
                if include_constraints:
                    table.constraints = self._load_constraints(item.reference)
                tables.append(table)
            return tables
        except GoogleAPIError as e:
            raise QueryError(f"Failed to list tables in {catalog}.{schema}: {e}", driver=self.driver_name, original_error=e) from e

    def _load_constraints(self, table_ref) -> List[TableConstraint]:
        table = self._client.get_table(table_ref)
        table_constraints = table.table_constraints
        if table_constraints is None:
            return []

        constraints = []
        if table_constraints.primary_key is not None:
            constraints.append(
                TableConstraint(
                    name=None,
                    constraint_type="PRIMARY KEY",
                    columns=tuple(table_constraints.primary_key.columns),
                )
            )
        for fk in table_constraints.foreign_keys or []:
            referenced = fk.referenced_table
            constraints.append(
                TableConstraint(
                    name=fk.name,
                    constraint_type="FOREIGN KEY",
                    columns=tuple(ref.referencing_column for ref in fk.column_references),
                    referenced_table=f"{referenced.project}.{referenced.dataset_id}.{referenced.table_id}",
                    referenced_columns=tuple(ref.referenced_column for ref in fk.column_references),
                )
            )
        return constraints

    def list_columns(self, catalog: str, schema: str, table: str) -> List[ColumnInfo]:
        self._check_open()
        table_ref = bigquery.TableReference(bigquery.DatasetReference(catalog, schema), table)
        try:
            tbl = self._client.get_table(table_ref)
        except GoogleAPIError as e:
            raise QueryError(f"Failed to get table {catalog}.{schema}.{table}: {e}", driver=self.driver_name, original_error=e) from e

        return [
            ColumnInfo(
                catalog=catalog,
                schema=schema,
                table=table,
                name=field.name,
                ordinal_position=position,
                data_type=field.field_type,
                is_nullable=field.mode != "REQUIRED",
                column_default=field.default_value_expression,
                character_maximum_length=field.max_length,
                numeric_precision=field.precision,
                numeric_precision_radix=10 if field.precision is not None else None,
                numeric_scale=field.scale,
                remarks=field.description,
                xdbc_type_name=map_field_type(field).value,
            )
            for position, field in enumerate(tbl.schema, start=1)
        ]

    def table_types(self) -> List[str]:
        return list(_TABLE_TYPES)

    def _close(self) -> None:
        """Close BigQuery client."""
        if self._client:
            try:
                self._client.close()
            except Exception as e:
                logger.warning(f"Error closing BigQuery client: {e}")
            finally:
                self._client = None
        logger.info(f"BigQuery disconnected: {self.project}")


class BigQueryDriver(BaseDriver):
    """
    Driver for Google BigQuery.

    Parameters:
        ProjectId: GCP project ID (required)

        # Authentication
        AuthType: ApplicationDefault (default), ServiceAccountFile or ServiceAccountJson
        Credentials: Key file path or JSON, depending on AuthType

        # Optional settings
        Location: Default job location
        DatasetId: Default dataset for unqualified table names
        MaximumBytesBilled: Max bytes to scan (prevents runaway queries)

    Example:
        connection = Connection(
            BigQueryDriver(),
            {
                "ProjectId": "my-gcp-project",
                "AuthType": "ServiceAccountFile",
                "Credentials": "/path/to/service-account.json",
            },
        )
        connection.open()
    """

    NAME = "bigquery"

    def _build_credentials(self, settings: ConnectionSettings):
        """Build credentials from parameters."""
        auth_type = settings.get("AuthType") or AUTH_APPLICATION_DEFAULT
        credentials = settings.get("Credentials")

        if auth_type not in _AUTH_TYPES:
            raise ConfigurationError(
                f"Unsupported AuthType '{auth_type}'. Allowed: {', '.join(_AUTH_TYPES)}",
                driver=self.NAME
            )

        if auth_type == AUTH_APPLICATION_DEFAULT:
            return None

        if not credentials:
            raise ConfigurationError(
                f"AuthType '{auth_type}' requires the Credentials parameter",
                driver=self.NAME
            )

        try:
            if auth_type == AUTH_SERVICE_ACCOUNT_FILE:
                return service_account.Credentials.from_service_account_file(credentials)
            return service_account.Credentials.from_service_account_info(json.loads(credentials))
        except (OSError, ValueError) as e:
            # JSONDecodeError is a ValueError; malformed keys raise ValueError too
            raise ConfigurationError(
                f"Invalid service account credentials: {e}",
                driver=self.NAME,
                original_error=e
            ) from e

    def open(self, settings: ConnectionSettings) -> BigQuerySession:
        """Connect to BigQuery."""
        project = settings.get("ProjectId")
        if not project:
            raise ConfigurationError("Missing required parameter: ProjectId", driver=self.NAME)
        _parse_int(settings, "MaximumBytesBilled")
        credentials = self._build_credentials(settings)

        try:
            logger.info(f"Connecting to BigQuery: project={project}")

            client = bigquery.Client(
                project=project,
                credentials=credentials,
                location=settings.get("Location"),
            )

            # Authenticate now rather than on the first query
            client.get_service_account_email()

        except (GoogleAPIError, GoogleAuthError, OSError, ValueError) as e:
            raise ConnectionError(
                f"Failed to connect to BigQuery: {e}",
                driver=self.NAME,
                original_error=e
            ) from e

        logger.info(f"BigQuery connected: {project}")
        return BigQuerySession(settings, client)


def _parse_int(settings: ConnectionSettings, key: str) -> Optional[int]:
    raw = settings.get(key)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"Invalid integer value for '{key}': {raw!r}", driver=BigQueryDriver.NAME) from e

