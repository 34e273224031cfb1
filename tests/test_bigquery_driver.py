"""
Tests for the BigQuery driver with a mocked google-cloud-bigquery client.
"""

import json
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from google.api_core.exceptions import BadRequest
from google.auth.exceptions import DefaultCredentialsError
from google.cloud import bigquery
from google.cloud.bigquery.table import Row

from bqclient import (
    BigQueryDriver,
    ConfigurationError,
    Connection,
    ConnectionError,
    ConnectionSettings,
    DbType,
    QueryError,
)
from bqclient.drivers.bigquery import map_field_type


@pytest.fixture
def bq_client():
    """Patch bigquery.Client and return the mocked client instance."""
    with patch("bqclient.drivers.bigquery.bigquery.Client") as client_cls:
        client = client_cls.return_value
        client.project = "proj"
        yield client


def open_session(**parameters):
    parameters.setdefault("ProjectId", "proj")
    return BigQueryDriver().open(ConnectionSettings.from_parameters(parameters))


def query_result(client, schema, rows, affected=None):
    """Configure client.query() to return the given schema and rows."""
    field_to_index = {field.name: i for i, field in enumerate(schema)}
    result = MagicMock()
    result.schema = schema
    result.__iter__.return_value = iter([Row(tuple(r), field_to_index) for r in rows])

    job = MagicMock()
    job.result.return_value = result
    job.num_dml_affected_rows = affected
    client.query.return_value = job
    return job


class TestOpen:
    """Tests for BigQueryDriver.open()."""

    def test_missing_project(self, bq_client):
        with pytest.raises(ConfigurationError):
            BigQueryDriver().open(ConnectionSettings.from_parameters({}))

    def test_unknown_auth_type(self, bq_client):
        with pytest.raises(ConfigurationError):
            open_session(AuthType="Password")

    def test_service_account_needs_credentials(self, bq_client):
        with pytest.raises(ConfigurationError):
            open_session(AuthType="ServiceAccountFile")

    def test_missing_key_file(self, bq_client, tmp_path):
        with pytest.raises(ConfigurationError):
            open_session(AuthType="ServiceAccountFile", Credentials=str(tmp_path / "missing.json"))

    def test_malformed_key_json(self, bq_client):
        with pytest.raises(ConfigurationError):
            open_session(AuthType="ServiceAccountJson", Credentials="{not json")

    def test_invalid_maximum_bytes_billed(self, bq_client):
        with pytest.raises(ConfigurationError):
            open_session(MaximumBytesBilled="lots")

    def test_authentication_failure(self, bq_client):
        """Test credential lookup failures surface as ConnectionError."""
        bq_client.get_service_account_email.side_effect = DefaultCredentialsError("no credentials")
        with pytest.raises(ConnectionError) as exc_info:
            open_session()
        assert isinstance(exc_info.value.original_error, DefaultCredentialsError)

    def test_open_success(self, bq_client):
        session = open_session(Location="EU")
        assert session.project == "proj"
        assert session.location == "EU"
        assert not session.closed
        session.close()
        bq_client.close.assert_called_once()


class TestPlaceholders:
    """Tests for ? -> @pN conversion."""

    def test_positional_to_named(self, bq_client):
        session = open_session()
        sql, params = session.convert_placeholders(
            "SELECT * FROM t WHERE a = ? AND b = '?' AND c = ?", [1, "x"]
        )
        assert sql == "SELECT * FROM t WHERE a = @p0 AND b = '?' AND c = @p1"
        assert [(p.name, p.type_, p.value) for p in params] == [("p0", "INT64", 1), ("p1", "STRING", "x")]

    def test_inferred_types(self, bq_client):
        session = open_session()
        _, params = session.convert_placeholders("SELECT ?, ?, ?", [True, 1.5, b"\x00"])
        assert [p.type_ for p in params] == ["BOOL", "FLOAT64", "BYTES"]

    def test_too_few_parameters(self, bq_client):
        session = open_session()
        with pytest.raises(QueryError):
            session.convert_placeholders("SELECT ?, ?", [1])

    def test_no_parameters_leaves_sql(self, bq_client):
        session = open_session()
        assert session.convert_placeholders("SELECT '?'", None) == ("SELECT '?'", [])


class TestExecute:
    """Tests for query and update execution."""

    def test_rows_and_columns(self, bq_client):
        schema = [
            bigquery.SchemaField("id", "INTEGER"),
            bigquery.SchemaField("name", "STRING"),
            bigquery.SchemaField("tags", "STRING", mode="REPEATED"),
        ]
        query_result(bq_client, schema, [(1, "a", ["x"]), (2, "b", [])])

        result = open_session().execute("SELECT id, name, tags FROM t")
        assert [c.db_type for c in result.columns] == [DbType.INT64, DbType.STRING, DbType.ARRAY]
        assert list(result.rows) == [(1, "a", ["x"]), (2, "b", [])]

    def test_job_config(self, bq_client):
        query_result(bq_client, [], [])
        open_session(MaximumBytesBilled="1000", DatasetId="analytics").execute("SELECT ?", [7], timeout=30)

        _, kwargs = bq_client.query.call_args
        job_config = kwargs["job_config"]
        assert job_config.maximum_bytes_billed == 1000
        assert job_config.default_dataset.dataset_id == "analytics"
        assert job_config.query_parameters[0].value == 7
        assert kwargs["timeout"] == 30

    def test_struct_as_json_string(self, bq_client):
        schema = [
            bigquery.SchemaField(
                "address", "RECORD", fields=[bigquery.SchemaField("city", "STRING")]
            ),
        ]
        query_result(bq_client, schema, [({"city": "Pune"},)])

        result = open_session(StructBehavior="JsonString").execute("SELECT address FROM t")
        assert result.columns[0].db_type == DbType.STRING
        assert json.loads(next(result.rows)[0]) == {"city": "Pune"}

    def test_struct_strict(self, bq_client):
        schema = [
            bigquery.SchemaField(
                "address", "RECORD", fields=[bigquery.SchemaField("city", "STRING")]
            ),
        ]
        query_result(bq_client, schema, [({"city": "Pune"},)])

        result = open_session().execute("SELECT address FROM t")
        assert result.columns[0].db_type == DbType.STRUCT
        assert next(result.rows)[0] == {"city": "Pune"}

    def test_backend_error(self, bq_client):
        error = BadRequest("Syntax error: Unexpected keyword")
        bq_client.query.side_effect = error
        with pytest.raises(QueryError) as exc_info:
            open_session().execute("SELEC 1")
        assert exc_info.value.original_error is error
        assert "Syntax error" in str(exc_info.value)

    def test_update_counts(self, bq_client):
        query_result(bq_client, [], [], affected=3)
        assert open_session().execute_update("DELETE FROM t WHERE TRUE") == 3

    def test_update_without_count(self, bq_client):
        """Test DDL through a Command reports -1."""
        query_result(bq_client, [], [], affected=None)
        with Connection("bigquery", {"ProjectId": "proj"}) as conn:
            conn.open()
            assert conn.create_command("CREATE TABLE ds.t (x INT64)").execute_update() == -1


class TestMetadata:
    """Tests for project/dataset/table enumeration."""

    @pytest.fixture
    def catalog(self, bq_client):
        bq_client.list_projects.return_value = [SimpleNamespace(project_id="shared")]
        bq_client.list_datasets.return_value = [SimpleNamespace(dataset_id="analytics")]
        bq_client.list_tables.return_value = [
            SimpleNamespace(table_id="events", table_type="TABLE", reference="events-ref"),
            SimpleNamespace(table_id="daily", table_type="VIEW", reference="daily-ref"),
        ]
        bq_client.get_table.return_value = SimpleNamespace(
            table_constraints=SimpleNamespace(
                primary_key=SimpleNamespace(columns=["id"]),
                foreign_keys=[],
            ),
            schema=[
                bigquery.SchemaField("id", "INTEGER", mode="REQUIRED"),
                bigquery.SchemaField("label", "STRING", max_length=50, description="Event label"),
                bigquery.SchemaField("amount", "NUMERIC", precision=10, scale=2),
            ],
        )
        return bq_client

    def test_catalogs_include_client_project(self, catalog):
        assert open_session().list_catalogs() == ["proj", "shared"]

    def test_client_project_moved_first(self, catalog):
        catalog.list_projects.return_value = [
            SimpleNamespace(project_id="shared"),
            SimpleNamespace(project_id="proj"),
        ]
        assert open_session().list_catalogs() == ["proj", "shared"]

    def test_tables_without_constraints(self, catalog):
        tables = open_session().list_tables("proj", "analytics", include_constraints=False)
        assert [(t.name, t.table_type) for t in tables] == [("events", "TABLE"), ("daily", "VIEW")]
        catalog.get_table.assert_not_called()

    def test_tables_with_constraints(self, catalog):
        tables = open_session().list_tables("proj", "analytics", include_constraints=True)
        assert tables[0].constraints[0].constraint_type == "PRIMARY KEY"
        assert tables[0].constraints[0].columns == ("id",)

    def test_columns(self, catalog):
        columns = open_session().list_columns("proj", "analytics", "events")
        assert [c.name for c in columns] == ["id", "label", "amount"]
        assert [c.ordinal_position for c in columns] == [1, 2, 3]
        assert columns[0].is_nullable is False
        assert columns[1].character_maximum_length == 50
        assert columns[1].remarks == "Event label"
        assert columns[2].numeric_precision == 10
        assert columns[2].numeric_scale == 2
        assert columns[2].xdbc_type_name == "NUMERIC"

    def test_get_schema_through_connection(self, catalog):
        with Connection.from_connection_string("ProjectId=proj", driver="bq") as conn:
            conn.open()
            tables = conn.get_schema("Tables", ["proj", "analytics"])
            assert tables.rows == [
                ("proj", "analytics", "events", "TABLE"),
                ("proj", "analytics", "daily", "VIEW"),
            ]
            assert len(conn.get_schema("Schemas", ["unknown-project"])) == 0
        catalog.list_datasets.assert_called_once_with(project="proj")

    def test_table_types(self, catalog):
        assert "MATERIALIZED_VIEW" in open_session().table_types()


class TestFieldTypes:
    """Tests for map_field_type()."""

    @pytest.mark.parametrize("field_type,expected", [
        ("INTEGER", DbType.INT64),
        ("FLOAT", DbType.FLOAT64),
        ("BIGNUMERIC", DbType.NUMERIC),
        ("BOOLEAN", DbType.BOOL),
        ("TIMESTAMP", DbType.TIMESTAMP),
        ("RECORD", DbType.STRUCT),
        ("SOMETHING_NEW", DbType.OTHER),
    ])
    def test_mapping(self, field_type, expected):
        assert map_field_type(bigquery.SchemaField("f", field_type)) == expected


class TestRequirements:
    """Tests that the driver's direct imports are declared dependencies."""

    @pytest.mark.parametrize("distribution", ["google-cloud-bigquery", "google-api-core", "google-auth"])
    def test_declared_in_setup(self, distribution):
        setup_py = Path(__file__).resolve().parent.parent / "setup.py"
        assert f'"{distribution}>=' in setup_py.read_text()
