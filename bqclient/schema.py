"""
Metadata Schema Provider

Implements Connection.get_schema(collection_name, restrictions): a fixed set
of metadata collections, each with a fixed column schema, filled from the
backend's catalog/schema/table/column enumeration.

RESTRICTION RULES:
-----------------
1. Restrictions are positional: Catalog, Schema, Table, then TableType
   (Tables) or Column (Columns)
2. None, or a missing trailing position, means "no filter"
3. Matching is exact and case-sensitive
4. A restriction that matches nothing gives zero rows, never an error
5. More restrictions than the collection defines gives zero rows

Enumeration descends one level at a time and only asks the driver about
catalogs, schemas and tables that exist, so unknown names never reach the
backend.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from bqclient.config import ConnectionSettings
from bqclient.drivers.base import DriverSession
from bqclient.exceptions import UnsupportedCollectionError
from bqclient.types import ColumnInfo, DataColumn, DataTable, TableInfo

logger = logging.getLogger(__name__)

Restrictions = List[Optional[str]]


class MetadataCollection(str, Enum):
    """The closed set of metadata collections."""

    META_DATA_COLLECTIONS = "MetaDataCollections"
    RESTRICTIONS = "Restrictions"
    CATALOGS = "Catalogs"
    SCHEMAS = "Schemas"
    TABLE_TYPES = "TableTypes"
    TABLES = "Tables"
    COLUMNS = "Columns"

    @classmethod
    def parse(cls, name: Any) -> "MetadataCollection":
        """Resolve a collection name (exact, case-sensitive)."""
        if isinstance(name, cls):
            return name
        try:
            return cls(name)
        except ValueError:
            raise UnsupportedCollectionError(str(name)) from None

    @property
    def columns(self) -> List[DataColumn]:
        return list(_COLUMNS[self])

    @property
    def restriction_names(self) -> Tuple[str, ...]:
        return _RESTRICTION_NAMES[self]

    @property
    def restriction_count(self) -> int:
        return len(_RESTRICTION_NAMES[self])


def _columns(*definitions: Tuple[str, type]) -> List[DataColumn]:
    return [DataColumn(name, data_type) for name, data_type in definitions]


_COLUMNS: Dict[MetadataCollection, List[DataColumn]] = {
    MetadataCollection.META_DATA_COLLECTIONS: _columns(
        ("CollectionName", str),
        ("NumberOfRestrictions", int),
    ),
    MetadataCollection.RESTRICTIONS: _columns(
        ("CollectionName", str),
        ("RestrictionName", str),
        ("RestrictionNumber", int),
    ),
    MetadataCollection.CATALOGS: _columns(
        ("CatalogName", str),
    ),
    MetadataCollection.SCHEMAS: _columns(
        ("CatalogName", str),
        ("SchemaName", str),
    ),
    MetadataCollection.TABLE_TYPES: _columns(
        ("TableType", str),
    ),
    MetadataCollection.TABLES: _columns(
        ("TableCatalog", str),
        ("TableSchema", str),
        ("TableName", str),
        ("TableType", str),
    ),
    MetadataCollection.COLUMNS: _columns(
        ("TableCatalog", str),
        ("TableSchema", str),
        ("TableName", str),
        ("ColumnName", str),
        ("OrdinalPosition", int),
        ("ColumnDefault", str),
        ("IsNullable", str),
        ("DataType", str),
        ("CharacterMaximumLength", int),
        ("CharacterOctetLength", int),
        ("NumericPrecision", int),
        ("NumericPrecisionRadix", int),
        ("NumericScale", int),
        ("DateTimePrecision", int),
        ("Remarks", str),
        ("XdbcTypeName", str),
    ),
}

_RESTRICTION_NAMES: Dict[MetadataCollection, Tuple[str, ...]] = {
    MetadataCollection.META_DATA_COLLECTIONS: (),
    MetadataCollection.RESTRICTIONS: (),
    MetadataCollection.CATALOGS: ("Catalog",),
    MetadataCollection.SCHEMAS: ("Catalog", "Schema"),
    MetadataCollection.TABLE_TYPES: (),
    MetadataCollection.TABLES: ("Catalog", "Schema", "Table", "TableType"),
    MetadataCollection.COLUMNS: ("Catalog", "Schema", "Table", "Column"),
}


def _matches(value: str, restriction: Optional[str]) -> bool:
    return restriction is None or value == restriction


class SchemaProvider:
    """
    Answers get_schema() requests for one open session.

    Usage:
        provider = SchemaProvider(session, settings)
        tables = provider.get_schema("Tables", ["my-project", "analytics"])
    """

    def __init__(self, session: DriverSession, settings: ConnectionSettings):
        self._session = session
        self._settings = settings
        self._handlers: Dict[MetadataCollection, Callable[[Restrictions], List[Tuple[Any, ...]]]] = {
            MetadataCollection.META_DATA_COLLECTIONS: self._meta_data_collections,
            MetadataCollection.RESTRICTIONS: self._restrictions,
            MetadataCollection.CATALOGS: self._catalogs,
            MetadataCollection.SCHEMAS: self._schemas,
            MetadataCollection.TABLE_TYPES: self._table_types,
            MetadataCollection.TABLES: self._tables,
            MetadataCollection.COLUMNS: self._columns,
        }

    def get_schema(
        self,
        collection_name: Any,
        restrictions: Optional[Sequence[Optional[str]]] = None,
    ) -> DataTable:
        """
        Return the rows of a metadata collection.

        Args:
            collection_name: One of the MetadataCollection names
            restrictions: Positional filters; shorter lists filter fewer levels

        Raises:
            UnsupportedCollectionError: If the collection name is unknown
        """
        collection = MetadataCollection.parse(collection_name)
        restrictions = list(restrictions or [])
        table = DataTable(table_name=collection.value, columns=collection.columns)

        if len(restrictions) > collection.restriction_count:
            logger.debug(
                f"{collection.value}: {len(restrictions)} restrictions given, "
                f"{collection.restriction_count} supported; returning no rows"
            )
            return table

        padded = restrictions + [None] * (collection.restriction_count - len(restrictions))
        table.rows = self._handlers[collection](padded)
        logger.debug(f"{collection.value} {restrictions}: {len(table.rows)} rows")
        return table

    def get_objects(
        self,
        catalog: Optional[str] = None,
        schema: Optional[str] = None,
        table: Optional[str] = None,
        table_type: Optional[str] = None,
    ) -> List[TableInfo]:
        """
        Enumerate tables matching the given filters.

        Constraints are attached when the connection's IncludeTableConstraints
        flag is set.
        """
        include_constraints = self._settings.include_table_constraints
        tables = []
        for catalog_name, schema_name in self._walk_schemas(catalog, schema):
            for info in self._session.list_tables(catalog_name, schema_name, include_constraints):
                if _matches(info.name, table) and _matches(info.table_type, table_type):
                    tables.append(info)
        return tables

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    def _walk_catalogs(self, catalog: Optional[str]) -> List[str]:
        return [c for c in self._session.list_catalogs() if _matches(c, catalog)]

    def _walk_schemas(self, catalog: Optional[str], schema: Optional[str]) -> List[Tuple[str, str]]:
        pairs = []
        for catalog_name in self._walk_catalogs(catalog):
            for schema_name in self._session.list_schemas(catalog_name):
                if _matches(schema_name, schema):
                    pairs.append((catalog_name, schema_name))
        return pairs

    # ------------------------------------------------------------------
    # Collection handlers
    # ------------------------------------------------------------------

    def _meta_data_collections(self, restrictions: Restrictions):
        return [(c.value, c.restriction_count) for c in MetadataCollection]

    def _restrictions(self, restrictions: Restrictions):
        return [
            (c.value, name, number)
            for c in MetadataCollection
            for number, name in enumerate(c.restriction_names, start=1)
        ]

    def _catalogs(self, restrictions: Restrictions):
        return [(c,) for c in self._walk_catalogs(restrictions[0])]

    def _schemas(self, restrictions: Restrictions):
        return self._walk_schemas(restrictions[0], restrictions[1])

    def _table_types(self, restrictions: Restrictions):
        return [(t,) for t in self._session.table_types()]

    def _tables(self, restrictions: Restrictions):
        return [
            (t.catalog, t.schema, t.name, t.table_type)
            for t in self.get_objects(*restrictions)
        ]

    def _columns(self, restrictions: Restrictions):
        catalog, schema, table, column = restrictions
        rows = []
        for info in self.get_objects(catalog, schema, table):
            for col in self._session.list_columns(info.catalog, info.schema, info.name):
                if _matches(col.name, column):
                    rows.append(_column_row(col))
        return rows


def _column_row(col: ColumnInfo) -> Tuple[Any, ...]:
    return (
        col.catalog,
        col.schema,
        col.table,
        col.name,
        col.ordinal_position,
        col.column_default,
        "YES" if col.is_nullable else "NO",
        col.data_type,
        col.character_maximum_length,
        col.character_octet_length,
        col.numeric_precision,
        col.numeric_precision_radix,
        col.numeric_scale,
        col.datetime_precision,
        col.remarks,
        col.xdbc_type_name,
    )
