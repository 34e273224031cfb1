"""
bqclient Data Models
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


class DbType(str, Enum):
    """Engine-neutral column type reported by drivers."""
    INT64 = "INT64"
    FLOAT64 = "FLOAT64"
    NUMERIC = "NUMERIC"
    BOOL = "BOOL"
    STRING = "STRING"
    BYTES = "BYTES"
    DATE = "DATE"
    DATETIME = "DATETIME"
    TIMESTAMP = "TIMESTAMP"
    TIME = "TIME"
    INTERVAL = "INTERVAL"
    JSON = "JSON"
    STRUCT = "STRUCT"
    ARRAY = "ARRAY"
    OTHER = "OTHER"


class StructBehavior(str, Enum):
    """How struct-typed values are surfaced to readers."""
    STRICT = "Strict"
    JSON_STRING = "JsonString"


@dataclass(frozen=True)
class ColumnDescriptor:
    """A result column as reported by the driver."""
    name: str
    db_type: DbType
    native_type: str = ""


@dataclass
class DriverResult:
    """
    Result of a query executed by a driver session.

    Rows are produced lazily; a reader consumes them once, in order.
    """
    columns: List[ColumnDescriptor]
    rows: Iterator[Tuple[Any, ...]]


@dataclass(frozen=True)
class TableConstraint:
    """Primary key, foreign key or unique constraint on a table."""
    name: Optional[str]
    constraint_type: str
    columns: Tuple[str, ...] = ()
    referenced_table: Optional[str] = None
    referenced_columns: Tuple[str, ...] = ()


@dataclass
class TableInfo:
    """A table discovered during metadata enumeration."""
    catalog: str
    schema: str
    name: str
    table_type: str
    constraints: List[TableConstraint] = field(default_factory=list)


@dataclass
class ColumnInfo:
    """A column discovered during metadata enumeration."""
    catalog: str
    schema: str
    table: str
    name: str
    ordinal_position: int
    data_type: str
    is_nullable: bool = True
    column_default: Optional[str] = None
    character_maximum_length: Optional[int] = None
    character_octet_length: Optional[int] = None
    numeric_precision: Optional[int] = None
    numeric_precision_radix: Optional[int] = None
    numeric_scale: Optional[int] = None
    datetime_precision: Optional[int] = None
    remarks: Optional[str] = None
    xdbc_type_name: Optional[str] = None


@dataclass(frozen=True)
class DataColumn:
    """A column of a DataTable."""
    name: str
    data_type: type


@dataclass
class DataTable:
    """
    Tabular result returned by Connection.get_schema().

    Attributes:
        table_name: Name of the metadata collection
        columns: Fixed, ordered column set of the collection
        rows: Row tuples, one value per column
    """
    table_name: str
    columns: List[DataColumn]
    rows: List[Tuple[Any, ...]] = field(default_factory=list)

    def column_names(self) -> List[str]:
        """Get list of column names."""
        return [c.name for c in self.columns]

    def to_dicts(self) -> List[Dict[str, Any]]:
        """Return rows as list of dictionaries keyed by column name."""
        names = self.column_names()
        return [dict(zip(names, row)) for row in self.rows]

    def to_dataframe(self):
        """
        Convert the table to a pandas DataFrame.

        Requires pandas to be installed.
        """
        try:
            import pandas as pd
        except ImportError:
            raise ImportError(
                "pandas is required for to_dataframe(). "
                "Install it with: pip install bqclient[pandas]"
            )

        return pd.DataFrame(self.rows, columns=self.column_names())

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    def __getitem__(self, index):
        return self.rows[index]
