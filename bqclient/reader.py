"""
Forward-only data reader.

A DataReader walks the rows of one executed query exactly once. Values are
accessed by column ordinal, either untyped (get_value) or through typed
accessors that check the column's reported DbType.
"""

import datetime
import decimal
import json
import logging
from typing import Any, Callable, Iterator, List, Optional, Set, Tuple, Union

from bqclient.exceptions import InvalidOperationError, OutOfRangeError, TypeMismatchError
from bqclient.types import ColumnDescriptor, DbType, DriverResult

logger = logging.getLogger(__name__)

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1

_INTEGER_TYPES = {DbType.INT64}
_FLOAT_TYPES = {DbType.FLOAT64, DbType.INT64, DbType.NUMERIC}
_DECIMAL_TYPES = {DbType.NUMERIC, DbType.INT64}
_STRING_TYPES = {DbType.STRING, DbType.JSON}
_DATETIME_TYPES = {DbType.DATETIME, DbType.TIMESTAMP}


class DataReader:
    """
    Forward-only, single-pass row cursor.

    Usage:
        with command.execute_reader() as reader:
            while reader.read():
                number = reader.get_int32(0)
    """

    def __init__(
        self,
        result: DriverResult,
        on_close: Optional[Callable[["DataReader"], None]] = None,
    ):
        self._columns: List[ColumnDescriptor] = list(result.columns)
        self._rows: Iterator[Tuple[Any, ...]] = iter(result.rows)
        self._on_close = on_close
        self._current: Optional[Tuple[Any, ...]] = None
        self._pending: Optional[Tuple[Any, ...]] = None
        self._exhausted = False
        self._row_count = 0
        self._closed = False

    # ------------------------------------------------------------------
    # Cursor movement
    # ------------------------------------------------------------------

    def read(self) -> bool:
        """Advance to the next row. Returns False at the end of the results."""
        self._check_open()

        if self._pending is not None:
            row, self._pending = self._pending, None
        elif self._exhausted:
            row = None
        else:
            row = next(self._rows, None)

        if row is None:
            self._exhausted = True
            self._current = None
            return False

        self._current = row
        self._row_count += 1
        return True

    @property
    def has_rows(self) -> bool:
        """True if the result contains at least one row."""
        self._check_open()
        if self._row_count > 0:
            return True
        if self._pending is None and not self._exhausted:
            self._pending = next(self._rows, None)
            if self._pending is None:
                self._exhausted = True
        return self._pending is not None

    @property
    def records_affected(self) -> int:
        """Queries never report affected rows."""
        return -1

    @property
    def row_count(self) -> int:
        """Number of rows read so far."""
        return self._row_count

    # ------------------------------------------------------------------
    # Column metadata
    # ------------------------------------------------------------------

    @property
    def field_count(self) -> int:
        return len(self._columns)

    @property
    def columns(self) -> List[ColumnDescriptor]:
        return list(self._columns)

    def get_name(self, ordinal: int) -> str:
        return self._column(ordinal).name

    def get_field_type(self, ordinal: int) -> DbType:
        return self._column(ordinal).db_type

    def get_ordinal(self, name: str) -> int:
        """Resolve a column name to its ordinal (exact match first, then case-insensitive)."""
        for i, column in enumerate(self._columns):
            if column.name == name:
                return i
        lowered = name.lower()
        for i, column in enumerate(self._columns):
            if column.name.lower() == lowered:
                return i
        raise OutOfRangeError(f"No column named '{name}'")

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def get_value(self, ordinal: int) -> Any:
        self._column(ordinal)
        return self._row()[ordinal]

    def get_values(self) -> Tuple[Any, ...]:
        return tuple(self._row())

    def is_null(self, ordinal: int) -> bool:
        return self.get_value(ordinal) is None

    def get_int32(self, ordinal: int) -> int:
        value = self._typed(ordinal, "get_int32", _INTEGER_TYPES)
        if not INT32_MIN <= value <= INT32_MAX:
            raise TypeMismatchError(
                f"Value {value} in column '{self.get_name(ordinal)}' does not fit in a 32-bit integer"
            )
        return int(value)

    def get_int64(self, ordinal: int) -> int:
        return int(self._typed(ordinal, "get_int64", _INTEGER_TYPES))

    def get_double(self, ordinal: int) -> float:
        return float(self._typed(ordinal, "get_double", _FLOAT_TYPES))

    def get_decimal(self, ordinal: int) -> decimal.Decimal:
        value = self._typed(ordinal, "get_decimal", _DECIMAL_TYPES)
        if isinstance(value, decimal.Decimal):
            return value
        return decimal.Decimal(value)

    def get_string(self, ordinal: int) -> str:
        value = self._typed(ordinal, "get_string", _STRING_TYPES)
        if isinstance(value, str):
            return value
        return json.dumps(value, default=str)

    def get_boolean(self, ordinal: int) -> bool:
        return bool(self._typed(ordinal, "get_boolean", {DbType.BOOL}))

    def get_date(self, ordinal: int) -> datetime.date:
        return self._typed(ordinal, "get_date", {DbType.DATE})

    def get_datetime(self, ordinal: int) -> datetime.datetime:
        return self._typed(ordinal, "get_datetime", _DATETIME_TYPES)

    def get_time(self, ordinal: int) -> datetime.time:
        return self._typed(ordinal, "get_time", {DbType.TIME})

    def get_bytes(self, ordinal: int) -> bytes:
        return bytes(self._typed(ordinal, "get_bytes", {DbType.BYTES}))

    def __getitem__(self, key: Union[int, str]) -> Any:
        if isinstance(key, str):
            key = self.get_ordinal(key)
        return self.get_value(key)

    def __iter__(self):
        """Iterate over the remaining rows as tuples."""
        while self.read():
            yield self.get_values()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the reader. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._current = None
        self._pending = None
        close_rows = getattr(self._rows, "close", None)
        if close_rows is not None:
            close_rows()
        if self._on_close is not None:
            self._on_close(self)
        logger.debug(f"Reader closed after {self._row_count} rows")

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_open(self):
        if self._closed:
            raise InvalidOperationError("Reader is closed")

    def _column(self, ordinal: int) -> ColumnDescriptor:
        self._check_open()
        if isinstance(ordinal, bool) or not isinstance(ordinal, int) or not 0 <= ordinal < len(self._columns):
            raise OutOfRangeError(
                f"Column ordinal {ordinal!r} is out of range (field count {len(self._columns)})"
            )
        return self._columns[ordinal]

    def _row(self) -> Tuple[Any, ...]:
        self._check_open()
        if self._current is None:
            raise InvalidOperationError("No current row; call read() first")
        return self._current

    def _typed(self, ordinal: int, accessor: str, allowed: Set[DbType]) -> Any:
        column = self._column(ordinal)
        if column.db_type not in allowed:
            raise TypeMismatchError(
                f"{accessor}() cannot read column '{column.name}' of type {column.db_type.value}"
            )
        value = self._row()[ordinal]
        if value is None:
            raise TypeMismatchError(
                f"Column '{column.name}' is NULL; check is_null() first"
            )
        return value
