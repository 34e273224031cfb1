"""
Base Driver Interface for bqclient

Every backend driver implements this interface so that connections,
commands and the metadata schema provider stay engine-agnostic.

DESIGN PRINCIPLES:
-----------------
1. A driver is stateless; open() returns a DriverSession holding the backend handle
2. Query parameters use ? placeholders (session converts as needed)
3. Results are column descriptors plus a lazy row iterator
4. Backend errors are wrapped in QueryError with the original error attached
5. Metadata enumeration is one level at a time; filtering happens above the driver
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Tuple

from bqclient.config import ConnectionSettings
from bqclient.types import ColumnInfo, DriverResult, StructBehavior, TableInfo

logger = logging.getLogger(__name__)


class DriverSession(ABC):
    """
    An open, authenticated backend session.

    Usage:
        session = BigQueryDriver().open(settings)

        result = session.execute(
            "SELECT * FROM orders WHERE tenant_id = ?",
            ["tenant_a"]
        )
        for row in result.rows:
            ...

        session.close()
    """

    def __init__(self, driver_name: str, settings: ConnectionSettings):
        self.driver_name = driver_name
        self.settings = settings
        self._closed = False

    @abstractmethod
    def execute(
        self,
        sql: str,
        params: Optional[List[Any]] = None,
        timeout: Optional[float] = None,
    ) -> DriverResult:
        """
        Execute a query and return its columns and rows.

        Raises:
            QueryError: If query execution fails
        """
        pass

    @abstractmethod
    def execute_update(
        self,
        sql: str,
        params: Optional[List[Any]] = None,
        timeout: Optional[float] = None,
    ) -> Optional[int]:
        """
        Execute a non-query statement.

        Returns:
            Number of affected rows, or None if the backend cannot report it

        Raises:
            QueryError: If execution fails
        """
        pass

    @abstractmethod
    def list_catalogs(self) -> List[str]:
        """List catalog names in backend order."""
        pass

    @abstractmethod
    def list_schemas(self, catalog: str) -> List[str]:
        """List schema names inside an existing catalog."""
        pass

    @abstractmethod
    def list_tables(self, catalog: str, schema: str, include_constraints: bool) -> List[TableInfo]:
        """
        List tables inside an existing schema.

        Constraints are only looked up when include_constraints is True.
        """
        pass

    @abstractmethod
    def list_columns(self, catalog: str, schema: str, table: str) -> List[ColumnInfo]:
        """List columns of an existing table, in ordinal order."""
        pass

    @abstractmethod
    def table_types(self) -> List[str]:
        """List the table types this backend reports."""
        pass

    @abstractmethod
    def _close(self) -> None:
        """Release the backend handle."""
        pass

    def close(self) -> None:
        """
        Close the session.

        Safe to call more than once.
        """
        if self._closed:
            return
        self._closed = True
        logger.debug(f"Closing {self.driver_name} session")
        self._close()

    @property
    def closed(self) -> bool:
        return self._closed

    def convert_placeholders(self, sql: str, params: Optional[List[Any]] = None) -> Tuple[str, List[Any]]:
        """
        Convert ? placeholders to engine-specific format.

        Default implementation returns sql unchanged.
        """
        return sql, list(params or [])

    def convert_struct(self, value: Any) -> Any:
        """Apply the configured struct behavior to a struct (or list of structs) value."""
        if value is None or self.settings.struct_behavior != StructBehavior.JSON_STRING:
            return value
        return json.dumps(value, default=str, sort_keys=False)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class BaseDriver(ABC):
    """
    Abstract base class for backend drivers.

    Each driver must implement open(), which validates the configuration
    (raising ConfigurationError before any network activity) and establishes
    a session (raising ConnectionError on failure).
    """

    # Driver identifier (e.g., "bigquery", "duckdb")
    NAME: str = "base"

    @abstractmethod
    def open(self, settings: ConnectionSettings) -> DriverSession:
        """
        Open a backend session.

        Raises:
            ConfigurationError: If required parameters are missing or invalid
            ConnectionError: If the session cannot be established
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
