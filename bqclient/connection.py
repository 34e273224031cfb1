"""
Connections

A Connection owns at most one open driver session together with the
commands and metadata provider created on it.

Usage:
    with Connection("bigquery", {"ProjectId": "my-project"}) as conn:
        conn.open()
        tables = conn.get_schema("Tables", ["my-project", "analytics"])

        with conn.create_command("SELECT COUNT(*) FROM analytics.orders") as cmd:
            total = cmd.execute_scalar()

A connection is configured exactly one way: from a parameter mapping
(plus optional options) or from a connection string.
"""

import logging
import weakref
from enum import Enum
from typing import Any, List, Mapping, Optional, Sequence, Union

from bqclient.command import Command
from bqclient.config import ConnectionSettings
from bqclient.drivers import get_driver
from bqclient.drivers.base import BaseDriver, DriverSession
from bqclient.exceptions import ConfigurationError, InvalidOperationError
from bqclient.schema import SchemaProvider
from bqclient.settings import settings as client_settings
from bqclient.types import DataTable, StructBehavior, TableInfo

logger = logging.getLogger(__name__)

DriverLike = Union[BaseDriver, str]


class ConnectionState(str, Enum):
    CLOSED = "Closed"
    OPEN = "Open"


class Connection:
    """
    Client connection to a query backend.

    Args:
        driver: Driver instance or registered driver name
        parameters: Driver parameters (e.g. ProjectId, AuthType)
        options: Additional connection options merged into parameters
        connection_string: Semicolon-delimited alternative to parameters
    """

    def __init__(
        self,
        driver: Optional[DriverLike] = None,
        parameters: Optional[Mapping[str, str]] = None,
        options: Optional[Mapping[str, str]] = None,
        connection_string: Optional[str] = None,
    ):
        if connection_string is not None and (parameters is not None or options is not None):
            raise ConfigurationError(
                "Configure a connection with either parameters or a connection string, not both"
            )

        self._driver: Optional[BaseDriver] = None
        self._settings: Optional[ConnectionSettings] = None
        self._connection_string: Optional[str] = None
        self._session: Optional[DriverSession] = None
        self._schema: Optional[SchemaProvider] = None
        self._commands: "weakref.WeakSet[Command]" = weakref.WeakSet()

        if driver is not None:
            self.driver = driver
        if connection_string is not None:
            self.connection_string = connection_string
        elif parameters is not None or options is not None:
            self._settings = ConnectionSettings.from_parameters(parameters or {}, options)

    @classmethod
    def from_connection_string(
        cls,
        connection_string: str,
        driver: Optional[DriverLike] = None,
    ) -> "Connection":
        return cls(driver=driver, connection_string=connection_string)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def driver(self) -> Optional[BaseDriver]:
        return self._driver

    @driver.setter
    def driver(self, value: DriverLike) -> None:
        self._require_closed("change the driver")
        self._driver = get_driver(value) if isinstance(value, str) else value

    @property
    def connection_string(self) -> Optional[str]:
        return self._connection_string

    @connection_string.setter
    def connection_string(self, value: str) -> None:
        if self._settings is not None and self._settings.source == "parameters":
            raise ConfigurationError(
                "Connection is configured with parameters; a connection string cannot also be set"
            )
        self._require_closed("change the connection string")
        self._settings = ConnectionSettings.from_connection_string(value)
        self._connection_string = value

    @property
    def settings(self) -> Optional[ConnectionSettings]:
        return self._settings

    @property
    def include_table_constraints(self) -> bool:
        return self._settings.include_table_constraints if self._settings else True

    @include_table_constraints.setter
    def include_table_constraints(self, value: bool) -> None:
        self._update_flags(include_table_constraints=bool(value))

    @property
    def struct_behavior(self) -> StructBehavior:
        return self._settings.struct_behavior if self._settings else StructBehavior.STRICT

    @struct_behavior.setter
    def struct_behavior(self, value: StructBehavior) -> None:
        self._update_flags(struct_behavior=StructBehavior(value))

    def _update_flags(self, **flags) -> None:
        self._require_closed("change connection flags")
        if self._settings is None:
            raise ConfigurationError("Connection has no configuration to apply flags to")
        self._settings = self._settings.with_flags(**flags)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        if self._session is not None and not self._session.closed:
            return ConnectionState.OPEN
        return ConnectionState.CLOSED

    @property
    def is_open(self) -> bool:
        return self.state == ConnectionState.OPEN

    def open(self) -> None:
        """
        Establish the backend session.

        Raises:
            ConfigurationError: If no driver or configuration was supplied,
                or the driver rejects the configuration
            ConnectionError: If the session cannot be established
            InvalidOperationError: If the connection is already open
        """
        if self.is_open:
            raise InvalidOperationError("Connection is already open")
        if self._driver is None:
            raise ConfigurationError("No driver has been set for this connection")
        if self._settings is None:
            raise ConfigurationError("Connection has neither parameters nor a connection string")

        self._session = self._driver.open(self._settings)
        self._schema = SchemaProvider(self._session, self._settings)
        logger.info(f"Connection opened ({self._driver.NAME})")

    def close(self) -> None:
        """Close every command (and reader) opened on this connection, then the session."""
        for command in list(self._commands):
            command.close()
        self._commands.clear()

        if self._session is not None:
            self._session.close()
            logger.info(f"Connection closed ({self._session.driver_name})")
        self._session = None
        self._schema = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # ------------------------------------------------------------------
    # Commands and metadata
    # ------------------------------------------------------------------

    def create_command(
        self,
        command_text: Optional[str] = None,
        parameters: Optional[Sequence[Any]] = None,
    ) -> Command:
        """Create a command bound to this (open) connection."""
        self._require_session()
        command = Command(
            self,
            command_text or "",
            list(parameters or []),
            timeout=client_settings.query_timeout,
        )
        self._commands.add(command)
        return command

    def get_schema(
        self,
        collection_name: Any = "MetaDataCollections",
        restrictions: Optional[Sequence[Optional[str]]] = None,
    ) -> DataTable:
        """
        Return a metadata collection as a DataTable.

        Raises:
            UnsupportedCollectionError: If the collection name is unknown
            InvalidOperationError: If the connection is not open
        """
        self._require_session()
        return self._schema.get_schema(collection_name, restrictions)

    def get_objects(
        self,
        catalog: Optional[str] = None,
        schema: Optional[str] = None,
        table: Optional[str] = None,
        table_type: Optional[str] = None,
    ) -> List[TableInfo]:
        """Enumerate tables (with constraints when enabled) matching the filters."""
        self._require_session()
        return self._schema.get_objects(catalog, schema, table, table_type)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require_session(self) -> DriverSession:
        if not self.is_open:
            raise InvalidOperationError("Connection is not open")
        return self._session

    def _require_closed(self, action: str) -> None:
        if self.is_open:
            raise InvalidOperationError(f"Cannot {action} while the connection is open")

    def _command_closed(self, command: Command) -> None:
        self._commands.discard(command)

    def __repr__(self) -> str:
        driver = self._driver.NAME if self._driver else None
        return f"Connection(driver={driver!r}, state={self.state.value})"
