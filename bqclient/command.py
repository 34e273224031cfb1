"""
Commands

A Command carries SQL text and positional parameters for one Connection.
It executes either as an update (affected-row count) or as a query
(DataReader). Command text is passed to the backend verbatim.
"""

import logging
import time
from typing import TYPE_CHECKING, Any, List, Optional

from bqclient.exceptions import InvalidOperationError
from bqclient.reader import DataReader

if TYPE_CHECKING:
    from bqclient.connection import Connection

logger = logging.getLogger(__name__)

# Returned by execute_update() when the backend cannot count affected rows
UNKNOWN_ROW_COUNT = -1


class Command:
    """
    SQL command bound to an open Connection.

    Created with Connection.create_command(). At most one reader may be open
    on a command at a time; closing the command closes that reader.
    """

    def __init__(
        self,
        connection: "Connection",
        command_text: str = "",
        parameters: Optional[List[Any]] = None,
        timeout: Optional[float] = None,
    ):
        self._connection = connection
        self.command_text = command_text
        self.parameters: List[Any] = list(parameters or [])
        self.timeout = timeout
        self._reader: Optional[DataReader] = None
        self._closed = False

    @property
    def connection(self) -> "Connection":
        return self._connection

    @property
    def closed(self) -> bool:
        return self._closed

    def execute_update(self) -> int:
        """
        Execute a non-query statement.

        Returns:
            Number of affected rows, or -1 when the backend cannot report it
        """
        session = self._prepare()
        start_time = time.perf_counter()

        affected = session.execute_update(self.command_text, self.parameters, self.timeout)

        logger.debug(
            f"Update executed in {(time.perf_counter() - start_time) * 1000:.1f}ms "
            f"(affected={affected})"
        )
        return UNKNOWN_ROW_COUNT if affected is None else affected

    def execute_reader(self) -> DataReader:
        """Execute a query and return a forward-only reader over its rows."""
        session = self._prepare()
        result = session.execute(self.command_text, self.parameters, self.timeout)
        self._reader = DataReader(result, on_close=self._reader_closed)
        return self._reader

    def execute_scalar(self) -> Any:
        """Execute a query and return the first column of the first row (None if empty)."""
        with self.execute_reader() as reader:
            if reader.field_count == 0 or not reader.read():
                return None
            return reader.get_value(0)

    def close(self) -> None:
        """Close the command and any reader still open on it."""
        if self._closed:
            return
        if self._reader is not None:
            self._reader.close()
        self._closed = True
        self._connection._command_closed(self)

    def _prepare(self):
        if self._closed:
            raise InvalidOperationError("Command is closed")
        if self._reader is not None:
            raise InvalidOperationError("Command already has an open reader; close it first")
        if not self.command_text or not self.command_text.strip():
            raise InvalidOperationError("CommandText has not been set")
        session = self._connection._require_session()
        logger.debug(f"Executing: {self.command_text.strip()[:200]}")
        return session

    def _reader_closed(self, reader: DataReader) -> None:
        if self._reader is reader:
            self._reader = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        return f"Command(command_text={self.command_text!r}, closed={self._closed})"
