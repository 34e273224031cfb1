"""
bqclient Exceptions

Every error raised by the client derives from ClientError. Errors coming
from a backend driver are wrapped, and the driver's own exception is kept
on ``original_error`` so callers can inspect the raw payload.
"""

from typing import Optional


class ClientError(Exception):
    """Base exception for bqclient."""

    def __init__(
        self,
        message: str,
        driver: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.driver = driver
        self.original_error = original_error

    def __str__(self):
        if self.driver:
            return f"[{self.driver}] {self.message}"
        return self.message


class ConfigurationError(ClientError):
    """Raised when connection configuration is missing, malformed or contradictory."""
    pass


class ConnectionError(ClientError):
    """Raised when a backend session cannot be established or authenticated."""
    pass


class UnsupportedCollectionError(ClientError):
    """Raised when an unknown metadata collection is requested."""

    def __init__(self, collection_name: str):
        super().__init__(f"The requested collection '{collection_name}' is not defined")
        self.collection_name = collection_name


class QueryError(ClientError):
    """Raised when the backend fails to execute a statement."""
    pass


class TypeMismatchError(ClientError):
    """Raised when a reader accessor does not match the column's type or value."""
    pass


class OutOfRangeError(ClientError):
    """Raised when a reader column ordinal or name is invalid."""
    pass


class InvalidOperationError(ClientError):
    """Raised when a closed connection, command or reader is used."""
    pass
