"""
Backend Drivers for bqclient

Each driver handles:
- Configuration validation and session establishment
- Query and statement execution
- Parameter placeholder conversion
- One-level-at-a-time metadata enumeration

Supported Engines:
- BigQuery
- DuckDB (embedded, for local development and tests)
"""

from typing import Dict, List, Type

from bqclient.drivers.base import BaseDriver, DriverSession
from bqclient.drivers.bigquery import BigQueryDriver
from bqclient.drivers.duckdb import DuckDBDriver
from bqclient.exceptions import ConfigurationError

# Map of driver name (and alias) -> driver class
_DRIVERS: Dict[str, Type[BaseDriver]] = {
    "bigquery": BigQueryDriver,
    "bq": BigQueryDriver,
    "duckdb": DuckDBDriver,
}


def list_drivers() -> List[str]:
    """Get list of known driver names."""
    return list(_DRIVERS.keys())


def get_driver(name: str) -> BaseDriver:
    """
    Get a driver instance by name.

    Raises:
        ConfigurationError: If no driver has that name
    """
    driver_class = _DRIVERS.get((name or "").lower())
    if driver_class is None:
        available = ", ".join(list_drivers())
        raise ConfigurationError(f"Unsupported driver: {name}. Available: {available}")
    return driver_class()


__all__ = [
    "BaseDriver",
    "DriverSession",
    "BigQueryDriver",
    "DuckDBDriver",
    "get_driver",
    "list_drivers",
]
