"""
Connection Configuration

A connection is configured either from a parameter mapping or from a
connection string. Both inputs are normalized into one ConnectionSettings
instance so drivers never need to know which form the caller used.

Connection string format:
    ProjectId=my-project;AuthType=ServiceAccountFile;Credentials=/path/key.json

Values may be quoted with ' or " (a doubled quote inside a quoted value is
a literal quote). Keys are trimmed, empty segments are skipped and the last
occurrence of a duplicated key wins.
"""

import logging
from typing import Dict, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from bqclient.exceptions import ConfigurationError
from bqclient.types import StructBehavior

logger = logging.getLogger(__name__)

# Behavioral keys understood by the client itself (matched case-insensitively)
INCLUDE_TABLE_CONSTRAINTS = "IncludeTableConstraints"
STRUCT_BEHAVIOR = "StructBehavior"

_TRUE_VALUES = {"true", "1", "yes"}
_FALSE_VALUES = {"false", "0", "no"}


class ConnectionSettings(BaseModel):
    """
    Unified connection configuration.

    Attributes:
        parameters: Driver parameters (behavioral keys removed)
        include_table_constraints: Look up table constraints during enumeration
        struct_behavior: How struct values are surfaced
        source: Which input form produced these settings
    """

    model_config = ConfigDict(frozen=True)

    parameters: Dict[str, str] = Field(default_factory=dict)
    include_table_constraints: bool = True
    struct_behavior: StructBehavior = StructBehavior.STRICT
    source: Literal["parameters", "connection_string"] = "parameters"

    @classmethod
    def from_parameters(
        cls,
        parameters: Mapping[str, str],
        options: Optional[Mapping[str, str]] = None,
    ) -> "ConnectionSettings":
        """Build settings from a parameter mapping plus optional connection options."""
        merged: Dict[str, str] = {}
        for key, value in (parameters or {}).items():
            merged[key] = _require_string(key, value)

        for key, value in (options or {}).items():
            value = _require_string(key, value)
            if key in merged and merged[key] != value:
                raise ConfigurationError(
                    f"Conflicting values for '{key}' in parameters and options"
                )
            merged[key] = value

        return cls._from_mapping(merged, source="parameters")

    @classmethod
    def from_connection_string(cls, connection_string: str) -> "ConnectionSettings":
        """Build settings from a semicolon-delimited connection string."""
        if not connection_string or not connection_string.strip():
            raise ConfigurationError("Connection string is empty")
        return cls._from_mapping(
            parse_connection_string(connection_string),
            source="connection_string",
        )

    @classmethod
    def _from_mapping(cls, mapping: Dict[str, str], source: str) -> "ConnectionSettings":
        parameters: Dict[str, str] = {}
        include_constraints = True
        struct_behavior = StructBehavior.STRICT

        for key, value in mapping.items():
            lowered = key.lower()
            if lowered == INCLUDE_TABLE_CONSTRAINTS.lower():
                include_constraints = parse_bool(key, value)
            elif lowered == STRUCT_BEHAVIOR.lower():
                struct_behavior = _parse_struct_behavior(value)
            else:
                parameters[key] = value

        logger.debug(f"Built connection settings from {source} ({len(parameters)} driver parameters)")
        return cls(
            parameters=parameters,
            include_table_constraints=include_constraints,
            struct_behavior=struct_behavior,
            source=source,
        )

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Look up a driver parameter, ignoring key case."""
        if key in self.parameters:
            return self.parameters[key]
        lowered = key.lower()
        for name, value in self.parameters.items():
            if name.lower() == lowered:
                return value
        return default

    def with_flags(
        self,
        include_table_constraints: Optional[bool] = None,
        struct_behavior: Optional[StructBehavior] = None,
    ) -> "ConnectionSettings":
        """Return a copy with capability flags replaced."""
        update = {}
        if include_table_constraints is not None:
            update["include_table_constraints"] = include_table_constraints
        if struct_behavior is not None:
            update["struct_behavior"] = StructBehavior(struct_behavior)
        return self.model_copy(update=update)


def parse_bool(key: str, value: str) -> bool:
    """Parse a boolean parameter value."""
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Invalid boolean value for '{key}': {value!r}")


def _parse_struct_behavior(value: str) -> StructBehavior:
    for behavior in StructBehavior:
        if behavior.value.lower() == value.strip().lower():
            return behavior
    allowed = ", ".join(b.value for b in StructBehavior)
    raise ConfigurationError(
        f"Invalid value for '{STRUCT_BEHAVIOR}': {value!r}. Allowed: {allowed}"
    )


def _require_string(key: str, value) -> str:
    if not isinstance(key, str) or not key.strip():
        raise ConfigurationError(f"Invalid parameter name: {key!r}")
    if not isinstance(value, str):
        raise ConfigurationError(f"Parameter '{key}' must be a string")
    return value


# =============================================================================
# CONNECTION STRINGS
# =============================================================================

def parse_connection_string(connection_string: str) -> Dict[str, str]:
    """
    Parse a connection string into an ordered key/value mapping.

    Raises:
        ConfigurationError: If a segment has no '=' or a quote is unterminated
    """
    result: Dict[str, str] = {}
    text = connection_string
    i = 0
    length = len(text)

    while i < length:
        # Key runs up to '='
        end = i
        while end < length and text[end] not in "=;":
            end += 1
        key = text[i:end].strip()

        if end >= length or text[end] == ";":
            if key:
                raise ConfigurationError(f"Missing '=' after key '{key}' in connection string")
            i = end + 1
            continue

        if not key:
            raise ConfigurationError("Empty key in connection string")

        # Skip '=' and leading whitespace
        i = end + 1
        while i < length and text[i] in " \t":
            i += 1

        if i < length and text[i] in "'\"":
            value, i = _read_quoted(text, i)
            while i < length and text[i] in " \t":
                i += 1
            if i < length and text[i] != ";":
                raise ConfigurationError(f"Unexpected characters after quoted value for '{key}'")
        else:
            end = text.find(";", i)
            if end == -1:
                end = length
            value = text[i:end].strip()
            i = end

        result[key] = value
        i += 1

    return result


def _read_quoted(text: str, start: int):
    quote = text[start]
    chars = []
    i = start + 1
    while i < len(text):
        if text[i] == quote:
            if i + 1 < len(text) and text[i + 1] == quote:
                chars.append(quote)
                i += 2
                continue
            return "".join(chars), i + 1
        chars.append(text[i])
        i += 1
    raise ConfigurationError("Unterminated quoted value in connection string")


def build_connection_string(parameters: Mapping[str, str]) -> str:
    """
    Build a connection string from a parameter mapping.

    Values containing separators, quotes or surrounding whitespace are quoted
    so that parse_connection_string() returns the same mapping.
    """
    parts = []
    for key, value in parameters.items():
        if "=" in key or ";" in key or not key.strip():
            raise ConfigurationError(f"Invalid parameter name: {key!r}")
        value = str(value)
        needs_quotes = (
            any(ch in value for ch in ";'\"")
            or value != value.strip()
        )
        if needs_quotes:
            quote = "'" if '"' in value and "'" not in value else '"'
            value = quote + value.replace(quote, quote * 2) + quote
        parts.append(f"{key}={value}")
    return ";".join(parts)
