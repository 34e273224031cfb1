"""
Tests for connection configuration and connection strings.
"""

import pytest

from bqclient import ConfigurationError, ConnectionSettings, StructBehavior
from bqclient.config import build_connection_string, parse_bool, parse_connection_string


class TestParseConnectionString:
    """Tests for parse_connection_string()."""

    def test_simple_pairs(self):
        """Test plain key=value segments."""
        result = parse_connection_string("ProjectId=my-project;AuthType=ApplicationDefault")
        assert result == {"ProjectId": "my-project", "AuthType": "ApplicationDefault"}

    def test_keys_and_values_are_trimmed(self):
        """Test whitespace around keys and unquoted values is dropped."""
        result = parse_connection_string("  ProjectId = my-project ; Location= EU ")
        assert result == {"ProjectId": "my-project", "Location": "EU"}

    def test_empty_segments_are_skipped(self):
        """Test doubled and trailing separators."""
        result = parse_connection_string(";ProjectId=p;;Location=US;")
        assert result == {"ProjectId": "p", "Location": "US"}

    def test_quoted_value_keeps_separators(self):
        """Test a quoted value may contain ; and =."""
        result = parse_connection_string("Credentials='a=b;c';ProjectId=p")
        assert result == {"Credentials": "a=b;c", "ProjectId": "p"}

    def test_doubled_quote_is_literal(self):
        """Test a doubled quote inside a quoted value."""
        result = parse_connection_string('Remarks="say ""hi""";ProjectId=p')
        assert result["Remarks"] == 'say "hi"'

    def test_last_duplicate_wins(self):
        """Test a repeated key keeps the later value."""
        result = parse_connection_string("ProjectId=first;ProjectId=second")
        assert result == {"ProjectId": "second"}

    def test_missing_equals_is_error(self):
        """Test a segment without '=' is rejected."""
        with pytest.raises(ConfigurationError):
            parse_connection_string("ProjectId=p;Location")

    def test_unterminated_quote_is_error(self):
        """Test an unterminated quoted value is rejected."""
        with pytest.raises(ConfigurationError):
            parse_connection_string("Credentials='abc")


class TestBuildConnectionString:
    """Tests for build_connection_string()."""

    def test_parses_back_to_same_mapping(self):
        """Test build then parse agree, including values that need quoting."""
        mapping = {
            "ProjectId": "my-project",
            "Credentials": '{"type": "service_account"; "x": 1}',
            "Remarks": " padded ",
            "Quote": "it's",
        }
        assert parse_connection_string(build_connection_string(mapping)) == mapping

    def test_invalid_key_is_error(self):
        """Test keys containing separators are rejected."""
        with pytest.raises(ConfigurationError):
            build_connection_string({"bad;key": "v"})


class TestConnectionSettings:
    """Tests for ConnectionSettings constructors."""

    def test_from_parameters_defaults(self):
        """Test default capability flags."""
        settings = ConnectionSettings.from_parameters({"ProjectId": "p"})
        assert settings.parameters == {"ProjectId": "p"}
        assert settings.include_table_constraints is True
        assert settings.struct_behavior == StructBehavior.STRICT
        assert settings.source == "parameters"

    def test_behavioral_keys_are_extracted(self):
        """Test flag keys are matched case-insensitively and removed from parameters."""
        settings = ConnectionSettings.from_parameters(
            {"ProjectId": "p", "includetableconstraints": "false"},
            {"STRUCTBEHAVIOR": "jsonstring"},
        )
        assert settings.parameters == {"ProjectId": "p"}
        assert settings.include_table_constraints is False
        assert settings.struct_behavior == StructBehavior.JSON_STRING

    def test_conflicting_options_are_rejected(self):
        """Test the same key with different values in parameters and options."""
        with pytest.raises(ConfigurationError):
            ConnectionSettings.from_parameters({"ProjectId": "a"}, {"ProjectId": "b"})

    def test_non_string_value_is_rejected(self):
        """Test parameter values must be strings."""
        with pytest.raises(ConfigurationError):
            ConnectionSettings.from_parameters({"MaximumBytesBilled": 100})

    def test_invalid_struct_behavior(self):
        """Test an unknown StructBehavior value."""
        with pytest.raises(ConfigurationError):
            ConnectionSettings.from_parameters({"StructBehavior": "Flatten"})

    def test_from_connection_string(self):
        """Test the connection-string constructor produces the same shape."""
        from_string = ConnectionSettings.from_connection_string(
            "ProjectId=p;IncludeTableConstraints=no"
        )
        from_params = ConnectionSettings.from_parameters(
            {"ProjectId": "p", "IncludeTableConstraints": "no"}
        )
        assert from_string.parameters == from_params.parameters
        assert from_string.include_table_constraints is from_params.include_table_constraints
        assert from_string.source == "connection_string"

    def test_empty_connection_string_is_rejected(self):
        """Test an empty connection string."""
        with pytest.raises(ConfigurationError):
            ConnectionSettings.from_connection_string("   ")

    def test_get_ignores_key_case(self):
        """Test parameter lookup by key is case-insensitive."""
        settings = ConnectionSettings.from_parameters({"ProjectId": "p"})
        assert settings.get("projectid") == "p"
        assert settings.get("Location", "US") == "US"

    def test_with_flags_returns_copy(self):
        """Test with_flags leaves the original untouched."""
        settings = ConnectionSettings.from_parameters({"ProjectId": "p"})
        updated = settings.with_flags(include_table_constraints=False)
        assert updated.include_table_constraints is False
        assert settings.include_table_constraints is True


class TestParseBool:
    """Tests for parse_bool()."""

    @pytest.mark.parametrize("value", ["true", "TRUE", "1", "yes", " Yes "])
    def test_true_values(self, value):
        assert parse_bool("Flag", value) is True

    @pytest.mark.parametrize("value", ["false", "0", "no", "No"])
    def test_false_values(self, value):
        assert parse_bool("Flag", value) is False

    def test_invalid_value(self):
        with pytest.raises(ConfigurationError):
            parse_bool("Flag", "maybe")
