"""Tests for protocol error classification."""

import pytest

from mcprepl.mcp.protocol.diagnostics import (
    KNOWN_ERRORS,
    UNKNOWN_ERROR_MESSAGE,
    classify,
    extract_code,
    format_error,
)
from mcprepl.mcp.protocol.errors import MCPError, REQUEST_TIMEOUT
from mcprepl.mcp.transport.base import TransportError


EXPECTED_NAMES = {
    -32000: "Authentication Error",
    -32001: "Invalid Session",
    -32002: "Method Not Found",
    -32003: "Invalid Parameters",
    -32004: "Internal Error",
    -32005: "Parse Error",
}


class TestKnownCodes:
    """Each well-known code maps onto its static table entry."""

    @pytest.mark.parametrize("code", sorted(EXPECTED_NAMES))
    def test_known_code_matches_table(self, code):
        diagnostic = classify({"code": code, "message": "boom"})

        assert diagnostic.is_known
        assert diagnostic.code == code
        assert diagnostic.name == EXPECTED_NAMES[code]
        assert diagnostic.info is KNOWN_ERRORS[code]
        assert diagnostic.how_to_handle == KNOWN_ERRORS[code].how_to_handle
        assert diagnostic.message == "boom"

    def test_authentication_remediation_text(self):
        info = KNOWN_ERRORS[-32000]
        assert info.description == "Missing or invalid authentication token"
        assert info.how_to_handle == "Check your API_KEY constant and ensure it's valid"

    def test_table_has_exactly_six_entries(self):
        assert sorted(KNOWN_ERRORS) == sorted(EXPECTED_NAMES)

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            KNOWN_ERRORS[-32099] = KNOWN_ERRORS[-32000]


class TestCodeExtraction:
    """Codes are found at the top level or nested under error/response."""

    def test_mcp_error_instance(self):
        diagnostic = classify(MCPError(code=-32001, message="Session expired"))
        assert diagnostic.name == "Invalid Session"
        assert diagnostic.message == "Session expired"

    def test_nested_error_mapping(self):
        diagnostic = classify({"error": {"code": -32003, "message": "bad params"}})
        assert diagnostic.code == -32003
        assert diagnostic.message == "bad params"

    def test_response_error_path(self):
        class Response:
            error = {"code": -32004}

        class Failure(Exception):
            response = Response()

        diagnostic = classify(Failure("server blew up"))
        assert diagnostic.code == -32004
        assert diagnostic.message == "server blew up"

    def test_top_level_code_wins(self):
        error = {"code": -32000, "error": {"code": -32005}}
        assert extract_code(error) == -32000

    def test_boolean_code_ignored(self):
        diagnostic = classify({"code": True, "message": "odd"})
        assert diagnostic.code is None
        assert not diagnostic.is_known

    def test_integral_float_code_matches_table(self):
        diagnostic = classify({"error": {"code": -32000.0, "message": "Unauthorized"}})

        assert diagnostic.code == -32000
        assert diagnostic.name == "Authentication Error"
        assert "Error Code: -32000" in diagnostic.format()

    def test_fractional_code_is_unknown(self):
        diagnostic = classify({"code": -32000.5})
        assert diagnostic.info is None


class TestUnknownAndMissingCodes:
    def test_unknown_numeric_code(self):
        diagnostic = classify({"code": -31999, "message": "strange"})

        assert diagnostic.is_unknown_code
        assert diagnostic.how_to_handle is None
        assert "Error Code: -31999 (unknown MCP error code)" in diagnostic.format()

    def test_client_timeout_code_is_not_in_table(self):
        diagnostic = classify(MCPError.timeout(5))
        assert diagnostic.code == REQUEST_TIMEOUT
        assert not diagnostic.is_known

    def test_no_code_carries_message_only(self):
        diagnostic = classify(TransportError("Could not reach http://localhost:1"))

        assert diagnostic.code is None
        assert diagnostic.info is None
        assert diagnostic.format() == "Error: Could not reach http://localhost:1"

    def test_plain_exception_uses_str(self):
        assert classify(RuntimeError("kaput")).message == "kaput"


class TestNeverRaises:
    """Arbitrary and malformed inputs still produce a diagnostic."""

    def test_none(self):
        diagnostic = classify(None)
        assert diagnostic.message == UNKNOWN_ERROR_MESSAGE
        assert diagnostic.code is None

    def test_empty_mapping(self):
        diagnostic = classify({})
        assert diagnostic.code is None
        assert diagnostic.message

    def test_circular_mapping(self):
        circular = {}
        circular["error"] = circular
        diagnostic = classify(circular)
        assert diagnostic.code is None

    def test_exception_with_empty_message(self):
        assert classify(Exception()).message == UNKNOWN_ERROR_MESSAGE

    def test_hostile_object(self):
        class Hostile:
            def __getattr__(self, name):
                raise RuntimeError("no attributes for you")

            def __str__(self):
                raise RuntimeError("no string either")

        diagnostic = classify(Hostile())
        assert diagnostic.message == UNKNOWN_ERROR_MESSAGE
        assert diagnostic.code is None


class TestFormat:
    def test_known_code_block(self):
        text = format_error({"code": -32000, "message": "Unauthorized"})

        assert text.splitlines()[0] == "Error: Unauthorized"
        assert "MCP Error Details:" in text
        assert "   Name: Authentication Error" in text
        assert "   How to Handle: Check your API_KEY constant and ensure it's valid" in text
