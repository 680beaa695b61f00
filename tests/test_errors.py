"""Tests for backend error mapping and user-facing error messages."""

from __future__ import annotations

import json

import httpx
import pytest

from src.sow_portal.clients.errors import (
    MAX_ERROR_LENGTH,
    ApiError,
    AuthenticationError,
    NetworkError,
    NotFoundError,
    error_from_response,
    is_auth_error,
    is_network_error,
    parse_api_error,
    parse_step_function_error,
)


class TestErrorFromResponse:
    """Tests for mapping non-2xx responses onto ApiError subclasses."""

    def test_error_key_preferred(self):
        response = httpx.Response(400, json={"error": "Bad deal id", "message": "ignored"})
        error = error_from_response(response)
        assert type(error) is ApiError
        assert error.message == "Bad deal id"
        assert error.status_code == 400
        assert error.code == "400"

    def test_status_specific_subclasses(self):
        assert isinstance(error_from_response(httpx.Response(401)), AuthenticationError)
        assert isinstance(error_from_response(httpx.Response(404, json={})), NotFoundError)

    def test_falls_back_to_status_message(self):
        error = error_from_response(httpx.Response(503, text="upstream down"))
        assert error.message == "Service unavailable - please try again later"
        assert error.body == "upstream down"

    def test_unknown_status_gets_generic_message(self):
        assert error_from_response(httpx.Response(418)).message == "An error occurred"


class TestParseApiError:
    """Tests for parse_api_error across error shapes."""

    def test_api_error(self):
        parsed = parse_api_error(ApiError("Nope", status_code=403))
        assert parsed.message == "Nope"
        assert parsed.code == "403"

    def test_network_error_keeps_code(self):
        parsed = parse_api_error(NetworkError("Network error", code="FETCH_ERROR"))
        assert parsed.code == "FETCH_ERROR"

    def test_dict_with_data_message(self):
        parsed = parse_api_error({"status": 409, "data": {"message": "Already assigned"}})
        assert parsed.message == "Already assigned"
        assert parsed.code == "409"

    def test_dict_with_only_status(self):
        assert parse_api_error({"status": 404}).message.startswith("Not found")
        assert parse_api_error({"status": "PARSING_ERROR"}).code == "500"

    def test_strings_exceptions_and_unknown(self):
        assert parse_api_error("plain").message == "plain"
        assert parse_api_error(ValueError("bad value")).message == "bad value"
        assert parse_api_error(42).message == "An unexpected error occurred"


class TestErrorPredicates:
    """Tests for is_network_error / is_auth_error."""

    def test_network(self):
        assert is_network_error(NetworkError("x"))
        assert is_network_error(httpx.ConnectError("refused"))
        assert is_network_error({"status": "FETCH_ERROR"})
        assert not is_network_error(ApiError("x", status_code=500))

    def test_auth(self):
        assert is_auth_error(AuthenticationError("x", status_code=401))
        assert is_auth_error(ApiError("x", status_code=401))
        assert is_auth_error({"status": 401})
        assert not is_auth_error(ApiError("x", status_code=403))


class TestParseStepFunctionError:
    """Tests for Step Functions failure payload parsing."""

    def test_empty_payload(self):
        assert parse_step_function_error(None) == "Generation failed"
        assert parse_step_function_error("") == "Generation failed"

    def test_nested_cause_error_message(self):
        raw = json.dumps({
            "error": "States.TaskFailed",
            "cause": json.dumps({"errorMessage": "Bedrock throttled", "errorType": "Throttling"}),
        })
        assert parse_step_function_error(raw) == "Bedrock throttled"

    def test_top_level_error_message(self):
        raw = json.dumps({"errorMessage": "Lambda timed out"})
        assert parse_step_function_error(raw) == "Lambda timed out"

    def test_message_key(self):
        assert parse_step_function_error(json.dumps({"message": "boom"})) == "boom"

    def test_regex_fallback_for_broken_json(self):
        raw = '{"errorType": "KeyError", "errorMessage": "missing dealId", trailing'
        assert parse_step_function_error(raw) == "missing dealId"

    def test_template_not_found_gets_hint(self):
        message = parse_step_function_error("Template abc not found")
        assert message.startswith("Template abc not found")
        assert "valid template is assigned" in message

    def test_incomplete_template_gets_hint(self):
        message = parse_step_function_error(json.dumps({"errorMessage": "Template has no defaultPrompt"}))
        assert "contact support" in message

    def test_long_messages_are_truncated(self):
        message = parse_step_function_error("x" * (MAX_ERROR_LENGTH + 50))
        assert message == "x" * MAX_ERROR_LENGTH + "..."

    @pytest.mark.parametrize("raw", ["plain failure", "[1, 2]"])
    def test_unstructured_payload_returned_as_is(self, raw):
        assert parse_step_function_error(raw) == raw
