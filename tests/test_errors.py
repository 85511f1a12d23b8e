"""Tests for structured error categorization and retryability flags."""

from __future__ import annotations

import sqlite3

import pytest
from pydantic import ValidationError

from visublocks_mcp.errors import (
    BlockNotFoundError,
    ModelOutputError,
    PayloadTooLargeError,
    TokenNotFoundError,
    make_tool_error,
)
from visublocks_mcp.models.blocks import ParamDef
from visublocks_mcp.models.project import RemotionProject


def _validation_error(model, data) -> ValidationError:
    with pytest.raises(ValidationError) as info:
        model.model_validate(data)
    return info.value


class TestMakeToolError:
    def test_block_not_found(self):
        result = make_tool_error(BlockNotFoundError("blk_x"))
        assert result["category"] == "BLOCK_NOT_FOUND"
        assert result["error"] == "Block not found: blk_x"
        assert result["retryable"] is False

    def test_token_not_found(self):
        assert make_tool_error(TokenNotFoundError("no token at 3"))["category"] == "TOKEN_NOT_FOUND"

    def test_payload_too_large(self):
        assert make_tool_error(PayloadTooLargeError("big"))["category"] == "PAYLOAD_TOO_LARGE"

    def test_model_output_is_retryable(self):
        result = make_tool_error(ModelOutputError("Model returned non-JSON"))
        assert result["category"] == "MODEL_OUTPUT_INVALID"
        assert result["retryable"] is True

    def test_project_validation(self):
        exc = _validation_error(RemotionProject, {"kind": "remotion-project", "files": {}})
        assert make_tool_error(exc)["category"] == "PROJECT_INVALID"

    def test_param_validation(self):
        exc = _validation_error(ParamDef, {"key": "speed", "type": "vector"})
        assert make_tool_error(exc)["category"] == "PARAM_INVALID"

    def test_sqlite_error(self):
        assert make_tool_error(sqlite3.OperationalError("disk I/O error"))["category"] == "STORE_ERROR"

    def test_builtin_timeout_maps_to_network_error(self):
        result = make_tool_error(TimeoutError())
        assert result["category"] == "NETWORK_ERROR"
        assert result["retryable"] is True

    def test_quota_sets_retry_after(self):
        result = make_tool_error(Exception("429 RESOURCE_EXHAUSTED"))
        assert result["category"] == "API_QUOTA_EXCEEDED"
        assert result["retry_after_seconds"] == 60

    def test_missing_api_key(self):
        result = make_tool_error(ValueError("No Gemini API key — set GEMINI_API_KEY"))
        assert result["category"] == "API_PERMISSION_DENIED"

    def test_duplicate_param_value_error(self):
        result = make_tool_error(ValueError("Duplicate param key 'color'"))
        assert result["category"] == "PARAM_INVALID"

    def test_unknown(self):
        result = make_tool_error(RuntimeError("boom"))
        assert result == {
            "error": "boom",
            "category": "UNKNOWN",
            "hint": "boom",
            "retryable": False,
            "retry_after_seconds": None,
        }
