"""Structured error handling — domain exceptions, categories, and the tool error model."""

from __future__ import annotations

import sqlite3
from enum import Enum

from pydantic import BaseModel, ValidationError


class BlockNotFoundError(KeyError):
    """A block id has no definition in the library."""

    def __init__(self, block_id: str) -> None:
        super().__init__(block_id)
        self.block_id = block_id

    def __str__(self) -> str:
        return f"Block not found: {self.block_id}"


class TokenNotFoundError(LookupError):
    """No block token exists at the requested index or position."""


class PayloadTooLargeError(ValueError):
    """An inline attachment exceeds the configured size limit."""


class ModelOutputError(ValueError):
    """The generation backend returned something other than the expected shape."""


class ErrorCategory(str, Enum):
    """Stable error codes surfaced to MCP clients."""

    BLOCK_NOT_FOUND = "BLOCK_NOT_FOUND"
    TOKEN_NOT_FOUND = "TOKEN_NOT_FOUND"
    PARAM_INVALID = "PARAM_INVALID"
    PROJECT_INVALID = "PROJECT_INVALID"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    MODEL_OUTPUT_INVALID = "MODEL_OUTPUT_INVALID"
    API_PERMISSION_DENIED = "API_PERMISSION_DENIED"
    API_QUOTA_EXCEEDED = "API_QUOTA_EXCEEDED"
    API_INVALID_ARGUMENT = "API_INVALID_ARGUMENT"
    NETWORK_ERROR = "NETWORK_ERROR"
    STORE_ERROR = "STORE_ERROR"
    UNKNOWN = "UNKNOWN"


class ToolError(BaseModel):
    """Error payload every tool returns instead of raising."""

    error: str
    category: str
    hint: str
    retryable: bool = False
    retry_after_seconds: int | None = None


def categorize_error(error: Exception) -> tuple[ErrorCategory, str]:
    """Pick the category and a next-step hint for *error*."""
    if isinstance(error, BlockNotFoundError):
        return (
            ErrorCategory.BLOCK_NOT_FOUND,
            "Unknown block id — list definitions with blocks_list; stale tokens stay in the text verbatim",
        )
    if isinstance(error, TokenNotFoundError):
        return (
            ErrorCategory.TOKEN_NOT_FOUND,
            "No [[Block:...]] token at that index — re-parse the prompt to get current indices",
        )
    if isinstance(error, PayloadTooLargeError):
        return (
            ErrorCategory.PAYLOAD_TOO_LARGE,
            "Attachment too large — shrink the guidance image or raise VISUBLOCKS_MAX_IMAGE_BYTES",
        )
    if isinstance(error, ModelOutputError):
        return (
            ErrorCategory.MODEL_OUTPUT_INVALID,
            "Model returned an unexpected format — retry, or enable DEV_FALLBACK for demos",
        )
    if isinstance(error, ValidationError):
        title = (error.title or "").lower()
        if "project" in title:
            return (
                ErrorCategory.PROJECT_INVALID,
                "Project must have kind='remotion-project' and string files src/index.ts and src/Root.tsx",
            )
        return (
            ErrorCategory.PARAM_INVALID,
            "Invalid block or parameter definition — check key, type and id format",
        )
    if isinstance(error, sqlite3.Error):
        return (
            ErrorCategory.STORE_ERROR,
            "Block store failed — check VISUBLOCKS_BLOCKS_DB points at a writable file",
        )
    if isinstance(error, TimeoutError):
        return (
            ErrorCategory.NETWORK_ERROR,
            "Request timed out — try again or check connectivity",
        )

    s = str(error).lower()
    if "403" in s or "permission" in s:
        return (
            ErrorCategory.API_PERMISSION_DENIED,
            "API key lacks permission for the configured model",
        )
    if "429" in s or "quota" in s or "resource_exhausted" in s:
        return (
            ErrorCategory.API_QUOTA_EXCEEDED,
            "Rate limit hit — wait and retry, or switch to the budget preset",
        )
    if "400" in s or "invalid thinking level" in s:
        return (
            ErrorCategory.API_INVALID_ARGUMENT,
            "Bad request — check input format and model parameters",
        )
    if "timeout" in s or "timed out" in s or "connect" in s:
        return (
            ErrorCategory.NETWORK_ERROR,
            "Upstream unreachable — try again or check connectivity",
        )
    if "api key" in s:
        return (
            ErrorCategory.API_PERMISSION_DENIED,
            "No Gemini API key — set GEMINI_API_KEY",
        )
    if isinstance(error, ValueError) and ("param" in s or "duplicate" in s):
        return (ErrorCategory.PARAM_INVALID, str(error))

    return (ErrorCategory.UNKNOWN, str(error))


def make_tool_error(error: Exception) -> dict:
    """Serialise *error* as a ToolError dict; quota, network and model-output errors are retryable."""
    cat, hint = categorize_error(error)
    retryable = cat in {
        ErrorCategory.API_QUOTA_EXCEEDED,
        ErrorCategory.NETWORK_ERROR,
        ErrorCategory.MODEL_OUTPUT_INVALID,
    }
    return ToolError(
        error=str(error),
        category=cat.value,
        hint=hint,
        retryable=retryable,
        retry_after_seconds=60 if cat == ErrorCategory.API_QUOTA_EXCEEDED else None,
    ).model_dump(mode="json")
