"""Tests for retry logic with exponential backoff."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

import visublocks_mcp.config as cfg_mod
from visublocks_mcp.retry import backoff_delay, is_transient, with_retry


class TestIsTransient:
    @pytest.mark.parametrize("msg", [
        "429 Too Many Requests",
        "Quota exceeded for this project",
        "RESOURCE_EXHAUSTED: rate limit",
        "Request timeout after 30s",
        "503 Service Temporarily Unavailable",
        "connection reset by peer",
    ])
    def test_transient_patterns(self, msg: str):
        assert is_transient(Exception(msg)) is True

    @pytest.mark.parametrize("msg", [
        "400 Bad Request",
        "Permission denied",
        "Model returned non-JSON",
    ])
    def test_permanent_patterns(self, msg: str):
        assert is_transient(Exception(msg)) is False

    def test_builtin_network_errors(self):
        assert is_transient(TimeoutError()) is True
        assert is_transient(ConnectionRefusedError()) is True


class TestBackoffDelay:
    @patch("visublocks_mcp.retry.random.random", return_value=0.0)
    def test_doubles_until_cap(self, _mock_random):
        assert [backoff_delay(n, 1.0, 5.0) for n in range(4)] == [1.0, 2.0, 4.0, 5.0]


class TestWithRetry:
    @patch("visublocks_mcp.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_success_first_attempt(self, mock_sleep):
        factory = AsyncMock(return_value="ok")

        assert await with_retry(factory) == "ok"
        factory.assert_awaited_once()
        mock_sleep.assert_not_awaited()

    @patch("visublocks_mcp.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_recovers_after_transient_error(self, mock_sleep):
        factory = AsyncMock(side_effect=[Exception("429 rate limit"), "recovered"])

        assert await with_retry(factory) == "recovered"
        assert factory.await_count == 2
        mock_sleep.assert_awaited_once()

    @patch("visublocks_mcp.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_exhausts_max_attempts(self, mock_sleep):
        factory = AsyncMock(side_effect=Exception("503 unavailable"))

        with pytest.raises(Exception, match="503 unavailable"):
            await with_retry(factory)

        assert factory.await_count == 3
        assert mock_sleep.await_count == 2

    @patch("visublocks_mcp.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_permanent_error_raises_immediately(self, mock_sleep):
        factory = AsyncMock(side_effect=ValueError("invalid input"))

        with pytest.raises(ValueError, match="invalid input"):
            await with_retry(factory)

        factory.assert_awaited_once()
        mock_sleep.assert_not_awaited()

    @patch("visublocks_mcp.retry.random.random", return_value=0.0)
    @patch("visublocks_mcp.retry.asyncio.sleep", new_callable=AsyncMock)
    async def test_respects_config(self, mock_sleep, _mock_random, monkeypatch):
        monkeypatch.setenv("GEMINI_RETRY_BASE_DELAY", "0.5")
        monkeypatch.setenv("GEMINI_RETRY_MAX_DELAY", "1.5")
        monkeypatch.setenv("GEMINI_RETRY_MAX_ATTEMPTS", "4")
        cfg_mod._config = None
        factory = AsyncMock(side_effect=[Exception("503"), Exception("503"), Exception("503"), "ok"])

        assert await with_retry(factory) == "ok"
        assert [c.args[0] for c in mock_sleep.await_args_list] == [0.5, 1.0, 1.5]
