"""Unit tests for error handling functionality."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from utale.error_handling import (
    BookGenerationError,
    ErrorAnalyzer,
    ErrorCategory,
    ErrorRecoveryHandler,
    ImageGenerationError,
    UtaleError,
    resilient_async,
)


class TestErrorAnalyzer:
    """Test error categorization."""

    @pytest.mark.parametrize("message,category", [
        ("Rate limit reached for requests", ErrorCategory.RATE_LIMIT),
        ("status 429", ErrorCategory.RATE_LIMIT),
        ("Request timed out", ErrorCategory.TIMEOUT),
        ("Incorrect API key provided", ErrorCategory.AUTHENTICATION_ERROR),
        ("You exceeded your current quota", ErrorCategory.QUOTA_EXCEEDED),
        ("Your request was rejected by our safety system", ErrorCategory.CONTENT_POLICY),
        ("connection reset by peer", ErrorCategory.NETWORK_ERROR),
    ])
    def test_categorize_by_message(self, message, category):
        assert ErrorAnalyzer.categorize_error(RuntimeError(message)) == category

    def test_categorize_by_type(self):
        assert ErrorAnalyzer.categorize_error(asyncio.TimeoutError()) == ErrorCategory.TIMEOUT
        assert ErrorAnalyzer.categorize_error(ConnectionError("x")) == ErrorCategory.NETWORK_ERROR
        assert ErrorAnalyzer.categorize_error(ValueError("x")) == ErrorCategory.VALIDATION_ERROR
        assert ErrorAnalyzer.categorize_error(RuntimeError("x")) == ErrorCategory.PROCESSING_ERROR

    def test_fatal_categories_are_not_retried(self):
        assert ErrorAnalyzer.retry_delay(ErrorCategory.AUTHENTICATION_ERROR, 1) is None
        assert ErrorAnalyzer.retry_delay(ErrorCategory.CONTENT_POLICY, 1) is None

    def test_retry_delays(self):
        assert ErrorAnalyzer.retry_delay(ErrorCategory.NETWORK_ERROR, 2) == 6
        assert ErrorAnalyzer.retry_delay(ErrorCategory.TIMEOUT, 1) == 1
        assert 2 <= ErrorAnalyzer.retry_delay(ErrorCategory.RATE_LIMIT, 1) <= 7


class TestErrorRecoveryHandler:
    """Test retry behaviour."""

    def setup_method(self):
        self.sleep = AsyncMock()
        self.handler = ErrorRecoveryHandler(max_attempts=3, sleep=self.sleep)

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        func = AsyncMock(return_value="ok")
        assert await self.handler.handle_with_recovery(func, ("a",)) == "ok"
        func.assert_awaited_once_with("a")
        self.sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_recovers_after_transient_error(self):
        func = AsyncMock(side_effect=[RuntimeError("server error"), "ok"])
        assert await self.handler.handle_with_recovery(func) == "ok"
        assert func.await_count == 2
        self.sleep.assert_awaited_once()

        stats = self.handler.get_error_statistics()
        assert stats["total_errors"] == 1
        assert stats["recovered_errors"] == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        func = AsyncMock(side_effect=RuntimeError("server error"))
        with pytest.raises(RuntimeError):
            await self.handler.handle_with_recovery(func)
        assert func.await_count == 3
        assert self.sleep.await_count == 2
        assert self.handler.get_error_statistics()["failed_recoveries"] == 1

    @pytest.mark.asyncio
    async def test_authentication_error_aborts_immediately(self):
        func = AsyncMock(side_effect=RuntimeError("401 Unauthorized"))
        with pytest.raises(RuntimeError):
            await self.handler.handle_with_recovery(func)
        assert func.await_count == 1
        self.sleep.assert_not_awaited()


class TestResilientAsync:
    """Test the decorator form."""

    @pytest.mark.asyncio
    async def test_decorator_passes_through_result(self):
        @resilient_async(max_attempts=2)
        async def double(x):
            return x * 2

        assert await double(4) == 8
        assert double.error_handler.max_attempts == 2


def test_exception_hierarchy():
    assert issubclass(BookGenerationError, UtaleError)
    assert issubclass(ImageGenerationError, UtaleError)
