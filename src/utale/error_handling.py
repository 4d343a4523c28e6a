"""Error types and retry handling for calls to the generation APIs."""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from functools import wraps
from typing import Any, Callable, Dict, List


logger = logging.getLogger(__name__)


class UtaleError(Exception):
    """Base class for errors raised by the generation workflow."""


class BookGenerationError(UtaleError):
    """The story model returned no usable book."""


class ImageGenerationError(UtaleError):
    """The image provider failed to produce an illustration."""


class ErrorCategory(str, Enum):
    """Error category types."""
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    AUTHENTICATION_ERROR = "authentication_error"
    QUOTA_EXCEEDED = "quota_exceeded"
    CONTENT_POLICY = "content_policy"
    VALIDATION_ERROR = "validation_error"
    PROCESSING_ERROR = "processing_error"


@dataclass
class ErrorContext:
    """Context information for a failed attempt."""
    function_name: str
    attempt_number: int
    max_attempts: int
    error_category: ErrorCategory
    timestamp: float
    additional_info: Dict[str, Any] = field(default_factory=dict)


class ErrorAnalyzer:
    """Analyzes errors to determine appropriate recovery strategies."""

    ERROR_PATTERNS = {
        ErrorCategory.RATE_LIMIT: [
            'rate limit', 'too many requests', 'requests per minute',
            'rate_limit_exceeded', 'throttled', '429'
        ],
        ErrorCategory.TIMEOUT: [
            'timeout', 'timed out', 'request timeout'
        ],
        ErrorCategory.NETWORK_ERROR: [
            'connection error', 'network error', 'connection refused',
            'connection reset', 'unreachable'
        ],
        ErrorCategory.AUTHENTICATION_ERROR: [
            'authentication', 'unauthorized', 'invalid api key', 'incorrect api key',
            'forbidden', '401', '403', 'invalid token'
        ],
        ErrorCategory.QUOTA_EXCEEDED: [
            'quota', 'insufficient_quota', 'billing', 'credits'
        ],
        ErrorCategory.CONTENT_POLICY: [
            'content policy', 'content_policy_violation', 'safety system', 'safety filter'
        ],
    }

    # Retrying these cannot succeed
    FATAL_CATEGORIES = (
        ErrorCategory.AUTHENTICATION_ERROR,
        ErrorCategory.QUOTA_EXCEEDED,
        ErrorCategory.CONTENT_POLICY,
        ErrorCategory.VALIDATION_ERROR,
    )

    @classmethod
    def categorize_error(cls, error: Exception, error_message: str | None = None) -> ErrorCategory:
        """Categorize an error based on its type and message."""
        error_text = (error_message or str(error)).lower()
        error_type = type(error).__name__.lower()

        for category, patterns in cls.ERROR_PATTERNS.items():
            for pattern in patterns:
                if pattern in error_text or pattern in error_type:
                    return category

        if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
            return ErrorCategory.TIMEOUT
        elif isinstance(error, (ConnectionError, OSError)):
            return ErrorCategory.NETWORK_ERROR
        elif isinstance(error, ValueError):
            return ErrorCategory.VALIDATION_ERROR
        else:
            return ErrorCategory.PROCESSING_ERROR

    @classmethod
    def retry_delay(cls, category: ErrorCategory, attempt_number: int) -> float | None:
        """Seconds to wait before the next attempt, None to give up."""
        if category in cls.FATAL_CATEGORIES:
            return None
        if category == ErrorCategory.RATE_LIMIT:
            return min(60, 2 ** attempt_number) + random.uniform(0, 5)
        if category == ErrorCategory.NETWORK_ERROR:
            return min(20, attempt_number * 3)
        return min(30, 2 ** (attempt_number - 1))


class ErrorRecoveryHandler:
    """Runs coroutines with bounded retries and keeps error statistics."""

    def __init__(self, max_attempts: int = 3, sleep: Callable[[float], Any] = asyncio.sleep):
        self.max_attempts = max_attempts
        self.sleep = sleep
        self.error_history: List[ErrorContext] = []
        self.recovery_stats = {
            'total_errors': 0,
            'recovered_errors': 0,
            'failed_recoveries': 0,
            'category_counts': {},
        }

    async def handle_with_recovery(
        self,
        func: Callable,
        args: tuple = (),
        kwargs: Dict[str, Any] | None = None,
        context: Dict[str, Any] | None = None
    ) -> Any:
        """Await ``func(*args, **kwargs)``, retrying transient failures."""

        kwargs = kwargs or {}
        context = context or {}

        for attempt in range(1, self.max_attempts + 1):
            try:
                result = await func(*args, **kwargs)
                if attempt > 1:
                    logger.info("Successfully recovered from error on attempt %d", attempt)
                    self.recovery_stats['recovered_errors'] += 1
                return result

            except Exception as error:
                category = ErrorAnalyzer.categorize_error(error)
                self.recovery_stats['total_errors'] += 1
                self.recovery_stats['category_counts'][category] = \
                    self.recovery_stats['category_counts'].get(category, 0) + 1

                self.error_history.append(ErrorContext(
                    function_name=getattr(func, "__name__", repr(func)),
                    attempt_number=attempt,
                    max_attempts=self.max_attempts,
                    error_category=category,
                    timestamp=time.time(),
                    additional_info=context,
                ))
                if len(self.error_history) > 100:
                    self.error_history = self.error_history[-100:]

                logger.warning(
                    "Error in %s (attempt %d/%d): %s - %s",
                    getattr(func, "__name__", "call"), attempt, self.max_attempts, category.value, error,
                )

                delay = ErrorAnalyzer.retry_delay(category, attempt)
                if delay is None or attempt >= self.max_attempts:
                    logger.error("Giving up after %d attempt(s): %s", attempt, error)
                    self.recovery_stats['failed_recoveries'] += 1
                    raise

                logger.info("Retrying in %.1f seconds...", delay)
                await self.sleep(delay)

    def get_error_statistics(self) -> Dict[str, Any]:
        """Summary of the errors seen so far."""
        total_errors = self.recovery_stats['total_errors']
        return {
            'total_errors': total_errors,
            'recovered_errors': self.recovery_stats['recovered_errors'],
            'failed_recoveries': self.recovery_stats['failed_recoveries'],
            'recovery_rate': self.recovery_stats['recovered_errors'] / max(1, total_errors),
            'category_breakdown': dict(self.recovery_stats['category_counts']),
        }


def resilient_async(max_attempts: int = 3, context: Dict[str, Any] | None = None):
    """Decorator adding retry handling to an async function."""

    def decorator(func: Callable):
        error_handler = ErrorRecoveryHandler(max_attempts)

        @wraps(func)
        async def wrapper(*args, **kwargs):
            return await error_handler.handle_with_recovery(func, args, kwargs, context)

        wrapper.error_handler = error_handler
        return wrapper

    return decorator
