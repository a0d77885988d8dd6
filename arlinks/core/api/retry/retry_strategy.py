"""Retry strategies using Strategy Pattern."""
import asyncio
from abc import ABC, abstractmethod
from typing import Optional

import aiohttp

from ..config import RetryConfig
from ...exceptions import GatewayError


class RetryStrategy(ABC):
    """Abstract retry strategy."""
    
    @abstractmethod
    def should_retry(self, error: BaseException, retry_count: int) -> bool:
        """Determines if a failed chunk should be retried."""
        pass
    
    @abstractmethod
    async def wait_async(self, retry_count: int):
        """Waits before retry."""
        pass


class ExponentialBackoffStrategy(RetryStrategy):
    """
    Exponential backoff retry strategy.
    
    Retries network failures and transient gateway responses until the
    configured budget is spent. Any other failure (e.g. a 400 for a
    malformed chunk) still gets exactly one retry with the same chunk.
    """
    
    RETRYABLE_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, ConnectionError)
    
    def __init__(self, config: Optional[RetryConfig] = None):
        self._config = config or RetryConfig()
    
    @property
    def max_retries(self) -> int:
        return self._config.max_retries
    
    def should_retry(self, error: BaseException, retry_count: int) -> bool:
        """Retries transient errors within budget, anything else only once."""
        if self.is_transient(error):
            return retry_count < self._config.max_retries
        return retry_count < 1

    def is_transient(self, error: BaseException) -> bool:
        """True for network failures and retryable gateway responses."""
        if isinstance(error, GatewayError):
            return error.retryable
        return isinstance(error, self.RETRYABLE_ERRORS)
    
    def delay(self, retry_count: int) -> float:
        """Backoff delay before the given retry (0-based)."""
        return self._config.calculate_delay(retry_count)
    
    async def wait_async(self, retry_count: int):
        """Waits with exponential backoff."""
        backoff_time = self.delay(retry_count)
        if backoff_time > 0:
            await asyncio.sleep(backoff_time)
