"""
Base service class for the bracket engine.

Provides the record store handle, bounded retry logic for transient storage
failures, and deadlines for bulk operations.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Any, Optional

from bowling_brackets.config import Config
from bowling_brackets.utils.exceptions import (
    BackendFailureError, OperationTimeoutError, TransientStoreError
)

logger = logging.getLogger(__name__)

class BaseService:
    """Base class for all services with store access and retry logic."""
    
    def __init__(self, store, max_retries: int = None, base_delay: float = None, max_delay: float = None):
        """
        Initialize base service with a record store.
        
        Args:
            store: RecordStore implementation shared by the engine
            max_retries: Attempts per storage call (defaults to Config.RETRY_MAX_ATTEMPTS)
            base_delay: First backoff delay in seconds
            max_delay: Upper bound for any single backoff delay
        """
        self.store = store
        self.max_retries = max_retries if max_retries is not None else Config.RETRY_MAX_ATTEMPTS
        self.base_delay = base_delay if base_delay is not None else Config.RETRY_BASE_DELAY
        self.max_delay = max_delay if max_delay is not None else Config.RETRY_MAX_DELAY
    
    def backoff_delay(self, attempt: int) -> float:
        """Delay before retrying after the given zero-based attempt."""
        return min(self.base_delay * (2 ** attempt), self.max_delay)
    
    async def execute_with_retry(self, func: Callable[[], Awaitable[Any]], operation: str = None) -> Any:
        """
        Execute a function with automatic retry on transient storage errors.
        
        Only TransientStoreError is retried. Validation and other client errors
        propagate on the first attempt.
        """
        operation = operation or getattr(func, '__name__', 'store call')
        for attempt in range(self.max_retries):
            try:
                return await func()
            except TransientStoreError as e:
                if attempt == self.max_retries - 1:
                    logger.error(f"{operation} failed after {self.max_retries} attempts: {e}")
                    raise BackendFailureError(operation, self.max_retries) from e
                logger.warning(f"Retry attempt {attempt + 1} for {operation}: {e}")
                await asyncio.sleep(self.backoff_delay(attempt))  # Exponential backoff
    
    async def run_with_deadline(self, awaitable: Awaitable[Any], timeout: Optional[float], operation: str) -> Any:
        """
        Await an operation, giving up once the deadline passes.
        
        Records already committed before the deadline are kept.
        """
        if timeout is None:
            timeout = Config.OPERATION_TIMEOUT
        if timeout is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{operation} exceeded its {timeout}s deadline")
            raise OperationTimeoutError(operation, timeout)
