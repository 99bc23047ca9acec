import logging
import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Callable, Optional
from functools import wraps

from sqlalchemy.exc import OperationalError

from db import get_db_session, session_commit, session_rollback
from utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


class TransactionManager:
    """
    Utility class for managing database transactions with rollback
    and retry logic for transient SQLite errors (database is locked).
    """

    # Transaction duration above which a warning is logged, in seconds
    TRANSACTION_TIMEOUT = 30

    # Retry configuration
    MAX_RETRIES = 3
    RETRY_DELAY_BASE = 0.1  # Base delay in seconds

    @staticmethod
    @asynccontextmanager
    async def atomic_transaction(session_factory: Optional[Callable] = None,
                                 timeout: Optional[int] = None) -> AsyncGenerator[Any, None]:
        """
        Context manager for atomic database transactions.

        Commits when the block exits normally, rolls back and re-raises otherwise.

        Usage:
            async with TransactionManager.atomic_transaction() as session:
                await OrderRepository.update_fields(order_id, values, session)
        """
        timeout = timeout or TransactionManager.TRANSACTION_TIMEOUT
        session_factory = session_factory or get_db_session

        async with session_factory() as session:
            transaction_start = utcnow()
            try:
                yield session
                await session_commit(session)
            except Exception as e:
                try:
                    await session_rollback(session)
                    logger.info(f"Transaction rolled back due to error: {str(e)}")
                except Exception as rollback_error:
                    logger.critical(f"Failed to rollback transaction: {str(rollback_error)}")
                raise

            duration = (utcnow() - transaction_start).total_seconds()
            if duration > timeout:
                logger.warning(f"Transaction exceeded timeout: {duration}s > {timeout}s")
            logger.debug(f"Transaction committed successfully in {duration:.2f}s")

    @staticmethod
    def with_retry(max_retries: Optional[int] = None, delay_base: Optional[float] = None):
        """
        Decorator for automatic retry of database operations with exponential backoff.

        Only OperationalError is retried; the decorated function must be safe
        to run again from the start (idempotent).

        Args:
            max_retries: Maximum number of retry attempts
            delay_base: Base delay for exponential backoff
        """
        max_retries = max_retries or TransactionManager.MAX_RETRIES
        delay_base = delay_base or TransactionManager.RETRY_DELAY_BASE

        def decorator(func):
            @wraps(func)
            async def wrapper(*args, **kwargs):
                last_exception = None

                for attempt in range(max_retries + 1):
                    try:
                        return await func(*args, **kwargs)
                    except OperationalError as e:
                        last_exception = e

                        if attempt == max_retries:
                            logger.error(f"Function {func.__name__} failed after {max_retries} retries: {str(e)}")
                            break

                        # Exponential backoff with jitter
                        delay = delay_base * (2 ** attempt) + (delay_base * 0.1 * attempt)
                        logger.warning(f"Attempt {attempt + 1} failed for {func.__name__}, retrying in {delay:.2f}s: {str(e)}")
                        await asyncio.sleep(delay)

                raise last_exception

            return wrapper
        return decorator
