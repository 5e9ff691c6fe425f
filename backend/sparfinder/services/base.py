# backend/sparfinder/services/base.py
"""
Base Service Pattern for the chat backend.

Provides common functionality for all service classes including:
- Transaction management
- Logging
- Error handling
- Slow-operation detection
"""

import asyncio
from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import ServiceException

logger = logging.getLogger(__name__)

SLOW_OPERATION_SECONDS = 1.0

F = TypeVar("F", bound=Callable[..., Any])


class BaseService:
    """
    Base class for all service layer components.

    Provides common patterns for:
    - Database session management
    - Logging
    - Transaction handling
    """

    def __init__(self, db: Session):
        """
        Initialize base service.

        Args:
            db: Database session
        """
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Context manager for database transactions.

        Usage:
            with self.transaction():
                # Do multiple operations
                self.db.add(entity)
                # Note: commit is handled automatically
        """
        try:
            yield self.db
            self.db.commit()
            self.logger.debug("Transaction committed successfully")
        except SQLAlchemyError as e:
            self.logger.error(f"Transaction failed: {str(e)}")
            self.db.rollback()
            raise ServiceException(f"Database operation failed: {str(e)}")
        except Exception as e:
            self.logger.error(f"Unexpected error in transaction: {str(e)}")
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator to measure operation performance.

        Usage:
            @BaseService.measure_operation("create_message")
            def create_message(self, data):
                # Method implementation

        Args:
            operation_name: Name of the operation for logging
        """

        def decorator(func: F) -> F:
            func._operation_name = operation_name  # type: ignore[attr-defined]

            if not asyncio.iscoroutinefunction(func):

                @wraps(func)
                def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
                    start_time = time.time()
                    try:
                        return func(self, *args, **kwargs)
                    finally:
                        _log_if_slow(self, operation_name, time.time() - start_time)

                return cast(F, wrapper)

            @wraps(func)
            async def async_wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
                start_time = time.time()
                try:
                    return await func(self, *args, **kwargs)
                finally:
                    _log_if_slow(self, operation_name, time.time() - start_time)

            return cast(F, async_wrapper)

        return decorator


def _log_if_slow(service: Any, operation_name: str, elapsed: float) -> None:
    if elapsed > SLOW_OPERATION_SECONDS:
        service_logger = getattr(service, "logger", logger)
        service_logger.warning(f"Slow operation detected: {operation_name} took {elapsed:.2f}s")
