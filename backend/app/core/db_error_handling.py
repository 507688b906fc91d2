"""
Database error handling utilities.

This module centralizes the pattern every progress operation follows around
its database work:
1. Rolling back the session on error
2. Logging the error with the operation name
3. Raising an error the HTTP layer knows how to report

Usage:
    from app.core.db_error_handling import handle_db_error

    async with handle_db_error(db, "complete test"):
        record = await store.get_for_update(...)
        ...
        await db.commit()

Domain errors (ProgressError) raised inside the block are re-raised untouched
after the rollback. Connection-level failures become StorageUnavailableError
(503); any other SQLAlchemyError is wrapped in DatabaseOperationError (500).
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.exc import (
    DisconnectionError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.error_responses import ErrorMessages
from app.core.progress_errors import ProgressError, StorageUnavailableError


logger = logging.getLogger(__name__)

# Failures that mean "the database is not reachable right now"
CONNECTION_ERRORS = (
    OperationalError,
    InterfaceError,
    DisconnectionError,
    PoolTimeoutError,
)


class DatabaseOperationError(Exception):
    """Exception raised when a database operation fails.

    Wraps a non-connection SQLAlchemy error with the name of the operation
    that failed. The HTTP layer reports it as a 500 without leaking the
    underlying error text.

    Attributes:
        operation_name: Human-readable name of the operation that failed
        original_error: The underlying exception that caused the failure
        message: The formatted error message
    """

    def __init__(
        self,
        operation_name: str,
        original_error: Exception,
        message: Optional[str] = None,
    ):
        """Initialize the database operation error.

        Args:
            operation_name: Human-readable name of the failed operation
            original_error: The underlying exception that caused the failure
            message: Optional custom error message. If not provided, a default
                message is generated from the operation name and error.
        """
        self.operation_name = operation_name
        self.original_error = original_error
        self.message = message or f"Failed to {operation_name}: {str(original_error)}"
        super().__init__(self.message)


async def _safe_rollback(db: AsyncSession, operation_name: str) -> None:
    try:
        await db.rollback()
    except SQLAlchemyError as rollback_error:
        # The connection may already be gone; the original error is what matters
        logger.warning(
            f"Rollback failed during {operation_name}: {rollback_error}",
        )


@asynccontextmanager
async def handle_db_error(
    db: AsyncSession,
    operation_name: str,
    *,
    log_level: int = logging.ERROR,
) -> AsyncGenerator[None, None]:
    """Async context manager for handling database errors consistently.

    Args:
        db: The async session to roll back on error.
        operation_name: Human-readable name of the operation for error messages
            and logging (e.g., "start test", "update test progress").
        log_level: Logging level for database errors. Defaults to logging.ERROR.

    Raises:
        ProgressError: Re-raised unchanged after rollback.
        StorageUnavailableError: On connection-level database failures.
        DatabaseOperationError: On any other SQLAlchemyError.
    """
    try:
        yield
    except ProgressError:
        await _safe_rollback(db, operation_name)
        raise
    except CONNECTION_ERRORS as e:
        await _safe_rollback(db, operation_name)
        logger.log(
            log_level,
            f"Database unavailable during {operation_name}: {e}",
            exc_info=True,
        )
        raise StorageUnavailableError(ErrorMessages.STORAGE_UNAVAILABLE) from e
    except SQLAlchemyError as e:
        await _safe_rollback(db, operation_name)
        logger.log(
            log_level,
            f"Database error during {operation_name}: {e}",
            exc_info=True,
        )
        raise DatabaseOperationError(
            operation_name,
            e,
            message=ErrorMessages.database_operation_failed(operation_name),
        ) from e
