"""Typed data-access errors raised by the service layer.

Services never hand raw SQLAlchemy exceptions to the API layer. They
convert store failures into one of these, and ``app.main`` maps each class
to an HTTP status with a ``{"detail": message}`` body.
"""
from fastapi import status
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError

# PostgreSQL SQLSTATE codes, exposed as ``pgcode`` by psycopg2 and by
# SQLAlchemy's asyncpg adapter.
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


class DataAccessError(Exception):
    """Store unavailable or failed in a way the caller cannot fix."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str = "Data store unavailable."):
        super().__init__(message)
        self.message = message


class RecordNotFoundError(DataAccessError):
    status_code = status.HTTP_404_NOT_FOUND


class RecordConflictError(DataAccessError):
    status_code = status.HTTP_409_CONFLICT


class RuleValidationError(DataAccessError):
    status_code = 422


def sqlstate(exc: SQLAlchemyError) -> str | None:
    return getattr(getattr(exc, "orig", None), "pgcode", None)


def is_unique_violation(exc: SQLAlchemyError) -> bool:
    """True for a duplicate key. Drivers that report no SQLSTATE count as one."""
    return isinstance(exc, IntegrityError) and sqlstate(exc) in (None, UNIQUE_VIOLATION)


def translate_store_error(exc: SQLAlchemyError, conflict_message: str) -> DataAccessError:
    """Map a SQLAlchemy failure to the matching DataAccessError.

    ``conflict_message`` describes a duplicate key; other integrity
    failures get a message naming what actually went wrong.
    """
    if isinstance(exc, IntegrityError):
        if is_unique_violation(exc):
            return RecordConflictError(conflict_message)
        if sqlstate(exc) == FOREIGN_KEY_VIOLATION:
            return RecordConflictError("A referenced record was removed concurrently; retry")
        return RuleValidationError("The record violates a database constraint")
    if isinstance(exc, DataError):
        return RuleValidationError("A value is out of range or too long")
    return DataAccessError(str(getattr(exc, "orig", None) or exc))
