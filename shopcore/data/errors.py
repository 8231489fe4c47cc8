# shopcore/data/errors.py
import sqlite3

from sqlalchemy.exc import IntegrityError

PG_UNIQUE_VIOLATION = "23505"

_SQLITE_UNIQUE_CODES = {
    getattr(sqlite3, "SQLITE_CONSTRAINT_UNIQUE", 2067),
    getattr(sqlite3, "SQLITE_CONSTRAINT_PRIMARYKEY", 1555),
}


class DuplicateKeyViolation(Exception):
    """A unique constraint rejected a write."""

    def __init__(self, message: str, constraint: str | None = None):
        super().__init__(message)
        self.constraint = constraint


class ConcurrentInsertConflict(DuplicateKeyViolation):
    """Another request inserted the same cart line between our lookup and insert."""


def is_duplicate_key(exc: IntegrityError) -> bool:
    """Classify by driver error code (psycopg2 pgcode, sqlite extended code)."""
    orig = exc.orig
    if getattr(orig, "pgcode", None) == PG_UNIQUE_VIOLATION:
        return True
    return getattr(orig, "sqlite_errorcode", None) in _SQLITE_UNIQUE_CODES


def constraint_name(exc: IntegrityError) -> str | None:
    diag = getattr(exc.orig, "diag", None)
    return getattr(diag, "constraint_name", None)
