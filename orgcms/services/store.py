"""
Datastore error classification.

Commit failures are mapped to a ``StoreErrorKind`` from the DB-API error's
structured code (PostgreSQL SQLSTATE, SQLite extended result name). Callers
branch on ``StoreError.kind``; message text is never inspected.
"""
from __future__ import annotations

import enum
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from orgcms.extensions import db


class StoreErrorKind(str, enum.Enum):
    UNIQUE_VIOLATION = "unique_violation"
    FOREIGN_KEY_VIOLATION = "foreign_key_violation"
    NOT_NULL_VIOLATION = "not_null_violation"
    CHECK_VIOLATION = "check_violation"
    OTHER = "other"


_PG_SQLSTATE = {
    "23505": StoreErrorKind.UNIQUE_VIOLATION,
    "23503": StoreErrorKind.FOREIGN_KEY_VIOLATION,
    "23502": StoreErrorKind.NOT_NULL_VIOLATION,
    "23514": StoreErrorKind.CHECK_VIOLATION,
}

_SQLITE_ERRORNAME = {
    "SQLITE_CONSTRAINT_UNIQUE": StoreErrorKind.UNIQUE_VIOLATION,
    "SQLITE_CONSTRAINT_PRIMARYKEY": StoreErrorKind.UNIQUE_VIOLATION,
    "SQLITE_CONSTRAINT_FOREIGNKEY": StoreErrorKind.FOREIGN_KEY_VIOLATION,
    "SQLITE_CONSTRAINT_NOTNULL": StoreErrorKind.NOT_NULL_VIOLATION,
    "SQLITE_CONSTRAINT_CHECK": StoreErrorKind.CHECK_VIOLATION,
}


class StoreError(Exception):
    def __init__(self, kind: StoreErrorKind, constraint: Optional[str] = None):
        super().__init__(kind.value if constraint is None else f"{kind.value}:{constraint}")
        self.kind = kind
        self.constraint = constraint


def classify(exc: BaseException) -> StoreErrorKind:
    if not isinstance(exc, IntegrityError):
        return StoreErrorKind.OTHER
    orig = getattr(exc, "orig", None)
    # psycopg 3 exposes .sqlstate, psycopg2 .pgcode
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code in _PG_SQLSTATE:
        return _PG_SQLSTATE[code]
    name = getattr(orig, "sqlite_errorname", None)
    if name in _SQLITE_ERRORNAME:
        return _SQLITE_ERRORNAME[name]
    return StoreErrorKind.OTHER


def _constraint_name(exc: BaseException) -> Optional[str]:
    diag = getattr(getattr(exc, "orig", None), "diag", None)
    return getattr(diag, "constraint_name", None)


def commit() -> None:
    """Commit the session; on failure roll back and raise ``StoreError``."""
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError(classify(exc), _constraint_name(exc)) from exc


def flush() -> None:
    """Flush pending rows (to obtain ids) with the same error mapping as ``commit``."""
    try:
        db.session.flush()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError(classify(exc), _constraint_name(exc)) from exc
