# showbook/infrastructure/db/errors.py

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from showbook.domain.exceptions import TransientContentionError


# PostgreSQL SQLSTATE codes for lost races.
_PG_TRANSIENT_CODES = {
    "40001",  # serialization_failure
    "40P01",  # deadlock_detected
    "55P03",  # lock_not_available
    "23505",  # unique_violation
}

# SQLite result codes. BUSY and LOCKED are matched on the primary code
# (low byte) so their extended variants count too.
_SQLITE_BUSY = 5
_SQLITE_LOCKED = 6
_SQLITE_CONSTRAINT_UNIQUE = 2067


def _driver_code(exc: DBAPIError) -> str | int | None:
    orig = getattr(exc, "orig", None)
    if orig is None:
        return None
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode is not None:
        return pgcode
    return getattr(orig, "sqlite_errorcode", None)


def is_transient(exc: BaseException) -> bool:
    """
    Returns True if the database error is a lost race that a fresh
    transaction may win: lock wait, deadlock, serialization failure or
    a unique-key collision.
    """
    if isinstance(exc, TransientContentionError):
        return True
    if not isinstance(exc, (OperationalError, IntegrityError)):
        return False

    code = _driver_code(exc)
    if isinstance(code, str):
        return code in _PG_TRANSIENT_CODES
    if isinstance(code, int):
        if code == _SQLITE_CONSTRAINT_UNIQUE:
            return True
        return (code & 0xFF) in (_SQLITE_BUSY, _SQLITE_LOCKED)
    return False
