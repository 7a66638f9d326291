# tests/unit/test_db_errors.py

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError

from showbook.domain.exceptions import SeatsAlreadyBookedError, TransientContentionError
from showbook.infrastructure.db.errors import is_transient


class PgDriverError(Exception):
    def __init__(self, pgcode):
        super().__init__(f"pg error {pgcode}")
        self.pgcode = pgcode


class SqliteDriverError(Exception):
    def __init__(self, code):
        super().__init__(f"sqlite error {code}")
        self.sqlite_errorcode = code


@pytest.mark.parametrize("pgcode", ["40001", "40P01", "55P03"])
def test_postgres_lock_failures_are_transient(pgcode):
    exc = OperationalError("SELECT 1", {}, PgDriverError(pgcode))
    assert is_transient(exc)


def test_postgres_unique_violation_is_transient():
    exc = IntegrityError("INSERT", {}, PgDriverError("23505"))
    assert is_transient(exc)


def test_postgres_check_violation_is_not_transient():
    exc = IntegrityError("INSERT", {}, PgDriverError("23514"))
    assert not is_transient(exc)


@pytest.mark.parametrize("code", [5, 6, 261, 517, 2067])
def test_sqlite_busy_locked_and_unique_are_transient(code):
    exc = OperationalError("UPDATE", {}, SqliteDriverError(code))
    assert is_transient(exc)


def test_sqlite_check_constraint_is_not_transient():
    # SQLITE_CONSTRAINT_CHECK
    exc = IntegrityError("INSERT", {}, SqliteDriverError(275))
    assert not is_transient(exc)


def test_message_text_is_ignored():
    exc = OperationalError("SELECT 1", {}, Exception("deadlock detected; database is locked"))
    assert not is_transient(exc)


def test_other_error_types_are_not_transient():
    assert not is_transient(ProgrammingError("SELECT", {}, PgDriverError("40001")))
    assert not is_transient(SeatsAlreadyBookedError([1]))
    assert not is_transient(ValueError("boom"))


def test_domain_contention_error_is_transient():
    assert is_transient(TransientContentionError("lost race"))
