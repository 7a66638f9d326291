import pytest
from sqlalchemy import select

from showbook.application.retry import run_in_transaction
from showbook.domain.exceptions import TransientContentionError
from showbook.infrastructure.db.models import Seat
from showbook.infrastructure.db.session import transaction_scope
from showbook.infrastructure.repositories.seat_repository import SeatRepository


class StaleSeatRepository(SeatRepository):
    """Reads the seat index as it was before another claimer inserted rows."""

    def get_seats(self, show_id, seat_numbers):
        return {}


def _insert_seat_row(session_factory, show_id, seat_number):
    with session_factory() as session:
        session.add(Seat(show_id=show_id, seat_number=seat_number))
        session.commit()


def test_duplicate_seat_row_is_reported_as_contention(session_factory, show):
    _insert_seat_row(session_factory, show.id, 4)

    with pytest.raises(TransientContentionError):
        with transaction_scope(session_factory) as session:
            StaleSeatRepository(session).claim_seats(show.id, [4], "booking-1")

    with session_factory() as session:
        seats = session.execute(select(Seat).where(Seat.show_id == show.id)).scalars().all()
        assert [(s.seat_number, s.is_booked, s.booking_id) for s in seats] == [(4, False, None)]


def test_duplicate_seat_row_is_retried_with_fresh_read(session_factory, show):
    _insert_seat_row(session_factory, show.id, 4)
    attempts = []

    def work(session):
        attempts.append(session)
        repo_class = StaleSeatRepository if len(attempts) == 1 else SeatRepository
        return [seat.id for seat in repo_class(session).claim_seats(show.id, [4], "booking-1")]

    claimed = run_in_transaction(work, session_factory=session_factory, delay=0)

    assert len(attempts) == 2
    with session_factory() as session:
        seat = session.execute(
            select(Seat).where(Seat.show_id == show.id, Seat.seat_number == 4)
        ).scalar_one()
        assert claimed == [seat.id]
        assert seat.is_booked
        assert seat.booking_id == "booking-1"


def test_find_conflicts_keeps_request_order(session_factory, show):
    with transaction_scope(session_factory) as session:
        SeatRepository(session).claim_seats(show.id, [2, 5], "booking-1")

    with transaction_scope(session_factory) as session:
        conflicts = SeatRepository(session).find_conflicts(show.id, [5, 3, 2])

    assert conflicts == [5, 2]
