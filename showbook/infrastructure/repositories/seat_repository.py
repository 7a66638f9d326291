# showbook/infrastructure/repositories/seat_repository.py

from datetime import datetime

from sqlalchemy.orm import Session
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from showbook.infrastructure.db.errors import is_transient
from showbook.infrastructure.db.models import Booking, Seat
from showbook.infrastructure.repositories.booking_repository import active_on
from showbook.domain.exceptions import (
    SeatsAlreadyBookedError,
    TransientContentionError,
)


class SeatRepository:
    """
    Seat index keyed by (show_id, seat_number).
    Callers must hold the show lock for claim_seats.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_seats(self, show_id: str, seat_numbers: list[int]) -> dict[int, Seat]:
        stmt = (
            select(Seat)
            .where(Seat.show_id == show_id)
            .where(Seat.seat_number.in_(seat_numbers))
        )
        return {
            seat.seat_number: seat
            for seat in self.db.execute(stmt).scalars()
        }

    @staticmethod
    def _conflicts(existing: dict[int, Seat], seat_numbers: list[int]) -> list[int]:
        return [
            number
            for number in seat_numbers
            if number in existing and existing[number].is_booked
        ]

    def find_conflicts(self, show_id: str, seat_numbers: list[int]) -> list[int]:
        """Requested seats that are already booked, in request order."""
        return self._conflicts(self.get_seats(show_id, seat_numbers), seat_numbers)

    def claim_seats(
        self,
        show_id: str,
        seat_numbers: list[int],
        booking_id: str,
    ) -> list[Seat]:
        """
        All or nothing: raises SeatsAlreadyBookedError before any write
        if one requested seat is taken.
        """
        existing = self.get_seats(show_id, seat_numbers)

        conflicts = self._conflicts(existing, seat_numbers)
        if conflicts:
            raise SeatsAlreadyBookedError(conflicts)

        claimed = []
        for number in seat_numbers:
            seat = existing.get(number)
            if seat is None:
                seat = Seat(show_id=show_id, seat_number=number)
                self.db.add(seat)
            seat.is_booked = True
            seat.booking_id = booking_id
            claimed.append(seat)

        try:
            self.db.flush()
        except IntegrityError as exc:
            if not is_transient(exc):
                raise
            # A concurrent claimer inserted one of the rows first.
            raise TransientContentionError(
                f"Seat rows for show {show_id} changed concurrently"
            ) from exc

        return claimed

    def release_seats(self, booking_id: str) -> int:
        stmt = (
            update(Seat)
            .where(Seat.booking_id == booking_id)
            .values(is_booked=False, booking_id=None)
            .execution_options(synchronize_session="fetch")
        )
        result = self.db.execute(stmt)
        return result.rowcount

    def count_claimed_by(self, booking_id: str, seat_numbers: list[int]) -> int:
        stmt = (
            select(Seat)
            .where(Seat.booking_id == booking_id)
            .where(Seat.is_booked.is_(True))
            .where(Seat.seat_number.in_(seat_numbers))
        )
        return len(self.db.execute(stmt).scalars().all())

    def booked_seat_numbers(self, show_id: str, now: datetime) -> list[int]:
        """Seats held by confirmed or unexpired pending bookings."""
        stmt = (
            select(Seat.seat_number)
            .join(Booking, Booking.id == Seat.booking_id)
            .where(Seat.show_id == show_id)
            .where(Seat.is_booked.is_(True))
            .where(active_on(now))
            .order_by(Seat.seat_number)
        )
        return list(self.db.execute(stmt).scalars().all())
