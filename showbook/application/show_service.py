from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from showbook.application.expiry_reclaimer import Clock, utc_now
from showbook.domain.exceptions import ShowNotFoundError, ValidationError
from showbook.infrastructure.db.models import Show
from showbook.infrastructure.db.session import SessionFactory, SessionLocal, transaction_scope
from showbook.infrastructure.repositories.booking_repository import BookingRepository
from showbook.infrastructure.repositories.seat_repository import SeatRepository
from showbook.infrastructure.repositories.show_repository import ShowRepository


@dataclass
class ShowAvailability:
    show: Show
    available_seats: int
    booked_seat_numbers: list[int] = field(default_factory=list)


class ShowService:
    """Catalog reads and writes the booking flow needs for seeding and display."""

    def __init__(
        self,
        session_factory: SessionFactory = SessionLocal,
        clock: Clock = utc_now,
    ):
        self.session_factory = session_factory
        self.clock = clock

    def create_show(
        self,
        name: str,
        start_time: datetime,
        end_time: datetime,
        total_seats: int,
        price: Decimal | int | float | str,
        description: str | None = None,
    ) -> Show:
        if not name or not name.strip():
            raise ValidationError("Show name is required")
        if start_time.tzinfo is None or end_time.tzinfo is None:
            raise ValidationError("Show times must be timezone-aware")
        if end_time <= start_time:
            raise ValidationError("Show must end after it starts")
        if isinstance(total_seats, bool) or not isinstance(total_seats, int) or total_seats < 1:
            raise ValidationError("Total seats must be a positive integer")

        price = Decimal(str(price))
        if price < 0:
            raise ValidationError("Price must not be negative")

        with transaction_scope(self.session_factory) as session:
            return ShowRepository(session).create_show(
                name=name.strip(),
                start_time=start_time,
                end_time=end_time,
                total_seats=total_seats,
                price=price,
                description=description,
            )

    def get_show_availability(self, show_id: str) -> ShowAvailability:
        with transaction_scope(self.session_factory) as session:
            show = ShowRepository(session).get_by_id(show_id)
            if show is None:
                raise ShowNotFoundError(show_id)

            return self._availability(session, show, self.clock())

    def list_shows(self, include_started: bool = False) -> list[ShowAvailability]:
        """Upcoming shows by start time; started ones too when asked."""
        now = self.clock()
        with transaction_scope(self.session_factory) as session:
            shows = ShowRepository(session).list_shows(
                starting_after=None if include_started else now
            )
            return [self._availability(session, show, now) for show in shows]

    @staticmethod
    def _availability(session, show: Show, now: datetime) -> ShowAvailability:
        in_use = BookingRepository(session).seats_in_use(show.id, now)
        booked = SeatRepository(session).booked_seat_numbers(show.id, now)
        return ShowAvailability(
            show=show,
            available_seats=max(show.total_seats - in_use, 0),
            booked_seat_numbers=booked,
        )
