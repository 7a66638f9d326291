import logging
import re
from typing import Sequence

from sqlalchemy.orm import Session

from showbook.application.booking_lifecycle import BookingLifecycle
from showbook.application.expiry_reclaimer import Clock, ExpiryReclaimer, utc_now
from showbook.application.retry import run_in_transaction
from showbook.domain.exceptions import (
    BookingNotFoundError,
    InvalidStateTransitionError,
    NotEnoughSeatsError,
    OperationFailedError,
    SeatsAlreadyBookedError,
    ShowNotFoundOrStartedError,
    ValidationError,
)
from showbook.domain.state_machine import BookingStateMachine, BookingStatus
from showbook.infrastructure.db.models import Booking
from showbook.infrastructure.db.session import SessionFactory, SessionLocal, transaction_scope
from showbook.infrastructure.repositories.booking_repository import BookingRepository
from showbook.infrastructure.repositories.seat_repository import SeatRepository
from showbook.infrastructure.repositories.show_repository import ShowRepository

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_booking_request(
    customer_name: str,
    customer_email: str,
    num_seats: int,
    seat_numbers: Sequence[int],
) -> list[int]:
    """
    Checks everything that does not need the show row.
    Returns the seat numbers as a list in request order.
    """
    if not customer_name or not customer_name.strip():
        raise ValidationError("Customer name is required")
    if not customer_email or not EMAIL_PATTERN.match(customer_email):
        raise ValidationError("A valid customer email is required")
    if isinstance(num_seats, bool) or not isinstance(num_seats, int) or num_seats < 1:
        raise ValidationError("Number of seats must be a positive integer")

    seats = list(seat_numbers)
    if len(seats) != num_seats:
        raise ValidationError(
            f"Number of seats ({num_seats}) does not match "
            f"the number of seat numbers ({len(seats)})"
        )
    for number in seats:
        if isinstance(number, bool) or not isinstance(number, int) or number < 1:
            raise ValidationError(f"Invalid seat number: {number!r}")
    if len(set(seats)) != len(seats):
        raise ValidationError("Seat numbers must be unique")

    return seats


class BookingService:
    """
    Application service coordinating booking workflow.

    Every operation runs in its own transaction through the retry
    coordinator, so one instance can be shared between threads.
    Lock order is always show row, then booking row.
    """

    def __init__(
        self,
        session_factory: SessionFactory = SessionLocal,
        reclaimer: ExpiryReclaimer | None = None,
        clock: Clock = utc_now,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.reclaimer = reclaimer or ExpiryReclaimer(session_factory, clock=clock)

    def create_booking(
        self,
        show_id: str,
        customer_name: str,
        customer_email: str,
        num_seats: int,
        seat_numbers: Sequence[int],
    ) -> Booking:
        seats = validate_booking_request(customer_name, customer_email, num_seats, seat_numbers)
        customer_name = customer_name.strip()

        def work(session: Session) -> Booking:
            now = self.clock()
            show = ShowRepository(session).lock_show(show_id, now)
            self.reclaimer.expire_overdue_for_show(session, show.id, now)

            out_of_range = [number for number in seats if number > show.total_seats]
            if out_of_range:
                raise ValidationError(
                    f"Seat numbers out of range 1-{show.total_seats}: "
                    + ", ".join(str(number) for number in out_of_range)
                )

            # Taken seats are reported ahead of capacity.
            seat_repo = SeatRepository(session)
            conflicts = seat_repo.find_conflicts(show.id, seats)
            if conflicts:
                raise SeatsAlreadyBookedError(conflicts)

            bookings = BookingRepository(session)
            available = show.total_seats - bookings.seats_in_use(show.id, now)
            if available < num_seats:
                raise NotEnoughSeatsError(max(available, 0))

            bookings.ensure_no_pending_for_customer(customer_email, show.id, now)

            booking = bookings.create_booking(
                show_id=show.id,
                customer_name=customer_name,
                customer_email=customer_email,
                seat_numbers=seats,
                total_amount=show.price * num_seats,
                now=now,
            )
            seat_repo.claim_seats(show.id, seats, booking.id)
            return booking

        booking = run_in_transaction(work, session_factory=self.session_factory)
        logger.info(
            "Booking %s created for show %s (seats %s), expires at %s",
            booking.id,
            booking.show_id,
            booking.seat_numbers,
            booking.expires_at.isoformat(),
        )

        try:
            self.reclaimer.schedule(booking.id, booking.expires_at)
        except RuntimeError as exc:
            logger.exception("Could not schedule expiry for booking %s", booking.id)
            self._fail_booking(booking.id)
            raise OperationFailedError(
                "Booking could not be registered for expiry and was released"
            ) from exc

        return booking

    def confirm_booking(self, booking_id: str) -> Booking:

        def work(session: Session) -> Booking:
            now = self.clock()
            bookings = BookingRepository(session)

            current = bookings.get_by_id(booking_id)
            if current is None:
                raise BookingNotFoundError(booking_id)

            show = ShowRepository(session).lock_for_update(current.show_id)
            if show is None:
                raise ShowNotFoundOrStartedError(current.show_id)

            booking = bookings.lock_by_id(booking_id)
            if booking is None:
                raise BookingNotFoundError(booking_id)

            BookingStateMachine.validate_transition(booking.status, BookingStatus.CONFIRMED)
            if booking.expires_at <= now:
                raise InvalidStateTransitionError(
                    from_state=booking.status.value,
                    to_state=BookingStatus.CONFIRMED.value,
                    reason=f"booking expired at {booking.expires_at.isoformat()}",
                )

            # Re-verify the claim: the seats must still be ours and the
            # show must still have room for them.
            held = SeatRepository(session).count_claimed_by(booking.id, booking.seat_numbers)
            in_use = bookings.seats_in_use(show.id, now, exclude_booking_id=booking.id)
            available = show.total_seats - in_use
            if held != booking.num_seats or available < booking.num_seats:
                raise NotEnoughSeatsError(max(available, 0))

            BookingLifecycle(session).transition(booking, BookingStatus.CONFIRMED)
            return booking

        return run_in_transaction(work, session_factory=self.session_factory)

    def cancel_booking(self, booking_id: str) -> Booking:

        def work(session: Session) -> Booking:
            booking = BookingRepository(session).lock_by_id(booking_id)
            if booking is None:
                raise BookingNotFoundError(booking_id)

            BookingLifecycle(session).transition(booking, BookingStatus.CANCELLED)
            return booking

        return run_in_transaction(work, session_factory=self.session_factory)

    def get_booking_by_id(self, booking_id: str) -> Booking:
        with transaction_scope(self.session_factory) as session:
            booking = BookingRepository(session).get_by_id(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking

    def list_show_bookings(self, show_id: str) -> list[Booking]:
        with transaction_scope(self.session_factory) as session:
            return BookingRepository(session).list_by_show(show_id, BookingStatus.CONFIRMED)

    def list_customer_bookings(self, customer_email: str) -> list[Booking]:
        with transaction_scope(self.session_factory) as session:
            return BookingRepository(session).list_by_customer(customer_email)

    def list_pending_bookings(self) -> list[Booking]:
        with transaction_scope(self.session_factory) as session:
            return BookingRepository(session).list_by_status(BookingStatus.PENDING)

    def _fail_booking(self, booking_id: str) -> None:

        def work(session: Session) -> None:
            booking = BookingRepository(session).lock_by_id(booking_id)
            if booking is None or BookingStateMachine.is_terminal(booking.status):
                return
            BookingLifecycle(session).transition(booking, BookingStatus.FAILED)

        run_in_transaction(work, session_factory=self.session_factory)
