import logging

from sqlalchemy.orm import Session

from showbook.domain.state_machine import BookingStateMachine, BookingStatus
from showbook.infrastructure.db.models import Booking
from showbook.infrastructure.repositories.booking_repository import BookingRepository
from showbook.infrastructure.repositories.seat_repository import SeatRepository

logger = logging.getLogger(__name__)


class BookingLifecycle:
    """Applies validated status transitions inside the caller's transaction."""

    def __init__(self, db: Session):
        self.db = db
        self.booking_repository = BookingRepository(db)
        self.seat_repository = SeatRepository(db)

    def transition(self, booking: Booking, to_status: BookingStatus) -> None:
        from_status = booking.status
        BookingStateMachine.validate_transition(from_status, to_status)
        self.booking_repository.update_status(booking, to_status)
        self.db.flush()

        released = 0
        if not BookingStateMachine.is_active(to_status):
            released = self.seat_repository.release_seats(booking.id)

        logger.info(
            "Booking %s: %s -> %s (seats released: %s)",
            booking.id,
            from_status.value,
            to_status.value,
            released,
        )
