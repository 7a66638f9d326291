# showbook/infrastructure/repositories/booking_repository.py

from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session
from sqlalchemy import and_, func, or_, select

from showbook.infrastructure.db.models import Booking
from showbook.domain.exceptions import DuplicatePendingBookingError
from showbook.domain.state_machine import BOOKING_EXPIRY_WINDOW, BookingStatus


def active_on(now: datetime):
    """Confirmed, or pending with an unexpired deadline."""
    return or_(
        Booking.status == BookingStatus.CONFIRMED,
        and_(
            Booking.status == BookingStatus.PENDING,
            Booking.expires_at > now,
        ),
    )


class BookingRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        booking_id: str,
    ) -> Booking | None:

        stmt = select(Booking).where(Booking.id == booking_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def lock_by_id(self, booking_id: str) -> Booking | None:
        """
        SELECT ... FOR UPDATE
        The first transaction to lock the row decides its next state.
        """
        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def seats_in_use(
        self,
        show_id: str,
        now: datetime,
        exclude_booking_id: str | None = None,
    ) -> int:
        stmt = (
            select(func.coalesce(func.sum(Booking.num_seats), 0))
            .where(Booking.show_id == show_id)
            .where(active_on(now))
        )
        if exclude_booking_id is not None:
            stmt = stmt.where(Booking.id != exclude_booking_id)
        return int(self.db.execute(stmt).scalar_one())

    def find_overdue_pending(
        self,
        now: datetime,
        show_id: str | None = None,
        for_update: bool = False,
    ) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.status == BookingStatus.PENDING)
            .where(Booking.expires_at <= now)
            .order_by(Booking.expires_at)
        )
        if show_id is not None:
            stmt = stmt.where(Booking.show_id == show_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return list(self.db.execute(stmt).scalars().all())

    def ensure_no_pending_for_customer(
        self,
        customer_email: str,
        show_id: str,
        now: datetime,
    ) -> None:
        stmt = (
            select(Booking.id)
            .where(Booking.customer_email == customer_email)
            .where(Booking.show_id == show_id)
            .where(Booking.status == BookingStatus.PENDING)
            .where(Booking.expires_at > now)
            .limit(1)
        )
        if self.db.execute(stmt).first() is not None:
            raise DuplicatePendingBookingError(customer_email, show_id)

    def create_booking(
        self,
        show_id: str,
        customer_name: str,
        customer_email: str,
        seat_numbers: list[int],
        total_amount: Decimal,
        now: datetime,
    ) -> Booking:

        booking = Booking(
            show_id=show_id,
            customer_name=customer_name,
            customer_email=customer_email,
            num_seats=len(seat_numbers),
            seat_numbers=list(seat_numbers),
            total_amount=total_amount,
            status=BookingStatus.PENDING,
            created_at=now,
            expires_at=now + BOOKING_EXPIRY_WINDOW,
        )

        self.db.add(booking)
        self.db.flush()
        return booking

    def update_status(
        self,
        booking: Booking,
        new_status: BookingStatus,
    ) -> None:

        booking.status = new_status

    def list_by_show(self, show_id: str, status: BookingStatus) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.show_id == show_id)
            .where(Booking.status == status)
            .order_by(Booking.created_at.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_by_customer(self, customer_email: str) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.customer_email == customer_email)
            .order_by(Booking.created_at.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_by_status(self, status: BookingStatus) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.status == status)
            .order_by(Booking.created_at.desc())
        )
        return list(self.db.execute(stmt).scalars().all())
