# showbook/infrastructure/db/models.py

from sqlalchemy import (
    JSON,
    Boolean,
    String,
    Integer,
    DateTime,
    Enum,
    Numeric,
    Text,
    UniqueConstraint,
    CheckConstraint,
    ForeignKey,
    Index,
)
from sqlalchemy.types import TypeDecorator
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from showbook.infrastructure.db.session import Base
from showbook.domain.state_machine import BookingStatus


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC timestamps on every backend.
    SQLite stores no offset, so naive values read back are tagged as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetime is not allowed")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Show(Base):
    """
    Sellable event instance. Owned by the catalog;
    the booking core only reads and row-locks it.
    """

    __tablename__ = "shows"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0"),
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=_utc_now,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("total_seats > 0", name="ck_show_total_seats_positive"),
        CheckConstraint("price >= 0", name="ck_show_price_nonnegative"),
        CheckConstraint("end_time > start_time", name="ck_show_end_after_start"),
    )


class Seat(Base):
    """
    One slot of a show's seat index. The unique (show_id, seat_number)
    constraint is the last line against double claims.
    """

    __tablename__ = "seats"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    show_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("shows.id", ondelete="CASCADE"),
        nullable=False,
    )
    seat_number: Mapped[int] = mapped_column(Integer, nullable=False)
    is_booked: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    # Weak back-reference: lookup only, bookings are never owned by seats.
    booking_id: Mapped[str | None] = mapped_column(
        String(36),
        nullable=True,
        index=True,
    )

    __table_args__ = (
        UniqueConstraint(
            "show_id",
            "seat_number",
            name="uq_seat_show_number",
        ),
        CheckConstraint("seat_number > 0", name="ck_seat_number_positive"),
    )


class Booking(Base):
    """
    Booking table reflecting domain state.
    Domain controls transitions.
    DB stores current state safely.
    """

    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    show_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("shows.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[BookingStatus] = mapped_column(
        Enum(
            BookingStatus,
            name="booking_status",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    num_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    seat_numbers: Mapped[list[int]] = mapped_column(JSON, nullable=False)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0"),
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=_utc_now,
        onupdate=_utc_now,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "num_seats > 0",
            name="ck_num_seats_positive",
        ),
        Index("ix_booking_show_status", "show_id", "status"),
        Index("ix_booking_customer_email", "customer_email"),
        Index("ix_booking_status_expires_at", "status", "expires_at"),
    )
