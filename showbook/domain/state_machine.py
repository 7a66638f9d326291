# showbook/domain/state_machine.py

from datetime import timedelta
from enum import Enum
from typing import Dict, Set

from showbook.domain.exceptions import InvalidStateTransitionError


# Pending bookings hold their seats for this long before reclamation.
BOOKING_EXPIRY_WINDOW = timedelta(seconds=120)


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    FAILED = "failed"


class BookingStateMachine:
    """
    Central lifecycle controller for booking transitions.
    Defines the legal state transitions.

    EXPIRED is only entered by the expiry reclaimer and FAILED only by
    internal error handling; the public operations never request them.
    """

    _ALLOWED_TRANSITIONS: Dict[BookingStatus, Set[BookingStatus]] = {
        BookingStatus.PENDING: {
            BookingStatus.CONFIRMED,
            BookingStatus.CANCELLED,
            BookingStatus.EXPIRED,
            BookingStatus.FAILED,
        },
        BookingStatus.CONFIRMED: {
            BookingStatus.CANCELLED,
            BookingStatus.FAILED,
        },
        BookingStatus.CANCELLED: set(),
        BookingStatus.EXPIRED: set(),
        BookingStatus.FAILED: set(),
    }

    # Statuses whose seats count against the show's capacity.
    _ACTIVE: Set[BookingStatus] = {
        BookingStatus.PENDING,
        BookingStatus.CONFIRMED,
    }

    @classmethod
    def can_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> bool:
        """
        Returns True if transition is allowed.
        """
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)

        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> None:
        """
        Raises InvalidStateTransitionError if transition is illegal.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
            )

    @classmethod
    def is_terminal(cls, status: BookingStatus) -> bool:
        """
        Returns True if the state is terminal (no further transitions allowed).
        """
        cls._ensure_valid_status(status)
        return len(cls._ALLOWED_TRANSITIONS.get(status, set())) == 0

    @classmethod
    def is_active(cls, status: BookingStatus) -> bool:
        """
        Returns True if a booking in this state may hold seats.
        Pending bookings additionally need an unexpired deadline.
        """
        cls._ensure_valid_status(status)
        return status in cls._ACTIVE

    @classmethod
    def get_allowed_transitions(
        cls, status: BookingStatus
    ) -> Set[BookingStatus]:
        """
        Returns allowed next states from current state.
        """
        cls._ensure_valid_status(status)
        return cls._ALLOWED_TRANSITIONS.get(status, set())

    @staticmethod
    def _ensure_valid_status(status: BookingStatus) -> None:
        if not isinstance(status, BookingStatus):
            raise TypeError(
                f"Expected BookingStatus, got {type(status)}"
            )
