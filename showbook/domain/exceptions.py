# showbook/domain/exceptions.py


class ShowbookError(Exception):
    """
    Base exception for all domain-level errors
    inside the showbook booking core.
    """


class ShowNotFoundOrStartedError(ShowbookError):
    """Raised when a show does not exist or is no longer open for booking."""

    def __init__(self, show_id: str):
        self.show_id = show_id
        super().__init__(f"Show {show_id} not found or has already started")


class NotEnoughSeatsError(ShowbookError):
    """Raised when the show's capacity cannot cover the request."""

    def __init__(self, available: int):
        self.available = available
        super().__init__(
            f"Not enough seats available. Only {available} seats left."
        )


class SeatsAlreadyBookedError(ShowbookError):
    """Raised when any requested seat is already claimed."""

    def __init__(self, seats: list[int]):
        self.seats = list(seats)
        joined = ", ".join(str(seat) for seat in self.seats)
        super().__init__(f"Seats already booked: {joined}")


class DuplicatePendingBookingError(ShowbookError):
    """
    Raised when the customer already holds an unexpired
    pending booking for the same show.
    """

    def __init__(self, customer_email: str, show_id: str):
        self.customer_email = customer_email
        self.show_id = show_id
        super().__init__("You already have a pending booking for this show")


class InvalidStateTransitionError(ShowbookError):
    """
    Raised when an illegal booking state transition is attempted.
    """

    def __init__(self, from_state: str, to_state: str, reason: str | None = None):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class BookingNotFoundError(ShowbookError):
    """Raised when no booking exists with the given id."""

    def __init__(self, booking_id: str):
        self.booking_id = booking_id
        super().__init__(f"Booking {booking_id} not found")


class ShowNotFoundError(ShowbookError):
    """Raised by catalog reads for an unknown show id."""

    def __init__(self, show_id: str):
        self.show_id = show_id
        super().__init__(f"Show {show_id} not found")


class ValidationError(ShowbookError):
    """Raised when a request is malformed, before any seat state is touched."""


class TransientContentionError(ShowbookError):
    """
    Raised when a transaction lost a race for a lock or a unique key.
    The only error the retry coordinator retries.
    """


class OperationFailedError(ShowbookError):
    """Raised once the retry budget is spent on transient contention."""

    def __init__(self, message: str, attempts: int | None = None):
        self.attempts = attempts
        super().__init__(message)
