import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from showbook.application.booking_service import BookingService
from showbook.application.expiry_reclaimer import ExpiryReclaimer
from showbook.application.show_service import ShowAvailability, ShowService
from showbook.api.schemas.schemas import (
    BookingCreatedResponse,
    BookingRequest,
    BookingResponse,
    ShowCreateRequest,
    ShowResponse,
)
from showbook.domain.exceptions import (
    BookingNotFoundError,
    DuplicatePendingBookingError,
    InvalidStateTransitionError,
    NotEnoughSeatsError,
    OperationFailedError,
    SeatsAlreadyBookedError,
    ShowbookError,
    ShowNotFoundError,
    ShowNotFoundOrStartedError,
    ValidationError,
)
from showbook.domain.state_machine import BOOKING_EXPIRY_WINDOW
from showbook.infrastructure.db.models import Booking


router = APIRouter()
logger = logging.getLogger(__name__)

reclaimer = ExpiryReclaimer()
_booking_service = BookingService(reclaimer=reclaimer)
_show_service = ShowService()

_STATUS_BY_ERROR: dict[type[ShowbookError], int] = {
    BookingNotFoundError: status.HTTP_404_NOT_FOUND,
    ShowNotFoundError: status.HTTP_404_NOT_FOUND,
    ShowNotFoundOrStartedError: status.HTTP_404_NOT_FOUND,
    SeatsAlreadyBookedError: status.HTTP_409_CONFLICT,
    NotEnoughSeatsError: status.HTTP_409_CONFLICT,
    DuplicatePendingBookingError: status.HTTP_409_CONFLICT,
    InvalidStateTransitionError: status.HTTP_409_CONFLICT,
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    OperationFailedError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_booking_service() -> BookingService:
    return _booking_service


def get_show_service() -> ShowService:
    return _show_service


def _http_error(exc: ShowbookError) -> HTTPException:
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    detail: str | dict = str(exc)
    if isinstance(exc, SeatsAlreadyBookedError):
        detail = {"message": str(exc), "seats": exc.seats}
    elif isinstance(exc, NotEnoughSeatsError):
        detail = {"message": str(exc), "available": exc.available}
    return HTTPException(status_code=status_code, detail=detail)


def _booking_response(booking: Booking) -> BookingResponse:
    return BookingResponse(
        id=booking.id,
        show_id=booking.show_id,
        status=booking.status.value,
        num_seats=booking.num_seats,
        seat_numbers=booking.seat_numbers,
        customer_name=booking.customer_name,
        customer_email=booking.customer_email,
        total_amount=booking.total_amount,
        created_at=booking.created_at,
        expires_at=booking.expires_at,
    )


def _show_response(availability: ShowAvailability) -> ShowResponse:
    show = availability.show
    return ShowResponse(
        id=show.id,
        name=show.name,
        description=show.description,
        start_time=show.start_time,
        end_time=show.end_time,
        total_seats=show.total_seats,
        price=show.price,
        available_seats=availability.available_seats,
        booked_seat_numbers=availability.booked_seat_numbers,
    )


@router.get("/health")
def health():
    return {"status": "ok"}


@router.post("/shows", response_model=ShowResponse, status_code=status.HTTP_201_CREATED)
def create_show(
    request: ShowCreateRequest,
    shows: ShowService = Depends(get_show_service),
):
    try:
        show = shows.create_show(
            name=request.name,
            description=request.description,
            start_time=request.start_time,
            end_time=request.end_time,
            total_seats=request.total_seats,
            price=request.price,
        )
        availability = shows.get_show_availability(show.id)
    except ShowbookError as exc:
        raise _http_error(exc) from exc

    return _show_response(availability)


@router.get("/shows", response_model=list[ShowResponse])
def list_shows(
    include_started: bool = Query(False, alias="all"),
    shows: ShowService = Depends(get_show_service),
):
    return [_show_response(a) for a in shows.list_shows(include_started=include_started)]


@router.get("/shows/{show_id}", response_model=ShowResponse)
def get_show(
    show_id: str,
    shows: ShowService = Depends(get_show_service),
):
    try:
        availability = shows.get_show_availability(show_id)
    except ShowbookError as exc:
        raise _http_error(exc) from exc

    return _show_response(availability)


@router.get("/shows/{show_id}/bookings", response_model=list[BookingResponse])
def list_show_bookings(
    show_id: str,
    bookings: BookingService = Depends(get_booking_service),
):
    return [_booking_response(b) for b in bookings.list_show_bookings(show_id)]


@router.post(
    "/bookings",
    response_model=BookingCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_booking(
    request: BookingRequest,
    bookings: BookingService = Depends(get_booking_service),
):
    try:
        booking = bookings.create_booking(
            show_id=request.show_id,
            customer_name=request.customer_name,
            customer_email=request.customer_email,
            num_seats=request.num_seats,
            seat_numbers=request.seat_numbers,
        )
    except ShowbookError as exc:
        raise _http_error(exc) from exc

    minutes = int(BOOKING_EXPIRY_WINDOW.total_seconds() // 60)
    return BookingCreatedResponse(
        booking=_booking_response(booking),
        message=f"Booking created. You have {minutes} minutes to confirm your booking.",
    )


@router.get("/bookings/pending", response_model=list[BookingResponse])
def list_pending_bookings(
    bookings: BookingService = Depends(get_booking_service),
):
    return [_booking_response(b) for b in bookings.list_pending_bookings()]


@router.get("/bookings/my", response_model=list[BookingResponse])
def list_my_bookings(
    email: str = Query(min_length=3),
    bookings: BookingService = Depends(get_booking_service),
):
    return [_booking_response(b) for b in bookings.list_customer_bookings(email)]


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: str,
    bookings: BookingService = Depends(get_booking_service),
):
    try:
        booking = bookings.get_booking_by_id(booking_id)
    except ShowbookError as exc:
        raise _http_error(exc) from exc

    return _booking_response(booking)


@router.put("/bookings/{booking_id}/confirm", response_model=BookingResponse)
def confirm_booking(
    booking_id: str,
    bookings: BookingService = Depends(get_booking_service),
):
    try:
        booking = bookings.confirm_booking(booking_id)
    except ShowbookError as exc:
        raise _http_error(exc) from exc

    return _booking_response(booking)


@router.put("/bookings/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: str,
    bookings: BookingService = Depends(get_booking_service),
):
    try:
        booking = bookings.cancel_booking(booking_id)
    except ShowbookError as exc:
        raise _http_error(exc) from exc

    return _booking_response(booking)
