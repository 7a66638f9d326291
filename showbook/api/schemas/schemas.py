from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from showbook.application.booking_service import EMAIL_PATTERN


class ShowCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    start_time: datetime
    end_time: datetime
    total_seats: int = Field(gt=0)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)


class ShowResponse(BaseModel):
    id: str
    name: str
    description: str | None
    start_time: datetime
    end_time: datetime
    total_seats: int
    price: Decimal
    available_seats: int
    booked_seat_numbers: list[int]


class BookingRequest(BaseModel):
    show_id: str
    customer_name: str = Field(min_length=1, max_length=255)
    customer_email: str = Field(min_length=3, max_length=255)
    num_seats: int = Field(gt=0)
    seat_numbers: list[int]

    @field_validator("customer_email")
    @classmethod
    def check_email_shape(cls, value: str) -> str:
        if not EMAIL_PATTERN.match(value):
            raise ValueError("must be a valid e-mail address")
        return value


class BookingResponse(BaseModel):
    id: str
    show_id: str
    status: str
    num_seats: int
    seat_numbers: list[int]
    customer_name: str
    customer_email: str
    total_amount: Decimal
    created_at: datetime
    expires_at: datetime


class BookingCreatedResponse(BaseModel):
    booking: BookingResponse
    message: str
