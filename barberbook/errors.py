"""Domain errors raised by the booking engine and mapped to JSON responses."""
from __future__ import annotations


class BookingError(Exception):
    """Base class for errors that surface to API callers."""

    code = "booking_error"
    status_code = 400

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict[str, str]:
        return {"error": self.code, "message": self.message}


class InvalidPayload(BookingError):
    code = "invalid_payload"


class InvalidFormat(BookingError):
    code = "invalid_format"


class InvalidStatus(BookingError):
    code = "invalid_status"


class NotFound(BookingError):
    code = "not_found"
    status_code = 404


class Conflict(BookingError):
    code = "conflict"
    status_code = 409


class ShopClosed(BookingError):
    code = "shop_closed"


class OutsideHours(BookingError):
    code = "outside_hours"
