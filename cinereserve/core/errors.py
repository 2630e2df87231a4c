class BookingError(Exception):
    """Base class for domain errors; the API maps `kind` and `status_code` onto the response."""

    kind = "BookingError"
    status_code = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "detail": self.message}


class ValidationError(BookingError):
    kind = "ValidationError"
    status_code = 400


class NotFoundError(BookingError):
    kind = "NotFoundError"
    status_code = 404


class ForbiddenError(BookingError):
    kind = "ForbiddenError"
    status_code = 403


class SeatUnavailableError(BookingError):
    kind = "SeatUnavailableError"
    status_code = 409

    def __init__(self, seats: list[str]) -> None:
        self.seats = list(seats)
        label = ", ".join(self.seats)
        super().__init__(f"Seat {label} is not available" if len(self.seats) == 1 else f"Seats {label} are not available")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "seats": self.seats}


class CapacityError(BookingError):
    kind = "CapacityError"
    status_code = 409


class ScheduleConflictError(BookingError):
    kind = "ScheduleConflictError"
    status_code = 409


class ShowtimeNotBookableError(BookingError):
    kind = "ShowtimeNotBookableError"
    status_code = 400


class NotCancellableError(BookingError):
    kind = "NotCancellableError"
    status_code = 400


class PaymentStateError(BookingError):
    kind = "PaymentStateError"
    status_code = 409
