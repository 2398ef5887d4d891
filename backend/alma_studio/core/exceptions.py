# backend/alma_studio/core/exceptions.py
"""
Domain-specific exceptions for the Ceramic Alma booking backend.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException carrying the code and details."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class DuplicateBookingException(ConflictException):
    """Raised when a customer already holds a booking for one of the requested sessions."""

    def __init__(self, email: str, date: str, time: str):
        super().__init__(
            message=f"{email} already has a booking on {date} at {time}",
            code="DUPLICATE_BOOKING",
            details={"email": email, "date": date, "time": time},
        )


class DuplicateSlotException(ValidationException):
    """Raised when one booking would hold the same date/time twice."""

    def __init__(self, date: str, time: str):
        super().__init__(
            message=f"Slot {date} {time} appears more than once in the booking",
            code="DUPLICATE_SLOT",
            details={"date": date, "time": time},
        )


class SlotNotInBookingException(BusinessRuleException):
    """Raised when a slot mutation names a date/time the booking does not hold."""

    def __init__(self, booking_id: str, date: str, time: str):
        super().__init__(
            message=f"Booking {booking_id} has no slot on {date} at {time}",
            code="SLOT_NOT_IN_BOOKING",
            details={"booking_id": booking_id, "date": date, "time": time},
        )


class CapacityExceededException(ConflictException):
    """Raised when a session has no capacity left at commit time."""

    def __init__(self, session_key: str, occupied: int, capacity: int):
        super().__init__(
            message=f"Session {session_key} is full ({occupied}/{capacity})",
            code="CAPACITY_EXCEEDED",
            details={"session": session_key, "occupied": occupied, "capacity": capacity},
        )


class SessionBusyException(ConflictException):
    """Raised when a session lock could not be acquired in time."""

    def __init__(self, session_key: str, waited_s: float):
        super().__init__(
            message=f"Session {session_key} is being booked by another request, please retry",
            code="SESSION_BUSY",
            details={"session": session_key, "waited_s": waited_s},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
