"""Domain Errors

Every rule violation raised by the booking core is a ``BookingRuleError``.
Each one carries the offending field, the value that was rejected and the
constraint it broke, so callers can render a message without parsing text.
"""
from typing import Any, Optional


class BookingRuleError(Exception):
    """Base class for recoverable booking rule violations"""

    code = "booking_rule"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        constraint: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value
        self.constraint = constraint

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
            "field": self.field,
            "value": None if self.value is None else str(self.value),
            "constraint": self.constraint,
        }


class InvalidRangeError(BookingRuleError):
    code = "invalid_range"


class ZeroNightStayError(BookingRuleError):
    code = "zero_night_stay"


class InvalidGuestCountError(BookingRuleError):
    code = "invalid_guest_count"


class MinimumStayNotMetError(BookingRuleError):
    code = "minimum_stay_not_met"

    def __init__(self, required_nights: int, actual_nights: int, rule: str):
        super().__init__(
            f"Minimum stay for {rule} is {required_nights} nights, got {actual_nights}",
            field="nights",
            value=actual_nights,
            constraint=f">= {required_nights}"
        )
        self.required_nights = required_nights
        self.rule = rule


class InvalidDepositTierError(BookingRuleError):
    code = "invalid_deposit_tier"


class PropertyUnavailableError(BookingRuleError):
    code = "property_unavailable"


class InvalidStatusTransitionError(BookingRuleError):
    code = "invalid_status_transition"


class PaymentExceedsBalanceError(BookingRuleError):
    code = "payment_exceeds_balance"


class InvalidSeasonalRateError(BookingRuleError):
    code = "invalid_seasonal_rate"


class NotFoundError(BookingRuleError):
    code = "not_found"


class PropertyNotFoundError(NotFoundError):
    code = "property_not_found"


class BookingNotFoundError(NotFoundError):
    code = "booking_not_found"


class SeasonalRateNotFoundError(NotFoundError):
    code = "seasonal_rate_not_found"


class PaymentNotFoundError(NotFoundError):
    code = "payment_not_found"
