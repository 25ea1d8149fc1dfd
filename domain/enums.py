"""Domain Enums"""
from enum import Enum


class BookingStatus(str, Enum):
    PENDING_VERIFICATION = "pending_verification"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class PaymentStatus(str, Enum):
    DP_PENDING = "dp_pending"
    DP_RECEIVED = "dp_received"
    FULLY_PAID = "fully_paid"
    REFUNDED = "refunded"


class PaymentRecordStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class RateType(str, Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"
    MULTIPLIER = "multiplier"


class WeekendStayRule(str, Enum):
    ANY_NIGHT = "any_night"
    MAJORITY = "majority"


# Bookings in these states never block a date range
NON_BLOCKING_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.NO_SHOW})
