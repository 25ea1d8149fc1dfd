"""Domain Entities - Aggregates"""
from pydantic import BaseModel, Field, validator
from uuid import UUID, uuid4
from datetime import datetime, date, timezone
from typing import Optional, List, Tuple
from decimal import Decimal
import random
import string

from domain.enums import BookingStatus, PaymentStatus, PaymentRecordStatus, RateType
from domain.errors import (
    InvalidSeasonalRateError, InvalidStatusTransitionError, PaymentExceedsBalanceError,
    PaymentNotFoundError
)
from domain.value_objects import (
    DateRange, Money, PricingPolicy, AppliedSeasonalRate, RateCalculationResult,
    DepositAllocation, day_index
)
from domain.deposits import next_payment_status


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _generate_reference(prefix: str, now: datetime) -> str:
    """Human readable reference such as BK250601X7QZ"""
    suffix = ''.join(random.choices(string.ascii_uppercase + string.digits, k=4))
    return f"{prefix}{now:%y%m%d}{suffix}"


class SeasonalRate(BaseModel):
    """Time-boxed, priority-ranked adjustment to a property's nightly rate"""

    rate_id: UUID = Field(default_factory=uuid4)
    property_id: UUID
    name: str

    # Inclusive calendar window
    start_date: date
    end_date: date

    rate_type: RateType = RateType.PERCENTAGE
    rate_value: Decimal = Field(ge=0)
    min_stay_nights: int = Field(default=1, ge=1)
    applies_to_weekends_only: bool = False
    is_active: bool = True
    priority: int = Field(default=0, ge=0, le=100)
    applicable_days: List[int] = []
    description: Optional[str] = None

    created_at: datetime = Field(default_factory=_utcnow)

    class Config:
        from_attributes = True

    @validator('end_date')
    def end_after_start(cls, v, values):
        if 'start_date' in values and v <= values['start_date']:
            raise InvalidSeasonalRateError(
                'Seasonal rate end date must be after its start date',
                field='end_date',
                value=v.isoformat(),
                constraint=f"> {values['start_date'].isoformat()}"
            )
        return v

    @validator('applicable_days')
    def days_are_weekday_indices(cls, v):
        if any(d < 0 or d > 6 for d in v):
            raise ValueError('applicable_days must contain weekday indices 0-6 (0 = Sunday)')
        return sorted(set(v))

    # ==================== QUERY METHODS ====================
    def overlaps_stay(self, date_range: DateRange) -> bool:
        """Rule window is inclusive, the stay is half-open"""
        return self.start_date < date_range.end and date_range.start <= self.end_date

    def covers(self, day: date, policy: PricingPolicy) -> bool:
        """Check if this rule applies to a single calendar day"""
        if not (self.start_date <= day <= self.end_date):
            return False

        if self.applies_to_weekends_only and not policy.is_weekend_night(day):
            return False

        if self.applicable_days and day_index(day) not in self.applicable_days:
            return False

        return True

    def matches(self, date_range: DateRange, is_weekend_stay: bool) -> bool:
        """Check if this rule is a candidate for the whole stay"""
        if not self.is_active or not self.overlaps_stay(date_range):
            return False

        if self.applies_to_weekends_only and not is_weekend_stay:
            return False

        if self.applicable_days:
            stay_days = {day_index(night) for night in date_range.each_night()}
            if not stay_days.intersection(self.applicable_days):
                return False

        return True

    def conflicts_with(self, other: "SeasonalRate") -> bool:
        """Same property, same priority and overlapping windows"""
        return (
            self.rate_id != other.rate_id
            and self.property_id == other.property_id
            and self.priority == other.priority
            and self.start_date <= other.end_date
            and self.end_date >= other.start_date
        )

    def describe(self, currency: str = "IDR") -> str:
        if self.rate_type == RateType.PERCENTAGE:
            return f"+{self.rate_value.normalize():f}% of base rate"
        if self.rate_type == RateType.FIXED:
            return f"{Money(amount=int(self.rate_value), currency=currency).format()} per night"
        return f"{self.rate_value.normalize():f}x base rate"

    def nightly_rate(self, base_rate: Decimal) -> Decimal:
        """Nightly rate for a single day under this rule, before weekend premium"""
        if self.rate_type == RateType.PERCENTAGE:
            return base_rate * (1 + self.rate_value / 100)
        if self.rate_type == RateType.FIXED:
            return self.rate_value
        return base_rate * self.rate_value

    def to_applied(self) -> AppliedSeasonalRate:
        return AppliedSeasonalRate(
            rate_id=self.rate_id,
            name=self.name,
            rate_type=self.rate_type,
            rate_value=self.rate_value,
            priority=self.priority
        )

    # ==================== MODIFICATION METHODS ====================
    def deactivate(self) -> None:
        """Historical bookings may reference the rule, so it is never deleted"""
        self.is_active = False


class Property(BaseModel):
    """Property Aggregate Root (rate-relevant subset)"""

    property_id: UUID = Field(default_factory=uuid4)
    name: str

    # Pricing, in minor currency units
    base_rate: int = Field(ge=0)
    weekend_premium_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    cleaning_fee: int = Field(default=0, ge=0)
    extra_bed_rate: int = Field(default=0, ge=0)

    # Capacity
    capacity: int = Field(ge=1)
    capacity_max: int = Field(ge=1)

    # Minimum stay rules
    min_stay_weekday: int = Field(default=1, ge=1)
    min_stay_weekend: int = Field(default=1, ge=1)
    min_stay_peak: int = Field(default=1, ge=1)

    is_active: bool = True
    seasonal_rates: List[SeasonalRate] = []

    created_at: datetime = Field(default_factory=_utcnow)

    class Config:
        from_attributes = True

    @validator('capacity_max')
    def capacity_max_not_below_capacity(cls, v, values):
        if 'capacity' in values and v < values['capacity']:
            raise ValueError('capacity_max must be greater than or equal to capacity')
        return v

    def add_seasonal_rate(self, seasonal_rate: SeasonalRate) -> SeasonalRate:
        if seasonal_rate.property_id != self.property_id:
            raise ValueError("Seasonal rate belongs to a different property")
        self.seasonal_rates.append(seasonal_rate)
        return seasonal_rate

    def replace_seasonal_rate(self, seasonal_rate: SeasonalRate) -> SeasonalRate:
        for i, existing in enumerate(self.seasonal_rates):
            if existing.rate_id == seasonal_rate.rate_id:
                self.seasonal_rates[i] = seasonal_rate
                return seasonal_rate
        raise ValueError("Seasonal rate not found on property")

    def find_seasonal_rate(self, rate_id: UUID) -> Optional[SeasonalRate]:
        for seasonal_rate in self.seasonal_rates:
            if seasonal_rate.rate_id == rate_id:
                return seasonal_rate
        return None

    def required_minimum_stay(self, date_range: DateRange, policy: PricingPolicy) -> Tuple[int, str]:
        """Strictest minimum stay among the rules the stay falls under"""
        candidates = [(self.min_stay_weekday, "weekday stays")]
        if policy.is_weekend_stay(date_range):
            candidates.append((self.min_stay_weekend, "weekend stays"))
        if policy.is_peak_stay(date_range):
            candidates.append((self.min_stay_peak, "peak season stays"))
        return max(candidates, key=lambda c: c[0])


class Payment(BaseModel):
    """Child Entity for payments made against a booking"""

    payment_id: UUID = Field(default_factory=uuid4)
    payment_number: str
    amount: int = Field(gt=0)
    status: PaymentRecordStatus = PaymentRecordStatus.PENDING
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    verified_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    def is_verified(self) -> bool:
        return self.status == PaymentRecordStatus.VERIFIED


class Booking(BaseModel):
    """Booking Aggregate Root Entity"""

    # Identity
    booking_id: UUID = Field(default_factory=uuid4)
    booking_number: str

    # References to other aggregates
    property_id: UUID

    # Stay
    date_range: DateRange
    guest_count: int = Field(ge=1)

    # Amounts, in minor currency units
    base_amount: int = Field(ge=0)
    extra_bed_amount: int = Field(default=0, ge=0)
    service_amount: int = Field(default=0, ge=0)
    total_amount: int = Field(ge=0)
    dp_percentage: int
    dp_amount: int = Field(ge=0)
    remaining_amount: int = Field(ge=0)
    applied_seasonal_rate_id: Optional[UUID] = None

    # Status
    booking_status: BookingStatus = BookingStatus.PENDING_VERIFICATION
    payment_status: PaymentStatus = PaymentStatus.DP_PENDING

    # Collections (child entities)
    payments: List[Payment] = []

    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None

    # Metadata
    created_at: datetime = Field(default_factory=_utcnow)
    modified_at: datetime = Field(default_factory=_utcnow)
    created_by: str = "SYSTEM"
    version: int = 1

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        property_id: UUID,
        date_range: DateRange,
        guest_count: int,
        quote: RateCalculationResult,
        allocation: DepositAllocation,
        now: datetime,
        service_amount: int = 0,
        auto_confirm: bool = False,
        created_by: str = "SYSTEM"
    ) -> "Booking":
        """Create new booking from a rate quote and its deposit split"""
        total_amount = quote.total_amount + service_amount
        if allocation.total_amount != total_amount:
            raise ValueError("Deposit allocation does not match the booking total")
        if allocation.dp_amount + allocation.remaining_amount != total_amount:
            raise ValueError("Deposit and remaining amount must add up to the total")

        return Booking(
            booking_number=_generate_reference("BK", now),
            property_id=property_id,
            date_range=date_range,
            guest_count=guest_count,
            base_amount=quote.room_amount,
            extra_bed_amount=quote.extra_bed_amount,
            service_amount=service_amount,
            total_amount=total_amount,
            dp_percentage=allocation.dp_percentage,
            dp_amount=allocation.dp_amount,
            remaining_amount=allocation.remaining_amount,
            applied_seasonal_rate_id=(
                quote.applied_seasonal_rate.rate_id if quote.applied_seasonal_rate else None
            ),
            booking_status=(
                BookingStatus.CONFIRMED if auto_confirm else BookingStatus.PENDING_VERIFICATION
            ),
            # A zero total is settled from the start
            payment_status=next_payment_status(
                current=PaymentStatus.DP_PENDING,
                verified_total=0,
                dp_amount=allocation.dp_amount,
                total_amount=total_amount
            ),
            created_at=now,
            modified_at=now,
            created_by=created_by
        )

    # ==================== MODIFICATION METHODS ====================
    def reschedule(
        self,
        date_range: DateRange,
        guest_count: int,
        quote: RateCalculationResult,
        allocation: DepositAllocation,
        now: datetime
    ) -> None:
        """Move the stay and re-price it, keeping payments already made"""
        self._require_status(
            [BookingStatus.PENDING_VERIFICATION, BookingStatus.CONFIRMED], "reschedule"
        )

        total_amount = quote.total_amount + self.service_amount
        if allocation.total_amount != total_amount:
            raise ValueError("Deposit allocation does not match the booking total")

        verified = self.verified_total()
        if verified > total_amount:
            raise PaymentExceedsBalanceError(
                "Verified payments exceed the new booking total",
                field="total_amount",
                value=total_amount,
                constraint=f">= {verified}"
            )

        # Payment status is monotone
        if self.payment_status == PaymentStatus.FULLY_PAID and verified < total_amount:
            raise InvalidStatusTransitionError(
                "Cannot reschedule a fully paid booking to a more expensive stay",
                field="total_amount",
                value=total_amount,
                constraint=f"<= {verified}"
            )
        if self.payment_status == PaymentStatus.DP_RECEIVED and verified < allocation.dp_amount:
            raise InvalidStatusTransitionError(
                "Cannot reschedule a booking whose deposit is paid to a stay with a larger deposit",
                field="dp_amount",
                value=allocation.dp_amount,
                constraint=f"<= {verified}"
            )

        self.date_range = date_range
        self.guest_count = guest_count
        self.base_amount = quote.room_amount
        self.extra_bed_amount = quote.extra_bed_amount
        self.total_amount = total_amount
        self.dp_amount = allocation.dp_amount
        self.remaining_amount = allocation.remaining_amount
        self.applied_seasonal_rate_id = (
            quote.applied_seasonal_rate.rate_id if quote.applied_seasonal_rate else None
        )
        self.payment_status = next_payment_status(
            current=self.payment_status,
            verified_total=verified,
            dp_amount=self.dp_amount,
            total_amount=self.total_amount
        )
        self._touch(now)

    # ==================== PAYMENT METHODS ====================
    def submit_payment(self, amount: int, now: datetime, notes: Optional[str] = None) -> Payment:
        """Record a payment awaiting verification"""
        if self.booking_status in (BookingStatus.CANCELLED, BookingStatus.NO_SHOW):
            raise InvalidStatusTransitionError(
                f"Cannot accept payments for a booking with status {self.booking_status.value}",
                field="booking_status",
                value=self.booking_status.value,
                constraint="not cancelled or no_show"
            )

        outstanding = self.outstanding_amount()
        if amount > outstanding:
            raise PaymentExceedsBalanceError(
                "Payment amount exceeds the outstanding balance",
                field="amount",
                value=amount,
                constraint=f"<= {outstanding}"
            )

        payment = Payment(
            payment_number=_generate_reference("PAY", now),
            amount=amount,
            notes=notes,
            created_at=now
        )
        self.payments.append(payment)
        self._touch(now)
        return payment

    def verify_payment(self, payment_id: UUID, now: datetime) -> Payment:
        """Verify a pending payment and advance the payment status"""
        payment = self._find_pending_payment(payment_id)

        payment.status = PaymentRecordStatus.VERIFIED
        payment.verified_at = now

        self.payment_status = next_payment_status(
            current=self.payment_status,
            verified_total=self.verified_total(),
            dp_amount=self.dp_amount,
            total_amount=self.total_amount
        )
        self._touch(now)
        return payment

    def reject_payment(self, payment_id: UUID, now: datetime) -> Payment:
        payment = self._find_pending_payment(payment_id)
        payment.status = PaymentRecordStatus.REJECTED
        self._touch(now)
        return payment

    # ==================== STATE TRANSITION METHODS ====================
    def confirm(self, now: datetime) -> None:
        """Confirm booking after admin verification"""
        self._require_status([BookingStatus.PENDING_VERIFICATION], "confirm")
        self.booking_status = BookingStatus.CONFIRMED
        self._touch(now)

    def check_in(self, now: datetime) -> None:
        """Mark guest as checked in"""
        self._require_status([BookingStatus.CONFIRMED], "check in")

        if self.payment_status != PaymentStatus.FULLY_PAID:
            raise InvalidStatusTransitionError(
                "Booking must be fully paid before check-in",
                field="payment_status",
                value=self.payment_status.value,
                constraint=PaymentStatus.FULLY_PAID.value
            )

        if self.date_range.start > now.date():
            raise InvalidStatusTransitionError(
                "Cannot check in before check-in date",
                field="check_in",
                value=self.date_range.start.isoformat(),
                constraint=f"<= {now.date().isoformat()}"
            )

        self.booking_status = BookingStatus.CHECKED_IN
        self._touch(now)

    def check_out(self, now: datetime) -> None:
        """Process guest check-out"""
        self._require_status([BookingStatus.CHECKED_IN], "check out")
        self.booking_status = BookingStatus.CHECKED_OUT
        self._touch(now)

    def cancel(self, reason: str, now: datetime) -> None:
        """Cancel booking; refunds are a separate explicit action"""
        self._require_status(
            [BookingStatus.PENDING_VERIFICATION, BookingStatus.CONFIRMED], "cancel"
        )
        self.booking_status = BookingStatus.CANCELLED
        self.cancellation_reason = reason
        self.cancelled_at = now
        self._touch(now)

    def mark_no_show(self, now: datetime) -> None:
        """Mark guest as no-show"""
        self._require_status(
            [BookingStatus.PENDING_VERIFICATION, BookingStatus.CONFIRMED], "mark as no-show"
        )
        self.booking_status = BookingStatus.NO_SHOW
        self._touch(now)

    def refund(self, now: datetime, currency: str = "IDR") -> Money:
        """Refund every verified payment of a cancelled or no-show booking"""
        self._require_status([BookingStatus.CANCELLED, BookingStatus.NO_SHOW], "refund")

        if self.payment_status == PaymentStatus.REFUNDED:
            raise InvalidStatusTransitionError(
                "Booking has already been refunded",
                field="payment_status",
                value=self.payment_status.value,
                constraint=f"not {PaymentStatus.REFUNDED.value}"
            )

        refunded = self.verified_total()
        if refunded == 0:
            raise InvalidStatusTransitionError(
                "Booking has no verified payments to refund",
                field="payments",
                value=0,
                constraint="> 0"
            )

        self.payment_status = PaymentStatus.REFUNDED
        self._touch(now)
        return Money(amount=refunded, currency=currency)

    # ==================== QUERY METHODS ====================
    def verified_total(self) -> int:
        return sum(p.amount for p in self.payments if p.is_verified())

    def pending_total(self) -> int:
        return sum(p.amount for p in self.payments if p.status == PaymentRecordStatus.PENDING)

    def outstanding_amount(self) -> int:
        """Amount still payable, counting payments awaiting verification"""
        return max(0, self.total_amount - self.verified_total() - self.pending_total())

    def get_nights(self) -> int:
        return self.date_range.nights()

    def find_payment(self, payment_id: UUID) -> Optional[Payment]:
        for payment in self.payments:
            if payment.payment_id == payment_id:
                return payment
        return None

    # ==================== PRIVATE METHODS ====================
    def _find_pending_payment(self, payment_id: UUID) -> Payment:
        payment = self.find_payment(payment_id)
        if payment is None:
            raise PaymentNotFoundError(
                "Payment not found", field="payment_id", value=payment_id
            )
        if payment.status != PaymentRecordStatus.PENDING:
            raise InvalidStatusTransitionError(
                f"Payment is already {payment.status.value}",
                field="payment_status",
                value=payment.status.value,
                constraint=PaymentRecordStatus.PENDING.value
            )
        return payment

    def _require_status(self, allowed: List[BookingStatus], action: str) -> None:
        if self.booking_status not in allowed:
            raise InvalidStatusTransitionError(
                f"Cannot {action} booking with status {self.booking_status.value}",
                field="booking_status",
                value=self.booking_status.value,
                constraint="one of " + ", ".join(s.value for s in allowed)
            )

    def _touch(self, now: datetime) -> None:
        self.modified_at = now
        self.version += 1


class BookingEvent(BaseModel):
    """Append-only audit entry written after a successful transition"""

    event_id: UUID = Field(default_factory=uuid4)
    booking_id: UUID
    step: str
    booking_status: BookingStatus
    payment_status: PaymentStatus
    notes: Optional[str] = None
    occurred_at: datetime

    class Config:
        frozen = True
