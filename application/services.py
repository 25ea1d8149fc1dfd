"""Application Services - Business use cases"""
import asyncio
import logging
from collections import defaultdict
from uuid import UUID
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

from domain.repositories import PropertyRepository, BookingRepository, BookingEventRepository
from domain.entities import Property, SeasonalRate, Booking, BookingEvent, Payment
from domain.errors import (
    PropertyNotFoundError, BookingNotFoundError, SeasonalRateNotFoundError, PropertyUnavailableError,
    InvalidRangeError
)
from domain.value_objects import (
    DateRange, Money, PricingPolicy, RateCalculationResult, DepositAllocation, RateCalendarDay
)
from domain.pricing import RateCalculator
from domain.availability import AvailabilityChecker
from domain.deposits import DepositAllocator
from domain.seasonal_rates import SeasonalRateSet

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def _load_property(repository: PropertyRepository, property_id: UUID) -> Property:
    property = await repository.find_by_id(property_id)
    if not property:
        raise PropertyNotFoundError(
            "Property not found", field="property_id", value=property_id
        )
    return property


class PricingService:
    """Rate quotes, availability and deposit previews"""

    def __init__(self,
                 property_repo: PropertyRepository,
                 booking_repo: BookingRepository,
                 policy: Optional[PricingPolicy] = None,
                 clock: Callable[[], datetime] = _utcnow):
        self.property_repo = property_repo
        self.booking_repo = booking_repo
        self.policy = policy or PricingPolicy()
        self.clock = clock
        self.calculator = RateCalculator(self.policy)
        self.checker = AvailabilityChecker()
        self.allocator = DepositAllocator(self.policy.allowed_dp_percentages)

    async def calculate_rate(
        self,
        property_id: UUID,
        check_in: date,
        check_out: date,
        guest_count: int
    ) -> RateCalculationResult:
        """Price a stay without booking it"""
        property = await _load_property(self.property_repo, property_id)
        date_range = DateRange(start=check_in, end=check_out)
        return self.calculator.calculate(property, date_range, guest_count)

    async def check_availability(
        self,
        property_id: UUID,
        check_in: date,
        check_out: date,
        excluding_booking_id: Optional[UUID] = None
    ) -> bool:
        """Check if a property is free for a stay"""
        property = await _load_property(self.property_repo, property_id)
        if not property.is_active:
            return False

        date_range = DateRange(start=check_in, end=check_out)
        bookings = await self.booking_repo.find_by_property_id(property_id)
        return self.checker.is_available(bookings, date_range, excluding_booking_id)

    async def get_booked_dates(
        self,
        property_id: UUID,
        check_in: date,
        check_out: date,
        excluding_booking_id: Optional[UUID] = None
    ) -> List[date]:
        """Blocked nights of a property inside a date range"""
        await _load_property(self.property_repo, property_id)
        date_range = DateRange(start=check_in, end=check_out)
        bookings = await self.booking_repo.find_by_property_id(property_id)
        return self.checker.booked_dates(bookings, date_range, excluding_booking_id)

    async def next_available_stay(
        self,
        property_id: UUID,
        nights: int,
        max_days: int = 90,
        from_day: Optional[date] = None
    ) -> Optional[DateRange]:
        """Earliest free stay of the given length, searching from today"""
        property = await _load_property(self.property_repo, property_id)
        if not property.is_active:
            return None

        from_day = from_day or self.clock().date()
        bookings = await self.booking_repo.find_by_property_id(property_id)
        return self.checker.next_available(bookings, from_day, nights, max_days)

    def allocate_deposit(self, total_amount: int, dp_percentage: int) -> DepositAllocation:
        """Split a total into deposit and remaining balance"""
        return self.allocator.allocate(total_amount, dp_percentage)

    async def get_rate_calendar(
        self,
        property_id: UUID,
        start: date,
        days: int = 30
    ) -> List[RateCalendarDay]:
        """Effective nightly rates for an admin calendar"""
        property = await _load_property(self.property_repo, property_id)
        return self.calculator.rate_calendar(property, start, days)


class RateService:
    """Service for property rates and seasonal rate administration"""

    def __init__(self, property_repo: PropertyRepository, policy: Optional[PricingPolicy] = None):
        self.property_repo = property_repo
        self.policy = policy or PricingPolicy()

    async def register_property(
        self,
        name: str,
        base_rate: int,
        capacity: int,
        capacity_max: int,
        weekend_premium_percent: Decimal = Decimal("0"),
        cleaning_fee: int = 0,
        extra_bed_rate: int = 0,
        min_stay_weekday: int = 1,
        min_stay_weekend: int = 1,
        min_stay_peak: int = 1
    ) -> Property:
        """Register a property with its rate card"""
        property = Property(
            name=name,
            base_rate=base_rate,
            capacity=capacity,
            capacity_max=capacity_max,
            weekend_premium_percent=weekend_premium_percent,
            cleaning_fee=cleaning_fee,
            extra_bed_rate=extra_bed_rate,
            min_stay_weekday=min_stay_weekday,
            min_stay_weekend=min_stay_weekend,
            min_stay_peak=min_stay_peak
        )
        logger.info("Registered property %s (%s)", property.property_id, property.name)
        return await self.property_repo.save(property)

    async def get_property(self, property_id: UUID) -> Optional[Property]:
        """Get property by ID"""
        return await self.property_repo.find_by_id(property_id)

    async def get_all_properties(self) -> List[Property]:
        """Get all properties"""
        return await self.property_repo.find_all()

    async def update_rates(self, property_id: UUID, **changes) -> Property:
        """Change base rate, weekend premium, extra bed rate or cleaning fee"""
        property = await _load_property(self.property_repo, property_id)
        data = property.model_dump()
        data.update({k: v for k, v in changes.items() if v is not None})
        updated = Property(**data)
        return await self.property_repo.update(updated)

    async def deactivate_property(self, property_id: UUID) -> Property:
        property = await _load_property(self.property_repo, property_id)
        property.is_active = False
        return await self.property_repo.update(property)

    async def add_seasonal_rate(
        self,
        property_id: UUID,
        **fields
    ) -> Tuple[SeasonalRate, List[SeasonalRate]]:
        """Add a seasonal rule; returns it with any same-priority overlaps"""
        property = await _load_property(self.property_repo, property_id)
        seasonal_rate = SeasonalRate(property_id=property_id, **fields)

        conflicts = SeasonalRateSet(property.seasonal_rates).conflicts(seasonal_rate)
        self._log_conflicts(seasonal_rate, conflicts)

        property.add_seasonal_rate(seasonal_rate)
        await self.property_repo.update(property)
        return seasonal_rate, conflicts

    async def update_seasonal_rate(
        self,
        property_id: UUID,
        rate_id: UUID,
        **changes
    ) -> Tuple[SeasonalRate, List[SeasonalRate]]:
        """Edit a seasonal rule; every field is re-validated"""
        property = await _load_property(self.property_repo, property_id)
        existing = self._find_rate(property, rate_id)

        data = existing.model_dump()
        data.update({k: v for k, v in changes.items() if v is not None})
        seasonal_rate = SeasonalRate(**data)

        conflicts = SeasonalRateSet(property.seasonal_rates).conflicts(seasonal_rate)
        self._log_conflicts(seasonal_rate, conflicts)

        property.replace_seasonal_rate(seasonal_rate)
        await self.property_repo.update(property)
        return seasonal_rate, conflicts

    async def deactivate_seasonal_rate(self, property_id: UUID, rate_id: UUID) -> SeasonalRate:
        """Seasonal rules are deactivated, never deleted"""
        property = await _load_property(self.property_repo, property_id)
        seasonal_rate = self._find_rate(property, rate_id)
        seasonal_rate.deactivate()
        await self.property_repo.update(property)
        logger.info("Deactivated seasonal rate %s on property %s", rate_id, property_id)
        return seasonal_rate

    async def list_seasonal_rates(self, property_id: UUID, active_only: bool = False) -> List[SeasonalRate]:
        """Seasonal rules in resolution order, inactive ones last"""
        property = await _load_property(self.property_repo, property_id)
        active = list(SeasonalRateSet(property.seasonal_rates))
        if active_only:
            return active
        inactive = [r for r in property.seasonal_rates if not r.is_active]
        return active + inactive

    @staticmethod
    def _find_rate(property: Property, rate_id: UUID) -> SeasonalRate:
        seasonal_rate = property.find_seasonal_rate(rate_id)
        if not seasonal_rate:
            raise SeasonalRateNotFoundError(
                "Seasonal rate not found", field="rate_id", value=rate_id
            )
        return seasonal_rate

    @staticmethod
    def _log_conflicts(seasonal_rate: SeasonalRate, conflicts: List[SeasonalRate]) -> None:
        for other in conflicts:
            logger.warning(
                "Seasonal rate '%s' overlaps '%s' at the same priority %d; earliest start date wins",
                seasonal_rate.name, other.name, seasonal_rate.priority
            )


class BookingService:
    """Service for Booking business use cases"""

    def __init__(self,
                 property_repo: PropertyRepository,
                 booking_repo: BookingRepository,
                 event_repo: BookingEventRepository,
                 policy: Optional[PricingPolicy] = None,
                 default_dp_percentage: int = 30,
                 clock: Callable[[], datetime] = _utcnow):
        self.property_repo = property_repo
        self.booking_repo = booking_repo
        self.event_repo = event_repo
        self.policy = policy or PricingPolicy()
        self.default_dp_percentage = default_dp_percentage
        self.clock = clock
        self.calculator = RateCalculator(self.policy)
        self.checker = AvailabilityChecker()
        self.allocator = DepositAllocator(self.policy.allowed_dp_percentages)
        self._property_locks: Dict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def create_booking(
        self,
        property_id: UUID,
        check_in: date,
        check_out: date,
        guest_count: int,
        dp_percentage: Optional[int] = None,
        service_amount: int = 0,
        auto_confirm: bool = False,
        created_by: str = "SYSTEM",
        notes: Optional[str] = None
    ) -> Booking:
        """Create new booking: availability gate, rate, deposit split"""
        property = await _load_property(self.property_repo, property_id)
        date_range = DateRange(start=check_in, end=check_out)
        self._ensure_not_in_past(date_range)
        dp_percentage = dp_percentage if dp_percentage is not None else self.default_dp_percentage

        quote = self.calculator.calculate(property, date_range, guest_count)
        allocation = self.allocator.allocate(quote.total_amount + service_amount, dp_percentage)

        # Availability is checked and the booking stored under one lock per property
        async with self._property_locks[property_id]:
            await self._ensure_available(property, date_range)

            booking = Booking.create(
                property_id=property_id,
                date_range=date_range,
                guest_count=guest_count,
                quote=quote,
                allocation=allocation,
                now=self.clock(),
                service_amount=service_amount,
                auto_confirm=auto_confirm,
                created_by=created_by
            )
            booking = await self.booking_repo.save(booking)

        logger.info(
            "Created booking %s for property %s (%s to %s), total %d, DP %d%%",
            booking.booking_number, property_id, check_in, check_out,
            booking.total_amount, booking.dp_percentage
        )
        await self._record(booking, "created", notes)
        return booking

    async def reschedule_booking(
        self,
        booking_id: UUID,
        check_in: date,
        check_out: date,
        guest_count: Optional[int] = None
    ) -> Booking:
        """Move a booking to new dates, ignoring its own current stay"""
        booking = await self._load_booking(booking_id)
        property = await _load_property(self.property_repo, booking.property_id)
        date_range = DateRange(start=check_in, end=check_out)
        self._ensure_not_in_past(date_range)
        guest_count = guest_count if guest_count is not None else booking.guest_count

        quote = self.calculator.calculate(property, date_range, guest_count)
        allocation = self.allocator.allocate(
            quote.total_amount + booking.service_amount, booking.dp_percentage
        )

        async with self._property_locks[property.property_id]:
            await self._ensure_available(property, date_range, excluding_booking_id=booking_id)
            booking.reschedule(date_range, guest_count, quote, allocation, self.clock())
            booking = await self.booking_repo.update(booking)

        await self._record(booking, "rescheduled", f"{check_in} to {check_out}")
        return booking

    async def get_booking(self, booking_id: UUID) -> Optional[Booking]:
        """Get booking by ID"""
        return await self.booking_repo.find_by_id(booking_id)

    async def get_booking_by_number(self, booking_number: str) -> Optional[Booking]:
        """Get booking by booking number"""
        return await self.booking_repo.find_by_booking_number(booking_number)

    async def get_property_bookings(self, property_id: UUID) -> List[Booking]:
        """Get all bookings of a property ordered by check-in"""
        bookings = await self.booking_repo.find_by_property_id(property_id)
        return sorted(bookings, key=lambda b: b.date_range.start)

    async def get_events(self, booking_id: UUID) -> List[BookingEvent]:
        """Audit trail of a booking"""
        return await self.event_repo.find_by_booking_id(booking_id)

    async def submit_payment(
        self,
        booking_id: UUID,
        amount: int,
        notes: Optional[str] = None
    ) -> Payment:
        """Record a payment awaiting verification"""
        booking = await self._load_booking(booking_id)
        payment = booking.submit_payment(amount, self.clock(), notes)
        await self.booking_repo.update(booking)
        await self._record(booking, "payment_submitted", f"Payment submitted: {payment.payment_number}")
        return payment

    async def verify_payment(self, booking_id: UUID, payment_id: UUID) -> Booking:
        """Verify a payment and advance the booking's payment status"""
        booking = await self._load_booking(booking_id)
        previous_status = booking.payment_status
        payment = booking.verify_payment(payment_id, self.clock())
        booking = await self.booking_repo.update(booking)

        logger.info(
            "Verified payment %s on booking %s: %s -> %s",
            payment.payment_number, booking.booking_number,
            previous_status.value, booking.payment_status.value
        )
        await self._record(booking, "payment_verified", f"Payment verified: {payment.payment_number}")
        return booking

    async def reject_payment(self, booking_id: UUID, payment_id: UUID) -> Booking:
        booking = await self._load_booking(booking_id)
        payment = booking.reject_payment(payment_id, self.clock())
        booking = await self.booking_repo.update(booking)
        logger.warning("Rejected payment %s on booking %s", payment.payment_number, booking.booking_number)
        await self._record(booking, "payment_rejected", f"Payment rejected: {payment.payment_number}")
        return booking

    async def confirm_booking(self, booking_id: UUID) -> Booking:
        """Confirm booking after verification"""
        booking = await self._load_booking(booking_id)
        booking.confirm(self.clock())
        return await self._save_transition(booking, "confirmed")

    async def check_in(self, booking_id: UUID) -> Booking:
        """Check in guest"""
        booking = await self._load_booking(booking_id)
        booking.check_in(self.clock())
        return await self._save_transition(booking, "checked_in")

    async def check_out(self, booking_id: UUID) -> Booking:
        """Check out guest"""
        booking = await self._load_booking(booking_id)
        booking.check_out(self.clock())
        return await self._save_transition(booking, "checked_out")

    async def cancel_booking(self, booking_id: UUID, reason: str = "Guest requested cancellation") -> Booking:
        """Cancel booking, releasing its dates"""
        booking = await self._load_booking(booking_id)
        booking.cancel(reason, self.clock())
        return await self._save_transition(booking, "cancelled", reason)

    async def mark_no_show(self, booking_id: UUID) -> Booking:
        """Mark booking as no-show, releasing its dates"""
        booking = await self._load_booking(booking_id)
        booking.mark_no_show(self.clock())
        return await self._save_transition(booking, "no_show")

    async def refund_booking(self, booking_id: UUID) -> Money:
        """Refund verified payments of a cancelled or no-show booking"""
        booking = await self._load_booking(booking_id)
        refund = booking.refund(self.clock(), self.policy.currency)
        await self._save_transition(booking, "refunded", f"Refunded {refund.format()}")
        return refund

    # ==================== PRIVATE METHODS ====================
    def _ensure_not_in_past(self, date_range: DateRange) -> None:
        today = self.clock().date()
        if date_range.start < today:
            raise InvalidRangeError(
                "Check-in date cannot be in the past",
                field="check_in",
                value=date_range.start.isoformat(),
                constraint=f">= {today.isoformat()}"
            )

    async def _ensure_available(
        self,
        property: Property,
        date_range: DateRange,
        excluding_booking_id: Optional[UUID] = None
    ) -> None:
        if not property.is_active:
            raise PropertyUnavailableError(
                "Property is not active", field="property_id", value=property.property_id
            )

        bookings = await self.booking_repo.find_by_property_id(property.property_id)
        if not self.checker.is_available(bookings, date_range, excluding_booking_id):
            booked = self.checker.booked_dates(bookings, date_range, excluding_booking_id)
            logger.warning(
                "Rejected booking for property %s: %s to %s overlaps an existing booking",
                property.property_id, date_range.start, date_range.end
            )
            raise PropertyUnavailableError(
                "Property is not available for the selected dates",
                field="check_in",
                value=", ".join(d.isoformat() for d in booked),
                constraint="no overlap with existing bookings"
            )

    async def _load_booking(self, booking_id: UUID) -> Booking:
        booking = await self.booking_repo.find_by_id(booking_id)
        if not booking:
            raise BookingNotFoundError("Booking not found", field="booking_id", value=booking_id)
        return booking

    async def _save_transition(self, booking: Booking, step: str, notes: Optional[str] = None) -> Booking:
        booking = await self.booking_repo.update(booking)
        logger.info(
            "Booking %s %s (status %s, payment %s)",
            booking.booking_number, step, booking.booking_status.value, booking.payment_status.value
        )
        await self._record(booking, step, notes)
        return booking

    async def _record(self, booking: Booking, step: str, notes: Optional[str] = None) -> BookingEvent:
        event = BookingEvent(
            booking_id=booking.booking_id,
            step=step,
            booking_status=booking.booking_status,
            payment_status=booking.payment_status,
            notes=notes,
            occurred_at=self.clock()
        )
        return await self.event_repo.append(event)
