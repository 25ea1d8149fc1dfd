"""Rate calculation

Calculation Flow:
1. Validate guest count and minimum stay
2. Nightly rate = base rate, or the fixed seasonal rate when one wins
3. Weekend premium layered per weekend night on top of the nightly rate
4. Percentage / multiplier seasonal rules adjust the accumulated amount
5. + extra beds + cleaning fee (+ tax when configured) = total
"""
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from domain.entities import Property, SeasonalRate
from domain.enums import RateType
from domain.errors import (
    InvalidGuestCountError, InvalidRangeError, MinimumStayNotMetError, ZeroNightStayError
)
from domain.seasonal_rates import SeasonalRateSet
from domain.value_objects import (
    DateRange, NightlyCharge, PricingPolicy, RateCalculationResult, RateCalendarDay, round_money
)


class RateCalculator:
    """Pure price calculation for a property stay.

    Holds nothing but the pricing policy, so the same calculator can be
    shared freely; identical inputs always produce an identical result.
    """

    def __init__(self, policy: Optional[PricingPolicy] = None):
        self.policy = policy or PricingPolicy()

    def calculate(
        self,
        property: Property,
        date_range: DateRange,
        guest_count: int
    ) -> RateCalculationResult:
        self._validate_guest_count(property, guest_count)

        nights = date_range.nights()
        if nights == 0:
            raise ZeroNightStayError(
                "Stay must be at least one night",
                field="nights",
                value=nights,
                constraint=">= 1"
            )
        if nights > self.policy.max_stay_nights:
            raise InvalidRangeError(
                f"Stay cannot exceed {self.policy.max_stay_nights} nights",
                field="nights",
                value=nights,
                constraint=f"<= {self.policy.max_stay_nights}"
            )

        self._validate_minimum_stay(property, date_range)

        is_weekend_stay = self.policy.is_weekend_stay(date_range)
        seasonal_rate = SeasonalRateSet(property.seasonal_rates).resolve(date_range, is_weekend_stay)

        base_rate = Decimal(property.base_rate)
        nightly_rate = base_rate
        if seasonal_rate is not None and seasonal_rate.rate_type == RateType.FIXED:
            nightly_rate = seasonal_rate.rate_value

        premium_ratio = Decimal(property.weekend_premium_percent) / 100

        # Night by night accumulation
        nightly = []
        weekend_nights = 0
        weekend_premium = Decimal("0")
        for night in date_range.each_night():
            is_weekend = self.policy.is_weekend_night(night)
            premium = nightly_rate * premium_ratio if is_weekend else Decimal("0")
            if is_weekend:
                weekend_nights += 1
            weekend_premium += premium
            nightly.append(NightlyCharge(
                night=night,
                nightly_rate=round_money(nightly_rate),
                is_weekend=is_weekend,
                weekend_premium=round_money(premium)
            ))

        accumulated = nightly_rate * nights + weekend_premium
        seasonal_adjustment = self._seasonal_adjustment(
            seasonal_rate, base_rate, nightly_rate, nights, accumulated
        )

        base_amount = property.base_rate * nights
        weekend_premium_amount = round_money(weekend_premium)
        seasonal_adjustment_amount = round_money(seasonal_adjustment)
        room_amount = base_amount + weekend_premium_amount + seasonal_adjustment_amount

        extra_beds = max(0, guest_count - property.capacity)
        extra_bed_amount = extra_beds * property.extra_bed_rate * nights

        subtotal = room_amount + extra_bed_amount + property.cleaning_fee
        tax_amount = round_money(Decimal(subtotal) * self.policy.tax_percent / 100)

        return RateCalculationResult(
            nights=nights,
            weekday_nights=nights - weekend_nights,
            weekend_nights=weekend_nights,
            base_amount=base_amount,
            weekend_premium_amount=weekend_premium_amount,
            seasonal_adjustment_amount=seasonal_adjustment_amount,
            room_amount=room_amount,
            extra_beds=extra_beds,
            extra_bed_amount=extra_bed_amount,
            cleaning_fee=property.cleaning_fee,
            tax_amount=tax_amount,
            total_amount=subtotal + tax_amount,
            applied_seasonal_rate=seasonal_rate.to_applied() if seasonal_rate else None,
            nightly=nightly
        )

    def rate_calendar(self, property: Property, start: date, days: int) -> List[RateCalendarDay]:
        """Effective nightly rate per day, resolved day by day"""
        rates = SeasonalRateSet(property.seasonal_rates)
        base_rate = Decimal(property.base_rate)
        premium_ratio = Decimal(property.weekend_premium_percent) / 100

        calendar = []
        for offset in range(days):
            day = start + timedelta(days=offset)
            seasonal_rate = rates.effective_rate_for(day, self.policy)
            rate = seasonal_rate.nightly_rate(base_rate) if seasonal_rate else base_rate
            is_weekend = self.policy.is_weekend_night(day)
            premium = rate * premium_ratio if is_weekend else Decimal("0")
            calendar.append(RateCalendarDay(
                day=day,
                base_rate=property.base_rate,
                nightly_rate=round_money(rate + premium),
                is_weekend=is_weekend,
                weekend_premium=round_money(premium),
                seasonal_rate_id=seasonal_rate.rate_id if seasonal_rate else None,
                seasonal_rate_name=seasonal_rate.name if seasonal_rate else None
            ))
        return calendar

    @staticmethod
    def _seasonal_adjustment(
        seasonal_rate: Optional[SeasonalRate],
        base_rate: Decimal,
        nightly_rate: Decimal,
        nights: int,
        accumulated: Decimal
    ) -> Decimal:
        if seasonal_rate is None:
            return Decimal("0")

        if seasonal_rate.rate_type == RateType.FIXED:
            # Weekend premium is already computed on the fixed rate
            return (nightly_rate - base_rate) * nights

        if seasonal_rate.rate_type == RateType.PERCENTAGE:
            return accumulated * seasonal_rate.rate_value / 100

        return accumulated * (seasonal_rate.rate_value - 1)

    @staticmethod
    def _validate_guest_count(property: Property, guest_count: int) -> None:
        if guest_count < 1 or guest_count > property.capacity_max:
            raise InvalidGuestCountError(
                f"Guest count must be between 1 and {property.capacity_max}",
                field="guest_count",
                value=guest_count,
                constraint=f"1..{property.capacity_max}"
            )

    def _validate_minimum_stay(self, property: Property, date_range: DateRange) -> None:
        required, rule = property.required_minimum_stay(date_range, self.policy)
        if date_range.nights() < required:
            raise MinimumStayNotMetError(
                required_nights=required,
                actual_nights=date_range.nights(),
                rule=rule
            )
