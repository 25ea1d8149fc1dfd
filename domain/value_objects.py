"""Domain Value Objects"""
from pydantic import BaseModel, Field, validator
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from uuid import UUID
from typing import FrozenSet, Iterator, List, Optional, Tuple

from domain.enums import RateType, WeekendStayRule
from domain.errors import InvalidRangeError


def day_index(day: date) -> int:
    """Weekday index with 0 = Sunday, 6 = Saturday"""
    return (day.weekday() + 1) % 7


def round_money(value: Decimal) -> int:
    """Round a Decimal amount to whole minor units, half up"""
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class DateRange(BaseModel):
    """Half-open stay interval [start, end)"""
    start: date
    end: date

    @validator('end')
    def end_after_start(cls, v, values):
        if 'start' in values and v <= values['start']:
            raise InvalidRangeError(
                'End date must be after start date',
                field='end',
                value=v.isoformat(),
                constraint=f"> {values['start'].isoformat()}"
            )
        return v

    def nights(self) -> int:
        """Number of nights in the stay"""
        return (self.end - self.start).days

    def overlaps(self, other: "DateRange") -> bool:
        """Checkout on day N and check-in on day N do not overlap"""
        return self.start < other.end and other.start < self.end

    def contains(self, day: date) -> bool:
        return self.start <= day < self.end

    def each_night(self) -> Iterator[date]:
        """Yield the date of every night from start up to, not including, end"""
        current = self.start
        while current < self.end:
            yield current
            current += timedelta(days=1)

    class Config:
        frozen = True


class Money(BaseModel):
    """Value Object for monetary amounts in minor units"""
    amount: int = Field(ge=0)
    currency: str = "IDR"

    def format(self) -> str:
        return f"{self.currency} {self.amount:,}"

    class Config:
        frozen = True


class PricingPolicy(BaseModel):
    """Business rules that vary per deployment, passed in explicitly"""
    weekend_days: FrozenSet[int] = frozenset({5, 6})
    weekend_stay_rule: WeekendStayRule = WeekendStayRule.ANY_NIGHT
    peak_months: FrozenSet[int] = frozenset({7, 8, 12})
    allowed_dp_percentages: Tuple[int, ...] = (30, 50, 70, 100)
    tax_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    currency: str = "IDR"
    max_stay_nights: int = Field(default=365, ge=1)

    @validator('weekend_days')
    def weekend_days_are_weekdays(cls, v):
        if any(d < 0 or d > 6 for d in v):
            raise ValueError('weekend_days must be weekday indices 0-6 (0 = Sunday)')
        return v

    @validator('peak_months')
    def peak_months_are_months(cls, v):
        if any(m < 1 or m > 12 for m in v):
            raise ValueError('peak_months must be between 1 and 12')
        return v

    def is_weekend_night(self, night: date) -> bool:
        return day_index(night) in self.weekend_days

    def weekend_nights(self, date_range: DateRange) -> int:
        return sum(1 for night in date_range.each_night() if self.is_weekend_night(night))

    def is_weekend_stay(self, date_range: DateRange) -> bool:
        weekend_nights = self.weekend_nights(date_range)
        if self.weekend_stay_rule == WeekendStayRule.MAJORITY:
            return weekend_nights * 2 > date_range.nights()
        return weekend_nights > 0

    def is_peak_stay(self, date_range: DateRange) -> bool:
        return any(night.month in self.peak_months for night in date_range.each_night())

    class Config:
        frozen = True


class NightlyCharge(BaseModel):
    """One night of a rate calculation"""
    night: date
    nightly_rate: int
    is_weekend: bool
    weekend_premium: int

    class Config:
        frozen = True


class AppliedSeasonalRate(BaseModel):
    """Reference to the seasonal rule that won resolution"""
    rate_id: UUID
    name: str
    rate_type: RateType
    rate_value: Decimal
    priority: int

    class Config:
        frozen = True


class RateCalculationResult(BaseModel):
    """Full price breakdown for a stay, never persisted"""
    nights: int
    weekday_nights: int
    weekend_nights: int
    base_amount: int
    weekend_premium_amount: int
    seasonal_adjustment_amount: int
    room_amount: int
    extra_beds: int
    extra_bed_amount: int
    cleaning_fee: int
    tax_amount: int = 0
    total_amount: int
    applied_seasonal_rate: Optional[AppliedSeasonalRate] = None
    nightly: List[NightlyCharge] = []

    def per_night_average(self) -> int:
        return round_money(Decimal(self.total_amount) / self.nights)

    def formatted_total(self, currency: str = "IDR") -> str:
        return Money(amount=self.total_amount, currency=currency).format()

    class Config:
        frozen = True


class DepositAllocation(BaseModel):
    """Split of a booking total into due-now and due-later amounts"""
    total_amount: int = Field(ge=0)
    dp_percentage: int
    dp_amount: int = Field(ge=0)
    remaining_amount: int = Field(ge=0)

    class Config:
        frozen = True


class RateCalendarDay(BaseModel):
    """Effective nightly price of one calendar day, for admin calendars"""
    day: date
    base_rate: int
    nightly_rate: int
    is_weekend: bool
    weekend_premium: int
    seasonal_rate_id: Optional[UUID] = None
    seasonal_rate_name: Optional[str] = None

    class Config:
        frozen = True
