"""Seasonal rate resolution"""
from datetime import date
from typing import Iterable, List, Optional

from domain.entities import SeasonalRate
from domain.errors import MinimumStayNotMetError
from domain.value_objects import DateRange, PricingPolicy


class SeasonalRateSet:
    """Active seasonal rules of one property, in resolution order.

    Rules are ordered by priority (highest first) and then by start date
    (earliest first). When several rules match a stay the first one wins;
    matching rules are never stacked.
    """

    def __init__(self, seasonal_rates: Iterable[SeasonalRate]):
        self._rates: List[SeasonalRate] = sorted(
            (r for r in seasonal_rates if r.is_active),
            key=lambda r: (-r.priority, r.start_date)
        )

    def __len__(self) -> int:
        return len(self._rates)

    def __iter__(self):
        return iter(self._rates)

    def find_applicable(self, date_range: DateRange, is_weekend_stay: bool) -> List[SeasonalRate]:
        """All rules matching the stay, in resolution order"""
        return [r for r in self._rates if r.matches(date_range, is_weekend_stay)]

    def resolve(self, date_range: DateRange, is_weekend_stay: bool) -> Optional[SeasonalRate]:
        """The winning rule for the stay, or None to fall back to the base rate.

        Raises MinimumStayNotMetError when the stay is shorter than the
        winning rule's minimum stay.
        """
        applicable = self.find_applicable(date_range, is_weekend_stay)
        if not applicable:
            return None

        winner = applicable[0]
        nights = date_range.nights()
        if nights < winner.min_stay_nights:
            raise MinimumStayNotMetError(
                required_nights=winner.min_stay_nights,
                actual_nights=nights,
                rule=f"seasonal rate '{winner.name}'"
            )
        return winner

    def effective_rate_for(self, day: date, policy: PricingPolicy) -> Optional[SeasonalRate]:
        """Highest priority rule covering a single day, for rate calendars"""
        for seasonal_rate in self._rates:
            if seasonal_rate.covers(day, policy):
                return seasonal_rate
        return None

    def conflicts(self, candidate: SeasonalRate) -> List[SeasonalRate]:
        """Active rules sharing the candidate's priority and overlapping its window"""
        return [r for r in self._rates if candidate.conflicts_with(r)]
