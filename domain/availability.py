"""Date-overlap availability checks"""
from datetime import date, timedelta
from typing import Iterable, List, Optional
from uuid import UUID

from domain.entities import Booking
from domain.enums import NON_BLOCKING_STATUSES
from domain.errors import InvalidRangeError
from domain.value_objects import DateRange


class AvailabilityChecker:
    """Decide whether a stay collides with a property's existing bookings.

    Cancelled and no-show bookings never block. Stays that only touch
    (one checks out the day the other checks in) do not collide.

    The check only sees the bookings it is given; two concurrent callers can
    both pass it, so writers must re-check when they commit.
    """

    def conflicting_bookings(
        self,
        bookings: Iterable[Booking],
        date_range: DateRange,
        excluding_booking_id: Optional[UUID] = None
    ) -> List[Booking]:
        return [
            booking for booking in bookings
            if booking.booking_id != excluding_booking_id
            and booking.booking_status not in NON_BLOCKING_STATUSES
            and booking.date_range.overlaps(date_range)
        ]

    def is_available(
        self,
        bookings: Iterable[Booking],
        date_range: DateRange,
        excluding_booking_id: Optional[UUID] = None
    ) -> bool:
        return not self.conflicting_bookings(bookings, date_range, excluding_booking_id)

    def booked_dates(
        self,
        bookings: Iterable[Booking],
        date_range: DateRange,
        excluding_booking_id: Optional[UUID] = None
    ) -> List[date]:
        """Blocked nights inside the requested range, sorted and unique"""
        booked = set()
        for booking in self.conflicting_bookings(bookings, date_range, excluding_booking_id):
            for night in booking.date_range.each_night():
                if date_range.contains(night):
                    booked.add(night)
        return sorted(booked)

    def next_available(
        self,
        bookings: Iterable[Booking],
        from_day: date,
        nights: int,
        max_days: int = 90
    ) -> Optional[DateRange]:
        """First free stay of ``nights`` nights checking in within ``max_days`` of ``from_day``"""
        if nights < 1:
            raise InvalidRangeError(
                "Stay must be at least one night", field="nights", value=nights, constraint=">= 1"
            )

        blocking = self.conflicting_bookings(
            bookings, DateRange(start=from_day, end=from_day + timedelta(days=max_days + nights))
        )
        for offset in range(max_days + 1):
            check_in = from_day + timedelta(days=offset)
            candidate = DateRange(start=check_in, end=check_in + timedelta(days=nights))
            if self.is_available(blocking, candidate):
                return candidate
        return None
