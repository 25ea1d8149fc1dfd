"""In-Memory Repository Implementations"""
from typing import Optional, List, Dict
from uuid import UUID

from domain.repositories import PropertyRepository, BookingRepository, BookingEventRepository
from domain.entities import Property, Booking, BookingEvent


class InMemoryPropertyRepository(PropertyRepository):
    """In-memory implementation of PropertyRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Property] = {}

    async def save(self, property: Property) -> Property:
        """Save property to memory"""
        self._storage[property.property_id] = property
        return property

    async def find_by_id(self, property_id: UUID) -> Optional[Property]:
        """Find property by ID"""
        return self._storage.get(property_id)

    async def find_all(self) -> List[Property]:
        """Find all properties"""
        return list(self._storage.values())

    async def update(self, property: Property) -> Property:
        """Update property"""
        if property.property_id in self._storage:
            self._storage[property.property_id] = property
            return property
        raise ValueError("Property not found")


class InMemoryBookingRepository(BookingRepository):
    """In-memory implementation of BookingRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Booking] = {}

    async def save(self, booking: Booking) -> Booking:
        """Save booking to memory"""
        self._storage[booking.booking_id] = booking
        return booking

    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID"""
        return self._storage.get(booking_id)

    async def find_by_booking_number(self, booking_number: str) -> Optional[Booking]:
        """Find booking by booking number"""
        for booking in self._storage.values():
            if booking.booking_number == booking_number:
                return booking
        return None

    async def find_by_property_id(self, property_id: UUID) -> List[Booking]:
        """Find bookings of a property"""
        return [b for b in self._storage.values() if b.property_id == property_id]

    async def update(self, booking: Booking) -> Booking:
        """Update booking"""
        if booking.booking_id in self._storage:
            self._storage[booking.booking_id] = booking
            return booking
        raise ValueError("Booking not found")


class InMemoryBookingEventRepository(BookingEventRepository):
    """In-memory implementation of BookingEventRepository"""

    def __init__(self):
        self._events: List[BookingEvent] = []

    async def append(self, event: BookingEvent) -> BookingEvent:
        """Append event to memory"""
        self._events.append(event)
        return event

    async def find_by_booking_id(self, booking_id: UUID) -> List[BookingEvent]:
        """Find events for a booking"""
        return [e for e in self._events if e.booking_id == booking_id]
