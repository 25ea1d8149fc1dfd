"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from typing import Optional, List
from uuid import UUID

from domain.entities import Property, Booking, BookingEvent


class PropertyRepository(ABC):
    """Repository interface for Property Aggregate"""

    @abstractmethod
    async def save(self, property: Property) -> Property:
        """Save property"""
        pass

    @abstractmethod
    async def find_by_id(self, property_id: UUID) -> Optional[Property]:
        """Find property by ID"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Property]:
        """Find all properties"""
        pass

    @abstractmethod
    async def update(self, property: Property) -> Property:
        """Update property"""
        pass


class BookingRepository(ABC):
    """Repository interface for Booking Aggregate"""

    @abstractmethod
    async def save(self, booking: Booking) -> Booking:
        """Save booking"""
        pass

    @abstractmethod
    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID"""
        pass

    @abstractmethod
    async def find_by_booking_number(self, booking_number: str) -> Optional[Booking]:
        """Find booking by booking number"""
        pass

    @abstractmethod
    async def find_by_property_id(self, property_id: UUID) -> List[Booking]:
        """Find every booking of a property, whatever its status"""
        pass

    @abstractmethod
    async def update(self, booking: Booking) -> Booking:
        """Update booking"""
        pass


class BookingEventRepository(ABC):
    """Append-only log of booking transitions"""

    @abstractmethod
    async def append(self, event: BookingEvent) -> BookingEvent:
        """Append event"""
        pass

    @abstractmethod
    async def find_by_booking_id(self, booking_id: UUID) -> List[BookingEvent]:
        """Events of a booking in the order they were appended"""
        pass
