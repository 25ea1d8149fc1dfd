"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import List, Optional

from domain.enums import RateType


# ============================================================================
# PROPERTY SCHEMAS
# ============================================================================

class CreatePropertyRequest(BaseModel):
    """Create property request DTO"""
    name: str
    base_rate: int = Field(ge=0)
    capacity: int = Field(ge=1)
    capacity_max: int = Field(ge=1)
    weekend_premium_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    cleaning_fee: int = Field(default=0, ge=0)
    extra_bed_rate: int = Field(default=0, ge=0)
    min_stay_weekday: int = Field(default=1, ge=1)
    min_stay_weekend: int = Field(default=1, ge=1)
    min_stay_peak: int = Field(default=1, ge=1)


class UpdatePropertyRatesRequest(BaseModel):
    """Update property rates request DTO"""
    base_rate: Optional[int] = Field(None, ge=0)
    weekend_premium_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    cleaning_fee: Optional[int] = Field(None, ge=0)
    extra_bed_rate: Optional[int] = Field(None, ge=0)
    min_stay_weekday: Optional[int] = Field(None, ge=1)
    min_stay_weekend: Optional[int] = Field(None, ge=1)
    min_stay_peak: Optional[int] = Field(None, ge=1)


class PropertyResponse(BaseModel):
    """Property response DTO"""
    property_id: UUID
    name: str
    base_rate: int
    weekend_premium_percent: Decimal
    cleaning_fee: int
    extra_bed_rate: int
    capacity: int
    capacity_max: int
    min_stay_weekday: int
    min_stay_weekend: int
    min_stay_peak: int
    is_active: bool
    created_at: datetime


# ============================================================================
# SEASONAL RATE SCHEMAS
# ============================================================================

class CreateSeasonalRateRequest(BaseModel):
    """Create seasonal rate request DTO"""
    name: str
    start_date: date
    end_date: date
    rate_type: RateType = Field(default=RateType.PERCENTAGE, description="How rate_value is applied")
    rate_value: Decimal = Field(ge=0)
    min_stay_nights: int = Field(default=1, ge=1)
    applies_to_weekends_only: bool = False
    priority: int = Field(default=0, ge=0, le=100)
    applicable_days: List[int] = []  # 0 = Sunday
    description: Optional[str] = None


class UpdateSeasonalRateRequest(BaseModel):
    """Update seasonal rate request DTO"""
    name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    rate_type: Optional[RateType] = None
    rate_value: Optional[Decimal] = Field(None, ge=0)
    min_stay_nights: Optional[int] = Field(None, ge=1)
    applies_to_weekends_only: Optional[bool] = None
    priority: Optional[int] = Field(None, ge=0, le=100)
    applicable_days: Optional[List[int]] = None
    description: Optional[str] = None


class SeasonalRateResponse(BaseModel):
    """Seasonal rate response DTO"""
    rate_id: UUID
    property_id: UUID
    name: str
    start_date: date
    end_date: date
    rate_type: str
    rate_value: Decimal
    rate_display: str
    min_stay_nights: int
    applies_to_weekends_only: bool
    is_active: bool
    priority: int
    applicable_days: List[int]
    description: Optional[str] = None
    created_at: datetime


class SeasonalRateWriteResponse(BaseModel):
    """Seasonal rate response DTO with same-priority overlap warnings"""
    seasonal_rate: SeasonalRateResponse
    conflicting_rate_ids: List[UUID] = []
    warnings: List[str] = []


# ============================================================================
# RATE & AVAILABILITY SCHEMAS
# ============================================================================

class NightlyChargeResponse(BaseModel):
    """Nightly charge response DTO"""
    night: date
    nightly_rate: int
    is_weekend: bool
    weekend_premium: int


class AppliedSeasonalRateResponse(BaseModel):
    """Applied seasonal rate response DTO"""
    rate_id: UUID
    name: str
    rate_type: str
    rate_value: Decimal
    priority: int


class RateQuoteResponse(BaseModel):
    """Rate quote response DTO"""
    property_id: UUID
    check_in: date
    check_out: date
    guest_count: int
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
    tax_amount: int
    total_amount: int
    per_night_average: int
    formatted_total: str
    currency: str
    applied_seasonal_rate: Optional[AppliedSeasonalRateResponse] = None
    nightly: List[NightlyChargeResponse] = []


class AvailabilityResponse(BaseModel):
    """Availability response DTO"""
    property_id: UUID
    check_in: date
    check_out: date
    available: bool
    booked_dates: List[date] = []


class NextAvailableResponse(BaseModel):
    """Next available stay response DTO"""
    property_id: UUID
    nights: int
    available: bool
    check_in: Optional[date] = None
    check_out: Optional[date] = None


class RateCalendarDayResponse(BaseModel):
    """Rate calendar day response DTO"""
    day: date
    base_rate: int
    nightly_rate: int
    is_weekend: bool
    weekend_premium: int
    seasonal_rate_id: Optional[UUID] = None
    seasonal_rate_name: Optional[str] = None


# ============================================================================
# DEPOSIT SCHEMAS
# ============================================================================

class AllocateDepositRequest(BaseModel):
    """Allocate deposit request DTO"""
    total_amount: int = Field(ge=0)
    dp_percentage: int


class DepositAllocationResponse(BaseModel):
    """Deposit allocation response DTO"""
    total_amount: int
    dp_percentage: int
    dp_amount: int
    remaining_amount: int


# ============================================================================
# BOOKING SCHEMAS
# ============================================================================

class CreateBookingRequest(BaseModel):
    """Create booking request DTO"""
    property_id: UUID
    check_in: date
    check_out: date
    guest_count: int = Field(ge=1)
    dp_percentage: Optional[int] = None
    service_amount: int = Field(default=0, ge=0)
    auto_confirm: bool = False
    created_by: str = "SYSTEM"
    notes: Optional[str] = None


class RescheduleBookingRequest(BaseModel):
    """Reschedule booking request DTO"""
    check_in: date
    check_out: date
    guest_count: Optional[int] = Field(None, ge=1)


class CancelBookingRequest(BaseModel):
    """Cancel booking request DTO"""
    reason: str = "Guest requested cancellation"


class SubmitPaymentRequest(BaseModel):
    """Submit payment request DTO"""
    amount: int = Field(gt=0)
    notes: Optional[str] = None


class PaymentResponse(BaseModel):
    """Payment response DTO"""
    payment_id: UUID
    payment_number: str
    amount: int
    status: str
    notes: Optional[str] = None
    created_at: datetime
    verified_at: Optional[datetime] = None


class BookingResponse(BaseModel):
    """Booking response DTO"""
    booking_id: UUID
    booking_number: str
    property_id: UUID
    check_in: date
    check_out: date
    nights: int
    guest_count: int
    base_amount: int
    extra_bed_amount: int
    service_amount: int
    total_amount: int
    dp_percentage: int
    dp_amount: int
    remaining_amount: int
    verified_amount: int
    outstanding_amount: int
    applied_seasonal_rate_id: Optional[UUID] = None
    booking_status: str
    payment_status: str
    payments: List[PaymentResponse]
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    modified_at: datetime
    created_by: str
    version: int


class BookingEventResponse(BaseModel):
    """Booking event response DTO"""
    event_id: UUID
    booking_id: UUID
    step: str
    booking_status: str
    payment_status: str
    notes: Optional[str] = None
    occurred_at: datetime


class MoneyResponse(BaseModel):
    """Money response DTO"""
    amount: int
    currency: str
    formatted: str
