import logging
from fastapi import FastAPI, HTTPException, Depends, Query
from uuid import UUID
from datetime import date
from typing import List, Optional

from api.schemas import (
    # Property
    CreatePropertyRequest, UpdatePropertyRatesRequest, PropertyResponse,
    # Seasonal rates
    CreateSeasonalRateRequest, UpdateSeasonalRateRequest, SeasonalRateResponse,
    SeasonalRateWriteResponse,
    # Rates & availability
    RateQuoteResponse, AppliedSeasonalRateResponse, NightlyChargeResponse,
    AvailabilityResponse, NextAvailableResponse, RateCalendarDayResponse,
    # Deposits
    AllocateDepositRequest, DepositAllocationResponse,
    # Bookings
    CreateBookingRequest, RescheduleBookingRequest, CancelBookingRequest,
    SubmitPaymentRequest, PaymentResponse, BookingResponse, BookingEventResponse,
    MoneyResponse
)

from application.services import PricingService, RateService, BookingService
from infrastructure.config import get_settings
from infrastructure.logging_config import configure_logging
from infrastructure.repositories.in_memory_repositories import (
    InMemoryPropertyRepository, InMemoryBookingRepository, InMemoryBookingEventRepository
)
from domain.enums import BookingStatus, PaymentStatus, RateType, WeekendStayRule
from domain.errors import BookingRuleError, NotFoundError, PropertyUnavailableError

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    description="Rate calculation, availability and deposit API for vacation rental bookings",
    version="1.0.0",
    debug=settings.debug
)

# Initialize repositories
property_repo = InMemoryPropertyRepository()
booking_repo = InMemoryBookingRepository()
event_repo = InMemoryBookingEventRepository()
pricing_policy = settings.pricing_policy()

# Shared so the per-property booking locks span requests
booking_service = BookingService(
    property_repo,
    booking_repo,
    event_repo,
    pricing_policy,
    default_dp_percentage=settings.default_dp_percentage
)

# Dependency injection
def get_pricing_service() -> PricingService:
    return PricingService(property_repo, booking_repo, pricing_policy)

def get_rate_service() -> RateService:
    return RateService(property_repo, pricing_policy)

def get_booking_service() -> BookingService:
    return booking_service

# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

@app.get("/api/enums/booking-status", tags=["Enum Reference"])
async def get_booking_statuses():
    """Get all BookingStatus enum values"""
    return {
        "values": [item.value for item in BookingStatus],
        "description": "Booking status values: pending_verification, confirmed, checked_in, checked_out, cancelled, no_show"
    }

@app.get("/api/enums/payment-status", tags=["Enum Reference"])
async def get_payment_statuses():
    """Get all PaymentStatus enum values"""
    return {
        "values": [item.value for item in PaymentStatus],
        "description": "Payment status values: dp_pending, dp_received, fully_paid, refunded"
    }

@app.get("/api/enums/rate-type", tags=["Enum Reference"])
async def get_rate_types():
    """Get all RateType enum values"""
    return {
        "values": [item.value for item in RateType],
        "description": "Seasonal rate types: fixed (nightly price), percentage (+% of base), multiplier (x base)"
    }

@app.get("/api/enums/weekend-stay-rule", tags=["Enum Reference"])
async def get_weekend_stay_rules():
    """Get all WeekendStayRule enum values"""
    return {
        "values": [item.value for item in WeekendStayRule],
        "current": pricing_policy.weekend_stay_rule.value,
        "description": "any_night: one weekend night makes a weekend stay; majority: more than half the nights"
    }

# ============================================================================
# PROPERTY ENDPOINTS
# ============================================================================

@app.post("/api/properties", response_model=PropertyResponse, status_code=201, tags=["Properties"])
async def create_property(
    request: CreatePropertyRequest,
    service: RateService = Depends(get_rate_service)
):
    """Register a property with its rate card"""
    try:
        property = await service.register_property(**request.model_dump())
        return _property_to_response(property)
    except BookingRuleError as e:
        raise _to_http_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/api/properties", response_model=List[PropertyResponse], tags=["Properties"])
async def get_all_properties(service: RateService = Depends(get_rate_service)):
    """Get all properties"""
    properties = await service.get_all_properties()
    return [_property_to_response(p) for p in properties]

@app.get("/api/properties/{property_id}", response_model=PropertyResponse, tags=["Properties"])
async def get_property(
    property_id: UUID,
    service: RateService = Depends(get_rate_service)
):
    """Get property by ID"""
    property = await service.get_property(property_id)
    if not property:
        raise HTTPException(status_code=404, detail="Property not found")
    return _property_to_response(property)

@app.patch("/api/properties/{property_id}/rates", response_model=PropertyResponse, tags=["Properties"])
async def update_property_rates(
    property_id: UUID,
    request: UpdatePropertyRatesRequest,
    service: RateService = Depends(get_rate_service)
):
    """Update base rate, weekend premium, fees and minimum stays"""
    try:
        property = await service.update_rates(property_id, **request.model_dump())
        return _property_to_response(property)
    except BookingRuleError as e:
        raise _to_http_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.post("/api/properties/{property_id}/deactivate", response_model=PropertyResponse, tags=["Properties"])
async def deactivate_property(
    property_id: UUID,
    service: RateService = Depends(get_rate_service)
):
    """Deactivate a property; it stops accepting bookings"""
    try:
        property = await service.deactivate_property(property_id)
        return _property_to_response(property)
    except BookingRuleError as e:
        raise _to_http_exception(e)

# ============================================================================
# SEASONAL RATE ENDPOINTS
# ============================================================================

@app.post("/api/properties/{property_id}/seasonal-rates", response_model=SeasonalRateWriteResponse,
          status_code=201, tags=["Seasonal Rates"])
async def add_seasonal_rate(
    property_id: UUID,
    request: CreateSeasonalRateRequest,
    service: RateService = Depends(get_rate_service)
):
    """Add a seasonal rate to a property"""
    try:
        seasonal_rate, conflicts = await service.add_seasonal_rate(property_id, **request.model_dump())
        return _seasonal_write_to_response(seasonal_rate, conflicts)
    except BookingRuleError as e:
        raise _to_http_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/api/properties/{property_id}/seasonal-rates", response_model=List[SeasonalRateResponse],
         tags=["Seasonal Rates"])
async def list_seasonal_rates(
    property_id: UUID,
    active_only: bool = False,
    service: RateService = Depends(get_rate_service)
):
    """List seasonal rates in resolution order"""
    try:
        rates = await service.list_seasonal_rates(property_id, active_only=active_only)
        return [_seasonal_rate_to_response(r) for r in rates]
    except BookingRuleError as e:
        raise _to_http_exception(e)

@app.patch("/api/properties/{property_id}/seasonal-rates/{rate_id}", response_model=SeasonalRateWriteResponse,
           tags=["Seasonal Rates"])
async def update_seasonal_rate(
    property_id: UUID,
    rate_id: UUID,
    request: UpdateSeasonalRateRequest,
    service: RateService = Depends(get_rate_service)
):
    """Update a seasonal rate"""
    try:
        seasonal_rate, conflicts = await service.update_seasonal_rate(
            property_id, rate_id, **request.model_dump()
        )
        return _seasonal_write_to_response(seasonal_rate, conflicts)
    except BookingRuleError as e:
        raise _to_http_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.post("/api/properties/{property_id}/seasonal-rates/{rate_id}/deactivate",
          response_model=SeasonalRateResponse, tags=["Seasonal Rates"])
async def deactivate_seasonal_rate(
    property_id: UUID,
    rate_id: UUID,
    service: RateService = Depends(get_rate_service)
):
    """Deactivate a seasonal rate"""
    try:
        seasonal_rate = await service.deactivate_seasonal_rate(property_id, rate_id)
        return _seasonal_rate_to_response(seasonal_rate)
    except BookingRuleError as e:
        raise _to_http_exception(e)

# ============================================================================
# RATE & AVAILABILITY ENDPOINTS
# ============================================================================

@app.get("/api/properties/{property_id}/rate-quote", response_model=RateQuoteResponse, tags=["Rates"])
async def get_rate_quote(
    property_id: UUID,
    check_in: date,
    check_out: date,
    guest_count: int = 1,
    service: PricingService = Depends(get_pricing_service)
):
    """Calculate the price of a stay"""
    try:
        result = await service.calculate_rate(property_id, check_in, check_out, guest_count)
        return _quote_to_response(property_id, check_in, check_out, guest_count, result)
    except BookingRuleError as e:
        raise _to_http_exception(e)

@app.get("/api/properties/{property_id}/availability", response_model=AvailabilityResponse, tags=["Availability"])
async def check_availability(
    property_id: UUID,
    check_in: date,
    check_out: date,
    service: PricingService = Depends(get_pricing_service)
):
    """Check if a property is free for a stay"""
    try:
        available = await service.check_availability(property_id, check_in, check_out)
        booked_dates = await service.get_booked_dates(property_id, check_in, check_out)
        return AvailabilityResponse(
            property_id=property_id,
            check_in=check_in,
            check_out=check_out,
            available=available,
            booked_dates=booked_dates
        )
    except BookingRuleError as e:
        raise _to_http_exception(e)

@app.get("/api/properties/{property_id}/booked-dates", response_model=List[date], tags=["Availability"])
async def get_booked_dates(
    property_id: UUID,
    start: date,
    end: date,
    service: PricingService = Depends(get_pricing_service)
):
    """Blocked nights for a booking calendar"""
    try:
        return await service.get_booked_dates(property_id, start, end)
    except BookingRuleError as e:
        raise _to_http_exception(e)

@app.get("/api/properties/{property_id}/next-available", response_model=NextAvailableResponse,
         tags=["Availability"])
async def get_next_available(
    property_id: UUID,
    nights: int = Query(1, ge=1, le=365),
    max_days: int = Query(90, ge=0, le=365),
    start: Optional[date] = None,
    service: PricingService = Depends(get_pricing_service)
):
    """Earliest free stay of the given length, from today unless a start is given"""
    try:
        stay = await service.next_available_stay(property_id, nights, max_days, start)
        if stay is None:
            return NextAvailableResponse(property_id=property_id, nights=nights, available=False)
        return NextAvailableResponse(
            property_id=property_id,
            nights=nights,
            available=True,
            check_in=stay.start,
            check_out=stay.end
        )
    except BookingRuleError as e:
        raise _to_http_exception(e)

@app.get("/api/properties/{property_id}/rate-calendar", response_model=List[RateCalendarDayResponse],
         tags=["Rates"])
async def get_rate_calendar(
    property_id: UUID,
    start: date,
    days: int = Query(30, ge=1, le=366),
    service: PricingService = Depends(get_pricing_service)
):
    """Effective nightly rate per day"""
    try:
        calendar = await service.get_rate_calendar(property_id, start, days)
        return [RateCalendarDayResponse(**day.model_dump()) for day in calendar]
    except BookingRuleError as e:
        raise _to_http_exception(e)

# ============================================================================
# DEPOSIT ENDPOINTS
# ============================================================================

@app.post("/api/deposits/allocate", response_model=DepositAllocationResponse, tags=["Deposits"])
async def allocate_deposit(
    request: AllocateDepositRequest,
    service: PricingService = Depends(get_pricing_service)
):
    """Split a total into deposit and remaining balance"""
    try:
        allocation = service.allocate_deposit(request.total_amount, request.dp_percentage)
        return DepositAllocationResponse(**allocation.model_dump())
    except BookingRuleError as e:
        raise _to_http_exception(e)

# ============================================================================
# BOOKING ENDPOINTS
# ============================================================================

@app.post("/api/bookings", response_model=BookingResponse, status_code=201, tags=["Bookings"])
async def create_booking(
    request: CreateBookingRequest,
    service: BookingService = Depends(get_booking_service)
):
    """Create new booking"""
    try:
        booking = await service.create_booking(
            property_id=request.property_id,
            check_in=request.check_in,
            check_out=request.check_out,
            guest_count=request.guest_count,
            dp_percentage=request.dp_percentage,
            service_amount=request.service_amount,
            auto_confirm=request.auto_confirm,
            created_by=request.created_by,
            notes=request.notes
        )
        return _booking_to_response(booking)
    except BookingRuleError as e:
        raise _to_http_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.get("/api/bookings/{booking_id}", response_model=BookingResponse, tags=["Bookings"])
async def get_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service)
):
    """Get booking by ID"""
    booking = await service.get_booking(booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return _booking_to_response(booking)

@app.get("/api/bookings/number/{booking_number}", response_model=BookingResponse, tags=["Bookings"])
async def get_booking_by_number(
    booking_number: str,
    service: BookingService = Depends(get_booking_service)
):
    """Get booking by booking number"""
    booking = await service.get_booking_by_number(booking_number)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return _booking_to_response(booking)

@app.get("/api/properties/{property_id}/bookings", response_model=List[BookingResponse], tags=["Bookings"])
async def get_property_bookings(
    property_id: UUID,
    service: BookingService = Depends(get_booking_service)
):
    """Get all bookings for a property"""
    bookings = await service.get_property_bookings(property_id)
    return [_booking_to_response(b) for b in bookings]

@app.put("/api/bookings/{booking_id}/dates", response_model=BookingResponse, tags=["Bookings"])
async def reschedule_booking(
    booking_id: UUID,
    request: RescheduleBookingRequest,
    service: BookingService = Depends(get_booking_service)
):
    """Move a booking to new dates"""
    try:
        booking = await service.reschedule_booking(
            booking_id=booking_id,
            check_in=request.check_in,
            check_out=request.check_out,
            guest_count=request.guest_count
        )
        return _booking_to_response(booking)
    except BookingRuleError as e:
        raise _to_http_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@app.post("/api/bookings/{booking_id}/payments", response_model=PaymentResponse, status_code=201,
          tags=["Payments"])
async def submit_payment(
    booking_id: UUID,
    request: SubmitPaymentRequest,
    service: BookingService = Depends(get_booking_service)
):
    """Submit a payment awaiting verification"""
    try:
        payment = await service.submit_payment(booking_id, request.amount, request.notes)
        return _payment_to_response(payment)
    except BookingRuleError as e:
        raise _to_http_exception(e)

@app.post("/api/bookings/{booking_id}/payments/{payment_id}/verify", response_model=BookingResponse,
          tags=["Payments"])
async def verify_payment(
    booking_id: UUID,
    payment_id: UUID,
    service: BookingService = Depends(get_booking_service)
):
    """Verify a payment"""
    try:
        booking = await service.verify_payment(booking_id, payment_id)
        return _booking_to_response(booking)
    except BookingRuleError as e:
        raise _to_http_exception(e)

@app.post("/api/bookings/{booking_id}/payments/{payment_id}/reject", response_model=BookingResponse,
          tags=["Payments"])
async def reject_payment(
    booking_id: UUID,
    payment_id: UUID,
    service: BookingService = Depends(get_booking_service)
):
    """Reject a payment"""
    try:
        booking = await service.reject_payment(booking_id, payment_id)
        return _booking_to_response(booking)
    except BookingRuleError as e:
        raise _to_http_exception(e)

@app.post("/api/bookings/{booking_id}/confirm", response_model=BookingResponse, tags=["Bookings"])
async def confirm_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service)
):
    """Confirm booking"""
    try:
        booking = await service.confirm_booking(booking_id)
        return _booking_to_response(booking)
    except BookingRuleError as e:
        raise _to_http_exception(e)

@app.post("/api/bookings/{booking_id}/check-in", response_model=BookingResponse, tags=["Bookings"])
async def check_in_guest(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service)
):
    """Check in guest"""
    try:
        booking = await service.check_in(booking_id)
        return _booking_to_response(booking)
    except BookingRuleError as e:
        raise _to_http_exception(e)

@app.post("/api/bookings/{booking_id}/check-out", response_model=BookingResponse, tags=["Bookings"])
async def check_out_guest(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service)
):
    """Check out guest"""
    try:
        booking = await service.check_out(booking_id)
        return _booking_to_response(booking)
    except BookingRuleError as e:
        raise _to_http_exception(e)

@app.post("/api/bookings/{booking_id}/cancel", response_model=BookingResponse, tags=["Bookings"])
async def cancel_booking(
    booking_id: UUID,
    request: CancelBookingRequest,
    service: BookingService = Depends(get_booking_service)
):
    """Cancel booking"""
    try:
        booking = await service.cancel_booking(booking_id, request.reason)
        return _booking_to_response(booking)
    except BookingRuleError as e:
        raise _to_http_exception(e)

@app.post("/api/bookings/{booking_id}/no-show", response_model=BookingResponse, tags=["Bookings"])
async def mark_no_show(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service)
):
    """Mark guest as no-show"""
    try:
        booking = await service.mark_no_show(booking_id)
        return _booking_to_response(booking)
    except BookingRuleError as e:
        raise _to_http_exception(e)

@app.post("/api/bookings/{booking_id}/refund", response_model=MoneyResponse, tags=["Bookings"])
async def refund_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service)
):
    """Refund verified payments of a cancelled or no-show booking"""
    try:
        refund = await service.refund_booking(booking_id)
        return {"amount": refund.amount, "currency": refund.currency, "formatted": refund.format()}
    except BookingRuleError as e:
        raise _to_http_exception(e)

@app.get("/api/bookings/{booking_id}/events", response_model=List[BookingEventResponse], tags=["Bookings"])
async def get_booking_events(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service)
):
    """Audit trail of a booking"""
    events = await service.get_events(booking_id)
    return [
        BookingEventResponse(
            event_id=e.event_id,
            booking_id=e.booking_id,
            step=e.step,
            booking_status=e.booking_status.value,
            payment_status=e.payment_status.value,
            notes=e.notes,
            occurred_at=e.occurred_at
        )
        for e in events
    ]

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _to_http_exception(error: BookingRuleError) -> HTTPException:
    """Map a booking rule violation to an HTTP error"""
    if isinstance(error, NotFoundError):
        status_code = 404
    elif isinstance(error, PropertyUnavailableError):
        status_code = 409
    else:
        status_code = 422
    logger.info("Request rejected (%d): %s", status_code, error.message)
    return HTTPException(status_code=status_code, detail=error.to_dict())

def _property_to_response(property) -> PropertyResponse:
    """Convert Property entity to PropertyResponse"""
    return PropertyResponse(
        property_id=property.property_id,
        name=property.name,
        base_rate=property.base_rate,
        weekend_premium_percent=property.weekend_premium_percent,
        cleaning_fee=property.cleaning_fee,
        extra_bed_rate=property.extra_bed_rate,
        capacity=property.capacity,
        capacity_max=property.capacity_max,
        min_stay_weekday=property.min_stay_weekday,
        min_stay_weekend=property.min_stay_weekend,
        min_stay_peak=property.min_stay_peak,
        is_active=property.is_active,
        created_at=property.created_at
    )

def _seasonal_rate_to_response(seasonal_rate) -> SeasonalRateResponse:
    """Convert SeasonalRate entity to SeasonalRateResponse"""
    return SeasonalRateResponse(
        rate_id=seasonal_rate.rate_id,
        property_id=seasonal_rate.property_id,
        name=seasonal_rate.name,
        start_date=seasonal_rate.start_date,
        end_date=seasonal_rate.end_date,
        rate_type=seasonal_rate.rate_type.value,
        rate_value=seasonal_rate.rate_value,
        rate_display=seasonal_rate.describe(pricing_policy.currency),
        min_stay_nights=seasonal_rate.min_stay_nights,
        applies_to_weekends_only=seasonal_rate.applies_to_weekends_only,
        is_active=seasonal_rate.is_active,
        priority=seasonal_rate.priority,
        applicable_days=seasonal_rate.applicable_days,
        description=seasonal_rate.description,
        created_at=seasonal_rate.created_at
    )

def _seasonal_write_to_response(seasonal_rate, conflicts) -> SeasonalRateWriteResponse:
    return SeasonalRateWriteResponse(
        seasonal_rate=_seasonal_rate_to_response(seasonal_rate),
        conflicting_rate_ids=[c.rate_id for c in conflicts],
        warnings=[
            f"Overlaps '{c.name}' at priority {c.priority}; the earlier start date wins"
            for c in conflicts
        ]
    )

def _quote_to_response(property_id, check_in, check_out, guest_count, result) -> RateQuoteResponse:
    """Convert RateCalculationResult to RateQuoteResponse"""
    applied = result.applied_seasonal_rate
    return RateQuoteResponse(
        property_id=property_id,
        check_in=check_in,
        check_out=check_out,
        guest_count=guest_count,
        nights=result.nights,
        weekday_nights=result.weekday_nights,
        weekend_nights=result.weekend_nights,
        base_amount=result.base_amount,
        weekend_premium_amount=result.weekend_premium_amount,
        seasonal_adjustment_amount=result.seasonal_adjustment_amount,
        room_amount=result.room_amount,
        extra_beds=result.extra_beds,
        extra_bed_amount=result.extra_bed_amount,
        cleaning_fee=result.cleaning_fee,
        tax_amount=result.tax_amount,
        total_amount=result.total_amount,
        per_night_average=result.per_night_average(),
        formatted_total=result.formatted_total(pricing_policy.currency),
        currency=pricing_policy.currency,
        applied_seasonal_rate=AppliedSeasonalRateResponse(
            rate_id=applied.rate_id,
            name=applied.name,
            rate_type=applied.rate_type.value,
            rate_value=applied.rate_value,
            priority=applied.priority
        ) if applied else None,
        nightly=[NightlyChargeResponse(**n.model_dump()) for n in result.nightly]
    )

def _payment_to_response(payment) -> PaymentResponse:
    """Convert Payment entity to PaymentResponse"""
    return PaymentResponse(
        payment_id=payment.payment_id,
        payment_number=payment.payment_number,
        amount=payment.amount,
        status=payment.status.value,
        notes=payment.notes,
        created_at=payment.created_at,
        verified_at=payment.verified_at
    )

def _booking_to_response(booking) -> BookingResponse:
    """Convert Booking entity to BookingResponse"""
    return BookingResponse(
        booking_id=booking.booking_id,
        booking_number=booking.booking_number,
        property_id=booking.property_id,
        check_in=booking.date_range.start,
        check_out=booking.date_range.end,
        nights=booking.get_nights(),
        guest_count=booking.guest_count,
        base_amount=booking.base_amount,
        extra_bed_amount=booking.extra_bed_amount,
        service_amount=booking.service_amount,
        total_amount=booking.total_amount,
        dp_percentage=booking.dp_percentage,
        dp_amount=booking.dp_amount,
        remaining_amount=booking.remaining_amount,
        verified_amount=booking.verified_total(),
        outstanding_amount=booking.outstanding_amount(),
        applied_seasonal_rate_id=booking.applied_seasonal_rate_id,
        booking_status=booking.booking_status.value,
        payment_status=booking.payment_status.value,
        payments=[_payment_to_response(p) for p in booking.payments],
        cancellation_reason=booking.cancellation_reason,
        cancelled_at=booking.cancelled_at,
        created_at=booking.created_at,
        modified_at=booking.modified_at,
        created_by=booking.created_by,
        version=booking.version
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
