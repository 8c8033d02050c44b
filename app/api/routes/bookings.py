from fastapi import APIRouter, Depends
from typing import Optional

from app.api.deps import get_booking_service
from app.db.models.user import User
from app.schemas.booking import (
    BookingActionResponse,
    BookingCreate,
    BookingDetail,
    BookingReason,
    BookingResponse,
    BookingStatusUpdate,
)
from app.core.security import get_current_user, require_customer, require_provider
from app.services.booking_service import BookingService

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _action(message: str, booking) -> BookingActionResponse:
    return BookingActionResponse(message=message, booking=BookingResponse.model_validate(booking))


# Customer creates booking

@router.post("/customer", response_model=BookingActionResponse)
def create_booking(
    booking: BookingCreate,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(require_customer),
):
    location = booking.location
    new_booking = service.create(
        customer_id=current_user.id,
        provider_id=booking.provider_id,
        service_category=booking.service_category,
        description=booking.description,
        booking_date=booking.booking_date,
        booking_time=booking.booking_time,
        budget=booking.budget,
        address=location.address if location else None,
        latitude=location.latitude if location else None,
        longitude=location.longitude if location else None,
        customer_notes=booking.notes,
    )
    return _action("Booking request created successfully", new_booking)


# Customer views their bookings

@router.get("/customer/me", response_model=list[BookingResponse])
def customer_my_bookings(
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(require_customer),
):
    return service.list_for_customer(current_user.id)


# Provider views their bookings

@router.get("/provider/me", response_model=list[BookingResponse])
def provider_my_bookings(
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(require_provider),
):
    return service.list_for_provider(current_user.id)


# Either party views one booking with both public profiles

@router.get("/{booking_id}", response_model=BookingDetail)
def view_booking(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_user),
):
    return service.view(booking_id, current_user.id, current_user.role)


# Provider accepts booking

@router.post("/{booking_id}/accept", response_model=BookingActionResponse)
def accept_booking(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(require_provider),
):
    booking = service.accept(booking_id, current_user.id)
    return _action("Booking accepted successfully", booking)


# Provider rejects booking

@router.post("/{booking_id}/reject", response_model=BookingActionResponse)
def reject_booking(
    booking_id: int,
    payload: Optional[BookingReason] = None,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(require_provider),
):
    booking = service.reject(booking_id, current_user.id, payload.reason if payload else None)
    return _action("Booking rejected", booking)


# Either party cancels a pending or accepted booking

@router.post("/{booking_id}/cancel", response_model=BookingActionResponse)
def cancel_booking(
    booking_id: int,
    payload: Optional[BookingReason] = None,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_user),
):
    booking = service.cancel(booking_id, current_user.id, current_user.role, payload.reason if payload else None)
    return _action("Booking cancelled successfully", booking)


# Either party moves the booking along (in-progress, completed, ...)

@router.patch("/{booking_id}/status", response_model=BookingActionResponse)
def update_booking_status(
    booking_id: int,
    payload: BookingStatusUpdate,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_user),
):
    booking = service.update_status(booking_id, current_user.id, current_user.role, payload.status, payload.notes)
    return _action("Booking status updated", booking)
