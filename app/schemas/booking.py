from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional

from app.schemas.user import PartyProfile, ProviderProfile


# --- CREATE ---
class BookingLocation(BaseModel):
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


# required-ness is checked by BookingService so it can answer with a 400
class BookingCreate(BaseModel):
    provider_id: int
    service_category: Optional[str] = None
    description: Optional[str] = None
    booking_date: Optional[date] = None
    booking_time: Optional[str] = Field(default=None, description="e.g. 14:30")
    budget: Optional[float] = None
    location: Optional[BookingLocation] = None
    notes: Optional[str] = None


# --- TRANSITIONS ---
class BookingReason(BaseModel):
    reason: Optional[str] = None


class BookingStatusUpdate(BaseModel):
    status: str = Field(
        ...,
        description="Allowed values: pending, accepted, rejected, in-progress, completed, cancelled"
    )
    notes: Optional[str] = None


# --- RESPONSE ---
class BookingResponse(BaseModel):
    id: int
    customer_id: int
    provider_id: int
    service_category: str
    description: str
    booking_date: date
    booking_time: str
    budget: float
    final_amount: float
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: str
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    customer_notes: Optional[str] = None
    provider_notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class BookingDetail(BookingResponse):
    customer: PartyProfile
    provider: ProviderProfile


class BookingActionResponse(BaseModel):
    success: bool = True
    message: str
    booking: BookingResponse
