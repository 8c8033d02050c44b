# app/schemas/review.py
from pydantic import BaseModel, Field, conint
from typing import Optional
from datetime import datetime

class ReviewCreate(BaseModel):
    booking_id: int
    rating: conint(ge=1, le=5) = Field(..., description="Rating 1-5")
    comment: Optional[str] = None

class ReviewUpdate(BaseModel):
    rating: conint(ge=1, le=5) = Field(..., description="Rating 1-5")
    comment: Optional[str] = None

class ReviewRespond(BaseModel):
    response: str

class ReviewResponse(BaseModel):
    id: int
    booking_id: int
    customer_id: int
    provider_id: int
    rating: int
    comment: Optional[str]
    provider_response: Optional[str] = None
    responded_at: Optional[datetime] = None
    is_visible: bool
    is_edited: bool
    created_at: datetime

    class Config:
        from_attributes = True

class ReviewActionResponse(BaseModel):
    success: bool = True
    message: str
    review: ReviewResponse
