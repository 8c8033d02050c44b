# app/api/routes/review.py
from fastapi import APIRouter, Depends, status
from typing import List

from app.api.deps import get_review_service
from app.db.models.user import User
from app.schemas.review import ReviewActionResponse, ReviewCreate, ReviewRespond, ReviewResponse, ReviewUpdate
from app.core.security import require_customer, require_provider
from app.services.rating_service import ReviewService

router = APIRouter(prefix="/reviews", tags=["reviews"])


def _action(message: str, review) -> ReviewActionResponse:
    return ReviewActionResponse(message=message, review=ReviewResponse.model_validate(review))

# Create review (customer, completed bookings only)
@router.post("/", response_model=ReviewActionResponse, status_code=status.HTTP_201_CREATED)
def create_review(
    review_in: ReviewCreate,
    service: ReviewService = Depends(get_review_service),
    current_user: User = Depends(require_customer),
):
    review = service.create(review_in.booking_id, current_user.id, review_in.rating, review_in.comment)
    return _action("Review submitted successfully", review)

# Edit own review
@router.put("/{review_id}", response_model=ReviewActionResponse)
def update_review(
    review_id: int,
    review_in: ReviewUpdate,
    service: ReviewService = Depends(get_review_service),
    current_user: User = Depends(require_customer),
):
    review = service.update(review_id, current_user.id, review_in.rating, review_in.comment)
    return _action("Review updated successfully", review)

# Soft delete: hidden from listings and the provider average, kept in the table
@router.delete("/{review_id}", response_model=ReviewActionResponse)
def delete_review(
    review_id: int,
    service: ReviewService = Depends(get_review_service),
    current_user: User = Depends(require_customer),
):
    review = service.soft_delete(review_id, current_user.id)
    return _action("Review deleted successfully", review)

@router.post("/{review_id}/restore", response_model=ReviewActionResponse)
def restore_review(
    review_id: int,
    service: ReviewService = Depends(get_review_service),
    current_user: User = Depends(require_customer),
):
    review = service.restore(review_id, current_user.id)
    return _action("Review restored", review)

# Provider response (one slot, overwritten on resubmit)
@router.post("/{review_id}/response", response_model=ReviewActionResponse)
def respond_to_review(
    review_id: int,
    payload: ReviewRespond,
    service: ReviewService = Depends(get_review_service),
    current_user: User = Depends(require_provider),
):
    review = service.respond(review_id, current_user.id, payload.response)
    return _action("Response added successfully", review)

# List reviews for a provider (public)
@router.get("/provider/{provider_id}", response_model=List[ReviewResponse])
def list_provider_reviews(provider_id: int, service: ReviewService = Depends(get_review_service)):
    return service.list_for_provider(provider_id)
