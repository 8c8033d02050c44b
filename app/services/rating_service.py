"""
Rating aggregation.

A provider's avg_rating is never patched incrementally: every change to a
review re-reads the full set of visible reviews and rewrites the aggregate,
so running it twice, late, or out of order always lands on the same value.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.constants import BookingStatus, NotificationType
from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from app.db.models.booking import Booking
from app.db.models.review import Review
from app.db.models.user import User
from app.services.common import require_text, round2
from app.services.notifications import NotificationDispatcher, dispatch

logger = logging.getLogger(__name__)


def average_rating(ratings) -> Decimal:
    ratings = list(ratings)
    if not ratings:
        return Decimal("0.00")
    return round2(Decimal(sum(ratings)) / len(ratings))


def recompute_provider_rating(db: Session, provider_id: int) -> float:
    """Rewrite avg_rating/rating_count from visible reviews. Caller commits."""
    ratings = [
        rating
        for (rating,) in db.query(Review.rating).filter(
            Review.provider_id == provider_id, Review.is_visible.is_(True)
        )
    ]
    avg = average_rating(ratings)
    db.query(User).filter(User.id == provider_id).update(
        {User.avg_rating: float(avg), User.rating_count: len(ratings)},
        synchronize_session=False,
    )
    logger.info(f"Provider {provider_id} rating recomputed: {avg} over {len(ratings)} reviews")
    return float(avg)


def _validate_rating(rating) -> int:
    try:
        value = int(str(rating).strip())
    except ValueError:
        value = None
    if isinstance(rating, bool) or value is None or not 1 <= value <= 5:
        raise ValidationError("Rating must be an integer between 1 and 5")
    return value


class ReviewService:
    def __init__(self, db: Session, notifier: Optional[NotificationDispatcher] = None):
        self.db = db
        self.notifier = notifier

    def _commit_and_recompute(self, review: Review) -> Review:
        # sessions run with autoflush off, push the change before re-reading
        self.db.flush()
        recompute_provider_rating(self.db, review.provider_id)
        self.db.commit()
        self.db.refresh(review)
        return review

    def _get(self, review_id: int) -> Review:
        review = self.db.query(Review).filter(Review.id == review_id).first()
        if not review:
            raise NotFoundError("Review not found")
        return review

    def _get_own(self, review_id: int, customer_id: int) -> Review:
        review = self._get(review_id)
        if review.customer_id != customer_id:
            raise ForbiddenError("Only the author can change this review")
        return review

    def create(self, booking_id: int, customer_id: int, rating, comment: Optional[str] = None) -> Review:
        rating = _validate_rating(rating)

        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFoundError("Booking not found")
        if booking.customer_id != customer_id:
            raise ForbiddenError("Booking does not belong to you")
        if booking.status != BookingStatus.COMPLETED:
            raise InvalidStateError("Can only review completed bookings")

        existing = self.db.query(Review).filter(Review.booking_id == booking_id).first()
        if existing:
            raise ConflictError("Review for this booking already exists")

        review = Review(
            booking_id=booking.id,
            customer_id=customer_id,
            provider_id=booking.provider_id,
            rating=rating,
            comment=(comment or "").strip(),
        )
        self.db.add(review)
        try:
            self.db.flush()
        except IntegrityError:
            # unique booking_id: a concurrent create got there first
            self.db.rollback()
            raise ConflictError("Review for this booking already exists")

        review = self._commit_and_recompute(review)
        logger.info(f"Review {review.id} created for booking {booking_id}")

        dispatch(
            self.notifier,
            review.provider_id,
            NotificationType.REVIEW,
            "New Review",
            f"You received a {rating}-star review",
            f"/provider/reviews/{review.id}",
        )
        return review

    def update(self, review_id: int, customer_id: int, rating, comment: Optional[str] = None) -> Review:
        review = self._get_own(review_id, customer_id)
        review.rating = _validate_rating(rating)
        review.comment = (comment or "").strip()
        review.is_edited = True
        return self._commit_and_recompute(review)

    def soft_delete(self, review_id: int, customer_id: int) -> Review:
        review = self._get_own(review_id, customer_id)
        review.is_visible = False
        logger.info(f"Review {review.id} hidden by its author")
        return self._commit_and_recompute(review)

    def restore(self, review_id: int, customer_id: int) -> Review:
        review = self._get_own(review_id, customer_id)
        review.is_visible = True
        logger.info(f"Review {review.id} restored by its author")
        return self._commit_and_recompute(review)

    def respond(self, review_id: int, provider_id: int, response: Optional[str]) -> Review:
        review = self._get(review_id)
        if review.provider_id != provider_id:
            raise ForbiddenError("Only the reviewed provider can respond")
        review.provider_response = require_text(response, "Response")
        review.responded_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(review)
        return review

    def list_for_provider(self, provider_id: int) -> list[Review]:
        return (
            self.db.query(Review)
            .filter(Review.provider_id == provider_id, Review.is_visible.is_(True))
            .order_by(Review.created_at.desc(), Review.id.desc())
            .all()
        )
