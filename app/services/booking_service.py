"""Booking lifecycle - state machine, party checks and transition side effects"""

import logging
from datetime import date, datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.core.config import MIN_DESCRIPTION_LENGTH
from app.core.constants import BOOKING_TRANSITIONS, BookingStatus, NotificationType, UserRole
from app.core.exceptions import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from app.db.models.booking import Booking
from app.db.models.user import User
from app.services.common import require_party, require_positive, require_text
from app.services.geo import is_valid_coordinate
from app.services.notifications import NotificationDispatcher, dispatch

logger = logging.getLogger(__name__)


def can_transition(current: str, new: str) -> bool:
    return new in BOOKING_TRANSITIONS.get(current, set())


class BookingService:
    """Owns every write to a booking after it has been created"""

    def __init__(self, db: Session, notifier: Optional[NotificationDispatcher] = None):
        self.db = db
        self.notifier = notifier

    # --------------------------
    # Reads
    # --------------------------

    def get(self, booking_id: int) -> Booking:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    def view(self, booking_id: int, user_id: int, role: str) -> Booking:
        booking = self.get(booking_id)
        require_party(booking, user_id, role)
        return booking

    def list_for_customer(self, customer_id: int) -> list[Booking]:
        return (
            self.db.query(Booking)
            .filter(Booking.customer_id == customer_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .all()
        )

    def list_for_provider(self, provider_id: int) -> list[Booking]:
        return (
            self.db.query(Booking)
            .filter(Booking.provider_id == provider_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .all()
        )

    # --------------------------
    # Create
    # --------------------------

    def create(
        self,
        customer_id: int,
        provider_id: int,
        service_category: Optional[str],
        description: Optional[str],
        booking_date: Optional[date],
        booking_time: Optional[str],
        budget,
        address: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        customer_notes: Optional[str] = None,
    ) -> Booking:
        service_category = require_text(service_category, "Service category")
        description = require_text(description, "Service description", MIN_DESCRIPTION_LENGTH)
        if booking_date is None:
            raise ValidationError("Requested date is required")
        booking_time = require_text(booking_time, "Requested time")
        budget = require_positive(budget, "Budget")

        if (latitude is None) != (longitude is None):
            raise ValidationError("Location needs both latitude and longitude")
        if latitude is not None and not is_valid_coordinate(latitude, longitude):
            raise ValidationError("Location coordinates are out of range")

        provider = self.db.query(User).filter(User.id == provider_id).first()
        if not provider or provider.role != UserRole.PROVIDER or not provider.is_active:
            logger.warning(f"Booking rejected: provider {provider_id} missing or inactive")
            raise NotFoundError("Provider not found or inactive")

        customer = self.db.query(User).filter(User.id == customer_id).first()
        if not customer:
            raise NotFoundError("Customer not found")

        booking = Booking(
            customer_id=customer_id,
            provider_id=provider_id,
            service_category=service_category,
            description=description,
            booking_date=booking_date,
            booking_time=booking_time,
            budget=budget,
            address=address,
            latitude=latitude,
            longitude=longitude,
            customer_notes=customer_notes,
            status=BookingStatus.PENDING,
        )
        self.db.add(booking)
        self.db.commit()
        self.db.refresh(booking)
        logger.info(f"Booking {booking.id} created by customer {customer_id} for provider {provider_id}")

        dispatch(
            self.notifier,
            provider_id,
            NotificationType.BOOKING,
            "New Service Request",
            f"You have a new service request from {customer.name}",
            f"/provider/requests/{booking.id}",
        )
        dispatch(
            self.notifier,
            customer_id,
            NotificationType.BOOKING,
            "Booking Request Sent",
            f"Your {service_category} request has been sent to {provider.name}",
            f"/customer/bookings/{booking.id}",
        )
        return booking

    # --------------------------
    # Transitions
    # --------------------------

    def _transition(self, booking: Booking, allowed_from: Iterable[str], new_status: str, **values) -> Booking:
        """
        Move booking to new_status if it is still in one of allowed_from.
        The UPDATE is conditional on the status read earlier, so of two racing
        transitions on the same row exactly one matches.
        """
        allowed_from = tuple(allowed_from)
        if booking.status not in allowed_from:
            logger.warning(f"Booking {booking.id}: {booking.status} -> {new_status} refused")
            raise InvalidStateError(f"Booking cannot move from {booking.status} to {new_status}")

        values["status"] = new_status
        updated = (
            self.db.query(Booking)
            .filter(Booking.id == booking.id, Booking.status.in_(allowed_from))
            .update(values, synchronize_session=False)
        )
        if updated != 1:
            self.db.rollback()
            logger.warning(f"Booking {booking.id}: lost race moving to {new_status}")
            raise InvalidStateError(f"Booking status changed concurrently, cannot move to {new_status}")

        self.db.commit()
        self.db.refresh(booking)
        logger.info(f"Booking {booking.id} is now {new_status}")
        return booking

    def _get_for_provider(self, booking_id: int, provider_id: int) -> Booking:
        booking = (
            self.db.query(Booking)
            .filter(Booking.id == booking_id, Booking.provider_id == provider_id)
            .first()
        )
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    def _accept(self, booking: Booking, **values) -> Booking:
        booking = self._transition(
            booking, [BookingStatus.PENDING], BookingStatus.ACCEPTED, accepted_at=datetime.utcnow(), **values
        )
        dispatch(
            self.notifier,
            booking.customer_id,
            NotificationType.BOOKING,
            "Booking Accepted",
            f"Your booking request has been accepted by {booking.provider.name}",
            f"/customer/bookings/{booking.id}",
        )
        return booking

    def accept(self, booking_id: int, provider_id: int) -> Booking:
        return self._accept(self._get_for_provider(booking_id, provider_id))

    def _reject(self, booking: Booking, reason: Optional[str] = None, **values) -> Booking:
        booking = self._transition(
            booking,
            [BookingStatus.PENDING],
            BookingStatus.REJECTED,
            cancelled_at=datetime.utcnow(),
            cancellation_reason=reason,
            **values,
        )
        message = "Your booking request has been rejected."
        if reason:
            message += f" Reason: {reason}"
        dispatch(
            self.notifier,
            booking.customer_id,
            NotificationType.BOOKING,
            "Booking Rejected",
            message,
            "/customer/bookings",
        )
        return booking

    def reject(self, booking_id: int, provider_id: int, reason: Optional[str] = None) -> Booking:
        return self._reject(self._get_for_provider(booking_id, provider_id), reason)

    def cancel(self, booking_id: int, user_id: int, role: str, reason: Optional[str] = None) -> Booking:
        booking = self.get(booking_id)
        require_party(booking, user_id, role)
        return self._transition(
            booking,
            [BookingStatus.PENDING, BookingStatus.ACCEPTED],
            BookingStatus.CANCELLED,
            cancelled_at=datetime.utcnow(),
            cancellation_reason=reason,
        )

    def update_status(
        self,
        booking_id: int,
        user_id: int,
        role: str,
        new_status: str,
        notes: Optional[str] = None,
    ) -> Booking:
        """
        Generic status change used by both parties, following
        BOOKING_TRANSITIONS. Accepted/rejected are provider-only and go
        through the same path as accept/reject.
        Re-sending the current status only stores the notes.
        """
        if new_status not in BookingStatus.ALL:
            raise ValidationError(f"Unknown booking status: {new_status}")

        booking = self.get(booking_id)
        if role not in (UserRole.CUSTOMER, UserRole.PROVIDER):
            raise ForbiddenError("Only the booking's customer or provider can update it")
        require_party(booking, user_id, role)

        values = {}
        if notes:
            notes_field = "provider_notes" if role == UserRole.PROVIDER else "customer_notes"
            values[notes_field] = notes

        if new_status == booking.status:
            if not values:
                return booking
            self.db.query(Booking).filter(Booking.id == booking.id).update(values, synchronize_session=False)
            self.db.commit()
            self.db.refresh(booking)
            return booking

        if not can_transition(booking.status, new_status):
            logger.warning(f"Booking {booking.id}: illegal status update {booking.status} -> {new_status}")
            raise InvalidStateError(f"Booking cannot move from {booking.status} to {new_status}")

        # accepting and rejecting belong to the provider and carry their own side effects
        if new_status in (BookingStatus.ACCEPTED, BookingStatus.REJECTED):
            if role != UserRole.PROVIDER:
                logger.warning(f"Booking {booking.id}: customer {user_id} tried to set {new_status}")
                raise ForbiddenError("Only the provider can accept or reject a booking")
            if new_status == BookingStatus.ACCEPTED:
                return self._accept(booking, **values)
            return self._reject(booking, **values)

        if new_status == BookingStatus.COMPLETED:
            values["completed_at"] = datetime.utcnow()
        elif new_status == BookingStatus.CANCELLED:
            values["cancelled_at"] = datetime.utcnow()

        return self._transition(booking, [booking.status], new_status, **values)
