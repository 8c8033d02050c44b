# app/api/deps.py
from fastapi import Depends
from sqlalchemy.orm import Session

from app.db.base import SessionLocal, get_db
from app.services.booking_service import BookingService
from app.services.notifications import DatabaseNotificationDispatcher, NotificationDispatcher
from app.services.rating_service import ReviewService
from app.services.settlement_service import SettlementService


def get_notifier() -> NotificationDispatcher:
    return DatabaseNotificationDispatcher(SessionLocal)


def get_booking_service(
    db: Session = Depends(get_db), notifier: NotificationDispatcher = Depends(get_notifier)
) -> BookingService:
    return BookingService(db, notifier)


def get_settlement_service(
    db: Session = Depends(get_db), notifier: NotificationDispatcher = Depends(get_notifier)
) -> SettlementService:
    return SettlementService(db, notifier)


def get_review_service(
    db: Session = Depends(get_db), notifier: NotificationDispatcher = Depends(get_notifier)
) -> ReviewService:
    return ReviewService(db, notifier)
