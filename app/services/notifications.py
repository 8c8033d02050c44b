"""
Notification dispatch.

Booking, payment and review transitions announce themselves through a
NotificationDispatcher. Delivery is best-effort: `dispatch` is always called
after the business write has been committed, and a failing dispatcher is
logged and swallowed so it can never undo that write.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session, sessionmaker

from app.core.exceptions import DependencyError, NotFoundError
from app.db.models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Interface consumed by the booking, settlement and review services."""

    def send(self, user_id: int, category: str, title: str, message: str, link: Optional[str] = None) -> None:
        raise NotImplementedError


class DatabaseNotificationDispatcher(NotificationDispatcher):
    """Stores in-app notifications using its own session."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def send(self, user_id: int, category: str, title: str, message: str, link: Optional[str] = None) -> None:
        db = self.session_factory()
        try:
            db.add(Notification(user_id=user_id, category=category, title=title, message=message, link=link))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def dispatch(
    notifier: Optional[NotificationDispatcher],
    user_id: int,
    category: str,
    title: str,
    message: str,
    link: Optional[str] = None,
) -> bool:
    """Send one notification; returns False instead of raising on failure."""
    if notifier is None:
        return False
    try:
        notifier.send(user_id, category, title, message, link)
    except Exception as e:
        error = DependencyError(f"Failed to deliver '{title}' notification to user {user_id}: {e}")
        logger.warning(error.message)
        return False
    logger.debug(f"Notification '{title}' sent to user {user_id}")
    return True


# --------------------------
# Reading side (notification surface)
# --------------------------

def list_notifications(db: Session, user_id: int, limit: int = 10, skip: int = 0) -> list[Notification]:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def unread_count(db: Session, user_id: int) -> int:
    return db.query(Notification).filter(Notification.user_id == user_id, Notification.is_read.is_(False)).count()


def mark_as_read(db: Session, notification_id: int, user_id: int) -> Notification:
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )
    if not notification:
        raise NotFoundError("Notification not found")
    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_as_read(db: Session, user_id: int) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return updated
