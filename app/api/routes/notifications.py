# app/api/routes/notifications.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from app.core.security import get_current_user
from app.db.base import get_db
from app.db.models.user import User
from app.schemas.notification import NotificationResponse, UnreadCount
from app.services import notifications

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/me", response_model=List[NotificationResponse])
def my_notifications(
    limit: int = Query(10, ge=1, le=100),
    skip: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return notifications.list_notifications(db, current_user.id, limit=limit, skip=skip)


@router.get("/me/unread-count", response_model=UnreadCount)
def my_unread_count(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return UnreadCount(unread=notifications.unread_count(db, current_user.id))


@router.post("/read-all")
def mark_all_read(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    updated = notifications.mark_all_as_read(db, current_user.id)
    return {"success": True, "updated": updated}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def mark_read(notification_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return notifications.mark_as_read(db, notification_id, current_user.id)
