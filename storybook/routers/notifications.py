from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
import logging

from storybook.core.auth import get_current_user
from storybook.database import get_db
from storybook.models import Notification, User
from storybook.schemas.notification import MessageResponse, NotificationResponse
from storybook.services import notification_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _get_notification_or_404(db: Session, user: User, notification_id: int) -> Notification:
    notification = notification_service.get_user_notification(db, user.id, notification_id)
    if not notification:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found",
        )
    return notification


@router.get("", response_model=list[NotificationResponse])
def get_notifications(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Latest notifications for the user. Expired new-story announcements are dropped first."""
    return notification_service.list_notifications(db, user.id)


@router.post("/mark-all-read", response_model=MessageResponse)
def mark_all_as_read(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    updated = notification_service.mark_all_read(db, user.id)
    logger.debug("Marked %d notifications read for user %s", updated, user.id)
    return MessageResponse(message="All notifications marked as read")


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_as_read(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notification = _get_notification_or_404(db, user, notification_id)
    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification


@router.delete("/{notification_id}", response_model=MessageResponse)
def delete_notification(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notification = _get_notification_or_404(db, user, notification_id)
    db.delete(notification)
    db.commit()
    return MessageResponse(message="Notification deleted")
