from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from jobboard.dependencies.auth import get_current_user
from jobboard.dependencies.services import get_notification_dispatcher
from jobboard.models.user import User
from jobboard.schemas.notification import NotificationOut, UnreadCountOut
from jobboard.services.notifications import NotificationDispatcher


router = APIRouter(prefix="/notifications", tags=["notifications"], dependencies=[Depends(get_current_user)])


@router.get("", response_model=list[NotificationOut])
def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    return notifier.list_for_user(user.id, unread_only=unread_only, limit=limit)


@router.get("/unread-count", response_model=UnreadCountOut)
def unread_count(
    user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    return {"unread": notifier.unread_count(user.id)}


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_notification_read(
    notification_id: int,
    user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    return notifier.mark_read(notification_id, user.id)
