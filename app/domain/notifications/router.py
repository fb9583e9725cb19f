from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Profile
from .service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


class NotificationResponse(BaseModel):
    id: str
    type: str
    title: str
    message: str
    relatedId: Optional[str] = None
    data: Optional[dict] = None
    isRead: bool
    createdAt: Optional[datetime] = None


def _to_response(n) -> NotificationResponse:
    return NotificationResponse(
        id=n.id,
        type=n.type,
        title=n.title,
        message=n.message,
        relatedId=n.related_id,
        data=n.data,
        isRead=n.is_read,
        createdAt=n.created_at,
    )


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: Profile = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return [_to_response(n) for n in service.list(current_user, unread_only, limit)]


@router.get("/unread-count")
async def unread_count(
    current_user: Profile = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return {"unreadCount": service.unread_count(current_user)}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: str,
    current_user: Profile = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return _to_response(service.mark_read(current_user, notification_id))


@router.post("/read-all")
async def mark_all_read(
    current_user: Profile = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return {"updated": service.mark_all_read(current_user)}
