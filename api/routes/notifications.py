"""Notification inbox routes; every caller only sees their own notifications"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
import logging
from uuid import UUID
from typing import List, Optional

from api.dependencies import get_current_caller
from api.responses import APIResponse, success_response
from domain.models import get_db_session
from domain.schemas.notification_schemas import (
    MarkAllReadResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from services.access_policy import Caller
from services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])
logger = logging.getLogger("canteen.api.notifications")


@router.get("", response_model=APIResponse[List[NotificationResponse]])
def list_notifications(
    unread_only: bool = Query(False),
    limit: Optional[int] = Query(None, description="1 to 200, default 50"),
    offset: int = Query(0),
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
):
    notifications = NotificationService.list_notifications(
        db, caller.id, unread_only=unread_only, limit=limit, offset=offset
    )
    return success_response([NotificationResponse.model_validate(n) for n in notifications])


@router.get("/unread-count", response_model=APIResponse[UnreadCountResponse])
def unread_count(
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
):
    count = NotificationService.unread_count(db, caller.id)
    return success_response(UnreadCountResponse(count=count))


@router.put("/read-all", response_model=APIResponse[MarkAllReadResponse])
def mark_all_read(
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
):
    updated = NotificationService.mark_all_as_read(db, caller.id)
    return success_response(MarkAllReadResponse(updated=updated), "All notifications read")


@router.put("/{notification_id}/read", response_model=APIResponse[NotificationResponse])
def mark_read(
    notification_id: UUID,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
):
    notification = NotificationService.mark_as_read(db, caller.id, notification_id)
    return success_response(NotificationResponse.model_validate(notification))


@router.delete("/{notification_id}", response_model=APIResponse[dict])
def delete_notification(
    notification_id: UUID,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
):
    NotificationService.delete_notification(db, caller.id, notification_id)
    return success_response(
        {"notification_id": str(notification_id)}, "Notification deleted"
    )
