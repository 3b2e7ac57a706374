from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from uuid import UUID

from domain.enums import NotificationType


class NotificationResponse(BaseModel):
    notification_id: UUID
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    related_student_id: Optional[UUID] = None
    related_menu_id: Optional[UUID] = None
    read: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UnreadCountResponse(BaseModel):
    count: int


class MarkAllReadResponse(BaseModel):
    updated: int
