"""
Notification Repository - Data access layer for user notifications
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from domain.models import Notification


class NotificationRepository(BaseRepository[Notification]):
    """Repository for notification data access"""

    id_field = "notification_id"

    def __init__(self, db: Session):
        super().__init__(db, Notification)

    def get_for_user(self, notification_id: UUID, user_id: UUID) -> Optional[Notification]:
        """A notification only if it belongs to the given user"""
        return (
            self.db.query(Notification)
            .filter(
                Notification.notification_id == notification_id,
                Notification.user_id == user_id,
            )
            .first()
        )

    def list_for_user(
        self, user_id: UUID, unread_only: bool = False, limit: int = 50, offset: int = 0
    ) -> List[Notification]:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.read.is_(False))
        return (
            query.order_by(Notification.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    def count_unread(self, user_id: UUID) -> int:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.read.is_(False))
            .count()
        )

    def mark_all_read(self, user_id: UUID) -> int:
        count = (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.read.is_(False))
            .update({"read": True}, synchronize_session="fetch")
        )
        self.db.flush()
        return count
