from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
import logging
import uuid

from domain.models import Notification
from domain.enums import NotificationType
from repositories import NotificationRepository
from app.exceptions import NotFoundError

logger = logging.getLogger("canteen.notifications")

MAX_PAGE_SIZE = 200
DEFAULT_PAGE_SIZE = 50


class NotificationService:
    @staticmethod
    def notify(
        db: Session,
        user_id: Optional[uuid.UUID],
        type: NotificationType,
        title: str,
        message: str,
        related_menu_id: Optional[uuid.UUID] = None,
        related_student_id: Optional[uuid.UUID] = None,
    ) -> Optional[Notification]:
        """
        Append a notification for a user.

        Best-effort: callers commit their own change first, so a failure here
        is rolled back and logged without undoing the primary mutation.

        Returns:
            The stored notification, or None when nothing was recorded
        """
        if user_id is None:
            return None
        try:
            notification = Notification(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                related_menu_id=related_menu_id,
                related_student_id=related_student_id,
                read=False,
            )
            db.add(notification)
            db.commit()
            return notification
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(
                "Could not record %s notification for user %s: %s", type.value, user_id, e
            )
            return None

    @staticmethod
    def list_notifications(
        db: Session,
        user_id: uuid.UUID,
        unread_only: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Notification]:
        if limit is None:
            limit = DEFAULT_PAGE_SIZE
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        offset = max(offset, 0)
        return NotificationRepository(db).list_for_user(
            user_id, unread_only=unread_only, limit=limit, offset=offset
        )

    @staticmethod
    def unread_count(db: Session, user_id: uuid.UUID) -> int:
        return NotificationRepository(db).count_unread(user_id)

    @staticmethod
    def mark_as_read(db: Session, user_id: uuid.UUID, notification_id: uuid.UUID) -> Notification:
        repo = NotificationRepository(db)
        notification = repo.get_for_user(notification_id, user_id)
        if not notification:
            raise NotFoundError("Notification not found or access denied")
        notification.read = True
        db.commit()
        return notification

    @staticmethod
    def mark_all_as_read(db: Session, user_id: uuid.UUID) -> int:
        count = NotificationRepository(db).mark_all_read(user_id)
        db.commit()
        return count

    @staticmethod
    def delete_notification(db: Session, user_id: uuid.UUID, notification_id: uuid.UUID) -> None:
        repo = NotificationRepository(db)
        notification = repo.get_for_user(notification_id, user_id)
        if not notification:
            raise NotFoundError("Notification not found or access denied")
        repo.delete(notification)
        db.commit()
