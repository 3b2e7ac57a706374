"""
Notification model - append-only event record addressed to one user.
"""

from sqlalchemy import Column, Text, TIMESTAMP, Boolean, ForeignKey, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from domain.models.database import Base
from domain.enums import NotificationType


class Notification(Base):
    __tablename__ = "notification"

    notification_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid, ForeignKey("app_user.user_id", ondelete="CASCADE"), nullable=False
    )
    type = Column(SQLEnum(NotificationType, name="notification_type"), nullable=False)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    related_student_id = Column(Uuid)
    # no FK: the record outlives a deleted menu series
    related_menu_id = Column(Uuid)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user = relationship("AppUser")
