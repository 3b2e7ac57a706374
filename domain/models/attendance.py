"""
Attendance model - whether a student took a given menu's meal.
"""

from sqlalchemy import (
    Column,
    Text,
    TIMESTAMP,
    Date,
    Boolean,
    ForeignKey,
    Uuid,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from domain.models.database import Base


class Attendance(Base):
    """One mark per student and menu"""

    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("student_id", "menu_id", name="uq_attendance_student_menu"),
        Index("ix_attendance_student_date", "student_id", "date"),
    )

    attendance_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(
        Uuid, ForeignKey("student.student_id", ondelete="CASCADE"), nullable=False
    )
    menu_id = Column(Uuid, ForeignKey("menu.menu_id", ondelete="CASCADE"), nullable=False)
    # copied from the menu so history reads need no join
    date = Column(Date, nullable=False)
    present = Column(Boolean, nullable=False)
    justified = Column(Boolean, nullable=False, default=False)
    reason = Column(Text)
    marked_by = Column(Uuid, ForeignKey("app_user.user_id"), nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    student = relationship("Student")
    menu = relationship("Menu")
    marker = relationship("AppUser")

    @property
    def student_name(self):
        if self.student is None:
            return None
        return f"{self.student.first_name} {self.student.last_name}".strip()

    @property
    def meal_type(self):
        return self.menu.meal_type if self.menu is not None else None

    @property
    def menu_description(self):
        return self.menu.description if self.menu is not None else None
