"""
User, school and student models.

These rows are provisioned outside this service; the core only reads them to
resolve a caller's role and school affiliation.
"""

from sqlalchemy import (
    Column,
    Text,
    TIMESTAMP,
    ForeignKey,
    JSON,
    Uuid,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from domain.models.database import Base
from domain.enums import UserRole


class AppUser(Base):
    """User account model"""

    __tablename__ = "app_user"

    user_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(Text, unique=True, nullable=False)
    role = Column(SQLEnum(UserRole, name="user_role"), nullable=False)
    first_name = Column(Text, nullable=False)
    last_name = Column(Text, nullable=False)
    phone = Column(Text)
    school_id = Column(Uuid, ForeignKey("school.school_id", ondelete="SET NULL"))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    school = relationship("School", foreign_keys=[school_id])
    children = relationship("Student", back_populates="parent")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class School(Base):
    """A school served by the canteen; admin_id is unique by convention only"""

    __tablename__ = "school"

    school_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    address = Column(Text)
    city = Column(Text)
    admin_id = Column(
        Uuid,
        ForeignKey(
            "app_user.user_id",
            ondelete="SET NULL",
            use_alter=True,
            name="fk_school_admin_id",
        ),
    )
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    admin = relationship("AppUser", foreign_keys=[admin_id])
    students = relationship("Student", back_populates="school")


class Student(Base):
    """Pupil enrolled in exactly one school, optionally linked to a parent"""

    __tablename__ = "student"

    student_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    first_name = Column(Text, nullable=False)
    last_name = Column(Text, nullable=False)
    class_name = Column(Text)
    school_id = Column(
        Uuid, ForeignKey("school.school_id", ondelete="CASCADE"), nullable=False
    )
    parent_id = Column(Uuid, ForeignKey("app_user.user_id", ondelete="SET NULL"))
    allergies = Column(JSON, default=list)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    school = relationship("School", back_populates="students")
    parent = relationship("AppUser", back_populates="children")
    subscriptions = relationship("Subscription", back_populates="student")
