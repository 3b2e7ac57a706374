"""
Menu model.

A menu is one meal (breakfast, lunch or dinner) of one school on one calendar
day. Rows generated by a single annual creation share an ``annual_key``.
"""

from sqlalchemy import (
    Column,
    Text,
    TIMESTAMP,
    Date,
    Boolean,
    ForeignKey,
    JSON,
    Uuid,
    UniqueConstraint,
    Index,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from domain.models.database import Base
from domain.enums import MealType, MenuStatus


class Menu(Base):
    """Daily menu entry, ad hoc or part of an annual series"""

    __tablename__ = "menu"
    __table_args__ = (
        # (school, meal type, calendar day) is the upsert key of the annual generator
        UniqueConstraint("school_id", "meal_type", "date", name="uq_menu_school_meal_day"),
        Index("ix_menu_annual_key", "annual_key"),
    )

    menu_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    school_id = Column(
        Uuid, ForeignKey("school.school_id", ondelete="CASCADE"), nullable=False
    )
    date = Column(Date, nullable=False)
    meal_type = Column(SQLEnum(MealType, name="meal_type"), nullable=False)
    description = Column(Text)
    items = Column(JSON, default=list)
    allergens = Column(JSON, default=list)
    status = Column(
        SQLEnum(MenuStatus, name="menu_status"),
        nullable=False,
        default=MenuStatus.PENDING,
    )
    created_by = Column(Uuid, ForeignKey("app_user.user_id"), nullable=False)
    approved_by = Column(Uuid, ForeignKey("app_user.user_id"))
    approved_at = Column(TIMESTAMP(timezone=True))
    rejection_reason = Column(Text)
    annual_key = Column(Text)
    is_annual = Column(Boolean, nullable=False, default=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    school = relationship("School")
    creator = relationship("AppUser", foreign_keys=[created_by])
    approver = relationship("AppUser", foreign_keys=[approved_by])

    @property
    def is_series(self) -> bool:
        # a flag without a key cannot be fanned out, so the key decides
        return bool(self.annual_key)

    @property
    def school_name(self):
        return self.school.name if self.school is not None else None

    @property
    def creator_name(self):
        return self.creator.full_name if self.creator is not None else None

    @property
    def approver_name(self):
        return self.approver.full_name if self.approver is not None else None
