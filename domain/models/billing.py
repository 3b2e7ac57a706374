"""
Subscription and payment models.
"""

from sqlalchemy import (
    Column,
    Text,
    TIMESTAMP,
    Date,
    ForeignKey,
    Numeric,
    Uuid,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from domain.models.database import Base
from domain.enums import MealPlan, SubscriptionStatus, PaymentMethod, PaymentStatus


class Subscription(Base):
    """A student's meal plan over a validity window"""

    __tablename__ = "subscription"

    subscription_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(
        Uuid, ForeignKey("student.student_id", ondelete="CASCADE"), nullable=False
    )
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    meal_plan = Column(
        SQLEnum(MealPlan, name="meal_plan"), nullable=False, default=MealPlan.STANDARD
    )
    price = Column(Numeric(12, 2), nullable=False)
    # derived from payments; see services.payment_service.sync_subscription_for_payment
    status = Column(
        SQLEnum(SubscriptionStatus, name="subscription_status"),
        nullable=False,
        default=SubscriptionStatus.PENDING_PAYMENT,
    )
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    student = relationship("Student", back_populates="subscriptions")
    payments = relationship("Payment", back_populates="subscription")


class Payment(Base):
    """One payment transaction of a parent against a subscription"""

    __tablename__ = "payment"

    payment_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    subscription_id = Column(
        Uuid, ForeignKey("subscription.subscription_id"), nullable=False
    )
    parent_id = Column(Uuid, ForeignKey("app_user.user_id"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    method = Column(SQLEnum(PaymentMethod, name="payment_method"), nullable=False)
    status = Column(
        SQLEnum(PaymentStatus, name="payment_status"),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    reference = Column(Text)
    verification_code = Column(Text)
    paid_at = Column(TIMESTAMP(timezone=True))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    subscription = relationship("Subscription", back_populates="payments")
    parent = relationship("AppUser")
