import datetime as dt
from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID
from decimal import Decimal

from domain.enums import MealPlan, PaymentMethod, PaymentStatus, SubscriptionStatus


class SubscriptionCreate(BaseModel):
    """Schema for opening a subscription"""

    student_id: Optional[UUID] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    meal_plan: MealPlan = MealPlan.STANDARD
    price: Optional[Decimal] = Field(None, description="Price of the whole period")


class SubscriptionStatusUpdate(BaseModel):
    status: SubscriptionStatus


class SubscriptionResponse(BaseModel):
    subscription_id: UUID
    student_id: UUID
    start_date: dt.date
    end_date: dt.date
    meal_plan: MealPlan
    price: Decimal
    status: SubscriptionStatus
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    model_config = {"from_attributes": True}


class PaymentCreate(BaseModel):
    """Schema for a parent's payment"""

    subscription_id: Optional[UUID] = None
    amount: Optional[Decimal] = None
    method: Optional[PaymentMethod] = None
    reference: Optional[str] = Field(
        None, description="External reference; generated when omitted"
    )


class PaymentVerifyRequest(BaseModel):
    status: Optional[str] = Field(
        None, description="Outcome word, e.g. SUCCESS, VALIDATED, DECLINED"
    )
    verification_code: Optional[str] = None


class PaymentValidateRequest(BaseModel):
    status: Optional[str] = None


class PaymentResponse(BaseModel):
    payment_id: UUID
    subscription_id: UUID
    parent_id: UUID
    amount: Decimal
    method: PaymentMethod
    status: PaymentStatus
    reference: Optional[str] = None
    verification_code: Optional[str] = None
    paid_at: Optional[dt.datetime] = None
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    model_config = {"from_attributes": True}


class PaymentResult(BaseModel):
    """A payment together with the subscription status it produced"""

    payment: PaymentResponse
    subscription_status: Optional[SubscriptionStatus] = None


class PaymentStatusSummary(BaseModel):
    payment_id: UUID
    status: PaymentStatus
    amount: Decimal
    method: PaymentMethod
    reference: Optional[str] = None
    paid_at: Optional[dt.datetime] = None
    message: str
