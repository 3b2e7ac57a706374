"""Subscription routes"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
import logging
from uuid import UUID
from typing import List, Optional

from api.dependencies import get_current_caller, require_roles
from api.responses import APIResponse, success_response
from domain.enums import SubscriptionStatus, UserRole
from domain.models import get_db_session
from domain.schemas.billing_schemas import (
    SubscriptionCreate,
    SubscriptionResponse,
    SubscriptionStatusUpdate,
)
from services.access_policy import Caller
from services.subscription_service import SubscriptionService

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])
logger = logging.getLogger("canteen.api.subscriptions")

ADMINS = (UserRole.SCHOOL_ADMIN, UserRole.SUPER_ADMIN)


@router.get("", response_model=APIResponse[List[SubscriptionResponse]])
def list_subscriptions(
    student_id: Optional[UUID] = Query(None),
    status_filter: Optional[SubscriptionStatus] = Query(None, alias="status"),
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
):
    subscriptions = SubscriptionService.list_subscriptions(
        db, caller, student_id=student_id, status=status_filter
    )
    return success_response([SubscriptionResponse.model_validate(s) for s in subscriptions])


@router.get("/{subscription_id}", response_model=APIResponse[SubscriptionResponse])
def get_subscription(
    subscription_id: UUID,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
):
    subscription = SubscriptionService.get_subscription(db, caller, subscription_id)
    return success_response(SubscriptionResponse.model_validate(subscription))


@router.post(
    "",
    response_model=APIResponse[SubscriptionResponse],
    status_code=status.HTTP_201_CREATED,
)
def create_subscription(
    payload: SubscriptionCreate,
    caller: Caller = Depends(require_roles(UserRole.PARENT, *ADMINS)),
    db: Session = Depends(get_db_session),
):
    """Open a subscription; it stays PENDING_PAYMENT until a payment completes"""
    subscription = SubscriptionService.create_subscription(
        db,
        caller,
        payload.student_id,
        payload.start_date,
        payload.end_date,
        meal_plan=payload.meal_plan,
        price=payload.price,
    )
    return success_response(
        SubscriptionResponse.model_validate(subscription), "Subscription created"
    )


@router.put("/{subscription_id}/status", response_model=APIResponse[SubscriptionResponse])
def update_subscription_status(
    subscription_id: UUID,
    payload: SubscriptionStatusUpdate,
    caller: Caller = Depends(require_roles(*ADMINS)),
    db: Session = Depends(get_db_session),
):
    subscription = SubscriptionService.update_status(db, caller, subscription_id, payload.status)
    return success_response(
        SubscriptionResponse.model_validate(subscription), "Subscription status updated"
    )


@router.delete("/{subscription_id}", response_model=APIResponse[dict])
def delete_subscription(
    subscription_id: UUID,
    caller: Caller = Depends(require_roles(*ADMINS)),
    db: Session = Depends(get_db_session),
):
    SubscriptionService.delete_subscription(db, caller, subscription_id)
    return success_response({"subscription_id": str(subscription_id)}, "Subscription deleted")
