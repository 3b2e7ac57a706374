"""Payment routes"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
import logging
from uuid import UUID
from typing import List, Optional

from api.dependencies import require_roles
from api.responses import APIResponse, success_response
from domain.enums import PaymentStatus, UserRole
from domain.models import get_db_session
from domain.schemas.billing_schemas import (
    PaymentCreate,
    PaymentResponse,
    PaymentResult,
    PaymentStatusSummary,
    PaymentValidateRequest,
    PaymentVerifyRequest,
)
from services.access_policy import Caller
from services.payment_service import PaymentService

router = APIRouter(prefix="/payments", tags=["Payments"])
logger = logging.getLogger("canteen.api.payments")

ADMINS = (UserRole.SCHOOL_ADMIN, UserRole.SUPER_ADMIN)
PAYMENT_READERS = (UserRole.PARENT, *ADMINS)


def _result(payment, subscription_status) -> PaymentResult:
    return PaymentResult(
        payment=PaymentResponse.model_validate(payment),
        subscription_status=subscription_status,
    )


@router.get("", response_model=APIResponse[List[PaymentResponse]])
def list_payments(
    subscription_id: Optional[UUID] = Query(None),
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    caller: Caller = Depends(require_roles(*PAYMENT_READERS)),
    db: Session = Depends(get_db_session),
):
    payments = PaymentService.list_payments(
        db, caller, subscription_id=subscription_id, status=status_filter
    )
    return success_response([PaymentResponse.model_validate(p) for p in payments])


@router.get(
    "/subscription/{subscription_id}", response_model=APIResponse[List[PaymentResponse]]
)
def list_subscription_payments(
    subscription_id: UUID,
    caller: Caller = Depends(require_roles(*PAYMENT_READERS)),
    db: Session = Depends(get_db_session),
):
    payments = PaymentService.list_for_subscription(db, caller, subscription_id)
    return success_response([PaymentResponse.model_validate(p) for p in payments])


@router.get("/{payment_id}", response_model=APIResponse[PaymentResponse])
def get_payment(
    payment_id: UUID,
    caller: Caller = Depends(require_roles(*PAYMENT_READERS)),
    db: Session = Depends(get_db_session),
):
    payment = PaymentService.get_payment(db, caller, payment_id)
    return success_response(PaymentResponse.model_validate(payment))


@router.post(
    "", response_model=APIResponse[PaymentResult], status_code=status.HTTP_201_CREATED
)
def create_payment(
    payload: PaymentCreate,
    caller: Caller = Depends(require_roles(UserRole.PARENT)),
    db: Session = Depends(get_db_session),
):
    """
    Pay for a subscription.

    Cash is confirmed immediately. Other methods return a 4-digit
    verification code and wait for the school to validate the payment.
    """
    payment, subscription_status = PaymentService.create_payment(
        db,
        caller,
        payload.subscription_id,
        payload.amount,
        payload.method,
        reference=payload.reference,
    )
    message = (
        "Payment recorded"
        if payment.status == PaymentStatus.COMPLETED
        else "Payment awaiting validation"
    )
    return success_response(_result(payment, subscription_status), message)


@router.get("/{payment_id}/verify", response_model=APIResponse[PaymentStatusSummary])
def get_payment_status(
    payment_id: UUID,
    caller: Caller = Depends(require_roles(*PAYMENT_READERS)),
    db: Session = Depends(get_db_session),
):
    summary = PaymentService.payment_status_summary(db, caller, payment_id)
    return success_response(PaymentStatusSummary(**summary))


@router.put("/{payment_id}/verify", response_model=APIResponse[PaymentResult])
def verify_payment(
    payment_id: UUID,
    payload: PaymentVerifyRequest,
    caller: Caller = Depends(require_roles(*PAYMENT_READERS)),
    db: Session = Depends(get_db_session),
):
    payment, subscription_status = PaymentService.verify_payment(
        db, caller, payment_id, payload.status, payload.verification_code
    )
    return success_response(_result(payment, subscription_status), "Payment verified")


@router.put("/{payment_id}/validate", response_model=APIResponse[PaymentResult])
def validate_payment(
    payment_id: UUID,
    payload: PaymentValidateRequest,
    caller: Caller = Depends(require_roles(*ADMINS)),
    db: Session = Depends(get_db_session),
):
    payment, subscription_status = PaymentService.validate_payment(
        db, caller, payment_id, payload.status
    )
    return success_response(_result(payment, subscription_status), "Payment validated")


@router.post(
    "/{payment_id}/simulate-confirmation", response_model=APIResponse[PaymentResult]
)
def simulate_confirmation(
    payment_id: UUID,
    caller: Caller = Depends(require_roles(*ADMINS)),
    db: Session = Depends(get_db_session),
):
    """Confirm a payment without a provider; disabled in production by default"""
    payment, subscription_status = PaymentService.simulate_confirmation(db, caller, payment_id)
    return success_response(_result(payment, subscription_status), "Payment confirmed (simulated)")
