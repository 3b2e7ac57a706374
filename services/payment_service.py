"""
Payment lifecycle and the subscription status derived from it.

A payment outcome reaches the service as free text (``"success"``,
``"Validated"``, ``"declined"`` ...). It is normalized to COMPLETED or FAILED
before anything is written; the subscription then follows the outcome:
COMPLETED activates it, anything else puts it back to PENDING_PAYMENT.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple
import logging
import secrets
import uuid

from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import (
    ForbiddenError,
    NotFoundError,
    ServiceValidationError,
    StateError,
)
from domain.enums import PaymentMethod, PaymentStatus, SubscriptionStatus, UserRole
from domain.models import Payment
from repositories import PaymentRepository, SubscriptionRepository
from services.access_policy import ADMIN_ROLES, Caller, resolve_accessible_schools

logger = logging.getLogger("canteen.payments")

_COMPLETED_WORDS = frozenset({"COMPLETED", "SUCCESS", "VALIDATED", "APPROVED"})
_FAILED_WORDS = frozenset({"FAILED", "REJECTED", "DECLINED"})

VERIFY_ROLES = frozenset({UserRole.PARENT, UserRole.SCHOOL_ADMIN, UserRole.SUPER_ADMIN})
VALIDATABLE_STATUSES = frozenset(
    {
        PaymentStatus.WAITING_ADMIN_VALIDATION,
        PaymentStatus.PENDING,
        PaymentStatus.COMPLETED,
        PaymentStatus.FAILED,
    }
)

_STATUS_MESSAGES = {
    PaymentStatus.COMPLETED: "Payment confirmed",
    PaymentStatus.PENDING: "Awaiting confirmation",
    PaymentStatus.WAITING_ADMIN_VALIDATION: "Awaiting validation by the school",
    PaymentStatus.FAILED: "Payment failed",
    PaymentStatus.REFUNDED: "Payment refunded",
}


def normalize_outcome(raw: Optional[str]) -> Optional[PaymentStatus]:
    """Map an outcome word to COMPLETED or FAILED; None when it is not recognized"""
    word = (raw or "").strip().upper()
    if word in _COMPLETED_WORDS:
        return PaymentStatus.COMPLETED
    if word in _FAILED_WORDS:
        return PaymentStatus.FAILED
    return None


def require_outcome(raw: Optional[str]) -> PaymentStatus:
    outcome = normalize_outcome(raw)
    if outcome is None:
        raise ServiceValidationError(
            f"Unrecognized payment status: {raw!r}",
            details={"accepted": sorted(_COMPLETED_WORDS | _FAILED_WORDS)},
        )
    return outcome


def subscription_status_for(outcome: PaymentStatus) -> SubscriptionStatus:
    if outcome == PaymentStatus.COMPLETED:
        return SubscriptionStatus.ACTIVE
    return SubscriptionStatus.PENDING_PAYMENT


def sync_subscription_for_payment(
    db: Session, subscription_id: uuid.UUID, outcome: PaymentStatus
) -> SubscriptionStatus:
    """
    Overwrite the subscription status from a payment outcome.

    Last writer wins: two payments of one subscription settled concurrently
    leave the status of whichever commits last.
    """
    status = subscription_status_for(outcome)
    SubscriptionRepository(db).set_status(subscription_id, status, datetime.now(timezone.utc))
    logger.info("Subscription %s -> %s", subscription_id, status.value)
    return status


def generate_verification_code() -> str:
    return str(secrets.randbelow(9000) + 1000)


def generate_reference(method: PaymentMethod) -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"PAY-{method.value}-{stamp}-{secrets.token_hex(2).upper()}"


def _apply_outcome(payment: Payment, outcome: PaymentStatus) -> None:
    payment.status = outcome
    payment.paid_at = datetime.now(timezone.utc) if outcome == PaymentStatus.COMPLETED else None


def _ensure_visible(db: Session, caller: Caller, payment: Payment) -> None:
    if caller.role == UserRole.PARENT:
        if payment.parent_id != caller.id:
            raise ForbiddenError("Access to this payment is not allowed")
        return
    scope = resolve_accessible_schools(db, caller)
    if not scope.allows(payment.subscription.student.school_id):
        raise ForbiddenError("Access to this payment is not allowed")


class PaymentService:
    @staticmethod
    def get_payment(db: Session, caller: Caller, payment_id: uuid.UUID) -> Payment:
        payment = PaymentRepository(db).get_by_id(payment_id)
        if not payment:
            raise NotFoundError("Payment not found")
        _ensure_visible(db, caller, payment)
        return payment

    @staticmethod
    def list_payments(
        db: Session,
        caller: Caller,
        subscription_id: Optional[uuid.UUID] = None,
        status: Optional[PaymentStatus] = None,
    ) -> List[Payment]:
        """Parents list their own payments, admins those of their schools' students"""
        repo = PaymentRepository(db)
        if caller.role == UserRole.PARENT:
            return repo.find(parent_id=caller.id, subscription_id=subscription_id, status=status)

        scope = resolve_accessible_schools(db, caller)
        if scope.is_empty:
            return []
        return repo.find(
            subscription_id=subscription_id, status=status, school_ids=scope.filter_ids()
        )

    @staticmethod
    def list_for_subscription(
        db: Session, caller: Caller, subscription_id: uuid.UUID
    ) -> List[Payment]:
        if not SubscriptionRepository(db).exists(subscription_id):
            raise NotFoundError("Subscription not found")
        return PaymentService.list_payments(db, caller, subscription_id=subscription_id)

    @staticmethod
    def payment_status_summary(db: Session, caller: Caller, payment_id: uuid.UUID) -> Dict[str, Any]:
        payment = PaymentService.get_payment(db, caller, payment_id)
        return {
            "payment_id": payment.payment_id,
            "status": payment.status,
            "amount": payment.amount,
            "method": payment.method,
            "reference": payment.reference,
            "paid_at": payment.paid_at,
            "message": _STATUS_MESSAGES[payment.status],
        }

    @staticmethod
    def create_payment(
        db: Session,
        caller: Caller,
        subscription_id: Optional[uuid.UUID],
        amount,
        method,
        reference: Optional[str] = None,
    ) -> Tuple[Payment, SubscriptionStatus]:
        """
        Record a parent's payment for a subscription of one of their children.

        Cash is settled on the spot and activates the subscription. Any other
        method waits for a school administrator, who checks the returned
        4-digit verification code.

        Returns:
            (payment, resulting subscription status)
        """
        if not subscription_id or amount is None or method is None:
            raise ServiceValidationError("Subscription, amount and method are required")
        try:
            amount = Decimal(str(amount))
        except InvalidOperation:
            raise ServiceValidationError(f"Invalid amount: {amount}")
        if not amount.is_finite() or amount <= 0:
            raise ServiceValidationError("Amount must be positive")
        try:
            method = PaymentMethod(method)
        except ValueError:
            raise ServiceValidationError(f"Invalid payment method: {method}")

        if caller.role != UserRole.PARENT:
            raise ForbiddenError("Only parents can create payments")
        subscription = SubscriptionRepository(db).get_by_id(subscription_id)
        if not subscription:
            raise NotFoundError("Subscription not found")
        if subscription.student.parent_id != caller.id:
            raise ForbiddenError("This subscription belongs to another family")

        payment = Payment(
            subscription_id=subscription_id,
            parent_id=caller.id,
            amount=amount,
            method=method,
            reference=(reference or "").strip() or generate_reference(method),
        )
        if method == PaymentMethod.CASH:
            _apply_outcome(payment, PaymentStatus.COMPLETED)
        else:
            payment.status = PaymentStatus.WAITING_ADMIN_VALIDATION
            payment.verification_code = generate_verification_code()

        try:
            PaymentRepository(db).add(payment)
            outcome = PaymentStatus.COMPLETED if method == PaymentMethod.CASH else PaymentStatus.PENDING
            sub_status = sync_subscription_for_payment(db, subscription_id, outcome)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(
            "Payment %s created: %s %s -> %s",
            payment.payment_id,
            method.value,
            amount,
            payment.status.value,
        )
        return payment, sub_status

    @staticmethod
    def verify_payment(
        db: Session,
        caller: Caller,
        payment_id: uuid.UUID,
        raw_status: Optional[str],
        verification_code: Optional[str] = None,
    ) -> Tuple[Payment, Optional[SubscriptionStatus]]:
        """
        Record a payment outcome reported by a parent or an administrator.

        Only administrator confirmations move the subscription; a parent's
        report alone changes the payment row.

        Returns:
            (payment, subscription status or None when it was left untouched)
        """
        if caller.role not in VERIFY_ROLES:
            raise ForbiddenError("Not allowed to verify payments")
        outcome = require_outcome(raw_status)

        payment = PaymentService.get_payment(db, caller, payment_id)
        if payment.status == PaymentStatus.REFUNDED:
            raise StateError("A refunded payment cannot be verified")
        if (
            verification_code is not None
            and payment.method != PaymentMethod.CASH
            and str(verification_code).strip() != (payment.verification_code or "")
        ):
            raise ServiceValidationError("Verification code does not match")

        sub_status = None
        try:
            _apply_outcome(payment, outcome)
            if caller.role in ADMIN_ROLES:
                sub_status = sync_subscription_for_payment(db, payment.subscription_id, outcome)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("Payment %s verified by %s: %s", payment_id, caller.id, outcome.value)
        return payment, sub_status

    @staticmethod
    def validate_payment(
        db: Session, caller: Caller, payment_id: uuid.UUID, raw_status: Optional[str]
    ) -> Tuple[Payment, SubscriptionStatus]:
        """Administrator decision on a payment; always propagates to the subscription"""
        if caller.role not in ADMIN_ROLES:
            raise ForbiddenError("Only administrators can validate payments")
        outcome = require_outcome(raw_status)

        payment = PaymentService.get_payment(db, caller, payment_id)
        if payment.status not in VALIDATABLE_STATUSES:
            raise StateError(
                f"Payment cannot be validated from {payment.status.value}",
                details={"status": payment.status.value},
            )

        try:
            _apply_outcome(payment, outcome)
            sub_status = sync_subscription_for_payment(db, payment.subscription_id, outcome)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("Payment %s validated by %s: %s", payment_id, caller.id, outcome.value)
        return payment, sub_status

    @staticmethod
    def simulate_confirmation(
        db: Session, caller: Caller, payment_id: uuid.UUID
    ) -> Tuple[Payment, SubscriptionStatus]:
        """Force a payment to COMPLETED, for demos and manual testing"""
        if not settings.simulation_allowed():
            raise ForbiddenError("Payment simulation is disabled")
        if caller.role not in ADMIN_ROLES:
            raise ForbiddenError("Only administrators can simulate payments")

        payment = PaymentService.get_payment(db, caller, payment_id)
        try:
            _apply_outcome(payment, PaymentStatus.COMPLETED)
            sub_status = sync_subscription_for_payment(
                db, payment.subscription_id, PaymentStatus.COMPLETED
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.warning("Payment %s confirmed by simulation (user %s)", payment_id, caller.id)
        return payment, sub_status
