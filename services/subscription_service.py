from typing import List, Optional
from sqlalchemy.orm import Session
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
import logging
import uuid

from domain.models import Subscription
from domain.enums import MealPlan, SubscriptionStatus, UserRole
from repositories import PaymentRepository, StudentRepository, SubscriptionRepository
from app.exceptions import ForbiddenError, NotFoundError, ServiceValidationError, StateError
from services.access_policy import ADMIN_ROLES, Caller, resolve_accessible_schools
from services.menu_recurrence import to_calendar_day

logger = logging.getLogger("canteen.subscriptions")


def _ensure_visible(db: Session, caller: Caller, subscription: Subscription) -> None:
    student = subscription.student
    if caller.role == UserRole.PARENT:
        allowed = student.parent_id == caller.id
    else:
        allowed = resolve_accessible_schools(db, caller).allows(student.school_id)
    if not allowed:
        raise ForbiddenError("Access to this subscription is not allowed")


class SubscriptionService:
    @staticmethod
    def create_subscription(
        db: Session,
        caller: Caller,
        student_id: Optional[uuid.UUID],
        start_date,
        end_date,
        meal_plan=MealPlan.STANDARD,
        price=None,
    ) -> Subscription:
        """
        Open a subscription for a student, waiting for its first payment.

        Parents subscribe their own children; administrators any student of
        their schools.

        Raises:
            ServiceValidationError: If a field is missing or the window is inverted
            NotFoundError: If the student does not exist
            ForbiddenError: If the student is outside the caller's reach
        """
        if not student_id or start_date is None or end_date is None or price is None:
            raise ServiceValidationError("Student, start date, end date and price are required")
        start = to_calendar_day(start_date)
        end = to_calendar_day(end_date)
        if end < start:
            raise ServiceValidationError("End date must not be before start date")
        try:
            price = Decimal(str(price))
        except InvalidOperation:
            raise ServiceValidationError(f"Invalid price: {price}")
        if not price.is_finite() or price <= 0:
            raise ServiceValidationError("Price must be positive")
        try:
            meal_plan = MealPlan(meal_plan or MealPlan.STANDARD)
        except ValueError:
            raise ServiceValidationError(f"Invalid meal plan: {meal_plan}")

        student = StudentRepository(db).get_by_id(student_id)
        if not student:
            raise NotFoundError("Student not found")
        if caller.role == UserRole.PARENT:
            if student.parent_id != caller.id:
                raise ForbiddenError("You can only subscribe your own children")
        elif not resolve_accessible_schools(db, caller).allows(student.school_id):
            raise ForbiddenError("Access to this school is not allowed")
        if student.parent_id is None:
            raise ServiceValidationError("Student is not linked to a parent")

        subscription = Subscription(
            student_id=student_id,
            start_date=start,
            end_date=end,
            meal_plan=meal_plan,
            price=price,
            status=SubscriptionStatus.PENDING_PAYMENT,
        )
        try:
            SubscriptionRepository(db).add(subscription)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(
            "Subscription %s created for student %s (%s)",
            subscription.subscription_id,
            student_id,
            meal_plan.value,
        )
        return SubscriptionRepository(db).get_by_id(subscription.subscription_id)

    @staticmethod
    def get_subscription(db: Session, caller: Caller, subscription_id: uuid.UUID) -> Subscription:
        subscription = SubscriptionRepository(db).get_by_id(subscription_id)
        if not subscription:
            raise NotFoundError("Subscription not found")
        _ensure_visible(db, caller, subscription)
        return subscription

    @staticmethod
    def list_subscriptions(
        db: Session,
        caller: Caller,
        student_id: Optional[uuid.UUID] = None,
        status: Optional[SubscriptionStatus] = None,
    ) -> List[Subscription]:
        students = StudentRepository(db)
        if caller.role == UserRole.PARENT:
            student_ids = [s.student_id for s in students.get_by_parent(caller.id)]
        else:
            scope = resolve_accessible_schools(db, caller)
            if scope.unrestricted:
                student_ids = None
            else:
                student_ids = students.ids_in_schools(scope.school_ids)

        return SubscriptionRepository(db).find(
            student_ids=student_ids, student_id=student_id, status=status
        )

    @staticmethod
    def update_status(
        db: Session, caller: Caller, subscription_id: uuid.UUID, status
    ) -> Subscription:
        """Manual status edit by an administrator, e.g. to cancel or expire"""
        if caller.role not in ADMIN_ROLES:
            raise ForbiddenError("Only administrators can change a subscription status")
        try:
            status = SubscriptionStatus(status)
        except ValueError:
            raise ServiceValidationError(f"Invalid subscription status: {status}")

        repo = SubscriptionRepository(db)
        subscription = SubscriptionService.get_subscription(db, caller, subscription_id)
        try:
            repo.set_status(subscription.subscription_id, status, datetime.now(timezone.utc))
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("Subscription %s set to %s by %s", subscription_id, status.value, caller.id)
        return repo.get_by_id(subscription_id)

    @staticmethod
    def delete_subscription(db: Session, caller: Caller, subscription_id: uuid.UUID) -> None:
        if caller.role not in ADMIN_ROLES:
            raise ForbiddenError("Only administrators can delete subscriptions")
        subscription = SubscriptionService.get_subscription(db, caller, subscription_id)
        if PaymentRepository(db).count_for_subscription(subscription_id):
            raise StateError("A subscription with payments cannot be deleted")

        SubscriptionRepository(db).delete(subscription)
        db.commit()
        logger.info("Subscription %s deleted by %s", subscription_id, caller.id)
