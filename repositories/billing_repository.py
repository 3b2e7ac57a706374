"""
Billing repositories - subscriptions and payments
"""

from datetime import datetime
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from repositories.base import BaseRepository
from domain.models import Payment, Student, Subscription
from domain.enums import PaymentStatus, SubscriptionStatus


class SubscriptionRepository(BaseRepository[Subscription]):
    """Repository for subscription data access"""

    id_field = "subscription_id"

    def __init__(self, db: Session):
        super().__init__(db, Subscription)

    def get_by_id(self, subscription_id: UUID) -> Optional[Subscription]:
        return (
            self.db.query(Subscription)
            .options(joinedload(Subscription.student))
            .filter(Subscription.subscription_id == subscription_id)
            .first()
        )

    def find(
        self,
        student_ids: Optional[Iterable[UUID]] = None,
        student_id: Optional[UUID] = None,
        status: Optional[SubscriptionStatus] = None,
    ) -> List[Subscription]:
        query = self.db.query(Subscription).options(joinedload(Subscription.student))
        if student_ids is not None:
            query = query.filter(Subscription.student_id.in_(list(student_ids)))
        if student_id is not None:
            query = query.filter(Subscription.student_id == student_id)
        if status is not None:
            query = query.filter(Subscription.status == status)
        return query.order_by(Subscription.created_at.desc()).all()

    def set_status(
        self, subscription_id: UUID, status: SubscriptionStatus, now: datetime
    ) -> int:
        """Unconditional status overwrite; returns the number of rows touched"""
        count = (
            self.db.query(Subscription)
            .filter(Subscription.subscription_id == subscription_id)
            .update({"status": status, "updated_at": now}, synchronize_session="fetch")
        )
        self.db.flush()
        return count


class PaymentRepository(BaseRepository[Payment]):
    """Repository for payment data access"""

    id_field = "payment_id"

    def __init__(self, db: Session):
        super().__init__(db, Payment)

    def get_by_id(self, payment_id: UUID) -> Optional[Payment]:
        return (
            self.db.query(Payment)
            .options(joinedload(Payment.subscription).joinedload(Subscription.student))
            .filter(Payment.payment_id == payment_id)
            .first()
        )

    def find(
        self,
        parent_id: Optional[UUID] = None,
        subscription_id: Optional[UUID] = None,
        status: Optional[PaymentStatus] = None,
        school_ids: Optional[Iterable[UUID]] = None,
    ) -> List[Payment]:
        """
        Filtered payment listing.

        ``school_ids`` restricts to payments whose subscription belongs to a
        student of one of those schools.
        """
        query = self.db.query(Payment).options(joinedload(Payment.subscription))
        if school_ids is not None:
            query = (
                query.join(Subscription, Payment.subscription_id == Subscription.subscription_id)
                .join(Student, Subscription.student_id == Student.student_id)
                .filter(Student.school_id.in_(list(school_ids)))
            )
        if parent_id is not None:
            query = query.filter(Payment.parent_id == parent_id)
        if subscription_id is not None:
            query = query.filter(Payment.subscription_id == subscription_id)
        if status is not None:
            query = query.filter(Payment.status == status)
        return query.order_by(Payment.created_at.desc()).all()

    def count_for_subscription(self, subscription_id: UUID) -> int:
        return (
            self.db.query(Payment)
            .filter(Payment.subscription_id == subscription_id)
            .count()
        )

    def latest_payer_for_student(self, student_id: UUID) -> Optional[UUID]:
        """Parent behind the most recent payment on any of the student's subscriptions"""
        row = (
            self.db.query(Payment.parent_id)
            .join(Subscription, Payment.subscription_id == Subscription.subscription_id)
            .filter(Subscription.student_id == student_id)
            .order_by(Subscription.created_at.desc(), Payment.created_at.desc())
            .first()
        )
        return row.parent_id if row else None
