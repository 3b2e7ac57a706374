"""
Tests for the repository classes.

This test suite validates the data access layer with direct repository testing:
- UserRepository / SchoolRepository / StudentRepository: directory lookups
- MenuRepository: slot lookup, filtered listing, series update and delete
- SubscriptionRepository / PaymentRepository: status overwrite, scoped listing
- NotificationRepository: per-user access and bulk read marking

All tests use real database sessions (via test_fixtures) to ensure:
- Actual SQL operations work correctly
- Constraints are enforced
"""

import pytest
import uuid
from datetime import date, datetime, timezone
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from test_fixtures import (
    campus,
    db_session,
    make_menu,
    make_student,
    make_subscription,
    make_user,
)
from domain.enums import (
    MealType,
    MenuStatus,
    NotificationType,
    PaymentMethod,
    PaymentStatus,
    SubscriptionStatus,
    UserRole,
)
from domain.models import Menu, Notification, Payment
from repositories import (
    MenuRepository,
    NotificationRepository,
    PaymentRepository,
    SchoolRepository,
    StudentRepository,
    SubscriptionRepository,
    UserRepository,
)


def _series_rows(db: Session, key: str):
    db.expire_all()
    return db.query(Menu).filter(Menu.annual_key == key).all()


# =============================================================================
# DIRECTORY REPOSITORIES
# =============================================================================


def test_user_repository_lookups(db_session: Session, campus):
    users = UserRepository(db_session)

    assert users.get_by_email(campus.manager.email).user_id == campus.manager.user_id
    assert users.get_by_email("nobody@example.com") is None
    assert users.get_school_id(campus.manager.user_id) == campus.school.school_id
    assert users.get_school_id(campus.parent.user_id) is None
    assert users.get_school_id(uuid.uuid4()) is None


def test_school_repository_admin_lookups(db_session: Session, campus):
    schools = SchoolRepository(db_session)

    assert schools.get_by_admin(campus.admin.user_id).school_id == campus.school.school_id
    assert schools.get_by_admin(campus.manager.user_id) is None
    assert schools.get_admin_id(campus.other_school.school_id) == campus.other_admin.user_id
    assert schools.get_admin_id(uuid.uuid4()) is None


def test_student_repository_parent_and_school_lookups(db_session: Session, campus):
    second = make_student(db_session, campus.school, parent=campus.parent, first_name="Seydou")
    make_student(db_session, campus.other_school, first_name="Kadi")
    db_session.commit()
    students = StudentRepository(db_session)

    assert {s.student_id for s in students.get_by_parent(campus.parent.user_id)} == {
        campus.student.student_id,
        second.student_id,
    }
    assert students.school_ids_for_parent(campus.parent.user_id) == [campus.school.school_id]
    assert set(students.ids_in_schools([campus.school.school_id])) == {
        campus.student.student_id,
        second.student_id,
    }
    assert students.ids_in_schools([]) == []


# =============================================================================
# MENU REPOSITORY
# =============================================================================


def test_menu_slot_is_unique(db_session: Session, campus):
    """
    Verifies:
    - (school, meal type, date) can only be used once
    - The same day with another meal type is allowed
    """
    make_menu(db_session, campus.school, campus.manager, date(2026, 3, 2))
    make_menu(
        db_session, campus.school, campus.manager, date(2026, 3, 2), meal_type=MealType.DINNER
    )
    db_session.commit()

    with pytest.raises(IntegrityError):
        make_menu(db_session, campus.school, campus.manager, date(2026, 3, 2))
    db_session.rollback()

    found = MenuRepository(db_session).find_for_day(
        campus.school.school_id, MealType.DINNER, date(2026, 3, 2)
    )
    assert found.meal_type == MealType.DINNER


def test_menu_find_filters_and_order(db_session: Session, campus):
    make_menu(db_session, campus.school, campus.manager, date(2026, 3, 2))
    make_menu(
        db_session, campus.school, campus.manager, date(2026, 3, 4), status=MenuStatus.APPROVED
    )
    make_menu(
        db_session,
        campus.school,
        campus.manager,
        date(2026, 3, 4),
        meal_type=MealType.BREAKFAST,
        status=MenuStatus.APPROVED,
    )
    make_menu(db_session, campus.other_school, campus.other_manager, date(2026, 3, 3))
    db_session.commit()
    repo = MenuRepository(db_session)

    newest = repo.find(school_ids=[campus.school.school_id])
    assert [(m.date.day, m.meal_type) for m in newest] == [
        (4, MealType.BREAKFAST),
        (4, MealType.LUNCH),
        (2, MealType.LUNCH),
    ]

    approved = repo.find(status=MenuStatus.APPROVED, meal_type=MealType.LUNCH)
    assert [m.date for m in approved] == [date(2026, 3, 4)]

    window = repo.find(start=date(2026, 3, 2), end=date(2026, 3, 3), newest_first=False)
    assert [m.date for m in window] == [date(2026, 3, 2), date(2026, 3, 3)]

    assert repo.find(school_ids=[]) == []


def test_menu_series_update_and_delete(db_session: Session, campus):
    for day in (2, 9, 16):
        make_menu(db_session, campus.school, campus.manager, date(2026, 3, day), annual_key="k1")
    make_menu(db_session, campus.school, campus.manager, date(2026, 3, 23), annual_key="k2")
    db_session.commit()
    repo = MenuRepository(db_session)

    assert repo.update_series("k1", {"description": "Fonio"}) == 3
    db_session.commit()
    assert {m.description for m in _series_rows(db_session, "k1")} == {"Fonio"}
    assert _series_rows(db_session, "k2")[0].description == "Riz au gras"

    assert repo.delete_series("k1") == 3
    db_session.commit()
    assert _series_rows(db_session, "k1") == []
    assert db_session.query(Menu).count() == 1


# =============================================================================
# BILLING REPOSITORIES
# =============================================================================


def test_subscription_set_status_overwrites(db_session: Session, campus):
    subscription = make_subscription(db_session, campus.student, status=SubscriptionStatus.CANCELLED)
    db_session.commit()
    repo = SubscriptionRepository(db_session)

    touched = repo.set_status(
        subscription.subscription_id, SubscriptionStatus.ACTIVE, datetime.now(timezone.utc)
    )
    db_session.commit()

    assert touched == 1
    assert repo.get_by_id(subscription.subscription_id).status == SubscriptionStatus.ACTIVE
    assert repo.set_status(uuid.uuid4(), SubscriptionStatus.ACTIVE, datetime.now(timezone.utc)) == 0


def test_payment_find_by_school(db_session: Session, campus):
    other_parent = make_user(db_session, UserRole.PARENT)
    other_student = make_student(db_session, campus.other_school, parent=other_parent)
    mine = make_subscription(db_session, campus.student)
    theirs = make_subscription(db_session, other_student)
    for subscription, parent in ((mine, campus.parent), (theirs, other_parent)):
        db_session.add(
            Payment(
                subscription_id=subscription.subscription_id,
                parent_id=parent.user_id,
                amount=100,
                method=PaymentMethod.CASH,
                status=PaymentStatus.COMPLETED,
            )
        )
    db_session.commit()
    repo = PaymentRepository(db_session)

    in_school = repo.find(school_ids=[campus.school.school_id])
    assert [p.subscription_id for p in in_school] == [mine.subscription_id]
    assert len(repo.find(parent_id=other_parent.user_id)) == 1
    assert repo.find(status=PaymentStatus.FAILED) == []
    assert repo.count_for_subscription(mine.subscription_id) == 1


# =============================================================================
# NOTIFICATION REPOSITORY
# =============================================================================


def test_notification_repository_is_per_user(db_session: Session, campus):
    for user in (campus.parent, campus.parent, campus.admin):
        db_session.add(
            Notification(
                user_id=user.user_id,
                type=NotificationType.MENU_APPROVED,
                title="Menu approved",
                message="2026-03-02 (LUNCH)",
                read=False,
            )
        )
    db_session.commit()
    repo = NotificationRepository(db_session)

    mine = repo.list_for_user(campus.parent.user_id)
    assert len(mine) == 2
    assert repo.get_for_user(mine[0].notification_id, campus.admin.user_id) is None
    assert repo.get_for_user(mine[0].notification_id, campus.parent.user_id) is not None

    assert repo.mark_all_read(campus.parent.user_id) == 2
    assert repo.count_unread(campus.parent.user_id) == 0
    assert repo.count_unread(campus.admin.user_id) == 1
    assert repo.list_for_user(campus.parent.user_id, unread_only=True) == []
