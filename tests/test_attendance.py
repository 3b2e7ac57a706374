"""
Tests for canteen attendance.

Covers:
- Marking by canteen staff, scoped to their schools
- Parent notification type, message and related ids
- Parent fallback through the latest payment
- Duplicate marks and field validation
- Scoped listing and per-student history
"""

import pytest
import uuid
from datetime import date
from sqlalchemy.orm import Session

from test_fixtures import (
    campus,
    caller_of,
    db_session,
    make_menu,
    make_student,
    make_subscription,
    make_user,
)
from app.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ServiceValidationError,
)
from domain.enums import (
    MenuStatus,
    NotificationType,
    PaymentMethod,
    PaymentStatus,
    UserRole,
)
from domain.models import Attendance, Notification, Payment
from services.attendance_service import AttendanceService

MONDAY = date(2026, 3, 2)
TUESDAY = date(2026, 3, 3)


@pytest.fixture
def lunch(db_session: Session, campus):
    menu = make_menu(
        db_session, campus.school, campus.manager, MONDAY, status=MenuStatus.APPROVED
    )
    db_session.commit()
    return menu


def _parent_notifications(db: Session, parent):
    return db.query(Notification).filter(Notification.user_id == parent.user_id).all()


# =============================================================================
# MARKING
# =============================================================================


def test_manager_marks_student_present(db_session: Session, campus, lunch):
    """
    Verifies:
    - The mark is stored with the menu's day and the marker
    - The parent receives MEAL_TAKEN linked to the student and the menu
    """
    attendance, notified = AttendanceService.mark_attendance(
        db_session,
        caller_of(campus.manager),
        campus.student.student_id,
        lunch.menu_id,
        True,
    )

    assert notified is True
    assert attendance.present is True
    assert attendance.justified is False
    assert attendance.date == MONDAY
    assert attendance.marked_by == campus.manager.user_id
    assert attendance.student_name == "Ibrahim Diallo"

    [notification] = _parent_notifications(db_session, campus.parent)
    assert notification.type == NotificationType.MEAL_TAKEN
    assert notification.related_student_id == campus.student.student_id
    assert notification.related_menu_id == lunch.menu_id
    assert "Ibrahim Diallo" in notification.message
    assert "lunch of 2026-03-02" in notification.message


@pytest.mark.parametrize(
    "justified, reason, expected",
    [
        (False, None, NotificationType.MEAL_MISSED),
        (True, "Malade", NotificationType.ABSENCE),
    ],
)
def test_absence_notification_type(
    db_session: Session, campus, lunch, justified, reason, expected
):
    attendance, _ = AttendanceService.mark_attendance(
        db_session,
        caller_of(campus.admin),
        campus.student.student_id,
        lunch.menu_id,
        False,
        justified=justified,
        reason=reason,
    )

    assert attendance.present is False
    assert attendance.justified is justified
    [notification] = _parent_notifications(db_session, campus.parent)
    assert notification.type == expected
    if reason:
        assert reason in notification.message


def test_present_student_is_never_justified(db_session: Session, campus, lunch):
    attendance, _ = AttendanceService.mark_attendance(
        db_session,
        caller_of(campus.manager),
        campus.student.student_id,
        lunch.menu_id,
        True,
        justified=True,
    )
    assert attendance.justified is False


def test_parent_found_through_latest_payment(db_session: Session, campus, lunch):
    """A student without a linked parent notifies whoever paid for them"""
    payer = make_user(db_session, UserRole.PARENT, first_name="Mariam")
    orphan = make_student(db_session, campus.school, first_name="Kadi")
    subscription = make_subscription(db_session, orphan)
    db_session.add(
        Payment(
            subscription_id=subscription.subscription_id,
            parent_id=payer.user_id,
            amount=100,
            method=PaymentMethod.CASH,
            status=PaymentStatus.COMPLETED,
        )
    )
    db_session.commit()

    _, notified = AttendanceService.mark_attendance(
        db_session, caller_of(campus.manager), orphan.student_id, lunch.menu_id, True
    )

    assert notified is True
    [notification] = _parent_notifications(db_session, payer)
    assert notification.related_student_id == orphan.student_id


def test_student_without_any_parent_is_still_marked(db_session: Session, campus, lunch):
    orphan = make_student(db_session, campus.school, first_name="Kadi")
    db_session.commit()

    attendance, notified = AttendanceService.mark_attendance(
        db_session, caller_of(campus.manager), orphan.student_id, lunch.menu_id, False
    )

    assert notified is False
    assert db_session.query(Attendance).filter_by(
        attendance_id=attendance.attendance_id
    ).count() == 1


def test_duplicate_mark_conflicts(db_session: Session, campus, lunch):
    AttendanceService.mark_attendance(
        db_session, caller_of(campus.manager), campus.student.student_id, lunch.menu_id, True
    )

    with pytest.raises(ConflictError):
        AttendanceService.mark_attendance(
            db_session, caller_of(campus.admin), campus.student.student_id, lunch.menu_id, False
        )
    assert db_session.query(Attendance).count() == 1
    assert len(_parent_notifications(db_session, campus.parent)) == 1


@pytest.mark.parametrize("field", ["student_id", "menu_id", "present"])
def test_mark_requires_fields(db_session: Session, campus, lunch, field):
    values = {
        "student_id": campus.student.student_id,
        "menu_id": lunch.menu_id,
        "present": True,
    }
    values[field] = None

    with pytest.raises(ServiceValidationError):
        AttendanceService.mark_attendance(db_session, caller_of(campus.manager), **values)


def test_mark_unknown_student_or_menu(db_session: Session, campus, lunch):
    with pytest.raises(NotFoundError):
        AttendanceService.mark_attendance(
            db_session, caller_of(campus.manager), uuid.uuid4(), lunch.menu_id, True
        )
    with pytest.raises(NotFoundError):
        AttendanceService.mark_attendance(
            db_session, caller_of(campus.manager), campus.student.student_id, uuid.uuid4(), True
        )


def test_mark_is_scoped_to_the_callers_school(db_session: Session, campus, lunch):
    """
    Verifies:
    - Staff of another school and parents cannot mark
    - A menu of another school cannot be used for the student
    """
    for user in (campus.other_manager, campus.other_admin, campus.parent):
        with pytest.raises(ForbiddenError):
            AttendanceService.mark_attendance(
                db_session, caller_of(user), campus.student.student_id, lunch.menu_id, True
            )

    elsewhere = make_menu(db_session, campus.other_school, campus.other_manager, MONDAY)
    db_session.commit()
    with pytest.raises(ServiceValidationError):
        AttendanceService.mark_attendance(
            db_session,
            caller_of(campus.super_admin),
            campus.student.student_id,
            elsewhere.menu_id,
            True,
        )
    assert db_session.query(Attendance).count() == 0


# =============================================================================
# READING
# =============================================================================


def _mark_week(db: Session, campus, lunch):
    tuesday = make_menu(db, campus.school, campus.manager, TUESDAY)
    sibling = make_student(db, campus.school, parent=campus.parent, first_name="Seydou")
    other_parent = make_user(db, UserRole.PARENT)
    classmate = make_student(db, campus.school, parent=other_parent, first_name="Kadi")
    db.commit()
    manager = caller_of(campus.manager)
    marks = [
        (campus.student, lunch, True),
        (campus.student, tuesday, False),
        (sibling, lunch, True),
        (classmate, lunch, True),
    ]
    for student, menu, present in marks:
        AttendanceService.mark_attendance(db, manager, student.student_id, menu.menu_id, present)
    return classmate


def test_list_attendance_is_scoped(db_session: Session, campus, lunch):
    """
    Verifies:
    - Staff see their school, newest day first
    - Parents see only their own children
    - Admins of another school see nothing and cannot ask for this school
    """
    classmate = _mark_week(db_session, campus, lunch)

    staff_view = AttendanceService.list_attendance(db_session, caller_of(campus.manager))
    assert len(staff_view) == 4
    assert staff_view[0].date == TUESDAY

    parent_view = AttendanceService.list_attendance(db_session, caller_of(campus.parent))
    assert len(parent_view) == 3
    assert classmate.student_id not in {a.student_id for a in parent_view}

    monday = AttendanceService.list_attendance(
        db_session, caller_of(campus.admin), day="2026-03-02"
    )
    assert {a.date for a in monday} == {MONDAY}
    assert len(monday) == 3

    assert AttendanceService.list_attendance(db_session, caller_of(campus.other_admin)) == []
    with pytest.raises(ForbiddenError):
        AttendanceService.list_attendance(
            db_session, caller_of(campus.other_admin), school_id=campus.school.school_id
        )


def test_student_history_with_window(db_session: Session, campus, lunch):
    _mark_week(db_session, campus, lunch)
    student_id = campus.student.student_id

    history = AttendanceService.get_student_attendance(
        db_session, caller_of(campus.parent), student_id
    )
    assert [a.date for a in history] == [TUESDAY, MONDAY]
    assert history[0].meal_type is not None

    only_tuesday = AttendanceService.get_student_attendance(
        db_session, caller_of(campus.admin), student_id, start=TUESDAY, end=TUESDAY
    )
    assert [a.present for a in only_tuesday] == [False]

    with pytest.raises(ServiceValidationError):
        AttendanceService.get_student_attendance(
            db_session, caller_of(campus.admin), student_id, start=TUESDAY, end=MONDAY
        )


def test_student_history_access(db_session: Session, campus, lunch):
    stranger = make_user(db_session, UserRole.PARENT)
    db_session.commit()

    for user in (stranger, campus.other_manager):
        with pytest.raises(ForbiddenError):
            AttendanceService.get_student_attendance(
                db_session, caller_of(user), campus.student.student_id
            )
    with pytest.raises(NotFoundError):
        AttendanceService.get_student_attendance(
            db_session, caller_of(campus.admin), uuid.uuid4()
        )
