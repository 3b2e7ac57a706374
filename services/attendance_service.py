from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
import logging
import uuid

from domain.models import Attendance, Student
from domain.enums import NotificationType, UserRole
from repositories import AttendanceRepository, MenuRepository, PaymentRepository, StudentRepository
from app.exceptions import ConflictError, ForbiddenError, NotFoundError, ServiceValidationError
from services.access_policy import Caller, ensure_school_access, resolve_accessible_schools
from services.menu_recurrence import to_calendar_day
from services.notification_service import NotificationService

logger = logging.getLogger("canteen.attendance")

MARKING_ROLES = frozenset(
    {UserRole.SUPER_ADMIN, UserRole.SCHOOL_ADMIN, UserRole.CANTEEN_MANAGER}
)


def _parent_of(db: Session, student: Student) -> Optional[uuid.UUID]:
    if student.parent_id is not None:
        return student.parent_id
    return PaymentRepository(db).latest_payer_for_student(student.student_id)


def _notice(attendance: Attendance, meal_label: str) -> Tuple[NotificationType, str, str]:
    name = attendance.student_name
    if attendance.present:
        return (
            NotificationType.MEAL_TAKEN,
            "Meal taken",
            f"{name} took the {meal_label}.",
        )
    if attendance.justified:
        detail = f" Reason: {attendance.reason}" if attendance.reason else ""
        return (
            NotificationType.ABSENCE,
            "Excused absence",
            f"{name} was absent for the {meal_label}.{detail}",
        )
    return (
        NotificationType.MEAL_MISSED,
        "Meal missed",
        f"{name} did not come to the canteen for the {meal_label}.",
    )


def _ensure_student_visible(db: Session, caller: Caller, student: Student) -> None:
    if caller.role == UserRole.PARENT:
        if student.parent_id != caller.id:
            raise ForbiddenError("Access to this student is not allowed")
    else:
        ensure_school_access(resolve_accessible_schools(db, caller), student.school_id)


class AttendanceService:
    @staticmethod
    def mark_attendance(
        db: Session,
        caller: Caller,
        student_id: Optional[uuid.UUID],
        menu_id: Optional[uuid.UUID],
        present: Optional[bool],
        justified: bool = False,
        reason: Optional[str] = None,
    ) -> Tuple[Attendance, bool]:
        """
        Record whether a student took a menu's meal and tell the parent.

        The parent is the student's linked parent, or else whoever paid last
        for one of the student's subscriptions. A failed notification does not
        undo the mark.

        Returns:
            (stored attendance, whether the parent was notified)

        Raises:
            ServiceValidationError: If a field is missing or the menu is another school's
            ForbiddenError: If the caller may not mark this student
            NotFoundError: If the student or menu does not exist
            ConflictError: If the student is already marked for this menu
        """
        if not student_id or not menu_id or present is None:
            raise ServiceValidationError("Student, menu and presence are required")
        if caller.role not in MARKING_ROLES:
            raise ForbiddenError("Only canteen staff can mark attendance")

        student = StudentRepository(db).get_by_id(student_id)
        if not student:
            raise NotFoundError("Student not found")
        menu = MenuRepository(db).get_by_id(menu_id)
        if not menu:
            raise NotFoundError("Menu not found")
        ensure_school_access(resolve_accessible_schools(db, caller), student.school_id)
        if menu.school_id != student.school_id:
            raise ServiceValidationError("The menu belongs to another school than the student")

        repo = AttendanceRepository(db)
        if repo.find_for(student_id, menu_id):
            raise ConflictError("Attendance already marked for this student and menu")

        reason = (reason or "").strip() or None
        attendance = Attendance(
            student_id=student_id,
            menu_id=menu_id,
            date=menu.date,
            present=bool(present),
            justified=bool(justified) and not present,
            reason=reason,
            marked_by=caller.id,
        )
        try:
            repo.add(attendance)
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise ConflictError("Attendance already marked for this student and menu") from e
        except Exception:
            db.rollback()
            raise

        attendance = repo.get_by_id(attendance.attendance_id)
        logger.info(
            "Attendance %s: student %s %s for menu %s (by %s)",
            attendance.attendance_id,
            student_id,
            "present" if attendance.present else "absent",
            menu_id,
            caller.id,
        )

        meal_label = f"{menu.meal_type.value.lower()} of {menu.date.isoformat()}"
        if menu.description:
            meal_label += f" ({menu.description})"
        notice_type, title, message = _notice(attendance, meal_label)
        notification = NotificationService.notify(
            db,
            _parent_of(db, student),
            notice_type,
            title,
            message,
            related_menu_id=menu_id,
            related_student_id=student_id,
        )
        return attendance, notification is not None

    @staticmethod
    def list_attendance(
        db: Session,
        caller: Caller,
        student_id: Optional[uuid.UUID] = None,
        day=None,
        school_id: Optional[uuid.UUID] = None,
    ) -> List[Attendance]:
        """Parents see their own children; staff see the schools in their scope"""
        day = to_calendar_day(day) if day is not None else None
        repo = AttendanceRepository(db)
        if caller.role == UserRole.PARENT:
            student_ids = [s.student_id for s in StudentRepository(db).get_by_parent(caller.id)]
            return repo.find(
                student_ids=student_ids,
                student_id=student_id,
                day=day,
                school_ids=[school_id] if school_id else None,
            )

        scope = resolve_accessible_schools(db, caller)
        if school_id is not None:
            ensure_school_access(scope, school_id)
            school_ids = [school_id]
        else:
            school_ids = scope.filter_ids()
        return repo.find(student_id=student_id, day=day, school_ids=school_ids)

    @staticmethod
    def get_student_attendance(
        db: Session,
        caller: Caller,
        student_id: uuid.UUID,
        start=None,
        end=None,
    ) -> List[Attendance]:
        student = StudentRepository(db).get_by_id(student_id)
        if not student:
            raise NotFoundError("Student not found")
        _ensure_student_visible(db, caller, student)

        start = to_calendar_day(start) if start is not None else None
        end = to_calendar_day(end) if end is not None else None
        if start and end and end < start:
            raise ServiceValidationError("End date must not be before start date")
        return AttendanceRepository(db).find(student_id=student_id, start=start, end=end)
