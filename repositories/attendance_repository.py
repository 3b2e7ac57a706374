"""
Attendance repository
"""

from datetime import date
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from repositories.base import BaseRepository
from domain.models import Attendance, Student


class AttendanceRepository(BaseRepository[Attendance]):
    """Repository for attendance data access"""

    id_field = "attendance_id"

    def __init__(self, db: Session):
        super().__init__(db, Attendance)

    def _display_query(self):
        return self.db.query(Attendance).options(
            joinedload(Attendance.student), joinedload(Attendance.menu)
        )

    def get_by_id(self, attendance_id: UUID) -> Optional[Attendance]:
        return (
            self._display_query()
            .filter(Attendance.attendance_id == attendance_id)
            .first()
        )

    def find_for(self, student_id: UUID, menu_id: UUID) -> Optional[Attendance]:
        return (
            self.db.query(Attendance)
            .filter(Attendance.student_id == student_id, Attendance.menu_id == menu_id)
            .first()
        )

    def find(
        self,
        student_ids: Optional[Iterable[UUID]] = None,
        student_id: Optional[UUID] = None,
        day: Optional[date] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        school_ids: Optional[Iterable[UUID]] = None,
    ) -> List[Attendance]:
        """
        Filtered attendance listing, newest day first.

        ``school_ids`` restricts to students enrolled in one of those schools.
        """
        query = self._display_query()
        if school_ids is not None:
            query = query.join(Student, Attendance.student_id == Student.student_id).filter(
                Student.school_id.in_(list(school_ids))
            )
        if student_ids is not None:
            query = query.filter(Attendance.student_id.in_(list(student_ids)))
        if student_id is not None:
            query = query.filter(Attendance.student_id == student_id)
        if day is not None:
            query = query.filter(Attendance.date == day)
        if start is not None:
            query = query.filter(Attendance.date >= start)
        if end is not None:
            query = query.filter(Attendance.date <= end)
        return query.order_by(Attendance.date.desc(), Attendance.created_at.desc()).all()
