"""
Directory repositories - read access to users, schools and students
"""

from typing import Optional, List
from uuid import UUID
from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from domain.models import AppUser, School, Student


class UserRepository(BaseRepository[AppUser]):
    """Repository for user data access"""

    id_field = "user_id"

    def __init__(self, db: Session):
        super().__init__(db, AppUser)

    def get_by_email(self, email: str) -> Optional[AppUser]:
        """Get user by email"""
        return self.db.query(AppUser).filter(AppUser.email == email).first()

    def get_school_id(self, user_id: UUID) -> Optional[UUID]:
        """School recorded on the user's own profile"""
        row = (
            self.db.query(AppUser.school_id)
            .filter(AppUser.user_id == user_id)
            .first()
        )
        return row.school_id if row else None


class SchoolRepository(BaseRepository[School]):
    """Repository for school data access"""

    id_field = "school_id"

    def __init__(self, db: Session):
        super().__init__(db, School)

    def get_by_admin(self, admin_id: UUID) -> Optional[School]:
        """School administered by the given user, if any"""
        return self.db.query(School).filter(School.admin_id == admin_id).first()

    def get_admin_id(self, school_id: UUID) -> Optional[UUID]:
        row = (
            self.db.query(School.admin_id)
            .filter(School.school_id == school_id)
            .first()
        )
        return row.admin_id if row else None


class StudentRepository(BaseRepository[Student]):
    """Repository for student data access"""

    id_field = "student_id"

    def __init__(self, db: Session):
        super().__init__(db, Student)

    def get_by_parent(self, parent_id: UUID) -> List[Student]:
        return self.db.query(Student).filter(Student.parent_id == parent_id).all()

    def school_ids_for_parent(self, parent_id: UUID) -> List[UUID]:
        """Distinct schools attended by the parent's children"""
        rows = (
            self.db.query(Student.school_id)
            .filter(Student.parent_id == parent_id)
            .distinct()
            .all()
        )
        return [r.school_id for r in rows]

    def ids_in_schools(self, school_ids) -> List[UUID]:
        rows = (
            self.db.query(Student.student_id)
            .filter(Student.school_id.in_(list(school_ids)))
            .all()
        )
        return [r.student_id for r in rows]
