"""
Role-scoped access resolution.

Every service call receives an explicit ``Caller``. The caller's role selects
one ``AccessPolicy`` which answers two questions:

- which schools may this caller see (``resolve_scope``)
- may this caller modify this menu (``can_write``)

Both answers are computed from the database on every call. Nothing is cached,
so a change of school administrator takes effect on the next request.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.exceptions import ForbiddenError
from domain.enums import UserRole
from repositories import SchoolRepository, StudentRepository, UserRepository

logger = logging.getLogger("canteen.access")

ADMIN_ROLES = frozenset({UserRole.SUPER_ADMIN, UserRole.SCHOOL_ADMIN})


@dataclass(frozen=True)
class Caller:
    """Identity of the user behind a request"""

    id: UUID
    role: UserRole
    school_id: Optional[UUID] = None

    @classmethod
    def from_user(cls, user) -> "Caller":
        return cls(id=user.user_id, role=UserRole(user.role), school_id=user.school_id)

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


@dataclass(frozen=True)
class SchoolScope:
    """Schools a caller may act upon; ``unrestricted`` skips school filtering"""

    unrestricted: bool = False
    school_ids: FrozenSet[UUID] = field(default_factory=frozenset)

    @classmethod
    def everything(cls) -> "SchoolScope":
        return cls(unrestricted=True)

    @classmethod
    def of(cls, school_ids: Iterable[Optional[UUID]]) -> "SchoolScope":
        return cls(school_ids=frozenset(s for s in school_ids if s is not None))

    @property
    def is_empty(self) -> bool:
        return not self.unrestricted and not self.school_ids

    def allows(self, school_id: Optional[UUID]) -> bool:
        if self.unrestricted:
            return True
        return school_id is not None and school_id in self.school_ids

    def filter_ids(self) -> Optional[FrozenSet[UUID]]:
        """Ids to filter queries by, or None when no filter applies"""
        return None if self.unrestricted else self.school_ids


class AccessPolicy(ABC):
    """Scope and write rules of one role"""

    role: UserRole

    @abstractmethod
    def resolve_scope(self, db: Session, caller: Caller) -> SchoolScope:
        ...

    @abstractmethod
    def can_write(self, db: Session, menu, caller: Caller) -> bool:
        ...


class SuperAdminPolicy(AccessPolicy):
    role = UserRole.SUPER_ADMIN

    def resolve_scope(self, db: Session, caller: Caller) -> SchoolScope:
        return SchoolScope.everything()

    def can_write(self, db: Session, menu, caller: Caller) -> bool:
        return True


class SchoolAdminPolicy(AccessPolicy):
    """A school admin sees the one school whose admin_id points at them"""

    role = UserRole.SCHOOL_ADMIN

    def resolve_scope(self, db: Session, caller: Caller) -> SchoolScope:
        school = SchoolRepository(db).get_by_admin(caller.id)
        return SchoolScope.of([school.school_id] if school else [])

    def can_write(self, db: Session, menu, caller: Caller) -> bool:
        admin_id = SchoolRepository(db).get_admin_id(menu.school_id)
        return admin_id is not None and admin_id == caller.id


class CanteenManagerPolicy(AccessPolicy):
    """Canteen staff act on the school recorded on their own profile"""

    role = UserRole.CANTEEN_MANAGER

    def resolve_scope(self, db: Session, caller: Caller) -> SchoolScope:
        return SchoolScope.of([UserRepository(db).get_school_id(caller.id)])

    def can_write(self, db: Session, menu, caller: Caller) -> bool:
        school_id = UserRepository(db).get_school_id(caller.id)
        return school_id is not None and school_id == menu.school_id


class ParentPolicy(AccessPolicy):
    """Parents see every school one of their children attends, and write nothing"""

    role = UserRole.PARENT

    def resolve_scope(self, db: Session, caller: Caller) -> SchoolScope:
        return SchoolScope.of(StudentRepository(db).school_ids_for_parent(caller.id))

    def can_write(self, db: Session, menu, caller: Caller) -> bool:
        return False


_POLICIES = {
    policy.role: policy
    for policy in (
        SuperAdminPolicy(),
        SchoolAdminPolicy(),
        CanteenManagerPolicy(),
        ParentPolicy(),
    )
}


def policy_for(role: UserRole) -> AccessPolicy:
    try:
        return _POLICIES[UserRole(role)]
    except (KeyError, ValueError):
        raise ForbiddenError(f"Unknown role: {role}")


def resolve_accessible_schools(db: Session, caller: Caller) -> SchoolScope:
    """Schools the caller may see or act upon"""
    return policy_for(caller.role).resolve_scope(db, caller)


def can_write_menu(db: Session, menu, caller: Caller) -> bool:
    """Whether the caller may update, approve or delete this menu"""
    return policy_for(caller.role).can_write(db, menu, caller)


def ensure_school_access(scope: SchoolScope, school_id: Optional[UUID]) -> None:
    if not scope.allows(school_id):
        raise ForbiddenError(
            "Access to this school is not allowed", details={"school_id": str(school_id)}
        )


def ensure_menu_write_access(db: Session, menu, caller: Caller) -> None:
    if not can_write_menu(db, menu, caller):
        logger.info(
            "Write denied: user %s (%s) on menu %s", caller.id, caller.role.value, menu.menu_id
        )
        raise ForbiddenError("Access to this school is not allowed")
