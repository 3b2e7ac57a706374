from typing import Any, Dict, List, Mapping, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from datetime import date, datetime, timedelta, timezone
import logging
import uuid

from domain.models import Menu
from domain.enums import MealType, MenuStatus, NotificationType, UserRole
from repositories import MenuRepository, SchoolRepository
from app.config import settings
from app.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ServiceValidationError,
    StateError,
)
from services.access_policy import (
    ADMIN_ROLES,
    Caller,
    SchoolScope,
    ensure_menu_write_access,
    ensure_school_access,
    resolve_accessible_schools,
)
from services.menu_recurrence import (
    MenuContent,
    MenuRecurrenceEngine,
    coerce_meal_type,
    normalize_description,
    normalize_items,
    to_calendar_day,
)
from services.notification_service import NotificationService

logger = logging.getLogger("canteen.menus")

# never writable through an update, whoever the caller is
PROTECTED_FIELDS = frozenset(
    {
        "menu_id",
        "id",
        "_id",
        "created_by",
        "approved_by",
        "approved_at",
        "created_at",
        "updated_at",
        "annual_key",
        "is_annual",
        "school_id",
        "status",
    }
)
EDITABLE_FIELDS = ("description", "items", "allergens", "meal_type", "date")


def _slot_label(menu: Menu) -> str:
    return f"{menu.date.isoformat()} ({menu.meal_type.value})"


def _require_scope(db: Session, caller: Caller) -> SchoolScope:
    scope = resolve_accessible_schools(db, caller)
    if scope.is_empty:
        raise ForbiddenError("No school is associated with this account")
    return scope


class MenuService:
    @staticmethod
    def create_menu(
        db: Session,
        caller: Caller,
        school_id: Optional[uuid.UUID],
        menu_date,
        meal_type,
        content: MenuContent,
        recurring: bool = True,
    ) -> Tuple[Menu, Optional[str], int]:
        """
        Create a menu for a school.

        Recurring creation (the default) generates the annual weekly series,
        already approved. Otherwise a single PENDING menu is created and the
        school's admin is asked to review it.

        Returns:
            (menu of the requested day, series key or None, number of menus written)
        """
        if recurring:
            series_key, menu, count = MenuRecurrenceEngine(db).create_annual_menu(
                caller, school_id, menu_date, meal_type, content
            )
            return menu, series_key, count
        menu = MenuService._create_single_menu(db, caller, school_id, menu_date, meal_type, content)
        return menu, None, 1

    @staticmethod
    def _create_single_menu(
        db: Session,
        caller: Caller,
        school_id: Optional[uuid.UUID],
        menu_date,
        meal_type,
        content: MenuContent,
    ) -> Menu:
        if not school_id or menu_date is None or meal_type is None:
            raise ServiceValidationError("School ID, date, and meal type are required")

        day = to_calendar_day(menu_date)
        meal = coerce_meal_type(meal_type)
        schools = SchoolRepository(db)
        if not schools.exists(school_id):
            raise NotFoundError(f"School {school_id} not found")
        ensure_school_access(resolve_accessible_schools(db, caller), school_id)

        menus = MenuRepository(db)
        if menus.find_for_day(school_id, meal, day):
            raise ConflictError(
                "A menu already exists for this school, meal type and date",
                details={"date": day.isoformat(), "meal_type": meal.value},
            )

        menu = Menu(
            school_id=school_id,
            date=day,
            meal_type=meal,
            status=MenuStatus.PENDING,
            created_by=caller.id,
            is_annual=False,
            **content.normalized(),
        )
        try:
            menus.add(menu)
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise ConflictError(
                "A menu already exists for this school, meal type and date",
                details={"date": day.isoformat(), "meal_type": meal.value},
            ) from e

        logger.info("Menu %s submitted for school %s on %s", menu.menu_id, school_id, day)
        NotificationService.notify(
            db,
            schools.get_admin_id(school_id),
            NotificationType.MENU_SUBMITTED,
            "New menu to review",
            f"A menu for {_slot_label(menu)} is waiting for approval.",
            related_menu_id=menu.menu_id,
        )
        return menus.get_by_id(menu.menu_id)

    @staticmethod
    def get_menu(db: Session, caller: Caller, menu_id: uuid.UUID) -> Menu:
        menu = MenuRepository(db).get_by_id(menu_id)
        if not menu:
            raise NotFoundError("Menu not found")
        ensure_school_access(_require_scope(db, caller), menu.school_id)
        if caller.role == UserRole.PARENT and menu.status != MenuStatus.APPROVED:
            raise ForbiddenError("This menu is not published yet")
        return menu

    @staticmethod
    def list_menus(
        db: Session,
        caller: Caller,
        school_id: Optional[uuid.UUID] = None,
        day: Optional[date] = None,
        status: Optional[MenuStatus] = None,
        meal_type: Optional[MealType] = None,
    ) -> List[Menu]:
        """Menus within the caller's schools, newest first; parents see approved menus only"""
        scope = _require_scope(db, caller)
        if school_id is not None:
            ensure_school_access(scope, school_id)
            school_ids = [school_id]
        else:
            school_ids = scope.filter_ids()

        if caller.role == UserRole.PARENT:
            status = MenuStatus.APPROVED

        return MenuRepository(db).find(
            school_ids=school_ids, status=status, meal_type=meal_type, start=day, end=day
        )

    @staticmethod
    def get_today_menus(db: Session, caller: Caller, school_id: Optional[uuid.UUID]) -> List[Menu]:
        if not school_id:
            raise ServiceValidationError("School ID is required")
        ensure_school_access(_require_scope(db, caller), school_id)

        today = settings.local_today()
        status = MenuStatus.APPROVED if caller.role == UserRole.PARENT else None
        menus = MenuRepository(db).find(
            school_ids=[school_id], status=status, start=today, end=today, newest_first=False
        )
        if not menus:
            raise NotFoundError("No menu available for today")
        return menus

    @staticmethod
    def get_week_menus(
        db: Session,
        caller: Caller,
        school_id: Optional[uuid.UUID] = None,
        start_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        Approved menus of a 7-day window.

        The window starts at ``start_date`` or at the Monday of the current
        week. Without ``school_id`` the caller's only school is used; callers
        with several schools (or all of them) must name one.
        """
        scope = _require_scope(db, caller)
        if school_id is None:
            if scope.unrestricted or len(scope.school_ids) != 1:
                raise ServiceValidationError("School ID is required")
            school_id = next(iter(scope.school_ids))
        ensure_school_access(scope, school_id)

        if start_date is None:
            today = settings.local_today()
            start = today - timedelta(days=today.weekday())
        else:
            start = to_calendar_day(start_date)
        end = start + timedelta(days=6)

        menus = MenuRepository(db).find(
            school_ids=[school_id],
            status=MenuStatus.APPROVED,
            start=start,
            end=end,
            newest_first=False,
        )
        return {"school_id": school_id, "week_start": start, "week_end": end, "menus": menus}

    @staticmethod
    def list_pending_menus(
        db: Session, caller: Caller, school_id: Optional[uuid.UUID] = None
    ) -> List[Menu]:
        scope = _require_scope(db, caller)
        if school_id is not None:
            ensure_school_access(scope, school_id)
            school_ids = [school_id]
        else:
            school_ids = scope.filter_ids()
        return MenuRepository(db).find(
            school_ids=school_ids, status=MenuStatus.PENDING, newest_first=False
        )

    @staticmethod
    def approve_menu(
        db: Session,
        caller: Caller,
        menu_id: uuid.UUID,
        approved: Optional[bool],
        rejection_reason: Optional[str] = None,
    ) -> Menu:
        """
        Decide a pending menu.

        Raises:
            ServiceValidationError: If the decision is missing, or a rejection has no reason
            NotFoundError: If the menu does not exist
            ForbiddenError: If the caller may not decide menus of this school
            StateError: If the menu was already approved or rejected
        """
        if approved is None:
            raise ServiceValidationError("The approval decision is required")
        reason = (rejection_reason or "").strip()
        if not approved and not reason:
            raise ServiceValidationError("A rejection reason is required")

        repo = MenuRepository(db)
        menu = repo.get_by_id(menu_id)
        if not menu:
            raise NotFoundError("Menu not found")
        if caller.role not in ADMIN_ROLES:
            raise ForbiddenError("Only school administrators can approve menus")
        ensure_menu_write_access(db, menu, caller)
        if menu.status != MenuStatus.PENDING:
            raise StateError(
                f"Menu already {menu.status.value.lower()}",
                details={"status": menu.status.value},
            )

        menu.status = MenuStatus.APPROVED if approved else MenuStatus.REJECTED
        menu.approved_by = caller.id
        menu.approved_at = datetime.now(timezone.utc)
        menu.rejection_reason = None if approved else reason
        db.commit()
        logger.info("Menu %s %s by %s", menu.menu_id, menu.status.value, caller.id)

        label = _slot_label(menu)
        if approved:
            NotificationService.notify(
                db,
                menu.created_by,
                NotificationType.MENU_APPROVED,
                "Menu approved",
                f"Your menu for {label} has been approved.",
                related_menu_id=menu.menu_id,
            )
        else:
            NotificationService.notify(
                db,
                menu.created_by,
                NotificationType.MENU_REJECTED,
                "Menu rejected",
                f"Your menu for {label} has been rejected. Reason: {reason}",
                related_menu_id=menu.menu_id,
            )
        return repo.get_by_id(menu_id)

    @staticmethod
    def _editable_values(menu: Menu, updates: Mapping[str, Any]) -> Dict[str, Any]:
        fields = {
            key: value
            for key, value in updates.items()
            if key in EDITABLE_FIELDS and key not in PROTECTED_FIELDS
        }
        if menu.is_series:
            # every row of a series keeps its own day
            fields.pop("date", None)

        values: Dict[str, Any] = {}
        if "items" in fields:
            values["items"] = normalize_items(fields["items"])
        if "allergens" in fields:
            values["allergens"] = normalize_items(fields["allergens"])
        if "description" in fields:
            items = values.get("items", menu.items or [])
            values["description"] = normalize_description(fields["description"], items)
        elif values.get("items"):
            # new items without a description: the first dish names the menu
            values["description"] = normalize_description(None, values["items"])
        if fields.get("meal_type") is not None:
            values["meal_type"] = coerce_meal_type(fields["meal_type"])
        if fields.get("date") is not None:
            values["date"] = to_calendar_day(fields["date"])
        return values

    @staticmethod
    def update_menu(
        db: Session, caller: Caller, menu_id: uuid.UUID, updates: Mapping[str, Any]
    ) -> Tuple[Menu, int]:
        """
        Update a menu, or every menu of its series.

        Server-managed fields in ``updates`` are ignored. Editing a series
        re-approves it in the caller's name.

        Returns:
            (updated menu, number of menus touched)
        """
        repo = MenuRepository(db)
        menu = repo.get_by_id(menu_id)
        if not menu:
            raise NotFoundError("Menu not found")
        ensure_menu_write_access(db, menu, caller)

        values = MenuService._editable_values(menu, updates)
        if not values:
            raise ServiceValidationError(
                "No updatable field provided",
                details={"allowed": list(EDITABLE_FIELDS)},
            )

        try:
            if menu.is_series:
                values.update(
                    status=MenuStatus.APPROVED,
                    approved_by=caller.id,
                    approved_at=datetime.now(timezone.utc),
                )
                count = repo.update_series(menu.annual_key, values)
            else:
                for key, value in values.items():
                    setattr(menu, key, value)
                db.flush()
                count = 1
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise ConflictError(
                "Another menu already uses this school, meal type and date"
            ) from e

        menu = repo.get_by_id(menu_id)
        logger.info("Menu %s updated by %s (%d rows)", menu_id, caller.id, count)
        if menu.created_by != caller.id:
            NotificationService.notify(
                db,
                menu.created_by,
                NotificationType.MENU_UPDATED,
                "Menu updated",
                f"Your menu for {_slot_label(menu)} has been updated.",
                related_menu_id=menu.menu_id,
            )
        return menu, count

    @staticmethod
    def delete_menu(db: Session, caller: Caller, menu_id: uuid.UUID) -> Tuple[Menu, int]:
        """
        Delete a menu, or every menu of its series.

        Returns:
            (the menu as it was before deletion, number of menus deleted)
        """
        repo = MenuRepository(db)
        menu = repo.get_by_id(menu_id)
        if not menu:
            raise NotFoundError("Menu not found")
        ensure_menu_write_access(db, menu, caller)

        label = _slot_label(menu)
        creator_id = menu.created_by
        if menu.is_series:
            count = repo.delete_series(menu.annual_key)
        else:
            repo.delete(menu)
            count = 1
        db.commit()
        logger.info("Menu %s deleted by %s (%d rows)", menu_id, caller.id, count)

        if creator_id != caller.id:
            NotificationService.notify(
                db,
                creator_id,
                NotificationType.MENU_DELETED,
                "Menu deleted",
                f"Your menu for {label} has been deleted.",
                related_menu_id=menu_id,
            )
        return menu, count
