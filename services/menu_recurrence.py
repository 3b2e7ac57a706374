"""
Annual menu generation.

One creation request becomes a series of weekly menus on the same weekday,
from the start date through December 31 of the same year. Each row of the
series is upserted on its (school, meal type, calendar day) slot, so re-running
a creation replaces the slot content instead of duplicating it.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
import logging
import uuid

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import ConflictError, NotFoundError, ServiceValidationError
from domain.enums import MealType, MenuStatus
from domain.models import Menu
from repositories import MenuRepository, SchoolRepository
from services.access_policy import Caller, ensure_school_access, resolve_accessible_schools

logger = logging.getLogger("canteen.menus.recurrence")

WEEK = timedelta(days=7)


def to_calendar_day(value: Union[date, datetime, str]) -> date:
    """
    Reduce a date-like value to a calendar day.

    Datetimes keep their own calendar day (no time zone shift). Strings are
    read from their leading ``YYYY-MM-DD`` part, so ``2026-01-05T23:30:00Z``
    is January 5.

    Raises:
        ServiceValidationError: If the value cannot be read as a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass
    raise ServiceValidationError(f"Invalid date: {value!r}")


def weekly_dates_through_year_end(start: date) -> List[date]:
    """Every 7th day from ``start`` up to and including December 31 of its year"""
    year_end = date(start.year, 12, 31)
    days = []
    current = start
    while current <= year_end:
        days.append(current)
        current += WEEK
    return days


def normalize_items(items: Optional[Iterable[Any]]) -> List[str]:
    """Item names from strings or ``{"name": ...}`` objects, blanks dropped"""
    names = []
    for item in items or []:
        if isinstance(item, dict):
            item = item.get("name")
        if item is None:
            continue
        name = str(item).strip()
        if name:
            names.append(name)
    return names


def normalize_description(description: Optional[str], items: List[str]) -> str:
    text = (description or "").strip()
    if text:
        return text
    return items[0] if items else ""


def coerce_meal_type(value) -> MealType:
    if isinstance(value, MealType):
        return value
    try:
        return MealType(str(value).strip().upper())
    except ValueError:
        raise ServiceValidationError(f"Invalid meal type: {value}")


@dataclass
class MenuContent:
    """What is served; shared by every menu of a series"""

    description: Optional[str] = None
    items: List[Any] = field(default_factory=list)
    allergens: List[str] = field(default_factory=list)

    def normalized(self) -> Dict[str, Any]:
        items = normalize_items(self.items)
        return {
            "description": normalize_description(self.description, items),
            "items": items,
            "allergens": normalize_items(self.allergens),
        }


class MenuRecurrenceEngine:
    """Creates or replaces the weekly menu series of one school and meal type"""

    def __init__(self, db: Session):
        self.db = db
        self.menus = MenuRepository(db)
        self.schools = SchoolRepository(db)

    def create_annual_menu(
        self,
        caller: Caller,
        school_id: Optional[uuid.UUID],
        start_date,
        meal_type,
        content: MenuContent,
    ) -> Tuple[str, Menu, int]:
        """
        Generate the weekly series starting at ``start_date``.

        The whole series is written in one transaction. A concurrent writer
        taking one of the slots between the read and the insert makes the
        commit fail on the unique constraint; the generation is then rolled
        back and replayed up to ``settings.menu_upsert_attempts`` times.

        Returns:
            (series key, menu of the start day, number of menus in the series)

        Raises:
            ServiceValidationError: If school, date or meal type is missing
            NotFoundError: If the school does not exist
            ForbiddenError: If the caller cannot act on the school
            ConflictError: If every attempt lost the race on a slot
        """
        if not school_id or start_date is None or meal_type is None:
            raise ServiceValidationError("School ID, date, and meal type are required")

        start = to_calendar_day(start_date)
        meal = coerce_meal_type(meal_type)
        values = content.normalized()

        if not self.schools.exists(school_id):
            raise NotFoundError(f"School {school_id} not found")
        ensure_school_access(resolve_accessible_schools(self.db, caller), school_id)

        days = weekly_dates_through_year_end(start)
        attempts = settings.menu_upsert_attempts
        for attempt in range(1, attempts + 1):
            series_key = uuid.uuid4().hex
            try:
                first = self._upsert_series(caller, school_id, meal, days, series_key, values)
                self.db.commit()
                break
            except IntegrityError as e:
                self.db.rollback()
                logger.warning(
                    "Annual menu generation for school %s (%s) lost a slot race, attempt %d/%d",
                    school_id,
                    meal.value,
                    attempt,
                    attempts,
                )
                if attempt == attempts:
                    raise ConflictError(
                        "A menu for this school, meal type and date was created concurrently",
                        details={"school_id": str(school_id), "meal_type": meal.value},
                    ) from e
            except SQLAlchemyError:
                self.db.rollback()
                raise

        logger.info(
            "Annual menu series %s: %d %s menus for school %s from %s",
            series_key,
            len(days),
            meal.value,
            school_id,
            start.isoformat(),
        )
        return series_key, self.menus.get_by_id(first.menu_id), len(days)

    def _upsert_series(
        self,
        caller: Caller,
        school_id: uuid.UUID,
        meal_type: MealType,
        days: List[date],
        series_key: str,
        values: Dict[str, Any],
    ) -> Menu:
        now = datetime.now(timezone.utc)
        row = dict(
            values,
            status=MenuStatus.APPROVED,
            created_by=caller.id,
            approved_by=caller.id,
            approved_at=now,
            rejection_reason=None,
            annual_key=series_key,
            is_annual=True,
        )
        existing = {
            menu.date: menu
            for menu in self.menus.find(
                school_ids=[school_id], meal_type=meal_type, start=days[0], end=days[-1]
            )
        }

        first = None
        for day in days:
            fields = dict(row, items=list(row["items"]), allergens=list(row["allergens"]))
            menu = existing.get(day)
            if menu is None:
                menu = Menu(school_id=school_id, meal_type=meal_type, date=day, **fields)
                self.db.add(menu)
            else:
                for key, value in fields.items():
                    setattr(menu, key, value)
            if first is None:
                first = menu
        self.db.flush()
        return first
