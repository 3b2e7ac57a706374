"""
Menu Repository - Data access layer for menu operations
"""

from datetime import date
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import and_
from sqlalchemy.orm import Session, joinedload

from repositories.base import BaseRepository
from domain.models import Menu
from domain.enums import MealType, MenuStatus


class MenuRepository(BaseRepository[Menu]):
    """Repository for menu data access"""

    id_field = "menu_id"

    def __init__(self, db: Session):
        super().__init__(db, Menu)

    def _display_query(self):
        """
        Menus with school and people loaded for display.

        Rows already in the session are reloaded, so an approver or creator
        changed by an earlier write in the same session is not served stale.
        """
        return (
            self.db.query(Menu)
            .options(
                joinedload(Menu.school),
                joinedload(Menu.creator),
                joinedload(Menu.approver),
            )
            .populate_existing()
        )

    def get_by_id(self, menu_id: UUID) -> Optional[Menu]:
        """Get menu by ID with school and people loaded for display"""
        return (
            self._display_query()
            .filter(Menu.menu_id == menu_id)
            .first()
        )

    def find_for_day(
        self, school_id: UUID, meal_type: MealType, day: date
    ) -> Optional[Menu]:
        """The menu occupying the (school, meal type, calendar day) slot"""
        return (
            self.db.query(Menu)
            .filter(
                and_(
                    Menu.school_id == school_id,
                    Menu.meal_type == meal_type,
                    Menu.date == day,
                )
            )
            .first()
        )

    def find(
        self,
        school_ids: Optional[Iterable[UUID]] = None,
        status: Optional[MenuStatus] = None,
        meal_type: Optional[MealType] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        newest_first: bool = True,
    ) -> List[Menu]:
        """
        Filtered menu listing.

        Args:
            school_ids: restrict to these schools; None means every school
            status: approval status filter
            meal_type: meal type filter
            start: first calendar day included
            end: last calendar day included
            newest_first: order by date descending instead of ascending
        """
        query = self._display_query()
        if school_ids is not None:
            query = query.filter(Menu.school_id.in_(list(school_ids)))
        if status is not None:
            query = query.filter(Menu.status == status)
        if meal_type is not None:
            query = query.filter(Menu.meal_type == meal_type)
        if start is not None:
            query = query.filter(Menu.date >= start)
        if end is not None:
            query = query.filter(Menu.date <= end)

        date_order = Menu.date.desc() if newest_first else Menu.date.asc()
        return query.order_by(date_order, Menu.meal_type.asc()).all()

    def update_series(self, annual_key: str, values: Dict[str, Any]) -> int:
        """Apply the same column values to every menu of a series"""
        count = (
            self.db.query(Menu)
            .filter(Menu.annual_key == annual_key)
            .update(values, synchronize_session="fetch")
        )
        self.db.flush()
        return count

    def delete_series(self, annual_key: str) -> int:
        """Delete every menu of a series in one statement"""
        count = (
            self.db.query(Menu)
            .filter(Menu.annual_key == annual_key)
            .delete(synchronize_session="fetch")
        )
        self.db.flush()
        return count
