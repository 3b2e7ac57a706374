"""
Tests for annual menu generation.

Covers:
- Calendar day normalization of dates, datetimes and ISO strings
- Weekly date expansion through December 31, never into the next year
- Idempotent upsert on (school, meal type, day)
- Scope and validation failures
- Retry on a lost insert race
"""

import pytest
import uuid
from datetime import date, datetime, timedelta, timezone
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from test_fixtures import campus, caller_of, db_session, make_menu
from app.config import settings
from app.exceptions import ConflictError, ForbiddenError, NotFoundError, ServiceValidationError
from domain.enums import MealType, MenuStatus
from domain.models import Menu
from services.menu_recurrence import (
    MenuContent,
    MenuRecurrenceEngine,
    normalize_description,
    normalize_items,
    to_calendar_day,
    weekly_dates_through_year_end,
)

FIRST_MONDAY_2026 = date(2026, 1, 5)


def _lunch(**overrides):
    values = {"description": "Riz sauce arachide", "items": ["Riz", "Sauce arachide"]}
    values.update(overrides)
    return MenuContent(**values)


# =============================================================================
# PURE HELPERS
# =============================================================================


def test_to_calendar_day_keeps_the_wall_clock_day():
    """
    Verifies:
    - A late-evening UTC datetime stays on its own day
    - ISO strings use their leading YYYY-MM-DD
    - Plain dates pass through
    """
    late = datetime(2026, 1, 5, 23, 30, tzinfo=timezone.utc)
    assert to_calendar_day(late) == FIRST_MONDAY_2026
    assert to_calendar_day("2026-01-05T23:30:00Z") == FIRST_MONDAY_2026
    assert to_calendar_day("2026-01-05") == FIRST_MONDAY_2026
    assert to_calendar_day(FIRST_MONDAY_2026) == FIRST_MONDAY_2026


def test_to_calendar_day_rejects_garbage():
    with pytest.raises(ServiceValidationError):
        to_calendar_day("next monday")
    with pytest.raises(ServiceValidationError):
        to_calendar_day(20260105)


def test_weekly_dates_cover_every_monday_of_2026():
    days = weekly_dates_through_year_end(FIRST_MONDAY_2026)

    assert len(days) == 52
    assert days[0] == FIRST_MONDAY_2026
    assert days[-1] == date(2026, 12, 28)
    assert all(d.weekday() == 0 for d in days)
    assert all(d.year == 2026 for d in days)
    assert all(b - a == timedelta(days=7) for a, b in zip(days, days[1:]))


def test_weekly_dates_include_december_31():
    assert weekly_dates_through_year_end(date(2026, 12, 24)) == [
        date(2026, 12, 24),
        date(2026, 12, 31),
    ]
    assert weekly_dates_through_year_end(date(2026, 12, 31)) == [date(2026, 12, 31)]


def test_normalize_items_and_description():
    items = normalize_items(["  Riz ", {"name": "Poulet"}, "", {"name": "  "}, None, {"qty": 2}])

    assert items == ["Riz", "Poulet"]
    assert normalize_description("  ", items) == "Riz"
    assert normalize_description(None, []) == ""
    assert normalize_description(" Plat du jour ", items) == "Plat du jour"


# =============================================================================
# ANNUAL CREATION
# =============================================================================


def test_create_annual_menu_generates_approved_series(db_session: Session, campus):
    """
    Verifies:
    - One menu per Monday of 2026, none in 2027
    - All menus approved by the creator and sharing one series key
    - The returned menu is the start day with display names loaded
    """
    engine = MenuRecurrenceEngine(db_session)
    key, first, count = engine.create_annual_menu(
        caller_of(campus.manager), campus.school.school_id, FIRST_MONDAY_2026, MealType.LUNCH, _lunch()
    )

    menus = db_session.query(Menu).filter(Menu.annual_key == key).all()
    assert count == 52
    assert len(menus) == 52
    assert {m.date.weekday() for m in menus} == {0}
    assert not any(m.date.year == 2027 for m in menus)
    assert all(m.status == MenuStatus.APPROVED for m in menus)
    assert all(m.approved_by == campus.manager.user_id for m in menus)
    assert all(m.created_by == campus.manager.user_id for m in menus)
    assert all(m.is_annual for m in menus)

    assert first.date == FIRST_MONDAY_2026
    assert first.school_name == "Ecole Centre"
    assert first.creator_name == "Moussa Keita"


def test_create_annual_menu_is_idempotent(db_session: Session, campus):
    """Running the same creation twice keeps the row count; the last content wins"""
    engine = MenuRecurrenceEngine(db_session)
    caller = caller_of(campus.manager)
    engine.create_annual_menu(
        caller, campus.school.school_id, FIRST_MONDAY_2026, MealType.LUNCH, _lunch()
    )
    key, _, _ = engine.create_annual_menu(
        caller,
        campus.school.school_id,
        FIRST_MONDAY_2026,
        MealType.LUNCH,
        _lunch(description="Couscous", items=["Couscous"]),
    )

    menus = db_session.query(Menu).all()
    assert len(menus) == 52
    assert {m.description for m in menus} == {"Couscous"}
    assert {m.annual_key for m in menus} == {key}


def test_create_annual_menu_overwrites_an_existing_pending_menu(db_session: Session, campus):
    pending = make_menu(db_session, campus.school, campus.manager, date(2026, 2, 2))
    db_session.commit()

    key, _, _ = MenuRecurrenceEngine(db_session).create_annual_menu(
        caller_of(campus.manager), campus.school.school_id, FIRST_MONDAY_2026, "lunch", _lunch()
    )

    db_session.refresh(pending)
    assert pending.status == MenuStatus.APPROVED
    assert pending.annual_key == key
    assert db_session.query(Menu).count() == 52


def test_other_meal_types_and_schools_are_untouched(db_session: Session, campus):
    dinner = make_menu(
        db_session, campus.school, campus.manager, FIRST_MONDAY_2026, meal_type=MealType.DINNER
    )
    elsewhere = make_menu(db_session, campus.other_school, campus.other_manager, FIRST_MONDAY_2026)
    db_session.commit()

    MenuRecurrenceEngine(db_session).create_annual_menu(
        caller_of(campus.manager), campus.school.school_id, FIRST_MONDAY_2026, MealType.LUNCH, _lunch()
    )

    db_session.refresh(dinner)
    db_session.refresh(elsewhere)
    assert dinner.annual_key is None
    assert elsewhere.annual_key is None
    assert db_session.query(Menu).count() == 54


def test_create_annual_menu_accepts_a_late_evening_datetime(db_session: Session, campus):
    _, first, _ = MenuRecurrenceEngine(db_session).create_annual_menu(
        caller_of(campus.manager),
        campus.school.school_id,
        "2026-01-05T23:30:00Z",
        MealType.LUNCH,
        _lunch(),
    )
    assert first.date == FIRST_MONDAY_2026


@pytest.mark.parametrize(
    "school, day, meal",
    [
        (None, FIRST_MONDAY_2026, MealType.LUNCH),
        ("school", None, MealType.LUNCH),
        ("school", FIRST_MONDAY_2026, None),
    ],
)
def test_create_annual_menu_requires_school_date_and_meal_type(
    db_session: Session, campus, school, day, meal
):
    school_id = campus.school.school_id if school else None
    with pytest.raises(ServiceValidationError):
        MenuRecurrenceEngine(db_session).create_annual_menu(
            caller_of(campus.manager), school_id, day, meal, _lunch()
        )


def test_create_annual_menu_rejects_unknown_meal_type(db_session: Session, campus):
    with pytest.raises(ServiceValidationError):
        MenuRecurrenceEngine(db_session).create_annual_menu(
            caller_of(campus.manager), campus.school.school_id, FIRST_MONDAY_2026, "BRUNCH", _lunch()
        )


def test_create_annual_menu_unknown_school(db_session: Session, campus):
    with pytest.raises(NotFoundError):
        MenuRecurrenceEngine(db_session).create_annual_menu(
            caller_of(campus.super_admin), uuid.uuid4(), FIRST_MONDAY_2026, MealType.LUNCH, _lunch()
        )


def test_create_annual_menu_outside_scope_is_forbidden(db_session: Session, campus):
    with pytest.raises(ForbiddenError):
        MenuRecurrenceEngine(db_session).create_annual_menu(
            caller_of(campus.manager),
            campus.other_school.school_id,
            FIRST_MONDAY_2026,
            MealType.LUNCH,
            _lunch(),
        )
    assert db_session.query(Menu).count() == 0


# =============================================================================
# RACES
# =============================================================================


def _lost_race():
    return IntegrityError("INSERT INTO menu", {}, Exception("UNIQUE constraint failed"))


def test_lost_insert_race_is_retried(db_session: Session, campus, monkeypatch):
    """
    Verifies:
    - An IntegrityError rolls the attempt back and replays the generation
    - The replay produces the full series
    """
    real_upsert = MenuRecurrenceEngine._upsert_series
    calls = {"n": 0}

    def flaky_upsert(self, *args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            raise _lost_race()
        return real_upsert(self, *args, **kwargs)

    monkeypatch.setattr(MenuRecurrenceEngine, "_upsert_series", flaky_upsert)

    _, first, count = MenuRecurrenceEngine(db_session).create_annual_menu(
        caller_of(campus.manager), campus.school.school_id, FIRST_MONDAY_2026, MealType.LUNCH, _lunch()
    )

    assert calls["n"] == 2
    assert count == 52
    assert first.date == FIRST_MONDAY_2026
    assert db_session.query(Menu).count() == 52


def test_exhausted_retries_raise_conflict(db_session: Session, campus, monkeypatch):
    monkeypatch.setattr(settings, "menu_upsert_attempts", 2)
    calls = {"n": 0}

    def always_lose(self, *args, **kwargs):
        calls["n"] += 1
        raise _lost_race()

    monkeypatch.setattr(MenuRecurrenceEngine, "_upsert_series", always_lose)

    with pytest.raises(ConflictError):
        MenuRecurrenceEngine(db_session).create_annual_menu(
            caller_of(campus.manager), campus.school.school_id, FIRST_MONDAY_2026, MealType.LUNCH, _lunch()
        )
    assert calls["n"] == 2
    assert db_session.query(Menu).count() == 0
