"""Menu routes: reading, annual creation, updates and approval"""

import datetime as dt
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
import logging
from uuid import UUID
from typing import List, Optional, Union

from api.dependencies import get_current_caller, require_roles
from api.responses import APIResponse, success_response
from domain.enums import MealType, MenuStatus, UserRole
from domain.models import get_db_session
from domain.schemas.menu_schemas import (
    MenuApprovalRequest,
    MenuCreateRequest,
    MenuCreateResult,
    MenuDeleteResult,
    MenuResponse,
    MenuUpdateRequest,
    MenuUpdateResult,
    WeekMenusResponse,
)
from services.access_policy import Caller
from services.menu_recurrence import MenuContent
from services.menu_service import MenuService

router = APIRouter(prefix="/menus", tags=["Menus"])
logger = logging.getLogger("canteen.api.menus")

MENU_EDITORS = (UserRole.SCHOOL_ADMIN, UserRole.CANTEEN_MANAGER, UserRole.SUPER_ADMIN)
MENU_APPROVERS = (UserRole.SCHOOL_ADMIN, UserRole.SUPER_ADMIN)


def _week_payload(week: dict) -> WeekMenusResponse:
    return WeekMenusResponse(
        school_id=week["school_id"],
        week_start=week["week_start"],
        week_end=week["week_end"],
        menus=[MenuResponse.model_validate(m) for m in week["menus"]],
    )


@router.get("/today", response_model=APIResponse[List[MenuResponse]])
def get_today_menus(
    school_id: Optional[UUID] = Query(None),
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
):
    """Menus served today at a school"""
    menus = MenuService.get_today_menus(db, caller, school_id)
    return success_response([MenuResponse.model_validate(m) for m in menus])


@router.get("/pending", response_model=APIResponse[List[MenuResponse]])
def get_pending_menus(
    school_id: Optional[UUID] = Query(None),
    caller: Caller = Depends(require_roles(*MENU_APPROVERS)),
    db: Session = Depends(get_db_session),
):
    """Menus waiting for an approval decision"""
    menus = MenuService.list_pending_menus(db, caller, school_id)
    return success_response([MenuResponse.model_validate(m) for m in menus])


@router.get("/week/{school_id}", response_model=APIResponse[WeekMenusResponse])
def get_week_menus(
    school_id: UUID,
    start_date: Optional[dt.date] = Query(None, description="Defaults to this week's Monday"),
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
):
    week = MenuService.get_week_menus(db, caller, school_id, start_date)
    return success_response(_week_payload(week))


@router.get("", response_model=APIResponse[Union[WeekMenusResponse, List[MenuResponse]]])
def list_menus(
    school_id: Optional[UUID] = Query(None),
    date: Optional[dt.date] = Query(None),
    status_filter: Optional[MenuStatus] = Query(None, alias="status"),
    meal_type: Optional[MealType] = Query(None),
    start_date: Optional[dt.date] = Query(
        None, description="Return the approved 7-day window starting on this day"
    ),
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
):
    """
    List menus visible to the caller.

    With ``start_date`` the response is the approved week starting that day
    instead of a flat list.
    """
    if start_date is not None:
        week = MenuService.get_week_menus(db, caller, school_id, start_date)
        return success_response(_week_payload(week))

    menus = MenuService.list_menus(
        db, caller, school_id=school_id, day=date, status=status_filter, meal_type=meal_type
    )
    return success_response([MenuResponse.model_validate(m) for m in menus])


@router.get("/{menu_id}", response_model=APIResponse[MenuResponse])
def get_menu(
    menu_id: UUID,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
):
    menu = MenuService.get_menu(db, caller, menu_id)
    return success_response(MenuResponse.model_validate(menu))


@router.post(
    "",
    response_model=APIResponse[MenuCreateResult],
    status_code=status.HTTP_201_CREATED,
)
def create_menu(
    payload: MenuCreateRequest,
    caller: Caller = Depends(require_roles(UserRole.CANTEEN_MANAGER)),
    db: Session = Depends(get_db_session),
):
    """
    Create a menu.

    By default the menu repeats every week on the same weekday until
    December 31 and is approved immediately. With ``recurring: false`` a
    single menu is submitted for approval.
    """
    content = MenuContent(
        description=payload.description, items=payload.items, allergens=payload.allergens
    )
    menu, series_key, count = MenuService.create_menu(
        db,
        caller,
        payload.school_id,
        payload.date,
        payload.meal_type,
        content,
        recurring=payload.recurring,
    )
    message = (
        f"Annual menu created ({count} weeks)" if series_key else "Menu submitted for approval"
    )
    return success_response(
        MenuCreateResult(
            menu=MenuResponse.model_validate(menu), annual_key=series_key, created_count=count
        ),
        message,
    )


@router.put("/{menu_id}", response_model=APIResponse[MenuUpdateResult])
def update_menu(
    menu_id: UUID,
    payload: MenuUpdateRequest,
    caller: Caller = Depends(require_roles(*MENU_EDITORS)),
    db: Session = Depends(get_db_session),
):
    """Update a menu; a menu of an annual series updates the whole series"""
    menu, count = MenuService.update_menu(
        db, caller, menu_id, payload.model_dump(exclude_unset=True)
    )
    return success_response(
        MenuUpdateResult(menu=MenuResponse.model_validate(menu), updated_count=count),
        "Menu updated",
    )


@router.delete("/{menu_id}", response_model=APIResponse[MenuDeleteResult])
def delete_menu(
    menu_id: UUID,
    caller: Caller = Depends(require_roles(*MENU_EDITORS)),
    db: Session = Depends(get_db_session),
):
    """Delete a menu; a menu of an annual series deletes the whole series"""
    menu, count = MenuService.delete_menu(db, caller, menu_id)
    return success_response(
        MenuDeleteResult(menu_id=menu_id, annual_key=menu.annual_key, deleted_count=count),
        "Menu deleted",
    )


@router.api_route(
    "/{menu_id}/approve",
    methods=["POST", "PUT"],
    response_model=APIResponse[MenuResponse],
)
def approve_menu(
    menu_id: UUID,
    payload: MenuApprovalRequest,
    caller: Caller = Depends(require_roles(*MENU_APPROVERS)),
    db: Session = Depends(get_db_session),
):
    """Approve or reject a pending menu"""
    menu = MenuService.approve_menu(
        db, caller, menu_id, payload.approved, payload.rejection_reason
    )
    message = "Menu approved" if payload.approved else "Menu rejected"
    return success_response(MenuResponse.model_validate(menu), message)
