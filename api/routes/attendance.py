"""Attendance routes"""

import datetime as dt
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
import logging
from uuid import UUID
from typing import List, Optional

from api.dependencies import get_current_caller, require_roles
from api.responses import APIResponse, success_response
from domain.enums import UserRole
from domain.models import get_db_session
from domain.schemas.attendance_schemas import (
    AttendanceMarkRequest,
    AttendanceMarkResult,
    AttendanceResponse,
)
from services.access_policy import Caller
from services.attendance_service import AttendanceService

router = APIRouter(prefix="/attendance", tags=["Attendance"])
logger = logging.getLogger("canteen.api.attendance")

STAFF = (UserRole.CANTEEN_MANAGER, UserRole.SCHOOL_ADMIN, UserRole.SUPER_ADMIN)


@router.get("", response_model=APIResponse[List[AttendanceResponse]])
def list_attendance(
    student_id: Optional[UUID] = Query(None),
    date: Optional[dt.date] = Query(None),
    school_id: Optional[UUID] = Query(None),
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
):
    records = AttendanceService.list_attendance(
        db, caller, student_id=student_id, day=date, school_id=school_id
    )
    return success_response([AttendanceResponse.model_validate(a) for a in records])


@router.get("/student/{student_id}", response_model=APIResponse[List[AttendanceResponse]])
def get_student_attendance(
    student_id: UUID,
    start_date: Optional[dt.date] = Query(None),
    end_date: Optional[dt.date] = Query(None),
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db_session),
):
    records = AttendanceService.get_student_attendance(
        db, caller, student_id, start=start_date, end=end_date
    )
    return success_response([AttendanceResponse.model_validate(a) for a in records])


@router.post(
    "/mark",
    response_model=APIResponse[AttendanceMarkResult],
    status_code=status.HTTP_201_CREATED,
)
def mark_attendance(
    payload: AttendanceMarkRequest,
    caller: Caller = Depends(require_roles(*STAFF)),
    db: Session = Depends(get_db_session),
):
    """Mark a student present or absent at a menu; the parent is notified"""
    attendance, notified = AttendanceService.mark_attendance(
        db,
        caller,
        payload.student_id,
        payload.menu_id,
        payload.present,
        justified=payload.justified,
        reason=payload.reason,
    )
    return success_response(
        AttendanceMarkResult(
            attendance=AttendanceResponse.model_validate(attendance),
            notification_sent=notified,
        ),
        "Attendance recorded",
    )
