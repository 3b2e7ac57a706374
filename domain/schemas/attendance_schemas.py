import datetime as dt
from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID

from domain.enums import MealType


class AttendanceMarkRequest(BaseModel):
    """Schema for marking a student present or absent at one menu"""

    student_id: Optional[UUID] = None
    menu_id: Optional[UUID] = None
    present: Optional[bool] = None
    justified: bool = Field(False, description="Only meaningful for an absence")
    reason: Optional[str] = None


class AttendanceResponse(BaseModel):
    attendance_id: UUID
    student_id: UUID
    student_name: Optional[str] = None
    menu_id: UUID
    meal_type: Optional[MealType] = None
    menu_description: Optional[str] = None
    date: dt.date
    present: bool
    justified: bool
    reason: Optional[str] = None
    marked_by: UUID
    created_at: Optional[dt.datetime] = None

    model_config = {"from_attributes": True}


class AttendanceMarkResult(BaseModel):
    attendance: AttendanceResponse
    notification_sent: bool
