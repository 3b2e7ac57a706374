import datetime as dt
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Dict, Any, Union
from uuid import UUID

from domain.enums import MealType, MenuStatus


class MenuCreateRequest(BaseModel):
    """Schema for creating a menu (annual series unless recurring is false)"""

    school_id: Optional[UUID] = None
    date: Optional[Union[dt.date, dt.datetime]] = Field(
        None, description="First day of the series; a datetime keeps its own calendar day"
    )
    meal_type: Optional[MealType] = None
    description: Optional[str] = None
    items: List[Union[str, Dict[str, Any]]] = Field(
        default_factory=list, description="Item names or {'name': ...} objects"
    )
    allergens: List[str] = Field(default_factory=list)
    recurring: bool = Field(
        default=True, description="Generate the weekly series through December 31"
    )

    @field_validator("meal_type", mode="before")
    @classmethod
    def upper_meal_type(cls, v):
        return v.strip().upper() if isinstance(v, str) else v


class MenuUpdateRequest(BaseModel):
    """
    Schema for menu updates.

    Unknown keys are accepted and later discarded by the service, so clients
    sending back a full menu document do not fail.
    """

    description: Optional[str] = None
    items: Optional[List[Union[str, Dict[str, Any]]]] = None
    allergens: Optional[List[str]] = None
    meal_type: Optional[MealType] = None
    date: Optional[Union[dt.date, dt.datetime]] = None

    model_config = ConfigDict(extra="allow")

    @field_validator("meal_type", mode="before")
    @classmethod
    def upper_meal_type(cls, v):
        return v.strip().upper() if isinstance(v, str) else v


class MenuApprovalRequest(BaseModel):
    approved: Optional[bool] = None
    rejection_reason: Optional[str] = None


class MenuResponse(BaseModel):
    """Schema for menu response"""

    menu_id: UUID
    school_id: UUID
    school_name: Optional[str] = None
    date: dt.date
    meal_type: MealType
    description: Optional[str] = None
    items: List[str] = Field(default_factory=list)
    allergens: List[str] = Field(default_factory=list)
    status: MenuStatus
    created_by: UUID
    creator_name: Optional[str] = None
    approved_by: Optional[UUID] = None
    approver_name: Optional[str] = None
    approved_at: Optional[dt.datetime] = None
    rejection_reason: Optional[str] = None
    annual_key: Optional[str] = None
    is_annual: bool = False
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    model_config = {"from_attributes": True}

    @field_validator("items", "allergens", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return v or []


class MenuCreateResult(BaseModel):
    menu: MenuResponse
    annual_key: Optional[str] = None
    created_count: int


class MenuUpdateResult(BaseModel):
    menu: MenuResponse
    updated_count: int


class MenuDeleteResult(BaseModel):
    menu_id: UUID
    annual_key: Optional[str] = None
    deleted_count: int


class WeekMenusResponse(BaseModel):
    """Approved menus of a 7-day window"""

    school_id: UUID
    week_start: dt.date
    week_end: dt.date
    menus: List[MenuResponse]
