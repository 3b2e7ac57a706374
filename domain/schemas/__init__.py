"""
Domain schemas package - Pydantic models for validation.
"""

from domain.schemas.menu_schemas import (
    MenuCreateRequest,
    MenuUpdateRequest,
    MenuApprovalRequest,
    MenuResponse,
    MenuCreateResult,
    MenuUpdateResult,
    MenuDeleteResult,
    WeekMenusResponse,
)
from domain.schemas.billing_schemas import (
    SubscriptionCreate,
    SubscriptionStatusUpdate,
    SubscriptionResponse,
    PaymentCreate,
    PaymentVerifyRequest,
    PaymentValidateRequest,
    PaymentResponse,
    PaymentResult,
    PaymentStatusSummary,
)
from domain.schemas.notification_schemas import (
    NotificationResponse,
    UnreadCountResponse,
    MarkAllReadResponse,
)
from domain.schemas.attendance_schemas import (
    AttendanceMarkRequest,
    AttendanceResponse,
    AttendanceMarkResult,
)

__all__ = [
    # Menu schemas
    "MenuCreateRequest",
    "MenuUpdateRequest",
    "MenuApprovalRequest",
    "MenuResponse",
    "MenuCreateResult",
    "MenuUpdateResult",
    "MenuDeleteResult",
    "WeekMenusResponse",
    # Billing schemas
    "SubscriptionCreate",
    "SubscriptionStatusUpdate",
    "SubscriptionResponse",
    "PaymentCreate",
    "PaymentVerifyRequest",
    "PaymentValidateRequest",
    "PaymentResponse",
    "PaymentResult",
    "PaymentStatusSummary",
    # Notification schemas
    "NotificationResponse",
    "UnreadCountResponse",
    "MarkAllReadResponse",
    # Attendance schemas
    "AttendanceMarkRequest",
    "AttendanceResponse",
    "AttendanceMarkResult",
]
