"""Services package - Business logic layer"""

from services.access_policy import Caller, SchoolScope, policy_for, resolve_accessible_schools
from services.menu_recurrence import MenuContent, MenuRecurrenceEngine
from services.menu_service import MenuService
from services.notification_service import NotificationService
from services.payment_service import PaymentService
from services.subscription_service import SubscriptionService

__all__ = [
    "Caller",
    "SchoolScope",
    "policy_for",
    "resolve_accessible_schools",
    "MenuContent",
    "MenuRecurrenceEngine",
    "MenuService",
    "NotificationService",
    "PaymentService",
    "SubscriptionService",
]
