"""
Domain enums for the SchoolCanteen application.
Contains all enumeration types used across the domain models.
"""

import enum


class UserRole(str, enum.Enum):
    """Closed set of caller roles"""

    SUPER_ADMIN = "SUPER_ADMIN"
    SCHOOL_ADMIN = "SCHOOL_ADMIN"
    CANTEEN_MANAGER = "CANTEEN_MANAGER"
    PARENT = "PARENT"


class MealType(str, enum.Enum):
    BREAKFAST = "BREAKFAST"
    LUNCH = "LUNCH"
    DINNER = "DINNER"


class MenuStatus(str, enum.Enum):
    """Menu approval states"""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class MealPlan(str, enum.Enum):
    """Subscription plan tiers"""

    STANDARD = "STANDARD"
    PREMIUM = "PREMIUM"
    VEGETARIAN = "VEGETARIAN"


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"
    PENDING_PAYMENT = "PENDING_PAYMENT"


class PaymentMethod(str, enum.Enum):
    CREDIT_CARD = "CREDIT_CARD"
    MOBILE_MONEY = "MOBILE_MONEY"
    BANK_TRANSFER = "BANK_TRANSFER"
    CASH = "CASH"


class PaymentStatus(str, enum.Enum):
    """Payment lifecycle; COMPLETED, FAILED and REFUNDED are terminal"""

    PENDING = "PENDING"
    WAITING_ADMIN_VALIDATION = "WAITING_ADMIN_VALIDATION"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class NotificationType(str, enum.Enum):
    MEAL_TAKEN = "MEAL_TAKEN"
    MEAL_MISSED = "MEAL_MISSED"
    MENU_SUBMITTED = "MENU_SUBMITTED"
    MENU_APPROVED = "MENU_APPROVED"
    MENU_REJECTED = "MENU_REJECTED"
    MENU_UPDATED = "MENU_UPDATED"
    MENU_DELETED = "MENU_DELETED"
    ABSENCE = "ABSENCE"
