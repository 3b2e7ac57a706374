"""
Repositories package - Data access layer.
"""

from repositories.base import BaseRepository
from repositories.user_repository import (
    UserRepository,
    SchoolRepository,
    StudentRepository,
)
from repositories.menu_repository import MenuRepository
from repositories.billing_repository import SubscriptionRepository, PaymentRepository
from repositories.notification_repository import NotificationRepository
from repositories.attendance_repository import AttendanceRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "SchoolRepository",
    "StudentRepository",
    "MenuRepository",
    "SubscriptionRepository",
    "PaymentRepository",
    "NotificationRepository",
    "AttendanceRepository",
]
