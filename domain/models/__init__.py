"""
Domain models package - SQLAlchemy ORM models.
"""

from domain.models.database import (
    Base,
    engine,
    SessionLocal,
    init_database,
    get_db_session,
)
from domain.models.user import AppUser, School, Student
from domain.models.menu import Menu
from domain.models.billing import Subscription, Payment
from domain.models.notification import Notification
from domain.models.attendance import Attendance

__all__ = [
    # Database
    "Base",
    "engine",
    "SessionLocal",
    "init_database",
    "get_db_session",
    # Directory models
    "AppUser",
    "School",
    "Student",
    # Menu models
    "Menu",
    # Billing models
    "Subscription",
    "Payment",
    # Notification models
    "Notification",
    # Attendance models
    "Attendance",
]
