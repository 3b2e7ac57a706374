"""API routes package"""

from . import health, menus, subscriptions, payments, notifications, attendance

__all__ = ["health", "menus", "subscriptions", "payments", "notifications", "attendance"]
