"""Notification service package."""

from .service import CustomerNotificationService
from .templates import (
    RenderedNotification,
    render_business_enrollment_decision,
    render_customer_enrollment_decision,
)

__all__ = [
    "CustomerNotificationService",
    "RenderedNotification",
    "render_business_enrollment_decision",
    "render_customer_enrollment_decision",
]
