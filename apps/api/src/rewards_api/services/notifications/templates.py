"""In-app notification copy for enrollment decisions."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class RenderedNotification:
    title: str
    message: str


def render_customer_enrollment_decision(
    *,
    approved: bool,
    program_name: str,
    business_name: str,
) -> RenderedNotification:
    """Copy shown to the customer who answered the invitation."""

    if approved:
        return RenderedNotification(
            title="Program Joined",
            message=f"You've joined {business_name}'s {program_name} program",
        )
    return RenderedNotification(
        title="Program Declined",
        message=f"You've declined to join {business_name}'s {program_name} program",
    )


def render_business_enrollment_decision(*, approved: bool, program_name: str) -> RenderedNotification:
    """Copy shown to the business that issued the invitation."""

    if approved:
        return RenderedNotification(
            title="Customer Joined Program",
            message=f"A customer has joined your {program_name} program",
        )
    return RenderedNotification(
        title="Enrollment Declined",
        message=f"A customer has declined to join your {program_name} program",
    )


__all__ = [
    "RenderedNotification",
    "render_business_enrollment_decision",
    "render_customer_enrollment_decision",
]
