from enum import Enum
from uuid import uuid4

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from rewards_api.db.base import Base


class NotificationTypeEnum(str, Enum):
    ENROLLMENT_INVITATION = "ENROLLMENT_INVITATION"
    ENROLLMENT_ACCEPTED = "ENROLLMENT_ACCEPTED"
    ENROLLMENT_REJECTED = "ENROLLMENT_REJECTED"


class Notification(Base):
    """In-app notification addressed to a customer or a business."""

    __tablename__ = "notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    recipient_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    business_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    type = Column(String(length=48), nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    # Entity the notification is about, e.g. the enrollment request of an invitation.
    reference_id = Column(String, nullable=True, index=True)
    requires_action = Column(Boolean, nullable=False, default=False, server_default="false")
    action_taken = Column(Boolean, nullable=False, default=False, server_default="false")
    is_read = Column(Boolean, nullable=False, default=False, server_default="false")
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
