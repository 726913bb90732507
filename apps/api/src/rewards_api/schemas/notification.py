from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class NotificationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: UUID
    recipient_id: UUID = Field(..., alias="recipientId")
    business_id: UUID | None = Field(None, alias="businessId")
    type: str
    title: str
    message: str
    data: dict[str, Any] | None = None
    reference_id: str | None = Field(None, alias="referenceId")
    requires_action: bool = Field(..., alias="requiresAction")
    action_taken: bool = Field(..., alias="actionTaken")
    is_read: bool = Field(..., alias="isRead")
    read_at: datetime | None = Field(None, alias="readAt")
    created_at: datetime | None = Field(None, alias="createdAt")
