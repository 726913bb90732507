from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from rewards_api.models.enrollment import EnrollmentRequestStatus


class EnrollmentDecisionRequest(BaseModel):
    approved: bool = Field(..., description="True to join the program, false to decline")


class EnrollmentDecisionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    card_id: str | None = Field(None, alias="cardId")
    error_code: str | None = Field(None, alias="errorCode")
    error_location: str | None = Field(None, alias="errorLocation")


class EnrollmentRequestSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: UUID
    customer_id: UUID = Field(..., alias="customerId")
    business_id: UUID = Field(..., alias="businessId")
    program_id: UUID = Field(..., alias="programId")
    program_name: str = Field(..., alias="programName")
    business_name: str = Field(..., alias="businessName")
    status: EnrollmentRequestStatus
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = Field(None, alias="createdAt")
