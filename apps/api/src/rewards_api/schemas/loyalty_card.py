from pydantic import BaseModel, ConfigDict, Field


class LoyaltyCardResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    card_number: str = Field(..., alias="cardNumber")
    customer_id: str = Field(..., alias="customerId")
    business_id: str = Field(..., alias="businessId")
    program_id: str = Field(..., alias="programId")
    program_name: str | None = Field(None, alias="programName")
    business_name: str | None = Field(None, alias="businessName")
    tier: str
    points: float
    points_multiplier: float = Field(..., alias="pointsMultiplier")
    status: str
    created_at: str | None = Field(None, alias="createdAt")
