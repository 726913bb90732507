from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from rewards_api.api.dependencies.runtime import get_card_cache
from rewards_api.db.session import get_session
from rewards_api.schemas.loyalty_card import LoyaltyCardResponse
from rewards_api.services.cards import CardCache, LoyaltyCardListingService

router = APIRouter(prefix="/loyalty-cards", tags=["Loyalty Cards"])


@router.get(
    "/customers/{customer_id}",
    response_model=List[LoyaltyCardResponse],
    summary="List a customer's active loyalty cards",
)
async def list_customer_cards(
    customer_id: UUID,
    session: AsyncSession = Depends(get_session),
    card_cache: CardCache = Depends(get_card_cache),
) -> List[LoyaltyCardResponse]:
    service = LoyaltyCardListingService(session, card_cache)
    cards = await service.list_customer_cards(customer_id)
    return [LoyaltyCardResponse.model_validate(card) for card in cards]
