"""Read-through listing of a customer's loyalty cards."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rewards_api.core.settings import settings
from rewards_api.models.loyalty_card import LoyaltyCard
from rewards_api.models.loyalty_program import LoyaltyProgram
from rewards_api.models.user import User

from .cache import CardCache, customer_cards_key


class LoyaltyCardListingService:
    """Lists cards with program/business names, cached per customer."""

    def __init__(
        self,
        db_session: AsyncSession,
        cache: CardCache,
        *,
        ttl_seconds: int | None = None,
    ) -> None:
        self._db = db_session
        self._cache = cache
        self._ttl = settings.card_cache_ttl_seconds if ttl_seconds is None else ttl_seconds

    async def list_customer_cards(self, customer_id: UUID) -> list[dict[str, Any]]:
        key = customer_cards_key(customer_id)
        cached = await self._cache.get(key)
        if cached is not None:
            logger.debug("Card listing cache hit", customer_id=str(customer_id))
            return cached

        stmt = (
            select(
                LoyaltyCard,
                LoyaltyProgram.name.label("program_name"),
                User.display_name.label("business_name"),
            )
            .outerjoin(LoyaltyProgram, LoyaltyProgram.id == LoyaltyCard.program_id)
            .outerjoin(User, User.id == LoyaltyCard.business_id)
            .where(LoyaltyCard.customer_id == customer_id, LoyaltyCard.is_active.is_(True))
            .order_by(LoyaltyCard.created_at.desc())
        )
        result = await self._db.execute(stmt)
        cards = [
            _serialize_card(card, program_name=program_name, business_name=business_name)
            for card, program_name, business_name in result.all()
        ]
        await self._cache.set(key, cards, ttl_seconds=self._ttl)
        logger.debug("Card listing cache refreshed", customer_id=str(customer_id), count=len(cards))
        return cards

    async def invalidate_customer(self, customer_id: UUID) -> None:
        await self._cache.invalidate(customer_cards_key(customer_id))


def _serialize_card(card: LoyaltyCard, *, program_name: str | None, business_name: str | None) -> dict[str, Any]:
    return {
        "id": str(card.id),
        "cardNumber": card.card_number,
        "customerId": str(card.customer_id),
        "businessId": str(card.business_id),
        "programId": str(card.program_id),
        "programName": program_name,
        "businessName": business_name,
        "tier": card.tier,
        "points": float(card.points or 0),
        "pointsMultiplier": float(card.points_multiplier or 1),
        "status": card.status,
        "createdAt": card.created_at.isoformat() if card.created_at else None,
    }


__all__ = ["LoyaltyCardListingService"]
