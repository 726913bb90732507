"""Idempotent loyalty card issuance for approved enrollments."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Callable
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rewards_api.core.settings import settings
from rewards_api.models.loyalty_card import LoyaltyCard, LoyaltyCardStatus

if TYPE_CHECKING:
    from rewards_api.services.enrollment.requests import EnrollmentRequestContext


def generate_card_number(
    prefix: str | None = None,
    *,
    clock: Callable[[], float] = time.time,
    rng: random.Random | None = None,
) -> str:
    """Build ``<prefix>-<last 6 digits of epoch millis>-<4 random digits>``."""

    millis = int(clock() * 1000)
    suffix = (rng or random).randrange(10_000)
    return f"{prefix or settings.card_number_prefix}-{millis % 1_000_000:06d}-{suffix:04d}"


@dataclass(frozen=True)
class IssuedCard:
    card_id: UUID
    created: bool


class CardIssuanceService:
    """Finds or creates the single card of a (customer, program) pair."""

    def __init__(
        self,
        db_session: AsyncSession,
        *,
        number_factory: Callable[[], str] | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self._db = db_session
        self._number_factory = number_factory or generate_card_number
        self._max_attempts = max_attempts or settings.card_number_max_attempts

    async def find_card(self, customer_id: UUID, program_id: UUID) -> LoyaltyCard | None:
        stmt = select(LoyaltyCard).where(
            LoyaltyCard.customer_id == customer_id,
            LoyaltyCard.program_id == program_id,
        )
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def issue_for_enrollment(self, context: EnrollmentRequestContext) -> IssuedCard | None:
        """Return the pair's card, creating it when none exists.

        ``created`` is false when an existing card was reused or reactivated.
        Returns ``None`` when the card could not be persisted.
        """

        try:
            existing = await self.find_card(context.customer_id, context.program_id)
            if existing is not None:
                await self._reactivate(existing)
                logger.info("Reusing existing loyalty card", card_id=str(existing.id), **context.log_context())
                return IssuedCard(existing.id, created=False)

            for attempt in range(1, self._max_attempts + 1):
                card = self._build_card(context)
                try:
                    async with self._db.begin_nested():
                        self._db.add(card)
                except IntegrityError:
                    winner = await self.find_card(context.customer_id, context.program_id)
                    if winner is not None:
                        logger.warning(
                            "Detected race when issuing loyalty card",
                            card_id=str(winner.id),
                            **context.log_context(),
                        )
                        return IssuedCard(winner.id, created=False)
                    logger.warning(
                        "Card number collision, regenerating",
                        card_number=card.card_number,
                        attempt=attempt,
                        **context.log_context(),
                    )
                    continue

                logger.info(
                    "Issued loyalty card",
                    card_id=str(card.id),
                    card_number=card.card_number,
                    **context.log_context(),
                )
                return IssuedCard(card.id, created=True)
        except SQLAlchemyError:
            logger.exception("Failed to issue loyalty card", **context.log_context())
            return None

        logger.error(
            "Exhausted card number attempts",
            attempts=self._max_attempts,
            **context.log_context(),
        )
        return None

    def _build_card(self, context: EnrollmentRequestContext) -> LoyaltyCard:
        tier = settings.default_card_tier
        return LoyaltyCard(
            customer_id=context.customer_id,
            business_id=context.business_id,
            program_id=context.program_id,
            card_number=self._number_factory(),
            card_type=tier,
            tier=tier,
            points=Decimal("0"),
            points_multiplier=Decimal("1.0"),
            is_active=True,
            status=LoyaltyCardStatus.ACTIVE.value,
        )

    async def _reactivate(self, card: LoyaltyCard) -> None:
        if card.is_active and card.status == LoyaltyCardStatus.ACTIVE.value:
            return
        card.is_active = True
        card.status = LoyaltyCardStatus.ACTIVE.value
        await self._db.flush()
        logger.info("Reactivated loyalty card", card_id=str(card.id))


__all__ = ["CardIssuanceService", "IssuedCard", "generate_card_number"]
