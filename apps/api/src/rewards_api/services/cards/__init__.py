"""Loyalty card services."""

from .cache import CardCache, InMemoryCardCache, RedisCardCache, customer_cards_key  # noqa: F401
from .issuance import CardIssuanceService, IssuedCard, generate_card_number  # noqa: F401
from .listing import LoyaltyCardListingService  # noqa: F401
