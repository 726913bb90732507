"""Process-wide collaborators attached to ``app.state`` by the app factory."""

from __future__ import annotations

from fastapi import Request

from rewards_api.services.cards.cache import CardCache, InMemoryCardCache
from rewards_api.services.sync.events import SyncEventPublisher


def get_card_cache(request: Request) -> CardCache:
    cache = getattr(request.app.state, "card_cache", None)
    if cache is None:
        cache = InMemoryCardCache()
        request.app.state.card_cache = cache
    return cache


def get_sync_publisher(request: Request) -> SyncEventPublisher | None:
    return getattr(request.app.state, "sync_publisher", None)
