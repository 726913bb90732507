"""Live UI sync events."""

from .events import (  # noqa: F401
    InMemorySyncPublisher,
    RedisSyncPublisher,
    SyncBroadcaster,
    SyncEntity,
    SyncEvent,
    SyncEventPublisher,
    SyncOperation,
)
