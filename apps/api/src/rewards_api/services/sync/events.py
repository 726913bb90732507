"""Change events pushed to live customer and business sessions."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

from loguru import logger
from redis.asyncio import Redis


class SyncEntity(str, Enum):
    LOYALTY_CARDS = "loyalty_cards"
    PROGRAM_ENROLLMENTS = "program_enrollments"


class SyncOperation(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    DECLINED = "DECLINED"


@dataclass(frozen=True)
class SyncEvent:
    entity: SyncEntity
    operation: SyncOperation
    record_id: str
    customer_id: str
    business_id: str
    data: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> dict[str, Any]:
        return {
            "entity": self.entity.value,
            "operation": self.operation.value,
            "recordId": self.record_id,
            "customerId": self.customer_id,
            "businessId": self.business_id,
            "data": self.data,
            "createdAt": self.created_at.isoformat(),
        }


class SyncEventPublisher(Protocol):
    async def publish(self, event: SyncEvent) -> None:
        ...


class InMemorySyncPublisher:
    """Collects events in order; used by tests and local development."""

    def __init__(self) -> None:
        self.events: list[SyncEvent] = []

    async def publish(self, event: SyncEvent) -> None:
        self.events.append(event)

    def clear(self) -> None:
        self.events.clear()


class RedisSyncPublisher:
    """Publishes each event on a table-wide and a customer-scoped channel."""

    def __init__(self, redis_client: Redis, *, channel_prefix: str = "rewards:sync") -> None:
        self._redis = redis_client
        self._prefix = channel_prefix

    def channels_for(self, event: SyncEvent) -> tuple[str, str]:
        table_channel = f"{self._prefix}:{event.entity.value}"
        return table_channel, f"{table_channel}:{event.customer_id}"

    async def publish(self, event: SyncEvent) -> None:
        payload = json.dumps(event.as_dict(), default=str)
        for channel in self.channels_for(event):
            await self._redis.publish(channel, payload)


class SyncBroadcaster:
    """Builds sync events for domain changes; emission never raises.

    Without a publisher (batch jobs, migrations) every emit is a no-op.
    """

    def __init__(self, publisher: SyncEventPublisher | None = None) -> None:
        self._publisher = publisher

    @property
    def enabled(self) -> bool:
        return self._publisher is not None

    async def emit_card_changed(
        self,
        card_id: UUID | str,
        customer_id: UUID | str,
        business_id: UUID | str,
        operation: SyncOperation,
        context: dict[str, Any] | None = None,
    ) -> bool:
        return await self._emit(
            SyncEvent(
                entity=SyncEntity.LOYALTY_CARDS,
                operation=operation,
                record_id=str(card_id),
                customer_id=str(customer_id),
                business_id=str(business_id),
                data={"cardId": str(card_id), **(context or {})},
            )
        )

    async def emit_enrollment_changed(
        self,
        customer_id: UUID | str,
        business_id: UUID | str,
        program_id: UUID | str,
        operation: SyncOperation,
    ) -> bool:
        return await self._emit(
            SyncEvent(
                entity=SyncEntity.PROGRAM_ENROLLMENTS,
                operation=operation,
                record_id=f"{customer_id}:{program_id}",
                customer_id=str(customer_id),
                business_id=str(business_id),
                data={"programId": str(program_id)},
            )
        )

    async def _emit(self, event: SyncEvent) -> bool:
        if self._publisher is None:
            return False
        try:
            await self._publisher.publish(event)
        except Exception:
            logger.exception(
                "Failed to publish sync event",
                entity=event.entity.value,
                operation=event.operation.value,
                record_id=event.record_id,
            )
            return False
        return True


__all__ = [
    "InMemorySyncPublisher",
    "RedisSyncPublisher",
    "SyncBroadcaster",
    "SyncEntity",
    "SyncEvent",
    "SyncEventPublisher",
    "SyncOperation",
]
