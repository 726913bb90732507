from __future__ import annotations

from typing import Dict, Literal

from fastapi import APIRouter, Depends, Request
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rewards_api.core.settings import settings
from rewards_api.db.session import get_session


router = APIRouter()


class ComponentStatus(BaseModel):
    status: Literal["ready", "disabled", "error"]
    detail: str | None = Field(default=None, description="Human readable status detail")


class ReadinessPayload(BaseModel):
    status: Literal["ready", "degraded", "error"]
    components: Dict[str, ComponentStatus]


@router.get("/readyz", summary="Service readiness", response_model=ReadinessPayload)
async def service_readiness(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> ReadinessPayload:
    components: Dict[str, ComponentStatus] = {}
    status: Literal["ready", "degraded", "error"] = "ready"

    try:
        await session.execute(text("SELECT 1"))
        components["database"] = ComponentStatus(status="ready")
    except SQLAlchemyError as error:
        logger.warning("Readiness database probe failed", error=str(error))
        components["database"] = ComponentStatus(status="error", detail="Database unreachable")
        status = "error"

    if getattr(request.app.state, "sync_publisher", None) is not None:
        components["sync_events"] = ComponentStatus(
            status="ready",
            detail=f"Publishing on {settings.sync_events_channel_prefix}:*",
        )
    else:
        components["sync_events"] = ComponentStatus(
            status="disabled",
            detail="Sync events disabled via settings",
        )

    components["card_cache"] = ComponentStatus(
        status="ready",
        detail=f"{settings.card_cache_backend} backend, ttl {settings.card_cache_ttl_seconds}s",
    )

    return ReadinessPayload(status=status, components=components)
