"""Observability endpoints for the enrollment workflow."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from rewards_api.api.dependencies.security import require_internal_api_key
from rewards_api.observability.enrollment import get_enrollment_store


router = APIRouter(prefix="/observability", tags=["Observability"])


@router.get(
    "/enrollments",
    dependencies=[Depends(require_internal_api_key)],
    summary="Enrollment response counters",
)
async def get_enrollment_snapshot() -> dict[str, object]:
    """Decisions, outcomes by result code, and degraded best-effort steps."""
    return get_enrollment_store().snapshot().as_dict()
