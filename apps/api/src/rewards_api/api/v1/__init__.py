from fastapi import APIRouter

from .endpoints import (
    enrollments,
    health,
    loyalty_cards,
    notifications,
    observability,
)

router = APIRouter()
router.include_router(health.router, tags=["Health"])
router.include_router(enrollments.router)
router.include_router(loyalty_cards.router)
router.include_router(notifications.router)
router.include_router(observability.router)
