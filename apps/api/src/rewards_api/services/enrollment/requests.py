"""Lookup of enrollment invitations with their program and business context."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from loguru import logger
from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rewards_api.models.enrollment import (
    ENROLLMENT_REQUEST_TYPE,
    EnrollmentRequest,
    EnrollmentRequestStatus,
)
from rewards_api.models.loyalty_program import LoyaltyProgram
from rewards_api.models.user import User


DEFAULT_PROGRAM_NAME = "Loyalty Program"
DEFAULT_BUSINESS_NAME = "Business"


@dataclass(frozen=True)
class EnrollmentRequestContext:
    """Enrollment invitation denormalized with display names."""

    id: UUID
    customer_id: UUID
    business_id: UUID
    program_id: UUID
    program_name: str
    business_name: str
    status: EnrollmentRequestStatus
    data: dict[str, Any]
    created_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == EnrollmentRequestStatus.PENDING

    def log_context(self) -> dict[str, str]:
        return {
            "request_id": str(self.id),
            "customer_id": str(self.customer_id),
            "business_id": str(self.business_id),
            "program_id": str(self.program_id),
        }


def parse_identifier(value: str | UUID) -> UUID | None:
    """Coerce an opaque identifier to a UUID; anything else cannot match a row."""

    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except ValueError:
        return None


class EnrollmentRequestRepository:
    """Reads enrollment invitations joined to program and business names."""

    def __init__(self, db_session: AsyncSession) -> None:
        self._db = db_session

    @staticmethod
    def _base_query() -> Select:
        return (
            select(
                EnrollmentRequest.id,
                EnrollmentRequest.customer_id,
                EnrollmentRequest.business_id,
                EnrollmentRequest.program_id,
                EnrollmentRequest.status,
                EnrollmentRequest.data,
                EnrollmentRequest.created_at,
                LoyaltyProgram.name.label("program_name"),
                User.display_name.label("business_name"),
            )
            .outerjoin(LoyaltyProgram, LoyaltyProgram.id == EnrollmentRequest.program_id)
            .outerjoin(User, User.id == EnrollmentRequest.business_id)
            .where(EnrollmentRequest.request_type == ENROLLMENT_REQUEST_TYPE)
        )

    @staticmethod
    def _to_context(row: Any) -> EnrollmentRequestContext:
        return EnrollmentRequestContext(
            id=row.id,
            customer_id=row.customer_id,
            business_id=row.business_id,
            program_id=row.program_id,
            program_name=row.program_name or DEFAULT_PROGRAM_NAME,
            business_name=row.business_name or DEFAULT_BUSINESS_NAME,
            status=EnrollmentRequestStatus(row.status),
            data=dict(row.data or {}),
            created_at=row.created_at,
        )

    async def get_enrollment_request(self, request_id: str | UUID) -> EnrollmentRequestContext | None:
        """Return the invitation or ``None``; data-access faults degrade to ``None``."""

        parsed = parse_identifier(request_id)
        if parsed is None:
            logger.info("Enrollment request id is not a valid identifier", request_id=str(request_id))
            return None

        stmt = self._base_query().where(EnrollmentRequest.id == parsed)
        try:
            result = await self._db.execute(stmt)
            row = result.one_or_none()
        except SQLAlchemyError:
            logger.exception("Failed to load enrollment request", request_id=str(parsed))
            return None

        if row is None:
            return None
        return self._to_context(row)

    async def list_customer_requests(
        self,
        customer_id: UUID,
        *,
        status: EnrollmentRequestStatus | None = None,
        limit: int = 50,
    ) -> list[EnrollmentRequestContext]:
        """List a customer's invitations, newest first."""

        stmt = self._base_query().where(EnrollmentRequest.customer_id == customer_id)
        if status is not None:
            stmt = stmt.where(EnrollmentRequest.status == status)
        stmt = stmt.order_by(EnrollmentRequest.created_at.desc()).limit(limit)
        result = await self._db.execute(stmt)
        requests = [self._to_context(row) for row in result.all()]
        logger.debug("Fetched enrollment requests", customer_id=str(customer_id), count=len(requests))
        return requests


__all__ = [
    "DEFAULT_BUSINESS_NAME",
    "DEFAULT_PROGRAM_NAME",
    "EnrollmentRequestContext",
    "EnrollmentRequestRepository",
    "parse_identifier",
]
