"""Program enrollments and customer/business relationships."""

from __future__ import annotations

from uuid import UUID

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rewards_api.db.upsert import conflict_insert
from rewards_api.models.enrollment import (
    CustomerBusinessRelationship,
    ProgramEnrollment,
    ProgramEnrollmentStatus,
    RelationshipStatus,
)

from .requests import EnrollmentRequestContext


class ProgramEnrollmentService:
    """Keeps one active membership per (customer, program)."""

    def __init__(self, db_session: AsyncSession) -> None:
        self._db = db_session

    async def get_enrollment(self, customer_id: UUID, program_id: UUID) -> ProgramEnrollment | None:
        stmt = select(ProgramEnrollment).where(
            ProgramEnrollment.customer_id == customer_id,
            ProgramEnrollment.program_id == program_id,
        )
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def ensure_active(self, context: EnrollmentRequestContext) -> ProgramEnrollment:
        """Create the membership or reactivate an existing one."""

        enrollment = await self.get_enrollment(context.customer_id, context.program_id)
        if enrollment is not None:
            if enrollment.status != ProgramEnrollmentStatus.ACTIVE:
                enrollment.status = ProgramEnrollmentStatus.ACTIVE
                await self._db.flush()
                logger.info(
                    "Reactivated program enrollment",
                    enrollment_id=str(enrollment.id),
                    **context.log_context(),
                )
            return enrollment

        enrollment = ProgramEnrollment(
            customer_id=context.customer_id,
            program_id=context.program_id,
            business_id=context.business_id,
            status=ProgramEnrollmentStatus.ACTIVE,
            current_points=0,
            total_points_earned=0,
        )
        try:
            async with self._db.begin_nested():
                self._db.add(enrollment)
        except IntegrityError:
            logger.warning("Detected race when creating program enrollment", **context.log_context())
            existing = await self.get_enrollment(context.customer_id, context.program_id)
            if existing is None:
                raise
            existing.status = ProgramEnrollmentStatus.ACTIVE
            await self._db.flush()
            return existing

        logger.info("Created program enrollment", enrollment_id=str(enrollment.id), **context.log_context())
        return enrollment


class CustomerRelationshipService:
    """Upserts the customer/business edge on the pair's unique constraint."""

    def __init__(self, db_session: AsyncSession) -> None:
        self._db = db_session

    async def upsert(
        self,
        customer_id: UUID,
        business_id: UUID,
        *,
        status: RelationshipStatus = RelationshipStatus.ACTIVE,
    ) -> None:
        stmt = (
            conflict_insert(self._db, CustomerBusinessRelationship)
            .values(customer_id=customer_id, business_id=business_id, status=status.value)
            .on_conflict_do_update(
                index_elements=[
                    CustomerBusinessRelationship.customer_id,
                    CustomerBusinessRelationship.business_id,
                ],
                set_={"status": status.value, "updated_at": func.now()},
            )
        )
        async with self._db.begin_nested():
            await self._db.execute(stmt)
        logger.debug(
            "Upserted customer business relationship",
            customer_id=str(customer_id),
            business_id=str(business_id),
            status=status.value,
        )


__all__ = ["CustomerRelationshipService", "ProgramEnrollmentService"]
