from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from rewards_api.models.enrollment import CustomerBusinessRelationship, ProgramEnrollment, RelationshipStatus
from rewards_api.services.enrollment import (
    CustomerRelationshipService,
    EnrollmentErrorCode,
    EnrollmentRequestRepository,
    EnrollmentResponseService,
    ProgramEnrollmentService,
)


@pytest.mark.asyncio
async def test_relationship_upsert_updates_existing_pair(session_factory, invitation) -> None:
    async with session_factory() as session:
        service = CustomerRelationshipService(session)
        await service.upsert(invitation.customer_id, invitation.business_id)
        await service.upsert(invitation.customer_id, invitation.business_id, status=RelationshipStatus.INACTIVE)
        await session.commit()

    async with session_factory() as session:
        rows = (await session.execute(select(CustomerBusinessRelationship))).scalars().all()

    assert len(rows) == 1
    assert rows[0].status == "INACTIVE"


@pytest.mark.asyncio
async def test_ensure_active_is_idempotent(session_factory, invitation) -> None:
    async with session_factory() as session:
        context = await EnrollmentRequestRepository(session).get_enrollment_request(invitation.request_id)
        service = ProgramEnrollmentService(session)
        first = await service.ensure_active(context)
        second = await service.ensure_active(context)
        await session.commit()

    assert first.id == second.id
    async with session_factory() as session:
        rows = (await session.execute(select(ProgramEnrollment))).scalars().all()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_lookup_returns_denormalized_context(session_factory, invitation) -> None:
    async with session_factory() as session:
        repository = EnrollmentRequestRepository(session)
        context = await repository.get_enrollment_request(str(invitation.request_id))
        assert await repository.get_enrollment_request("  not-a-uuid ") is None

    assert context is not None
    assert context.is_pending
    assert context.program_name == "Coffee Club"
    assert context.business_name == "Bean There"
    assert context.data == {"source": "invite"}
    assert context.log_context()["request_id"] == str(invitation.request_id)


@pytest.mark.asyncio
async def test_lookup_fault_is_treated_as_not_found(session_factory, invitation, store, monkeypatch) -> None:
    async def unavailable(*args, **kwargs):
        raise OperationalError("SELECT enrollment_requests", {}, Exception("database is locked"))

    async with session_factory() as session:
        monkeypatch.setattr(session, "execute", unavailable)

        assert await EnrollmentRequestRepository(session).get_enrollment_request(invitation.request_id) is None

        result = await EnrollmentResponseService(session, store=store).process_enrollment_response(
            str(invitation.request_id), True
        )

    assert result.success is False
    assert result.error_code == EnrollmentErrorCode.REQUEST_NOT_FOUND
    assert result.error_location == "getEnrollmentRequest"
