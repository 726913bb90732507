from __future__ import annotations

import re
from dataclasses import replace
from uuid import UUID, uuid4

import pytest
from sqlalchemy import func, select, text

from rewards_api.models.enrollment import (
    CustomerBusinessRelationship,
    EnrollmentRequest,
    EnrollmentRequestStatus,
    ProgramEnrollment,
    ProgramEnrollmentStatus,
)
from rewards_api.models.loyalty_card import LoyaltyCard
from rewards_api.models.notification import Notification, NotificationTypeEnum
from rewards_api.services.cards.cache import customer_cards_key
from rewards_api.services.enrollment import (
    CustomerRelationshipService,
    EnrollmentErrorCode,
    EnrollmentResponseService,
)
from rewards_api.services.enrollment.requests import EnrollmentRequestContext
from rewards_api.services.notifications import CustomerNotificationService
from rewards_api.services.sync.events import SyncEntity, SyncOperation


CARD_NUMBER_PATTERN = re.compile(r"^GC-\d{6}-\d{4}$")


def _service(session, store, *, sync_publisher=None, card_cache=None, **kwargs) -> EnrollmentResponseService:
    return EnrollmentResponseService(
        session,
        store=store,
        sync_publisher=sync_publisher,
        card_cache=card_cache,
        **kwargs,
    )


async def _request_status(session_factory, request_id: UUID) -> EnrollmentRequestStatus:
    async with session_factory() as session:
        request = await session.get(EnrollmentRequest, request_id)
        return request.status


async def _decision_notifications(session_factory, notification_type: NotificationTypeEnum) -> list[Notification]:
    async with session_factory() as session:
        result = await session.execute(select(Notification).where(Notification.type == notification_type.value))
        return list(result.scalars().all())


async def _card_count(session_factory, customer_id: UUID, program_id: UUID) -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(func.count())
            .select_from(LoyaltyCard)
            .where(LoyaltyCard.customer_id == customer_id, LoyaltyCard.program_id == program_id)
        )
        return int(result.scalar_one())


@pytest.mark.asyncio
async def test_approve_then_repeat_is_already_processed(session_factory, invitation, store, sync_publisher) -> None:
    async with session_factory() as session:
        result = await _service(session, store, sync_publisher=sync_publisher).process_enrollment_response(
            str(invitation.request_id), True
        )

    assert result.success is True
    assert result.message == "Enrollment approved and card created successfully"
    assert result.card_id is not None
    assert result.error_code is None

    async with session_factory() as session:
        card = await session.get(LoyaltyCard, UUID(result.card_id))
        assert card is not None
        assert CARD_NUMBER_PATTERN.match(card.card_number)
        assert card.tier == "STANDARD"
        assert card.card_type == "STANDARD"
        assert float(card.points) == 0
        assert float(card.points_multiplier) == 1.0
        assert card.is_active is True
        assert card.status == "ACTIVE"

        enrollment = (
            await session.execute(
                select(ProgramEnrollment).where(
                    ProgramEnrollment.customer_id == invitation.customer_id,
                    ProgramEnrollment.program_id == invitation.program_id,
                )
            )
        ).scalar_one()
        assert enrollment.status == ProgramEnrollmentStatus.ACTIVE

        relationship = (
            await session.execute(
                select(CustomerBusinessRelationship).where(
                    CustomerBusinessRelationship.customer_id == invitation.customer_id,
                    CustomerBusinessRelationship.business_id == invitation.business_id,
                )
            )
        ).scalar_one()
        assert relationship.status == "ACTIVE"

    assert await _request_status(session_factory, invitation.request_id) == EnrollmentRequestStatus.APPROVED

    async with session_factory() as session:
        repeat = await _service(session, store).process_enrollment_response(str(invitation.request_id), True)

    assert repeat.success is False
    assert repeat.error_code == EnrollmentErrorCode.ALREADY_PROCESSED
    assert repeat.message == "Request already approved"
    assert repeat.error_location == "statusCheck"
    assert await _card_count(session_factory, invitation.customer_id, invitation.program_id) == 1
    assert len(await _decision_notifications(session_factory, NotificationTypeEnum.ENROLLMENT_ACCEPTED)) == 2


@pytest.mark.asyncio
async def test_reject_creates_declined_notifications_without_card(
    session_factory, invitation, store, sync_publisher
) -> None:
    async with session_factory() as session:
        result = await _service(session, store, sync_publisher=sync_publisher).process_enrollment_response(
            str(invitation.request_id), False
        )

    assert result.success is True
    assert result.message == "Enrollment request declined successfully"
    assert result.card_id is None
    assert result.as_dict() == {"success": True, "message": "Enrollment request declined successfully"}

    assert await _request_status(session_factory, invitation.request_id) == EnrollmentRequestStatus.REJECTED
    assert await _card_count(session_factory, invitation.customer_id, invitation.program_id) == 0

    notifications = await _decision_notifications(session_factory, NotificationTypeEnum.ENROLLMENT_REJECTED)
    by_recipient = {notification.recipient_id: notification for notification in notifications}
    assert set(by_recipient) == {invitation.customer_id, invitation.business_id}

    customer_copy = by_recipient[invitation.customer_id]
    assert customer_copy.title == "Program Declined"
    assert customer_copy.message == "You've declined to join Bean There's Coffee Club program"
    assert customer_copy.data == {"programId": str(invitation.program_id), "programName": "Coffee Club"}

    business_copy = by_recipient[invitation.business_id]
    assert business_copy.title == "Enrollment Declined"
    assert business_copy.message == "A customer has declined to join your Coffee Club program"
    assert business_copy.data["customerId"] == str(invitation.customer_id)

    for notification in notifications:
        assert notification.requires_action is False
        assert notification.action_taken is False
        assert notification.is_read is False

    assert [(event.entity, event.operation) for event in sync_publisher.events] == [
        (SyncEntity.PROGRAM_ENROLLMENTS, SyncOperation.DECLINED)
    ]


@pytest.mark.asyncio
async def test_unknown_request_id_is_not_found(session_factory, invitation, store) -> None:
    async with session_factory() as session:
        missing = await _service(session, store).process_enrollment_response("does-not-exist", True)
        unknown_uuid = await _service(session, store).process_enrollment_response(str(uuid4()), False)

    for result in (missing, unknown_uuid):
        assert result.success is False
        assert result.error_code == EnrollmentErrorCode.REQUEST_NOT_FOUND
        assert result.message == "Enrollment request not found"
        assert result.error_location == "getEnrollmentRequest"

    assert await _request_status(session_factory, invitation.request_id) == EnrollmentRequestStatus.PENDING


@pytest.mark.asyncio
async def test_non_enrollment_request_kind_is_not_found(seed, session_factory, store) -> None:
    seeded = await seed(request_type="POINTS_TRANSFER", email_prefix="transfer")

    async with session_factory() as session:
        result = await _service(session, store).process_enrollment_response(str(seeded.request_id), True)

    assert result.error_code == EnrollmentErrorCode.REQUEST_NOT_FOUND
    assert await _request_status(session_factory, seeded.request_id) == EnrollmentRequestStatus.PENDING


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [EnrollmentRequestStatus.APPROVED, EnrollmentRequestStatus.REJECTED])
async def test_non_pending_request_is_left_untouched(seed, session_factory, store, status) -> None:
    seeded = await seed(status=status, email_prefix=status.value.lower())

    async with session_factory() as session:
        result = await _service(session, store).process_enrollment_response(str(seeded.request_id), True)

    assert result.success is False
    assert result.error_code == EnrollmentErrorCode.ALREADY_PROCESSED
    assert result.message == f"Request already {status.value.lower()}"
    assert await _request_status(session_factory, seeded.request_id) == status
    assert await _card_count(session_factory, seeded.customer_id, seeded.program_id) == 0
    assert await _decision_notifications(session_factory, NotificationTypeEnum.ENROLLMENT_ACCEPTED) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("first, second", [(True, False), (False, True), (True, True), (False, False)])
async def test_second_response_is_rejected_whatever_the_order(session_factory, invitation, store, first, second) -> None:
    async with session_factory() as session:
        initial = await _service(session, store).process_enrollment_response(str(invitation.request_id), first)
    async with session_factory() as session:
        repeat = await _service(session, store).process_enrollment_response(str(invitation.request_id), second)

    assert initial.success is True
    assert repeat.error_code == EnrollmentErrorCode.ALREADY_PROCESSED

    expected = EnrollmentRequestStatus.APPROVED if first else EnrollmentRequestStatus.REJECTED
    assert await _request_status(session_factory, invitation.request_id) == expected
    assert await _card_count(session_factory, invitation.customer_id, invitation.program_id) == (1 if first else 0)


@pytest.mark.asyncio
async def test_approval_notifications_carry_card_and_program(session_factory, invitation, store) -> None:
    async with session_factory() as session:
        result = await _service(session, store).process_enrollment_response(str(invitation.request_id), True)

    notifications = await _decision_notifications(session_factory, NotificationTypeEnum.ENROLLMENT_ACCEPTED)
    by_recipient = {notification.recipient_id: notification for notification in notifications}
    assert len(notifications) == 2

    customer_copy = by_recipient[invitation.customer_id]
    assert customer_copy.title == "Program Joined"
    assert customer_copy.message == "You've joined Bean There's Coffee Club program"
    assert customer_copy.data == {
        "programId": str(invitation.program_id),
        "programName": "Coffee Club",
        "cardId": result.card_id,
    }

    business_copy = by_recipient[invitation.business_id]
    assert business_copy.title == "Customer Joined Program"
    assert business_copy.message == "A customer has joined your Coffee Club program"
    assert business_copy.data["customerId"] == str(invitation.customer_id)
    assert business_copy.data["cardId"] == result.card_id
    assert business_copy.business_id == invitation.business_id


@pytest.mark.asyncio
async def test_invitation_notification_is_marked_actioned(session_factory, invitation, store) -> None:
    async with session_factory() as session:
        await _service(session, store).process_enrollment_response(str(invitation.request_id), False)

    async with session_factory() as session:
        notification = await session.get(Notification, invitation.invitation_id)
        assert notification.action_taken is True
        assert notification.requires_action is True


@pytest.mark.asyncio
async def test_missing_display_names_fall_back_to_defaults(seed, session_factory, store) -> None:
    seeded = await seed(business_name=None, email_prefix="anon")

    async with session_factory() as session:
        await _service(session, store).process_enrollment_response(str(seeded.request_id), True)

    notifications = await _decision_notifications(session_factory, NotificationTypeEnum.ENROLLMENT_ACCEPTED)
    customer_copy = next(item for item in notifications if item.recipient_id == seeded.customer_id)
    assert customer_copy.message == "You've joined Business's Coffee Club program"


@pytest.mark.asyncio
async def test_existing_card_is_reused_and_reactivated(session_factory, invitation, store, sync_publisher) -> None:
    async with session_factory() as session:
        existing = LoyaltyCard(
            customer_id=invitation.customer_id,
            business_id=invitation.business_id,
            program_id=invitation.program_id,
            card_number="GC-000001-0001",
            is_active=False,
            status="SUSPENDED",
        )
        session.add(existing)
        await session.commit()

    async with session_factory() as session:
        result = await _service(session, store, sync_publisher=sync_publisher).process_enrollment_response(
            str(invitation.request_id), True
        )

    assert result.success is True
    assert result.card_id == str(existing.id)
    assert await _card_count(session_factory, invitation.customer_id, invitation.program_id) == 1

    async with session_factory() as session:
        card = await session.get(LoyaltyCard, existing.id)
        assert card.is_active is True
        assert card.status == "ACTIVE"

    card_event = next(event for event in sync_publisher.events if event.entity == SyncEntity.LOYALTY_CARDS)
    assert card_event.operation == SyncOperation.UPDATE
    assert card_event.record_id == str(existing.id)


@pytest.mark.asyncio
async def test_inactive_program_enrollment_is_reactivated(session_factory, invitation, store) -> None:
    async with session_factory() as session:
        session.add(
            ProgramEnrollment(
                customer_id=invitation.customer_id,
                program_id=invitation.program_id,
                business_id=invitation.business_id,
                status=ProgramEnrollmentStatus.INACTIVE,
            )
        )
        await session.commit()

    async with session_factory() as session:
        result = await _service(session, store).process_enrollment_response(str(invitation.request_id), True)

    assert result.success is True
    async with session_factory() as session:
        rows = (
            await session.execute(
                select(ProgramEnrollment).where(ProgramEnrollment.customer_id == invitation.customer_id)
            )
        ).scalars().all()
        assert len(rows) == 1
        assert rows[0].status == ProgramEnrollmentStatus.ACTIVE


class _NoCardIssuance:
    async def issue_for_enrollment(self, context: EnrollmentRequestContext):
        return None


@pytest.mark.asyncio
async def test_card_failure_reports_card_creation_failed(session_factory, invitation, store, sync_publisher) -> None:
    async with session_factory() as session:
        result = await _service(
            session,
            store,
            sync_publisher=sync_publisher,
            card_service=_NoCardIssuance(),
        ).process_enrollment_response(str(invitation.request_id), True)

    assert result.success is False
    assert result.error_code == EnrollmentErrorCode.CARD_CREATION_FAILED
    assert result.message == "Failed to create loyalty card"
    assert result.error_location == "createLoyaltyCard"

    assert await _decision_notifications(session_factory, NotificationTypeEnum.ENROLLMENT_ACCEPTED) == []
    assert sync_publisher.events == []
    assert await _request_status(session_factory, invitation.request_id) == EnrollmentRequestStatus.APPROVED

    async with session_factory() as session:
        enrollments = (await session.execute(select(ProgramEnrollment))).scalars().all()
        assert enrollments == []

    assert store.snapshot().outcomes == {"CARD_CREATION_FAILED": 1}


class _ExplodingCardIssuance:
    async def issue_for_enrollment(self, context: EnrollmentRequestContext):
        raise RuntimeError("card backend offline")


@pytest.mark.asyncio
async def test_unexpected_card_fault_reports_card_creation_failed(session_factory, invitation, store) -> None:
    async with session_factory() as session:
        result = await _service(
            session,
            store,
            card_service=_ExplodingCardIssuance(),
        ).process_enrollment_response(str(invitation.request_id), True)

    assert result.error_code == EnrollmentErrorCode.CARD_CREATION_FAILED
    assert result.error_location == "createLoyaltyCard"


@pytest.mark.asyncio
async def test_enrollment_fault_reports_approval_processing_error(
    session_factory, invitation, store, monkeypatch
) -> None:
    async def broken_ensure_active(self, context):
        raise RuntimeError("enrollments table locked")

    monkeypatch.setattr(
        "rewards_api.services.enrollment.memberships.ProgramEnrollmentService.ensure_active",
        broken_ensure_active,
    )

    async with session_factory() as session:
        result = await _service(session, store).process_enrollment_response(str(invitation.request_id), True)

    assert result.success is False
    assert result.error_code == EnrollmentErrorCode.APPROVAL_PROCESSING_ERROR
    assert result.message == "Failed to process approved enrollment"
    assert result.error_location == "ensureProgramEnrollment"
    assert await _card_count(session_factory, invitation.customer_id, invitation.program_id) == 0


@pytest.mark.asyncio
async def test_commit_fault_reports_rejection_processing_error(session_factory, invitation, store) -> None:
    async with session_factory() as session:
        service = _service(session, store)
        real_commit = session.commit
        calls = {"count": 0}

        async def flaky_commit():
            calls["count"] += 1
            if calls["count"] > 1:
                raise RuntimeError("connection dropped")
            await real_commit()

        session.commit = flaky_commit  # type: ignore[method-assign]
        result = await service.process_enrollment_response(str(invitation.request_id), False)

    assert result.error_code == EnrollmentErrorCode.REJECTION_PROCESSING_ERROR
    assert result.message == "Failed to process declined enrollment"
    assert result.error_location == "commitRejection"
    assert await _request_status(session_factory, invitation.request_id) == EnrollmentRequestStatus.REJECTED


class _FailingNotifications(CustomerNotificationService):
    async def create_notification(self, **kwargs):
        raise RuntimeError("notification store unavailable")


@pytest.mark.asyncio
async def test_notification_failures_do_not_fail_approval(session_factory, invitation, store) -> None:
    async with session_factory() as session:
        result = await _service(
            session,
            store,
            notification_service=_FailingNotifications(session),
        ).process_enrollment_response(str(invitation.request_id), True)

    assert result.success is True
    assert result.card_id is not None
    assert await _card_count(session_factory, invitation.customer_id, invitation.program_id) == 1
    assert await _decision_notifications(session_factory, NotificationTypeEnum.ENROLLMENT_ACCEPTED) == []
    assert store.snapshot().step_failures == {"notifyCustomer": 1, "notifyBusiness": 1}


class _SilentlyFailingNotifications(CustomerNotificationService):
    async def create_notification(self, **kwargs):
        return None


@pytest.mark.asyncio
async def test_unwritten_notifications_are_counted_as_degraded(session_factory, invitation, store) -> None:
    async with session_factory() as session:
        result = await _service(
            session,
            store,
            notification_service=_SilentlyFailingNotifications(session),
        ).process_enrollment_response(str(invitation.request_id), False)

    assert result.success is True
    assert store.snapshot().step_failures == {"notifyCustomer": 1, "notifyBusiness": 1}


class _BrokenPublisher:
    async def publish(self, event) -> None:
        raise ConnectionError("redis down")


@pytest.mark.asyncio
async def test_sync_failures_do_not_fail_approval(session_factory, invitation, store) -> None:
    async with session_factory() as session:
        result = await _service(
            session,
            store,
            sync_publisher=_BrokenPublisher(),
        ).process_enrollment_response(str(invitation.request_id), True)

    assert result.success is True
    assert await _request_status(session_factory, invitation.request_id) == EnrollmentRequestStatus.APPROVED


@pytest.mark.asyncio
async def test_approval_emits_card_and_enrollment_events(session_factory, invitation, store, sync_publisher) -> None:
    async with session_factory() as session:
        result = await _service(session, store, sync_publisher=sync_publisher).process_enrollment_response(
            str(invitation.request_id), True
        )

    card_event, enrollment_event = sync_publisher.events
    assert card_event.entity == SyncEntity.LOYALTY_CARDS
    assert card_event.operation == SyncOperation.INSERT
    assert card_event.record_id == result.card_id
    assert card_event.customer_id == str(invitation.customer_id)
    assert card_event.data["programName"] == "Coffee Club"

    assert enrollment_event.entity == SyncEntity.PROGRAM_ENROLLMENTS
    assert enrollment_event.operation == SyncOperation.UPDATE
    assert enrollment_event.business_id == str(invitation.business_id)


@pytest.mark.asyncio
async def test_approval_invalidates_cached_card_listing(session_factory, invitation, store, card_cache) -> None:
    key = customer_cards_key(invitation.customer_id)
    await card_cache.set(key, [], ttl_seconds=300)

    async with session_factory() as session:
        await _service(session, store, card_cache=card_cache).process_enrollment_response(
            str(invitation.request_id), True
        )

    assert await card_cache.get(key) is None


@pytest.mark.asyncio
async def test_lost_status_race_is_already_processed(session_factory, invitation, store, monkeypatch) -> None:
    from rewards_api.services.enrollment.requests import EnrollmentRequestRepository

    real_lookup = EnrollmentRequestRepository.get_enrollment_request

    async def stale_lookup(self, request_id):
        async with session_factory() as other:
            request = await other.get(EnrollmentRequest, invitation.request_id)
            request.status = EnrollmentRequestStatus.REJECTED
            await other.commit()
        context = await real_lookup(self, request_id)
        return replace(context, status=EnrollmentRequestStatus.PENDING)

    monkeypatch.setattr(EnrollmentRequestRepository, "get_enrollment_request", stale_lookup)

    async with session_factory() as session:
        result = await _service(session, store).process_enrollment_response(str(invitation.request_id), True)

    assert result.error_code == EnrollmentErrorCode.ALREADY_PROCESSED
    assert await _request_status(session_factory, invitation.request_id) == EnrollmentRequestStatus.REJECTED
    assert await _card_count(session_factory, invitation.customer_id, invitation.program_id) == 0


@pytest.mark.asyncio
async def test_outcomes_are_recorded(session_factory, invitation, store) -> None:
    async with session_factory() as session:
        await _service(session, store).process_enrollment_response(str(invitation.request_id), True)
    async with session_factory() as session:
        await _service(session, store).process_enrollment_response(str(invitation.request_id), False)
    async with session_factory() as session:
        await _service(session, store).process_enrollment_response("does-not-exist", True)

    snapshot = store.snapshot()
    assert snapshot.decisions == {"approved": 2, "rejected": 1}
    assert snapshot.outcomes == {"success": 1, "ALREADY_PROCESSED": 1, "REQUEST_NOT_FOUND": 1}


@pytest.mark.asyncio
async def test_relationship_fault_does_not_fail_approval(session_factory, invitation, store, monkeypatch) -> None:
    async def broken_upsert(self, customer_id, business_id, **kwargs):
        async with self._db.begin_nested():
            await self._db.execute(text("INSERT INTO no_such_table (id) VALUES (1)"))

    monkeypatch.setattr(CustomerRelationshipService, "upsert", broken_upsert)

    async with session_factory() as session:
        result = await _service(session, store).process_enrollment_response(str(invitation.request_id), True)

    assert result.success is True
    assert result.card_id is not None
    assert await _card_count(session_factory, invitation.customer_id, invitation.program_id) == 1
    assert await _request_status(session_factory, invitation.request_id) == EnrollmentRequestStatus.APPROVED
    assert len(await _decision_notifications(session_factory, NotificationTypeEnum.ENROLLMENT_ACCEPTED)) == 2

    async with session_factory() as session:
        relationships = (await session.execute(select(CustomerBusinessRelationship))).scalars().all()
        assert relationships == []

    assert store.snapshot().step_failures == {"upsertRelationship": 1}
