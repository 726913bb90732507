"""Customer responses to loyalty program enrollment invitations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from loguru import logger
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rewards_api.models.enrollment import EnrollmentRequest, EnrollmentRequestStatus
from rewards_api.models.notification import NotificationTypeEnum
from rewards_api.observability.enrollment import EnrollmentObservabilityStore, get_enrollment_store
from rewards_api.observability.tracing import get_tracer
from rewards_api.services.cards.cache import CardCache
from rewards_api.services.cards.issuance import CardIssuanceService
from rewards_api.services.cards.listing import LoyaltyCardListingService
from rewards_api.services.notifications.service import CustomerNotificationService
from rewards_api.services.notifications.templates import (
    RenderedNotification,
    render_business_enrollment_decision,
    render_customer_enrollment_decision,
)
from rewards_api.services.sync.events import SyncBroadcaster, SyncEventPublisher, SyncOperation

from .memberships import CustomerRelationshipService, ProgramEnrollmentService
from .requests import EnrollmentRequestContext, EnrollmentRequestRepository
from .results import EnrollmentErrorCode, EnrollmentResponse
from .steps import StepAborted, StepKind, StepRunReport, WorkflowRunner, WorkflowStep

_tracer = get_tracer(__name__)

APPROVED_MESSAGE = "Enrollment approved and card created successfully"
DECLINED_MESSAGE = "Enrollment request declined successfully"

_FAILURE_MESSAGES = {
    EnrollmentErrorCode.CARD_CREATION_FAILED: "Failed to create loyalty card",
    EnrollmentErrorCode.APPROVAL_PROCESSING_ERROR: "Failed to process approved enrollment",
    EnrollmentErrorCode.REJECTION_PROCESSING_ERROR: "Failed to process declined enrollment",
    EnrollmentErrorCode.PROCESSING_ERROR: "An error occurred while processing the enrollment",
}


@dataclass
class _ApprovalState:
    card_id: UUID | None = None
    card_created: bool = False


class EnrollmentResponseService:
    """Applies a customer's approve/reject decision to a pending invitation.

    The status transition is a compare-and-swap on ``PENDING`` and is committed
    together with marking the invitation notifications as actioned. The chosen
    path then runs as ordered steps: card issuance and the final commit are
    critical, while relationship upsert, notifications, cache invalidation and
    sync events are best-effort. Every outcome is returned as an
    :class:`EnrollmentResponse`; nothing is raised to the caller.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        *,
        card_cache: CardCache | None = None,
        sync_publisher: SyncEventPublisher | None = None,
        notification_service: CustomerNotificationService | None = None,
        card_service: CardIssuanceService | None = None,
        store: EnrollmentObservabilityStore | None = None,
    ) -> None:
        self._db = db_session
        self._card_cache = card_cache
        self._requests = EnrollmentRequestRepository(db_session)
        self._enrollments = ProgramEnrollmentService(db_session)
        self._relationships = CustomerRelationshipService(db_session)
        self._cards = card_service or CardIssuanceService(db_session)
        self._notifications = notification_service or CustomerNotificationService(db_session)
        self._sync = SyncBroadcaster(sync_publisher)
        self._store = store or get_enrollment_store()

    async def process_enrollment_response(self, request_id: str | UUID, approved: bool) -> EnrollmentResponse:
        with _tracer.start_as_current_span("enrollment.process_response") as span:
            span.set_attribute("enrollment.request_id", str(request_id))
            span.set_attribute("enrollment.approved", approved)
            try:
                response = await self._process(request_id, approved)
            except Exception:
                logger.exception("Unexpected error processing enrollment response", request_id=str(request_id))
                await self._safe_rollback()
                response = EnrollmentResponse.failed(
                    EnrollmentErrorCode.PROCESSING_ERROR,
                    _FAILURE_MESSAGES[EnrollmentErrorCode.PROCESSING_ERROR],
                    location="processEnrollmentResponse",
                )
            span.set_attribute("enrollment.success", response.success)
            if response.error_code is not None:
                span.set_attribute("enrollment.error_code", response.error_code.value)

        self._store.record_outcome(
            approved=approved,
            error_code=response.error_code.value if response.error_code else None,
        )
        return response

    async def _process(self, request_id: str | UUID, approved: bool) -> EnrollmentResponse:
        context = await self._requests.get_enrollment_request(request_id)
        if context is None:
            logger.info("Enrollment request not found", request_id=str(request_id))
            return EnrollmentResponse.failed(
                EnrollmentErrorCode.REQUEST_NOT_FOUND,
                "Enrollment request not found",
                location="getEnrollmentRequest",
            )

        if not context.is_pending:
            logger.info(
                "Enrollment request already processed",
                status=context.status.value,
                **context.log_context(),
            )
            return EnrollmentResponse.failed(
                EnrollmentErrorCode.ALREADY_PROCESSED,
                f"Request already {context.status.value.lower()}",
                location="statusCheck",
            )

        try:
            transitioned = await self._transition(context, approved)
        except SQLAlchemyError:
            logger.exception("Failed to update enrollment request status", **context.log_context())
            await self._safe_rollback()
            return EnrollmentResponse.failed(
                EnrollmentErrorCode.PROCESSING_ERROR,
                _FAILURE_MESSAGES[EnrollmentErrorCode.PROCESSING_ERROR],
                location="transitionStatus",
            )

        if not transitioned:
            logger.info("Lost race responding to enrollment request", **context.log_context())
            return EnrollmentResponse.failed(
                EnrollmentErrorCode.ALREADY_PROCESSED,
                "Request already processed",
                location="statusCheck",
            )

        logger.info("Enrollment request answered", approved=approved, **context.log_context())
        if approved:
            return await self._approve(context)
        return await self._reject(context)

    async def _transition(self, context: EnrollmentRequestContext, approved: bool) -> bool:
        target = EnrollmentRequestStatus.APPROVED if approved else EnrollmentRequestStatus.REJECTED
        now = datetime.now(timezone.utc)
        stmt = (
            update(EnrollmentRequest)
            .where(
                EnrollmentRequest.id == context.id,
                EnrollmentRequest.status == EnrollmentRequestStatus.PENDING,
            )
            .values(status=target, responded_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self._db.execute(stmt)
        if result.rowcount != 1:
            await self._db.rollback()
            return False

        actioned = await self._notifications.mark_actioned_for_reference(str(context.id))
        await self._db.commit()
        logger.debug("Marked invitation notifications as actioned", count=actioned, **context.log_context())
        return True

    async def _approve(self, context: EnrollmentRequestContext) -> EnrollmentResponse:
        state = _ApprovalState()

        async def ensure_enrollment() -> None:
            await self._enrollments.ensure_active(context)

        async def issue_card() -> None:
            issued = await self._cards.issue_for_enrollment(context)
            if issued is None:
                raise StepAborted("Card issuance returned no card")
            state.card_id = issued.card_id
            state.card_created = issued.created

        async def upsert_relationship() -> None:
            await self._relationships.upsert(context.customer_id, context.business_id)

        async def notify_customer() -> None:
            await self._notify(
                context,
                recipient_id=context.customer_id,
                rendered=render_customer_enrollment_decision(
                    approved=True,
                    program_name=context.program_name,
                    business_name=context.business_name,
                ),
                data=self._notification_data(context, card_id=state.card_id),
                notification_type=NotificationTypeEnum.ENROLLMENT_ACCEPTED,
            )

        async def notify_business() -> None:
            await self._notify(
                context,
                recipient_id=context.business_id,
                rendered=render_business_enrollment_decision(approved=True, program_name=context.program_name),
                data=self._notification_data(context, card_id=state.card_id, include_customer=True),
                notification_type=NotificationTypeEnum.ENROLLMENT_ACCEPTED,
            )

        async def invalidate_cards() -> None:
            if self._card_cache is None:
                return
            await LoyaltyCardListingService(self._db, self._card_cache).invalidate_customer(context.customer_id)

        async def emit_card_sync() -> None:
            if state.card_id is None:
                return
            await self._sync.emit_card_changed(
                state.card_id,
                context.customer_id,
                context.business_id,
                SyncOperation.INSERT if state.card_created else SyncOperation.UPDATE,
                {
                    "programId": str(context.program_id),
                    "programName": context.program_name,
                    "businessName": context.business_name,
                },
            )

        async def emit_enrollment_sync() -> None:
            await self._sync.emit_enrollment_changed(
                context.customer_id,
                context.business_id,
                context.program_id,
                SyncOperation.UPDATE,
            )

        steps = [
            WorkflowStep("ensureProgramEnrollment", ensure_enrollment),
            WorkflowStep(
                "createLoyaltyCard",
                issue_card,
                error_code=EnrollmentErrorCode.CARD_CREATION_FAILED.value,
            ),
            WorkflowStep("upsertRelationship", upsert_relationship, StepKind.BEST_EFFORT),
            WorkflowStep("notifyCustomer", notify_customer, StepKind.BEST_EFFORT),
            WorkflowStep("notifyBusiness", notify_business, StepKind.BEST_EFFORT),
            WorkflowStep("commitApproval", self._db.commit),
            WorkflowStep("invalidateCardCache", invalidate_cards, StepKind.BEST_EFFORT),
            WorkflowStep("emitCardSync", emit_card_sync, StepKind.BEST_EFFORT),
            WorkflowStep("emitEnrollmentSync", emit_enrollment_sync, StepKind.BEST_EFFORT),
        ]
        report = await self._run("approve", context, steps)
        if not report.ok:
            return await self._failure(report, EnrollmentErrorCode.APPROVAL_PROCESSING_ERROR)

        card_id = str(state.card_id) if state.card_id is not None else None
        logger.info("Enrollment approved", card_id=card_id, degraded=report.degraded, **context.log_context())
        return EnrollmentResponse.succeeded(APPROVED_MESSAGE, card_id=card_id)

    async def _reject(self, context: EnrollmentRequestContext) -> EnrollmentResponse:
        async def notify_customer() -> None:
            await self._notify(
                context,
                recipient_id=context.customer_id,
                rendered=render_customer_enrollment_decision(
                    approved=False,
                    program_name=context.program_name,
                    business_name=context.business_name,
                ),
                data=self._notification_data(context),
                notification_type=NotificationTypeEnum.ENROLLMENT_REJECTED,
            )

        async def notify_business() -> None:
            await self._notify(
                context,
                recipient_id=context.business_id,
                rendered=render_business_enrollment_decision(approved=False, program_name=context.program_name),
                data=self._notification_data(context, include_customer=True),
                notification_type=NotificationTypeEnum.ENROLLMENT_REJECTED,
            )

        async def emit_enrollment_sync() -> None:
            await self._sync.emit_enrollment_changed(
                context.customer_id,
                context.business_id,
                context.program_id,
                SyncOperation.DECLINED,
            )

        steps = [
            WorkflowStep("notifyCustomer", notify_customer, StepKind.BEST_EFFORT),
            WorkflowStep("notifyBusiness", notify_business, StepKind.BEST_EFFORT),
            WorkflowStep("commitRejection", self._db.commit),
            WorkflowStep("emitEnrollmentSync", emit_enrollment_sync, StepKind.BEST_EFFORT),
        ]
        report = await self._run("reject", context, steps)
        if not report.ok:
            return await self._failure(report, EnrollmentErrorCode.REJECTION_PROCESSING_ERROR)

        logger.info("Enrollment declined", degraded=report.degraded, **context.log_context())
        return EnrollmentResponse.succeeded(DECLINED_MESSAGE)

    async def _run(
        self,
        path: str,
        context: EnrollmentRequestContext,
        steps: list[WorkflowStep],
    ) -> StepRunReport:
        runner = WorkflowRunner(f"enrollment.{path}", context=context.log_context(), store=self._store)
        return await runner.run(steps)

    async def _failure(self, report: StepRunReport, default_code: EnrollmentErrorCode) -> EnrollmentResponse:
        await self._safe_rollback()
        step = report.failed_step
        code = EnrollmentErrorCode(step.error_code) if step and step.error_code else default_code
        return EnrollmentResponse.failed(
            code,
            _FAILURE_MESSAGES[code],
            location=step.name if step else "unknown",
        )

    async def _notify(
        self,
        context: EnrollmentRequestContext,
        *,
        recipient_id: UUID,
        rendered: RenderedNotification,
        data: dict[str, Any],
        notification_type: NotificationTypeEnum,
    ) -> None:
        notification = await self._notifications.create_notification(
            recipient_id=recipient_id,
            business_id=context.business_id,
            notification_type=notification_type,
            title=rendered.title,
            message=rendered.message,
            data=data,
            requires_action=False,
            action_taken=False,
            is_read=False,
        )
        if notification is None:
            raise StepAborted(f"Notification for {recipient_id} was not created")

    @staticmethod
    def _notification_data(
        context: EnrollmentRequestContext,
        *,
        card_id: UUID | None = None,
        include_customer: bool = False,
    ) -> dict[str, Any]:
        data: dict[str, Any] = {
            "programId": str(context.program_id),
            "programName": context.program_name,
        }
        if card_id is not None:
            data["cardId"] = str(card_id)
        if include_customer:
            data["customerId"] = str(context.customer_id)
        return data

    async def _safe_rollback(self) -> None:
        try:
            await self._db.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback after enrollment failure also failed")


__all__ = ["APPROVED_MESSAGE", "DECLINED_MESSAGE", "EnrollmentResponseService"]
