from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from rewards_api.api.dependencies.runtime import get_card_cache, get_sync_publisher
from rewards_api.db.session import get_session
from rewards_api.models.enrollment import EnrollmentRequestStatus
from rewards_api.schemas.enrollment import (
    EnrollmentDecisionRequest,
    EnrollmentDecisionResponse,
    EnrollmentRequestSummary,
)
from rewards_api.services.cards.cache import CardCache
from rewards_api.services.enrollment import (
    EnrollmentErrorCode,
    EnrollmentRequestRepository,
    EnrollmentResponseService,
)
from rewards_api.services.sync.events import SyncEventPublisher

router = APIRouter(prefix="/enrollments", tags=["Enrollments"])

_STATUS_BY_ERROR = {
    EnrollmentErrorCode.REQUEST_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    EnrollmentErrorCode.ALREADY_PROCESSED: status.HTTP_409_CONFLICT,
    EnrollmentErrorCode.CARD_CREATION_FAILED: status.HTTP_422_UNPROCESSABLE_CONTENT,
}


@router.post(
    "/requests/{request_id}/respond",
    response_model=EnrollmentDecisionResponse,
    response_model_exclude_none=True,
    summary="Approve or decline an enrollment invitation",
)
async def respond_to_enrollment_request(
    request_id: str,
    payload: EnrollmentDecisionRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
    card_cache: CardCache = Depends(get_card_cache),
    sync_publisher: SyncEventPublisher | None = Depends(get_sync_publisher),
) -> EnrollmentDecisionResponse:
    """Apply the customer's decision; failures keep the structured body."""

    service = EnrollmentResponseService(
        session,
        card_cache=card_cache,
        sync_publisher=sync_publisher,
    )
    result = await service.process_enrollment_response(request_id, payload.approved)
    if result.error_code is not None:
        response.status_code = _STATUS_BY_ERROR.get(result.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return EnrollmentDecisionResponse.model_validate(result.as_dict())


@router.get(
    "/customers/{customer_id}/requests",
    response_model=List[EnrollmentRequestSummary],
    summary="List a customer's enrollment invitations",
)
async def list_customer_enrollment_requests(
    customer_id: UUID,
    status_filter: EnrollmentRequestStatus | None = Query(None, alias="status"),
    session: AsyncSession = Depends(get_session),
) -> List[EnrollmentRequestSummary]:
    repository = EnrollmentRequestRepository(session)
    requests = await repository.list_customer_requests(customer_id, status=status_filter)
    return [EnrollmentRequestSummary.model_validate(item) for item in requests]
