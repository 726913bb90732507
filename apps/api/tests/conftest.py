from dataclasses import dataclass
from uuid import UUID

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import rewards_api.models  # noqa: F401
from rewards_api.app import create_app
from rewards_api.db.base import Base
from rewards_api.db.session import build_engine, get_session
from rewards_api.models.enrollment import ENROLLMENT_REQUEST_TYPE, EnrollmentRequest, EnrollmentRequestStatus
from rewards_api.models.loyalty_program import LoyaltyProgram
from rewards_api.models.notification import Notification, NotificationTypeEnum
from rewards_api.models.user import User, UserRoleEnum
from rewards_api.observability.enrollment import EnrollmentObservabilityStore
from rewards_api.services.cards.cache import InMemoryCardCache
from rewards_api.services.sync.events import InMemorySyncPublisher


@dataclass
class SeededInvitation:
    request_id: UUID
    customer_id: UUID
    business_id: UUID
    program_id: UUID
    invitation_id: UUID


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'rewards.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def app_with_db(session_factory):
    app = create_app()
    app.state.card_cache = InMemoryCardCache()
    app.state.sync_publisher = InMemorySyncPublisher()

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    try:
        yield app, session_factory
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def store() -> EnrollmentObservabilityStore:
    return EnrollmentObservabilityStore()


@pytest.fixture
def sync_publisher() -> InMemorySyncPublisher:
    return InMemorySyncPublisher()


@pytest.fixture
def card_cache() -> InMemoryCardCache:
    return InMemoryCardCache()


async def seed_invitation(
    session_factory,
    *,
    status: EnrollmentRequestStatus = EnrollmentRequestStatus.PENDING,
    request_type: str = ENROLLMENT_REQUEST_TYPE,
    program_name: str = "Coffee Club",
    business_name: str | None = "Bean There",
    email_prefix: str = "seed",
) -> SeededInvitation:
    """Persist a business, a customer, a program and one enrollment invitation."""

    async with session_factory() as session:
        business = User(
            email=f"{email_prefix}-business@example.com",
            display_name=business_name,
            role=UserRoleEnum.BUSINESS.value,
        )
        customer = User(email=f"{email_prefix}-customer@example.com", display_name="Casey")
        session.add_all([business, customer])
        await session.flush()

        program = LoyaltyProgram(business_id=business.id, name=program_name)
        session.add(program)
        await session.flush()

        request = EnrollmentRequest(
            request_type=request_type,
            customer_id=customer.id,
            business_id=business.id,
            program_id=program.id,
            status=status,
            data={"source": "invite"},
        )
        session.add(request)
        await session.flush()

        invitation = Notification(
            recipient_id=customer.id,
            business_id=business.id,
            type=NotificationTypeEnum.ENROLLMENT_INVITATION.value,
            title="Program Invitation",
            message=f"{business_name} invited you to join {program_name}",
            data={"programId": str(program.id)},
            reference_id=str(request.id),
            requires_action=True,
            action_taken=False,
            is_read=False,
        )
        session.add(invitation)
        await session.commit()

        return SeededInvitation(
            request_id=request.id,
            customer_id=customer.id,
            business_id=business.id,
            program_id=program.id,
            invitation_id=invitation.id,
        )


@pytest.fixture
def seed(session_factory):
    async def _seed(**kwargs) -> SeededInvitation:
        return await seed_invitation(session_factory, **kwargs)

    return _seed


@pytest_asyncio.fixture
async def invitation(session_factory) -> SeededInvitation:
    return await seed_invitation(session_factory)
