"""Seed a business, a customer and a pending enrollment invitation for local testing."""

from __future__ import annotations

import asyncio
import os
from typing import TypedDict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rewards_api.core.settings import settings
from rewards_api.db.session import build_engine
from rewards_api.models import (
    EnrollmentRequest,
    EnrollmentRequestStatus,
    LoyaltyProgram,
    Notification,
    NotificationTypeEnum,
    User,
    UserRoleEnum,
)


class SeedUser(TypedDict):
    email: str
    display_name: str
    role: str


DEV_BUSINESS: SeedUser = {
    "email": os.getenv("DEV_BUSINESS_EMAIL", "business@rewards.dev").lower(),
    "display_name": "Corner Roasters",
    "role": UserRoleEnum.BUSINESS.value,
}
DEV_CUSTOMER: SeedUser = {
    "email": os.getenv("DEV_CUSTOMER_EMAIL", "customer@rewards.dev").lower(),
    "display_name": "Customer QA",
    "role": UserRoleEnum.CUSTOMER.value,
}
DEV_PROGRAM_NAME = os.getenv("DEV_PROGRAM_NAME", "Coffee Club")


async def _upsert_user(session: AsyncSession, user: SeedUser) -> User:
    with session.no_autoflush:
        existing = await session.execute(select(User).where(User.email == user["email"]))
    record = existing.scalar_one_or_none()
    if record:
        record.display_name = user["display_name"]
        record.role = user["role"]
        return record

    record = User(email=user["email"], display_name=user["display_name"], role=user["role"])
    session.add(record)
    await session.flush()
    return record


async def seed_invitation(session: AsyncSession) -> EnrollmentRequest:
    business = await _upsert_user(session, DEV_BUSINESS)
    customer = await _upsert_user(session, DEV_CUSTOMER)

    result = await session.execute(
        select(LoyaltyProgram).where(
            LoyaltyProgram.business_id == business.id,
            LoyaltyProgram.name == DEV_PROGRAM_NAME,
        )
    )
    program = result.scalar_one_or_none()
    if program is None:
        program = LoyaltyProgram(business_id=business.id, name=DEV_PROGRAM_NAME)
        session.add(program)
        await session.flush()

    request = EnrollmentRequest(
        customer_id=customer.id,
        business_id=business.id,
        program_id=program.id,
        status=EnrollmentRequestStatus.PENDING,
        data={"source": "dev-seed"},
    )
    session.add(request)
    await session.flush()

    session.add(
        Notification(
            recipient_id=customer.id,
            business_id=business.id,
            type=NotificationTypeEnum.ENROLLMENT_INVITATION.value,
            title="Program Invitation",
            message=f"{business.display_name} invited you to join {program.name}",
            data={"programId": str(program.id), "programName": program.name},
            reference_id=str(request.id),
            requires_action=True,
        )
    )
    await session.commit()
    return request


async def main() -> None:
    engine = build_engine(settings.database_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        async with session_factory() as session:
            request = await seed_invitation(session)
        print(f"Pending enrollment request ready: {request.id}")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
